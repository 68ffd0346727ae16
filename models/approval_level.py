from decimal import Decimal

from sqlalchemy import Boolean, Column, Integer, String, Text

from database import Base
from models.types import DecimalText, UTCDateTime, utcnow


class ApprovalLevel(Base):
    """Configured tier of the approval hierarchy, bucketed by loan amount."""

    __tablename__ = "approval_levels"

    id = Column(Integer, primary_key=True, autoincrement=True)
    level_name = Column(String(100), nullable=False)
    level_order = Column(Integer, nullable=False, index=True)
    role_required = Column(String(100), nullable=False)
    min_loan_amount = Column(DecimalText(18, 2), nullable=False, default=Decimal("0"))
    # NULL means unbounded
    max_loan_amount = Column(DecimalText(18, 2), nullable=True)
    is_required = Column(Boolean, nullable=False, default=True)
    can_skip = Column(Boolean, nullable=False, default=False)
    timeout_hours = Column(Integer, nullable=False, default=72)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __init__(self, **kwargs):
        kwargs.setdefault("min_loan_amount", Decimal("0"))
        kwargs.setdefault("is_required", True)
        kwargs.setdefault("can_skip", False)
        kwargs.setdefault("timeout_hours", 72)
        kwargs.setdefault("is_active", True)
        super().__init__(**kwargs)

    def covers(self, loan_amount: Decimal) -> bool:
        if loan_amount < self.min_loan_amount:
            return False
        return self.max_loan_amount is None or loan_amount <= self.max_loan_amount
