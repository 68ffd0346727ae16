from decimal import Decimal

from sqlalchemy import Column, Enum, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import validates

from database import Base
from models.enums import ApplicationPurpose, ApplicationStatus, PropertyType
from models.types import DecimalText, UTCDateTime, utcnow

# Financial terms frozen at submission; later rate-plan edits never reprice an application
SNAPSHOT_FIELDS = (
    "property_value",
    "loan_amount",
    "down_payment",
    "loan_term_years",
    "interest_rate",
    "monthly_installment",
    "ltv_ratio",
    "rate_plan_id",
)

_TERMINAL_SQL = "status NOT IN ('APPROVED', 'REJECTED', 'CANCELLED', 'DISBURSED')"


class LoanApplication(Base):
    __tablename__ = "loan_applications"

    id = Column(String(64), primary_key=True, index=True)
    application_number = Column(String(32), unique=True, nullable=False)
    user_id = Column(Integer, nullable=False, index=True)
    property_id = Column(Integer, nullable=False, index=True)
    rate_plan_id = Column(String(64), ForeignKey("rate_plans.id"), nullable=False)
    property_type = Column(Enum(PropertyType, native_enum=False, length=16), nullable=False)
    property_value = Column(DecimalText(18, 2), nullable=False)
    loan_amount = Column(DecimalText(18, 2), nullable=False)
    down_payment = Column(DecimalText(18, 2), nullable=False)
    loan_term_years = Column(Integer, nullable=False)
    interest_rate = Column(DecimalText(7, 4), nullable=False)
    monthly_installment = Column(DecimalText(18, 2), nullable=False)
    ltv_ratio = Column(DecimalText(7, 4), nullable=False)
    purpose = Column(Enum(ApplicationPurpose, native_enum=False, length=32), nullable=False)
    status = Column(
        Enum(ApplicationStatus, native_enum=False, length=32),
        nullable=False,
        default=ApplicationStatus.SUBMITTED,
        index=True,
    )
    current_approval_level = Column(Integer, ForeignKey("approval_levels.id"), nullable=True)
    submitted_at = Column(UTCDateTime, nullable=True)
    approved_at = Column(UTCDateTime, nullable=True)
    rejected_at = Column(UTCDateTime, nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        # One open application per (user, property); backstop for the duplicate check
        Index(
            "uq_loan_applications_open_per_property",
            "user_id",
            "property_id",
            unique=True,
            sqlite_where=text(_TERMINAL_SQL),
            postgresql_where=text(_TERMINAL_SQL),
        ),
    )
    __mapper_args__ = {"version_id_col": version}

    @validates(*SNAPSHOT_FIELDS)
    def _freeze_snapshot(self, key, value):
        current = self.__dict__.get(key)
        if current is not None and _normalize(current) != _normalize(value):
            raise ValueError(f"{key} is part of the submitted financial snapshot and cannot change")
        return value


def _normalize(value):
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return Decimal(str(value))
    return value


class ApplicationNumberSequence(Base):
    """Per-year counter behind KPR-<year>-<seq> application numbers."""

    __tablename__ = "application_number_sequences"

    year = Column(Integer, primary_key=True, autoincrement=False)
    last_value = Column(Integer, nullable=False, default=0)
