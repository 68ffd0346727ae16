from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Column, Date, Enum, Integer, String, Text, event
from sqlalchemy.orm import validates

from database import Base
from models.enums import CustomerSegment, PropertyTypeFilter, RateType
from models.types import DecimalText, UTCDateTime, utcnow

RATE = DecimalText(7, 4)
MONEY = DecimalText(18, 2)

_DEFAULTS = {
    "rate_type": RateType.FIXED,
    "property_type": PropertyTypeFilter.ALL,
    "customer_segment": CustomerSegment.ALL,
    "margin": Decimal("0"),
    "min_income": Decimal("0"),
    "admin_fee": Decimal("0"),
    "appraisal_fee": Decimal("0"),
    "insurance_rate": Decimal("0"),
    "notary_fee_percent": Decimal("0"),
    "is_promotional": False,
    "is_active": True,
}


class RatePlan(Base):
    __tablename__ = "rate_plans"

    id = Column(String(64), primary_key=True, index=True)
    name = Column(String(128), nullable=False)
    rate_type = Column(Enum(RateType, native_enum=False, length=16), nullable=False, default=RateType.FIXED)
    property_type = Column(
        Enum(PropertyTypeFilter, native_enum=False, length=16), nullable=False, default=PropertyTypeFilter.ALL
    )
    customer_segment = Column(
        Enum(CustomerSegment, native_enum=False, length=16), nullable=False, default=CustomerSegment.ALL
    )
    # effective_rate = base_rate + margin, annual percent
    base_rate = Column(RATE, nullable=False)
    margin = Column(RATE, nullable=False, default=Decimal("0"))
    effective_rate = Column(RATE, nullable=False)
    min_loan_amount = Column(MONEY, nullable=False)
    max_loan_amount = Column(MONEY, nullable=False)
    min_term_years = Column(Integer, nullable=False)
    max_term_years = Column(Integer, nullable=False)
    max_ltv_ratio = Column(RATE, nullable=True)
    min_income = Column(MONEY, nullable=False, default=Decimal("0"))
    max_age = Column(Integer, nullable=True)
    min_down_payment_percent = Column(DecimalText(5, 2), nullable=True)
    admin_fee = Column(MONEY, nullable=False, default=Decimal("0"))
    appraisal_fee = Column(MONEY, nullable=False, default=Decimal("0"))
    insurance_rate = Column(RATE, nullable=False, default=Decimal("0"))
    notary_fee_percent = Column(RATE, nullable=False, default=Decimal("0"))
    is_promotional = Column(Boolean, nullable=False, default=False)
    promo_description = Column(Text, nullable=True)
    promo_start_date = Column(Date, nullable=True)
    promo_end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    effective_date = Column(Date, nullable=False)
    expiry_date = Column(Date, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __init__(self, **kwargs):
        # Column defaults only apply at INSERT; transient plans are evaluated before that
        for key, value in _DEFAULTS.items():
            kwargs.setdefault(key, value)
        if kwargs.get("effective_rate") is None and kwargs.get("base_rate") is not None:
            kwargs["effective_rate"] = Decimal(str(kwargs["base_rate"])) + Decimal(str(kwargs.get("margin") or 0))
        super().__init__(**kwargs)
        self._check_effective_rate()

    @validates("base_rate", "margin", "effective_rate")
    def _coerce_rate(self, key, value):
        return Decimal(str(value)).quantize(Decimal("0.0001")) if value is not None else None

    def _check_effective_rate(self) -> None:
        if self.base_rate is None or self.effective_rate is None:
            return
        if self.effective_rate != self.base_rate + (self.margin or Decimal("0")):
            raise ValueError(
                f"effective_rate {self.effective_rate} must equal base_rate {self.base_rate} + margin {self.margin}"
            )

    def is_promotion_running(self, as_of: date) -> bool:
        if not self.is_promotional:
            return False
        if self.promo_start_date and self.promo_start_date > as_of:
            return False
        if self.promo_end_date and self.promo_end_date < as_of:
            return False
        return True


@event.listens_for(RatePlan, "before_insert")
@event.listens_for(RatePlan, "before_update")
def _rate_plan_before_save(mapper, connection, target: RatePlan) -> None:
    target._check_effective_rate()
