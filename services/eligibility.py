"""Guards a submission against the property's own constraints. Side-effect free."""
from __future__ import annotations

from decimal import Decimal

from models.enums import PropertyStatus
from schemas.external import PropertyRecord
from services.amortization import minimum_down_payment
from services.errors import DownPaymentTooLow, NotKprEligible, PropertyUnavailable, TermTooLong


def validate_submission(prop: PropertyRecord, down_payment: Decimal, term_years: int) -> PropertyRecord:
    if prop.status != PropertyStatus.AVAILABLE:
        raise PropertyUnavailable(f"Property {prop.id} is not available for purchase (status {prop.status.value})")

    if not prop.is_kpr_eligible:
        raise NotKprEligible(f"Property {prop.id} is not eligible for KPR financing")

    min_down_payment = minimum_down_payment(prop.price, prop.min_down_payment_percent)
    if down_payment < min_down_payment:
        raise DownPaymentTooLow(
            f"Down payment must be at least {prop.min_down_payment_percent}% of property price "
            f"(Rp {min_down_payment:,.2f})"
        )

    if term_years > prop.max_loan_term_years:
        raise TermTooLong(f"Loan term cannot exceed {prop.max_loan_term_years} years for this property")

    return prop
