"""
Annuity (fixed monthly installment) calculations for KPR loans.
All arithmetic is done in decimal.Decimal; nothing here touches binary floating point.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Union

from schemas.application import RepaymentSchedule, ScheduleRow
from services.errors import InvalidParameters

Number = Union[Decimal, int, str]

CENT = Decimal("0.01")
RATIO = Decimal("0.0001")
DEFAULT_RATE_SCALE = 10
# Wide enough that (1 + r) ** 600 keeps every digit that can reach the cent
_PRECISION = 60


def _dec(value: Number) -> Decimal:
    if isinstance(value, float):
        raise TypeError("floats are not accepted for monetary values; pass Decimal, int or str")
    return value if isinstance(value, Decimal) else Decimal(str(value))


def monthly_rate(annual_rate_percent: Number, scale: int = DEFAULT_RATE_SCALE) -> Decimal:
    """annual% / 12 / 100, each step rounded half-up to `scale` fractional digits."""
    if scale < DEFAULT_RATE_SCALE:
        raise InvalidParameters(f"monthly rate scale must be at least {DEFAULT_RATE_SCALE} digits")
    quantum = Decimal(1).scaleb(-scale)
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        per_month = (_dec(annual_rate_percent) / 12).quantize(quantum, rounding=ROUND_HALF_UP)
        return (per_month / 100).quantize(quantum, rounding=ROUND_HALF_UP)


def monthly_installment(
    principal: Number,
    annual_rate_percent: Number,
    years: int,
    scale: int = DEFAULT_RATE_SCALE,
) -> Decimal:
    """
    Fixed monthly installment: P * r * (1+r)^n / ((1+r)^n - 1), rounded half-up to cents.
    Raises InvalidParameters for non-positive principal, rate or term.
    """
    principal = _dec(principal)
    annual_rate_percent = _dec(annual_rate_percent)
    if principal <= 0 or annual_rate_percent <= 0 or years is None or years <= 0:
        raise InvalidParameters("Invalid loan parameters: principal, rate and term must be positive")

    r = monthly_rate(annual_rate_percent, scale)
    n = int(years) * 12
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        growth = (1 + r) ** n
        installment = principal * r * growth / (growth - 1)
        return installment.quantize(CENT, rounding=ROUND_HALF_UP)


def amortization_schedule(
    principal: Number,
    annual_rate_percent: Number,
    years: int,
    scale: int = DEFAULT_RATE_SCALE,
) -> RepaymentSchedule:
    """
    Month-by-month repayment table. Interest is rounded to cents each period and the last
    period absorbs the residual, so principal repaid sums exactly to the loan.
    """
    principal = _dec(principal)
    installment = monthly_installment(principal, annual_rate_percent, years, scale)
    r = monthly_rate(annual_rate_percent, scale)
    n = int(years) * 12

    rows: list[ScheduleRow] = []
    balance = principal
    total_payment = Decimal("0")
    total_interest = Decimal("0")
    for period in range(1, n + 1):
        interest = (balance * r).quantize(CENT, rounding=ROUND_HALF_UP)
        if period == n:
            principal_part = balance
        else:
            principal_part = min(installment - interest, balance)
        payment = principal_part + interest
        balance = balance - principal_part
        total_payment += payment
        total_interest += interest
        rows.append(
            ScheduleRow(
                period=period,
                payment=payment,
                interest=interest,
                principal=principal_part,
                balance=balance,
            )
        )

    return RepaymentSchedule(
        principal=principal,
        annual_rate=_dec(annual_rate_percent),
        term_years=int(years),
        monthly_installment=installment,
        total_payment=total_payment,
        total_interest=total_interest,
        rows=rows,
    )


def ltv_ratio(loan_amount: Number, property_value: Number) -> Decimal:
    """Loan-to-value as a fraction with 4 decimals (0.8000 = 80%)."""
    property_value = _dec(property_value)
    if property_value <= 0:
        raise InvalidParameters("Property value must be positive")
    return (_dec(loan_amount) / property_value).quantize(RATIO, rounding=ROUND_HALF_UP)


def minimum_down_payment(price: Number, min_down_payment_percent: Number) -> Decimal:
    return (_dec(price) * _dec(min_down_payment_percent) / 100).quantize(CENT, rounding=ROUND_HALF_UP)
