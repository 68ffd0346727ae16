"""
Matches a loan request against the rate catalog.
Each plan is checked criterion by criterion (active window, property type, segment, amount,
term, income, age, LTV, down payment); the cheapest eligible plan wins.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import RatePlan
from models.enums import CustomerSegment, PropertyType, PropertyTypeFilter
from schemas.rate_plan import CriterionResultSchema, RateMatchRequest, RatePlanMatchSchema
from services.amortization import ltv_ratio
from services.errors import NoEligibleRate

logger = logging.getLogger(__name__)

_SEGMENT_KEYWORDS: list[tuple[CustomerSegment, tuple[str, ...]]] = [
    (CustomerSegment.EMPLOYEE, ("pegawai", "karyawan", "employee")),
    (CustomerSegment.PROFESSIONAL, ("dokter", "lawyer", "professional")),
    (CustomerSegment.ENTREPRENEUR, ("wiraswasta", "entrepreneur", "bisnis")),
    (CustomerSegment.PENSIONER, ("pensioner", "pensiun")),
]


def property_type_filter(property_type: PropertyType) -> PropertyTypeFilter:
    """Property types without a dedicated rate filter only match ALL-type plans."""
    try:
        return PropertyTypeFilter(property_type.value)
    except ValueError:
        return PropertyTypeFilter.ALL


def customer_segment_for(occupation: Optional[str]) -> CustomerSegment:
    if not occupation:
        return CustomerSegment.ALL
    occ = occupation.lower()
    for segment, keywords in _SEGMENT_KEYWORDS:
        if any(k in occ for k in keywords):
            return segment
    return CustomerSegment.ALL


def age_on(birth_date: Optional[date], as_of: date) -> Optional[int]:
    if birth_date is None:
        return None
    years = as_of.year - birth_date.year
    if (as_of.month, as_of.day) < (birth_date.month, birth_date.day):
        years -= 1
    return years


def _rp(amount: Decimal) -> str:
    return f"Rp {amount:,.2f}"


def evaluate_rate_plan(
    plan: RatePlan,
    *,
    property_filter: PropertyTypeFilter,
    loan_amount: Decimal,
    term_years: int,
    customer_segment: CustomerSegment,
    as_of: date,
    monthly_income: Optional[Decimal] = None,
    age: Optional[int] = None,
    property_value: Optional[Decimal] = None,
) -> RatePlanMatchSchema:
    criteria_results: list[CriterionResultSchema] = []
    rejection_reasons: list[str] = []

    def check(name: str, met: bool, ok: str, fail: str, expected: str, actual: str) -> None:
        criteria_results.append(
            CriterionResultSchema(name=name, met=met, reason=ok if met else fail, expected=expected, actual=actual)
        )
        if not met:
            rejection_reasons.append(fail)

    check("Active", bool(plan.is_active), "Plan is active", "Plan is inactive", "active", str(plan.is_active))

    in_window = plan.effective_date <= as_of and (plan.expiry_date is None or plan.expiry_date >= as_of)
    window = f"{plan.effective_date} – {plan.expiry_date or 'open'}"
    check(
        "Validity Window",
        in_window,
        f"{as_of} within {window}",
        f"Plan not valid on {as_of} (valid {window})",
        window,
        str(as_of),
    )

    check(
        "Property Type",
        plan.property_type in (PropertyTypeFilter.ALL, property_filter),
        f"Property type {property_filter.value} accepted",
        f"Plan is for {plan.property_type.value} properties, not {property_filter.value}",
        plan.property_type.value,
        property_filter.value,
    )

    check(
        "Customer Segment",
        plan.customer_segment in (CustomerSegment.ALL, customer_segment),
        f"Segment {customer_segment.value} accepted",
        f"Plan is for {plan.customer_segment.value} customers, not {customer_segment.value}",
        plan.customer_segment.value,
        customer_segment.value,
    )

    check(
        "Loan Amount",
        plan.min_loan_amount <= loan_amount <= plan.max_loan_amount,
        f"Within {_rp(plan.min_loan_amount)}–{_rp(plan.max_loan_amount)}",
        f"Loan amount {_rp(loan_amount)} outside range {_rp(plan.min_loan_amount)}–{_rp(plan.max_loan_amount)}",
        f"{_rp(plan.min_loan_amount)} – {_rp(plan.max_loan_amount)}",
        _rp(loan_amount),
    )

    check(
        "Loan Term",
        plan.min_term_years <= term_years <= plan.max_term_years,
        f"{term_years} years within {plan.min_term_years}–{plan.max_term_years}",
        f"Loan term {term_years} years outside range {plan.min_term_years}–{plan.max_term_years}",
        f"{plan.min_term_years} – {plan.max_term_years} years",
        f"{term_years} years",
    )

    if monthly_income is not None:
        check(
            "Minimum Income",
            monthly_income >= plan.min_income,
            f"Income meets minimum {_rp(plan.min_income)}",
            f"Monthly income {_rp(monthly_income)} below minimum {_rp(plan.min_income)}",
            f"≥ {_rp(plan.min_income)}",
            _rp(monthly_income),
        )

    if age is not None and plan.max_age is not None:
        check(
            "Maximum Age",
            age <= plan.max_age,
            f"Age {age} ≤ {plan.max_age}",
            f"Age {age} above maximum {plan.max_age}",
            f"≤ {plan.max_age}",
            str(age),
        )

    if property_value is not None and property_value > 0:
        if plan.max_ltv_ratio is not None:
            ltv = ltv_ratio(loan_amount, property_value)
            check(
                "Loan to Value",
                ltv <= plan.max_ltv_ratio,
                f"LTV {ltv} ≤ {plan.max_ltv_ratio}",
                f"LTV {ltv} above ceiling {plan.max_ltv_ratio}",
                f"≤ {plan.max_ltv_ratio}",
                str(ltv),
            )
        if plan.min_down_payment_percent is not None:
            dp_percent = (property_value - loan_amount) * 100 / property_value
            check(
                "Down Payment",
                dp_percent >= plan.min_down_payment_percent,
                f"Down payment {dp_percent:.2f}% meets minimum",
                f"Down payment {dp_percent:.2f}% below minimum {plan.min_down_payment_percent}%",
                f"≥ {plan.min_down_payment_percent}%",
                f"{dp_percent:.2f}%",
            )

    return RatePlanMatchSchema(
        rate_plan_id=plan.id,
        rate_plan_name=plan.name,
        effective_rate=plan.effective_rate,
        eligible=not rejection_reasons,
        rejection_reasons=rejection_reasons,
        criteria_results=criteria_results,
    )


def _preference_key(plan: RatePlan, as_of: date):
    # Cheapest first; then the longest-standing plan, running promotions, and id for stability
    return (plan.effective_rate, plan.effective_date, not plan.is_promotion_running(as_of), plan.id)


def pick_best_rate(
    plans: Sequence[RatePlan],
    *,
    property_filter: PropertyTypeFilter,
    loan_amount: Decimal,
    term_years: int,
    customer_segment: CustomerSegment,
    as_of: date,
    monthly_income: Optional[Decimal] = None,
    age: Optional[int] = None,
    property_value: Optional[Decimal] = None,
) -> RatePlan:
    """
    Pure selection over an in-memory catalog.
    Plans written for the customer's own segment are preferred; ALL-segment plans are the fallback.
    """
    eligible = [
        p
        for p in plans
        if evaluate_rate_plan(
            p,
            property_filter=property_filter,
            loan_amount=loan_amount,
            term_years=term_years,
            customer_segment=customer_segment,
            as_of=as_of,
            monthly_income=monthly_income,
            age=age,
            property_value=property_value,
        ).eligible
    ]

    candidates: list[RatePlan] = []
    if customer_segment != CustomerSegment.ALL:
        candidates = [p for p in eligible if p.customer_segment == customer_segment]
    if not candidates:
        candidates = eligible
    if not candidates:
        raise NoEligibleRate(
            f"No eligible KPR rate for {property_filter.value} property, amount {_rp(loan_amount)}, "
            f"term {term_years} years, segment {customer_segment.value}"
        )
    return min(candidates, key=lambda p: _preference_key(p, as_of))


async def load_active_rate_plans(session: AsyncSession) -> list[RatePlan]:
    result = await session.execute(select(RatePlan).where(RatePlan.is_active.is_(True)).order_by(RatePlan.id))
    return list(result.scalars().all())


async def select_best_rate(
    session: AsyncSession,
    property_filter: PropertyTypeFilter,
    loan_amount: Decimal,
    term_years: int,
    customer_segment: CustomerSegment,
    monthly_income: Optional[Decimal],
    as_of: date,
    age: Optional[int] = None,
    property_value: Optional[Decimal] = None,
) -> RatePlan:
    plans = await load_active_rate_plans(session)
    plan = pick_best_rate(
        plans,
        property_filter=property_filter,
        loan_amount=loan_amount,
        term_years=term_years,
        customer_segment=customer_segment,
        as_of=as_of,
        monthly_income=monthly_income,
        age=age,
        property_value=property_value,
    )
    logger.info(
        "Selected rate plan %s (%s%%) for amount=%s term=%s segment=%s",
        plan.id,
        plan.effective_rate,
        loan_amount,
        term_years,
        customer_segment.value,
    )
    return plan


async def match_rate_plans(session: AsyncSession, request: RateMatchRequest) -> list[RatePlanMatchSchema]:
    """Eligibility report for every plan in the catalog; eligible plans first, cheapest first."""
    as_of = request.as_of or date.today()
    result = await session.execute(select(RatePlan).order_by(RatePlan.id))
    reports = [
        evaluate_rate_plan(
            plan,
            property_filter=property_type_filter(request.property_type),
            loan_amount=request.loan_amount,
            term_years=request.term_years,
            customer_segment=request.customer_segment,
            as_of=as_of,
            monthly_income=request.monthly_income,
            age=request.age,
            property_value=request.property_value,
        )
        for plan in result.scalars().all()
    ]
    reports.sort(key=lambda r: (not r.eligible, r.effective_rate, r.rate_plan_id))
    return reports


async def list_promotional_rates(session: AsyncSession, as_of: date) -> list[RatePlan]:
    plans = await load_active_rate_plans(session)
    running = [p for p in plans if p.is_promotion_running(as_of)]
    running.sort(key=lambda p: (p.effective_rate, p.id))
    return running
