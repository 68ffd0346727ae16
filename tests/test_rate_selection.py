"""
Tests for rate selection: per-plan eligibility, segment tiers and tie-breaking.
Run from the project root: python -m pytest tests/test_rate_selection.py -v
"""
import unittest
from datetime import date
from decimal import Decimal

from models.enums import CustomerSegment, PropertyType, PropertyTypeFilter
from schemas.rate_plan import RateMatchRequest
from services.errors import NoEligibleRate
from services.rate_selection import (
    age_on,
    customer_segment_for,
    evaluate_rate_plan,
    list_promotional_rates,
    match_rate_plans,
    pick_best_rate,
    property_type_filter,
    select_best_rate,
)
from tests.support import TODAY, DatabaseTestCase, make_rate_plan


def _pick(plans, **overrides):
    params = {
        "property_filter": PropertyTypeFilter.RUMAH,
        "loan_amount": Decimal("450000000"),
        "term_years": 15,
        "customer_segment": CustomerSegment.EMPLOYEE,
        "as_of": TODAY,
        "monthly_income": Decimal("15000000"),
        "property_value": Decimal("600000000"),
    }
    params.update(overrides)
    return pick_best_rate(plans, **params)


class TestHelpers(unittest.TestCase):
    def test_property_type_filter(self):
        self.assertEqual(property_type_filter(PropertyType.RUMAH), PropertyTypeFilter.RUMAH)
        self.assertEqual(property_type_filter(PropertyType.APARTEMEN), PropertyTypeFilter.APARTEMEN)
        self.assertEqual(property_type_filter(PropertyType.TANAH), PropertyTypeFilter.ALL)

    def test_customer_segment_from_occupation(self):
        self.assertEqual(customer_segment_for("Karyawan swasta"), CustomerSegment.EMPLOYEE)
        self.assertEqual(customer_segment_for("Dokter umum"), CustomerSegment.PROFESSIONAL)
        self.assertEqual(customer_segment_for("Wiraswasta"), CustomerSegment.ENTREPRENEUR)
        self.assertEqual(customer_segment_for("Pensiunan PNS"), CustomerSegment.PENSIONER)
        self.assertEqual(customer_segment_for("Guru"), CustomerSegment.ALL)
        self.assertEqual(customer_segment_for(None), CustomerSegment.ALL)

    def test_age_on(self):
        self.assertEqual(age_on(date(1990, 5, 17), date(2026, 5, 16)), 35)
        self.assertEqual(age_on(date(1990, 5, 17), date(2026, 5, 17)), 36)
        self.assertIsNone(age_on(None, date(2026, 1, 1)))


class TestEvaluateRatePlan(unittest.TestCase):
    def _report(self, plan, **overrides):
        params = {
            "property_filter": PropertyTypeFilter.RUMAH,
            "loan_amount": Decimal("450000000"),
            "term_years": 15,
            "customer_segment": CustomerSegment.EMPLOYEE,
            "as_of": TODAY,
        }
        params.update(overrides)
        return evaluate_rate_plan(plan, **params)

    def test_eligible_plan_meets_every_criterion(self):
        report = self._report(make_rate_plan(), monthly_income=Decimal("15000000"), age=35)
        self.assertTrue(report.eligible)
        self.assertEqual(report.rejection_reasons, [])
        self.assertEqual(report.effective_rate, Decimal("7.5000"))

    def test_rejections(self):
        cases = [
            ("amount", make_rate_plan(max_loan_amount=Decimal("400000000")), {}),
            ("term", make_rate_plan(max_term_years=10), {}),
            ("property type", make_rate_plan(property_type=PropertyTypeFilter.APARTEMEN), {}),
            ("segment", make_rate_plan(customer_segment=CustomerSegment.PENSIONER), {}),
            ("inactive", make_rate_plan(is_active=False), {}),
            ("expired", make_rate_plan(expiry_date=date(2025, 12, 31)), {}),
            ("not yet effective", make_rate_plan(effective_date=date(2027, 1, 1)), {}),
            ("income", make_rate_plan(min_income=Decimal("20000000")), {"monthly_income": Decimal("15000000")}),
            ("age", make_rate_plan(max_age=30), {"age": 35}),
            ("ltv", make_rate_plan(max_ltv_ratio=Decimal("0.7")), {"property_value": Decimal("600000000")}),
            (
                "down payment",
                make_rate_plan(min_down_payment_percent=Decimal("30")),
                {"property_value": Decimal("600000000")},
            ),
        ]
        for label, plan, extra in cases:
            with self.subTest(label):
                report = self._report(plan, **extra)
                self.assertFalse(report.eligible)
                self.assertEqual(len(report.rejection_reasons), 1)

    def test_unknown_income_and_age_are_not_checked(self):
        report = self._report(make_rate_plan(min_income=Decimal("99000000"), max_age=20))
        self.assertTrue(report.eligible)
        names = [c.name for c in report.criteria_results]
        self.assertNotIn("Minimum Income", names)
        self.assertNotIn("Maximum Age", names)


class TestPickBestRate(unittest.TestCase):
    def test_cheapest_eligible_plan_wins(self):
        plans = [
            make_rate_plan(id="pricey", base_rate=Decimal("8.0")),
            make_rate_plan(id="cheap", base_rate=Decimal("6.0")),
            make_rate_plan(id="cheapest-but-short", base_rate=Decimal("5.0"), max_term_years=10),
        ]
        self.assertEqual(_pick(plans).id, "cheap")

    def test_amount_bounds_are_inclusive(self):
        plans = [
            make_rate_plan(
                id="mid", min_loan_amount=Decimal("100000000"), max_loan_amount=Decimal("1000000000")
            )
        ]
        for amount in ("500000000", "100000000", "1000000000"):
            with self.subTest(amount=amount):
                self.assertEqual(_pick(plans, loan_amount=Decimal(amount), property_value=None).id, "mid")
        for amount in ("50000000", "2000000000"):
            with self.subTest(amount=amount):
                with self.assertRaises(NoEligibleRate):
                    _pick(plans, loan_amount=Decimal(amount), property_value=None)

    def test_own_segment_preferred_over_cheaper_general_plan(self):
        plans = [
            make_rate_plan(id="general", base_rate=Decimal("6.0")),
            make_rate_plan(id="employee", base_rate=Decimal("6.5"), customer_segment=CustomerSegment.EMPLOYEE),
        ]
        self.assertEqual(_pick(plans).id, "employee")

    def test_general_plans_are_the_fallback(self):
        plans = [
            make_rate_plan(id="general", base_rate=Decimal("6.0")),
            make_rate_plan(id="employee", base_rate=Decimal("5.0"), customer_segment=CustomerSegment.EMPLOYEE),
        ]
        self.assertEqual(_pick(plans, customer_segment=CustomerSegment.ENTREPRENEUR).id, "general")
        self.assertEqual(_pick(plans, customer_segment=CustomerSegment.ALL).id, "general")

    def test_other_segments_never_offered(self):
        plans = [make_rate_plan(id="employee", customer_segment=CustomerSegment.EMPLOYEE)]
        with self.assertRaises(NoEligibleRate):
            _pick(plans, customer_segment=CustomerSegment.PENSIONER)

    def test_no_eligible_rate(self):
        with self.assertRaises(NoEligibleRate):
            _pick([make_rate_plan(max_loan_amount=Decimal("200000000"))])
        with self.assertRaises(NoEligibleRate):
            _pick([])

    def test_tie_break_on_effective_date_then_promotion_then_id(self):
        older = make_rate_plan(id="b-older", effective_date=date(2024, 1, 1))
        newer = make_rate_plan(id="a-newer", effective_date=date(2025, 1, 1))
        self.assertEqual(_pick([newer, older]).id, "b-older")

        promo = make_rate_plan(
            id="z-promo",
            is_promotional=True,
            promo_start_date=date(2026, 1, 1),
            promo_end_date=date(2026, 12, 31),
        )
        plain = make_rate_plan(id="a-plain")
        self.assertEqual(_pick([plain, promo]).id, "z-promo")

        self.assertEqual(_pick([make_rate_plan(id="y"), make_rate_plan(id="x")]).id, "x")


class TestRateCatalogQueries(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        await self.seed_catalog(
            plans=[
                make_rate_plan(id="standard"),
                make_rate_plan(id="retired", base_rate=Decimal("4.0"), is_active=False),
                make_rate_plan(
                    id="promo",
                    base_rate=Decimal("7.0"),
                    is_promotional=True,
                    promo_start_date=date(2026, 1, 1),
                    promo_end_date=date(2026, 6, 30),
                ),
                make_rate_plan(
                    id="promo-ended",
                    base_rate=Decimal("7.0"),
                    is_promotional=True,
                    promo_start_date=date(2025, 1, 1),
                    promo_end_date=date(2025, 6, 30),
                ),
            ],
            levels=[],
        )

    async def test_select_best_rate_ignores_inactive_plans(self):
        async with self.sessionmaker() as session:
            plan = await select_best_rate(
                session,
                PropertyTypeFilter.RUMAH,
                Decimal("450000000"),
                15,
                CustomerSegment.EMPLOYEE,
                Decimal("15000000"),
                TODAY,
                property_value=Decimal("600000000"),
            )
        self.assertEqual(plan.id, "standard")
        self.assertEqual(plan.effective_rate, Decimal("7.5000"))

    async def test_promotional_rates_running_today(self):
        async with self.sessionmaker() as session:
            plans = await list_promotional_rates(session, TODAY)
        self.assertEqual([p.id for p in plans], ["promo"])

    async def test_match_report_lists_eligible_first(self):
        request = RateMatchRequest(
            property_type=PropertyType.RUMAH,
            loan_amount=Decimal("450000000"),
            term_years=15,
            as_of=TODAY,
        )
        async with self.sessionmaker() as session:
            reports = await match_rate_plans(session, request)
        self.assertEqual(len(reports), 4)
        self.assertEqual([r.eligible for r in reports], [True, True, True, False])
        self.assertEqual(reports[-1].rate_plan_id, "retired")


if __name__ == "__main__":
    unittest.main()
