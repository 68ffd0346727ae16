"""Model-level invariants: rate arithmetic and the frozen financial snapshot."""
import unittest
from decimal import Decimal

from pydantic import ValidationError

from models import RatePlan
from schemas.application import FinancialTerms
from tests.support import DatabaseTestCase, make_application, make_rate_plan


class TestRatePlan(unittest.TestCase):
    def test_effective_rate_derived_from_base_and_margin(self):
        plan = make_rate_plan(base_rate=Decimal("6.25"), margin=Decimal("1.5"))
        self.assertEqual(plan.effective_rate, Decimal("7.7500"))

    def test_inconsistent_effective_rate_rejected(self):
        with self.assertRaises(ValueError):
            make_rate_plan(base_rate=Decimal("6.0"), margin=Decimal("1.5"), effective_rate=Decimal("7.0"))


class TestFinancialSnapshot(unittest.TestCase):
    def test_snapshot_fields_cannot_change(self):
        app = make_application("app-1", "KPR-2026-000001")
        with self.assertRaises(ValueError):
            app.loan_amount = Decimal("400000000")
        with self.assertRaises(ValueError):
            app.interest_rate = Decimal("9.5")

    def test_same_value_assignment_allowed(self):
        app = make_application("app-1", "KPR-2026-000001")
        app.loan_amount = Decimal("450000000.00")
        self.assertEqual(app.loan_amount, Decimal("450000000.00"))

    def test_financial_terms_require_consistent_loan_amount(self):
        data = {
            "property_value": Decimal("600000000"),
            "down_payment": Decimal("150000000"),
            "loan_amount": Decimal("450000000"),
            "loan_term_years": 15,
            "interest_rate": Decimal("7.5"),
            "monthly_installment": Decimal("4171555.62"),
            "ltv_ratio": Decimal("0.75"),
            "rate_plan_id": "kpr-standard",
        }
        terms = FinancialTerms(**data)
        with self.assertRaises(ValidationError):
            terms.loan_amount = Decimal("1")
        with self.assertRaises(ValidationError):
            FinancialTerms(**{**data, "loan_amount": Decimal("460000000")})


class TestRatePlanPersistence(DatabaseTestCase):
    async def test_rate_edit_must_keep_effective_rate_consistent(self):
        await self.seed_catalog(levels=[])
        async with self.sessionmaker() as session:
            plan = await session.get(RatePlan, "kpr-standard")
            plan.margin = Decimal("2.0")
            with self.assertRaises(ValueError):
                await session.commit()
            await session.rollback()

            plan = await session.get(RatePlan, "kpr-standard")
            plan.margin = Decimal("2.0")
            plan.effective_rate = Decimal("8.0")
            await session.commit()
            self.assertEqual(plan.effective_rate, Decimal("8.0000"))


if __name__ == "__main__":
    unittest.main()
