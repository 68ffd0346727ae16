"""
Shared fixtures for the service and API tests: a throwaway SQLite database per test case,
a seeded catalog and in-memory collaborators.
"""
import tempfile
import unittest
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path

from sqlalchemy import func, select

from database import build_engine, build_sessionmaker, init_db
from models import ApprovalLevel, LoanApplication, RatePlan
from models.enums import ApplicationPurpose, PropertyStatus, PropertyType, UserStatus
from schemas.application import ApplicationSubmit
from schemas.external import PropertyRecord, UserProfileRecord, UserRecord
from services.collaborators import InMemoryPropertyCatalog, InMemoryUserDirectory, LoggingNotificationDispatcher
from services.submission import submit_application

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


def make_rate_plan(**overrides) -> RatePlan:
    data = {
        "id": "kpr-standard",
        "name": "KPR Standard",
        "base_rate": Decimal("6.0"),
        "margin": Decimal("1.5"),
        "min_loan_amount": Decimal("100000000"),
        "max_loan_amount": Decimal("5000000000"),
        "min_term_years": 5,
        "max_term_years": 20,
        "max_ltv_ratio": Decimal("0.9"),
        "min_income": Decimal("5000000"),
        "effective_date": date(2024, 1, 1),
    }
    data.update(overrides)
    return RatePlan(**data)


def make_level(**overrides) -> ApprovalLevel:
    data = {
        "level_name": "Branch Officer",
        "level_order": 1,
        "role_required": "LOAN_OFFICER",
        "min_loan_amount": Decimal("0"),
        "max_loan_amount": Decimal("500000000"),
        "can_skip": True,
        "timeout_hours": 48,
    }
    data.update(overrides)
    return ApprovalLevel(**data)


def make_user(user_id: int = 1, status: UserStatus = UserStatus.ACTIVE, **profile) -> UserRecord:
    profile_data = {
        "occupation": "Karyawan swasta",
        "monthly_income": Decimal("15000000"),
        "birth_date": date(1990, 5, 17),
    }
    profile_data.update(profile)
    return UserRecord(id=user_id, status=status, profile=UserProfileRecord(**profile_data))


def make_property(property_id: int = 10, **overrides) -> PropertyRecord:
    data = {
        "id": property_id,
        "status": PropertyStatus.AVAILABLE,
        "is_kpr_eligible": True,
        "price": Decimal("600000000"),
        "min_down_payment_percent": Decimal("20"),
        "max_loan_term_years": 20,
        "property_type": PropertyType.RUMAH,
    }
    data.update(overrides)
    return PropertyRecord(**data)


def make_request(user_id: int = 1, property_id: int = 10, **overrides) -> ApplicationSubmit:
    data = {
        "user_id": user_id,
        "property_id": property_id,
        "down_payment": Decimal("150000000"),
        "loan_term_years": 15,
    }
    data.update(overrides)
    return ApplicationSubmit(**data)


def make_application(application_id: str, number: str, **overrides) -> LoanApplication:
    """Bare application row for tests that bypass submission."""
    data = {
        "id": application_id,
        "application_number": number,
        "user_id": 900,
        "property_id": 900,
        "rate_plan_id": "kpr-standard",
        "property_type": PropertyType.RUMAH,
        "property_value": Decimal("600000000"),
        "loan_amount": Decimal("450000000"),
        "down_payment": Decimal("150000000"),
        "loan_term_years": 15,
        "interest_rate": Decimal("7.5"),
        "monthly_installment": Decimal("4171555.62"),
        "ltv_ratio": Decimal("0.75"),
        "purpose": ApplicationPurpose.PRIMARY_RESIDENCE,
        "submitted_at": NOW,
    }
    data.update(overrides)
    return LoanApplication(**data)


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    """Fresh file-backed SQLite database per test, so separate sessions really run concurrently."""

    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.engine = build_engine(f"sqlite+aiosqlite:///{Path(self._tmp.name) / 'test.db'}")
        await init_db(self.engine)
        self.sessionmaker = build_sessionmaker(self.engine)

    async def asyncTearDown(self):
        await self.engine.dispose()
        self._tmp.cleanup()

    async def seed_catalog(self, plans=None, levels=None):
        async with self.sessionmaker() as session:
            session.add_all(plans if plans is not None else [make_rate_plan()])
            session.add_all(levels if levels is not None else [make_level()])
            await session.commit()

    async def count(self, model) -> int:
        async with self.sessionmaker() as session:
            return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class SubmissionFixture(DatabaseTestCase):
    """Catalog plus one eligible applicant and one 600M RUMAH property."""

    async def asyncSetUp(self):
        await super().asyncSetUp()
        await self.seed_catalog()
        self.users = InMemoryUserDirectory([make_user()])
        self.properties = InMemoryPropertyCatalog([make_property()])
        self.notifier = LoggingNotificationDispatcher()

    async def submit(self, request=None, now=NOW):
        async with self.sessionmaker() as session:
            return await submit_application(
                session, request or make_request(), self.users, self.properties, self.notifier, now=now
            )
