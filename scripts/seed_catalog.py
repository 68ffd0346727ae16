"""
Seed the KPR rate catalog and the approval hierarchy.
Run: python -m scripts.seed_catalog (from the project root).
"""
import asyncio
import os
import sys
from datetime import date
from decimal import Decimal

# Add parent so we can import from the project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from database import AsyncSessionLocal, init_db
from models import ApprovalLevel, RatePlan
from models.enums import CustomerSegment, PropertyTypeFilter, RateType


RATE_PLANS_DATA = [
    {
        "id": "kpr-fix-rumah",
        "name": "KPR Fixed Rumah",
        "rate_type": RateType.FIXED,
        "property_type": PropertyTypeFilter.RUMAH,
        "base_rate": Decimal("6.0"),
        "margin": Decimal("1.5"),
        "min_loan_amount": Decimal("100000000"),
        "max_loan_amount": Decimal("5000000000"),
        "min_term_years": 5,
        "max_term_years": 20,
        "max_ltv_ratio": Decimal("0.9"),
        "min_income": Decimal("5000000"),
        "max_age": 55,
        "min_down_payment_percent": Decimal("10"),
        "admin_fee": Decimal("1500000"),
        "appraisal_fee": Decimal("750000"),
        "effective_date": date(2024, 1, 1),
    },
    {
        "id": "kpr-float-all",
        "name": "KPR Floating",
        "rate_type": RateType.FLOATING,
        "base_rate": Decimal("8.5"),
        "margin": Decimal("1.0"),
        "min_loan_amount": Decimal("50000000"),
        "max_loan_amount": Decimal("10000000000"),
        "min_term_years": 1,
        "max_term_years": 30,
        "max_ltv_ratio": Decimal("0.85"),
        "min_income": Decimal("3000000"),
        "max_age": 65,
        "effective_date": date(2024, 1, 1),
    },
    {
        "id": "kpr-pegawai-promo",
        "name": "KPR Karyawan Promo",
        "rate_type": RateType.MIXED,
        "customer_segment": CustomerSegment.EMPLOYEE,
        "base_rate": Decimal("5.25"),
        "margin": Decimal("1.5"),
        "min_loan_amount": Decimal("100000000"),
        "max_loan_amount": Decimal("2000000000"),
        "min_term_years": 5,
        "max_term_years": 25,
        "max_ltv_ratio": Decimal("0.9"),
        "min_income": Decimal("7500000"),
        "max_age": 55,
        "is_promotional": True,
        "promo_description": "Fixed 3 tahun pertama untuk karyawan",
        "promo_start_date": date(2024, 1, 1),
        "promo_end_date": date(2030, 12, 31),
        "effective_date": date(2024, 1, 1),
    },
    {
        "id": "kpr-apartemen",
        "name": "KPR Apartemen",
        "property_type": PropertyTypeFilter.APARTEMEN,
        "base_rate": Decimal("7.0"),
        "margin": Decimal("1.75"),
        "min_loan_amount": Decimal("150000000"),
        "max_loan_amount": Decimal("3000000000"),
        "min_term_years": 5,
        "max_term_years": 20,
        "max_ltv_ratio": Decimal("0.8"),
        "min_income": Decimal("8000000"),
        "effective_date": date(2024, 1, 1),
    },
]

APPROVAL_LEVELS_DATA = [
    {
        "level_name": "Branch Officer",
        "level_order": 1,
        "role_required": "LOAN_OFFICER",
        "min_loan_amount": Decimal("0"),
        "max_loan_amount": Decimal("500000000"),
        "can_skip": True,
        "timeout_hours": 48,
    },
    {
        "level_name": "Branch Manager",
        "level_order": 2,
        "role_required": "BRANCH_MANAGER",
        "min_loan_amount": Decimal("500000000.01"),
        "max_loan_amount": Decimal("2000000000"),
        "timeout_hours": 72,
    },
    {
        "level_name": "Regional Credit Committee",
        "level_order": 3,
        "role_required": "CREDIT_COMMITTEE",
        "min_loan_amount": Decimal("2000000000.01"),
        "max_loan_amount": None,
        "timeout_hours": 120,
    },
]


async def seed():
    await init_db()
    async with AsyncSessionLocal() as session:
        for data in RATE_PLANS_DATA:
            if await session.get(RatePlan, data["id"]):
                print(f"Rate plan {data['id']} already exists, skipping")
                continue
            session.add(RatePlan(**data))
            print(f"Seeded rate plan: {data['name']}")
        for data in APPROVAL_LEVELS_DATA:
            existing = await session.execute(
                select(ApprovalLevel).where(ApprovalLevel.level_order == data["level_order"])
            )
            if existing.scalar_one_or_none():
                print(f"Approval level {data['level_order']} already exists, skipping")
                continue
            session.add(ApprovalLevel(**data))
            print(f"Seeded approval level: {data['level_name']}")
        await session.commit()
    print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(seed())
