"""
Records consumed from the external user directory and property catalog.
Only the fields the origination engine reads are modelled.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import Field

from models.enums import PropertyStatus, PropertyType, UserStatus
from schemas.base import CamelModel


class UserProfileRecord(CamelModel):
    occupation: Optional[str] = None
    monthly_income: Optional[Decimal] = None
    birth_date: Optional[date] = None


class UserRecord(CamelModel):
    id: int
    status: UserStatus
    profile: Optional[UserProfileRecord] = None


class PropertyRecord(CamelModel):
    id: int
    status: PropertyStatus
    is_kpr_eligible: bool
    price: Decimal = Field(..., gt=0)
    min_down_payment_percent: Decimal = Field(..., ge=0, le=100)
    max_loan_term_years: int = Field(..., gt=0)
    property_type: PropertyType
