from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import ApprovalLevel

logger = logging.getLogger(__name__)


def pick_level(levels: Sequence[ApprovalLevel], loan_amount: Decimal) -> Optional[ApprovalLevel]:
    """First active level (by level_order) whose amount bucket contains loan_amount."""
    for level in sorted(levels, key=lambda lv: (lv.level_order, lv.id or 0)):
        if level.is_active and level.covers(loan_amount):
            return level
    return None


async def list_levels(session: AsyncSession, active_only: bool = True) -> list[ApprovalLevel]:
    stmt = select(ApprovalLevel).order_by(ApprovalLevel.level_order, ApprovalLevel.id)
    if active_only:
        stmt = stmt.where(ApprovalLevel.is_active.is_(True))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def resolve_level(session: AsyncSession, loan_amount: Decimal) -> Optional[ApprovalLevel]:
    """
    Initial approval level for a loan amount.
    None means no level gates this amount; callers proceed without one.
    """
    level = pick_level(await list_levels(session), loan_amount)
    if level is None:
        logger.info("No approval level covers loan amount %s", loan_amount)
    return level


async def get_level(session: AsyncSession, level_id: Optional[int]) -> Optional[ApprovalLevel]:
    if level_id is None:
        return None
    return await session.get(ApprovalLevel, level_id)
