"""
Per-year application number sequence: KPR-<year>-<6-digit counter>.
The counter row is advanced with a single atomic UPDATE ... RETURNING inside the caller's
transaction, so concurrent submissions serialize on the row and a rolled-back submission
gives its number back.
"""
from __future__ import annotations

import logging
import re

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from models import ApplicationNumberSequence, LoanApplication

logger = logging.getLogger(__name__)

PREFIX = "KPR"
_NUMBER_RE = re.compile(rf"^{PREFIX}-(\d{{4}})-(\d{{6}})$")


def format_application_number(year: int, sequence: int) -> str:
    return f"{PREFIX}-{year:04d}-{sequence:06d}"


def parse_application_number(number: str) -> tuple[int, int]:
    match = _NUMBER_RE.match(number)
    if not match:
        raise ValueError(f"Not a KPR application number: {number!r}")
    return int(match.group(1)), int(match.group(2))


def _insert_for(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Application number sequence not supported on {dialect}")


async def _ensure_counter(session: AsyncSession, year: int) -> None:
    insert = _insert_for(session)
    stmt = (
        insert(ApplicationNumberSequence)
        .values(year=year, last_value=0)
        .on_conflict_do_nothing(index_elements=["year"])
    )
    await session.execute(stmt)


async def _highest_stored(session: AsyncSession, year: int) -> int:
    result = await session.execute(
        select(func.max(LoanApplication.application_number)).where(
            LoanApplication.application_number.like(f"{PREFIX}-{year:04d}-%")
        )
    )
    highest = result.scalar_one_or_none()
    return parse_application_number(highest)[1] if highest else 0


async def next_application_number(session: AsyncSession, year: int, *, resync: bool = False) -> str:
    """
    Reserve the next number for `year`.
    resync=True first lifts the counter past the highest number already stored, for recovery
    after a unique-constraint collision.
    """
    await _ensure_counter(session, year)
    if resync:
        highest = await _highest_stored(session, year)
        await session.execute(
            update(ApplicationNumberSequence)
            .where(ApplicationNumberSequence.year == year, ApplicationNumberSequence.last_value < highest)
            .values(last_value=highest)
            .execution_options(synchronize_session=False)
        )
    result = await session.execute(
        update(ApplicationNumberSequence)
        .where(ApplicationNumberSequence.year == year)
        .values(last_value=ApplicationNumberSequence.last_value + 1)
        .returning(ApplicationNumberSequence.last_value)
        .execution_options(synchronize_session=False)
    )
    value = result.scalar_one()
    number = format_application_number(year, value)
    logger.debug("Reserved application number %s", number)
    return number
