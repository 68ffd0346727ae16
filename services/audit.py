"""Workflow audit trail. Rows are written in the caller's transaction so they commit or roll back with the change."""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import WorkflowAuditLog

logger = logging.getLogger(__name__)


def _status(value) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "value", value)


def record_audit(
    session: AsyncSession,
    *,
    application_id: str,
    action: str,
    actor_id: Optional[int] = None,
    workflow_id: Optional[str] = None,
    from_status=None,
    to_status=None,
    note: Optional[str] = None,
) -> WorkflowAuditLog:
    entry = WorkflowAuditLog(
        application_id=application_id,
        workflow_id=workflow_id,
        action=action,
        actor_id=actor_id,
        from_status=_status(from_status),
        to_status=_status(to_status),
        note=note,
    )
    session.add(entry)
    logger.info(
        "audit action=%s application=%s workflow=%s actor=%s %s -> %s",
        action,
        application_id,
        workflow_id,
        actor_id,
        entry.from_status,
        entry.to_status,
    )
    return entry


async def list_audit(session: AsyncSession, application_id: str) -> list[WorkflowAuditLog]:
    result = await session.execute(
        select(WorkflowAuditLog)
        .where(WorkflowAuditLog.application_id == application_id)
        .order_by(WorkflowAuditLog.created_at, WorkflowAuditLog.id)
    )
    return list(result.scalars().all())
