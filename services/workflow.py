"""
Approval workflow state machine.

Each stage of an application is its own ApprovalWorkflow row; approving (or skipping) a stage
closes its row and opens a new one for the next stage, so the rows of an application, ordered by
position, are its full decision history. Every command runs as one unit of work: the row change,
the application status change and the audit entry commit together. Notifications go out only after
the commit and never fail the command.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from config import settings
from models import ApprovalLevel, ApprovalWorkflow, LoanApplication
from models.enums import ApplicationStatus, PriorityLevel, WorkflowStage, WorkflowStatus
from models.types import utcnow
from schemas.workflow import WorkflowCounts, WorkflowCreate
from services.approval_levels import get_level
from services.audit import record_audit
from services.collaborators import NotificationDispatcher, safe_notify
from services.errors import (
    AlreadyCompleted,
    ApplicationNotFound,
    InvalidTransition,
    SkipNotAllowed,
    WorkflowConflict,
    WorkflowNotFound,
)

logger = logging.getLogger(__name__)

STAGE_ORDER: tuple[WorkflowStage, ...] = (
    WorkflowStage.DOCUMENT_VERIFICATION,
    WorkflowStage.PROPERTY_APPRAISAL,
    WorkflowStage.CREDIT_ANALYSIS,
    WorkflowStage.MANAGER_APPROVAL,
    WorkflowStage.FINAL_APPROVAL,
)

# Application status while a stage is open
STAGE_APPLICATION_STATUS: dict[WorkflowStage, ApplicationStatus] = {
    WorkflowStage.DOCUMENT_VERIFICATION: ApplicationStatus.DOCUMENT_VERIFICATION,
    WorkflowStage.PROPERTY_APPRAISAL: ApplicationStatus.PROPERTY_APPRAISAL,
    WorkflowStage.CREDIT_ANALYSIS: ApplicationStatus.CREDIT_ANALYSIS,
    WorkflowStage.MANAGER_APPROVAL: ApplicationStatus.APPROVAL_PENDING,
    WorkflowStage.FINAL_APPROVAL: ApplicationStatus.FINAL_APPROVAL,
}

_STARTABLE = (WorkflowStatus.PENDING, WorkflowStatus.ESCALATED)
_OVERDUE_STATUSES = [WorkflowStatus.PENDING, WorkflowStatus.IN_PROGRESS]


def next_stage(stage: WorkflowStage) -> Optional[WorkflowStage]:
    index = STAGE_ORDER.index(stage)
    return STAGE_ORDER[index + 1] if index + 1 < len(STAGE_ORDER) else None


def _new_workflow_id() -> str:
    return f"wf-{uuid.uuid4().hex[:12]}"


def _ensure_open(workflow: ApprovalWorkflow) -> None:
    if workflow.status.is_terminal:
        raise AlreadyCompleted(f"Workflow {workflow.id} is already {workflow.status.value}")


async def _commit(session: AsyncSession, workflow_id: Optional[str] = None) -> None:
    try:
        await session.commit()
    except StaleDataError as e:
        await session.rollback()
        raise WorkflowConflict(f"Workflow {workflow_id or ''} was modified concurrently; reload and retry") from e


async def get_workflow(session: AsyncSession, workflow_id: str) -> ApprovalWorkflow:
    workflow = await session.get(ApprovalWorkflow, workflow_id)
    if workflow is None:
        raise WorkflowNotFound(f"Workflow {workflow_id} not found")
    return workflow


async def _get_application(session: AsyncSession, application_id: str) -> LoanApplication:
    application = await session.get(LoanApplication, application_id)
    if application is None:
        raise ApplicationNotFound(f"Application {application_id} not found")
    return application


async def _open_application(session: AsyncSession, workflow: ApprovalWorkflow) -> LoanApplication:
    application = await _get_application(session, workflow.application_id)
    if application.status.is_terminal:
        raise InvalidTransition(
            f"Application {application.id} is already {application.status.value}; its workflows cannot change"
        )
    return application


async def _next_position(session: AsyncSession, application_id: str) -> int:
    result = await session.execute(
        select(func.max(ApprovalWorkflow.position)).where(ApprovalWorkflow.application_id == application_id)
    )
    return (result.scalar_one_or_none() or 0) + 1


async def _timeout_hours(session: AsyncSession, level_id: Optional[int]) -> int:
    level: Optional[ApprovalLevel] = await get_level(session, level_id)
    return level.timeout_hours if level is not None else settings.default_workflow_timeout_hours


async def _open_rows(
    session: AsyncSession, application_id: str, exclude: Optional[str] = None
) -> list[ApprovalWorkflow]:
    stmt = select(ApprovalWorkflow).where(
        ApprovalWorkflow.application_id == application_id,
        ApprovalWorkflow.status.in_(list(WorkflowStatus.active())),
    )
    if exclude is not None:
        stmt = stmt.where(ApprovalWorkflow.id != exclude)
    result = await session.execute(stmt.order_by(ApprovalWorkflow.position))
    return list(result.scalars().all())


async def _advance(
    session: AsyncSession,
    workflow: ApprovalWorkflow,
    application: LoanApplication,
    actor_id: int,
    now: datetime,
) -> tuple[str, dict[str, Any]]:
    """Open the stage after `workflow`, or approve the application when it was the last one."""
    following = next_stage(workflow.stage)
    previous_status = application.status
    if following is None:
        application.status = ApplicationStatus.APPROVED
        application.approved_at = now
        record_audit(
            session,
            application_id=application.id,
            workflow_id=workflow.id,
            action="application_approved",
            actor_id=actor_id,
            from_status=previous_status,
            to_status=ApplicationStatus.APPROVED,
        )
        return "application.approved", {"applicationId": application.id, "approvedBy": actor_id}

    level_id = application.current_approval_level
    row = ApprovalWorkflow(
        id=_new_workflow_id(),
        application_id=application.id,
        approval_level_id=level_id,
        position=await _next_position(session, application.id),
        stage=following,
        status=WorkflowStatus.PENDING,
        priority=workflow.priority,
        due_date=now + timedelta(hours=await _timeout_hours(session, level_id)),
    )
    session.add(row)
    application.status = STAGE_APPLICATION_STATUS[following]
    record_audit(
        session,
        application_id=application.id,
        workflow_id=row.id,
        action="stage_opened",
        actor_id=actor_id,
        from_status=previous_status,
        to_status=application.status,
        note=following.value,
    )
    return "workflow.approved", {
        "applicationId": application.id,
        "workflowId": workflow.id,
        "stage": workflow.stage.value,
        "nextStage": following.value,
        "nextWorkflowId": row.id,
        "approvedBy": actor_id,
    }


async def start_workflow(
    session: AsyncSession, workflow_id: str, actor_id: int, now: Optional[datetime] = None
) -> ApprovalWorkflow:
    now = now or utcnow()
    workflow = await get_workflow(session, workflow_id)
    _ensure_open(workflow)
    if workflow.status not in _STARTABLE:
        raise InvalidTransition(f"Workflow {workflow_id} is already {workflow.status.value}")
    application = await _open_application(session, workflow)

    previous = workflow.status
    workflow.status = WorkflowStatus.IN_PROGRESS
    workflow.started_at = now
    if workflow.assigned_to is None:
        workflow.assigned_to = actor_id
    if application.status == ApplicationStatus.SUBMITTED:
        application.status = STAGE_APPLICATION_STATUS[workflow.stage]
    record_audit(
        session,
        application_id=application.id,
        workflow_id=workflow.id,
        action="start",
        actor_id=actor_id,
        from_status=previous,
        to_status=workflow.status,
    )
    await _commit(session, workflow_id)
    return workflow


async def approve_workflow(
    session: AsyncSession,
    workflow_id: str,
    actor_id: int,
    notes: Optional[str] = None,
    notifier: Optional[NotificationDispatcher] = None,
    now: Optional[datetime] = None,
) -> ApprovalWorkflow:
    now = now or utcnow()
    workflow = await get_workflow(session, workflow_id)
    _ensure_open(workflow)
    application = await _open_application(session, workflow)

    previous = workflow.status
    workflow.status = WorkflowStatus.APPROVED
    workflow.completed_at = now
    workflow.comments = notes
    record_audit(
        session,
        application_id=application.id,
        workflow_id=workflow.id,
        action="approve",
        actor_id=actor_id,
        from_status=previous,
        to_status=workflow.status,
        note=notes,
    )
    event, payload = await _advance(session, workflow, application, actor_id, now)
    await _commit(session, workflow_id)
    logger.info("Workflow %s (%s) approved by %s", workflow_id, workflow.stage.value, actor_id)
    await safe_notify(notifier, event, payload)
    return workflow


async def skip_workflow(
    session: AsyncSession,
    workflow_id: str,
    actor_id: int,
    notes: Optional[str] = None,
    notifier: Optional[NotificationDispatcher] = None,
    now: Optional[datetime] = None,
) -> ApprovalWorkflow:
    now = now or utcnow()
    workflow = await get_workflow(session, workflow_id)
    _ensure_open(workflow)
    level = await get_level(session, workflow.approval_level_id)
    if level is None or not level.can_skip:
        raise SkipNotAllowed(f"Workflow {workflow_id} belongs to an approval level that cannot be skipped")
    application = await _open_application(session, workflow)

    previous = workflow.status
    workflow.status = WorkflowStatus.SKIPPED
    workflow.completed_at = now
    workflow.comments = notes
    record_audit(
        session,
        application_id=application.id,
        workflow_id=workflow.id,
        action="skip",
        actor_id=actor_id,
        from_status=previous,
        to_status=workflow.status,
        note=notes,
    )
    event, payload = await _advance(session, workflow, application, actor_id, now)
    await _commit(session, workflow_id)
    logger.info("Workflow %s (%s) skipped by %s", workflow_id, workflow.stage.value, actor_id)
    await safe_notify(notifier, event, payload)
    return workflow


async def reject_workflow(
    session: AsyncSession,
    workflow_id: str,
    actor_id: int,
    reason: str,
    notifier: Optional[NotificationDispatcher] = None,
    now: Optional[datetime] = None,
) -> ApprovalWorkflow:
    """Reject the stage; the application is rejected with it and its other open stages are cancelled."""
    now = now or utcnow()
    workflow = await get_workflow(session, workflow_id)
    _ensure_open(workflow)
    application = await _open_application(session, workflow)

    previous = workflow.status
    workflow.status = WorkflowStatus.REJECTED
    workflow.completed_at = now
    workflow.decision_reason = reason
    record_audit(
        session,
        application_id=application.id,
        workflow_id=workflow.id,
        action="reject",
        actor_id=actor_id,
        from_status=previous,
        to_status=workflow.status,
        note=reason,
    )

    for row in await _open_rows(session, application.id, exclude=workflow.id):
        _cancel_row(session, row, actor_id, now, "application rejected")

    previous_application = application.status
    application.status = ApplicationStatus.REJECTED
    application.rejected_at = now
    application.rejection_reason = reason
    record_audit(
        session,
        application_id=application.id,
        workflow_id=workflow.id,
        action="application_rejected",
        actor_id=actor_id,
        from_status=previous_application,
        to_status=application.status,
        note=reason,
    )
    await _commit(session, workflow_id)
    logger.info("Application %s rejected at %s by %s", application.id, workflow.stage.value, actor_id)
    await safe_notify(
        notifier,
        "application.rejected",
        {"applicationId": application.id, "workflowId": workflow.id, "rejectedBy": actor_id, "reason": reason},
    )
    return workflow


async def escalate_workflow(
    session: AsyncSession,
    workflow_id: str,
    actor_id: int,
    to_user_id: int,
    notifier: Optional[NotificationDispatcher] = None,
    now: Optional[datetime] = None,
) -> ApprovalWorkflow:
    now = now or utcnow()
    workflow = await get_workflow(session, workflow_id)
    _ensure_open(workflow)
    await _open_application(session, workflow)

    previous = workflow.status
    workflow.status = WorkflowStatus.ESCALATED
    workflow.assigned_to = to_user_id
    workflow.escalated_to = to_user_id
    workflow.escalated_at = now
    record_audit(
        session,
        application_id=workflow.application_id,
        workflow_id=workflow.id,
        action="escalate",
        actor_id=actor_id,
        from_status=previous,
        to_status=workflow.status,
        note=f"escalated to {to_user_id}",
    )
    await _commit(session, workflow_id)
    await safe_notify(
        notifier,
        "workflow.escalated",
        {
            "applicationId": workflow.application_id,
            "workflowId": workflow.id,
            "stage": workflow.stage.value,
            "escalatedBy": actor_id,
            "escalatedTo": to_user_id,
        },
    )
    return workflow


async def assign_workflow(
    session: AsyncSession, workflow_id: str, actor_id: int, user_id: int
) -> ApprovalWorkflow:
    workflow = await get_workflow(session, workflow_id)
    _ensure_open(workflow)
    previous_assignee = workflow.assigned_to
    workflow.assigned_to = user_id
    record_audit(
        session,
        application_id=workflow.application_id,
        workflow_id=workflow.id,
        action="assign",
        actor_id=actor_id,
        from_status=workflow.status,
        to_status=workflow.status,
        note=f"assignee {previous_assignee} -> {user_id}",
    )
    await _commit(session, workflow_id)
    return workflow


def _cancel_row(session: AsyncSession, row: ApprovalWorkflow, actor_id: Optional[int], now: datetime, note: str):
    previous = row.status
    row.status = WorkflowStatus.CANCELLED
    row.completed_at = now
    record_audit(
        session,
        application_id=row.application_id,
        workflow_id=row.id,
        action="cancel",
        actor_id=actor_id,
        from_status=previous,
        to_status=row.status,
        note=note,
    )


async def cancel_application(
    session: AsyncSession,
    application_id: str,
    actor_id: Optional[int] = None,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> LoanApplication:
    now = now or utcnow()
    application = await _get_application(session, application_id)
    if application.status.is_terminal:
        raise InvalidTransition(f"Application {application_id} is already {application.status.value}")

    for row in await _open_rows(session, application_id):
        _cancel_row(session, row, actor_id, now, reason or "application cancelled")

    previous = application.status
    application.status = ApplicationStatus.CANCELLED
    application.cancelled_at = now
    record_audit(
        session,
        application_id=application_id,
        action="application_cancelled",
        actor_id=actor_id,
        from_status=previous,
        to_status=application.status,
        note=reason,
    )
    await _commit(session)
    return application


async def _build_workflow(
    session: AsyncSession, data: WorkflowCreate, position: int, now: datetime
) -> ApprovalWorkflow:
    due_date = data.due_date
    if due_date is None:
        due_date = now + timedelta(hours=await _timeout_hours(session, data.approval_level_id))
    workflow = ApprovalWorkflow(
        id=_new_workflow_id(),
        application_id=data.application_id,
        approval_level_id=data.approval_level_id,
        position=position,
        stage=data.stage,
        status=WorkflowStatus.PENDING,
        priority=data.priority or PriorityLevel.NORMAL,
        assigned_to=data.assigned_to,
        due_date=due_date,
    )
    session.add(workflow)
    record_audit(
        session,
        application_id=data.application_id,
        workflow_id=workflow.id,
        action="create",
        to_status=workflow.status,
        note=data.stage.value,
    )
    return workflow


async def create_workflow(
    session: AsyncSession, data: WorkflowCreate, now: Optional[datetime] = None
) -> ApprovalWorkflow:
    return (await bulk_create_workflows(session, [data], now))[0]


async def bulk_create_workflows(
    session: AsyncSession, items: Iterable[WorkflowCreate], now: Optional[datetime] = None
) -> list[ApprovalWorkflow]:
    """Create workflow rows directly. All or nothing: an unknown application fails the whole batch."""
    now = now or utcnow()
    positions: dict[str, int] = {}
    created = []
    for data in items:
        if data.application_id not in positions:
            await _get_application(session, data.application_id)
            positions[data.application_id] = await _next_position(session, data.application_id)
        created.append(await _build_workflow(session, data, positions[data.application_id], now))
        positions[data.application_id] += 1
    await _commit(session)
    return created


async def delete_workflow(session: AsyncSession, workflow_id: str) -> None:
    await bulk_delete_workflows(session, [workflow_id])


async def bulk_delete_workflows(session: AsyncSession, workflow_ids: Iterable[str]) -> int:
    ids = list(dict.fromkeys(workflow_ids))
    result = await session.execute(select(ApprovalWorkflow).where(ApprovalWorkflow.id.in_(ids)))
    found = {w.id: w for w in result.scalars().all()}
    missing = [i for i in ids if i not in found]
    if missing:
        raise WorkflowNotFound(f"Workflow(s) not found: {', '.join(missing)}")
    for workflow in found.values():
        record_audit(
            session,
            application_id=workflow.application_id,
            workflow_id=workflow.id,
            action="delete",
            from_status=workflow.status,
        )
        await session.delete(workflow)
    await _commit(session)
    return len(found)


async def workflows_for_application(session: AsyncSession, application_id: str) -> list[ApprovalWorkflow]:
    await _get_application(session, application_id)
    result = await session.execute(
        select(ApprovalWorkflow)
        .where(ApprovalWorkflow.application_id == application_id)
        .order_by(ApprovalWorkflow.position)
    )
    return list(result.scalars().all())


async def current_workflow(session: AsyncSession, application_id: str) -> Optional[ApprovalWorkflow]:
    """The open stage of an application, or None once it has reached a final decision."""
    rows = await _open_rows(session, application_id)
    return rows[-1] if rows else None


async def list_workflows(
    session: AsyncSession,
    assignee: Optional[int] = None,
    status: Optional[WorkflowStatus] = None,
    stage: Optional[WorkflowStage] = None,
) -> list[ApprovalWorkflow]:
    stmt = select(ApprovalWorkflow)
    if assignee is not None:
        stmt = stmt.where(ApprovalWorkflow.assigned_to == assignee)
    if status is not None:
        stmt = stmt.where(ApprovalWorkflow.status == status)
    if stage is not None:
        stmt = stmt.where(ApprovalWorkflow.stage == stage)
    result = await session.execute(stmt.order_by(ApprovalWorkflow.created_at, ApprovalWorkflow.position))
    return list(result.scalars().all())


async def overdue_workflows(session: AsyncSession, now: Optional[datetime] = None) -> list[ApprovalWorkflow]:
    now = now or utcnow()
    result = await session.execute(
        select(ApprovalWorkflow)
        .where(ApprovalWorkflow.status.in_(_OVERDUE_STATUSES), ApprovalWorkflow.due_date < now)
        .order_by(ApprovalWorkflow.due_date)
    )
    return list(result.scalars().all())


async def workflows_needing_escalation(
    session: AsyncSession, now: Optional[datetime] = None, grace_hours: Optional[int] = None
) -> list[ApprovalWorkflow]:
    """Overdue past the grace period and never escalated."""
    now = now or utcnow()
    grace = settings.escalation_grace_hours if grace_hours is None else grace_hours
    result = await session.execute(
        select(ApprovalWorkflow)
        .where(
            ApprovalWorkflow.status.in_(_OVERDUE_STATUSES),
            ApprovalWorkflow.due_date < now - timedelta(hours=grace),
            ApprovalWorkflow.escalated_to.is_(None),
        )
        .order_by(ApprovalWorkflow.due_date)
    )
    return list(result.scalars().all())


async def workflow_counts(session: AsyncSession, status: Optional[WorkflowStatus] = None) -> WorkflowCounts:
    """Row counts per status, and per assignee (restricted to `status` when given)."""
    by_status = await session.execute(
        select(ApprovalWorkflow.status, func.count(ApprovalWorkflow.id)).group_by(ApprovalWorkflow.status)
    )
    assignee_stmt = (
        select(ApprovalWorkflow.assigned_to, func.count(ApprovalWorkflow.id))
        .where(ApprovalWorkflow.assigned_to.is_not(None))
        .group_by(ApprovalWorkflow.assigned_to)
    )
    if status is not None:
        assignee_stmt = assignee_stmt.where(ApprovalWorkflow.status == status)
    by_assignee = await session.execute(assignee_stmt)
    return WorkflowCounts(
        by_status={s.value: n for s, n in by_status.all()},
        by_assignee={str(a): n for a, n in by_assignee.all()},
    )
