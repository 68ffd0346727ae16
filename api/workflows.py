from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_notifier
from database import get_db
from models.enums import WorkflowStage, WorkflowStatus
from schemas.workflow import (
    WorkflowAction,
    WorkflowApprove,
    WorkflowAssign,
    WorkflowBulkCreate,
    WorkflowBulkDelete,
    WorkflowCounts,
    WorkflowCreate,
    WorkflowEscalate,
    WorkflowReject,
    WorkflowResponse,
)
from services import workflow as wf
from services.collaborators import NotificationDispatcher

router = APIRouter(prefix="/api/workflows", tags=["workflows"])


def _many(rows) -> list[WorkflowResponse]:
    return [WorkflowResponse.model_validate(r) for r in rows]


@router.get("", response_model=list[WorkflowResponse])
async def list_workflows(
    assignee: Optional[int] = None,
    status: Optional[WorkflowStatus] = None,
    stage: Optional[WorkflowStage] = None,
    db: AsyncSession = Depends(get_db),
):
    return _many(await wf.list_workflows(db, assignee=assignee, status=status, stage=stage))


@router.get("/overdue", response_model=list[WorkflowResponse])
async def overdue(db: AsyncSession = Depends(get_db)):
    return _many(await wf.overdue_workflows(db))


@router.get("/needing-escalation", response_model=list[WorkflowResponse])
async def needing_escalation(
    grace_hours: Optional[int] = Query(None, alias="graceHours", ge=0), db: AsyncSession = Depends(get_db)
):
    return _many(await wf.workflows_needing_escalation(db, grace_hours=grace_hours))


@router.get("/counts", response_model=WorkflowCounts)
async def counts(status: Optional[WorkflowStatus] = None, db: AsyncSession = Depends(get_db)):
    return await wf.workflow_counts(db, status)


@router.post("", status_code=201, response_model=WorkflowResponse)
async def create(body: WorkflowCreate, db: AsyncSession = Depends(get_db)):
    return WorkflowResponse.model_validate(await wf.create_workflow(db, body))


@router.post("/bulk", status_code=201, response_model=list[WorkflowResponse])
async def bulk_create(body: WorkflowBulkCreate, db: AsyncSession = Depends(get_db)):
    return _many(await wf.bulk_create_workflows(db, body.items))


@router.post("/bulk-delete")
async def bulk_delete(body: WorkflowBulkDelete, db: AsyncSession = Depends(get_db)):
    return {"deleted": await wf.bulk_delete_workflows(db, body.ids)}


@router.get("/{workflow_id}", response_model=WorkflowResponse)
async def get_one(workflow_id: str, db: AsyncSession = Depends(get_db)):
    return WorkflowResponse.model_validate(await wf.get_workflow(db, workflow_id))


@router.delete("/{workflow_id}", status_code=204)
async def delete(workflow_id: str, db: AsyncSession = Depends(get_db)):
    await wf.delete_workflow(db, workflow_id)
    return Response(status_code=204)


@router.post("/{workflow_id}/start", response_model=WorkflowResponse)
async def start(workflow_id: str, body: WorkflowAction, db: AsyncSession = Depends(get_db)):
    return WorkflowResponse.model_validate(await wf.start_workflow(db, workflow_id, body.actor_id))


@router.post("/{workflow_id}/approve", response_model=WorkflowResponse)
async def approve(
    workflow_id: str,
    body: WorkflowApprove,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    row = await wf.approve_workflow(db, workflow_id, body.actor_id, body.notes, notifier)
    return WorkflowResponse.model_validate(row)


@router.post("/{workflow_id}/reject", response_model=WorkflowResponse)
async def reject(
    workflow_id: str,
    body: WorkflowReject,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    row = await wf.reject_workflow(db, workflow_id, body.actor_id, body.reason, notifier)
    return WorkflowResponse.model_validate(row)


@router.post("/{workflow_id}/escalate", response_model=WorkflowResponse)
async def escalate(
    workflow_id: str,
    body: WorkflowEscalate,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    row = await wf.escalate_workflow(db, workflow_id, body.actor_id, body.to_user_id, notifier)
    return WorkflowResponse.model_validate(row)


@router.post("/{workflow_id}/skip", response_model=WorkflowResponse)
async def skip(
    workflow_id: str,
    body: WorkflowApprove,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    row = await wf.skip_workflow(db, workflow_id, body.actor_id, body.notes, notifier)
    return WorkflowResponse.model_validate(row)


@router.post("/{workflow_id}/assign", response_model=WorkflowResponse)
async def assign(workflow_id: str, body: WorkflowAssign, db: AsyncSession = Depends(get_db)):
    return WorkflowResponse.model_validate(await wf.assign_workflow(db, workflow_id, body.actor_id, body.user_id))
