from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from models.enums import PriorityLevel, WorkflowStage, WorkflowStatus
from schemas.base import CamelModel


class WorkflowResponse(CamelModel):
    id: str
    application_id: str
    approval_level_id: Optional[int] = None
    position: int
    stage: WorkflowStage
    status: WorkflowStatus
    priority: PriorityLevel
    assigned_to: Optional[int] = None
    escalated_to: Optional[int] = None
    escalated_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    comments: Optional[str] = None
    decision_reason: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime


class WorkflowCreate(CamelModel):
    application_id: str
    stage: WorkflowStage
    approval_level_id: Optional[int] = None
    priority: PriorityLevel = PriorityLevel.NORMAL
    assigned_to: Optional[int] = None
    due_date: Optional[datetime] = None


class WorkflowBulkCreate(CamelModel):
    items: list[WorkflowCreate] = Field(..., min_length=1)


class WorkflowBulkDelete(CamelModel):
    ids: list[str] = Field(..., min_length=1)


class WorkflowAction(CamelModel):
    """Body shared by start/skip; identifies the staff member acting."""

    actor_id: int


class WorkflowApprove(WorkflowAction):
    notes: Optional[str] = None


class WorkflowReject(WorkflowAction):
    reason: str = Field(..., min_length=1)


class WorkflowEscalate(WorkflowAction):
    to_user_id: int


class WorkflowAssign(WorkflowAction):
    user_id: int


class WorkflowCounts(CamelModel):
    by_status: dict[str, int] = Field(default_factory=dict)
    by_assignee: dict[str, int] = Field(default_factory=dict)


class AuditLogResponse(CamelModel):
    id: int
    application_id: str
    workflow_id: Optional[str] = None
    action: str
    actor_id: Optional[int] = None
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime
