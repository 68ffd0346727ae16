from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_notifier, get_property_catalog, get_user_directory
from database import get_db
from schemas.application import (
    ApplicationCancel,
    ApplicationResponse,
    ApplicationSubmit,
    ApplicationSummary,
    RepaymentSchedule,
)
from schemas.workflow import AuditLogResponse, WorkflowResponse
from services.audit import list_audit
from services.collaborators import NotificationDispatcher, PropertyCatalog, UserDirectory
from services.submission import (
    application_schedule,
    get_application,
    list_applications,
    submit_application,
)
from services.workflow import cancel_application, workflows_for_application

router = APIRouter(prefix="/api/applications", tags=["applications"])


@router.post("", status_code=201, response_model=ApplicationSummary)
async def create_application(
    body: ApplicationSubmit,
    db: AsyncSession = Depends(get_db),
    users: UserDirectory = Depends(get_user_directory),
    properties: PropertyCatalog = Depends(get_property_catalog),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    return await submit_application(db, body, users, properties, notifier)


@router.get("", response_model=list[ApplicationResponse])
async def list_all(user_id: Optional[int] = Query(None, alias="userId"), db: AsyncSession = Depends(get_db)):
    apps = await list_applications(db, user_id)
    return [ApplicationResponse.model_validate(a) for a in apps]


@router.get("/{application_id}", response_model=ApplicationResponse)
async def get_one(application_id: str, db: AsyncSession = Depends(get_db)):
    return ApplicationResponse.model_validate(await get_application(db, application_id))


@router.get("/{application_id}/schedule", response_model=RepaymentSchedule)
async def get_schedule(application_id: str, db: AsyncSession = Depends(get_db)):
    return await application_schedule(db, application_id)


@router.get("/{application_id}/workflows", response_model=list[WorkflowResponse])
async def list_workflows(application_id: str, db: AsyncSession = Depends(get_db)):
    rows = await workflows_for_application(db, application_id)
    return [WorkflowResponse.model_validate(w) for w in rows]


@router.get("/{application_id}/audit", response_model=list[AuditLogResponse])
async def get_audit(application_id: str, db: AsyncSession = Depends(get_db)):
    await get_application(db, application_id)
    return [AuditLogResponse.model_validate(e) for e in await list_audit(db, application_id)]


@router.post("/{application_id}/cancel", response_model=ApplicationResponse)
async def cancel(application_id: str, body: Optional[ApplicationCancel] = None, db: AsyncSession = Depends(get_db)):
    body = body or ApplicationCancel()
    application = await cancel_application(db, application_id, body.actor_id, body.reason)
    return ApplicationResponse.model_validate(application)
