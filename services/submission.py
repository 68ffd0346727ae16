"""
KPR application submission.
Validates the applicant and property, prices the loan against the rate catalog, reserves an
application number and persists the application with its first workflow stage as one unit of work.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models import ApprovalWorkflow, LoanApplication
from models.enums import ApplicationStatus, PriorityLevel, UserStatus, WorkflowStage, WorkflowStatus
from models.types import utcnow
from schemas.application import ApplicationSubmit, ApplicationSummary, FinancialTerms, RepaymentSchedule
from schemas.external import PropertyRecord, UserProfileRecord, UserRecord
from services.amortization import amortization_schedule, ltv_ratio, monthly_installment
from services.application_numbers import next_application_number
from services.approval_levels import resolve_level
from services.audit import record_audit
from services.collaborators import NotificationDispatcher, PropertyCatalog, UserDirectory, safe_notify
from services.eligibility import validate_submission
from services.errors import (
    ApplicationNotFound,
    DuplicatePendingApplication,
    InvalidParameters,
    LoanAmountMismatch,
    PropertyNotFound,
    UserNotEligible,
    UserNotFound,
    UserSuspended,
)
from services.rate_selection import age_on, customer_segment_for, property_type_filter, select_best_rate

logger = logging.getLogger(__name__)

_ELIGIBLE_USER_STATUSES = (UserStatus.ACTIVE, UserStatus.PENDING_VERIFICATION)
_OPEN_INDEX = "uq_loan_applications_open_per_property"


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


async def _load_user(users: UserDirectory, user_id: int) -> UserRecord:
    user = await users.get_user(user_id)
    if user is None:
        raise UserNotFound(f"User {user_id} not found")
    if user.status == UserStatus.SUSPENDED:
        raise UserSuspended(f"User {user_id} is suspended")
    if user.status not in _ELIGIBLE_USER_STATUSES:
        raise UserNotEligible(f"User {user_id} is not eligible for KPR application (status {user.status.value})")
    return user


async def _load_property(properties: PropertyCatalog, property_id: int) -> PropertyRecord:
    prop = await properties.get_property(property_id)
    if prop is None:
        raise PropertyNotFound(f"Property {property_id} not found")
    return prop


async def has_open_application(session: AsyncSession, user_id: int, property_id: int) -> bool:
    result = await session.execute(
        select(LoanApplication.id)
        .where(
            LoanApplication.user_id == user_id,
            LoanApplication.property_id == property_id,
            LoanApplication.status.not_in(list(ApplicationStatus.terminal())),
        )
        .limit(1)
    )
    return result.first() is not None


def _violated(error: IntegrityError, *markers: str) -> bool:
    text = str(error.orig).lower()
    return any(m.lower() in text for m in markers)


async def price_application(
    session: AsyncSession, user: UserRecord, prop: PropertyRecord, request: ApplicationSubmit, as_of: datetime
) -> FinancialTerms:
    loan_amount = prop.price - request.down_payment
    if loan_amount <= 0:
        raise InvalidParameters("Down payment must be less than the property price")
    if request.loan_amount is not None and request.loan_amount != loan_amount:
        raise LoanAmountMismatch(
            f"Loan amount {request.loan_amount} does not equal property price minus down payment ({loan_amount})"
        )

    profile = user.profile or UserProfileRecord()
    plan = await select_best_rate(
        session,
        property_type_filter(prop.property_type),
        loan_amount,
        request.loan_term_years,
        customer_segment_for(profile.occupation),
        profile.monthly_income,
        as_of.date(),
        age=age_on(profile.birth_date, as_of.date()),
        property_value=prop.price,
    )
    installment = monthly_installment(
        loan_amount, plan.effective_rate, request.loan_term_years, settings.monthly_rate_scale
    )
    return FinancialTerms(
        property_value=prop.price,
        down_payment=request.down_payment,
        loan_amount=loan_amount,
        loan_term_years=request.loan_term_years,
        interest_rate=plan.effective_rate,
        monthly_installment=installment,
        ltv_ratio=ltv_ratio(loan_amount, prop.price),
        rate_plan_id=plan.id,
    )


def _stage_row(
    application_id: str,
    position: int,
    stage: WorkflowStage,
    level_id: Optional[int],
    timeout_hours: int,
    now: datetime,
) -> ApprovalWorkflow:
    return ApprovalWorkflow(
        id=_new_id("wf"),
        application_id=application_id,
        approval_level_id=level_id,
        position=position,
        stage=stage,
        status=WorkflowStatus.PENDING,
        priority=PriorityLevel.NORMAL,
        due_date=now + timedelta(hours=timeout_hours),
    )


async def submit_application(
    session: AsyncSession,
    request: ApplicationSubmit,
    users: UserDirectory,
    properties: PropertyCatalog,
    notifier: Optional[NotificationDispatcher] = None,
    now: Optional[datetime] = None,
) -> ApplicationSummary:
    """
    Submit a KPR application. Commits on success; any failure leaves nothing behind.
    The application number is reserved inside the same transaction, so a failed submission
    does not consume one.
    """
    now = now or utcnow()
    user = await _load_user(users, request.user_id)
    prop = await _load_property(properties, request.property_id)
    validate_submission(prop, request.down_payment, request.loan_term_years)

    if await has_open_application(session, user.id, prop.id):
        raise DuplicatePendingApplication(
            f"User {user.id} already has an application in progress for property {prop.id}"
        )

    terms = await price_application(session, user, prop, request, now)
    level = await resolve_level(session, terms.loan_amount)
    # Plain values only from here on: a rollback expires every loaded instance
    level_id = level.id if level is not None else None
    timeout_hours = level.timeout_hours if level is not None else settings.default_workflow_timeout_hours

    for attempt in range(2):
        application_id = _new_id("app")
        number = await next_application_number(session, now.year, resync=attempt > 0)
        application = LoanApplication(
            id=application_id,
            application_number=number,
            user_id=user.id,
            property_id=prop.id,
            property_type=prop.property_type,
            purpose=request.purpose,
            status=ApplicationStatus.SUBMITTED,
            current_approval_level=level_id,
            submitted_at=now,
            **terms.model_dump(),
        )
        workflow = _stage_row(application_id, 1, WorkflowStage.DOCUMENT_VERIFICATION, level_id, timeout_hours, now)
        session.add_all([application, workflow])
        record_audit(
            session,
            application_id=application_id,
            workflow_id=workflow.id,
            action="submit",
            actor_id=user.id,
            to_status=ApplicationStatus.SUBMITTED,
            note=number,
        )
        try:
            await session.commit()
            break
        except IntegrityError as e:
            await session.rollback()
            if _violated(e, _OPEN_INDEX, "loan_applications.user_id"):
                raise DuplicatePendingApplication(
                    f"User {user.id} already has an application in progress for property {prop.id}"
                ) from e
            if attempt or not _violated(e, "application_number"):
                raise
            logger.warning("Application number %s collided; resyncing the %d counter", number, now.year)
    logger.info(
        "Submitted application %s (%s) user=%s property=%s loan=%s rate=%s installment=%s",
        application_id,
        number,
        user.id,
        prop.id,
        terms.loan_amount,
        terms.interest_rate,
        terms.monthly_installment,
    )
    await safe_notify(
        notifier,
        "application.submitted",
        {
            "applicationId": application_id,
            "applicationNumber": number,
            "userId": user.id,
            "propertyId": prop.id,
            "loanAmount": str(terms.loan_amount),
            "monthlyInstallment": str(terms.monthly_installment),
        },
    )
    return ApplicationSummary(
        application_id=application_id,
        application_number=number,
        status=ApplicationStatus.SUBMITTED,
        monthly_installment=terms.monthly_installment,
        interest_rate=terms.interest_rate,
    )


async def get_application(session: AsyncSession, application_id: str) -> LoanApplication:
    application = await session.get(LoanApplication, application_id)
    if application is None:
        raise ApplicationNotFound(f"Application {application_id} not found")
    return application


async def list_applications(session: AsyncSession, user_id: Optional[int] = None) -> list[LoanApplication]:
    stmt = select(LoanApplication).order_by(LoanApplication.created_at.desc(), LoanApplication.id)
    if user_id is not None:
        stmt = stmt.where(LoanApplication.user_id == user_id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def application_schedule(session: AsyncSession, application_id: str) -> RepaymentSchedule:
    """Repayment table recomputed from the application's frozen terms."""
    application = await get_application(session, application_id)
    return amortization_schedule(
        application.loan_amount,
        application.interest_rate,
        application.loan_term_years,
        settings.monthly_rate_scale,
    )

