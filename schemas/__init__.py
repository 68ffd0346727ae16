from schemas.application import (
    ApplicationCancel,
    ApplicationResponse,
    ApplicationSubmit,
    ApplicationSummary,
    FinancialTerms,
    RepaymentSchedule,
    ScheduleRow,
)
from schemas.external import PropertyRecord, UserProfileRecord, UserRecord
from schemas.rate_plan import (
    ApprovalLevelResponse,
    CriterionResultSchema,
    RateMatchRequest,
    RatePlanMatchSchema,
    RatePlanResponse,
    SimulationRequest,
    SimulationResponse,
)
from schemas.workflow import (
    AuditLogResponse,
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

__all__ = [
    "ApplicationCancel",
    "ApplicationResponse",
    "ApplicationSubmit",
    "ApplicationSummary",
    "FinancialTerms",
    "RepaymentSchedule",
    "ScheduleRow",
    "PropertyRecord",
    "UserProfileRecord",
    "UserRecord",
    "ApprovalLevelResponse",
    "CriterionResultSchema",
    "RateMatchRequest",
    "RatePlanMatchSchema",
    "RatePlanResponse",
    "SimulationRequest",
    "SimulationResponse",
    "AuditLogResponse",
    "WorkflowAction",
    "WorkflowApprove",
    "WorkflowAssign",
    "WorkflowBulkCreate",
    "WorkflowBulkDelete",
    "WorkflowCounts",
    "WorkflowCreate",
    "WorkflowEscalate",
    "WorkflowReject",
    "WorkflowResponse",
]
