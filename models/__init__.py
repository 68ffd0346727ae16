from models.application import ApplicationNumberSequence, LoanApplication
from models.approval_level import ApprovalLevel
from models.rate_plan import RatePlan
from models.workflow import ApprovalWorkflow, WorkflowAuditLog

__all__ = [
    "ApplicationNumberSequence",
    "ApprovalLevel",
    "ApprovalWorkflow",
    "LoanApplication",
    "RatePlan",
    "WorkflowAuditLog",
]
