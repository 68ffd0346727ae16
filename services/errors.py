"""
Domain errors raised by the origination engine.
Each carries the HTTP status the API layer maps it to and a stable machine code.
"""
from __future__ import annotations


class LoanEngineError(Exception):
    status_code = 400
    code = "loan_engine_error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or self.__class__.__doc__ or self.code


# 404
class NotFound(LoanEngineError):
    """Resource not found."""

    status_code = 404
    code = "not_found"


class UserNotFound(NotFound):
    """User not found."""

    code = "user_not_found"


class PropertyNotFound(NotFound):
    """Property not found."""

    code = "property_not_found"


class ApplicationNotFound(NotFound):
    """Application not found."""

    code = "application_not_found"


class WorkflowNotFound(NotFound):
    """Workflow not found."""

    code = "workflow_not_found"


class ApprovalLevelNotFound(NotFound):
    """Approval level not found."""

    code = "approval_level_not_found"


# 403
class UserSuspended(LoanEngineError):
    """User account is suspended."""

    status_code = 403
    code = "user_suspended"


class UserNotEligible(LoanEngineError):
    """User account is not eligible for KPR application."""

    status_code = 403
    code = "user_not_eligible"


# 409
class PropertyUnavailable(LoanEngineError):
    """Property is not available for purchase."""

    status_code = 409
    code = "property_unavailable"


class DuplicatePendingApplication(LoanEngineError):
    """User already has an application in progress for this property."""

    status_code = 409
    code = "duplicate_pending_application"


class AlreadyCompleted(LoanEngineError):
    """Workflow stage is already completed."""

    status_code = 409
    code = "already_completed"


class InvalidTransition(LoanEngineError):
    """Transition not allowed from the current status."""

    status_code = 409
    code = "invalid_transition"


class WorkflowConflict(LoanEngineError):
    """Workflow was modified concurrently; reload and retry."""

    status_code = 409
    code = "workflow_conflict"


# 422
class InvalidParameters(LoanEngineError):
    """Invalid loan parameters."""

    status_code = 422
    code = "invalid_parameters"


class NotKprEligible(LoanEngineError):
    """Property is not eligible for KPR financing."""

    status_code = 422
    code = "not_kpr_eligible"


class DownPaymentTooLow(LoanEngineError):
    """Down payment is below the property's minimum."""

    status_code = 422
    code = "down_payment_too_low"


class TermTooLong(LoanEngineError):
    """Loan term exceeds the property's maximum."""

    status_code = 422
    code = "term_too_long"


class NoEligibleRate(LoanEngineError):
    """No eligible KPR rate found for the specified criteria."""

    status_code = 422
    code = "no_eligible_rate"


class LoanAmountMismatch(LoanEngineError):
    """Loan amount must equal property value minus down payment."""

    status_code = 422
    code = "loan_amount_mismatch"


class SkipNotAllowed(LoanEngineError):
    """This approval level cannot be skipped."""

    status_code = 422
    code = "skip_not_allowed"
