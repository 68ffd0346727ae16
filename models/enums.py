import enum


class RateType(str, enum.Enum):
    FIXED = "FIXED"
    FLOATING = "FLOATING"
    MIXED = "MIXED"


class PropertyType(str, enum.Enum):
    RUMAH = "RUMAH"
    APARTEMEN = "APARTEMEN"
    RUKO = "RUKO"
    TANAH = "TANAH"
    TOWNHOUSE = "TOWNHOUSE"
    VILLA = "VILLA"


class PropertyTypeFilter(str, enum.Enum):
    RUMAH = "RUMAH"
    APARTEMEN = "APARTEMEN"
    RUKO = "RUKO"
    ALL = "ALL"


class PropertyStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    SOLD = "SOLD"
    OFF_MARKET = "OFF_MARKET"
    UNDER_CONSTRUCTION = "UNDER_CONSTRUCTION"


class CustomerSegment(str, enum.Enum):
    EMPLOYEE = "EMPLOYEE"
    PROFESSIONAL = "PROFESSIONAL"
    ENTREPRENEUR = "ENTREPRENEUR"
    PENSIONER = "PENSIONER"
    ALL = "ALL"


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
    PENDING_VERIFICATION = "PENDING_VERIFICATION"


class ApplicationPurpose(str, enum.Enum):
    PRIMARY_RESIDENCE = "PRIMARY_RESIDENCE"
    INVESTMENT = "INVESTMENT"
    BUSINESS = "BUSINESS"


class ApplicationStatus(str, enum.Enum):
    SUBMITTED = "SUBMITTED"
    DOCUMENT_VERIFICATION = "DOCUMENT_VERIFICATION"
    PROPERTY_APPRAISAL = "PROPERTY_APPRAISAL"
    CREDIT_ANALYSIS = "CREDIT_ANALYSIS"
    APPROVAL_PENDING = "APPROVAL_PENDING"
    FINAL_APPROVAL = "FINAL_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    DISBURSED = "DISBURSED"

    @classmethod
    def terminal(cls) -> frozenset["ApplicationStatus"]:
        return frozenset({cls.APPROVED, cls.REJECTED, cls.CANCELLED, cls.DISBURSED})

    @property
    def is_terminal(self) -> bool:
        return self in self.terminal()


class WorkflowStage(str, enum.Enum):
    DOCUMENT_VERIFICATION = "DOCUMENT_VERIFICATION"
    PROPERTY_APPRAISAL = "PROPERTY_APPRAISAL"
    CREDIT_ANALYSIS = "CREDIT_ANALYSIS"
    MANAGER_APPROVAL = "MANAGER_APPROVAL"
    FINAL_APPROVAL = "FINAL_APPROVAL"


class WorkflowStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ESCALATED = "ESCALATED"
    CANCELLED = "CANCELLED"
    SKIPPED = "SKIPPED"

    @classmethod
    def terminal(cls) -> frozenset["WorkflowStatus"]:
        return frozenset({cls.APPROVED, cls.REJECTED, cls.CANCELLED, cls.SKIPPED})

    @classmethod
    def active(cls) -> frozenset["WorkflowStatus"]:
        return frozenset({cls.PENDING, cls.IN_PROGRESS, cls.ESCALATED})

    @property
    def is_terminal(self) -> bool:
        return self in self.terminal()


class PriorityLevel(str, enum.Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"
