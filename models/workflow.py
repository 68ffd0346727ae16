from sqlalchemy import Column, Enum, ForeignKey, Integer, String, Text, UniqueConstraint

from database import Base
from models.enums import PriorityLevel, WorkflowStage, WorkflowStatus
from models.types import UTCDateTime, utcnow


class ApprovalWorkflow(Base):
    """One row per stage instance; a new row is created each time an application advances."""

    __tablename__ = "approval_workflows"

    id = Column(String(64), primary_key=True, index=True)
    application_id = Column(
        String(64), ForeignKey("loan_applications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    approval_level_id = Column(Integer, ForeignKey("approval_levels.id"), nullable=True)
    # Creation order within the application
    position = Column(Integer, nullable=False)
    stage = Column(Enum(WorkflowStage, native_enum=False, length=32), nullable=False, index=True)
    status = Column(
        Enum(WorkflowStatus, native_enum=False, length=16),
        nullable=False,
        default=WorkflowStatus.PENDING,
        index=True,
    )
    priority = Column(Enum(PriorityLevel, native_enum=False, length=16), nullable=False, default=PriorityLevel.NORMAL)
    assigned_to = Column(Integer, nullable=True, index=True)
    escalated_to = Column(Integer, nullable=True)
    escalated_at = Column(UTCDateTime, nullable=True)
    due_date = Column(UTCDateTime, nullable=True, index=True)
    started_at = Column(UTCDateTime, nullable=True)
    completed_at = Column(UTCDateTime, nullable=True)
    comments = Column(Text, nullable=True)
    decision_reason = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("application_id", "position", name="uq_approval_workflows_position"),)
    __mapper_args__ = {"version_id_col": version}


class WorkflowAuditLog(Base):
    __tablename__ = "workflow_audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # No foreign keys: the trail outlives deleted workflow rows
    application_id = Column(String(64), nullable=False, index=True)
    workflow_id = Column(String(64), nullable=True, index=True)
    action = Column(String(32), nullable=False)
    actor_id = Column(Integer, nullable=True)
    from_status = Column(String(32), nullable=True)
    to_status = Column(String(32), nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
