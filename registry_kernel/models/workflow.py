"""
Module: registry_kernel.models.workflow
Responsibility: ORM persistence for workflow instances and their step decisions.

Architecture position: Kernel > Models.  May import from db/base.py; DTO
conversion imports domain types and the status derivation lazily.

Invariants enforced:
    - One decision row per (workflow_id, step_index).
    - One instance per (submission_id, pass_number), across hosts.
    - The loaded aggregate status is derived from the decision rows; the
      cached status columns serve queries only.
    - Decided steps are write-once: a decision row that is no longer
      ``pending`` cannot be updated, and no decision row can be deleted.
    - Terminal instances (approved / rejected) cannot change status.

Failure modes:
    - IntegrityError on a duplicate (workflow_id, step_index) or
      (submission_id, pass_number).
    - ImmutabilityViolationError on mutation of a decided step or a
      terminal instance, or on any DELETE.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    event,
    inspect,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from registry_kernel.db.base import Base, UUIDString, as_utc
from registry_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from registry_kernel.domain.workflow import StepDecision, WorkflowInstance

_TERMINAL_STATES = ("approved", "rejected")


class WorkflowInstanceModel(Base):
    """Persistent workflow instance.

    The aggregate status is cached in ``status_state`` / ``status_step_index``
    for querying; it is always rewritten from the domain snapshot and never
    read back by ``to_dto``.
    """

    __tablename__ = "workflow_instances"

    __table_args__ = (
        CheckConstraint(
            "status_state IN ('pending_step', 'approved', 'rejected')",
            name="ck_workflow_instances_valid_state",
        ),
        UniqueConstraint(
            "submission_id", "pass_number",
            name="uq_workflow_instances_submission_pass",
        ),
    )

    workflow_id: Mapped[UUID] = mapped_column(
        UUIDString(), nullable=False, unique=True,
    )
    workflow_type: Mapped[str] = mapped_column(String(100), nullable=False)
    submission_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    # 1-based review pass of the submission; orders instances with equal created_at
    pass_number: Mapped[int] = mapped_column(nullable=False, default=1)
    status_state: Mapped[str] = mapped_column(String(20), nullable=False)
    status_step_index: Mapped[int | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    due_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    decisions: Mapped[list["StepDecisionModel"]] = relationship(
        "StepDecisionModel",
        back_populates="instance",
        primaryjoin="WorkflowInstanceModel.workflow_id == StepDecisionModel.workflow_id",
        order_by="StepDecisionModel.step_index",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<WorkflowInstance {self.workflow_id} "
            f"{self.workflow_type} state={self.status_state}>"
        )

    def to_dto(self) -> WorkflowInstance:
        """Convert ORM model to frozen domain DTO.

        The status is derived from the decision rows, so a stale cached
        status column cannot leak into the domain.
        """
        from registry_engines.workflow import derive_aggregate_status
        from registry_kernel.domain.workflow import WorkflowInstance as WorkflowInstanceDTO

        decisions = tuple(d.to_dto() for d in self.decisions)
        return WorkflowInstanceDTO(
            workflow_id=self.workflow_id,
            workflow_type=self.workflow_type,
            submission_id=self.submission_id,
            decisions=decisions,
            status=derive_aggregate_status(decisions),
            created_at=as_utc(self.created_at),
            completed_at=as_utc(self.completed_at),
            due_date=as_utc(self.due_date),
        )

    def has_status(self, dto: WorkflowInstance) -> bool:
        """True when the cached status columns already match ``dto``."""
        return (self.status_state, self.status_step_index) == (
            dto.status.state.value, dto.status.step_index,
        )

    @classmethod
    def from_dto(cls, dto: WorkflowInstance) -> WorkflowInstanceModel:
        """Create ORM model (with decision rows) from domain DTO."""
        model = cls(
            workflow_id=dto.workflow_id,
            workflow_type=dto.workflow_type,
            submission_id=dto.submission_id,
            created_at=dto.created_at,
            due_date=dto.due_date,
        )
        model.apply_dto(dto)
        model.decisions = [StepDecisionModel.from_dto(dto.workflow_id, d) for d in dto.decisions]
        return model

    def apply_dto(self, dto: WorkflowInstance) -> None:
        """Copy the mutable parts of a newer snapshot onto this row."""
        self.status_state = dto.status.state.value
        self.status_step_index = dto.status.step_index
        self.completed_at = dto.completed_at


class StepDecisionModel(Base):
    """Persistent step decision. Write-once after leaving ``pending``."""

    __tablename__ = "workflow_step_decisions"

    __table_args__ = (
        UniqueConstraint(
            "workflow_id", "step_index",
            name="uq_workflow_step_decisions_step",
        ),
        CheckConstraint(
            "decision IN ('pending', 'approved', 'rejected')",
            name="ck_workflow_step_decisions_valid_decision",
        ),
    )

    workflow_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_instances.workflow_id"),
        nullable=False,
    )
    step_index: Mapped[int] = mapped_column(nullable=False)
    decision: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    decided_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    instance: Mapped["WorkflowInstanceModel"] = relationship(
        "WorkflowInstanceModel",
        back_populates="decisions",
        foreign_keys=[workflow_id],
        primaryjoin="StepDecisionModel.workflow_id == WorkflowInstanceModel.workflow_id",
    )

    def __repr__(self) -> str:
        return (
            f"<StepDecision workflow={self.workflow_id} "
            f"step={self.step_index} decision={self.decision}>"
        )

    def to_dto(self) -> StepDecision:
        from registry_kernel.domain.workflow import (
            StepDecision as StepDecisionDTO,
            StepDecisionStatus,
        )

        return StepDecisionDTO(
            step_index=self.step_index,
            decision=StepDecisionStatus(self.decision),
            decided_by=self.decided_by,
            decided_at=as_utc(self.decided_at),
            comments=self.comments,
        )

    @classmethod
    def from_dto(cls, workflow_id: UUID, dto: StepDecision) -> StepDecisionModel:
        return cls(
            workflow_id=workflow_id,
            step_index=dto.step_index,
            decision=dto.decision.value,
            decided_by=dto.decided_by,
            decided_at=dto.decided_at,
            comments=dto.comments,
        )

    def apply_dto(self, dto: StepDecision) -> None:
        self.decision = dto.decision.value
        self.decided_by = dto.decided_by
        self.decided_at = dto.decided_at
        self.comments = dto.comments


# =============================================================================
# ORM-Level Immutability (decided steps and terminal instances)
# =============================================================================


def _previous_value(target, attribute: str):
    history = inspect(target).attrs[attribute].history
    if history.deleted:
        return history.deleted[0]
    return getattr(target, attribute)


@event.listens_for(StepDecisionModel, "before_update")
def prevent_decided_step_update(mapper, connection, target):
    """A step that has left ``pending`` can never change again."""
    if _previous_value(target, "decision") != "pending":
        raise ImmutabilityViolationError(
            entity_type="StepDecision",
            entity_id=f"{target.workflow_id}:{target.step_index}",
            reason="Decided workflow steps are immutable -- cannot modify",
        )


@event.listens_for(StepDecisionModel, "before_delete")
def prevent_step_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="StepDecision",
        entity_id=f"{target.workflow_id}:{target.step_index}",
        reason="Workflow step decisions are part of the audit trail -- cannot delete",
    )


@event.listens_for(WorkflowInstanceModel, "before_update")
def prevent_terminal_instance_update(mapper, connection, target):
    """Approved / rejected instances are frozen."""
    if _previous_value(target, "status_state") in _TERMINAL_STATES:
        raise ImmutabilityViolationError(
            entity_type="WorkflowInstance",
            entity_id=str(target.workflow_id),
            reason="Terminated workflow instances are immutable -- cannot modify",
        )


@event.listens_for(WorkflowInstanceModel, "before_delete")
def prevent_instance_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="WorkflowInstance",
        entity_id=str(target.workflow_id),
        reason="Workflow instances are part of the audit trail -- cannot delete",
    )
