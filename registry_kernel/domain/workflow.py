"""
Approval workflow domain types (``registry_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the sequential approval engine: authority steps,
chain definitions, per-step decisions, the derived aggregate status and
the workflow instance snapshot.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* Chain shape -- ``ApprovalChainDefinition`` checks at construction that
  step indexes are contiguous from 0 and that no authority role repeats.
* Terminal states -- ``WorkflowState.APPROVED`` and ``WorkflowState.REJECTED``
  have no outgoing transitions.
* Decision alignment -- a ``WorkflowInstance`` holds exactly one
  ``StepDecision`` per chain step, index-aligned.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from registry_kernel.exceptions import InvalidChainDefinitionError


# =========================================================================
# Chain definition
# =========================================================================


@dataclass(frozen=True)
class AuthorityStep:
    """One named authority position in an approval chain."""

    step_index: int
    authority_role: str
    display_label: str


@dataclass(frozen=True)
class ApprovalChainDefinition:
    """An ordered sequence of authority steps for one workflow type.

    Chains are registered once at process start and shared read-only by
    every workflow instance of the same type.
    """

    workflow_type: str
    steps: tuple[AuthorityStep, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        if not self.workflow_type:
            raise InvalidChainDefinitionError("", "workflow_type must not be empty")

        seen_roles: set[str] = set()
        for position, step in enumerate(self.steps):
            if step.step_index != position:
                raise InvalidChainDefinitionError(
                    self.workflow_type,
                    f"step_index {step.step_index} at position {position}; "
                    f"indexes must be contiguous from 0",
                )
            if step.authority_role in seen_roles:
                raise InvalidChainDefinitionError(
                    self.workflow_type,
                    f"duplicate authority_role '{step.authority_role}'",
                )
            seen_roles.add(step.authority_role)

    def step(self, step_index: int) -> AuthorityStep:
        return self.steps[step_index]


# =========================================================================
# Decisions and aggregate status
# =========================================================================


class StepDecisionStatus(str, Enum):
    """Decision value held by one step."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WorkflowState(str, Enum):
    """Aggregate lifecycle state of a workflow instance."""

    PENDING_STEP = "pending_step"
    APPROVED = "approved"
    REJECTED = "rejected"


TERMINAL_WORKFLOW_STATES: frozenset[WorkflowState] = frozenset({
    WorkflowState.APPROVED,
    WorkflowState.REJECTED,
})


@dataclass(frozen=True)
class AggregateStatus:
    """Derived status of a workflow instance.

    ``step_index`` is the pending step for ``PENDING_STEP``, the rejecting
    step for ``REJECTED`` and ``None`` for ``APPROVED``.
    """

    state: WorkflowState
    step_index: int | None = None

    @classmethod
    def pending_step(cls, step_index: int) -> AggregateStatus:
        return cls(WorkflowState.PENDING_STEP, step_index)

    @classmethod
    def rejected(cls, step_index: int) -> AggregateStatus:
        return cls(WorkflowState.REJECTED, step_index)

    @classmethod
    def approved(cls) -> AggregateStatus:
        return cls(WorkflowState.APPROVED, None)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_WORKFLOW_STATES

    def __str__(self) -> str:
        if self.step_index is None:
            return self.state.value
        return f"{self.state.value}({self.step_index})"


@dataclass(frozen=True)
class StepDecision:
    """Decision record for one step of one workflow instance.

    ``decided_by`` is a weak reference to the acting identity; the kernel
    never resolves it.
    """

    step_index: int
    decision: StepDecisionStatus = StepDecisionStatus.PENDING
    decided_by: str | None = None
    decided_at: datetime | None = None
    comments: str | None = None


@dataclass(frozen=True)
class WorkflowInstance:
    """Immutable snapshot of one unit of work moving through its chain.

    Every transition produces a new snapshot.  ``workflow_type`` is the weak
    reference to the shared ``ApprovalChainDefinition``.
    """

    workflow_id: UUID
    workflow_type: str
    submission_id: UUID
    decisions: tuple[StepDecision, ...]
    status: AggregateStatus
    created_at: datetime
    completed_at: datetime | None = None
    due_date: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


# =========================================================================
# Acting identity
# =========================================================================


@dataclass(frozen=True)
class ActingIdentity:
    """An already-resolved identity and its authority role.

    Identity and role resolution belong to the host; the kernel only
    compares ``role`` against the step's ``authority_role``.
    """

    identity_id: str
    role: str
