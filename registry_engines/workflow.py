"""
registry_engines.workflow -- Sequential approval state machine.

Responsibility:
    Create workflow instances from an approval chain, apply authority
    decisions one step at a time, and derive the aggregate status.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import registry_kernel/domain/ types and registry_kernel.exceptions.

Invariants enforced:
    - Strict sequencing: only the current pending step may be decided;
      step n+1 is never decided before step n is Approved.
    - Terminal immutability: an Approved or Rejected instance accepts no
      further decisions.  A rejection is final for the instance; a new
      review needs a new instance.
    - Authority: the acting identity's role must equal the step's
      ``authority_role``.
    - Purity: no clock access.  ``created_at`` / ``decided_at`` are passed in.

Failure modes:
    - ChainMismatchError when the chain is not the instance's chain.
    - InstanceTerminatedError when the instance is Approved or Rejected.
    - InvalidStepOrderError when ``step_index`` is not the pending step.
    - InvalidDecisionError when the decision is not Approved/Rejected.
    - UnauthorizedAuthorityError on a role mismatch.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Sequence
from uuid import UUID, uuid4

from registry_kernel.domain.submission import SubmissionStatus
from registry_kernel.domain.workflow import (
    ActingIdentity,
    AggregateStatus,
    ApprovalChainDefinition,
    AuthorityStep,
    StepDecision,
    StepDecisionStatus,
    WorkflowInstance,
    WorkflowState,
)
from registry_kernel.exceptions import (
    ChainMismatchError,
    InstanceTerminatedError,
    InvalidDecisionError,
    InvalidStepOrderError,
    UnauthorizedAuthorityError,
)

_CALLER_DECISIONS: frozenset[StepDecisionStatus] = frozenset({
    StepDecisionStatus.APPROVED,
    StepDecisionStatus.REJECTED,
})


def create_instance(
    chain: ApprovalChainDefinition,
    submission_id: UUID,
    created_at: datetime,
    workflow_id: UUID | None = None,
    due_date: datetime | None = None,
) -> WorkflowInstance:
    """Start a workflow instance with one Pending decision per chain step.

    An empty chain has nothing to approve: the instance starts Approved
    with ``completed_at == created_at``.
    """
    decisions = tuple(StepDecision(step_index=s.step_index) for s in chain.steps)

    if not decisions:
        status = AggregateStatus.approved()
        completed_at: datetime | None = created_at
    else:
        status = AggregateStatus.pending_step(0)
        completed_at = None

    return WorkflowInstance(
        workflow_id=workflow_id or uuid4(),
        workflow_type=chain.workflow_type,
        submission_id=submission_id,
        decisions=decisions,
        status=status,
        created_at=created_at,
        completed_at=completed_at,
        due_date=due_date,
    )


def derive_aggregate_status(decisions: Sequence[StepDecision]) -> AggregateStatus:
    """Derive the aggregate status from the ordered step decisions.

    Walks the chain in order: the first Rejected step terminates it, the
    first Pending step is the current step, and an all-Approved (or empty)
    sequence is Approved.
    """
    for d in decisions:
        if d.decision == StepDecisionStatus.REJECTED:
            return AggregateStatus.rejected(d.step_index)
        if d.decision == StepDecisionStatus.PENDING:
            return AggregateStatus.pending_step(d.step_index)
    return AggregateStatus.approved()


def record_decision(
    instance: WorkflowInstance,
    chain: ApprovalChainDefinition,
    step_index: int,
    decision: StepDecisionStatus,
    acting_identity: ActingIdentity,
    comments: str | None,
    decided_at: datetime,
) -> WorkflowInstance:
    """Apply one authority decision and return the new instance snapshot.

    Args:
        instance: Current snapshot.
        chain: The chain registered for ``instance.workflow_type``.
        step_index: Step being decided; must be the current pending step.
        decision: ``APPROVED`` or ``REJECTED``.
        acting_identity: Resolved identity whose role must own the step.
        comments: Optional reviewer comments.
        decided_at: Decision timestamp supplied by the caller.

    Returns:
        A new ``WorkflowInstance``; the input snapshot is left untouched.
    """
    if chain.workflow_type != instance.workflow_type:
        raise ChainMismatchError(instance.workflow_type, chain.workflow_type)

    if instance.status.is_terminal:
        raise InstanceTerminatedError(str(instance.workflow_id), str(instance.status))

    expected = instance.status.step_index
    if step_index != expected:
        raise InvalidStepOrderError(str(instance.workflow_id), step_index, expected)

    if decision not in _CALLER_DECISIONS:
        raise InvalidDecisionError(getattr(decision, "value", str(decision)))

    step = chain.step(step_index)
    if acting_identity.role != step.authority_role:
        raise UnauthorizedAuthorityError(
            acting_identity.identity_id,
            acting_identity.role,
            step.authority_role,
        )

    decisions = list(instance.decisions)
    decisions[step_index] = StepDecision(
        step_index=step_index,
        decision=decision,
        decided_by=acting_identity.identity_id,
        decided_at=decided_at,
        comments=comments,
    )

    if decision == StepDecisionStatus.REJECTED:
        status = AggregateStatus.rejected(step_index)
    elif step_index == len(decisions) - 1:
        status = AggregateStatus.approved()
    else:
        status = AggregateStatus.pending_step(step_index + 1)

    return replace(
        instance,
        decisions=tuple(decisions),
        status=status,
        completed_at=decided_at if status.is_terminal else None,
    )


def current_step(
    instance: WorkflowInstance,
    chain: ApprovalChainDefinition,
) -> AuthorityStep | None:
    """Return the step awaiting a decision, or None when terminal."""
    if instance.status.state != WorkflowState.PENDING_STEP:
        return None
    return chain.step(instance.status.step_index)


def is_approved(instance: WorkflowInstance) -> bool:
    return instance.status.state == WorkflowState.APPROVED


def is_rejected(instance: WorkflowInstance) -> bool:
    return instance.status.state == WorkflowState.REJECTED


def is_pending(instance: WorkflowInstance) -> bool:
    return instance.status.state == WorkflowState.PENDING_STEP


def is_overdue(instance: WorkflowInstance, now: datetime) -> bool:
    """A review still in progress past its due date."""
    return (
        instance.due_date is not None
        and not instance.is_terminal
        and instance.due_date < now
    )


_SUBMISSION_STATUS_BY_STATE: dict[WorkflowState, SubmissionStatus] = {
    WorkflowState.PENDING_STEP: SubmissionStatus.UNDER_REVIEW,
    WorkflowState.APPROVED: SubmissionStatus.APPROVED,
    WorkflowState.REJECTED: SubmissionStatus.REJECTED,
}


def project_submission_status(status: AggregateStatus | None) -> SubmissionStatus:
    """Project a workflow status onto the submission-level status.

    ``None`` (no review begun yet) projects to ``SUBMITTED``.
    """
    if status is None:
        return SubmissionStatus.SUBMITTED
    return _SUBMISSION_STATUS_BY_STATE[status.state]
