"""
registry_kernel.services.review_coordinator -- Submission review orchestration.

Responsibility:
    Drive one submission (membership list, candidate nomination, workflow
    item) through its approval chain: populate the issue ledger during
    ingestion, gate entry into review on blocking issues, route authority
    decisions into the state machine, and expose a read model for display.

Architecture position:
    Kernel > Services.  May import from domain/, services/ and the pure
    engines in registry_engines.  Store, ledger, chain registry and clock
    are injected; nothing is a module-level singleton.

Invariants enforced:
    - Reviewability: a submission with unresolved ERROR issues cannot begin
      review.
    - One active review: a submission has at most one non-terminal
      workflow instance.  A rejected (or approved) submission may begin
      again, producing a new instance; earlier passes stay in the history.
    - Per-instance serialization: ``decide`` holds the instance's lock
      across load, transition and save, so two authorities can never both
      decide the same step.  Different instances proceed in parallel.
    - Single source of truth: submission status is always projected from
      the instance's aggregate status, never stored separately.

Failure modes:
    - SubmissionNotReviewableError (with blocking issues attached).
    - ReviewAlreadyActiveError, ReviewNotFoundError, ReviewNotApprovedError.
    - UnknownWorkflowTypeError from the chain registry.
    - Every state-machine error from ``registry_engines.workflow``.
    - InvalidQuorumInputError / QuorumNotMetError from ``certify_election``.
"""

from __future__ import annotations

import threading
from typing import Any, Mapping, Sequence
from uuid import UUID

from registry_engines.membership_validation import (
    DEFAULT_RULES,
    MembershipListRules,
    validate_membership_list,
)
from registry_engines.quorum import require_quorum
from registry_engines.workflow import (
    create_instance,
    current_step,
    is_approved,
    is_overdue,
    project_submission_status,
    record_decision,
)
from registry_kernel.domain.chain_registry import ChainRegistry
from registry_kernel.domain.clock import Clock, SystemClock
from registry_kernel.domain.quorum import QuorumResult
from registry_kernel.domain.submission import ReviewState, Submission, SubmissionStatus
from registry_kernel.domain.workflow import (
    ActingIdentity,
    StepDecisionStatus,
    WorkflowInstance,
)
from registry_kernel.exceptions import (
    ReviewAlreadyActiveError,
    ReviewNotApprovedError,
    ReviewNotFoundError,
    SubmissionNotReviewableError,
)
from registry_kernel.logging_config import LogContext, get_logger
from registry_kernel.services.issue_ledger import IssueLedger
from registry_kernel.services.workflow_store import WorkflowStore

logger = get_logger("services.review_coordinator")


class SubmissionReviewCoordinator:
    """Coordinates WorkflowInstance transitions with the issue ledger."""

    def __init__(
        self,
        chains: ChainRegistry,
        store: WorkflowStore,
        ledger: IssueLedger,
        clock: Clock | None = None,
    ) -> None:
        self._chains = chains
        self._store = store
        self._ledger = ledger
        self._clock = clock or SystemClock()
        self._locks: dict[UUID, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._submission_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest(
        self,
        submission: Submission,
        rows: Sequence[Mapping[str, Any]],
        declared_total: int | None = None,
        rules: MembershipListRules = DEFAULT_RULES,
    ) -> list[UUID]:
        """Validate uploaded rows and record every issue found.

        Returns the IDs of the recorded issues, in validator order.
        """
        drafts = validate_membership_list(rows, declared_total, rules)
        issue_ids = [self._ledger.add_issue(submission.submission_id, d) for d in drafts]

        logger.info(
            "submission_ingested",
            extra={
                "submission_id": str(submission.submission_id),
                "row_count": len(rows),
                "issue_count": len(issue_ids),
            },
        )
        return issue_ids

    # ------------------------------------------------------------------
    # Review lifecycle
    # ------------------------------------------------------------------

    def begin_review(self, submission: Submission) -> WorkflowInstance:
        """Create the workflow instance for a submission entering review."""
        submission_id = submission.submission_id

        with LogContext.bind(submission_id=str(submission_id)):
            blocking = self._ledger.blocking_issues(submission_id)
            if blocking:
                logger.warning(
                    "review_blocked",
                    extra={"blocking_issue_count": len(blocking)},
                )
                raise SubmissionNotReviewableError(str(submission_id), blocking)

            chain = self._chains.get_chain(submission.workflow_type)

            with self._submission_guard:
                active = self._store.latest_for_submission(submission_id)
                if active is not None and not active.is_terminal:
                    raise ReviewAlreadyActiveError(
                        str(submission_id), str(active.workflow_id),
                    )

                instance = create_instance(
                    chain, submission_id, self._clock.now(), due_date=submission.due_date,
                )
                self._store.save(instance)

            logger.info(
                "review_started",
                extra={
                    "workflow_id": str(instance.workflow_id),
                    "workflow_type": chain.workflow_type,
                    "step_count": len(chain.steps),
                    "status": str(instance.status),
                },
            )
            if instance.is_terminal:
                self._log_completion(instance)

        return instance

    def decide(
        self,
        submission_id: UUID,
        step_index: int,
        decision: StepDecisionStatus,
        acting_identity: ActingIdentity,
        comments: str | None = None,
    ) -> WorkflowInstance:
        """Record an authority decision on the submission's current review."""
        latest = self._require_latest(submission_id)

        with LogContext.bind(
            submission_id=str(submission_id),
            workflow_id=str(latest.workflow_id),
            actor_id=acting_identity.identity_id,
        ):
            with self._lock_for(latest.workflow_id):
                instance = self._store.get_for_update(latest.workflow_id)
                chain = self._chains.get_chain(instance.workflow_type)
                updated = record_decision(
                    instance,
                    chain,
                    step_index,
                    decision,
                    acting_identity,
                    comments,
                    self._clock.now(),
                )
                self._store.save(updated)

            logger.info(
                "decision_recorded",
                extra={
                    "step_index": step_index,
                    "authority_role": chain.step(step_index).authority_role,
                    "decision": decision.value,
                    "status": str(updated.status),
                    "submission_status": project_submission_status(updated.status).value,
                },
            )
            if updated.is_terminal:
                self._log_completion(updated)

        return updated

    # ------------------------------------------------------------------
    # Read model
    # ------------------------------------------------------------------

    def get_review_state(self, submission_id: UUID) -> ReviewState:
        """Read-only composite of instance, issues and current step.

        ``is_overdue`` is measured against the injected clock; an approved
        or rejected review is never overdue.
        """
        instance = self._store.latest_for_submission(submission_id)
        issues = tuple(self._ledger.list_issues(submission_id))

        step = None
        if instance is not None:
            step = current_step(instance, self._chains.get_chain(instance.workflow_type))

        return ReviewState(
            submission_id=submission_id,
            submission_status=project_submission_status(
                instance.status if instance is not None else None,
            ),
            instance=instance,
            current_step=step,
            issues=issues,
            issue_summary=self._ledger.summarize(submission_id),
            due_date=instance.due_date if instance is not None else None,
            is_overdue=instance is not None and is_overdue(instance, self._clock.now()),
        )

    def submission_status(self, submission_id: UUID) -> SubmissionStatus:
        instance = self._store.latest_for_submission(submission_id)
        return project_submission_status(instance.status if instance is not None else None)

    def review_history(self, submission_id: UUID) -> list[WorkflowInstance]:
        """Every review pass of the submission, oldest first."""
        return self._store.list_for_submission(submission_id)

    # ------------------------------------------------------------------
    # Elections
    # ------------------------------------------------------------------

    def certify_election(
        self,
        submission_id: UUID,
        eligible_count: int,
        present_count: int,
        required_percentage: float,
    ) -> QuorumResult:
        """Confirm an approved election also met its turnout quorum.

        The election may only be treated as completed when this returns.
        """
        instance = self._require_latest(submission_id)
        if not is_approved(instance):
            raise ReviewNotApprovedError(str(submission_id), str(instance.status))

        result = require_quorum(eligible_count, present_count, required_percentage)
        logger.info(
            "election_certified",
            extra={
                "submission_id": str(submission_id),
                "turnout_percentage": result.turnout_percentage,
                "required_percentage": result.required_percentage,
            },
        )
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_latest(self, submission_id: UUID) -> WorkflowInstance:
        instance = self._store.latest_for_submission(submission_id)
        if instance is None:
            raise ReviewNotFoundError(str(submission_id))
        return instance

    def _lock_for(self, workflow_id: UUID) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(workflow_id)
            if lock is None:
                lock = self._locks[workflow_id] = threading.Lock()
            return lock

    def _log_completion(self, instance: WorkflowInstance) -> None:
        logger.info(
            "review_completed",
            extra={
                "workflow_id": str(instance.workflow_id),
                "status": str(instance.status),
                "completed_at": instance.completed_at,
            },
        )
