"""
Typed Exception Hierarchy for the Registry Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every failure in the review kernel is a caller-input error that the host
service shows to a registry officer.  Callers must be able to react by
TYPE and by machine-readable CODE, never by parsing message text:

    try:
        coordinator.decide(submission_id, 2, StepDecisionStatus.APPROVED, who)
    except InvalidStepOrderError as e:
        api_response(code=e.code, expected=e.expected_step_index)

Rules:
  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    RegistryKernelError (base)
    |
    +-- WorkflowError
    |   +-- UnknownWorkflowTypeError
    |   +-- InvalidChainDefinitionError
    |   +-- DuplicateChainError
    |   +-- ChainRegistryFrozenError
    |   +-- ChainMismatchError
    |   +-- InvalidStepOrderError
    |   +-- InstanceTerminatedError
    |   +-- UnauthorizedAuthorityError
    |   +-- InvalidDecisionError
    |   +-- WorkflowNotFoundError
    |
    +-- ReviewError
    |   +-- SubmissionNotReviewableError
    |   +-- ReviewAlreadyActiveError
    |   +-- ReviewNotFoundError
    |   +-- ReviewNotApprovedError
    |
    +-- LedgerError
    |   +-- IssueNotFoundError
    |
    +-- QuorumError
    |   +-- InvalidQuorumInputError
    |   +-- QuorumNotMetError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
RETRY GUIDANCE
===============================================================================

None of these errors is retryable.  Every operation in the kernel is a
deterministic state transition; repeating the same call with the same
input produces the same failure.  Retry of persistence I/O belongs to the
host, not to this package.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Sequence

if TYPE_CHECKING:
    from registry_kernel.domain.validation import ValidationIssue
    from registry_kernel.domain.quorum import QuorumResult


class RegistryKernelError(Exception):
    """
    Base exception for all registry kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "REGISTRY_KERNEL_ERROR"


# Workflow-related exceptions


class WorkflowError(RegistryKernelError):
    """Base exception for approval workflow errors."""

    code: str = "WORKFLOW_ERROR"


class UnknownWorkflowTypeError(WorkflowError):
    """No approval chain is registered for the workflow type."""

    code: str = "UNKNOWN_WORKFLOW_TYPE"

    def __init__(self, workflow_type: str):
        self.workflow_type = workflow_type
        super().__init__(f"No approval chain registered for workflow type: {workflow_type}")


class InvalidChainDefinitionError(WorkflowError):
    """An approval chain violates its structural invariants."""

    code: str = "INVALID_CHAIN_DEFINITION"

    def __init__(self, workflow_type: str, reason: str):
        self.workflow_type = workflow_type
        self.reason = reason
        super().__init__(f"Invalid approval chain '{workflow_type}': {reason}")


class DuplicateChainError(WorkflowError):
    """A chain for this workflow type is already registered."""

    code: str = "DUPLICATE_CHAIN"

    def __init__(self, workflow_type: str):
        self.workflow_type = workflow_type
        super().__init__(f"Approval chain already registered: {workflow_type}")


class ChainRegistryFrozenError(WorkflowError):
    """Chains can only be registered before the registry is frozen."""

    code: str = "CHAIN_REGISTRY_FROZEN"

    def __init__(self, workflow_type: str):
        self.workflow_type = workflow_type
        super().__init__(
            f"Cannot register chain '{workflow_type}': registry is frozen"
        )


class ChainMismatchError(WorkflowError):
    """The chain supplied does not belong to the workflow instance."""

    code: str = "CHAIN_MISMATCH"

    def __init__(self, instance_type: str, chain_type: str):
        self.instance_type = instance_type
        self.chain_type = chain_type
        super().__init__(
            f"Workflow instance of type '{instance_type}' "
            f"cannot be driven by chain '{chain_type}'"
        )


class InvalidStepOrderError(WorkflowError):
    """A decision targeted a step other than the current pending step."""

    code: str = "INVALID_STEP_ORDER"

    def __init__(self, workflow_id: str, step_index: int, expected_step_index: int | None):
        self.workflow_id = workflow_id
        self.step_index = step_index
        self.expected_step_index = expected_step_index
        super().__init__(
            f"Workflow {workflow_id}: step {step_index} cannot be decided, "
            f"current pending step is {expected_step_index}"
        )


class InstanceTerminatedError(WorkflowError):
    """The workflow instance is already Approved or Rejected."""

    code: str = "INSTANCE_TERMINATED"

    def __init__(self, workflow_id: str, status: str):
        self.workflow_id = workflow_id
        self.status = status
        super().__init__(f"Workflow {workflow_id} is terminated with status {status}")


class UnauthorizedAuthorityError(WorkflowError):
    """The acting identity does not hold the authority role of the step."""

    code: str = "UNAUTHORIZED_AUTHORITY"

    def __init__(self, identity_id: str, role: str, required_role: str):
        self.identity_id = identity_id
        self.role = role
        self.required_role = required_role
        super().__init__(
            f"Identity {identity_id} with role '{role}' cannot decide a step "
            f"owned by '{required_role}'"
        )


class InvalidDecisionError(WorkflowError):
    """Only Approved or Rejected may be recorded against a step."""

    code: str = "INVALID_DECISION"

    def __init__(self, decision: str):
        self.decision = decision
        super().__init__(f"Decision '{decision}' cannot be recorded; use approved or rejected")


class WorkflowNotFoundError(WorkflowError):
    """Workflow instance with given ID was not found."""

    code: str = "WORKFLOW_NOT_FOUND"

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow instance not found: {workflow_id}")


# Review-related exceptions


class ReviewError(RegistryKernelError):
    """Base exception for submission review errors."""

    code: str = "REVIEW_ERROR"


class SubmissionNotReviewableError(ReviewError):
    """The submission still has unresolved Error-severity issues."""

    code: str = "SUBMISSION_NOT_REVIEWABLE"

    def __init__(self, submission_id: str, blocking_issues: Sequence[ValidationIssue]):
        self.submission_id = submission_id
        self.blocking_issues = tuple(blocking_issues)
        super().__init__(
            f"Submission {submission_id} has {len(self.blocking_issues)} "
            f"unresolved blocking issue(s)"
        )


class ReviewAlreadyActiveError(ReviewError):
    """A non-terminal review already exists for the submission."""

    code: str = "REVIEW_ALREADY_ACTIVE"

    def __init__(self, submission_id: str, workflow_id: str):
        self.submission_id = submission_id
        self.workflow_id = workflow_id
        super().__init__(
            f"Submission {submission_id} is already under review ({workflow_id})"
        )


class ReviewNotFoundError(ReviewError):
    """No review has been started for the submission."""

    code: str = "REVIEW_NOT_FOUND"

    def __init__(self, submission_id: str):
        self.submission_id = submission_id
        super().__init__(f"No review found for submission: {submission_id}")


class ReviewNotApprovedError(ReviewError):
    """The latest review of the submission is not Approved."""

    code: str = "REVIEW_NOT_APPROVED"

    def __init__(self, submission_id: str, status: str):
        self.submission_id = submission_id
        self.status = status
        super().__init__(
            f"Submission {submission_id} review is {status}, not approved"
        )


# Ledger-related exceptions


class LedgerError(RegistryKernelError):
    """Base exception for validation-issue ledger errors."""

    code: str = "LEDGER_ERROR"


class IssueNotFoundError(LedgerError):
    """Validation issue with given ID was not found."""

    code: str = "ISSUE_NOT_FOUND"

    def __init__(self, issue_id: str):
        self.issue_id = issue_id
        super().__init__(f"Validation issue not found: {issue_id}")


# Quorum-related exceptions


class QuorumError(RegistryKernelError):
    """Base exception for quorum evaluation errors."""

    code: str = "QUORUM_ERROR"


class InvalidQuorumInputError(QuorumError):
    """A quorum input field violated its constraint."""

    code: str = "INVALID_QUORUM_INPUT"

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid quorum input {field}={value!r}: {reason}")


class QuorumNotMetError(QuorumError):
    """Turnout is below the required participation threshold."""

    code: str = "QUORUM_NOT_MET"

    def __init__(self, result: QuorumResult):
        self.result = result
        super().__init__(
            f"Quorum not met: turnout {result.turnout_percentage:.2f}%, "
            f"{result.shortfall_count} more attendee(s) required"
        )


# Immutability-related exceptions


class ImmutabilityError(RegistryKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Decided workflow steps and validation issues are part of the audit
    trail and can never be deleted.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
