"""
Submission and review read-model types (``registry_kernel.domain.submission``).

Pure value objects for the coordinator's public surface.  The submission
status shown to users is never stored: it is projected from the workflow
instance's aggregate status on every read.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID

from registry_kernel.domain.validation import IssueSummary, ValidationIssue
from registry_kernel.domain.workflow import AuthorityStep, WorkflowInstance


class SubmissionKind(str, Enum):
    """What is being reviewed."""

    MEMBERSHIP_LIST = "membership_list"
    CANDIDATE = "candidate"
    WORKFLOW_ITEM = "workflow_item"


class SubmissionStatus(str, Enum):
    """Submission-level status, a projection of the workflow status."""

    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Submission:
    """A unit of work that enters review (membership list, nomination, ...)."""

    submission_id: UUID
    workflow_type: str
    kind: SubmissionKind
    reference: str = ""
    organization: str | None = None
    # Display only; a late review is flagged, never escalated
    due_date: datetime | None = None


@dataclass(frozen=True)
class ReviewState:
    """Read-only composite of a submission's review for display."""

    submission_id: UUID
    submission_status: SubmissionStatus
    instance: WorkflowInstance | None = None
    current_step: AuthorityStep | None = None
    issues: tuple[ValidationIssue, ...] = ()
    issue_summary: IssueSummary = field(default_factory=IssueSummary)
    due_date: datetime | None = None
    is_overdue: bool = False
