"""
Validation issue domain types (``registry_kernel.domain.validation``).

Pure frozen dataclasses describing problems found while ingesting a
submission (for example a membership list upload).  ZERO I/O.

Issues form an audit trail: they are created during ingestion, flagged
resolved later, and never deleted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class IssueType(str, Enum):
    """Kind of problem found in a submission."""

    MISSING_DATA = "missing_data"
    DUPLICATE = "duplicate"
    INCONSISTENT_TOTAL = "inconsistent_total"
    FORMAT_ERROR = "format_error"


class IssueSeverity(str, Enum):
    """Only ERROR issues block a submission from entering review."""

    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class NewValidationIssue:
    """Issue draft produced by validators, before the ledger assigns an ID."""

    issue_type: IssueType
    severity: IssueSeverity
    description: str
    affected_item_ref: str | None = None
    field_name: str | None = None


@dataclass(frozen=True)
class ValidationIssue:
    """A recorded validation issue. Only ``resolved`` ever changes."""

    issue_id: UUID
    submission_id: UUID
    issue_type: IssueType
    severity: IssueSeverity
    description: str
    affected_item_ref: str | None = None
    field_name: str | None = None
    resolved: bool = False

    @property
    def is_blocking(self) -> bool:
        return self.severity == IssueSeverity.ERROR and not self.resolved


@dataclass(frozen=True)
class IssueFilter:
    """Optional filter for ledger queries; ``None`` fields match anything."""

    severity: IssueSeverity | None = None
    resolved: bool | None = None

    def matches(self, issue: ValidationIssue) -> bool:
        if self.severity is not None and issue.severity != self.severity:
            return False
        if self.resolved is not None and issue.resolved != self.resolved:
            return False
        return True


@dataclass(frozen=True)
class IssueSummary:
    """Per-submission issue counts shown next to a submission."""

    error_count: int = 0
    warning_count: int = 0
    unresolved_count: int = 0


def summarize_issues(issues: list[ValidationIssue]) -> IssueSummary:
    """Count issues by severity, plus the unresolved total."""
    return IssueSummary(
        error_count=sum(1 for i in issues if i.severity == IssueSeverity.ERROR),
        warning_count=sum(1 for i in issues if i.severity == IssueSeverity.WARNING),
        unresolved_count=sum(1 for i in issues if not i.resolved),
    )
