"""
registry_kernel.services.issue_ledger -- Validation issue ledger.

Responsibility:
    Record the structured problems found while ingesting a submission and
    answer queries over them, most importantly ``has_blocking_errors``,
    which gates a submission's entry into review.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Insertion order: ``list_issues`` returns issues in the order added.
    - Audit trail: issues are never deleted; ``mark_resolved`` only flips
      ``resolved`` to true.
    - Idempotent resolution: resolving an already-resolved issue is a no-op,
      tolerating at-least-once delivery from the host.

Failure modes:
    - IssueNotFoundError from ``mark_resolved`` on an unknown issue_id.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Protocol
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from registry_kernel.domain.validation import (
    IssueFilter,
    IssueSeverity,
    IssueSummary,
    NewValidationIssue,
    ValidationIssue,
    summarize_issues,
)
from registry_kernel.exceptions import IssueNotFoundError
from registry_kernel.logging_config import get_logger
from registry_kernel.models.validation_issue import ValidationIssueModel

logger = get_logger("services.issue_ledger")


class IssueLedger(Protocol):
    """Ledger contract consumed by SubmissionReviewCoordinator."""

    def add_issue(self, submission_id: UUID, issue: NewValidationIssue) -> UUID: ...

    def list_issues(
        self,
        submission_id: UUID,
        issue_filter: IssueFilter | None = None,
    ) -> list[ValidationIssue]: ...

    def mark_resolved(self, issue_id: UUID) -> None: ...

    def blocking_issues(self, submission_id: UUID) -> list[ValidationIssue]: ...

    def has_blocking_errors(self, submission_id: UUID) -> bool: ...

    def summarize(self, submission_id: UUID) -> IssueSummary: ...


def _build_issue(submission_id: UUID, draft: NewValidationIssue) -> ValidationIssue:
    return ValidationIssue(
        issue_id=uuid4(),
        submission_id=submission_id,
        issue_type=draft.issue_type,
        severity=draft.severity,
        description=draft.description,
        affected_item_ref=draft.affected_item_ref,
        field_name=draft.field_name,
    )


class ValidationIssueLedger:
    """In-memory ledger.  Appends and resolutions are atomic under one lock,
    so readers never observe a partial write."""

    def __init__(self) -> None:
        self._issues: dict[UUID, ValidationIssue] = {}
        self._by_submission: dict[UUID, list[UUID]] = {}
        self._lock = threading.Lock()

    def add_issue(self, submission_id: UUID, issue: NewValidationIssue) -> UUID:
        record = _build_issue(submission_id, issue)
        with self._lock:
            self._issues[record.issue_id] = record
            self._by_submission.setdefault(submission_id, []).append(record.issue_id)

        logger.info(
            "issue_added",
            extra={
                "issue_id": str(record.issue_id),
                "submission_id": str(submission_id),
                "issue_type": record.issue_type.value,
                "severity": record.severity.value,
            },
        )
        return record.issue_id

    def list_issues(
        self,
        submission_id: UUID,
        issue_filter: IssueFilter | None = None,
    ) -> list[ValidationIssue]:
        with self._lock:
            issues = [self._issues[i] for i in self._by_submission.get(submission_id, ())]
        if issue_filter is None:
            return issues
        return [i for i in issues if issue_filter.matches(i)]

    def get_issue(self, issue_id: UUID) -> ValidationIssue:
        issue = self._issues.get(issue_id)
        if issue is None:
            raise IssueNotFoundError(str(issue_id))
        return issue

    def mark_resolved(self, issue_id: UUID) -> None:
        with self._lock:
            issue = self._issues.get(issue_id)
            if issue is None:
                raise IssueNotFoundError(str(issue_id))
            if issue.resolved:
                return
            self._issues[issue_id] = replace(issue, resolved=True)

        logger.info(
            "issue_resolved",
            extra={"issue_id": str(issue_id), "submission_id": str(issue.submission_id)},
        )

    def blocking_issues(self, submission_id: UUID) -> list[ValidationIssue]:
        return [i for i in self.list_issues(submission_id) if i.is_blocking]

    def has_blocking_errors(self, submission_id: UUID) -> bool:
        """True if any unresolved issue of the submission has ERROR severity."""
        return bool(self.blocking_issues(submission_id))

    def summarize(self, submission_id: UUID) -> IssueSummary:
        return summarize_issues(self.list_issues(submission_id))


class SqlValidationIssueLedger:
    """SQLAlchemy-backed ledger with the same contract as ValidationIssueLedger.

    Single writer per submission: ``seq`` is allocated as max + 1 inside the
    caller's transaction.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def add_issue(self, submission_id: UUID, issue: NewValidationIssue) -> UUID:
        record = _build_issue(submission_id, issue)
        current = self._session.execute(
            select(func.max(ValidationIssueModel.seq)).where(
                ValidationIssueModel.submission_id == submission_id,
            )
        ).scalar_one()

        self._session.add(
            ValidationIssueModel(
                issue_id=record.issue_id,
                submission_id=submission_id,
                seq=(current or 0) + 1,
                issue_type=record.issue_type.value,
                severity=record.severity.value,
                description=record.description,
                affected_item_ref=record.affected_item_ref,
                field_name=record.field_name,
                resolved=False,
            )
        )
        self._session.flush()

        logger.info(
            "issue_added",
            extra={
                "issue_id": str(record.issue_id),
                "submission_id": str(submission_id),
                "issue_type": record.issue_type.value,
                "severity": record.severity.value,
            },
        )
        return record.issue_id

    def list_issues(
        self,
        submission_id: UUID,
        issue_filter: IssueFilter | None = None,
    ) -> list[ValidationIssue]:
        stmt = select(ValidationIssueModel).where(
            ValidationIssueModel.submission_id == submission_id,
        )
        if issue_filter is not None:
            if issue_filter.severity is not None:
                stmt = stmt.where(ValidationIssueModel.severity == issue_filter.severity.value)
            if issue_filter.resolved is not None:
                stmt = stmt.where(ValidationIssueModel.resolved == issue_filter.resolved)
        models = self._session.execute(
            stmt.order_by(ValidationIssueModel.seq)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def get_issue(self, issue_id: UUID) -> ValidationIssue:
        return self._load(issue_id).to_dto()

    def mark_resolved(self, issue_id: UUID) -> None:
        model = self._load(issue_id)
        if model.resolved:
            return
        model.resolved = True
        self._session.flush()

        logger.info(
            "issue_resolved",
            extra={"issue_id": str(issue_id), "submission_id": str(model.submission_id)},
        )

    def blocking_issues(self, submission_id: UUID) -> list[ValidationIssue]:
        return self.list_issues(
            submission_id,
            IssueFilter(severity=IssueSeverity.ERROR, resolved=False),
        )

    def has_blocking_errors(self, submission_id: UUID) -> bool:
        return bool(self.blocking_issues(submission_id))

    def summarize(self, submission_id: UUID) -> IssueSummary:
        return summarize_issues(self.list_issues(submission_id))

    def _load(self, issue_id: UUID) -> ValidationIssueModel:
        model = self._session.execute(
            select(ValidationIssueModel).where(
                ValidationIssueModel.issue_id == issue_id,
            )
        ).scalar_one_or_none()
        if model is None:
            raise IssueNotFoundError(str(issue_id))
        return model
