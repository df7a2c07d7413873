"""
Module: registry_kernel.models.validation_issue
Responsibility: ORM persistence for submission validation issues.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only audit trail: issue rows are never deleted.
    - The only permitted update is flipping ``resolved`` to true; every
      other column is write-once.

Failure modes:
    - ImmutabilityViolationError on DELETE or on a forbidden UPDATE.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, String, Text, event, inspect
from sqlalchemy.orm import Mapped, mapped_column

from registry_kernel.db.base import Base, UUIDString
from registry_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from registry_kernel.domain.validation import ValidationIssue


class ValidationIssueModel(Base):
    """Persistent validation issue."""

    __tablename__ = "validation_issues"

    __table_args__ = (
        CheckConstraint(
            "severity IN ('warning', 'error')",
            name="ck_validation_issues_valid_severity",
        ),
        CheckConstraint(
            "issue_type IN ('missing_data', 'duplicate', 'inconsistent_total', 'format_error')",
            name="ck_validation_issues_valid_type",
        ),
        Index(
            "ix_validation_issues_submission_seq",
            "submission_id", "seq",
        ),
    )

    issue_id: Mapped[UUID] = mapped_column(
        UUIDString(), nullable=False, unique=True,
    )
    submission_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    # Insertion order within the ledger
    seq: Mapped[int] = mapped_column(nullable=False)
    issue_type: Mapped[str] = mapped_column(String(30), nullable=False)
    severity: Mapped[str] = mapped_column(String(10), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    affected_item_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    field_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    resolved: Mapped[bool] = mapped_column(default=False, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ValidationIssue {self.issue_id} {self.issue_type}/{self.severity} "
            f"resolved={self.resolved}>"
        )

    def to_dto(self) -> ValidationIssue:
        from registry_kernel.domain.validation import (
            IssueSeverity,
            IssueType,
            ValidationIssue as ValidationIssueDTO,
        )

        return ValidationIssueDTO(
            issue_id=self.issue_id,
            submission_id=self.submission_id,
            issue_type=IssueType(self.issue_type),
            severity=IssueSeverity(self.severity),
            description=self.description,
            affected_item_ref=self.affected_item_ref,
            field_name=self.field_name,
            resolved=self.resolved,
        )


_WRITE_ONCE_COLUMNS = (
    "issue_id",
    "submission_id",
    "seq",
    "issue_type",
    "severity",
    "description",
    "affected_item_ref",
    "field_name",
)


@event.listens_for(ValidationIssueModel, "before_update")
def prevent_issue_rewrite(mapper, connection, target):
    """Allow only ``resolved`` False -> True."""
    state = inspect(target)
    for column in _WRITE_ONCE_COLUMNS:
        if state.attrs[column].history.has_changes():
            raise ImmutabilityViolationError(
                entity_type="ValidationIssue",
                entity_id=str(target.issue_id),
                reason=f"Column '{column}' is write-once",
            )
    resolved_history = state.attrs["resolved"].history
    if resolved_history.deleted and resolved_history.deleted[0] and not target.resolved:
        raise ImmutabilityViolationError(
            entity_type="ValidationIssue",
            entity_id=str(target.issue_id),
            reason="A resolved issue cannot be reopened",
        )


@event.listens_for(ValidationIssueModel, "before_delete")
def prevent_issue_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="ValidationIssue",
        entity_id=str(target.issue_id),
        reason="Validation issues are never deleted, only resolved",
    )
