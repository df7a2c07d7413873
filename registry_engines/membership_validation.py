"""
Pre-packaged validators for uploaded membership lists.

Each validator is pure and returns ``NewValidationIssue`` drafts; the
ledger assigns identifiers when they are recorded.  Row references are the
row's ``item_ref`` value when present, otherwise its 1-based position.

Architecture: registry_engines. ZERO I/O. Imports only from registry_kernel/domain/.
"""

from __future__ import annotations

import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Mapping, Sequence

from registry_kernel.domain.validation import (
    IssueSeverity,
    IssueType,
    NewValidationIssue,
)

Row = Mapping[str, Any]

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class MembershipListRules:
    """Field rules applied to every row of a membership list."""

    required_fields: tuple[str, ...] = ("member_id", "first_name", "last_name")
    recommended_fields: tuple[str, ...] = ("national_id",)
    unique_fields: tuple[str, ...] = ("member_id", "national_id", "email")
    email_fields: tuple[str, ...] = ("email",)
    date_fields: tuple[str, ...] = ("date_of_birth", "membership_start_date")


DEFAULT_RULES = MembershipListRules()


def item_ref(row: Row, position: int) -> str:
    """Reference for a row: its ``item_ref`` key, else the 1-based row number."""
    ref = row.get("item_ref")
    return str(ref) if ref not in (None, "") else str(position + 1)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


# -----------------------------------------------------------------------------
# Row-level validators
# -----------------------------------------------------------------------------


def validate_required_fields(
    rows: Sequence[Row],
    fields: tuple[str, ...],
    severity: IssueSeverity = IssueSeverity.ERROR,
) -> list[NewValidationIssue]:
    """Flag rows where a listed field is missing or blank."""
    issues: list[NewValidationIssue] = []
    for position, row in enumerate(rows):
        for field_name in fields:
            if _is_blank(row.get(field_name)):
                issues.append(
                    NewValidationIssue(
                        issue_type=IssueType.MISSING_DATA,
                        severity=severity,
                        description=f"{field_name} is missing",
                        affected_item_ref=item_ref(row, position),
                        field_name=field_name,
                    )
                )
    return issues


def validate_formats(
    rows: Sequence[Row],
    email_fields: tuple[str, ...] = DEFAULT_RULES.email_fields,
    date_fields: tuple[str, ...] = DEFAULT_RULES.date_fields,
) -> list[NewValidationIssue]:
    """Flag malformed email addresses and non-ISO dates. Blank values are skipped."""
    issues: list[NewValidationIssue] = []
    for position, row in enumerate(rows):
        for field_name in email_fields:
            value = row.get(field_name)
            if _is_blank(value):
                continue
            if not isinstance(value, str) or not _EMAIL_PATTERN.match(value.strip()):
                issues.append(
                    _format_issue(row, position, field_name, f"{field_name} is not a valid email address: {value!r}")
                )
        for field_name in date_fields:
            value = row.get(field_name)
            if _is_blank(value) or isinstance(value, (date, datetime)):
                continue
            try:
                date.fromisoformat(str(value))
            except ValueError:
                issues.append(
                    _format_issue(row, position, field_name, f"{field_name} is not an ISO date (YYYY-MM-DD): {value!r}")
                )
    return issues


def _format_issue(row: Row, position: int, field_name: str, description: str) -> NewValidationIssue:
    return NewValidationIssue(
        issue_type=IssueType.FORMAT_ERROR,
        severity=IssueSeverity.ERROR,
        description=description,
        affected_item_ref=item_ref(row, position),
        field_name=field_name,
    )


# -----------------------------------------------------------------------------
# Cross-row validators (whole list)
# -----------------------------------------------------------------------------


def validate_unique_fields(
    rows: Sequence[Row],
    fields: tuple[str, ...],
) -> list[NewValidationIssue]:
    """Flag every repeat of a value after its first occurrence.

    Comparison is case-insensitive and ignores surrounding whitespace;
    blank values are never duplicates.
    """
    issues: list[NewValidationIssue] = []
    for field_name in fields:
        first_seen: dict[str, str] = {}
        repeats: dict[str, list[str]] = defaultdict(list)
        for position, row in enumerate(rows):
            value = row.get(field_name)
            if _is_blank(value):
                continue
            key = str(value).strip().casefold()
            ref = item_ref(row, position)
            if key in first_seen:
                repeats[key].append(ref)
            else:
                first_seen[key] = ref
        for key, refs in repeats.items():
            for ref in refs:
                issues.append(
                    NewValidationIssue(
                        issue_type=IssueType.DUPLICATE,
                        severity=IssueSeverity.ERROR,
                        description=(
                            f"Duplicate {field_name} also used by item {first_seen[key]}"
                        ),
                        affected_item_ref=ref,
                        field_name=field_name,
                    )
                )
    return issues


def validate_declared_total(
    rows: Sequence[Row],
    declared_total: int | None,
) -> list[NewValidationIssue]:
    """Flag a list whose declared member total differs from its row count."""
    if declared_total is None or declared_total == len(rows):
        return []
    return [
        NewValidationIssue(
            issue_type=IssueType.INCONSISTENT_TOTAL,
            severity=IssueSeverity.WARNING,
            description=(
                f"Total member count {declared_total} does not match "
                f"the {len(rows)} records in the file"
            ),
        )
    ]


def validate_membership_list(
    rows: Sequence[Row],
    declared_total: int | None = None,
    rules: MembershipListRules = DEFAULT_RULES,
) -> list[NewValidationIssue]:
    """Run every membership-list validator in a fixed order."""
    issues: list[NewValidationIssue] = []
    issues.extend(validate_required_fields(rows, rules.required_fields, IssueSeverity.ERROR))
    issues.extend(validate_required_fields(rows, rules.recommended_fields, IssueSeverity.WARNING))
    issues.extend(validate_formats(rows, rules.email_fields, rules.date_fields))
    issues.extend(validate_unique_fields(rows, rules.unique_fields))
    issues.extend(validate_declared_total(rows, declared_total))
    return issues
