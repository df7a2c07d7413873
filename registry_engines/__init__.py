"""
Module: registry_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for the
    kernel services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import registry_kernel/domain/ and registry_kernel.exceptions.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()``.  Timestamps are passed
      in as explicit parameters by the services.
    - Determinism: identical inputs always produce identical outputs.
"""

from registry_engines.membership_validation import (
    DEFAULT_RULES,
    MembershipListRules,
    validate_declared_total,
    validate_formats,
    validate_membership_list,
    validate_required_fields,
    validate_unique_fields,
)
from registry_engines.quorum import evaluate_quorum, format_turnout, require_quorum
from registry_engines.workflow import (
    create_instance,
    current_step,
    derive_aggregate_status,
    is_approved,
    is_overdue,
    is_pending,
    is_rejected,
    project_submission_status,
    record_decision,
)

__all__ = [
    # Workflow
    "create_instance",
    "current_step",
    "derive_aggregate_status",
    "is_approved",
    "is_overdue",
    "is_pending",
    "is_rejected",
    "project_submission_status",
    "record_decision",
    # Quorum
    "evaluate_quorum",
    "format_turnout",
    "require_quorum",
    # Membership lists
    "DEFAULT_RULES",
    "MembershipListRules",
    "validate_declared_total",
    "validate_formats",
    "validate_membership_list",
    "validate_required_fields",
    "validate_unique_fields",
]
