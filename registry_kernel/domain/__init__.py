"""
Pure domain layer.

This module contains immutable value objects with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the Clock abstraction itself)
- I/O
"""

from registry_kernel.domain.chain_registry import ChainRegistry
from registry_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from registry_kernel.domain.quorum import QuorumResult
from registry_kernel.domain.submission import (
    ReviewState,
    Submission,
    SubmissionKind,
    SubmissionStatus,
)
from registry_kernel.domain.validation import (
    IssueFilter,
    IssueSeverity,
    IssueSummary,
    IssueType,
    NewValidationIssue,
    ValidationIssue,
    summarize_issues,
)
from registry_kernel.domain.workflow import (
    TERMINAL_WORKFLOW_STATES,
    ActingIdentity,
    AggregateStatus,
    ApprovalChainDefinition,
    AuthorityStep,
    StepDecision,
    StepDecisionStatus,
    WorkflowInstance,
    WorkflowState,
)

__all__ = [
    # Chains
    "AuthorityStep",
    "ApprovalChainDefinition",
    "ChainRegistry",
    # Workflow
    "ActingIdentity",
    "AggregateStatus",
    "StepDecision",
    "StepDecisionStatus",
    "TERMINAL_WORKFLOW_STATES",
    "WorkflowInstance",
    "WorkflowState",
    # Validation
    "IssueFilter",
    "IssueSeverity",
    "IssueSummary",
    "IssueType",
    "NewValidationIssue",
    "ValidationIssue",
    "summarize_issues",
    # Submission
    "ReviewState",
    "Submission",
    "SubmissionKind",
    "SubmissionStatus",
    # Quorum
    "QuorumResult",
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
]
