"""Services for the registry kernel (write side)."""

from registry_kernel.services.issue_ledger import (
    IssueLedger,
    SqlValidationIssueLedger,
    ValidationIssueLedger,
)
from registry_kernel.services.review_coordinator import SubmissionReviewCoordinator
from registry_kernel.services.workflow_store import (
    InMemoryWorkflowStore,
    SqlWorkflowStore,
    WorkflowStore,
)

__all__ = [
    "IssueLedger",
    "ValidationIssueLedger",
    "SqlValidationIssueLedger",
    "WorkflowStore",
    "InMemoryWorkflowStore",
    "SqlWorkflowStore",
    "SubmissionReviewCoordinator",
]
