"""SQLAlchemy ORM models for the registry kernel."""

from registry_kernel.models.validation_issue import ValidationIssueModel
from registry_kernel.models.workflow import StepDecisionModel, WorkflowInstanceModel

__all__ = [
    "StepDecisionModel",
    "ValidationIssueModel",
    "WorkflowInstanceModel",
]
