"""
registry_kernel.services.workflow_store -- Persistence for workflow instances.

Responsibility:
    Store and load ``WorkflowInstance`` snapshots.  The coordinator depends
    on the ``WorkflowStore`` protocol only; the host picks the in-memory
    store or the SQLAlchemy-backed one.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Terminal instances are never overwritten (both stores).
    - Instances of one submission are returned in review-pass order.

Failure modes:
    - WorkflowNotFoundError on an unknown workflow_id.
    - ImmutabilityViolationError when saving over a terminal instance.
"""

from __future__ import annotations

import threading
from typing import Protocol
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from registry_kernel.domain.workflow import WorkflowInstance
from registry_kernel.exceptions import ImmutabilityViolationError, WorkflowNotFoundError
from registry_kernel.models.workflow import WorkflowInstanceModel


class WorkflowStore(Protocol):
    """Storage contract consumed by SubmissionReviewCoordinator."""

    def save(self, instance: WorkflowInstance) -> None:
        """Insert a new instance or replace the stored snapshot."""
        ...

    def get(self, workflow_id: UUID) -> WorkflowInstance:
        ...

    def get_for_update(self, workflow_id: UUID) -> WorkflowInstance:
        """Load an instance for a read-then-write transition."""
        ...

    def latest_for_submission(self, submission_id: UUID) -> WorkflowInstance | None:
        ...

    def list_for_submission(self, submission_id: UUID) -> list[WorkflowInstance]:
        ...


class InMemoryWorkflowStore:
    """Process-local store; safe for concurrent use."""

    def __init__(self) -> None:
        self._instances: dict[UUID, WorkflowInstance] = {}
        self._by_submission: dict[UUID, list[UUID]] = {}
        self._lock = threading.Lock()

    def save(self, instance: WorkflowInstance) -> None:
        with self._lock:
            existing = self._instances.get(instance.workflow_id)
            if existing is None:
                self._by_submission.setdefault(instance.submission_id, []).append(
                    instance.workflow_id,
                )
            elif existing.is_terminal and existing != instance:
                raise ImmutabilityViolationError(
                    entity_type="WorkflowInstance",
                    entity_id=str(instance.workflow_id),
                    reason="Terminated workflow instances are immutable -- cannot modify",
                )
            self._instances[instance.workflow_id] = instance

    def get(self, workflow_id: UUID) -> WorkflowInstance:
        instance = self._instances.get(workflow_id)
        if instance is None:
            raise WorkflowNotFoundError(str(workflow_id))
        return instance

    def get_for_update(self, workflow_id: UUID) -> WorkflowInstance:
        # Callers serialize on the per-instance lock held by the coordinator.
        return self.get(workflow_id)

    def latest_for_submission(self, submission_id: UUID) -> WorkflowInstance | None:
        ids = self._by_submission.get(submission_id)
        if not ids:
            return None
        return self._instances[ids[-1]]

    def list_for_submission(self, submission_id: UUID) -> list[WorkflowInstance]:
        with self._lock:
            ids = list(self._by_submission.get(submission_id, ()))
        return [self._instances[i] for i in ids]


class SqlWorkflowStore:
    """SQLAlchemy-backed store bound to one session.

    ``get_for_update`` takes a row lock (SELECT ... FOR UPDATE) so two hosts
    deciding the same instance are serialized by the database.  The caller
    owns the transaction (see ``registry_kernel.db.session_scope``).
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def save(self, instance: WorkflowInstance) -> None:
        model = self._find(instance.workflow_id)

        if model is None:
            model = WorkflowInstanceModel.from_dto(instance)
            model.pass_number = self._next_pass_number(instance.submission_id)
            self._session.add(model)
        else:
            # Touch only rows that changed: decided rows refuse any UPDATE.
            for row, decision in zip(model.decisions, instance.decisions):
                if row.to_dto() != decision:
                    row.apply_dto(decision)
            if not model.has_status(instance):
                model.apply_dto(instance)

        self._session.flush()

    def get(self, workflow_id: UUID) -> WorkflowInstance:
        return self._load(workflow_id, for_update=False).to_dto()

    def get_for_update(self, workflow_id: UUID) -> WorkflowInstance:
        return self._load(workflow_id, for_update=True).to_dto()

    def latest_for_submission(self, submission_id: UUID) -> WorkflowInstance | None:
        model = self._session.execute(
            select(WorkflowInstanceModel)
            .where(WorkflowInstanceModel.submission_id == submission_id)
            .order_by(WorkflowInstanceModel.pass_number.desc())
            .limit(1)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def list_for_submission(self, submission_id: UUID) -> list[WorkflowInstance]:
        models = self._session.execute(
            select(WorkflowInstanceModel)
            .where(WorkflowInstanceModel.submission_id == submission_id)
            .order_by(WorkflowInstanceModel.pass_number)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def _find(self, workflow_id: UUID) -> WorkflowInstanceModel | None:
        return self._session.execute(
            select(WorkflowInstanceModel).where(
                WorkflowInstanceModel.workflow_id == workflow_id,
            )
        ).scalar_one_or_none()

    def _load(self, workflow_id: UUID, for_update: bool) -> WorkflowInstanceModel:
        stmt = select(WorkflowInstanceModel).where(
            WorkflowInstanceModel.workflow_id == workflow_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        model = self._session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise WorkflowNotFoundError(str(workflow_id))
        return model

    def _next_pass_number(self, submission_id: UUID) -> int:
        current = self._session.execute(
            select(func.max(WorkflowInstanceModel.pass_number)).where(
                WorkflowInstanceModel.submission_id == submission_id,
            )
        ).scalar_one()
        return (current or 0) + 1
