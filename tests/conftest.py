"""
Pytest fixtures for the registry kernel test suite.

Provides:
- Structured log capture
- Deterministic clock
- Approval chains and a frozen chain registry
- SQLAlchemy sessions for the ORM-backed store and ledger

Environment Variables:
- DATABASE_URL: database URL for ORM-backed tests.  Defaults to an
  in-memory SQLite database; set a PostgreSQL URL to run the same tests
  against PostgreSQL (requires the ``postgres`` extra).
"""

import json
import logging
import os
from datetime import datetime
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from registry_config import build_chain_registry
from registry_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from registry_kernel.domain.chain_registry import ChainRegistry
from registry_kernel.domain.clock import DeterministicClock
from registry_kernel.domain.submission import Submission, SubmissionKind
from registry_kernel.domain.workflow import (
    ApprovalChainDefinition,
    AuthorityStep,
)
from registry_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from registry_kernel.services.issue_ledger import ValidationIssueLedger
from registry_kernel.services.review_coordinator import SubmissionReviewCoordinator
from registry_kernel.services.workflow_store import InMemoryWorkflowStore

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///:memory:"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture registry_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, coordinator):
            coordinator.begin_review(submission)
            logs = captured_logs()
            assert any(r["message"] == "review_started" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("registry_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock()


def make_chain(workflow_type: str, roles: tuple[str, ...]) -> ApprovalChainDefinition:
    """Build a chain whose steps follow ``roles`` in order."""
    return ApprovalChainDefinition(
        workflow_type=workflow_type,
        steps=tuple(
            AuthorityStep(step_index=i, authority_role=r, display_label=r.replace("_", " ").title())
            for i, r in enumerate(roles)
        ),
    )


@pytest.fixture
def empty_chain() -> ApprovalChainDefinition:
    return make_chain("empty", ())


@pytest.fixture
def chain_registry(empty_chain) -> ChainRegistry:
    """The packaged chains plus an empty chain for the edge case."""
    registry = build_chain_registry()
    unfrozen = ChainRegistry(registry.get_chain(t) for t in registry.workflow_types())
    unfrozen.register(empty_chain)
    return unfrozen.freeze()


@pytest.fixture
def ledger() -> ValidationIssueLedger:
    return ValidationIssueLedger()


@pytest.fixture
def store() -> InMemoryWorkflowStore:
    return InMemoryWorkflowStore()


@pytest.fixture
def coordinator(chain_registry, store, ledger, deterministic_clock) -> SubmissionReviewCoordinator:
    return SubmissionReviewCoordinator(chain_registry, store, ledger, deterministic_clock)


@pytest.fixture
def make_submission():
    """Factory for submissions with fresh IDs."""

    def _make(
        workflow_type: str = "candidate-vetting",
        kind: SubmissionKind = SubmissionKind.CANDIDATE,
        reference: str = "NOM-2025-00001",
        due_date: datetime | None = None,
    ) -> Submission:
        return Submission(
            submission_id=uuid4(),
            workflow_type=workflow_type,
            kind=kind,
            reference=reference,
            due_date=due_date,
        )

    return _make


# =============================================================================
# Database fixtures
# =============================================================================


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


@pytest.fixture(scope="session")
def db_engine():
    """Create engine and tables once per test session."""
    engine = init_engine_from_url(get_database_url())
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    """Per-test session; everything is rolled back afterwards."""
    s = get_session_factory()()
    try:
        yield s
    finally:
        s.rollback()
        s.close()
