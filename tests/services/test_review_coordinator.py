"""
Tests for SubmissionReviewCoordinator.

Tests cover:
- ingest: validator issues recorded in the ledger
- begin_review: reviewability gate, unknown workflow types, one active review
- decide: routing into the state machine, status projection, logging
- get_review_state / submission_status / review_history read model,
  including due date and overdue flag
- certify_election quorum gate
- The same flow over the SQLAlchemy-backed store and ledger
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from registry_kernel.domain.submission import Submission, SubmissionKind, SubmissionStatus
from registry_kernel.domain.validation import IssueSeverity, IssueType
from registry_kernel.domain.workflow import (
    ActingIdentity,
    AggregateStatus,
    StepDecisionStatus,
)
from registry_kernel.exceptions import (
    InstanceTerminatedError,
    InvalidStepOrderError,
    QuorumNotMetError,
    ReviewAlreadyActiveError,
    ReviewNotApprovedError,
    ReviewNotFoundError,
    SubmissionNotReviewableError,
    UnauthorizedAuthorityError,
    UnknownWorkflowTypeError,
)
from registry_kernel.services.issue_ledger import SqlValidationIssueLedger
from registry_kernel.services.review_coordinator import SubmissionReviewCoordinator
from registry_kernel.services.workflow_store import SqlWorkflowStore

APPROVE = StepDecisionStatus.APPROVED
REJECT = StepDecisionStatus.REJECTED

CANDIDATE_ROLES = ("registrar", "deputy_registrar", "oir_officer", "electoral_commission")
LIST_ROLES = ("initial_review", "registrar_review", "deputy_registrar_review", "final_approval")


def as_role(role: str) -> ActingIdentity:
    return ActingIdentity(identity_id=f"{role}-1", role=role)


def clean_rows() -> list[dict]:
    return [
        {
            "member_id": f"M-{i}",
            "first_name": "Tama",
            "last_name": "Wiremu",
            "national_id": f"NI-{i}",
            "email": f"m{i}@example.org",
        }
        for i in range(1, 4)
    ]


def approve_all(coordinator, submission_id, roles=CANDIDATE_ROLES):
    instance = None
    for i, role in enumerate(roles):
        instance = coordinator.decide(submission_id, i, APPROVE, as_role(role))
    return instance


@pytest.fixture
def membership_list(make_submission) -> Submission:
    return make_submission(
        workflow_type="membership-list-review",
        kind=SubmissionKind.MEMBERSHIP_LIST,
        reference="ML-2025-0042",
    )


# =========================================================================
# Ingestion
# =========================================================================


class TestIngest:

    def test_clean_list_records_nothing(self, coordinator, ledger, membership_list):
        assert coordinator.ingest(membership_list, clean_rows(), declared_total=3) == []
        assert ledger.list_issues(membership_list.submission_id) == []

    def test_issues_recorded_in_order(self, coordinator, ledger, membership_list):
        rows = clean_rows()
        rows[1]["member_id"] = ""
        issue_ids = coordinator.ingest(membership_list, rows, declared_total=5)

        issues = ledger.list_issues(membership_list.submission_id)
        assert [i.issue_id for i in issues] == issue_ids
        assert [i.issue_type for i in issues] == [
            IssueType.MISSING_DATA,
            IssueType.INCONSISTENT_TOTAL,
        ]
        assert issues[0].affected_item_ref == "2"

    def test_ingest_logged(self, coordinator, membership_list, captured_logs):
        coordinator.ingest(membership_list, clean_rows(), declared_total=4)
        record = next(r for r in captured_logs() if r["message"] == "submission_ingested")
        assert record["row_count"] == 3
        assert record["issue_count"] == 1


# =========================================================================
# begin_review
# =========================================================================


class TestBeginReview:

    def test_creates_pending_instance(self, coordinator, make_submission):
        submission = make_submission()
        instance = coordinator.begin_review(submission)

        assert instance.workflow_type == "candidate-vetting"
        assert instance.submission_id == submission.submission_id
        assert instance.status == AggregateStatus.pending_step(0)
        assert coordinator.submission_status(submission.submission_id) == SubmissionStatus.UNDER_REVIEW

    def test_blocking_errors_prevent_review(self, coordinator, ledger, membership_list):
        rows = clean_rows()
        rows[0]["last_name"] = None
        coordinator.ingest(membership_list, rows)

        with pytest.raises(SubmissionNotReviewableError) as exc_info:
            coordinator.begin_review(membership_list)

        blocking = exc_info.value.blocking_issues
        assert len(blocking) == 1
        assert blocking[0].field_name == "last_name"
        assert coordinator.submission_status(membership_list.submission_id) == SubmissionStatus.SUBMITTED

    def test_resolving_issue_allows_review(self, coordinator, ledger, membership_list):
        rows = clean_rows()
        rows[0]["last_name"] = None
        issue_ids = coordinator.ingest(membership_list, rows)

        with pytest.raises(SubmissionNotReviewableError):
            coordinator.begin_review(membership_list)

        for issue_id in issue_ids:
            ledger.mark_resolved(issue_id)
        instance = coordinator.begin_review(membership_list)
        assert instance.status == AggregateStatus.pending_step(0)

    def test_warnings_do_not_block(self, coordinator, ledger, membership_list):
        coordinator.ingest(membership_list, clean_rows(), declared_total=10)
        assert ledger.list_issues(membership_list.submission_id)[0].severity == IssueSeverity.WARNING
        coordinator.begin_review(membership_list)

    def test_blocked_review_logged(self, coordinator, membership_list, captured_logs):
        rows = clean_rows()
        rows[2]["first_name"] = ""
        coordinator.ingest(membership_list, rows)
        with pytest.raises(SubmissionNotReviewableError):
            coordinator.begin_review(membership_list)

        record = next(r for r in captured_logs() if r["message"] == "review_blocked")
        assert record["level"] == "WARNING"
        assert record["blocking_issue_count"] == 1
        assert record["submission_id"] == str(membership_list.submission_id)

    def test_unknown_workflow_type(self, coordinator, make_submission):
        with pytest.raises(UnknownWorkflowTypeError):
            coordinator.begin_review(make_submission(workflow_type="no-such-chain"))

    def test_one_active_review(self, coordinator, make_submission):
        submission = make_submission()
        first = coordinator.begin_review(submission)
        with pytest.raises(ReviewAlreadyActiveError) as exc_info:
            coordinator.begin_review(submission)
        assert exc_info.value.workflow_id == str(first.workflow_id)

    def test_rejected_submission_begins_new_pass(self, coordinator, make_submission):
        submission = make_submission()
        first = coordinator.begin_review(submission)
        coordinator.decide(submission.submission_id, 0, REJECT, as_role("registrar"))

        second = coordinator.begin_review(submission)
        assert second.workflow_id != first.workflow_id
        assert second.status == AggregateStatus.pending_step(0)

        history = coordinator.review_history(submission.submission_id)
        assert [h.workflow_id for h in history] == [first.workflow_id, second.workflow_id]
        assert history[0].status == AggregateStatus.rejected(0)

    def test_empty_chain_approves_immediately(self, coordinator, make_submission, captured_logs):
        submission = make_submission(workflow_type="empty", kind=SubmissionKind.WORKFLOW_ITEM)
        instance = coordinator.begin_review(submission)

        assert instance.status == AggregateStatus.approved()
        assert instance.completed_at == instance.created_at
        assert coordinator.submission_status(submission.submission_id) == SubmissionStatus.APPROVED
        messages = [r["message"] for r in captured_logs()]
        assert "review_started" in messages
        assert "review_completed" in messages


# =========================================================================
# decide
# =========================================================================


class TestDecide:

    def test_full_candidate_vetting(self, coordinator, make_submission, deterministic_clock):
        submission = make_submission()
        coordinator.begin_review(submission)

        for i, role in enumerate(CANDIDATE_ROLES[:-1]):
            deterministic_clock.advance(60)
            instance = coordinator.decide(submission.submission_id, i, APPROVE, as_role(role))
            assert instance.status == AggregateStatus.pending_step(i + 1)
            assert instance.completed_at is None

        deterministic_clock.advance(60)
        final = coordinator.decide(
            submission.submission_id, 3, APPROVE, as_role("electoral_commission"), "Cleared",
        )
        assert final.status == AggregateStatus.approved()
        assert final.completed_at == deterministic_clock.now()
        assert final.decisions[3].comments == "Cleared"
        assert coordinator.submission_status(submission.submission_id) == SubmissionStatus.APPROVED

    def test_rejection_projects_rejected(self, coordinator, make_submission):
        submission = make_submission()
        coordinator.begin_review(submission)
        coordinator.decide(submission.submission_id, 0, APPROVE, as_role("registrar"))
        instance = coordinator.decide(
            submission.submission_id, 1, REJECT, as_role("deputy_registrar"), "Ineligible",
        )

        assert instance.status == AggregateStatus.rejected(1)
        assert coordinator.submission_status(submission.submission_id) == SubmissionStatus.REJECTED
        with pytest.raises(InstanceTerminatedError):
            coordinator.decide(submission.submission_id, 2, APPROVE, as_role("oir_officer"))

    def test_out_of_order_leaves_state_untouched(self, coordinator, make_submission):
        submission = make_submission()
        coordinator.begin_review(submission)
        with pytest.raises(InvalidStepOrderError):
            coordinator.decide(submission.submission_id, 2, APPROVE, as_role("oir_officer"))

        state = coordinator.get_review_state(submission.submission_id)
        assert state.instance.status == AggregateStatus.pending_step(0)

    def test_wrong_authority(self, coordinator, make_submission):
        submission = make_submission()
        coordinator.begin_review(submission)
        with pytest.raises(UnauthorizedAuthorityError):
            coordinator.decide(submission.submission_id, 0, APPROVE, as_role("oir_officer"))

    def test_no_review(self, coordinator):
        with pytest.raises(ReviewNotFoundError):
            coordinator.decide(uuid4(), 0, APPROVE, as_role("registrar"))

    def test_decision_logged_with_context(self, coordinator, make_submission, captured_logs):
        submission = make_submission()
        instance = coordinator.begin_review(submission)
        coordinator.decide(submission.submission_id, 0, REJECT, as_role("registrar"))

        logs = captured_logs()
        decided = next(r for r in logs if r["message"] == "decision_recorded")
        assert decided["workflow_id"] == str(instance.workflow_id)
        assert decided["actor_id"] == "registrar-1"
        assert decided["authority_role"] == "registrar"
        assert decided["decision"] == "rejected"
        assert decided["status"] == "rejected(0)"
        assert decided["submission_status"] == "rejected"

        completed = next(r for r in logs if r["message"] == "review_completed")
        assert completed["status"] == "rejected(0)"


# =========================================================================
# Read model
# =========================================================================


class TestReviewState:

    def test_before_review(self, coordinator, membership_list):
        coordinator.ingest(membership_list, clean_rows(), declared_total=2)
        state = coordinator.get_review_state(membership_list.submission_id)

        assert state.submission_status == SubmissionStatus.SUBMITTED
        assert state.instance is None
        assert state.current_step is None
        assert len(state.issues) == 1
        assert state.issue_summary.warning_count == 1

    def test_during_review(self, coordinator, membership_list):
        coordinator.begin_review(membership_list)
        coordinator.decide(membership_list.submission_id, 0, APPROVE, as_role("initial_review"))

        state = coordinator.get_review_state(membership_list.submission_id)
        assert state.submission_status == SubmissionStatus.UNDER_REVIEW
        assert state.current_step.authority_role == "registrar_review"
        assert state.current_step.display_label == "Registrar Review"

    def test_repeated_reads_agree(self, coordinator, membership_list):
        coordinator.begin_review(membership_list)
        coordinator.decide(membership_list.submission_id, 0, APPROVE, as_role("initial_review"))

        first = coordinator.get_review_state(membership_list.submission_id)
        second = coordinator.get_review_state(membership_list.submission_id)
        assert first == second
        assert first.submission_status == coordinator.submission_status(membership_list.submission_id)

    def test_after_approval(self, coordinator, membership_list):
        coordinator.begin_review(membership_list)
        approve_all(coordinator, membership_list.submission_id, LIST_ROLES)

        state = coordinator.get_review_state(membership_list.submission_id)
        assert state.submission_status == SubmissionStatus.APPROVED
        assert state.current_step is None

    def test_no_due_date_is_never_overdue(self, coordinator, membership_list, deterministic_clock):
        coordinator.begin_review(membership_list)
        deterministic_clock.advance(365 * 24 * 3600)

        state = coordinator.get_review_state(membership_list.submission_id)
        assert state.due_date is None
        assert state.is_overdue is False

    def test_due_date_not_yet_passed(self, coordinator, make_submission, deterministic_clock):
        due = deterministic_clock.now() + timedelta(days=7)
        submission = make_submission(due_date=due)
        coordinator.begin_review(submission)

        deterministic_clock.advance(6 * 24 * 3600)
        state = coordinator.get_review_state(submission.submission_id)
        assert state.due_date == due
        assert state.is_overdue is False

    def test_due_date_passed_is_overdue(self, coordinator, make_submission, deterministic_clock):
        due = deterministic_clock.now() + timedelta(days=7)
        submission = make_submission(due_date=due)
        coordinator.begin_review(submission)

        deterministic_clock.advance(8 * 24 * 3600)
        state = coordinator.get_review_state(submission.submission_id)
        assert state.is_overdue is True
        assert state.submission_status == SubmissionStatus.UNDER_REVIEW

    def test_completed_review_is_not_overdue(self, coordinator, make_submission, deterministic_clock):
        submission = make_submission(due_date=deterministic_clock.now() + timedelta(days=1))
        coordinator.begin_review(submission)
        deterministic_clock.advance(2 * 24 * 3600)
        approve_all(coordinator, submission.submission_id)

        state = coordinator.get_review_state(submission.submission_id)
        assert state.submission_status == SubmissionStatus.APPROVED
        assert state.is_overdue is False


# =========================================================================
# Elections
# =========================================================================


class TestCertifyElection:

    def test_approved_and_quorate(self, coordinator, make_submission, captured_logs):
        submission = make_submission(workflow_type="workflow-item", kind=SubmissionKind.WORKFLOW_ITEM)
        coordinator.begin_review(submission)
        approve_all(coordinator, submission.submission_id, ("reviewer", "registrar"))

        result = coordinator.certify_election(submission.submission_id, 4300, 3225, 50)
        assert result.is_met
        assert any(r["message"] == "election_certified" for r in captured_logs())

    def test_quorum_not_met(self, coordinator, make_submission):
        submission = make_submission(workflow_type="workflow-item", kind=SubmissionKind.WORKFLOW_ITEM)
        coordinator.begin_review(submission)
        approve_all(coordinator, submission.submission_id, ("reviewer", "registrar"))

        with pytest.raises(QuorumNotMetError) as exc_info:
            coordinator.certify_election(submission.submission_id, 100, 49, 50)
        assert exc_info.value.result.shortfall_count == 1

    def test_requires_approved_review(self, coordinator, make_submission):
        submission = make_submission()
        coordinator.begin_review(submission)
        with pytest.raises(ReviewNotApprovedError) as exc_info:
            coordinator.certify_election(submission.submission_id, 100, 80, 50)
        assert exc_info.value.status == "pending_step(0)"

    def test_requires_review(self, coordinator):
        with pytest.raises(ReviewNotFoundError):
            coordinator.certify_election(uuid4(), 100, 80, 50)


# =========================================================================
# SQL-backed collaborators
# =========================================================================


class TestWithSqlCollaborators:

    @pytest.fixture
    def sql_ledger(self, session):
        return SqlValidationIssueLedger(session)

    @pytest.fixture
    def sql_coordinator(self, session, sql_ledger, chain_registry, deterministic_clock):
        return SubmissionReviewCoordinator(
            chain_registry,
            SqlWorkflowStore(session),
            sql_ledger,
            deterministic_clock,
        )

    def test_membership_list_end_to_end(self, sql_coordinator, sql_ledger, membership_list):
        rows = clean_rows()
        rows[0]["email"] = "not-an-email"
        issue_ids = sql_coordinator.ingest(membership_list, rows, declared_total=3)
        assert len(issue_ids) == 1

        with pytest.raises(SubmissionNotReviewableError):
            sql_coordinator.begin_review(membership_list)

        sql_ledger.mark_resolved(issue_ids[0])
        sql_coordinator.begin_review(membership_list)
        final = approve_all(sql_coordinator, membership_list.submission_id, LIST_ROLES)

        assert final.status == AggregateStatus.approved()
        state = sql_coordinator.get_review_state(membership_list.submission_id)
        assert state.submission_status == SubmissionStatus.APPROVED
        assert [d.decided_by for d in state.instance.decisions] == [
            f"{role}-1" for role in LIST_ROLES
        ]
        assert state.issue_summary.unresolved_count == 0

    def test_rejected_pass_history(self, sql_coordinator, make_submission):
        submission = make_submission()
        sql_coordinator.begin_review(submission)
        sql_coordinator.decide(submission.submission_id, 0, REJECT, as_role("registrar"))
        sql_coordinator.begin_review(submission)

        history = sql_coordinator.review_history(submission.submission_id)
        assert [h.status for h in history] == [
            AggregateStatus.rejected(0),
            AggregateStatus.pending_step(0),
        ]

    def test_overdue_read_from_database(self, sql_coordinator, make_submission, deterministic_clock):
        submission = make_submission(due_date=deterministic_clock.now() + timedelta(hours=4))
        sql_coordinator.begin_review(submission)
        deterministic_clock.advance(5 * 3600)

        state = sql_coordinator.get_review_state(submission.submission_id)
        assert state.due_date == submission.due_date
        assert state.is_overdue is True
