import enum
import uuid

import pytest
from sqlalchemy import select

from tradesfinder.common.enums import ApplicationStatus, BadPayerStatus, JobStatus, QuoteStatus, ReviewStatus
from tradesfinder.common.exceptions import InvalidTransitionError
from tradesfinder.core.workflows.audit import apply_transition
from tradesfinder.core.workflows.definitions import (
    APPLICATION_WORKFLOW,
    BAD_PAYER_WORKFLOW,
    JOB_WORKFLOW,
    QUOTE_WORKFLOW,
    REVIEW_WORKFLOW,
)
from tradesfinder.core.workflows.machine import Actor, Workflow, transition
from tradesfinder.db.models.audit import AuditLog


def test_customer_closes_open_job():
    assert JOB_WORKFLOW.fire(JobStatus.OPEN, "close", Actor.CUSTOMER) == JobStatus.CLOSED.value


def test_closed_job_cannot_restart():
    with pytest.raises(InvalidTransitionError) as exc:
        JOB_WORKFLOW.fire(JobStatus.CLOSED, "start", Actor.SYSTEM)
    assert exc.value.status_code == 409
    assert exc.value.detail == "Cannot perform this action"


def test_closed_job_cannot_reopen():
    with pytest.raises(InvalidTransitionError):
        JOB_WORKFLOW.fire(JobStatus.CLOSED, "reopen", Actor.CUSTOMER)
    with pytest.raises(InvalidTransitionError):
        JOB_WORKFLOW.fire(JobStatus.CLOSED, "open", Actor.ADMIN)


def test_wrong_actor_is_rejected():
    # Only the system starts a job, by accepting an application
    with pytest.raises(InvalidTransitionError):
        JOB_WORKFLOW.fire(JobStatus.OPEN, "start", Actor.CUSTOMER)
    with pytest.raises(InvalidTransitionError):
        APPLICATION_WORKFLOW.fire(ApplicationStatus.PENDING, "withdraw", Actor.CUSTOMER)


def test_accept_from_any_open_application_state():
    for state in (ApplicationStatus.PENDING, ApplicationStatus.VIEWED, ApplicationStatus.SHORTLISTED):
        assert APPLICATION_WORKFLOW.fire(state, "accept", Actor.CUSTOMER) == ApplicationStatus.ACCEPTED.value


def test_quote_can_only_be_accepted_after_response():
    with pytest.raises(InvalidTransitionError):
        QUOTE_WORKFLOW.fire(QuoteStatus.VIEWED, "accept", Actor.CUSTOMER)
    assert QUOTE_WORKFLOW.fire(QuoteStatus.RESPONDED, "accept", Actor.CUSTOMER) == QuoteStatus.ACCEPTED.value


def test_admin_can_remoderate_reviews():
    assert REVIEW_WORKFLOW.fire(ReviewStatus.REJECTED, "approve", Actor.ADMIN) == ReviewStatus.APPROVED.value
    assert REVIEW_WORKFLOW.fire(ReviewStatus.APPROVED, "reject", Actor.ADMIN) == ReviewStatus.REJECTED.value
    assert REVIEW_WORKFLOW.can_fire(ReviewStatus.APPROVED, "flag", Actor.SYSTEM)


def test_allowed_actions_for_job_owner():
    assert JOB_WORKFLOW.allowed_actions(JobStatus.OPEN, Actor.CUSTOMER) == ["close"]
    assert JOB_WORKFLOW.allowed_actions(JobStatus.IN_PROGRESS, Actor.CUSTOMER) == ["close", "complete"]
    assert JOB_WORKFLOW.allowed_actions(JobStatus.OPEN, Actor.PUBLIC) == []


def test_terminal_states():
    assert JOB_WORKFLOW.is_terminal(JobStatus.CLOSED)
    assert JOB_WORKFLOW.is_terminal(JobStatus.COMPLETED)
    assert not JOB_WORKFLOW.is_terminal(JobStatus.EXPIRED)
    assert BAD_PAYER_WORKFLOW.is_terminal(BadPayerStatus.REMOVED)


def test_disputed_report_can_be_disputed_again():
    assert BAD_PAYER_WORKFLOW.fire(BadPayerStatus.DISPUTED, "dispute", Actor.PUBLIC) == BadPayerStatus.DISPUTED.value


def test_workflow_rejects_unknown_states():
    class Light(str, enum.Enum):
        RED = "RED"
        GREEN = "GREEN"

    with pytest.raises(ValueError):
        Workflow("Light", Light, [transition("go", ["RED"], "BLUE", Actor.SYSTEM)])


@pytest.mark.asyncio
async def test_apply_transition_writes_audit_row(db_session):
    class Thing:
        def __init__(self):
            self.id = uuid.uuid4()
            self.status = JobStatus.OPEN.value

    thing = Thing()
    actor_id = uuid.uuid4()
    previous = await apply_transition(db_session, JOB_WORKFLOW, thing, "close", Actor.CUSTOMER, actor_id)
    await db_session.flush()

    assert previous == JobStatus.OPEN.value
    assert thing.status == JobStatus.CLOSED.value

    entry = (
        await db_session.execute(select(AuditLog).where(AuditLog.entity_id == thing.id))
    ).scalar_one()
    assert entry.entity_type == "Job"
    assert entry.action == "close"
    assert entry.actor_id == actor_id
    assert entry.diff == {"from": "OPEN", "to": "CLOSED"}


@pytest.mark.asyncio
async def test_rejected_transition_leaves_status_unchanged(db_session):
    class Thing:
        id = uuid.uuid4()
        status = JobStatus.COMPLETED.value

    thing = Thing()
    with pytest.raises(InvalidTransitionError):
        await apply_transition(db_session, JOB_WORKFLOW, thing, "close", Actor.CUSTOMER, None)
    assert thing.status == JobStatus.COMPLETED.value
