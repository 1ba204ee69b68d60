from __future__ import annotations

import pytest

from schoolflow.core.errors import Forbidden, InvalidTransition, ValidationError
from schoolflow.domain.workflow import WorkflowAction, WorkflowKind, WorkflowPolicy, WorkflowStatus
from schoolflow.domain.workflow.policy import PolicyOutcome

from tests.fixtures.engine_factory import build_engine
from tests.fixtures.principals import (
    ACCOUNTANT,
    ADMIN,
    EXAM_OFFICER,
    FIRST_TERM,
    OTHER_ACCOUNTANT,
    SECOND_ADMIN,
    TEACHER,
    exam_report_payload,
    expenditure_payload,
    financial_report_payload,
)


def test_only_creator_roles_may_create() -> None:
    engine, store, _ = build_engine()

    with pytest.raises(Forbidden):
        engine.create(WorkflowKind.EXPENDITURE, expenditure_payload(), FIRST_TERM, TEACHER)
    with pytest.raises(Forbidden):
        engine.create(WorkflowKind.EXAM_REPORT, exam_report_payload(), FIRST_TERM, ACCOUNTANT)
    with pytest.raises(Forbidden):
        engine.create(WorkflowKind.FINANCIAL_REPORT, financial_report_payload(), FIRST_TERM, EXAM_OFFICER)

    assert store.find() == []


def test_admin_may_create_expenditures() -> None:
    engine, _, _ = build_engine()
    entity = engine.create(WorkflowKind.EXPENDITURE, expenditure_payload(), FIRST_TERM, ADMIN)
    assert entity.owner_id == ADMIN.id


def test_owner_cannot_approve_or_reject_own_entity() -> None:
    engine, store, _ = build_engine()
    kind = WorkflowKind.EXPENDITURE
    entity = engine.create(kind, expenditure_payload(), FIRST_TERM, ADMIN, submit=True)

    with pytest.raises(Forbidden):
        engine.approve(kind, entity.id, ADMIN)
    with pytest.raises(Forbidden):
        engine.reject(kind, entity.id, ADMIN, "self review")

    assert store.get_by_id(entity.id).status == WorkflowStatus.PENDING
    # another reviewer may
    assert engine.approve(kind, entity.id, SECOND_ADMIN).status == WorkflowStatus.APPROVED


def test_non_reviewer_cannot_approve() -> None:
    engine, store, _ = build_engine()
    kind = WorkflowKind.EXPENDITURE
    entity = engine.create(kind, expenditure_payload(), FIRST_TERM, ACCOUNTANT, submit=True)

    with pytest.raises(Forbidden):
        engine.approve(kind, entity.id, OTHER_ACCOUNTANT)

    assert store.get_by_id(entity.id).status == WorkflowStatus.PENDING


def test_only_owner_may_edit_submit_or_delete() -> None:
    engine, _, _ = build_engine()
    kind = WorkflowKind.EXPENDITURE
    entity = engine.create(kind, expenditure_payload(), FIRST_TERM, ACCOUNTANT)

    with pytest.raises(Forbidden):
        engine.edit(kind, entity.id, expenditure_payload(amount=1), OTHER_ACCOUNTANT)
    with pytest.raises(Forbidden):
        engine.submit(kind, entity.id, ADMIN)
    with pytest.raises(Forbidden):
        engine.delete(kind, entity.id, OTHER_ACCOUNTANT)


def test_wrong_state_is_reported_before_wrong_actor() -> None:
    engine, _, _ = build_engine()
    kind = WorkflowKind.EXPENDITURE
    entity = engine.create(kind, expenditure_payload(), FIRST_TERM, ACCOUNTANT)

    # a teacher approving a draft: both wrong, state wins
    with pytest.raises(InvalidTransition):
        engine.approve(kind, entity.id, TEACHER)


def test_reject_requires_a_reason() -> None:
    engine, store, _ = build_engine()
    kind = WorkflowKind.EXPENDITURE
    entity = engine.create(kind, expenditure_payload(), FIRST_TERM, ACCOUNTANT, submit=True)

    for reason in (None, "", "   "):
        with pytest.raises(ValidationError):
            engine.reject(kind, entity.id, ADMIN, reason)

    after = store.get_by_id(entity.id)
    assert after.status == WorkflowStatus.PENDING
    assert after.rejection_reason is None


def test_evaluate_returns_decisions_without_raising() -> None:
    engine, _, _ = build_engine()
    entity = engine.create(WorkflowKind.EXPENDITURE, expenditure_payload(), FIRST_TERM, ACCOUNTANT)
    policy = WorkflowPolicy()

    assert policy.evaluate(entity, WorkflowAction.SUBMIT, ACCOUNTANT).outcome == PolicyOutcome.ALLOW
    assert policy.evaluate(entity, WorkflowAction.SUBMIT, OTHER_ACCOUNTANT).outcome == PolicyOutcome.DENY
    assert policy.evaluate(entity, WorkflowAction.APPROVE, ADMIN).outcome == PolicyOutcome.INVALID_STATE
