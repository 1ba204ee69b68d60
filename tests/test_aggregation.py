from __future__ import annotations

from schoolflow.domain.aggregation import AggregationService, StaticRevenueSource, sufficiency_check
from schoolflow.domain.workflow import Period, WorkflowKind, WorkflowStatus

from tests.fixtures.engine_factory import build_engine
from tests.fixtures.principals import (
    ACCOUNTANT,
    ADMIN,
    EXAM_OFFICER,
    FIRST_TERM,
    SECOND_TERM,
    exam_report_payload,
    expenditure_payload,
)


def _approved(engine, amount, period=FIRST_TERM, **overrides):
    entity = engine.create(
        WorkflowKind.EXPENDITURE, expenditure_payload(amount=amount, **overrides), period, ACCOUNTANT, submit=True
    )
    return engine.approve(WorkflowKind.EXPENDITURE, entity.id, ADMIN)


def test_sufficiency_check_is_pure() -> None:
    assert sufficiency_check(50000, 40000).sufficient is False
    assert sufficiency_check(50000, 40000).shortfall == 10000
    assert sufficiency_check(100, 100).sufficient is True
    assert sufficiency_check(100, 100).shortfall == 0
    assert sufficiency_check(100, -20).shortfall == 120


def test_insufficient_funds_do_not_block_approval() -> None:
    engine, store, _ = build_engine()
    aggregation = AggregationService(store)
    kind = WorkflowKind.EXPENDITURE
    entity = engine.create(kind, expenditure_payload(amount=50000), FIRST_TERM, ACCOUNTANT, submit=True)

    result = aggregation.sufficiency_check(entity.amount, 40000)
    assert result.sufficient is False
    assert result.shortfall == 10000

    approved = engine.approve(kind, entity.id, ADMIN)
    assert approved.status == WorkflowStatus.APPROVED
    assert aggregation.total_approved(FIRST_TERM) == 50000


def test_total_approved_counts_approved_and_completed_only() -> None:
    engine, store, _ = build_engine()
    aggregation = AggregationService(store)
    kind = WorkflowKind.EXPENDITURE

    _approved(engine, 1000)
    done = _approved(engine, 2000)
    engine.complete(kind, done.id, ADMIN)
    engine.create(kind, expenditure_payload(amount=4000), FIRST_TERM, ACCOUNTANT)
    engine.create(kind, expenditure_payload(amount=8000), FIRST_TERM, ACCOUNTANT, submit=True)
    rejected = engine.create(kind, expenditure_payload(amount=16000), FIRST_TERM, ACCOUNTANT, submit=True)
    engine.reject(kind, rejected.id, ADMIN, "No")
    _approved(engine, 32000, period=SECOND_TERM)

    assert aggregation.total_approved(FIRST_TERM) == 3000
    assert aggregation.total_approved(SECOND_TERM) == 32000
    assert aggregation.total_approved(Period(academic_session="2023/2024")) == 35000
    assert aggregation.total_by_status(WorkflowStatus.PENDING, FIRST_TERM) == 8000


def test_total_approved_is_idempotent_and_ignores_reports() -> None:
    engine, store, _ = build_engine()
    aggregation = AggregationService(store)
    _approved(engine, 1234.5)
    report = engine.create(WorkflowKind.EXAM_REPORT, exam_report_payload(), FIRST_TERM, EXAM_OFFICER, submit=True)
    engine.approve(WorkflowKind.EXAM_REPORT, report.id, ADMIN)

    first = aggregation.total_approved(FIRST_TERM)
    second = aggregation.total_approved(FIRST_TERM)

    assert first == second == 1234.5


def test_empty_period_totals_zero() -> None:
    _, store, _ = build_engine()
    aggregation = AggregationService(store)

    assert aggregation.total_approved(FIRST_TERM) == 0.0
    assert aggregation.available_funds(FIRST_TERM, 500) == 500.0


def test_available_funds_can_go_negative() -> None:
    engine, store, _ = build_engine()
    aggregation = AggregationService(store)
    _approved(engine, 700)

    assert aggregation.available_funds(FIRST_TERM, 500) == -200


def test_financial_overview_and_statistics() -> None:
    engine, store, _ = build_engine()
    aggregation = AggregationService(store)
    _approved(engine, 100, category="equipment")
    engine.create(WorkflowKind.EXPENDITURE, expenditure_payload(amount=50), FIRST_TERM, ACCOUNTANT, submit=True)

    overview = aggregation.financial_overview(FIRST_TERM, 1000)
    assert overview["total_approved"] == 100
    assert overview["total_pending"] == 50
    assert overview["available_funds"] == 900
    assert overview["expenditure_count"] == 1

    stats = aggregation.statistics(WorkflowKind.EXPENDITURE)
    assert stats["total"] == 2
    assert stats["by_status"]["approved"] == 1
    assert stats["by_status"]["pending"] == 1
    assert stats["by_status"]["draft"] == 0
    assert stats["total_amount"] == 150
    assert stats["approved_amount"] == 100


def test_static_revenue_sums_terms_for_whole_session() -> None:
    source = StaticRevenueSource({"2023/2024|First Term": 90000})
    source.set(SECOND_TERM, 60000)

    assert source.revenue_for(FIRST_TERM) == 90000
    assert source.revenue_for(Period(academic_session="2023/2024")) == 150000
    assert source.revenue_for(Period(academic_session="2024/2025", term="First Term")) == 0
