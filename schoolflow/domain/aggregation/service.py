from __future__ import annotations

from typing import Any

from schoolflow.domain.workflow.entities import (
    EntityFilters,
    Period,
    SufficiencyResult,
    WorkflowKind,
    WorkflowStatus,
)
from schoolflow.domain.workflow.repository import EntityStore

APPROVED_STATUSES = (WorkflowStatus.APPROVED, WorkflowStatus.COMPLETED)


def sufficiency_check(request_amount: float, available_funds: float) -> SufficiencyResult:
    """Compare a requested amount against the funds available. Pure."""
    shortfall = max(0.0, float(request_amount) - float(available_funds))
    return SufficiencyResult(sufficient=shortfall == 0.0, shortfall=shortfall)


class AggregationService:
    """
    Financial views computed from the store on every call.

    Nothing is cached: two calls with no write in between see the same
    snapshot and therefore return the same value.
    """

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def _expenditures(self, period: Period | None = None, status: WorkflowStatus | None = None):
        filters = EntityFilters(
            kind=WorkflowKind.EXPENDITURE,
            academic_session=period.academic_session if period else None,
            term=period.term if period else None,
            status=status,
        )
        return self._store.find(filters)

    def total_approved(self, period: Period) -> float:
        """Sum of approved and completed expenditure amounts in ``period``."""
        return float(sum(
            e.amount
            for e in self._expenditures(period)
            if e.status in APPROVED_STATUSES
        ))

    def available_funds(self, period: Period, revenue: float) -> float:
        return float(revenue) - self.total_approved(period)

    def sufficiency_check(self, request_amount: float, available_funds: float) -> SufficiencyResult:
        return sufficiency_check(request_amount, available_funds)

    def total_by_status(self, status: WorkflowStatus, period: Period | None = None) -> float:
        return float(sum(e.amount for e in self._expenditures(period, status)))

    def financial_overview(self, period: Period, revenue: float) -> dict[str, Any]:
        entities = self._expenditures(period)
        approved = float(sum(e.amount for e in entities if e.status in APPROVED_STATUSES))
        pending = float(sum(e.amount for e in entities if e.status == WorkflowStatus.PENDING))
        return {
            "academic_session": period.academic_session,
            "term": period.term,
            "revenue": float(revenue),
            "total_approved": approved,
            "total_pending": pending,
            "available_funds": float(revenue) - approved,
            "expenditure_count": sum(1 for e in entities if e.status in APPROVED_STATUSES),
        }

    def statistics(self, kind: WorkflowKind, period: Period | None = None) -> dict[str, Any]:
        """Counts per status plus amount totals (amounts are zero for report kinds)."""
        entities = self._store.find(
            EntityFilters(
                kind=kind,
                academic_session=period.academic_session if period else None,
                term=period.term if period else None,
            )
        )
        counts = {status.value: 0 for status in WorkflowStatus}
        for entity in entities:
            counts[entity.status.value] += 1
        return {
            "kind": kind.value,
            "total": len(entities),
            "by_status": counts,
            "total_amount": float(sum(e.amount for e in entities)),
            "approved_amount": float(sum(e.amount for e in entities if e.status == WorkflowStatus.APPROVED)),
            "completed_amount": float(sum(e.amount for e in entities if e.status == WorkflowStatus.COMPLETED)),
        }
