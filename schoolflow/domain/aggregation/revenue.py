"""Revenue sources: the payments subsystem as seen by the aggregation service."""

from __future__ import annotations

from typing import Protocol

import httpx

from schoolflow.core.errors import WorkflowError
from schoolflow.observability.tracing import log_event, new_trace_id
from schoolflow.domain.workflow.entities import Period


class RevenueUnavailable(WorkflowError):
    """The payments service could not supply a revenue figure."""
    pass


class RevenueSource(Protocol):
    def revenue_for(self, period: Period) -> float:
        ...


class StaticRevenueSource:
    """
    Revenue from a fixed table keyed by ``"<session>|<term>"``.

    A session-wide query (no term) sums every term of that session.
    """

    def __init__(self, revenue: dict[str, float] | None = None) -> None:
        self._revenue = dict(revenue or {})

    def set(self, period: Period, amount: float) -> None:
        self._revenue[period.key()] = float(amount)

    def revenue_for(self, period: Period) -> float:
        if period.term is not None:
            return float(self._revenue.get(period.key(), 0.0))
        prefix = f"{period.academic_session}|"
        return float(sum(v for k, v in self._revenue.items() if k.startswith(prefix)))


class HttpRevenueSource:
    """Ask the payments service for the revenue collected in a period.

    Expects ``GET <base_url>/payments/overview?session=..&term=..`` to return a
    JSON object carrying ``total_revenue`` (or ``totalRevenue``).
    """

    def __init__(self, base_url: str, *, timeout_s: float = 5.0, client: httpx.Client | None = None) -> None:
        """Create an HTTP revenue source.

        Args:
            base_url: Base URL of the payments service (e.g. http://payments-svc:8002).
            timeout_s: Per-request timeout in seconds.
            client: Optional injected httpx client for testing / transport control.
        """
        self._base_url = base_url.rstrip('/')
        self._timeout_s = timeout_s
        self._client = client

    def revenue_for(self, period: Period) -> float:
        url = f'{self._base_url}/payments/overview'
        params = {'session': period.academic_session}
        if period.term:
            params['term'] = period.term

        try:
            if self._client is not None:
                resp = self._client.get(url, params=params, timeout=self._timeout_s)
                resp.raise_for_status()
                body = resp.json()
            else:
                with httpx.Client() as client:
                    resp = client.get(url, params=params, timeout=self._timeout_s)
                    resp.raise_for_status()
                    body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            log_event(
                "revenue.fetch_failed",
                trace_id=new_trace_id(),
                session=period.academic_session,
                term=period.term,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise RevenueUnavailable(f'Payments service unavailable: {exc}') from exc

        if not isinstance(body, dict):
            raise RevenueUnavailable('Payments service returned an unexpected body')
        value = body.get('total_revenue', body.get('totalRevenue'))
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise RevenueUnavailable('Payments service returned no revenue figure') from exc
