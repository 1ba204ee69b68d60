from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

from schoolflow.api.core.container import Container, get_container
from schoolflow.app.main import app
from schoolflow.domain.aggregation import StaticRevenueSource
from schoolflow.domain.notifications import InboxNotificationSink
from schoolflow.domain.workflow import InMemoryEntityStore

from tests.fixtures.principals import (
    ACCOUNTANT,
    ADMIN,
    EXAM_OFFICER,
    FIRST_TERM,
    TEACHER,
    exam_report_payload,
    expenditure_payload,
    headers_for,
)

PERIOD = {"academic_session": "2023/2024", "term": "First Term"}


@pytest.fixture
def container():
    revenue = StaticRevenueSource()
    revenue.set(FIRST_TERM, 40000)
    container = Container(
        store=InMemoryEntityStore(),
        sink=InboxNotificationSink(),
        revenue_source=revenue,
    )
    app.dependency_overrides[get_container] = lambda: container
    yield container
    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def _create(client, principal=ACCOUNTANT, kind="expenditure", payload=None, submit=False):
    resp = await client.post(
        f"/v1/workflow/{kind}",
        json={"payload": payload or expenditure_payload(), "period": PERIOD, "submit": submit},
        headers=headers_for(principal),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.anyio
async def test_full_review_cycle_over_http(container) -> None:
    async with _client() as client:
        created = await _create(client)
        assert created["status"] == "draft"
        entity_id = created["id"]

        resp = await client.post(f"/v1/workflow/expenditure/{entity_id}/submit", headers=headers_for(ACCOUNTANT))
        assert resp.status_code == 200
        assert resp.json()["status"] == "pending"

        resp = await client.post(
            f"/v1/workflow/expenditure/{entity_id}/reject",
            json={"reason": "Need a second quote"},
            headers=headers_for(ADMIN),
        )
        assert resp.json()["status"] == "rejected"

        resp = await client.put(
            f"/v1/workflow/expenditure/{entity_id}",
            json={"payload": expenditure_payload(amount=30000)},
            headers=headers_for(ACCOUNTANT),
        )
        assert resp.status_code == 200
        assert resp.json()["payload"]["amount"] == 30000

        await client.post(f"/v1/workflow/expenditure/{entity_id}/submit", headers=headers_for(ACCOUNTANT))
        resp = await client.post(
            f"/v1/workflow/expenditure/{entity_id}/approve",
            json={"comments": "ok"},
            headers=headers_for(ADMIN),
        )
        body = resp.json()
        assert body["status"] == "approved"
        assert body["rejection_reason"] == "Need a second quote"
        assert body["reviewer_name"] == ADMIN.name
        assert resp.headers["etag"] == f'"{body["version"]}"'

        resp = await client.post(f"/v1/workflow/expenditure/{entity_id}/complete", headers=headers_for(ADMIN))
        assert resp.json()["status"] == "completed"


@pytest.mark.anyio
async def test_error_mapping(container) -> None:
    async with _client() as client:
        resp = await client.post(
            "/v1/workflow/expenditure",
            json={"payload": expenditure_payload(amount=-1), "period": PERIOD},
            headers=headers_for(ACCOUNTANT),
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "ValidationError"

        resp = await client.post(
            "/v1/workflow/expenditure",
            json={"payload": expenditure_payload(), "period": PERIOD},
            headers=headers_for(TEACHER),
        )
        assert resp.status_code == 403

        resp = await client.get("/v1/workflow/expenditure/exp_missing")
        assert resp.status_code == 404

        created = await _create(client, submit=True)
        resp = await client.post(
            f"/v1/workflow/expenditure/{created['id']}/reject", json={}, headers=headers_for(ADMIN)
        )
        assert resp.status_code == 400

        resp = await client.post(f"/v1/workflow/expenditure/{created['id']}/submit", headers=headers_for(ACCOUNTANT))
        assert resp.status_code == 409
        assert resp.json()["error"] == "InvalidTransition"
        assert resp.json()["current_status"] == "pending"


@pytest.mark.anyio
async def test_missing_principal_is_unauthorized(container) -> None:
    async with _client() as client:
        resp = await client.post(
            "/v1/workflow/expenditure",
            json={"payload": expenditure_payload(), "period": PERIOD},
        )
    assert resp.status_code == 401


@pytest.mark.anyio
async def test_if_match_guards_concurrent_edits(container) -> None:
    async with _client() as client:
        created = await _create(client)
        url = f"/v1/workflow/expenditure/{created['id']}"

        resp = await client.get(url)
        etag = resp.headers["etag"]

        first = await client.put(
            url, json={"payload": expenditure_payload(amount=1)},
            headers={**headers_for(ACCOUNTANT), "If-Match": etag},
        )
        assert first.status_code == 200

        second = await client.put(
            url, json={"payload": expenditure_payload(amount=2)},
            headers={**headers_for(ACCOUNTANT), "If-Match": etag},
        )
        assert second.status_code == 409
        assert second.json()["error"] == "Conflict"


@pytest.mark.anyio
async def test_delete_rules(container) -> None:
    async with _client() as client:
        draft = await _create(client)
        resp = await client.delete(f"/v1/workflow/expenditure/{draft['id']}", headers=headers_for(ACCOUNTANT))
        assert resp.status_code == 204

        pending = await _create(client, submit=True)
        await client.post(f"/v1/workflow/expenditure/{pending['id']}/approve", headers=headers_for(ADMIN))
        resp = await client.delete(f"/v1/workflow/expenditure/{pending['id']}", headers=headers_for(ACCOUNTANT))
        assert resp.status_code == 409


@pytest.mark.anyio
async def test_list_filters_and_paginates(container) -> None:
    async with _client() as client:
        for amount in (10, 20, 30):
            await _create(client, payload=expenditure_payload(amount=amount))
        await _create(client, payload=expenditure_payload(category="equipment"), submit=True)
        await _create(client, principal=EXAM_OFFICER, kind="exam-report", payload=exam_report_payload())

        resp = await client.get("/v1/workflow/expenditure", params={"limit": 2})
        body = resp.json()
        assert body["meta"]["total"] == 4
        assert body["meta"]["has_next"] is True
        assert len(body["data"]) == 2

        resp = await client.get("/v1/workflow/expenditure", params={"status": "pending"})
        assert [e["payload"]["category"] for e in resp.json()["data"]] == ["equipment"]

        resp = await client.get("/v1/workflow/expenditure", params={"category": "supplies", "owner": ACCOUNTANT.id})
        assert resp.json()["meta"]["total"] == 3

        resp = await client.get("/v1/workflow/expenditure", params={"period": "2023/2024|First Term"})
        assert resp.json()["meta"]["total"] == 4
        resp = await client.get("/v1/workflow/expenditure", params={"period": "2023/2024|Second Term"})
        assert resp.json()["meta"]["total"] == 0

        resp = await client.get("/v1/workflow/exam-report")
        assert resp.json()["meta"]["total"] == 1


@pytest.mark.anyio
async def test_aggregate_reports_shortfall(container) -> None:
    async with _client() as client:
        created = await _create(client, payload=expenditure_payload(amount=50000), submit=True)

        resp = await client.get(f"/v1/workflow/expenditure/{created['id']}/aggregate")
        body = resp.json()
        assert body["revenue"] == 40000
        assert body["total_approved"] == 0
        assert body["sufficiency"] == {"sufficient": False, "shortfall": 10000}

        resp = await client.post(f"/v1/workflow/expenditure/{created['id']}/approve", headers=headers_for(ADMIN))
        assert resp.json()["status"] == "approved"

        resp = await client.get(
            "/v1/workflow/expenditure/aggregate",
            params={"session": "2023/2024", "term": "First Term"},
        )
        body = resp.json()
        assert body["total_approved"] == 50000
        assert body["available_funds"] == -10000

        resp = await client.get(
            "/v1/workflow/expenditure/aggregate",
            params={"session": "2023/2024", "term": "First Term", "revenue": 80000, "amount": 20000},
        )
        assert resp.json()["sufficiency"] == {"sufficient": True, "shortfall": 0}


@pytest.mark.anyio
async def test_statistics(container) -> None:
    async with _client() as client:
        await _create(client)
        await _create(client, submit=True)

        resp = await client.get("/v1/workflow/expenditure/statistics")

    body = resp.json()
    assert body["total"] == 2
    assert body["by_status"]["draft"] == 1
    assert body["by_status"]["pending"] == 1


@pytest.mark.anyio
async def test_notification_inbox(container) -> None:
    async with _client() as client:
        created = await _create(client, submit=True)
        await client.post(f"/v1/workflow/expenditure/{created['id']}/approve", headers=headers_for(ADMIN))

        resp = await client.get(f"/v1/notifications/{ACCOUNTANT.id}")
        items = resp.json()
        assert "was approved by Ada Admin" in items[0]["message"]
        assert items[0]["read"] is False

        resp = await client.post(f"/v1/notifications/{ACCOUNTANT.id}/{items[0]['id']}/read")
        assert resp.status_code == 204

        resp = await client.get(f"/v1/notifications/{ACCOUNTANT.id}", params={"unread_only": True})
        assert all(n["id"] != items[0]["id"] for n in resp.json())

        resp = await client.get("/v1/notifications/role:admin")
        assert len(resp.json()) == 1


@pytest.mark.anyio
async def test_non_finite_amount_is_rejected(container) -> None:
    body = (
        '{"payload": {"title": "Lab supplies", "category": "supplies", "amount": Infinity}, '
        '"period": {"academic_session": "2023/2024", "term": "First Term"}}'
    )
    async with _client() as client:
        resp = await client.post(
            "/v1/workflow/expenditure",
            content=body,
            headers={**headers_for(ACCOUNTANT), "Content-Type": "application/json"},
        )

    assert resp.status_code == 400
    assert container.store.find() == []


@pytest.mark.anyio
async def test_period_query_parameters_are_validated(container) -> None:
    async with _client() as client:
        resp = await client.get("/v1/workflow/expenditure/aggregate", params={"session": "2023-2024"})
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["loc"] == "session"

        resp = await client.get(
            "/v1/workflow/expenditure/aggregate",
            params={"session": "2023/2024", "term": "Summer"},
        )
        assert resp.status_code == 400

        resp = await client.get("/v1/workflow/expenditure/statistics", params={"term": "First Term"})
        assert resp.status_code == 400

        resp = await client.get("/v1/workflow/expenditure/statistics", params={"session": "2023/2024"})
        assert resp.status_code == 200
