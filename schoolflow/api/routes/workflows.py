from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Response

from schoolflow.api.core.auth import get_principal
from schoolflow.api.core.container import Container, get_container
from schoolflow.api.schemas import (
    AggregateOut,
    ApproveRequest,
    CreateEntityRequest,
    EditEntityRequest,
    EntityOut,
    EntityQuery,
    PaginatedResponse,
    PaginationMeta,
    RejectRequest,
    StatisticsOut,
    SufficiencyOut,
)
from schoolflow.core.errors import ValidationError
from schoolflow.domain.workflow.entities import (
    TERMS,
    EntityFilters,
    Period,
    Principal,
    WorkflowEntity,
    WorkflowKind,
    is_valid_session,
)

router = APIRouter(prefix="/workflow", tags=["Workflow"])


def parse_if_match(if_match: Optional[str]) -> Optional[int]:
    """``If-Match: "3"`` (or ``W/"3"``) -> 3."""
    if if_match is None or not if_match.strip():
        return None
    value = if_match.strip()
    if value.startswith("W/"):
        value = value[2:]
    value = value.strip('"')
    try:
        return int(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid If-Match header: {if_match!r}") from exc


def _query_period(session: Optional[str], term: Optional[str]) -> Period:
    """Period from query parameters; the term is optional, the session is not."""
    errors = []
    if not session or not is_valid_session(session):
        errors.append({"loc": "session", "msg": "must look like 2023/2024"})
    if term is not None and term not in TERMS:
        errors.append({"loc": "term", "msg": f"must be one of: {', '.join(TERMS)}"})
    if errors:
        raise ValidationError("Invalid period: " + ", ".join(e["loc"] for e in errors), errors)
    return Period(academic_session=session, term=term)


def _respond(response: Response, entity: WorkflowEntity) -> EntityOut:
    response.headers["ETag"] = f'"{entity.version}"'
    return EntityOut.from_entity(entity)


def _aggregate(container: Container, period: Period, revenue: Optional[float], amount: Optional[float]) -> AggregateOut:
    if revenue is None:
        revenue = container.revenue_source.revenue_for(period)
    aggregation = container.aggregation
    total = aggregation.total_approved(period)
    available = aggregation.available_funds(period, revenue)
    sufficiency = None
    if amount is not None:
        sufficiency = SufficiencyOut.from_result(aggregation.sufficiency_check(amount, available))
    return AggregateOut(
        academic_session=period.academic_session,
        term=period.term,
        revenue=float(revenue),
        total_approved=total,
        available_funds=available,
        sufficiency=sufficiency,
    )


# ------------------------------------------------------------
# Period-level views (declared before the /{entity_id} routes)
# ------------------------------------------------------------

@router.get(
    "/expenditure/aggregate",
    summary="Funds overview for a period",
    response_model=AggregateOut,
)
def get_period_aggregate(
    session: str = Query(description="Academic session, e.g. 2023/2024"),
    term: Optional[str] = Query(default=None),
    revenue: Optional[float] = Query(default=None, allow_inf_nan=False, description="Override the revenue figure"),
    amount: Optional[float] = Query(default=None, gt=0, allow_inf_nan=False, description="Check sufficiency for this amount"),
    container: Container = Depends(get_container),
):
    """
    Approved spending and the funds left for a session or term.

    When ``revenue`` is omitted the configured revenue source is asked.
    """
    return _aggregate(container, _query_period(session, term), revenue, amount)


@router.get(
    "/{kind}/statistics",
    summary="Counts and totals per status",
    response_model=StatisticsOut,
)
def get_statistics(
    kind: WorkflowKind,
    session: Optional[str] = Query(default=None),
    term: Optional[str] = Query(default=None),
    container: Container = Depends(get_container),
):
    period = _query_period(session, term) if session or term else None
    return StatisticsOut(**container.aggregation.statistics(kind, period))


# ------------------------------------------------------------
# Collection
# ------------------------------------------------------------

@router.post(
    "/{kind}",
    summary="Create a workflow entity",
    status_code=201,
    response_model=EntityOut,
)
def create_entity(
    kind: WorkflowKind,
    body: CreateEntityRequest,
    response: Response,
    principal: Principal = Depends(get_principal),
    container: Container = Depends(get_container),
):
    entity = container.engine.create(
        kind,
        body.payload,
        body.period.to_period(),
        principal,
        submit=body.submit,
    )
    return _respond(response, entity)


@router.get(
    "/{kind}",
    summary="List workflow entities",
    description="Returns entities of one kind filtered by owner, period, status and category, newest first.",
    response_model=PaginatedResponse[EntityOut],
)
def list_entities(
    kind: WorkflowKind,
    q: EntityQuery = Depends(),
    container: Container = Depends(get_container),
):
    """
    List entities with optional filters.

    Query Parameters:
    - owner: Filter by creator id
    - session / term: Filter by academic period
    - period: "<session>" or "<session>|<term>", instead of session / term
    - status: Filter by workflow status
    - category: Filter by expenditure category
    - limit: Page size (default: 50)
    - offset: Pagination offset (default: 0)
    """
    session, term = q.session_and_term()
    filters = EntityFilters(
        kind=kind,
        owner_id=q.owner,
        academic_session=session,
        term=term,
        status=q.status,
        category=q.category,
    )
    entities = container.engine.find(filters)
    page = entities[q.offset:q.offset + q.limit]
    total = len(entities)

    return PaginatedResponse[EntityOut](
        data=[EntityOut.from_entity(e) for e in page],
        meta=PaginationMeta(
            total=total,
            limit=q.limit,
            offset=q.offset,
            has_next=q.offset + q.limit < total,
            has_previous=q.offset > 0,
        ),
    )


# ------------------------------------------------------------
# Single entity
# ------------------------------------------------------------

@router.get("/{kind}/{entity_id}", response_model=EntityOut)
def get_entity(
    kind: WorkflowKind,
    entity_id: str,
    response: Response,
    container: Container = Depends(get_container),
):
    return _respond(response, container.engine.get(kind, entity_id))


@router.put("/{kind}/{entity_id}", summary="Edit the payload", response_model=EntityOut)
def edit_entity(
    kind: WorkflowKind,
    entity_id: str,
    body: EditEntityRequest,
    response: Response,
    if_match: Optional[str] = Header(default=None),
    principal: Principal = Depends(get_principal),
    container: Container = Depends(get_container),
):
    entity = container.engine.edit(
        kind, entity_id, body.payload, principal,
        expected_version=parse_if_match(if_match),
    )
    return _respond(response, entity)


@router.delete("/{kind}/{entity_id}", status_code=204)
def delete_entity(
    kind: WorkflowKind,
    entity_id: str,
    if_match: Optional[str] = Header(default=None),
    principal: Principal = Depends(get_principal),
    container: Container = Depends(get_container),
):
    container.engine.delete(kind, entity_id, principal, expected_version=parse_if_match(if_match))
    return Response(status_code=204)


@router.post("/{kind}/{entity_id}/submit", summary="Submit for review", response_model=EntityOut)
def submit_entity(
    kind: WorkflowKind,
    entity_id: str,
    response: Response,
    if_match: Optional[str] = Header(default=None),
    principal: Principal = Depends(get_principal),
    container: Container = Depends(get_container),
):
    entity = container.engine.submit(kind, entity_id, principal, expected_version=parse_if_match(if_match))
    return _respond(response, entity)


@router.post("/{kind}/{entity_id}/approve", summary="Approve a pending entity", response_model=EntityOut)
def approve_entity(
    kind: WorkflowKind,
    entity_id: str,
    response: Response,
    body: Optional[ApproveRequest] = None,
    if_match: Optional[str] = Header(default=None),
    principal: Principal = Depends(get_principal),
    container: Container = Depends(get_container),
):
    entity = container.engine.approve(
        kind, entity_id, principal,
        comments=body.comments if body else None,
        expected_version=parse_if_match(if_match),
    )
    return _respond(response, entity)


@router.post("/{kind}/{entity_id}/reject", summary="Reject a pending entity", response_model=EntityOut)
def reject_entity(
    kind: WorkflowKind,
    entity_id: str,
    response: Response,
    body: Optional[RejectRequest] = None,
    if_match: Optional[str] = Header(default=None),
    principal: Principal = Depends(get_principal),
    container: Container = Depends(get_container),
):
    entity = container.engine.reject(
        kind, entity_id, principal,
        reason=body.reason if body else None,
        expected_version=parse_if_match(if_match),
    )
    return _respond(response, entity)


@router.post("/{kind}/{entity_id}/complete", summary="Mark an approved expenditure as done", response_model=EntityOut)
def complete_entity(
    kind: WorkflowKind,
    entity_id: str,
    response: Response,
    if_match: Optional[str] = Header(default=None),
    principal: Principal = Depends(get_principal),
    container: Container = Depends(get_container),
):
    entity = container.engine.complete(kind, entity_id, principal, expected_version=parse_if_match(if_match))
    return _respond(response, entity)


@router.get("/{kind}/{entity_id}/aggregate", summary="Funds overview for the entity's period", response_model=AggregateOut)
def get_entity_aggregate(
    kind: WorkflowKind,
    entity_id: str,
    revenue: Optional[float] = Query(default=None, allow_inf_nan=False),
    container: Container = Depends(get_container),
):
    entity = container.engine.get(kind, entity_id)
    if kind != WorkflowKind.EXPENDITURE:
        raise ValidationError("Aggregates are only available for expenditures")
    return _aggregate(container, entity.period, revenue, entity.amount)
