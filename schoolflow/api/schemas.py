from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from schoolflow.domain.notifications.entities import Notification
from schoolflow.domain.workflow.entities import (
    Period,
    SufficiencyResult,
    TransitionRecord,
    WorkflowEntity,
    WorkflowKind,
    WorkflowStatus,
)


class PeriodIn(BaseModel):
    academic_session: str = Field(description="Academic session, e.g. 2023/2024")
    term: str = Field(description="First Term, Second Term or Third Term")

    def to_period(self) -> Period:
        return Period(academic_session=self.academic_session.strip(), term=self.term.strip())


class CreateEntityRequest(BaseModel):
    payload: dict[str, Any] = Field(description="Kind-specific fields")
    period: PeriodIn
    submit: bool = Field(default=False, description="Submit for review right after creation")


class EditEntityRequest(BaseModel):
    payload: dict[str, Any]


class ApproveRequest(BaseModel):
    comments: Optional[str] = None


class RejectRequest(BaseModel):
    reason: Optional[str] = Field(default=None, description="Required; why the entity is rejected")


class EntityQuery(BaseModel):
    """
    Query filters for listing workflow entities.

    All fields are optional and combinable.
    """

    # Filtering
    owner: Optional[str] = Field(default=None, description="Owner (creator) id")
    session: Optional[str] = Field(default=None, description="Academic session")
    term: Optional[str] = Field(default=None, description="Term within the session")
    status: Optional[WorkflowStatus] = Field(default=None, description="Workflow status")
    category: Optional[str] = Field(default=None, description="Expenditure category")
    period: Optional[str] = Field(
        default=None,
        description="Shorthand for session and term: \"2023/2024\" or \"2023/2024|First Term\"",
    )

    # Pagination
    limit: int = Field(
        default=50,
        ge=1,
        le=100,
        description="Maximum number of records to return (1-100)"
    )
    offset: int = Field(
        default=0,
        ge=0,
        description="Number of records to skip (pagination)"
    )

    def session_and_term(self) -> tuple[Optional[str], Optional[str]]:
        if not self.period:
            return self.session, self.term
        session, _, term = self.period.partition("|")
        return session.strip() or None, term.strip() or None


class TransitionOut(BaseModel):
    action: str
    from_status: Optional[str] = None
    to_status: str
    actor_id: str
    actor_name: str
    at: datetime
    note: Optional[str] = None

    @classmethod
    def from_record(cls, record: TransitionRecord) -> "TransitionOut":
        return cls(**record.to_dict())


class EntityOut(BaseModel):
    id: str
    kind: WorkflowKind
    owner_id: str
    owner_name: str
    status: WorkflowStatus
    payload: dict[str, Any]
    period: PeriodIn
    version: int
    created_at: datetime
    updated_at: datetime
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    reviewer_id: Optional[str] = None
    reviewer_name: Optional[str] = None
    review_comments: Optional[str] = None
    rejection_reason: Optional[str] = None
    history: List[TransitionOut] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, entity: WorkflowEntity) -> "EntityOut":
        return cls(
            id=entity.id,
            kind=entity.kind,
            owner_id=entity.owner_id,
            owner_name=entity.owner_name,
            status=entity.status,
            payload=entity.payload,
            period=PeriodIn(academic_session=entity.period.academic_session, term=entity.period.term or ""),
            version=entity.version,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            submitted_at=entity.submitted_at,
            reviewed_at=entity.reviewed_at,
            completed_at=entity.completed_at,
            reviewer_id=entity.reviewer_id,
            reviewer_name=entity.reviewer_name,
            review_comments=entity.review_comments,
            rejection_reason=entity.rejection_reason,
            history=[TransitionOut.from_record(h) for h in entity.history],
        )


class SufficiencyOut(BaseModel):
    sufficient: bool
    shortfall: float

    @classmethod
    def from_result(cls, result: SufficiencyResult) -> "SufficiencyOut":
        return cls(sufficient=result.sufficient, shortfall=result.shortfall)


class AggregateOut(BaseModel):
    academic_session: str
    term: Optional[str] = None
    revenue: float
    total_approved: float
    available_funds: float
    sufficiency: Optional[SufficiencyOut] = None


class StatisticsOut(BaseModel):
    kind: WorkflowKind
    total: int
    by_status: dict[str, int]
    total_amount: float
    approved_amount: float
    completed_amount: float


class NotificationOut(BaseModel):
    id: str
    recipient_id: str
    message: str
    created_at: datetime
    read: bool
    context: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_notification(cls, notification: Notification) -> "NotificationOut":
        return cls(
            id=notification.id,
            recipient_id=notification.recipient_id,
            message=notification.message,
            created_at=notification.created_at,
            read=notification.read,
            context=notification.context,
        )


T = TypeVar("T")


class PaginationMeta(BaseModel):
    total: int
    limit: int
    offset: int
    has_next: bool
    has_previous: bool


class PaginatedResponse(BaseModel, Generic[T]):
    data: List[T]
    meta: PaginationMeta
