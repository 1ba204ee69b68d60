# ============================================================
# Business/domain entities
# ============================================================
from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class WorkflowKind(str, Enum):
    EXPENDITURE = "expenditure"
    FINANCIAL_REPORT = "financial-report"
    EXAM_REPORT = "exam-report"


class WorkflowStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class WorkflowAction(str, Enum):
    CREATE = "create"
    EDIT = "edit"
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    COMPLETE = "complete"
    DELETE = "delete"


class Role(str, Enum):
    ADMIN = "admin"
    ACCOUNTANT = "accountant"
    EXAM_OFFICER = "exam_officer"
    TEACHER = "teacher"
    STUDENT = "student"
    PARENT = "parent"


TERMS = ("First Term", "Second Term", "Third Term")
_SESSION_RE = re.compile(r"^(\d{4})/(\d{4})$")

EDITABLE_STATUSES = frozenset({WorkflowStatus.DRAFT, WorkflowStatus.PENDING, WorkflowStatus.REJECTED})
REVIEWED_STATUSES = frozenset({WorkflowStatus.APPROVED, WorkflowStatus.REJECTED, WorkflowStatus.COMPLETED})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_valid_session(session: str) -> bool:
    """Academic sessions look like ``2023/2024``: two consecutive years."""
    match = _SESSION_RE.match(session or "")
    if not match:
        return False
    return int(match.group(2)) == int(match.group(1)) + 1


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, supplied by the auth layer."""
    id: str
    name: str
    role: str


@dataclass(frozen=True)
class Period:
    academic_session: str
    term: Optional[str] = None

    def matches(self, other: "Period") -> bool:
        """True when ``other`` falls inside this period (no term = whole session)."""
        if self.academic_session != other.academic_session:
            return False
        return self.term is None or self.term == other.term

    def key(self) -> str:
        return f"{self.academic_session}|{self.term or ''}"


@dataclass(frozen=True)
class TransitionRecord:
    action: str
    from_status: Optional[str]
    to_status: str
    actor_id: str
    actor_name: str
    at: datetime
    note: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actor_id": self.actor_id,
            "actor_name": self.actor_name,
            "at": self.at.isoformat(),
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransitionRecord":
        at = data["at"]
        if isinstance(at, str):
            at = datetime.fromisoformat(at)
        return cls(
            action=data["action"],
            from_status=data.get("from_status"),
            to_status=data["to_status"],
            actor_id=data["actor_id"],
            actor_name=data.get("actor_name", ""),
            at=at,
            note=data.get("note"),
        )


@dataclass
class WorkflowEntity:
    id: str
    kind: WorkflowKind
    owner_id: str
    owner_name: str
    status: WorkflowStatus
    payload: dict[str, Any]
    period: Period
    created_at: datetime
    updated_at: datetime
    version: int = 1
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None
    completed_at: datetime | None = None
    reviewer_id: str | None = None
    reviewer_name: str | None = None
    review_comments: str | None = None
    rejection_reason: str | None = None
    history: list[TransitionRecord] = field(default_factory=list)

    @property
    def amount(self) -> float:
        """Requested amount; zero for kinds that carry no amount."""
        value = self.payload.get("amount")
        return float(value) if value is not None else 0.0

    def copy(self) -> "WorkflowEntity":
        return copy.deepcopy(self)


@dataclass(frozen=True)
class EntityFilters:
    kind: Optional[WorkflowKind] = None
    owner_id: Optional[str] = None
    academic_session: Optional[str] = None
    term: Optional[str] = None
    status: Optional[WorkflowStatus] = None
    category: Optional[str] = None

    def matches(self, entity: WorkflowEntity) -> bool:
        if self.kind is not None and entity.kind != self.kind:
            return False
        if self.owner_id is not None and entity.owner_id != self.owner_id:
            return False
        if self.academic_session is not None and entity.period.academic_session != self.academic_session:
            return False
        if self.term is not None and entity.period.term != self.term:
            return False
        if self.status is not None and entity.status != self.status:
            return False
        if self.category is not None and entity.payload.get("category") != self.category:
            return False
        return True


@dataclass(frozen=True)
class SufficiencyResult:
    sufficient: bool
    shortfall: float


# Fields the store refuses to change after creation.
IMMUTABLE_FIELDS = frozenset({"id", "kind", "owner_id", "owner_name", "period", "created_at"})
