"""Per-kind payload schemas.

The engine treats payloads as opaque dicts; each kind plugs in a pydantic
model here. Required strings must be non-empty and numeric fields positive.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from schoolflow.core.errors import ValidationError
from .entities import WorkflowKind

ExpenditureCategory = Literal[
    "infrastructure",
    "equipment",
    "supplies",
    "maintenance",
    "utilities",
    "staff",
    "events",
    "other",
]
ExpenditurePriority = Literal["low", "medium", "high", "urgent"]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, allow_inf_nan=False)


class ExpenditurePayload(_Payload):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=4000)
    category: ExpenditureCategory
    priority: ExpenditurePriority = "medium"
    amount: float = Field(gt=0)
    notes: str | None = Field(default=None, max_length=2000)
    attachments: list[str] = Field(default_factory=list)


class FinancialReportPayload(_Payload):
    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1)
    total_revenue: float | None = Field(default=None, ge=0)
    total_expenditures: float | None = Field(default=None, ge=0)
    net_balance: float | None = None
    payment_count: int | None = Field(default=None, ge=0)
    expenditure_count: int | None = Field(default=None, ge=0)
    attachments: list[str] = Field(default_factory=list)

    @field_validator("net_balance")
    @classmethod
    def _balance_is_consistent(cls, value, info):
        revenue = info.data.get("total_revenue")
        spent = info.data.get("total_expenditures")
        if value is not None and revenue is not None and spent is not None:
            if abs((revenue - spent) - value) > 0.005:
                raise ValueError("net_balance must equal total_revenue - total_expenditures")
        return value


class ExamReportPayload(_Payload):
    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1)
    attachments: list[str] = Field(default_factory=list)


PAYLOAD_SCHEMAS: dict[WorkflowKind, type[BaseModel]] = {
    WorkflowKind.EXPENDITURE: ExpenditurePayload,
    WorkflowKind.FINANCIAL_REPORT: FinancialReportPayload,
    WorkflowKind.EXAM_REPORT: ExamReportPayload,
}


def validate_payload(kind: WorkflowKind, payload: dict[str, Any] | None) -> dict[str, Any]:
    """Validate ``payload`` against the kind's schema and return the normalized dict.

    Raises:
        ValidationError: with the pydantic error list attached.
    """
    schema = PAYLOAD_SCHEMAS[kind]
    try:
        model = schema.model_validate(payload or {})
    except PydanticValidationError as exc:
        errors = [
            {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
            for err in exc.errors()
        ]
        fields = ", ".join(e["loc"] for e in errors if e["loc"]) or "payload"
        raise ValidationError(f"Invalid {kind.value} payload: {fields}", errors) from exc
    return model.model_dump()
