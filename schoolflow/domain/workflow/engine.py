"""Workflow engine: the request/review state machine.

Responsibilities:
- validate payloads before anything is written
- enforce the transition table and who may perform each action
- stamp submission / review / completion fields and append history
- write with the version it read, so concurrent reviewers get a Conflict
- notify the affected principals after every transition
"""

from __future__ import annotations

import time
import uuid
from typing import Any

from schoolflow.core.errors import Conflict, NotFound, ValidationError
from schoolflow.domain.notifications.emitter import NotificationEmitter
from schoolflow.observability.tracing import Span, log_event, new_trace_id
from .entities import (
    TERMS,
    EntityFilters,
    Period,
    Principal,
    TransitionRecord,
    WorkflowAction,
    WorkflowEntity,
    WorkflowKind,
    WorkflowStatus,
    is_valid_session,
    utc_now,
)
from .payloads import validate_payload
from .policy import WorkflowPolicy
from .repository import EntityStore

MAX_COMMENT_LENGTH = 2000
MAX_REASON_LENGTH = 1000

MESSAGES: dict[WorkflowAction, str] = {
    WorkflowAction.CREATE: "Your ${kind_label} '${title}' was saved as a draft.",
    WorkflowAction.SUBMIT: "${owner_name} submitted the ${kind_label} '${title}' for review.",
    WorkflowAction.APPROVE: "Your ${kind_label} '${title}' was approved by ${reviewer_name}.",
    WorkflowAction.REJECT: "Your ${kind_label} '${title}' was rejected by ${reviewer_name}: ${rejection_reason}",
    WorkflowAction.COMPLETE: "Your ${kind_label} '${title}' was marked as completed.",
}


def new_entity_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _validate_period(period: Period) -> Period:
    errors = []
    if not is_valid_session(period.academic_session):
        errors.append({"loc": "period.academic_session", "msg": "must look like 2023/2024"})
    if period.term is None or period.term not in TERMS:
        errors.append({"loc": "period.term", "msg": f"must be one of: {', '.join(TERMS)}"})
    if errors:
        raise ValidationError("Invalid period: " + ", ".join(e["loc"] for e in errors), errors)
    return period


def _clean_text(value: str | None, *, field: str, max_length: int, required: bool) -> str | None:
    text = (value or "").strip()
    if required and not text:
        raise ValidationError(f"{field} is required", [{"loc": field, "msg": "must not be empty"}])
    if len(text) > max_length:
        raise ValidationError(
            f"{field} must be at most {max_length} characters",
            [{"loc": field, "msg": f"at most {max_length} characters"}],
        )
    return text or None


class WorkflowEngine:
    """Coordinates the store, the transition policy and notifications."""

    def __init__(
        self,
        *,
        store: EntityStore,
        notifier: NotificationEmitter | None = None,
        policy: WorkflowPolicy | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier or NotificationEmitter()
        self._policy = policy or WorkflowPolicy()

    @property
    def store(self) -> EntityStore:
        return self._store

    @property
    def policy(self) -> WorkflowPolicy:
        return self._policy

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------

    def get(self, kind: WorkflowKind, entity_id: str) -> WorkflowEntity:
        entity = self._store.get_by_id(entity_id)
        if entity is None or entity.kind != kind:
            raise NotFound(entity_id, kind.value)
        return entity

    def find(self, filters: EntityFilters | None = None) -> list[WorkflowEntity]:
        return self._store.find(filters)

    # ------------------------------------------------------------
    # Owner actions
    # ------------------------------------------------------------

    def create(
        self,
        kind: WorkflowKind,
        payload: dict[str, Any],
        period: Period,
        actor: Principal,
        *,
        submit: bool = False,
    ) -> WorkflowEntity:
        """Validate and store a new entity in the kind's initial state.

        With ``submit=True`` the entity is submitted straight away.
        """
        trace_id = new_trace_id()
        self._policy.assert_can_create(kind, actor)
        clean_payload = validate_payload(kind, payload)
        _validate_period(period)

        kind_policy = self._policy.for_kind(kind)
        now = utc_now()
        entity = WorkflowEntity(
            id=new_entity_id(kind_policy.id_prefix),
            kind=kind,
            owner_id=actor.id,
            owner_name=actor.name,
            status=kind_policy.initial_status,
            payload=clean_payload,
            period=period,
            created_at=now,
            updated_at=now,
            history=[
                TransitionRecord(
                    action=WorkflowAction.CREATE.value,
                    from_status=None,
                    to_status=kind_policy.initial_status.value,
                    actor_id=actor.id,
                    actor_name=actor.name,
                    at=now,
                )
            ],
        )
        created = self._store.create(entity)
        log_event(
            'workflow.create',
            trace_id=trace_id,
            kind=kind.value,
            entity_id=created.id,
            owner_id=actor.id,
            status=created.status.value,
        )
        if submit:
            return self.submit(kind, created.id, actor)
        self._emit(created, WorkflowAction.CREATE, None, trace_id=trace_id)
        return created

    def edit(
        self,
        kind: WorkflowKind,
        entity_id: str,
        payload: dict[str, Any],
        actor: Principal,
        *,
        expected_version: int | None = None,
    ) -> WorkflowEntity:
        """Replace the payload of an editable entity. The status does not change."""
        entity = self.get(kind, entity_id)
        self._policy.assert_allowed(entity, WorkflowAction.EDIT, actor)
        clean_payload = validate_payload(kind, payload)
        return self._write(
            entity,
            WorkflowAction.EDIT,
            actor,
            {"payload": clean_payload},
            expected_version=expected_version,
            to_status=entity.status,
        )

    def submit(
        self,
        kind: WorkflowKind,
        entity_id: str,
        actor: Principal,
        *,
        expected_version: int | None = None,
    ) -> WorkflowEntity:
        """Send a draft (or a rejected entity, after edits) for review."""
        entity = self.get(kind, entity_id)
        rule = self._policy.assert_allowed(entity, WorkflowAction.SUBMIT, actor)
        # the payload may predate a schema change
        validate_payload(kind, entity.payload)
        changes = {
            "status": rule.to_status,
            "submitted_at": utc_now(),
            "reviewed_at": None,
        }
        return self._transition(entity, WorkflowAction.SUBMIT, actor, changes, expected_version=expected_version)

    def delete(
        self,
        kind: WorkflowKind,
        entity_id: str,
        actor: Principal,
        *,
        expected_version: int | None = None,
    ) -> None:
        entity = self.get(kind, entity_id)
        self._policy.assert_allowed(entity, WorkflowAction.DELETE, actor)
        self._check_version(entity, expected_version)
        # guarded by the version we checked: a concurrent transition turns into a Conflict
        if not self._store.delete(entity_id, expected_version=entity.version):
            raise NotFound(entity_id, kind.value)
        log_event(
            'workflow.delete',
            trace_id=new_trace_id(),
            kind=kind.value,
            entity_id=entity_id,
            actor_id=actor.id,
            status=entity.status.value,
        )

    # ------------------------------------------------------------
    # Reviewer actions
    # ------------------------------------------------------------

    def approve(
        self,
        kind: WorkflowKind,
        entity_id: str,
        actor: Principal,
        comments: str | None = None,
        *,
        expected_version: int | None = None,
    ) -> WorkflowEntity:
        entity = self.get(kind, entity_id)
        rule = self._policy.assert_allowed(entity, WorkflowAction.APPROVE, actor)
        comments = _clean_text(comments, field="comments", max_length=MAX_COMMENT_LENGTH, required=False)
        changes = {
            "status": rule.to_status,
            "reviewed_at": utc_now(),
            "reviewer_id": actor.id,
            "reviewer_name": actor.name,
            "review_comments": comments,
        }
        return self._transition(
            entity, WorkflowAction.APPROVE, actor, changes,
            expected_version=expected_version, note=comments,
        )

    def reject(
        self,
        kind: WorkflowKind,
        entity_id: str,
        actor: Principal,
        reason: str | None,
        *,
        expected_version: int | None = None,
    ) -> WorkflowEntity:
        entity = self.get(kind, entity_id)
        rule = self._policy.assert_allowed(entity, WorkflowAction.REJECT, actor)
        reason = _clean_text(reason, field="reason", max_length=MAX_REASON_LENGTH, required=True)
        changes = {
            "status": rule.to_status,
            "reviewed_at": utc_now(),
            "reviewer_id": actor.id,
            "reviewer_name": actor.name,
            "review_comments": reason,
            "rejection_reason": reason,
        }
        return self._transition(
            entity, WorkflowAction.REJECT, actor, changes,
            expected_version=expected_version, note=reason,
        )

    def complete(
        self,
        kind: WorkflowKind,
        entity_id: str,
        actor: Principal,
        *,
        expected_version: int | None = None,
    ) -> WorkflowEntity:
        """Mark an approved expenditure as carried out."""
        entity = self.get(kind, entity_id)
        rule = self._policy.assert_allowed(entity, WorkflowAction.COMPLETE, actor)
        changes = {
            "status": rule.to_status,
            "completed_at": utc_now(),
        }
        return self._transition(entity, WorkflowAction.COMPLETE, actor, changes, expected_version=expected_version)

    # ------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------

    @staticmethod
    def _check_version(entity: WorkflowEntity, expected_version: int | None) -> None:
        if expected_version is not None and expected_version != entity.version:
            raise Conflict(
                f"Workflow entity '{entity.id}' was modified concurrently",
                expected_version=expected_version,
                actual_version=entity.version,
            )

    def _transition(
        self,
        entity: WorkflowEntity,
        action: WorkflowAction,
        actor: Principal,
        changes: dict[str, Any],
        *,
        expected_version: int | None = None,
        note: str | None = None,
    ) -> WorkflowEntity:
        trace_id = new_trace_id()
        updated = self._write(
            entity, action, actor, changes,
            expected_version=expected_version, to_status=changes["status"],
            note=note, trace_id=trace_id,
        )
        self._emit(updated, action, entity.status, trace_id=trace_id)
        return updated

    def _write(
        self,
        entity: WorkflowEntity,
        action: WorkflowAction,
        actor: Principal,
        changes: dict[str, Any],
        *,
        expected_version: int | None,
        to_status: WorkflowStatus,
        note: str | None = None,
        trace_id: str | None = None,
    ) -> WorkflowEntity:
        trace_id = trace_id or new_trace_id()
        self._check_version(entity, expected_version)

        record = TransitionRecord(
            action=action.value,
            from_status=entity.status.value,
            to_status=to_status.value,
            actor_id=actor.id,
            actor_name=actor.name,
            at=utc_now(),
            note=note,
        )
        changes = {**changes, "history": [*entity.history, record]}

        # always write with the version we read: a concurrent writer turns into a Conflict
        with Span(name=f"workflow.{action.value}", trace_id=trace_id, attributes={"entity_id": entity.id}) as span:
            updated = self._store.update(entity.id, changes, expected_version=entity.version)
        if updated is None:
            raise NotFound(entity.id, entity.kind.value)

        log_event(
            'workflow.transition',
            trace_id=trace_id,
            span=span,
            kind=entity.kind.value,
            entity_id=entity.id,
            action=action.value,
            from_status=entity.status.value,
            to_status=updated.status.value,
            actor_id=actor.id,
            version=updated.version,
        )
        return updated

    def _emit(
        self,
        entity: WorkflowEntity,
        action: WorkflowAction,
        old_status: WorkflowStatus | None,
        *,
        trace_id: str,
    ) -> None:
        template = MESSAGES.get(action)
        if template is None:
            return
        kind_policy = self._policy.for_kind(entity.kind)
        context = {
            "entity_id": entity.id,
            "kind": entity.kind.value,
            "kind_label": kind_policy.label,
            "title": entity.payload.get("title", entity.id),
            "action": action.value,
            "old_status": old_status.value if old_status else None,
            "new_status": entity.status.value,
            "owner_name": entity.owner_name,
            "reviewer_name": entity.reviewer_name,
            "rejection_reason": entity.rejection_reason,
        }
        if action == WorkflowAction.SUBMIT:
            recipients = [f"role:{role}" for role in sorted(kind_policy.reviewer_roles)]
        else:
            recipients = [entity.owner_id]
        for recipient in recipients:
            self._notifier.notify(recipient, template, context, trace_id=trace_id)
