# ============================================================
# Entity store: protocol + SQL backend
# ============================================================
from __future__ import annotations

import dataclasses
import json
from datetime import datetime
from typing import Any, Optional, Protocol

from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from schoolflow.core.errors import Conflict
from .entities import (
    IMMUTABLE_FIELDS,
    EntityFilters,
    Period,
    TransitionRecord,
    WorkflowEntity,
    WorkflowKind,
    WorkflowStatus,
    utc_now,
)

_ENTITY_FIELDS = {f.name for f in dataclasses.fields(WorkflowEntity)}


class EntityStore(Protocol):
    def create(self, entity: WorkflowEntity) -> WorkflowEntity:
        """Store a new entity. Raises Conflict if the id already exists."""
        ...

    def get_by_id(self, entity_id: str) -> Optional[WorkflowEntity]:
        """Get an entity by id, or None"""
        ...

    def update(
            self,
            entity_id: str,
            changes: dict[str, Any],
            expected_version: int | None = None,
    ) -> Optional[WorkflowEntity]:
        """Merge ``changes`` into the entity and bump its version"""
        ...

    def delete(self, entity_id: str, expected_version: int | None = None) -> bool:
        """Remove an entity; report whether anything was removed. Raises Conflict on a version mismatch"""
        ...

    def find(self, filters: EntityFilters | None = None) -> list[WorkflowEntity]:
        """All matching entities, newest first"""
        ...

    def list_by_owner(self, owner_id: str) -> list[WorkflowEntity]:
        ...

    def list_by_period(self, academic_session: str, term: str | None = None) -> list[WorkflowEntity]:
        ...

    def list_by_status(self, status: WorkflowStatus) -> list[WorkflowEntity]:
        ...


def check_changes(changes: dict[str, Any]) -> None:
    """Reject unknown or immutable field names; a caller bug, not a user error."""
    unknown = set(changes) - _ENTITY_FIELDS
    if unknown:
        raise ValueError(f"Unknown entity fields: {', '.join(sorted(unknown))}")
    frozen = set(changes) & IMMUTABLE_FIELDS
    if frozen:
        raise ValueError(f"Immutable entity fields: {', '.join(sorted(frozen))}")


def merge_changes(entity: WorkflowEntity, changes: dict[str, Any]) -> WorkflowEntity:
    check_changes(changes)
    merged = dataclasses.replace(
        entity,
        **changes,
        version=entity.version + 1,
        updated_at=utc_now(),
    )
    return merged.copy()


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _to_params(entity: WorkflowEntity) -> dict[str, Any]:
    return {
        "id": entity.id,
        "kind": entity.kind.value,
        "owner_id": entity.owner_id,
        "owner_name": entity.owner_name,
        "status": entity.status.value,
        "payload": json.dumps(entity.payload, ensure_ascii=False),
        "academic_session": entity.period.academic_session,
        "term": entity.period.term,
        "version": entity.version,
        "created_at": _iso(entity.created_at),
        "updated_at": _iso(entity.updated_at),
        "submitted_at": _iso(entity.submitted_at),
        "reviewed_at": _iso(entity.reviewed_at),
        "completed_at": _iso(entity.completed_at),
        "reviewer_id": entity.reviewer_id,
        "reviewer_name": entity.reviewer_name,
        "review_comments": entity.review_comments,
        "rejection_reason": entity.rejection_reason,
        "history": json.dumps([h.to_dict() for h in entity.history], ensure_ascii=False),
    }


def _from_row(row) -> WorkflowEntity:
    return WorkflowEntity(
        id=row["id"],
        kind=WorkflowKind(row["kind"]),
        owner_id=row["owner_id"],
        owner_name=row["owner_name"],
        status=WorkflowStatus(row["status"]),
        payload=json.loads(row["payload"]),
        period=Period(academic_session=row["academic_session"], term=row["term"]),
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
        version=int(row["version"]),
        submitted_at=_dt(row["submitted_at"]),
        reviewed_at=_dt(row["reviewed_at"]),
        completed_at=_dt(row["completed_at"]),
        reviewer_id=row["reviewer_id"],
        reviewer_name=row["reviewer_name"],
        review_comments=row["review_comments"],
        rejection_reason=row["rejection_reason"],
        history=[TransitionRecord.from_dict(h) for h in json.loads(row["history"] or "[]")],
    )


class SqlEntityStore(EntityStore):
    """EntityStore backed by SQLAlchemy; one short session per operation."""

    _COLUMNS = (
        "id", "kind", "owner_id", "owner_name", "status", "payload",
        "academic_session", "term", "version", "created_at", "updated_at",
        "submitted_at", "reviewed_at", "completed_at", "reviewer_id",
        "reviewer_name", "review_comments", "rejection_reason", "history",
    )
    _MUTABLE_COLUMNS = tuple(
        c for c in _COLUMNS
        if c not in {"id", "kind", "owner_id", "owner_name", "academic_session", "term", "created_at"}
    )

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def create(self, entity: WorkflowEntity) -> WorkflowEntity:
        columns = ", ".join(self._COLUMNS)
        placeholders = ", ".join(f":{c}" for c in self._COLUMNS)
        with self._session_factory() as db:
            exists = db.execute(
                text("SELECT 1 FROM workflow_entities WHERE id = :id"),
                {"id": entity.id},
            ).first()
            if exists:
                raise Conflict(f"Workflow entity '{entity.id}' already exists")
            db.execute(
                text(f"INSERT INTO workflow_entities ({columns}) VALUES ({placeholders})"),
                _to_params(entity),
            )
            db.commit()
        return entity.copy()

    def get_by_id(self, entity_id: str) -> Optional[WorkflowEntity]:
        with self._session_factory() as db:
            row = db.execute(
                text("SELECT * FROM workflow_entities WHERE id = :id"),
                {"id": entity_id},
            ).mappings().first()
        return _from_row(row) if row else None

    def update(
            self,
            entity_id: str,
            changes: dict[str, Any],
            expected_version: int | None = None,
    ) -> Optional[WorkflowEntity]:
        check_changes(changes)
        with self._session_factory() as db:
            row = db.execute(
                text("SELECT * FROM workflow_entities WHERE id = :id"),
                {"id": entity_id},
            ).mappings().first()
            if row is None:
                return None
            current = _from_row(row)
            if expected_version is not None and current.version != expected_version:
                raise Conflict(
                    f"Workflow entity '{entity_id}' was modified concurrently",
                    expected_version=expected_version,
                    actual_version=current.version,
                )
            merged = merge_changes(current, changes)

            assignments = ", ".join(f"{c} = :{c}" for c in self._MUTABLE_COLUMNS)
            params = _to_params(merged)
            params["current_version"] = current.version
            # the version guard makes the read-modify-write atomic per id
            result = db.execute(
                text(f"""
                    UPDATE workflow_entities
                    SET {assignments}
                    WHERE id = :id AND version = :current_version
                """),
                params,
            )
            if result.rowcount == 0:
                db.rollback()
                raise Conflict(
                    f"Workflow entity '{entity_id}' was modified concurrently",
                    expected_version=current.version,
                )
            db.commit()
        return merged

    def delete(self, entity_id: str, expected_version: int | None = None) -> bool:
        query = "DELETE FROM workflow_entities WHERE id = :id"
        params: dict[str, object] = {"id": entity_id}
        if expected_version is not None:
            query += " AND version = :expected_version"
            params["expected_version"] = expected_version

        with self._session_factory() as db:
            result = db.execute(text(query), params)
            removed = result.rowcount > 0
            if removed or expected_version is None:
                db.commit()
                return removed

            db.rollback()
            row = db.execute(
                text("SELECT version FROM workflow_entities WHERE id = :id"),
                {"id": entity_id},
            ).first()
        if row is None:
            return False
        raise Conflict(
            f"Workflow entity '{entity_id}' was modified concurrently",
            expected_version=expected_version,
            actual_version=int(row[0]),
        )

    def find(self, filters: EntityFilters | None = None) -> list[WorkflowEntity]:
        filters = filters or EntityFilters()
        conditions: list[str] = []
        params: dict[str, object] = {}

        # --- Filters ---
        if filters.kind is not None:
            conditions.append("kind = :kind")
            params["kind"] = filters.kind.value

        if filters.owner_id:
            conditions.append("owner_id = :owner_id")
            params["owner_id"] = filters.owner_id

        if filters.academic_session:
            conditions.append("academic_session = :academic_session")
            params["academic_session"] = filters.academic_session

        if filters.term:
            conditions.append("term = :term")
            params["term"] = filters.term

        if filters.status is not None:
            conditions.append("status = :status")
            params["status"] = filters.status.value

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        query = text(f"""
            SELECT *
            FROM workflow_entities
            {where_clause}
            ORDER BY created_at DESC, seq DESC
        """)
        with self._session_factory() as db:
            rows = db.execute(query, params).mappings().all()

        entities = [_from_row(row) for row in rows]
        # category lives inside the JSON payload
        if filters.category is not None:
            entities = [e for e in entities if e.payload.get("category") == filters.category]
        return entities

    def list_by_owner(self, owner_id: str) -> list[WorkflowEntity]:
        return self.find(EntityFilters(owner_id=owner_id))

    def list_by_period(self, academic_session: str, term: str | None = None) -> list[WorkflowEntity]:
        return self.find(EntityFilters(academic_session=academic_session, term=term))

    def list_by_status(self, status: WorkflowStatus) -> list[WorkflowEntity]:
        return self.find(EntityFilters(status=status))
