import threading
from typing import Any, Optional

from schoolflow.core.errors import Conflict
from .entities import EntityFilters, WorkflowEntity, WorkflowStatus
from .repository import check_changes, merge_changes


class InMemoryEntityStore:
    """
    EntityStore held in process memory.

    Records are kept in insertion order; every read returns deep copies so
    callers can never mutate stored state. A single lock serializes the
    read-modify-write of `update`.
    """

    def __init__(self, entities: list[WorkflowEntity] | None = None) -> None:
        self._records: dict[str, WorkflowEntity] = {}
        self._order: dict[str, int] = {}
        self._seq = 0
        self._lock = threading.RLock()
        for entity in entities or []:
            self.create(entity)

    def create(self, entity: WorkflowEntity) -> WorkflowEntity:
        with self._lock:
            if entity.id in self._records:
                raise Conflict(f"Workflow entity '{entity.id}' already exists")
            self._seq += 1
            self._records[entity.id] = entity.copy()
            self._order[entity.id] = self._seq
            return entity.copy()

    def get_by_id(self, entity_id: str) -> Optional[WorkflowEntity]:
        with self._lock:
            entity = self._records.get(entity_id)
            return entity.copy() if entity is not None else None

    def update(
            self,
            entity_id: str,
            changes: dict[str, Any],
            expected_version: int | None = None,
    ) -> Optional[WorkflowEntity]:
        check_changes(changes)
        with self._lock:
            current = self._records.get(entity_id)
            if current is None:
                return None
            if expected_version is not None and current.version != expected_version:
                raise Conflict(
                    f"Workflow entity '{entity_id}' was modified concurrently",
                    expected_version=expected_version,
                    actual_version=current.version,
                )
            merged = merge_changes(current, changes)
            self._records[entity_id] = merged
            return merged.copy()

    def delete(self, entity_id: str, expected_version: int | None = None) -> bool:
        with self._lock:
            current = self._records.get(entity_id)
            if current is None:
                return False
            if expected_version is not None and current.version != expected_version:
                raise Conflict(
                    f"Workflow entity '{entity_id}' was modified concurrently",
                    expected_version=expected_version,
                    actual_version=current.version,
                )
            del self._records[entity_id]
            del self._order[entity_id]
            return True

    def find(self, filters: EntityFilters | None = None) -> list[WorkflowEntity]:
        filters = filters or EntityFilters()
        with self._lock:
            matches = [e for e in self._records.values() if filters.matches(e)]
            matches.sort(key=lambda e: (e.created_at, self._order[e.id]), reverse=True)
            return [e.copy() for e in matches]

    def list_by_owner(self, owner_id: str) -> list[WorkflowEntity]:
        return self.find(EntityFilters(owner_id=owner_id))

    def list_by_period(self, academic_session: str, term: str | None = None) -> list[WorkflowEntity]:
        return self.find(EntityFilters(academic_session=academic_session, term=term))

    def list_by_status(self, status: WorkflowStatus) -> list[WorkflowEntity]:
        return self.find(EntityFilters(status=status))
