# ---------------------------------
# TYPED EXCEPTIONS
# ---------------------------------
from __future__ import annotations

from typing import Any


class WorkflowError(Exception):
    """Base class for every error raised by the workflow core."""
    pass


class ValidationError(WorkflowError):
    """Payload or request failed required-field / range checks."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []


class NotFound(WorkflowError):
    def __init__(self, entity_id: str, kind: str | None = None):
        self.entity_id = entity_id
        self.kind = kind
        label = kind or "Workflow entity"
        super().__init__(f"{label} '{entity_id}' not found")


class InvalidTransition(WorkflowError):
    """Action is not legal from the entity's current state."""

    def __init__(self, current_status: str, action: str):
        self.current_status = current_status
        self.action = action
        super().__init__(f"Cannot {action} an entity in status '{current_status}'")


class Forbidden(WorkflowError):
    """Actor identity or role may not perform the action."""
    pass


class Conflict(WorkflowError):
    """Concurrent modification detected; re-fetch and retry."""

    def __init__(self, message: str, *, expected_version: int | None = None, actual_version: int | None = None):
        super().__init__(message)
        self.expected_version = expected_version
        self.actual_version = actual_version


class NotificationDeliveryFailure(WorkflowError):
    """Raised by notification sinks. Logged by the emitter, never propagated."""
    pass
