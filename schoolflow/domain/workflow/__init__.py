"""This module implements the request/review workflow shared by every kind."""
from .entities import (
    EntityFilters,
    Period,
    Principal,
    Role,
    SufficiencyResult,
    TransitionRecord,
    WorkflowAction,
    WorkflowEntity,
    WorkflowKind,
    WorkflowStatus,
)
from .repository import EntityStore, SqlEntityStore
from .in_memory_repository import InMemoryEntityStore
from .policy import KIND_POLICIES, TRANSITIONS, KindPolicy, WorkflowPolicy
from .payloads import PAYLOAD_SCHEMAS, validate_payload
from .engine import WorkflowEngine
