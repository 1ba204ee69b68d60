"""Transition table and authorization rules.

One place answers "who may do what from which state":
- every (status, action) pair that is legal appears in TRANSITIONS
- each kind declares which roles create and which roles review it
- owner-only actions and reviewer-only actions are told apart by `Actor`
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from schoolflow.core.errors import Forbidden, InvalidTransition
from .entities import (
    EDITABLE_STATUSES,
    Principal,
    Role,
    WorkflowAction,
    WorkflowEntity,
    WorkflowKind,
    WorkflowStatus,
)


class Actor(str, Enum):
    OWNER = "owner"
    REVIEWER = "reviewer"


class PolicyOutcome(str, Enum):
    ALLOW = "ALLOW"
    INVALID_STATE = "INVALID_STATE"
    DENY = "DENY"


@dataclass(frozen=True)
class PolicyDecision:
    outcome: PolicyOutcome
    reason: Optional[str] = None


@dataclass(frozen=True)
class TransitionRule:
    action: WorkflowAction
    from_statuses: frozenset[WorkflowStatus]
    to_status: Optional[WorkflowStatus]
    actor: Actor
    kinds: Optional[frozenset[WorkflowKind]] = None

    def applies_to(self, kind: WorkflowKind) -> bool:
        return self.kinds is None or kind in self.kinds


TRANSITIONS: dict[WorkflowAction, TransitionRule] = {
    WorkflowAction.SUBMIT: TransitionRule(
        action=WorkflowAction.SUBMIT,
        from_statuses=frozenset({WorkflowStatus.DRAFT, WorkflowStatus.REJECTED}),
        to_status=WorkflowStatus.PENDING,
        actor=Actor.OWNER,
    ),
    WorkflowAction.APPROVE: TransitionRule(
        action=WorkflowAction.APPROVE,
        from_statuses=frozenset({WorkflowStatus.PENDING}),
        to_status=WorkflowStatus.APPROVED,
        actor=Actor.REVIEWER,
    ),
    WorkflowAction.REJECT: TransitionRule(
        action=WorkflowAction.REJECT,
        from_statuses=frozenset({WorkflowStatus.PENDING}),
        to_status=WorkflowStatus.REJECTED,
        actor=Actor.REVIEWER,
    ),
    WorkflowAction.COMPLETE: TransitionRule(
        action=WorkflowAction.COMPLETE,
        from_statuses=frozenset({WorkflowStatus.APPROVED}),
        to_status=WorkflowStatus.COMPLETED,
        actor=Actor.REVIEWER,
        kinds=frozenset({WorkflowKind.EXPENDITURE}),
    ),
    # edit and delete keep (or drop) the entity without moving it
    WorkflowAction.EDIT: TransitionRule(
        action=WorkflowAction.EDIT,
        from_statuses=EDITABLE_STATUSES,
        to_status=None,
        actor=Actor.OWNER,
    ),
    WorkflowAction.DELETE: TransitionRule(
        action=WorkflowAction.DELETE,
        from_statuses=EDITABLE_STATUSES,
        to_status=None,
        actor=Actor.OWNER,
    ),
}


@dataclass(frozen=True)
class KindPolicy:
    kind: WorkflowKind
    id_prefix: str
    label: str
    creator_roles: frozenset[str]
    reviewer_roles: frozenset[str]
    initial_status: WorkflowStatus = WorkflowStatus.DRAFT


KIND_POLICIES: dict[WorkflowKind, KindPolicy] = {
    WorkflowKind.EXPENDITURE: KindPolicy(
        kind=WorkflowKind.EXPENDITURE,
        id_prefix="exp",
        label="expenditure request",
        creator_roles=frozenset({Role.ACCOUNTANT.value, Role.ADMIN.value}),
        reviewer_roles=frozenset({Role.ADMIN.value}),
    ),
    WorkflowKind.FINANCIAL_REPORT: KindPolicy(
        kind=WorkflowKind.FINANCIAL_REPORT,
        id_prefix="fin_report",
        label="financial report",
        creator_roles=frozenset({Role.ACCOUNTANT.value}),
        reviewer_roles=frozenset({Role.ADMIN.value}),
    ),
    WorkflowKind.EXAM_REPORT: KindPolicy(
        kind=WorkflowKind.EXAM_REPORT,
        id_prefix="report",
        label="exam report",
        creator_roles=frozenset({Role.EXAM_OFFICER.value}),
        reviewer_roles=frozenset({Role.ADMIN.value}),
    ),
}


class WorkflowPolicy:
    """Evaluates transitions against the table and the per-kind role sets."""

    def __init__(
        self,
        kind_policies: dict[WorkflowKind, KindPolicy] | None = None,
        transitions: dict[WorkflowAction, TransitionRule] | None = None,
    ) -> None:
        self._kinds = kind_policies or KIND_POLICIES
        self._transitions = transitions or TRANSITIONS

    def for_kind(self, kind: WorkflowKind) -> KindPolicy:
        return self._kinds[kind]

    def rule(self, action: WorkflowAction) -> TransitionRule:
        return self._transitions[action]

    def evaluate_create(self, kind: WorkflowKind, actor: Principal) -> PolicyDecision:
        creators = self.for_kind(kind).creator_roles
        if creators and actor.role not in creators:
            return PolicyDecision(
                outcome=PolicyOutcome.DENY,
                reason=f"Role '{actor.role}' may not create a {self.for_kind(kind).label}",
            )
        return PolicyDecision(outcome=PolicyOutcome.ALLOW)

    def evaluate(self, entity: WorkflowEntity, action: WorkflowAction, actor: Principal) -> PolicyDecision:
        """
        Decide whether ``actor`` may perform ``action`` on ``entity``.

        The state is checked before the actor, so a wrong-state request is
        reported as such even when the actor would also be refused.
        """
        rule = self._transitions.get(action)
        if rule is None or not rule.applies_to(entity.kind) or entity.status not in rule.from_statuses:
            return PolicyDecision(
                outcome=PolicyOutcome.INVALID_STATE,
                reason=f"Cannot {action.value} from '{entity.status.value}'",
            )

        is_owner = actor.id == entity.owner_id
        if rule.actor == Actor.OWNER:
            if not is_owner:
                return PolicyDecision(
                    outcome=PolicyOutcome.DENY,
                    reason=f"Only the owner may {action.value} this {self.for_kind(entity.kind).label}",
                )
            return PolicyDecision(outcome=PolicyOutcome.ALLOW)

        reviewers = self.for_kind(entity.kind).reviewer_roles
        if actor.role not in reviewers:
            return PolicyDecision(
                outcome=PolicyOutcome.DENY,
                reason=f"Role '{actor.role}' may not {action.value} a {self.for_kind(entity.kind).label}",
            )
        if is_owner and action in (WorkflowAction.APPROVE, WorkflowAction.REJECT):
            return PolicyDecision(
                outcome=PolicyOutcome.DENY,
                reason=f"Owners cannot {action.value} their own {self.for_kind(entity.kind).label}",
            )
        return PolicyDecision(outcome=PolicyOutcome.ALLOW)

    def assert_allowed(self, entity: WorkflowEntity, action: WorkflowAction, actor: Principal) -> TransitionRule:
        decision = self.evaluate(entity, action, actor)
        if decision.outcome == PolicyOutcome.INVALID_STATE:
            raise InvalidTransition(entity.status.value, action.value)
        if decision.outcome == PolicyOutcome.DENY:
            raise Forbidden(decision.reason)
        return self._transitions[action]

    def assert_can_create(self, kind: WorkflowKind, actor: Principal) -> None:
        decision = self.evaluate_create(kind, actor)
        if decision.outcome == PolicyOutcome.DENY:
            raise Forbidden(decision.reason)
