"""Generic order state machine driven by an explicit transition table.

Both order variants share this engine; they differ only in the table they
pass in. Checks run in a fixed order and nothing is mutated until all pass:

  1. actor must be the buyer or the seller           -> NotOrderParticipantError
  2. target must be a status the table knows          -> InvalidTransitionError
  3. actor's role must be allowed to request target   -> TransitionNotPermittedError
  4. target must be adjacent to the current status    -> InvalidTransitionError
"""
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime

from src.mp_common.errors import (
    InvalidTransitionError,
    NotOrderParticipantError,
    TransitionNotPermittedError,
)
from src.mp_order.domain.models import Order


@dataclass(frozen=True)
class TransitionTable:
    name: str
    initial: str
    edges: Mapping[str, frozenset[str]]
    permissions: Mapping[str, frozenset[str]]  # role -> targets it may request
    timestamp_fields: Mapping[str, str]  # status -> Order attribute stamped on entry
    releases_inventory: frozenset[str]  # entering these returns reserved quantity
    settles_on: str

    @property
    def statuses(self) -> frozenset[str]:
        known = set(self.edges)
        for targets in self.edges.values():
            known |= targets
        return frozenset(known)

    def allowed_next(self, status: str) -> frozenset[str]:
        return self.edges.get(status, frozenset())

    def is_terminal(self, status: str) -> bool:
        return not self.allowed_next(status)

    def may_request(self, role: str, target: str) -> bool:
        return target in self.permissions.get(role, frozenset())


@dataclass(frozen=True)
class AppliedTransition:
    order_id: str
    from_status: str
    to_status: str
    role: str
    at: datetime


class OrderStateMachine:
    def __init__(self, table: TransitionTable) -> None:
        self._table = table

    @property
    def table(self) -> TransitionTable:
        return self._table

    def resolve_role(self, order: Order, actor_id: str) -> str:
        role = order.role_of(actor_id)
        if role is None:
            raise NotOrderParticipantError(order.id)
        return role

    def check(self, order: Order, actor_id: str, target: str) -> str:
        """Validate without mutating; return the actor's role."""
        role = self.resolve_role(order, actor_id)
        if target not in self._table.statuses:
            raise InvalidTransitionError(order.status, target)
        if not self._table.may_request(role, target):
            raise TransitionNotPermittedError(role, target)
        if target not in self._table.allowed_next(order.status):
            raise InvalidTransitionError(order.status, target)
        return role

    def apply(self, order: Order, actor_id: str, target: str, at: datetime) -> AppliedTransition:
        role = self.check(order, actor_id, target)
        previous = order.status
        order.status = target
        stamp = self._table.timestamp_fields.get(target)
        if stamp:
            setattr(order, stamp, at)
        order.updated_at = at
        return AppliedTransition(
            order_id=order.id, from_status=previous, to_status=target, role=role, at=at
        )
