# src/mp_order/domain/repository.py
"""OrderRepository Protocol: interface contract for persistence layer."""
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_order.domain.models import Order


class OrderRepositoryProtocol(Protocol):
    async def save(self, order: Order, db: AsyncSession) -> None: ...

    async def get_by_id(self, order_id: str, db: AsyncSession) -> Order | None: ...

    async def update_guarded(
        self, order: Order, expected_status: str, expected_version: int, db: AsyncSession
    ) -> Order | None:
        """Persist every mutable field iff status and version are still as read.

        Returns the stored order (version bumped) or None when another writer
        got there first.
        """
        ...

    async def list_by_user(
        self,
        user_id: str,
        role: str | None,
        kind: str | None,
        status: str | None,
        limit: int,
        cursor_id: str | None,
        db: AsyncSession,
    ) -> list[Order]: ...
