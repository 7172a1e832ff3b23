# src/mp_listing/domain/repository.py
"""ListingRepository Protocol: interface contract for persistence layer.

Mutating methods are single conditional writes: they return the updated
Listing, or None when the guard (status / counts) did not hold.
"""
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_listing.domain.models import Listing

if TYPE_CHECKING:
    from src.mp_listing.domain.inventory import InventoryLabels


class ListingRepositoryProtocol(Protocol):
    async def save(self, listing: Listing, db: AsyncSession) -> None: ...

    async def get_by_id(self, listing_id: str, db: AsyncSession) -> Listing | None: ...

    async def claim(
        self, listing_id: str, acceptor_id: str, accepted_at: datetime, db: AsyncSession
    ) -> Listing | None: ...

    async def reserve(
        self, listing_id: str, quantity: int, labels: "InventoryLabels", db: AsyncSession
    ) -> Listing | None: ...

    async def release(
        self, listing_id: str, quantity: int, labels: "InventoryLabels", db: AsyncSession
    ) -> Listing | None: ...

    async def consume(
        self, listing_id: str, quantity: int, labels: "InventoryLabels", db: AsyncSession
    ) -> Listing | None: ...

    async def update_price(
        self, listing_id: str, price: int, original_price: int | None, db: AsyncSession
    ) -> None: ...

    async def update_details(
        self, listing: Listing, expected_version: int, db: AsyncSession
    ) -> Listing | None: ...

    async def deactivate(
        self, listing_id: str, from_status: str, to_status: str, db: AsyncSession
    ) -> Listing | None: ...

    async def list_listings(
        self,
        kind: str | None,
        status: str | None,
        owner_id: str | None,
        limit: int,
        cursor_id: str | None,
        db: AsyncSession,
    ) -> list[Listing]: ...
