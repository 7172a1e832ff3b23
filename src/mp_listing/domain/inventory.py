"""Inventory ledger: availability bookkeeping for listings.

Every operation is one conditional UPDATE in the repository; the ledger only
picks the per-kind status labels and classifies a zero-row result:

  reserve  available -= q, reserved += q   (guard: reservable status, available >= q)
  release  available += q, reserved -= q   (exact inverse of reserve)
  consume  reserved -= q, fulfilled += q   (consumed label once available and reserved are 0)
"""
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.enums import ItemStatus, ListingKind, WantAdStatus
from src.mp_common.errors import (
    InvalidFieldError,
    InventoryInvariantError,
    ListingNotAvailableError,
    ListingNotFoundError,
    QuantityExceedsAvailabilityError,
)
from src.mp_listing.domain.models import Listing
from src.mp_listing.domain.repository import ListingRepositoryProtocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InventoryLabels:
    reservable: str
    exhausted: str  # status once available_count reaches zero
    consumed: str  # status once every unit is fulfilled
    progress: tuple[str, ...] = ()  # later statuses that still take orders

    @property
    def open_statuses(self) -> list[str]:
        return [self.reservable, *self.progress]


# A want-ad stays `accepted` while the purchaser fulfils it in one or more
# orders; it has no separate "fully reserved" status. Purchase progress
# (`purchased`, `shipping`) does not close it to further orders.
INVENTORY_LABELS: dict[str, InventoryLabels] = {
    ListingKind.WANT_AD.value: InventoryLabels(
        reservable=WantAdStatus.ACCEPTED.value,
        exhausted=WantAdStatus.ACCEPTED.value,
        consumed=WantAdStatus.COMPLETED.value,
        progress=(WantAdStatus.PURCHASED.value, WantAdStatus.SHIPPING.value),
    ),
    ListingKind.ITEM.value: InventoryLabels(
        reservable=ItemStatus.AVAILABLE.value,
        exhausted=ItemStatus.RESERVED.value,
        consumed=ItemStatus.SOLD.value,
    ),
}


def labels_for(kind: str) -> InventoryLabels:
    try:
        return INVENTORY_LABELS[kind]
    except KeyError:
        raise InvalidFieldError(f"Unknown listing kind: {kind}") from None


class InventoryLedger:
    def __init__(self, repo: ListingRepositoryProtocol) -> None:
        self._repo = repo

    async def reserve(self, listing: Listing, quantity: int, db: AsyncSession) -> Listing:
        if quantity < 1:
            raise InvalidFieldError(f"quantity must be >= 1, got {quantity}")
        labels = labels_for(listing.kind)
        updated = await self._repo.reserve(listing.id, quantity, labels, db)
        if updated is not None:
            return updated

        # Zero rows: re-read to tell the caller which guard failed
        current = await self._repo.get_by_id(listing.id, db)
        if current is None:
            raise ListingNotFoundError(listing.id)
        if current.status not in labels.open_statuses:
            raise ListingNotAvailableError(listing.id, current.status)
        raise QuantityExceedsAvailabilityError(quantity, current.available_count)

    async def release(self, listing_id: str, kind: str, quantity: int, db: AsyncSession) -> Listing:
        updated = await self._repo.release(listing_id, quantity, labels_for(kind), db)
        if updated is None:
            logger.error("Inventory release rejected: listing=%s quantity=%d", listing_id, quantity)
            raise InventoryInvariantError(
                f"release of {quantity} on listing {listing_id} exceeds its reserved units"
            )
        return updated

    async def consume(self, listing_id: str, kind: str, quantity: int, db: AsyncSession) -> Listing:
        updated = await self._repo.consume(listing_id, quantity, labels_for(kind), db)
        if updated is None:
            logger.error("Inventory consume rejected: listing=%s quantity=%d", listing_id, quantity)
            raise InventoryInvariantError(
                f"consume of {quantity} on listing {listing_id} exceeds its reserved units"
            )
        return updated
