"""ListingApplicationService: listing creation, acceptance, edits and removal.

Mutations run in one transaction owned by this service: commit on success,
rollback on any exception. Acceptance additionally holds the listing lock so
two purchasers racing for one want-ad are serialized; the conditional
UPDATE in the repository decides the winner either way.
"""
import logging
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.datetime_utils import ensure_utc, utc_now
from src.mp_common.enums import ItemStatus, ListingKind, PartyRole, WantAdStatus
from src.mp_common.errors import (
    ConcurrentModificationError,
    InvalidFieldError,
    ListingAlreadyClaimedError,
    ListingNotAvailableError,
    ListingNotFoundError,
    MissingFieldError,
    NotAcceptedPurchaserError,
    NotListingOwnerError,
    SelfDealingError,
)
from src.mp_common.id_generator import generate_id
from src.mp_common.locks import EntityLockManager, get_lock_manager, listing_key
from src.mp_geo.resolver import IpLocationResolver, get_ip_resolver
from src.mp_legal.application.schemas import ConsentPayload
from src.mp_legal.application.service import ConsentRecorder
from src.mp_listing.application.schemas import (
    CreateListingRequest,
    ListingListResponse,
    ListingResponse,
    ListingTrackingRequest,
    PurchaserImagesRequest,
    ReceiptRequest,
    UpdateListingRequest,
)
from src.mp_listing.domain.inventory import labels_for
from src.mp_listing.domain.models import Listing
from src.mp_listing.domain.repository import ListingRepositoryProtocol
from src.mp_listing.infrastructure.persistence import ListingRepository

logger = logging.getLogger(__name__)

ITEM_CATEGORIES = frozenset(
    {"electronics", "clothing", "cosmetics", "books", "home", "sports", "toys", "food", "other"}
)

# Owner removal is only allowed from the open state
_REMOVAL = {
    ListingKind.WANT_AD.value: (WantAdStatus.PENDING.value, WantAdStatus.CANCELLED.value),
    ListingKind.ITEM.value: (ItemStatus.AVAILABLE.value, ItemStatus.REMOVED.value),
}

_T = TypeVar("_T")

# Statuses after which a listing can no longer be edited
_CLOSED = frozenset(
    {
        WantAdStatus.COMPLETED.value,
        WantAdStatus.CANCELLED.value,
        ItemStatus.SOLD.value,
        ItemStatus.REMOVED.value,
    }
)

_WANT_AD_ONLY = frozenset({"target_country", "expected_return_date", "expected_tip_cents"})
_ITEM_ONLY = frozenset(
    {"condition", "delivery_method", "shipping_fee_cents", "shipping_fee_paid_by"}
)
_NULLABLE = frozenset({"category", "original_price_cents", "location"})
_EDIT_COLUMNS = {
    "price_cents": "price",
    "original_price_cents": "original_price",
    "expected_tip_cents": "expected_tip",
    "shipping_fee_cents": "shipping_fee",
}


def _require(value: _T | None, field: str) -> _T:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MissingFieldError(field)
    return value


def _check_item(price: int, category: str | None) -> str:
    if price <= 0:
        raise InvalidFieldError(f"price_cents must be > 0, got {price}")
    category = _require(category, "category")
    if category not in ITEM_CATEGORIES:
        raise InvalidFieldError(f"Unknown category: {category}")
    return category


class ListingApplicationService:
    def __init__(
        self,
        repo: ListingRepositoryProtocol | None = None,
        consent: ConsentRecorder | None = None,
        geo: IpLocationResolver | None = None,
        locks: EntityLockManager | None = None,
    ) -> None:
        self._repo: ListingRepositoryProtocol = repo or ListingRepository()
        self._consent = consent or ConsentRecorder()
        self._geo = geo
        self._locks = locks or get_lock_manager()

    async def _resolve_location(self, client_ip: str | None) -> str:
        resolver = self._geo or get_ip_resolver()
        return await resolver.resolve(client_ip)

    def _build_want_ad(self, listing_id: str, actor_id: str, req: CreateListingRequest) -> Listing:
        title = _require(req.title, "title")
        description = _require(req.description, "description")
        target_country = _require(req.target_country, "target_country")
        required = _require(req.required_quantity, "required_quantity")
        return_date = _require(req.expected_return_date, "expected_return_date")
        available = req.available_count or required
        if available > required:
            raise InvalidFieldError(
                f"available_count {available} exceeds required_quantity {required}"
            )
        return Listing(
            id=listing_id,
            kind=ListingKind.WANT_AD.value,
            owner_id=actor_id,
            title=title,
            description=description,
            status=WantAdStatus.PENDING.value,
            images=list(req.images),
            category=req.category,
            price=req.price_cents,
            original_price=req.original_price_cents,
            currency=req.currency,
            location=req.location,
            available_count=available,
            target_country=target_country,
            required_quantity=required,
            expected_return_date=ensure_utc(return_date),
            expected_tip=req.expected_tip_cents,
        )

    def _build_item(self, listing_id: str, actor_id: str, req: CreateListingRequest) -> Listing:
        title = _require(req.title, "title")
        description = _require(req.description, "description")
        category = _check_item(req.price_cents, req.category)
        condition = _require(req.condition, "condition")
        return Listing(
            id=listing_id,
            kind=ListingKind.ITEM.value,
            owner_id=actor_id,
            title=title,
            description=description,
            status=ItemStatus.AVAILABLE.value,
            images=list(req.images),
            category=category,
            price=req.price_cents,
            original_price=req.original_price_cents,
            currency=req.currency,
            location=req.location,
            available_count=req.available_count or 1,
            condition=condition,
            delivery_method=req.delivery_method or "negotiable",
            shipping_fee=req.shipping_fee_cents,
            shipping_fee_paid_by=req.shipping_fee_paid_by or "buyer",
        )

    async def create_listing(
        self,
        db: AsyncSession,
        actor_id: str,
        req: CreateListingRequest,
        client_ip: str | None = None,
    ) -> ListingResponse:
        listing_id = generate_id("lst")
        if req.kind == ListingKind.WANT_AD.value:
            listing = self._build_want_ad(listing_id, actor_id, req)
            owner_role = PartyRole.BUYER.value
        else:
            listing = self._build_item(listing_id, actor_id, req)
            owner_role = PartyRole.SELLER.value
        listing.ip_location = await self._resolve_location(client_ip)
        now = utc_now()
        listing.created_at = now
        listing.updated_at = now

        try:
            # Want-ads always carry the owner's consent; items only when supplied
            if req.consent is not None or listing.is_want_ad:
                agreement = await self._consent.record_from_payload(
                    db, actor_id, owner_role, req.consent, client_ip, listing_id=listing_id
                )
                listing.legal_agreement_version = agreement.version
            await self._repo.save(listing, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Listing created: id=%s kind=%s owner=%s available=%d",
            listing.id,
            listing.kind,
            actor_id,
            listing.available_count,
        )
        return ListingResponse.from_domain(listing)

    async def accept_listing(
        self,
        db: AsyncSession,
        actor_id: str,
        listing_id: str,
        consent: ConsentPayload | None = None,
        client_ip: str | None = None,
    ) -> ListingResponse:
        async with self._locks.hold(listing_key(listing_id)):
            try:
                listing = await self._repo.get_by_id(listing_id, db)
                if listing is None:
                    raise ListingNotFoundError(listing_id)
                if not listing.is_want_ad:
                    raise InvalidFieldError("Only want-ads can be accepted")
                if listing.owner_id == actor_id:
                    raise SelfDealingError(listing_id)
                if listing.status != WantAdStatus.PENDING.value:
                    if listing.accepted_by is not None:
                        raise ListingAlreadyClaimedError(listing_id)
                    raise ListingNotAvailableError(listing_id, listing.status)

                claimed = await self._repo.claim(listing_id, actor_id, utc_now(), db)
                if claimed is None:
                    raise ListingAlreadyClaimedError(listing_id)
                await self._consent.record_from_payload(
                    db, actor_id, PartyRole.SELLER.value, consent, client_ip,
                    listing_id=listing_id,
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        logger.info("Want-ad accepted: id=%s purchaser=%s", listing_id, actor_id)
        return ListingResponse.from_domain(claimed)

    async def remove_listing(
        self, db: AsyncSession, actor_id: str, listing_id: str
    ) -> ListingResponse:
        async with self._locks.hold(listing_key(listing_id)):
            try:
                listing = await self._repo.get_by_id(listing_id, db)
                if listing is None:
                    raise ListingNotFoundError(listing_id)
                if listing.owner_id != actor_id:
                    raise NotListingOwnerError(listing_id)
                from_status, to_status = _REMOVAL[listing.kind]
                removed = await self._repo.deactivate(listing_id, from_status, to_status, db)
                if removed is None:
                    raise ListingNotAvailableError(listing_id, listing.status)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        logger.info("Listing removed: id=%s status=%s", listing_id, removed.status)
        return ListingResponse.from_domain(removed)

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    @staticmethod
    def _apply_edit(listing: Listing, req: UpdateListingRequest) -> list[str]:
        changes = req.model_dump(exclude_unset=True)
        if not changes:
            raise InvalidFieldError("No editable fields supplied")
        foreign = _ITEM_ONLY if listing.is_want_ad else _WANT_AD_ONLY
        misplaced = sorted(foreign & changes.keys())
        if misplaced:
            raise InvalidFieldError(f"Fields not editable on a {listing.kind}: {misplaced}")

        for name, value in changes.items():
            if value is None and name not in _NULLABLE:
                raise MissingFieldError(name)
            if name == "expected_return_date":
                value = ensure_utc(value)
            setattr(listing, _EDIT_COLUMNS.get(name, name), value)

        _require(listing.title, "title")
        _require(listing.description, "description")
        if not listing.is_want_ad:
            _check_item(listing.price, listing.category)
        return sorted(changes)

    async def update_listing(
        self, db: AsyncSession, actor_id: str, listing_id: str, req: UpdateListingRequest
    ) -> ListingResponse:
        """Owner edit of descriptive, pricing and delivery fields.

        Orders already placed keep the title, cover image and price terms
        they copied when they were created.
        """
        async with self._locks.hold(listing_key(listing_id)):
            try:
                listing = await self._repo.get_by_id(listing_id, db)
                if listing is None:
                    raise ListingNotFoundError(listing_id)
                if listing.owner_id != actor_id:
                    raise NotListingOwnerError(listing_id)
                if listing.status in _CLOSED:
                    raise ListingNotAvailableError(listing_id, listing.status)
                expected_version = listing.version
                changed = self._apply_edit(listing, req)
                updated = await self._repo.update_details(listing, expected_version, db)
                if updated is None:
                    raise ConcurrentModificationError(listing_key(listing_id))
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        logger.info("Listing updated: id=%s fields=%s", listing_id, ",".join(changed))
        return ListingResponse.from_domain(updated)

    async def _record_progress(
        self,
        db: AsyncSession,
        actor_id: str,
        listing_id: str,
        apply: Callable[[Listing], None],
        event: str,
    ) -> ListingResponse:
        async with self._locks.hold(listing_key(listing_id)):
            try:
                listing = await self._repo.get_by_id(listing_id, db)
                if listing is None:
                    raise ListingNotFoundError(listing_id)
                if not listing.is_want_ad:
                    raise InvalidFieldError("Only want-ads record purchase progress")
                if listing.accepted_by != actor_id:
                    raise NotAcceptedPurchaserError(listing_id)
                if listing.status not in labels_for(listing.kind).open_statuses:
                    raise ListingNotAvailableError(listing_id, listing.status)
                expected_version = listing.version
                apply(listing)
                updated = await self._repo.update_details(listing, expected_version, db)
                if updated is None:
                    raise ConcurrentModificationError(listing_key(listing_id))
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        logger.info("Want-ad %s: id=%s status=%s", event, listing_id, updated.status)
        return ListingResponse.from_domain(updated)

    async def upload_purchaser_images(
        self, db: AsyncSession, actor_id: str, listing_id: str, req: PurchaserImagesRequest
    ) -> ListingResponse:
        """Purchaser's photos of the bought goods; the first upload marks it purchased."""

        def apply(listing: Listing) -> None:
            listing.purchaser_images = list(req.images)
            if req.images and listing.status == WantAdStatus.ACCEPTED.value:
                listing.status = WantAdStatus.PURCHASED.value

        return await self._record_progress(db, actor_id, listing_id, apply, "purchaser images")

    async def update_receipt(
        self, db: AsyncSession, actor_id: str, listing_id: str, req: ReceiptRequest
    ) -> ListingResponse:
        def apply(listing: Listing) -> None:
            listing.receipt_image = req.receipt_image

        return await self._record_progress(db, actor_id, listing_id, apply, "receipt")

    async def update_tracking(
        self, db: AsyncSession, actor_id: str, listing_id: str, req: ListingTrackingRequest
    ) -> ListingResponse:
        """Tracking for the purchased goods; moves a purchased want-ad to shipping."""

        def apply(listing: Listing) -> None:
            listing.tracking_number = req.tracking_number
            listing.tracking_company = req.tracking_company
            if listing.status == WantAdStatus.PURCHASED.value:
                listing.status = WantAdStatus.SHIPPING.value

        return await self._record_progress(db, actor_id, listing_id, apply, "tracking")

    async def get_listing(self, db: AsyncSession, listing_id: str) -> ListingResponse:
        listing = await self._repo.get_by_id(listing_id, db)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        return ListingResponse.from_domain(listing)

    async def list_listings(
        self,
        db: AsyncSession,
        kind: str | None,
        status: str | None,
        owner_id: str | None,
        cursor: str | None,
        limit: int,
    ) -> ListingListResponse:
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        listings = await self._repo.list_listings(kind, status, owner_id, limit + 1, cursor, db)
        has_more = len(listings) > limit
        page = listings[:limit]
        next_cursor = page[-1].id if has_more and page else None
        return ListingListResponse(
            items=[ListingResponse.from_domain(item) for item in page],
            next_cursor=next_cursor,
        )
