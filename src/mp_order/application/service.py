# src/mp_order/application/service.py
"""OrderLifecycleService: order creation and every status transition.

Each mutation runs as one unit:

    hold entity lock (bounded wait)
      load -> validate via the variant's state machine -> side effects
      -> conditional UPDATE (status + version) -> commit
    any exception -> rollback, nothing persisted

Side effects live in the same transaction as the status write: cancellation
and refund release the reserved quantity; completion settles the order and
consumes the inventory.
"""
import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mp_clearing.domain.fee import ClientFeeClaim, PriceBreakdown, verify_client_fees
from src.mp_clearing.domain.settlement import SettlementProcessor
from src.mp_common.datetime_utils import utc_now
from src.mp_common.enums import (
    DeliveryMethod,
    ItemStatus,
    ListingKind,
    OrderKind,
    OrderStatus,
    PartyRole,
    ShippingFeePaidBy,
)
from src.mp_common.errors import (
    ConcurrentModificationError,
    ForbiddenError,
    InvalidFieldError,
    InvalidShippingAddressError,
    InvalidTransitionError,
    ListingNotAvailableError,
    ListingNotFoundError,
    NotAcceptedPurchaserError,
    NotOrderParticipantError,
    OrderNotFoundError,
    QuantityExceedsAvailabilityError,
    SelfDealingError,
)
from src.mp_common.id_generator import generate_id
from src.mp_common.locks import EntityLockManager, get_lock_manager, listing_key, order_key
from src.mp_gateway.user.directory import UserDirectory, UserDirectoryProtocol, UserProfile
from src.mp_geo.resolver import IpLocationResolver, get_ip_resolver
from src.mp_legal.application.service import ConsentRecorder
from src.mp_listing.domain.inventory import InventoryLedger, labels_for
from src.mp_listing.domain.models import Listing
from src.mp_listing.domain.repository import ListingRepositoryProtocol
from src.mp_listing.infrastructure.persistence import ListingRepository
from src.mp_order.application.schemas import (
    CreateMarketplaceOrderRequest,
    CreateProxyOrderRequest,
    OrderListResponse,
    OrderResponse,
    PayOrderRequest,
    ShipOrderRequest,
    ShippingAddressPayload,
    TrackingRequest,
    to_shipping_address,
)
from src.mp_order.domain.models import Order, ShippingAddress
from src.mp_order.domain.repository import OrderRepositoryProtocol
from src.mp_order.domain.variants import MARKETPLACE, PROXY_PURCHASE, OrderVariant, get_variant
from src.mp_order.infrastructure.persistence import OrderRepository

logger = logging.getLogger(__name__)

_ADDRESS_FIELDS = ("receiver_name", "phone", "province", "city", "district", "address")

PathResolver = Callable[[Order, OrderVariant], tuple[str, ...]]
Preparer = Callable[[Order, OrderVariant], Awaitable[None]]


def require_complete_address(payload: ShippingAddressPayload | None) -> ShippingAddress:
    """Every field but postal_code must be present and non-blank."""
    if payload is None:
        raise InvalidShippingAddressError("shipping address is required")
    missing = [f for f in _ADDRESS_FIELDS if not (getattr(payload, f) or "").strip()]
    if missing:
        raise InvalidShippingAddressError(f"missing {', '.join(missing)}")
    return to_shipping_address(payload)


def _single(target: str) -> PathResolver:
    def resolve(order: Order, variant: OrderVariant) -> tuple[str, ...]:
        return (target,)

    return resolve


def _remaining_receipt_path(order: Order, variant: OrderVariant) -> tuple[str, ...]:
    """Steps of the receipt path still ahead of the order's current status."""
    path = variant.receipt_path
    if order.status in path:
        return path[path.index(order.status) + 1:] or (path[-1],)
    return path


class OrderLifecycleService:
    def __init__(
        self,
        order_repo: OrderRepositoryProtocol | None = None,
        listing_repo: ListingRepositoryProtocol | None = None,
        consent: ConsentRecorder | None = None,
        users: UserDirectoryProtocol | None = None,
        settlement: SettlementProcessor | None = None,
        geo: IpLocationResolver | None = None,
        locks: EntityLockManager | None = None,
        fee_tolerance_cents: int | None = None,
    ) -> None:
        self._orders: OrderRepositoryProtocol = order_repo or OrderRepository()
        self._listings: ListingRepositoryProtocol = listing_repo or ListingRepository()
        self._inventory = InventoryLedger(self._listings)
        self._consent = consent or ConsentRecorder()
        self._users: UserDirectoryProtocol = users or UserDirectory()
        self._settlement = settlement or SettlementProcessor()
        self._geo = geo
        self._locks = locks or get_lock_manager()
        self._fee_tolerance = (
            settings.FEE_TOLERANCE_CENTS if fee_tolerance_cents is None else fee_tolerance_cents
        )

    async def _resolve_location(self, client_ip: str | None) -> str:
        resolver = self._geo or get_ip_resolver()
        return await resolver.resolve(client_ip)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def _load_listing(self, listing_id: str, db: AsyncSession) -> Listing:
        listing = await self._listings.get_by_id(listing_id, db)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        return listing

    @staticmethod
    def _new_order(
        variant: OrderVariant,
        listing: Listing,
        buyer: UserProfile,
        seller: UserProfile,
        breakdown: PriceBreakdown,
    ) -> Order:
        now = utc_now()
        return Order(
            id=generate_id("ord"),
            kind=variant.kind.value,
            listing_id=listing.id,
            buyer_id=buyer.id,
            seller_id=seller.id,
            quantity=breakdown.quantity,
            unit_price=breakdown.unit_price,
            base_price=breakdown.base_price,
            service_fee=breakdown.service_fee,
            platform_fee=breakdown.platform_fee,
            shipping_fee=breakdown.shipping_fee,
            tip=breakdown.tip,
            total_amount=breakdown.total_amount,
            status=variant.table.initial,
            # Copied once; profile/listing edits after this point do not reach the order
            listing_title=listing.title,
            listing_image=listing.cover_image,
            buyer_username=buyer.username,
            buyer_avatar_url=buyer.avatar_url,
            seller_username=seller.username,
            seller_avatar_url=seller.avatar_url,
            created_at=now,
            updated_at=now,
        )

    async def create_proxy_order(
        self,
        db: AsyncSession,
        actor_id: str,
        req: CreateProxyOrderRequest,
        client_ip: str | None = None,
    ) -> OrderResponse:
        """Purchaser submits the order for a want-ad they accepted."""
        # Pure validation first: nothing below depends on stored state
        breakdown = PROXY_PURCHASE.fee_strategy.quote(
            req.unit_price_cents, req.quantity, shipping_fee=req.shipping_fee_cents, tip=req.tip_cents
        )
        verify_client_fees(
            breakdown,
            ClientFeeClaim(
                service_fee=req.service_fee_cents,
                platform_fee=req.platform_fee_cents,
                total_amount=req.total_amount_cents,
            ),
            self._fee_tolerance,
        )
        ip_location = await self._resolve_location(client_ip)

        async with self._locks.hold(listing_key(req.listing_id)):
            try:
                listing = await self._load_listing(req.listing_id, db)
                if listing.kind != ListingKind.WANT_AD.value:
                    raise InvalidFieldError("Proxy-purchase orders require a want-ad listing")
                if listing.owner_id == actor_id:
                    raise SelfDealingError(listing.id)
                if listing.accepted_by != actor_id:
                    raise NotAcceptedPurchaserError(listing.id)
                if listing.status not in labels_for(listing.kind).open_statuses:
                    raise ListingNotAvailableError(listing.id, listing.status)
                if listing.required_quantity is not None and req.quantity > listing.required_quantity:
                    raise QuantityExceedsAvailabilityError(req.quantity, listing.required_quantity)

                buyer = await self._users.get_profile(listing.owner_id, db)
                seller = await self._users.get_profile(actor_id, db)
                await self._inventory.reserve(listing, req.quantity, db)
                await self._listings.update_price(
                    listing.id, req.unit_price_cents, req.original_price_cents, db
                )

                order = self._new_order(PROXY_PURCHASE, listing, buyer, seller, breakdown)
                order.notes = req.notes
                order.ip_location = ip_location
                agreement = await self._consent.record_from_payload(
                    db, actor_id, PartyRole.SELLER.value, req.consent, client_ip,
                    listing_id=listing.id, order_id=order.id,
                )
                order.legal_agreement_version = agreement.version
                order.seller_legal_agreed_at = agreement.agreed_at
                order.seller_legal_agreed_ip = agreement.agreed_ip
                await self._orders.save(order, db)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(
            "Order created: id=%s kind=%s listing=%s qty=%d total=%d",
            order.id, order.kind, order.listing_id, order.quantity, order.total_amount,
        )
        return OrderResponse.from_domain(order)

    async def create_marketplace_order(
        self,
        db: AsyncSession,
        actor_id: str,
        req: CreateMarketplaceOrderRequest,
        client_ip: str | None = None,
    ) -> OrderResponse:
        """Buyer orders a marketplace item at the listed price."""
        address = None
        if req.delivery_method == DeliveryMethod.SHIPPING.value:
            address = require_complete_address(req.shipping_address)
        ip_location = await self._resolve_location(client_ip)

        async with self._locks.hold(listing_key(req.listing_id)):
            try:
                listing = await self._load_listing(req.listing_id, db)
                if listing.kind != ListingKind.ITEM.value:
                    raise InvalidFieldError("Marketplace orders require an item listing")
                if listing.owner_id == actor_id:
                    raise SelfDealingError(listing.id)
                if listing.status != ItemStatus.AVAILABLE.value:
                    raise ListingNotAvailableError(listing.id, listing.status)
                if req.quantity > listing.available_count:
                    raise QuantityExceedsAvailabilityError(req.quantity, listing.available_count)

                delivery = (
                    req.delivery_method or listing.delivery_method or DeliveryMethod.NEGOTIABLE.value
                )
                if delivery == DeliveryMethod.SHIPPING.value and address is None:
                    address = require_complete_address(req.shipping_address)
                buyer_pays_shipping = (
                    delivery == DeliveryMethod.SHIPPING.value
                    and listing.shipping_fee_paid_by == ShippingFeePaidBy.BUYER.value
                )
                breakdown = MARKETPLACE.fee_strategy.quote(
                    listing.price,
                    req.quantity,
                    shipping_fee=listing.shipping_fee,
                    buyer_pays_shipping=buyer_pays_shipping,
                )
                verify_client_fees(
                    breakdown,
                    ClientFeeClaim(
                        platform_fee=req.platform_fee_cents,
                        total_amount=req.total_amount_cents,
                    ),
                    self._fee_tolerance,
                )

                buyer = await self._users.get_profile(actor_id, db)
                seller = await self._users.get_profile(listing.owner_id, db)
                await self._inventory.reserve(listing, req.quantity, db)

                order = self._new_order(MARKETPLACE, listing, buyer, seller, breakdown)
                order.delivery_method = delivery
                order.shipping_address = address
                if delivery == DeliveryMethod.PICKUP.value:
                    order.pickup_address = req.pickup_address or listing.location
                order.shipping_fee_paid_by = listing.shipping_fee_paid_by
                order.notes = req.notes
                order.ip_location = ip_location
                agreement = await self._consent.record_from_payload(
                    db, actor_id, PartyRole.BUYER.value, req.consent, client_ip,
                    listing_id=listing.id, order_id=order.id,
                )
                order.legal_agreement_version = agreement.version
                order.buyer_legal_agreed_at = agreement.agreed_at
                order.buyer_legal_agreed_ip = agreement.agreed_ip
                await self._orders.save(order, db)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(
            "Order created: id=%s kind=%s listing=%s qty=%d total=%d fee=%d",
            order.id, order.kind, order.listing_id, order.quantity,
            order.total_amount, order.platform_fee,
        )
        return OrderResponse.from_domain(order)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def _load_order(
        self, order_id: str, db: AsyncSession, kind: str | None = None
    ) -> Order:
        order = await self._orders.get_by_id(order_id, db)
        # An order is only visible under its own kind's routes
        if order is None or (kind is not None and order.kind != kind):
            raise OrderNotFoundError(order_id)
        return order

    async def _apply_side_effects(
        self, order: Order, variant: OrderVariant, target: str, db: AsyncSession
    ) -> None:
        table = variant.table
        listing_kind = variant.listing_kind.value
        if target in table.releases_inventory:
            await self._inventory.release(order.listing_id, listing_kind, order.quantity, db)
        if target == table.settles_on:
            self._settlement.settle(order, order.updated_at)
            await self._inventory.consume(order.listing_id, listing_kind, order.quantity, db)

    async def _transition(
        self,
        db: AsyncSession,
        actor_id: str,
        order_id: str,
        resolve_path: PathResolver,
        prepare: Preparer | None = None,
        kind: str | None = None,
    ) -> Order:
        async with self._locks.hold(order_key(order_id)):
            try:
                order = await self._load_order(order_id, db, kind)
                variant = get_variant(order.kind)
                machine = variant.machine
                expected_status, expected_version = order.status, order.version
                path = resolve_path(order, variant)

                # Reject before touching anything; later steps are checked as we walk
                machine.check(order, actor_id, path[0])
                if prepare is not None:
                    await prepare(order, variant)

                now = utc_now()
                for target in path:
                    applied = machine.apply(order, actor_id, target, now)
                    await self._apply_side_effects(order, variant, target, db)
                    logger.info(
                        "Order transition: id=%s kind=%s %s -> %s by %s",
                        order.id, order.kind, applied.from_status, applied.to_status, applied.role,
                    )

                stored = await self._orders.update_guarded(
                    order, expected_status, expected_version, db
                )
                if stored is None:
                    raise ConcurrentModificationError(f"order {order_id}")
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        return stored

    async def pay_order(
        self,
        db: AsyncSession,
        actor_id: str,
        order_id: str,
        req: PayOrderRequest | None = None,
        client_ip: str | None = None,
        kind: str | None = None,
    ) -> OrderResponse:
        req = req or PayOrderRequest()
        ip_location = await self._resolve_location(client_ip)

        async def prepare(order: Order, variant: OrderVariant) -> None:
            if variant.kind == OrderKind.PROXY_PURCHASE:
                order.shipping_address = require_complete_address(req.shipping_address)
            elif req.shipping_address is not None:
                order.shipping_address = require_complete_address(req.shipping_address)
            elif (
                order.delivery_method == DeliveryMethod.SHIPPING.value
                and order.shipping_address is None
            ):
                raise InvalidShippingAddressError("shipping address is required")
            order.ip_location = ip_location
            agreement = await self._consent.record_from_payload(
                db, actor_id, PartyRole.BUYER.value, req.consent, client_ip,
                listing_id=order.listing_id, order_id=order.id,
            )
            order.legal_agreement_version = order.legal_agreement_version or agreement.version
            order.buyer_legal_agreed_at = agreement.agreed_at
            order.buyer_legal_agreed_ip = agreement.agreed_ip

        order = await self._transition(
            db, actor_id, order_id, _single(OrderStatus.PAID.value), prepare, kind
        )
        return OrderResponse.from_domain(order)

    async def update_status(
        self,
        db: AsyncSession,
        actor_id: str,
        order_id: str,
        status: str,
        kind: str | None = None,
    ) -> OrderResponse:
        """Generic transition entry point (processing, refunded, received, ...)."""
        if status == OrderStatus.PAID.value:
            # Payment has its own address and consent rules
            return await self.pay_order(db, actor_id, order_id, kind=kind)
        order = await self._transition(db, actor_id, order_id, _single(status), kind=kind)
        return OrderResponse.from_domain(order)

    async def ship_order(
        self,
        db: AsyncSession,
        actor_id: str,
        order_id: str,
        req: ShipOrderRequest | None = None,
        kind: str | None = None,
    ) -> OrderResponse:
        req = req or ShipOrderRequest()

        async def prepare(order: Order, variant: OrderVariant) -> None:
            if req.tracking_number:
                order.tracking_number = req.tracking_number
            if req.tracking_company:
                order.tracking_company = req.tracking_company

        order = await self._transition(
            db, actor_id, order_id, _single(OrderStatus.SHIPPING.value), prepare, kind
        )
        return OrderResponse.from_domain(order)

    async def confirm_receipt(
        self, db: AsyncSession, actor_id: str, order_id: str, kind: str | None = None
    ) -> OrderResponse:
        """Buyer confirms receipt; the order completes and settles in one transaction."""
        order = await self._transition(
            db, actor_id, order_id, _remaining_receipt_path, kind=kind
        )
        return OrderResponse.from_domain(order)

    async def cancel_order(
        self, db: AsyncSession, actor_id: str, order_id: str, kind: str | None = None
    ) -> OrderResponse:
        order = await self._transition(
            db, actor_id, order_id, _single(OrderStatus.CANCELLED.value), kind=kind
        )
        return OrderResponse.from_domain(order)

    async def update_tracking(
        self,
        db: AsyncSession,
        actor_id: str,
        order_id: str,
        req: TrackingRequest,
        kind: str | None = None,
    ) -> OrderResponse:
        """Seller edits tracking details; the status does not change."""
        async with self._locks.hold(order_key(order_id)):
            try:
                order = await self._load_order(order_id, db, kind)
                machine = get_variant(order.kind).machine
                if machine.resolve_role(order, actor_id) != PartyRole.SELLER.value:
                    raise ForbiddenError("Only the seller can update tracking details")
                if machine.table.is_terminal(order.status):
                    raise InvalidTransitionError(order.status, order.status)

                order.tracking_number = req.tracking_number
                if req.tracking_company is not None:
                    order.tracking_company = req.tracking_company
                stored = await self._orders.update_guarded(order, order.status, order.version, db)
                if stored is None:
                    raise ConcurrentModificationError(f"order {order_id}")
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        return OrderResponse.from_domain(stored)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_order(
        self, db: AsyncSession, actor_id: str, order_id: str, kind: str | None = None
    ) -> OrderResponse:
        order = await self._load_order(order_id, db, kind)
        if order.role_of(actor_id) is None:
            raise NotOrderParticipantError(order_id)
        return OrderResponse.from_domain(order)

    async def list_orders(
        self,
        db: AsyncSession,
        actor_id: str,
        role: str | None,
        kind: str | None,
        status: str | None,
        cursor: str | None,
        limit: int,
    ) -> OrderListResponse:
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        orders = await self._orders.list_by_user(
            actor_id, role, kind, status, limit + 1, cursor, db
        )
        has_more = len(orders) > limit
        page = orders[:limit]
        next_cursor = page[-1].id if has_more and page else None
        return OrderListResponse(
            items=[OrderResponse.from_domain(o) for o in page],
            next_cursor=next_cursor,
        )
