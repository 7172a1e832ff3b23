"""In-memory doubles for service-level tests.

The repositories mirror the guards of the raw SQL in infrastructure/ and
return copies, so a failed transition cannot leak mutations into "stored"
state. FakeDb snapshots the store on commit and restores it on rollback.
"""
import copy
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta

import pytest

from src.mp_common.errors import UserNotFoundError
from src.mp_common.locks import LocalEntityLockManager
from src.mp_gateway.user.directory import UserProfile
from src.mp_legal.application.service import ConsentRecorder
from src.mp_legal.domain.models import LegalAgreement
from src.mp_listing.application.service import ListingApplicationService
from src.mp_listing.domain.inventory import InventoryLabels
from src.mp_listing.domain.models import Listing
from src.mp_order.application.service import OrderLifecycleService
from src.mp_order.domain.models import Order

BUYER = "user-buyer"
PURCHASER = "user-purchaser"
SELLER = "user-seller"
STRANGER = "user-stranger"


@dataclass
class Store:
    listings: dict[str, Listing] = field(default_factory=dict)
    orders: dict[str, Order] = field(default_factory=dict)
    agreements: list[LegalAgreement] = field(default_factory=list)


class FakeDb:
    def __init__(self, store: Store) -> None:
        self.store = store
        self._committed = copy.deepcopy(store)
        self.commits = 0
        self.rollbacks = 0

    def seed(self, *records: Listing | Order) -> None:
        """Insert pre-existing rows as already-committed state."""
        for record in records:
            if isinstance(record, Listing):
                self.store.listings[record.id] = copy.deepcopy(record)
            else:
                self.store.orders[record.id] = copy.deepcopy(record)
        self._committed = copy.deepcopy(self.store)

    async def commit(self) -> None:
        self._committed = copy.deepcopy(self.store)
        self.commits += 1

    async def rollback(self) -> None:
        restored = copy.deepcopy(self._committed)
        self.store.listings = restored.listings
        self.store.orders = restored.orders
        self.store.agreements = restored.agreements
        self.rollbacks += 1


class InMemoryListingRepository:
    def __init__(self, store: Store) -> None:
        self._store = store

    def _get(self, listing_id: str) -> Listing | None:
        return self._store.listings.get(listing_id)

    async def save(self, listing: Listing, db: object) -> None:
        self._store.listings[listing.id] = copy.deepcopy(listing)

    async def get_by_id(self, listing_id: str, db: object) -> Listing | None:
        return copy.deepcopy(self._get(listing_id))

    def _bump(self, listing: Listing) -> Listing:
        listing.version += 1
        return copy.deepcopy(listing)

    async def claim(
        self, listing_id: str, acceptor_id: str, accepted_at: datetime, db: object
    ) -> Listing | None:
        listing = self._get(listing_id)
        if (
            listing is None
            or listing.kind != "WANT_AD"
            or listing.status != "pending"
            or listing.owner_id == acceptor_id
        ):
            return None
        listing.status = "accepted"
        listing.accepted_by = acceptor_id
        listing.accepted_at = accepted_at
        return self._bump(listing)

    async def reserve(
        self, listing_id: str, quantity: int, labels: InventoryLabels, db: object
    ) -> Listing | None:
        listing = self._get(listing_id)
        if listing is None or listing.status not in labels.open_statuses:
            return None
        if listing.available_count < quantity:
            return None
        listing.available_count -= quantity
        listing.reserved_count += quantity
        if listing.available_count == 0 and listing.status == labels.reservable:
            listing.status = labels.exhausted
        return self._bump(listing)

    async def release(
        self, listing_id: str, quantity: int, labels: InventoryLabels, db: object
    ) -> Listing | None:
        listing = self._get(listing_id)
        if listing is None or listing.reserved_count < quantity:
            return None
        listing.available_count += quantity
        listing.reserved_count -= quantity
        if listing.status == labels.exhausted:
            listing.status = labels.reservable
        return self._bump(listing)

    async def consume(
        self, listing_id: str, quantity: int, labels: InventoryLabels, db: object
    ) -> Listing | None:
        listing = self._get(listing_id)
        if listing is None or listing.reserved_count < quantity:
            return None
        listing.reserved_count -= quantity
        listing.fulfilled_count += quantity
        if listing.available_count == 0 and listing.reserved_count == 0:
            listing.status = labels.consumed
        return self._bump(listing)

    async def update_price(
        self, listing_id: str, price: int, original_price: int | None, db: object
    ) -> None:
        listing = self._get(listing_id)
        if listing is not None:
            listing.price = price
            if original_price is not None:
                listing.original_price = original_price

    async def update_details(
        self, listing: Listing, expected_version: int, db: object
    ) -> Listing | None:
        current = self._get(listing.id)
        if current is None or current.version != expected_version:
            return None
        stored = replace(
            copy.deepcopy(listing),
            kind=current.kind,
            owner_id=current.owner_id,
            currency=current.currency,
            required_quantity=current.required_quantity,
            available_count=current.available_count,
            reserved_count=current.reserved_count,
            fulfilled_count=current.fulfilled_count,
            accepted_by=current.accepted_by,
            accepted_at=current.accepted_at,
        )
        self._store.listings[listing.id] = stored
        return self._bump(stored)

    async def deactivate(
        self, listing_id: str, from_status: str, to_status: str, db: object
    ) -> Listing | None:
        listing = self._get(listing_id)
        if listing is None or listing.status != from_status:
            return None
        listing.status = to_status
        return self._bump(listing)

    async def list_listings(
        self,
        kind: str | None,
        status: str | None,
        owner_id: str | None,
        limit: int,
        cursor_id: str | None,
        db: object,
    ) -> list[Listing]:
        rows = [
            item
            for item in self._store.listings.values()
            if (kind is None or item.kind == kind)
            and (status is None or item.status == status)
            and (owner_id is None or item.owner_id == owner_id)
            and (cursor_id is None or item.id < cursor_id)
        ]
        rows.sort(key=lambda item: item.id, reverse=True)
        return copy.deepcopy(rows[:limit])


class InMemoryOrderRepository:
    def __init__(self, store: Store) -> None:
        self._store = store

    async def save(self, order: Order, db: object) -> None:
        self._store.orders[order.id] = copy.deepcopy(order)

    async def get_by_id(self, order_id: str, db: object) -> Order | None:
        return copy.deepcopy(self._store.orders.get(order_id))

    async def update_guarded(
        self, order: Order, expected_status: str, expected_version: int, db: object
    ) -> Order | None:
        current = self._store.orders.get(order.id)
        if current is None or current.status != expected_status:
            return None
        if current.version != expected_version:
            return None
        # Financial terms are INSERT-only; keep the stored ones
        stored = replace(
            copy.deepcopy(order),
            unit_price=current.unit_price,
            base_price=current.base_price,
            service_fee=current.service_fee,
            platform_fee=current.platform_fee,
            shipping_fee=current.shipping_fee,
            tip=current.tip,
            total_amount=current.total_amount,
            version=current.version + 1,
        )
        self._store.orders[order.id] = stored
        return copy.deepcopy(stored)

    async def list_by_user(
        self,
        user_id: str,
        role: str | None,
        kind: str | None,
        status: str | None,
        limit: int,
        cursor_id: str | None,
        db: object,
    ) -> list[Order]:
        def visible(order: Order) -> bool:
            if role == "buyer":
                return order.buyer_id == user_id
            if role == "seller":
                return order.seller_id == user_id
            return user_id in (order.buyer_id, order.seller_id)

        rows = [
            o
            for o in self._store.orders.values()
            if visible(o)
            and (kind is None or o.kind == kind)
            and (status is None or o.status == status)
            and (cursor_id is None or o.id < cursor_id)
        ]
        rows.sort(key=lambda o: o.id, reverse=True)
        return copy.deepcopy(rows[:limit])


class InMemoryAgreementRepository:
    def __init__(self, store: Store) -> None:
        self._store = store

    async def insert(self, agreement: LegalAgreement, db: object) -> None:
        self._store.agreements.append(agreement)

    async def list_by_user(self, user_id: str, limit: int, db: object) -> list[LegalAgreement]:
        rows = [a for a in self._store.agreements if a.user_id == user_id]
        rows.sort(key=lambda a: a.agreed_at, reverse=True)
        return rows[:limit]


class FakeUserDirectory:
    def __init__(self) -> None:
        self.profiles = {
            BUYER: UserProfile(BUYER, "alice", "https://cdn.example.com/a.png"),
            PURCHASER: UserProfile(PURCHASER, "bob", "https://cdn.example.com/b.png"),
            SELLER: UserProfile(SELLER, "carol", None),
            STRANGER: UserProfile(STRANGER, "mallory", None),
        }

    async def get_profile(self, user_id: str, db: object) -> UserProfile:
        try:
            return self.profiles[user_id]
        except KeyError:
            raise UserNotFoundError(user_id) from None


class StaticGeo:
    def __init__(self, location: str = "上海") -> None:
        self.location = location
        self.calls: list[str | None] = []

    async def resolve(self, ip: str | None) -> str:
        self.calls.append(ip)
        return self.location


def make_want_ad(**overrides: object) -> Listing:
    values: dict[str, object] = {
        "id": "lst_want_1",
        "kind": "WANT_AD",
        "owner_id": BUYER,
        "title": "Tokyo matcha set",
        "description": "Two boxes from the Uji shop",
        "status": "pending",
        "images": ["https://cdn.example.com/matcha.jpg", "https://cdn.example.com/box.jpg"],
        "available_count": 2,
        "target_country": "JP",
        "required_quantity": 2,
        "expected_return_date": datetime.now(UTC) + timedelta(days=14),
    }
    values.update(overrides)
    return Listing(**values)


def make_item(**overrides: object) -> Listing:
    values: dict[str, object] = {
        "id": "lst_item_1",
        "kind": "ITEM",
        "owner_id": SELLER,
        "title": "Used camera",
        "description": "Works fine",
        "status": "available",
        "images": ["https://cdn.example.com/camera.jpg"],
        "category": "electronics",
        "price": 60_000,
        "location": "Pudong",
        "available_count": 1,
        "condition": "good",
        "delivery_method": "shipping",
        "shipping_fee": 1_200,
        "shipping_fee_paid_by": "buyer",
    }
    values.update(overrides)
    return Listing(**values)


@pytest.fixture
def store() -> Store:
    return Store()


@pytest.fixture
def db(store: Store) -> FakeDb:
    return FakeDb(store)


@pytest.fixture
def listing_repo(store: Store) -> InMemoryListingRepository:
    return InMemoryListingRepository(store)


@pytest.fixture
def order_repo(store: Store) -> InMemoryOrderRepository:
    return InMemoryOrderRepository(store)


@pytest.fixture
def agreement_repo(store: Store) -> InMemoryAgreementRepository:
    return InMemoryAgreementRepository(store)


@pytest.fixture
def locks() -> LocalEntityLockManager:
    return LocalEntityLockManager(wait_timeout=0.5)


@pytest.fixture
def geo() -> StaticGeo:
    return StaticGeo()


@pytest.fixture
def users() -> FakeUserDirectory:
    return FakeUserDirectory()


@pytest.fixture
def listing_service(
    listing_repo: InMemoryListingRepository,
    agreement_repo: InMemoryAgreementRepository,
    geo: StaticGeo,
    locks: LocalEntityLockManager,
) -> ListingApplicationService:
    return ListingApplicationService(
        repo=listing_repo,
        consent=ConsentRecorder(agreement_repo),
        geo=geo,
        locks=locks,
    )


@pytest.fixture
def order_service(
    order_repo: InMemoryOrderRepository,
    listing_repo: InMemoryListingRepository,
    agreement_repo: InMemoryAgreementRepository,
    users: FakeUserDirectory,
    geo: StaticGeo,
    locks: LocalEntityLockManager,
) -> OrderLifecycleService:
    return OrderLifecycleService(
        order_repo=order_repo,
        listing_repo=listing_repo,
        consent=ConsentRecorder(agreement_repo),
        users=users,
        geo=geo,
        locks=locks,
        fee_tolerance_cents=1,
    )


@pytest.fixture(name="make_want_ad")
def make_want_ad_fixture():
    return make_want_ad


@pytest.fixture(name="make_item")
def make_item_fixture():
    return make_item
