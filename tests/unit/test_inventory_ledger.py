"""Tests for InventoryLedger against the in-memory repository."""

import pytest

from src.mp_common.errors import (
    InvalidFieldError,
    InventoryInvariantError,
    ListingNotAvailableError,
    ListingNotFoundError,
    QuantityExceedsAvailabilityError,
)
from src.mp_listing.domain.inventory import InventoryLedger, labels_for

from tests.unit.conftest import make_item, make_want_ad


@pytest.fixture
def ledger(listing_repo):
    return InventoryLedger(listing_repo)


class TestLabels:
    def test_item_labels(self) -> None:
        labels = labels_for("ITEM")
        assert (labels.reservable, labels.exhausted, labels.consumed) == (
            "available",
            "reserved",
            "sold",
        )

    def test_want_ad_stays_accepted_when_exhausted(self) -> None:
        labels = labels_for("WANT_AD")
        assert labels.reservable == labels.exhausted == "accepted"
        assert labels.consumed == "completed"

    def test_unknown_kind(self) -> None:
        with pytest.raises(InvalidFieldError):
            labels_for("AUCTION")


class TestReserve:
    async def test_reserve_last_unit_marks_reserved(self, ledger, db, store):
        item = make_item()
        db.seed(item)
        updated = await ledger.reserve(item, 1, db)
        assert updated.available_count == 0
        assert updated.status == "reserved"
        assert store.listings[item.id].status == "reserved"

    async def test_partial_reserve_keeps_status(self, ledger, db):
        item = make_item(available_count=3)
        db.seed(item)
        updated = await ledger.reserve(item, 2, db)
        assert updated.available_count == 1
        assert updated.status == "available"

    async def test_exceeding_quantity(self, ledger, db, store):
        item = make_item(available_count=1)
        db.seed(item)
        with pytest.raises(QuantityExceedsAvailabilityError):
            await ledger.reserve(item, 2, db)
        assert store.listings[item.id].available_count == 1

    async def test_wrong_status(self, ledger, db):
        item = make_item(status="sold", available_count=0)
        db.seed(item)
        with pytest.raises(ListingNotAvailableError):
            await ledger.reserve(item, 1, db)

    async def test_missing_listing(self, ledger, db):
        with pytest.raises(ListingNotFoundError):
            await ledger.reserve(make_item(), 1, db)

    async def test_zero_quantity(self, ledger, db):
        with pytest.raises(InvalidFieldError):
            await ledger.reserve(make_item(), 0, db)

    async def test_want_ad_exhausted_stays_accepted(self, ledger, db):
        want_ad = make_want_ad(status="accepted", accepted_by="user-purchaser")
        db.seed(want_ad)
        updated = await ledger.reserve(want_ad, 2, db)
        assert updated.available_count == 0
        assert updated.status == "accepted"


class TestReleaseAndConsume:
    async def test_release_is_inverse_of_reserve(self, ledger, db, store):
        item = make_item()
        db.seed(item)
        await ledger.reserve(item, 1, db)
        released = await ledger.release(item.id, item.kind, 1, db)
        assert released.available_count == 1
        assert released.status == "available"

    async def test_release_beyond_capacity(self, ledger, db, store):
        want_ad = make_want_ad(status="accepted", accepted_by="user-purchaser")
        db.seed(want_ad)
        with pytest.raises(InventoryInvariantError):
            await ledger.release(want_ad.id, want_ad.kind, 1, db)
        assert store.listings[want_ad.id].available_count == 2

    async def test_consume_last_unit_marks_sold(self, ledger, db):
        item = make_item()
        db.seed(item)
        await ledger.reserve(item, 1, db)
        consumed = await ledger.consume(item.id, item.kind, 1, db)
        assert consumed.fulfilled_count == 1
        assert consumed.status == "sold"

    async def test_consume_with_units_left(self, ledger, db):
        want_ad = make_want_ad(status="accepted", accepted_by="user-purchaser")
        db.seed(want_ad)
        await ledger.reserve(want_ad, 1, db)
        consumed = await ledger.consume(want_ad.id, want_ad.kind, 1, db)
        assert consumed.fulfilled_count == 1
        assert consumed.available_count == 1
        assert consumed.status == "accepted"

    async def test_consume_missing_listing(self, ledger, db):
        with pytest.raises(InventoryInvariantError):
            await ledger.consume("lst_missing", "ITEM", 1, db)

    async def test_consume_waits_for_outstanding_reservations(self, ledger, db):
        want_ad = make_want_ad(status="accepted", accepted_by="user-purchaser")
        db.seed(want_ad)
        await ledger.reserve(want_ad, 1, db)
        reserved = await ledger.reserve(want_ad, 1, db)
        assert (reserved.available_count, reserved.reserved_count) == (0, 2)

        consumed = await ledger.consume(want_ad.id, want_ad.kind, 1, db)
        assert consumed.status == "accepted"
        assert (consumed.reserved_count, consumed.fulfilled_count) == (1, 1)

        consumed = await ledger.consume(want_ad.id, want_ad.kind, 1, db)
        assert consumed.status == "completed"
        assert (consumed.reserved_count, consumed.fulfilled_count) == (0, 2)

    async def test_consume_beyond_reserved(self, ledger, db, store):
        item = make_item(available_count=2)
        db.seed(item)
        await ledger.reserve(item, 1, db)
        with pytest.raises(InventoryInvariantError):
            await ledger.consume(item.id, item.kind, 2, db)
        assert store.listings[item.id].fulfilled_count == 0

    async def test_item_sold_only_after_every_unit_fulfilled(self, ledger, db):
        item = make_item(available_count=2)
        db.seed(item)
        await ledger.reserve(item, 1, db)
        exhausted = await ledger.reserve(item, 1, db)
        assert exhausted.status == "reserved"
        partly = await ledger.consume(item.id, item.kind, 1, db)
        assert partly.status == "reserved"
        released = await ledger.release(item.id, item.kind, 1, db)
        assert released.status == "available"
        assert (released.available_count, released.reserved_count) == (1, 0)


class TestWantAdProgress:
    async def test_purchased_want_ad_still_takes_orders(self, ledger, db):
        want_ad = make_want_ad(status="purchased", accepted_by="user-purchaser")
        db.seed(want_ad)
        updated = await ledger.reserve(want_ad, 2, db)
        assert updated.available_count == 0
        assert updated.status == "purchased"

    async def test_completed_want_ad_rejects_orders(self, ledger, db):
        want_ad = make_want_ad(
            status="completed", accepted_by="user-purchaser", available_count=0, fulfilled_count=2
        )
        db.seed(want_ad)
        with pytest.raises(ListingNotAvailableError):
            await ledger.reserve(want_ad, 1, db)
