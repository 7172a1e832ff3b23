# src/mp_listing/infrastructure/persistence.py
"""ListingRepository: raw SQL persistence implementation.

Availability mutations are atomic UPDATE ... RETURNING statements. A result
of 0 rows means the guard in the WHERE clause failed; the caller decides
which business error that is.
"""
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_listing.domain.inventory import InventoryLabels
from src.mp_listing.domain.models import Listing

_RETURNING = """
    id, kind, owner_id, title, description, status, images, category,
    price, original_price, currency, location, ip_location,
    available_count, reserved_count, fulfilled_count,
    target_country, required_quantity, expected_return_date, expected_tip,
    accepted_by, accepted_at, purchaser_images, receipt_image,
    tracking_number, tracking_company, legal_agreement_version,
    condition, delivery_method, shipping_fee, shipping_fee_paid_by,
    version, created_at, updated_at
"""

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_INSERT_LISTING_SQL = text("""
    INSERT INTO listings (id, kind, owner_id, title, description, status, images,
        category, price, original_price, currency, location, ip_location,
        available_count, reserved_count, fulfilled_count,
        target_country, required_quantity, expected_return_date, expected_tip,
        legal_agreement_version,
        condition, delivery_method, shipping_fee, shipping_fee_paid_by)
    VALUES (:id, :kind, :owner_id, :title, :description, :status, :images,
        :category, :price, :original_price, :currency, :location, :ip_location,
        :available_count, 0, 0,
        :target_country, :required_quantity, :expected_return_date, :expected_tip,
        :legal_agreement_version,
        :condition, :delivery_method, :shipping_fee, :shipping_fee_paid_by)
""")

_GET_LISTING_BY_ID_SQL = text(f"""
    SELECT {_RETURNING}
    FROM listings WHERE id = :id
""")

# First writer wins: the loser sees 0 rows because status is no longer pending.
_CLAIM_SQL = text(f"""
    UPDATE listings
    SET status = 'accepted', accepted_by = :acceptor_id, accepted_at = :accepted_at,
        version = version + 1, updated_at = NOW()
    WHERE id = :id AND kind = 'WANT_AD' AND status = 'pending'
      AND owner_id <> :acceptor_id
    RETURNING {_RETURNING}
""")

_RESERVE_SQL = text(f"""
    UPDATE listings
    SET available_count = available_count - :quantity,
        reserved_count = reserved_count + :quantity,
        status = CASE WHEN available_count - :quantity = 0 AND status = :reservable
                      THEN CAST(:exhausted AS TEXT) ELSE status END,
        version = version + 1, updated_at = NOW()
    WHERE id = :id AND status = ANY(CAST(:open_statuses AS TEXT[]))
      AND available_count >= :quantity
    RETURNING {_RETURNING}
""")

_RELEASE_SQL = text(f"""
    UPDATE listings
    SET available_count = available_count + :quantity,
        reserved_count = reserved_count - :quantity,
        status = CASE WHEN status = :exhausted
                      THEN CAST(:reservable AS TEXT) ELSE status END,
        version = version + 1, updated_at = NOW()
    WHERE id = :id AND reserved_count >= :quantity
    RETURNING {_RETURNING}
""")

# SET expressions read pre-update values: reserved_count = :quantity means
# this consume fulfils the last outstanding unit.
_CONSUME_SQL = text(f"""
    UPDATE listings
    SET reserved_count = reserved_count - :quantity,
        fulfilled_count = fulfilled_count + :quantity,
        status = CASE WHEN available_count = 0 AND reserved_count = :quantity
                      THEN CAST(:consumed AS TEXT) ELSE status END,
        version = version + 1, updated_at = NOW()
    WHERE id = :id AND reserved_count >= :quantity
    RETURNING {_RETURNING}
""")

_UPDATE_PRICE_SQL = text("""
    UPDATE listings
    SET price = :price,
        original_price = COALESCE(:original_price, original_price),
        version = version + 1, updated_at = NOW()
    WHERE id = :id
""")

# Inventory counters and acceptance columns are never written here.
_UPDATE_DETAILS_SQL = text(f"""
    UPDATE listings
    SET title = :title, description = :description, images = :images,
        category = :category, price = :price, original_price = :original_price,
        location = :location, status = :status,
        target_country = :target_country, expected_return_date = :expected_return_date,
        expected_tip = :expected_tip, purchaser_images = :purchaser_images,
        receipt_image = :receipt_image, tracking_number = :tracking_number,
        tracking_company = :tracking_company,
        condition = :condition, delivery_method = :delivery_method,
        shipping_fee = :shipping_fee, shipping_fee_paid_by = :shipping_fee_paid_by,
        version = version + 1, updated_at = NOW()
    WHERE id = :id AND version = :expected_version
    RETURNING {_RETURNING}
""")

_DEACTIVATE_SQL = text(f"""
    UPDATE listings
    SET status = :to_status, version = version + 1, updated_at = NOW()
    WHERE id = :id AND status = :from_status
    RETURNING {_RETURNING}
""")

_LIST_LISTINGS_SQL = text(f"""
    SELECT {_RETURNING}
    FROM listings
    WHERE (CAST(:kind AS TEXT) IS NULL OR kind = :kind)
      AND (CAST(:status AS TEXT) IS NULL OR status = :status)
      AND (CAST(:owner_id AS TEXT) IS NULL OR owner_id = :owner_id)
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_listing(row: Any) -> Listing:
    """Convert a DB result row to a Listing domain object."""
    return Listing(
        id=row.id,
        kind=row.kind,
        owner_id=row.owner_id,
        title=row.title,
        description=row.description,
        status=row.status,
        images=list(row.images or []),
        category=row.category,
        price=row.price,
        original_price=row.original_price,
        currency=row.currency,
        location=row.location,
        ip_location=row.ip_location,
        available_count=row.available_count,
        reserved_count=row.reserved_count,
        fulfilled_count=row.fulfilled_count,
        target_country=row.target_country,
        required_quantity=row.required_quantity,
        expected_return_date=row.expected_return_date,
        expected_tip=row.expected_tip,
        accepted_by=row.accepted_by,
        accepted_at=row.accepted_at,
        purchaser_images=list(row.purchaser_images or []),
        receipt_image=row.receipt_image,
        tracking_number=row.tracking_number,
        tracking_company=row.tracking_company,
        legal_agreement_version=row.legal_agreement_version,
        condition=row.condition,
        delivery_method=row.delivery_method,
        shipping_fee=row.shipping_fee,
        shipping_fee_paid_by=row.shipping_fee_paid_by,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _one_or_none(result: Any) -> Listing | None:
    row = result.fetchone()
    return _row_to_listing(row) if row else None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ListingRepository:
    """Concrete implementation of ListingRepositoryProtocol using raw SQL."""

    async def save(self, listing: Listing, db: AsyncSession) -> None:
        await db.execute(
            _INSERT_LISTING_SQL,
            {
                "id": listing.id,
                "kind": listing.kind,
                "owner_id": listing.owner_id,
                "title": listing.title,
                "description": listing.description,
                "status": listing.status,
                "images": listing.images,
                "category": listing.category,
                "price": listing.price,
                "original_price": listing.original_price,
                "currency": listing.currency,
                "location": listing.location,
                "ip_location": listing.ip_location,
                "available_count": listing.available_count,
                "target_country": listing.target_country,
                "required_quantity": listing.required_quantity,
                "expected_return_date": listing.expected_return_date,
                "expected_tip": listing.expected_tip,
                "legal_agreement_version": listing.legal_agreement_version,
                "condition": listing.condition,
                "delivery_method": listing.delivery_method,
                "shipping_fee": listing.shipping_fee,
                "shipping_fee_paid_by": listing.shipping_fee_paid_by,
            },
        )

    async def get_by_id(self, listing_id: str, db: AsyncSession) -> Listing | None:
        result = await db.execute(_GET_LISTING_BY_ID_SQL, {"id": listing_id})
        return _one_or_none(result)

    async def claim(
        self, listing_id: str, acceptor_id: str, accepted_at: datetime, db: AsyncSession
    ) -> Listing | None:
        result = await db.execute(
            _CLAIM_SQL,
            {"id": listing_id, "acceptor_id": acceptor_id, "accepted_at": accepted_at},
        )
        return _one_or_none(result)

    async def reserve(
        self, listing_id: str, quantity: int, labels: InventoryLabels, db: AsyncSession
    ) -> Listing | None:
        result = await db.execute(
            _RESERVE_SQL,
            {
                "id": listing_id,
                "quantity": quantity,
                "reservable": labels.reservable,
                "exhausted": labels.exhausted,
                "open_statuses": labels.open_statuses,
            },
        )
        return _one_or_none(result)

    async def release(
        self, listing_id: str, quantity: int, labels: InventoryLabels, db: AsyncSession
    ) -> Listing | None:
        result = await db.execute(
            _RELEASE_SQL,
            {
                "id": listing_id,
                "quantity": quantity,
                "reservable": labels.reservable,
                "exhausted": labels.exhausted,
            },
        )
        return _one_or_none(result)

    async def consume(
        self, listing_id: str, quantity: int, labels: InventoryLabels, db: AsyncSession
    ) -> Listing | None:
        result = await db.execute(
            _CONSUME_SQL,
            {"id": listing_id, "quantity": quantity, "consumed": labels.consumed},
        )
        return _one_or_none(result)

    async def update_price(
        self, listing_id: str, price: int, original_price: int | None, db: AsyncSession
    ) -> None:
        await db.execute(
            _UPDATE_PRICE_SQL,
            {"id": listing_id, "price": price, "original_price": original_price},
        )

    async def update_details(
        self, listing: Listing, expected_version: int, db: AsyncSession
    ) -> Listing | None:
        result = await db.execute(
            _UPDATE_DETAILS_SQL,
            {
                "id": listing.id,
                "expected_version": expected_version,
                "title": listing.title,
                "description": listing.description,
                "images": listing.images,
                "category": listing.category,
                "price": listing.price,
                "original_price": listing.original_price,
                "location": listing.location,
                "status": listing.status,
                "target_country": listing.target_country,
                "expected_return_date": listing.expected_return_date,
                "expected_tip": listing.expected_tip,
                "purchaser_images": listing.purchaser_images,
                "receipt_image": listing.receipt_image,
                "tracking_number": listing.tracking_number,
                "tracking_company": listing.tracking_company,
                "condition": listing.condition,
                "delivery_method": listing.delivery_method,
                "shipping_fee": listing.shipping_fee,
                "shipping_fee_paid_by": listing.shipping_fee_paid_by,
            },
        )
        return _one_or_none(result)

    async def deactivate(
        self, listing_id: str, from_status: str, to_status: str, db: AsyncSession
    ) -> Listing | None:
        result = await db.execute(
            _DEACTIVATE_SQL,
            {"id": listing_id, "from_status": from_status, "to_status": to_status},
        )
        return _one_or_none(result)

    async def list_listings(
        self,
        kind: str | None,
        status: str | None,
        owner_id: str | None,
        limit: int,
        cursor_id: str | None,
        db: AsyncSession,
    ) -> list[Listing]:
        result = await db.execute(
            _LIST_LISTINGS_SQL,
            {
                "kind": kind,
                "status": status,
                "owner_id": owner_id,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_listing(row) for row in result.fetchall()]
