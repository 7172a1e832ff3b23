# src/mp_order/infrastructure/persistence.py
"""OrderRepository: raw SQL persistence implementation.

Financial terms and snapshots are written once by INSERT and never appear in
the UPDATE statement.
"""
import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_order.domain.models import Order, ShippingAddress

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_SELECT_COLUMNS = """
    id, kind, listing_id, buyer_id, seller_id, quantity,
    unit_price, base_price, service_fee, platform_fee, shipping_fee, tip, total_amount,
    status, settlement_status, settlement_amount, platform_revenue, settled_at,
    delivery_method, shipping_address, pickup_address, shipping_fee_paid_by,
    tracking_number, tracking_company, notes, ip_location,
    listing_title, listing_image, buyer_username, buyer_avatar_url,
    seller_username, seller_avatar_url,
    legal_agreement_version, buyer_legal_agreed_at, buyer_legal_agreed_ip,
    seller_legal_agreed_at, seller_legal_agreed_ip,
    paid_at, processing_at, shipped_at, received_at, completed_at,
    cancelled_at, refunded_at, version, created_at, updated_at
"""

_INSERT_ORDER_SQL = text("""
    INSERT INTO orders (id, kind, listing_id, buyer_id, seller_id, quantity,
        unit_price, base_price, service_fee, platform_fee, shipping_fee, tip, total_amount,
        status, settlement_status,
        delivery_method, shipping_address, pickup_address, shipping_fee_paid_by,
        notes, ip_location,
        listing_title, listing_image, buyer_username, buyer_avatar_url,
        seller_username, seller_avatar_url,
        legal_agreement_version, buyer_legal_agreed_at, buyer_legal_agreed_ip,
        seller_legal_agreed_at, seller_legal_agreed_ip)
    VALUES (:id, :kind, :listing_id, :buyer_id, :seller_id, :quantity,
        :unit_price, :base_price, :service_fee, :platform_fee, :shipping_fee, :tip,
        :total_amount,
        :status, :settlement_status,
        :delivery_method, CAST(:shipping_address AS JSONB), :pickup_address,
        :shipping_fee_paid_by,
        :notes, :ip_location,
        :listing_title, :listing_image, :buyer_username, :buyer_avatar_url,
        :seller_username, :seller_avatar_url,
        :legal_agreement_version, :buyer_legal_agreed_at, :buyer_legal_agreed_ip,
        :seller_legal_agreed_at, :seller_legal_agreed_ip)
""")

# 0 rows: status or version moved since the order was read.
_UPDATE_GUARDED_SQL = text(f"""
    UPDATE orders
    SET status = :status,
        settlement_status = :settlement_status,
        settlement_amount = :settlement_amount,
        platform_revenue = :platform_revenue,
        settled_at = :settled_at,
        shipping_address = CAST(:shipping_address AS JSONB),
        tracking_number = :tracking_number,
        tracking_company = :tracking_company,
        ip_location = :ip_location,
        legal_agreement_version = :legal_agreement_version,
        buyer_legal_agreed_at = :buyer_legal_agreed_at,
        buyer_legal_agreed_ip = :buyer_legal_agreed_ip,
        seller_legal_agreed_at = :seller_legal_agreed_at,
        seller_legal_agreed_ip = :seller_legal_agreed_ip,
        paid_at = :paid_at,
        processing_at = :processing_at,
        shipped_at = :shipped_at,
        received_at = :received_at,
        completed_at = :completed_at,
        cancelled_at = :cancelled_at,
        refunded_at = :refunded_at,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :id AND status = :expected_status AND version = :expected_version
    RETURNING {_SELECT_COLUMNS}
""")

_GET_ORDER_BY_ID_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE id = :id
""")

_LIST_ORDERS_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE (
        (CAST(:role AS TEXT) = 'buyer' AND buyer_id = :user_id)
        OR (CAST(:role AS TEXT) = 'seller' AND seller_id = :user_id)
        OR (CAST(:role AS TEXT) IS NULL AND (buyer_id = :user_id OR seller_id = :user_id))
    )
      AND (CAST(:kind AS TEXT) IS NULL OR kind = :kind)
      AND (CAST(:status AS TEXT) IS NULL OR status = :status)
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _address_to_json(address: ShippingAddress | None) -> str | None:
    return json.dumps(address.to_dict(), ensure_ascii=False) if address else None


def _json_to_address(value: Any) -> ShippingAddress | None:
    if value is None:
        return None
    # asyncpg hands JSONB back as text unless a codec is registered
    data = json.loads(value) if isinstance(value, str) else value
    return ShippingAddress.from_dict(data)


def _row_to_order(row: Any) -> Order:
    """Convert a DB result row to an Order domain object."""
    return Order(
        id=row.id,
        kind=row.kind,
        listing_id=row.listing_id,
        buyer_id=row.buyer_id,
        seller_id=row.seller_id,
        quantity=row.quantity,
        unit_price=row.unit_price,
        base_price=row.base_price,
        service_fee=row.service_fee,
        platform_fee=row.platform_fee,
        shipping_fee=row.shipping_fee,
        tip=row.tip,
        total_amount=row.total_amount,
        status=row.status,
        settlement_status=row.settlement_status,
        settlement_amount=row.settlement_amount,
        platform_revenue=row.platform_revenue,
        settled_at=row.settled_at,
        delivery_method=row.delivery_method,
        shipping_address=_json_to_address(row.shipping_address),
        pickup_address=row.pickup_address,
        shipping_fee_paid_by=row.shipping_fee_paid_by,
        tracking_number=row.tracking_number,
        tracking_company=row.tracking_company,
        notes=row.notes,
        ip_location=row.ip_location,
        listing_title=row.listing_title,
        listing_image=row.listing_image,
        buyer_username=row.buyer_username,
        buyer_avatar_url=row.buyer_avatar_url,
        seller_username=row.seller_username,
        seller_avatar_url=row.seller_avatar_url,
        legal_agreement_version=row.legal_agreement_version,
        buyer_legal_agreed_at=row.buyer_legal_agreed_at,
        buyer_legal_agreed_ip=row.buyer_legal_agreed_ip,
        seller_legal_agreed_at=row.seller_legal_agreed_at,
        seller_legal_agreed_ip=row.seller_legal_agreed_ip,
        paid_at=row.paid_at,
        processing_at=row.processing_at,
        shipped_at=row.shipped_at,
        received_at=row.received_at,
        completed_at=row.completed_at,
        cancelled_at=row.cancelled_at,
        refunded_at=row.refunded_at,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OrderRepository:
    """Concrete implementation of OrderRepositoryProtocol using raw SQL."""

    async def save(self, order: Order, db: AsyncSession) -> None:
        await db.execute(
            _INSERT_ORDER_SQL,
            {
                "id": order.id,
                "kind": order.kind,
                "listing_id": order.listing_id,
                "buyer_id": order.buyer_id,
                "seller_id": order.seller_id,
                "quantity": order.quantity,
                "unit_price": order.unit_price,
                "base_price": order.base_price,
                "service_fee": order.service_fee,
                "platform_fee": order.platform_fee,
                "shipping_fee": order.shipping_fee,
                "tip": order.tip,
                "total_amount": order.total_amount,
                "status": order.status,
                "settlement_status": order.settlement_status,
                "delivery_method": order.delivery_method,
                "shipping_address": _address_to_json(order.shipping_address),
                "pickup_address": order.pickup_address,
                "shipping_fee_paid_by": order.shipping_fee_paid_by,
                "notes": order.notes,
                "ip_location": order.ip_location,
                "listing_title": order.listing_title,
                "listing_image": order.listing_image,
                "buyer_username": order.buyer_username,
                "buyer_avatar_url": order.buyer_avatar_url,
                "seller_username": order.seller_username,
                "seller_avatar_url": order.seller_avatar_url,
                "legal_agreement_version": order.legal_agreement_version,
                "buyer_legal_agreed_at": order.buyer_legal_agreed_at,
                "buyer_legal_agreed_ip": order.buyer_legal_agreed_ip,
                "seller_legal_agreed_at": order.seller_legal_agreed_at,
                "seller_legal_agreed_ip": order.seller_legal_agreed_ip,
            },
        )

    async def get_by_id(self, order_id: str, db: AsyncSession) -> Order | None:
        result = await db.execute(_GET_ORDER_BY_ID_SQL, {"id": order_id})
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def update_guarded(
        self, order: Order, expected_status: str, expected_version: int, db: AsyncSession
    ) -> Order | None:
        result = await db.execute(
            _UPDATE_GUARDED_SQL,
            {
                "id": order.id,
                "expected_status": expected_status,
                "expected_version": expected_version,
                "status": order.status,
                "settlement_status": order.settlement_status,
                "settlement_amount": order.settlement_amount,
                "platform_revenue": order.platform_revenue,
                "settled_at": order.settled_at,
                "shipping_address": _address_to_json(order.shipping_address),
                "tracking_number": order.tracking_number,
                "tracking_company": order.tracking_company,
                "ip_location": order.ip_location,
                "legal_agreement_version": order.legal_agreement_version,
                "buyer_legal_agreed_at": order.buyer_legal_agreed_at,
                "buyer_legal_agreed_ip": order.buyer_legal_agreed_ip,
                "seller_legal_agreed_at": order.seller_legal_agreed_at,
                "seller_legal_agreed_ip": order.seller_legal_agreed_ip,
                "paid_at": order.paid_at,
                "processing_at": order.processing_at,
                "shipped_at": order.shipped_at,
                "received_at": order.received_at,
                "completed_at": order.completed_at,
                "cancelled_at": order.cancelled_at,
                "refunded_at": order.refunded_at,
            },
        )
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def list_by_user(
        self,
        user_id: str,
        role: str | None,
        kind: str | None,
        status: str | None,
        limit: int,
        cursor_id: str | None,
        db: AsyncSession,
    ) -> list[Order]:
        result = await db.execute(
            _LIST_ORDERS_SQL,
            {
                "user_id": user_id,
                "role": role,
                "kind": kind,
                "status": status,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        rows = result.fetchall()
        return [_row_to_order(row) for row in rows]
