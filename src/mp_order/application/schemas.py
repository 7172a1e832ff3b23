"""Pydantic schemas for mp_order API."""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from src.mp_common.money import cents_to_display
from src.mp_legal.application.schemas import ConsentPayload
from src.mp_order.domain.models import Order, ShippingAddress

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ShippingAddressPayload(BaseModel):
    """Completeness is checked by the service so the error carries its own code."""

    receiver_name: str | None = Field(None, max_length=50)
    phone: str | None = Field(None, max_length=30)
    province: str | None = Field(None, max_length=50)
    city: str | None = Field(None, max_length=50)
    district: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=200)
    postal_code: str | None = Field(None, max_length=20)


class CreateProxyOrderRequest(BaseModel):
    """Submitted by the purchaser who accepted the want-ad."""

    listing_id: str
    quantity: int = Field(..., ge=1)
    unit_price_cents: int = Field(..., ge=0)
    original_price_cents: int | None = Field(None, ge=0)
    shipping_fee_cents: int = Field(0, ge=0)
    tip_cents: int = Field(0, ge=0)
    # Values the client displayed; rejected if they differ from the server's
    service_fee_cents: int | None = Field(None, ge=0)
    platform_fee_cents: int | None = Field(None, ge=0)
    total_amount_cents: int | None = Field(None, ge=0)
    notes: str | None = Field(None, max_length=500)
    consent: ConsentPayload | None = None


class CreateMarketplaceOrderRequest(BaseModel):
    listing_id: str
    quantity: int = Field(1, ge=1)
    delivery_method: Literal["pickup", "shipping", "negotiable"] | None = None
    shipping_address: ShippingAddressPayload | None = None
    pickup_address: str | None = Field(None, max_length=200)
    platform_fee_cents: int | None = Field(None, ge=0)
    total_amount_cents: int | None = Field(None, ge=0)
    notes: str | None = Field(None, max_length=500)
    consent: ConsentPayload | None = None


class PayOrderRequest(BaseModel):
    shipping_address: ShippingAddressPayload | None = None
    consent: ConsentPayload | None = None


class UpdateStatusRequest(BaseModel):
    status: str


class ShipOrderRequest(BaseModel):
    tracking_number: str | None = Field(None, max_length=100)
    tracking_company: str | None = Field(None, max_length=100)


class TrackingRequest(BaseModel):
    tracking_number: str = Field(..., min_length=1, max_length=100)
    tracking_company: str | None = Field(None, max_length=100)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class OrderResponse(BaseModel):
    id: str
    kind: str
    listing_id: str
    buyer_id: str
    seller_id: str
    quantity: int
    unit_price_cents: int
    base_price_cents: int
    service_fee_cents: int
    platform_fee_cents: int
    shipping_fee_cents: int
    tip_cents: int
    total_amount_cents: int
    total_amount_display: str
    status: str
    settlement_status: str
    settlement_amount_cents: int | None
    platform_revenue_cents: int | None
    settled_at: str | None
    delivery_method: str | None
    shipping_address: dict[str, str | None] | None
    pickup_address: str | None
    shipping_fee_paid_by: str | None
    tracking_number: str | None
    tracking_company: str | None
    notes: str | None
    ip_location: str | None
    listing_title: str | None
    listing_image: str | None
    buyer_username: str | None
    buyer_avatar_url: str | None
    seller_username: str | None
    seller_avatar_url: str | None
    legal_agreement_version: str | None
    paid_at: str | None
    shipped_at: str | None
    received_at: str | None
    completed_at: str | None
    cancelled_at: str | None
    refunded_at: str | None
    created_at: str | None

    @classmethod
    def from_domain(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            kind=order.kind,
            listing_id=order.listing_id,
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            quantity=order.quantity,
            unit_price_cents=order.unit_price,
            base_price_cents=order.base_price,
            service_fee_cents=order.service_fee,
            platform_fee_cents=order.platform_fee,
            shipping_fee_cents=order.shipping_fee,
            tip_cents=order.tip,
            total_amount_cents=order.total_amount,
            total_amount_display=cents_to_display(order.total_amount),
            status=order.status,
            settlement_status=order.settlement_status,
            settlement_amount_cents=order.settlement_amount,
            platform_revenue_cents=order.platform_revenue,
            settled_at=_iso(order.settled_at),
            delivery_method=order.delivery_method,
            shipping_address=order.shipping_address.to_dict() if order.shipping_address else None,
            pickup_address=order.pickup_address,
            shipping_fee_paid_by=order.shipping_fee_paid_by,
            tracking_number=order.tracking_number,
            tracking_company=order.tracking_company,
            notes=order.notes,
            ip_location=order.ip_location,
            listing_title=order.listing_title,
            listing_image=order.listing_image,
            buyer_username=order.buyer_username,
            buyer_avatar_url=order.buyer_avatar_url,
            seller_username=order.seller_username,
            seller_avatar_url=order.seller_avatar_url,
            legal_agreement_version=order.legal_agreement_version,
            paid_at=_iso(order.paid_at),
            shipped_at=_iso(order.shipped_at),
            received_at=_iso(order.received_at),
            completed_at=_iso(order.completed_at),
            cancelled_at=_iso(order.cancelled_at),
            refunded_at=_iso(order.refunded_at),
            created_at=_iso(order.created_at),
        )


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    next_cursor: str | None


def to_shipping_address(payload: ShippingAddressPayload) -> ShippingAddress:
    return ShippingAddress(
        receiver_name=payload.receiver_name or "",
        phone=payload.phone or "",
        province=payload.province or "",
        city=payload.city or "",
        district=payload.district or "",
        address=payload.address or "",
        postal_code=payload.postal_code,
    )
