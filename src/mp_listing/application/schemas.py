"""Pydantic schemas for mp_listing API."""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from src.mp_common.money import cents_to_display
from src.mp_legal.application.schemas import ConsentPayload
from src.mp_listing.domain.models import Listing

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateListingRequest(BaseModel):
    """Kind-specific required fields are checked by the service, not here."""

    kind: Literal["WANT_AD", "ITEM"]
    title: str | None = Field(None, max_length=100)
    description: str | None = Field(None, max_length=2000)
    images: list[str] = Field(default_factory=list, max_length=9)
    category: str | None = Field(None, max_length=50)
    price_cents: int = Field(0, ge=0)
    original_price_cents: int | None = Field(None, ge=0)
    currency: str = Field("CNY", min_length=3, max_length=3)
    location: str | None = Field(None, max_length=200)
    available_count: int | None = Field(None, ge=1)
    # WANT_AD
    target_country: str | None = Field(None, max_length=50)
    required_quantity: int | None = Field(None, ge=1)
    expected_return_date: datetime | None = None
    expected_tip_cents: int = Field(0, ge=0)
    # ITEM
    condition: Literal["new", "likeNew", "good", "fair", "poor"] | None = None
    delivery_method: Literal["pickup", "shipping", "negotiable"] | None = None
    shipping_fee_cents: int = Field(0, ge=0)
    shipping_fee_paid_by: Literal["buyer", "seller", "negotiable"] | None = None
    consent: ConsentPayload | None = None


class AcceptListingRequest(BaseModel):
    consent: ConsentPayload | None = None


class UpdateListingRequest(BaseModel):
    """Owner edit. Only fields present in the body are applied."""

    title: str | None = Field(None, max_length=100)
    description: str | None = Field(None, max_length=2000)
    images: list[str] | None = Field(None, max_length=9)
    category: str | None = Field(None, max_length=50)
    price_cents: int | None = Field(None, ge=0)
    original_price_cents: int | None = Field(None, ge=0)
    location: str | None = Field(None, max_length=200)
    # WANT_AD
    target_country: str | None = Field(None, max_length=50)
    expected_return_date: datetime | None = None
    expected_tip_cents: int | None = Field(None, ge=0)
    # ITEM
    condition: Literal["new", "likeNew", "good", "fair", "poor"] | None = None
    delivery_method: Literal["pickup", "shipping", "negotiable"] | None = None
    shipping_fee_cents: int | None = Field(None, ge=0)
    shipping_fee_paid_by: Literal["buyer", "seller", "negotiable"] | None = None


class PurchaserImagesRequest(BaseModel):
    images: list[str] = Field(default_factory=list, max_length=9)


class ReceiptRequest(BaseModel):
    receipt_image: str = Field(..., min_length=1, max_length=512)


class ListingTrackingRequest(BaseModel):
    tracking_number: str = Field(..., min_length=1, max_length=64)
    tracking_company: str | None = Field(None, max_length=64)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ListingResponse(BaseModel):
    id: str
    kind: str
    owner_id: str
    title: str
    description: str
    status: str
    images: list[str]
    category: str | None
    price_cents: int
    price_display: str
    original_price_cents: int | None
    currency: str
    location: str | None
    ip_location: str | None
    available_count: int
    reserved_count: int
    fulfilled_count: int
    target_country: str | None
    required_quantity: int | None
    expected_return_date: str | None
    expected_tip_cents: int
    accepted_by: str | None
    accepted_at: str | None
    purchaser_images: list[str]
    receipt_image: str | None
    tracking_number: str | None
    tracking_company: str | None
    condition: str | None
    delivery_method: str | None
    shipping_fee_cents: int
    shipping_fee_paid_by: str | None
    created_at: str | None
    updated_at: str | None

    @classmethod
    def from_domain(cls, listing: Listing) -> "ListingResponse":
        return cls(
            id=listing.id,
            kind=listing.kind,
            owner_id=listing.owner_id,
            title=listing.title,
            description=listing.description,
            status=listing.status,
            images=listing.images,
            category=listing.category,
            price_cents=listing.price,
            price_display=cents_to_display(listing.price),
            original_price_cents=listing.original_price,
            currency=listing.currency,
            location=listing.location,
            ip_location=listing.ip_location,
            available_count=listing.available_count,
            reserved_count=listing.reserved_count,
            fulfilled_count=listing.fulfilled_count,
            target_country=listing.target_country,
            required_quantity=listing.required_quantity,
            expected_return_date=(
                listing.expected_return_date.isoformat() if listing.expected_return_date else None
            ),
            expected_tip_cents=listing.expected_tip,
            accepted_by=listing.accepted_by,
            accepted_at=listing.accepted_at.isoformat() if listing.accepted_at else None,
            purchaser_images=listing.purchaser_images,
            receipt_image=listing.receipt_image,
            tracking_number=listing.tracking_number,
            tracking_company=listing.tracking_company,
            condition=listing.condition,
            delivery_method=listing.delivery_method,
            shipping_fee_cents=listing.shipping_fee,
            shipping_fee_paid_by=listing.shipping_fee_paid_by,
            created_at=listing.created_at.isoformat() if listing.created_at else None,
            updated_at=listing.updated_at.isoformat() if listing.updated_at else None,
        )


class ListingListResponse(BaseModel):
    items: list[ListingResponse]
    next_cursor: str | None
