"""Domain models for mp_listing: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Listing:
    id: str
    kind: str  # WANT_AD / ITEM
    owner_id: str
    title: str
    description: str
    status: str
    images: list[str] = field(default_factory=list)  # opaque media URLs
    category: str | None = None
    price: int = 0  # cents; want-ads may start at 0 until a purchaser quotes
    original_price: int | None = None
    currency: str = "CNY"
    location: str | None = None
    ip_location: str | None = None
    available_count: int = 1
    reserved_count: int = 0  # held by open orders
    fulfilled_count: int = 0
    # WANT_AD
    target_country: str | None = None
    required_quantity: int | None = None
    expected_return_date: datetime | None = None
    expected_tip: int = 0
    accepted_by: str | None = None
    accepted_at: datetime | None = None
    purchaser_images: list[str] = field(default_factory=list)
    receipt_image: str | None = None
    tracking_number: str | None = None
    tracking_company: str | None = None
    legal_agreement_version: str | None = None
    # ITEM
    condition: str | None = None
    delivery_method: str | None = None
    shipping_fee: int = 0
    shipping_fee_paid_by: str | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def cover_image(self) -> str | None:
        return self.images[0] if self.images else None

    @property
    def is_want_ad(self) -> bool:
        return self.kind == "WANT_AD"
