"""Order domain model: pure dataclass, no SQLAlchemy dependency."""
from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass
class ShippingAddress:
    receiver_name: str
    phone: str
    province: str
    city: str
    district: str
    address: str
    postal_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "receiver_name": self.receiver_name,
            "phone": self.phone,
            "province": self.province,
            "city": self.city,
            "district": self.district,
            "address": self.address,
            "postal_code": self.postal_code,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ShippingAddress":
        return cls(
            receiver_name=data["receiver_name"],
            phone=data["phone"],
            province=data["province"],
            city=data["city"],
            district=data["district"],
            address=data["address"],
            postal_code=data.get("postal_code"),
        )


@dataclass
class Order:
    id: str
    kind: str  # PROXY_PURCHASE / MARKETPLACE
    listing_id: str
    buyer_id: str
    seller_id: str
    quantity: int
    # Financial terms (cents), fixed at creation
    unit_price: int
    base_price: int  # proxy: product price; marketplace: total item price
    service_fee: int
    platform_fee: int
    shipping_fee: int
    tip: int
    total_amount: int
    # Lifecycle
    status: str = "pending"
    settlement_status: str = "pending"
    settlement_amount: int | None = None
    platform_revenue: int | None = None
    settled_at: datetime | None = None
    # Delivery
    delivery_method: str | None = None
    shipping_address: ShippingAddress | None = None
    pickup_address: str | None = None
    shipping_fee_paid_by: str | None = None
    tracking_number: str | None = None
    tracking_company: str | None = None
    notes: str | None = None
    ip_location: str | None = None
    # Snapshots taken at creation; later listing/profile edits do not apply
    listing_title: str | None = None
    listing_image: str | None = None
    buyer_username: str | None = None
    buyer_avatar_url: str | None = None
    seller_username: str | None = None
    seller_avatar_url: str | None = None
    # Legal consent summary (full records live in legal_agreements)
    legal_agreement_version: str | None = None
    buyer_legal_agreed_at: datetime | None = None
    buyer_legal_agreed_ip: str | None = None
    seller_legal_agreed_at: datetime | None = None
    seller_legal_agreed_ip: str | None = None
    # Transition timestamps
    paid_at: datetime | None = None
    processing_at: datetime | None = None
    shipped_at: datetime | None = None
    received_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def components_total(self) -> int:
        """Sum of the declared price components; equals total_amount for every order."""
        return (
            self.base_price
            + self.service_fee
            + self.platform_fee_charged
            + self.shipping_fee
            + self.tip
        )

    @property
    def platform_fee_charged(self) -> int:
        """Platform fee the buyer pays on top (marketplace deducts it from the seller)."""
        return self.platform_fee if self.kind == "PROXY_PURCHASE" else 0

    @property
    def is_settled(self) -> bool:
        return self.settlement_status == "completed"

    def role_of(self, actor_id: str) -> str | None:
        if actor_id == self.buyer_id:
            return "buyer"
        if actor_id == self.seller_id:
            return "seller"
        return None
