"""Global enums: must match DB CHECK constraints exactly."""

from enum import Enum


class ListingKind(str, Enum):
    """Want-ads feed the proxy-purchase flow, items feed the marketplace flow."""
    WANT_AD = "WANT_AD"
    ITEM = "ITEM"


class WantAdStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    PURCHASED = "purchased"
    SHIPPING = "shipping"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ItemStatus(str, Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    SOLD = "sold"
    REMOVED = "removed"


class OrderKind(str, Enum):
    PROXY_PURCHASE = "PROXY_PURCHASE"
    MARKETPLACE = "MARKETPLACE"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPING = "shipping"
    RECEIVED = "received"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class SettlementStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PartyRole(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"


class DeliveryMethod(str, Enum):
    PICKUP = "pickup"
    SHIPPING = "shipping"
    NEGOTIABLE = "negotiable"


class ShippingFeePaidBy(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"
    NEGOTIABLE = "negotiable"


class ItemCondition(str, Enum):
    NEW = "new"
    LIKE_NEW = "likeNew"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
