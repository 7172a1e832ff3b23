"""The two order variants: transition tables + fee strategy per kind."""
from dataclasses import dataclass

from src.mp_clearing.domain.fee import (
    FeeStrategy,
    MarketplaceFeeStrategy,
    ProxyPurchaseFeeStrategy,
)
from src.mp_common.enums import ListingKind, OrderKind, PartyRole
from src.mp_order.domain.state_machine import OrderStateMachine, TransitionTable

_TIMESTAMPS = {
    "paid": "paid_at",
    "processing": "processing_at",
    "shipping": "shipped_at",
    "received": "received_at",
    "completed": "completed_at",
    "cancelled": "cancelled_at",
    "refunded": "refunded_at",
}

PROXY_PURCHASE_TABLE = TransitionTable(
    name="proxy_purchase",
    initial="pending",
    edges={
        "pending": frozenset({"paid", "cancelled"}),
        "paid": frozenset({"processing", "refunded"}),
        "processing": frozenset({"shipping"}),
        "shipping": frozenset({"completed"}),
        "completed": frozenset(),
        "cancelled": frozenset(),
        "refunded": frozenset(),
    },
    permissions={
        "buyer": frozenset({"paid", "cancelled", "completed"}),
        "seller": frozenset({"processing", "shipping", "refunded", "cancelled"}),
    },
    timestamp_fields=_TIMESTAMPS,
    releases_inventory=frozenset({"cancelled", "refunded"}),
    settles_on="completed",
)

MARKETPLACE_TABLE = TransitionTable(
    name="marketplace",
    initial="pending",
    edges={
        "pending": frozenset({"paid", "cancelled"}),
        "paid": frozenset({"shipping", "cancelled"}),
        "shipping": frozenset({"received"}),
        "received": frozenset({"completed"}),
        "completed": frozenset(),
        "cancelled": frozenset(),
        "refunded": frozenset(),
    },
    permissions={
        "buyer": frozenset({"paid", "cancelled", "received", "completed"}),
        "seller": frozenset({"shipping", "cancelled"}),
    },
    timestamp_fields=_TIMESTAMPS,
    releases_inventory=frozenset({"cancelled", "refunded"}),
    settles_on="completed",
)


@dataclass(frozen=True)
class OrderVariant:
    kind: OrderKind
    listing_kind: ListingKind
    table: TransitionTable
    fee_strategy: FeeStrategy
    # Statuses walked by confirm-receipt, in order, within one transaction
    receipt_path: tuple[str, ...]
    # Whose consent is captured when the order is created
    creator_role: PartyRole

    @property
    def machine(self) -> OrderStateMachine:
        return OrderStateMachine(self.table)


PROXY_PURCHASE = OrderVariant(
    kind=OrderKind.PROXY_PURCHASE,
    listing_kind=ListingKind.WANT_AD,
    table=PROXY_PURCHASE_TABLE,
    fee_strategy=ProxyPurchaseFeeStrategy(),
    receipt_path=("completed",),
    creator_role=PartyRole.SELLER,
)

MARKETPLACE = OrderVariant(
    kind=OrderKind.MARKETPLACE,
    listing_kind=ListingKind.ITEM,
    table=MARKETPLACE_TABLE,
    fee_strategy=MarketplaceFeeStrategy(),
    receipt_path=("received", "completed"),
    creator_role=PartyRole.BUYER,
)

_VARIANTS = {v.kind.value: v for v in (PROXY_PURCHASE, MARKETPLACE)}


def get_variant(kind: str) -> OrderVariant:
    try:
        return _VARIANTS[kind]
    except KeyError:
        raise ValueError(f"Unknown order kind: {kind}") from None
