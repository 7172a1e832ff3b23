"""Fee calculation: tiered marketplace commission and fixed-rate proxy fees.

Everything is in cents and basis points; every fee rounds up via
calc_fee (ceiling division).
"""
from dataclasses import dataclass
from typing import Protocol

from src.mp_common.errors import FeeMismatchError, InvalidFieldError
from src.mp_common.money import calculate_fee, within_tolerance


@dataclass(frozen=True)
class FeeTier:
    upper_bound_cents: int | None  # inclusive; None = unbounded
    rate_bps: int


# Upper bound of each band is inclusive: exactly 500.00 pays 5%, 500.01 pays 4%.
MARKETPLACE_FEE_TIERS: tuple[FeeTier, ...] = (
    FeeTier(50_000, 500),
    FeeTier(300_000, 400),
    FeeTier(1_000_000, 300),
    FeeTier(None, 250),
)

PROXY_SERVICE_FEE_BPS = 1_000  # paid to the purchaser
PROXY_PLATFORM_FEE_BPS = 500


def tier_rate_bps(total_value: int) -> int:
    """Return the commission rate for the band containing total_value."""
    for tier in MARKETPLACE_FEE_TIERS:
        if tier.upper_bound_cents is None or total_value <= tier.upper_bound_cents:
            return tier.rate_bps
    raise AssertionError("unreachable: last tier is unbounded")


def compute_fee(total_value: int) -> int:
    """Pure tiered commission: compute_fee(50_000) == 2_500, compute_fee(50_001) == 2_001."""
    if total_value < 0:
        raise ValueError(f"total_value must be >= 0, got {total_value}")
    return calculate_fee(total_value, tier_rate_bps(total_value))


@dataclass(frozen=True)
class PriceBreakdown:
    """Financial terms fixed at order creation; never recomputed afterwards."""

    unit_price: int
    quantity: int
    base_price: int
    service_fee: int
    platform_fee: int
    shipping_fee: int
    tip: int
    total_amount: int


@dataclass(frozen=True)
class ClientFeeClaim:
    """Values the client displayed to the user; None means not supplied."""

    service_fee: int | None = None
    platform_fee: int | None = None
    total_amount: int | None = None


class FeeStrategy(Protocol):
    def quote(
        self,
        unit_price: int,
        quantity: int,
        shipping_fee: int = 0,
        tip: int = 0,
        buyer_pays_shipping: bool = True,
    ) -> PriceBreakdown: ...


def _check_inputs(unit_price: int, quantity: int, shipping_fee: int, tip: int) -> None:
    if unit_price < 0:
        raise InvalidFieldError(f"unit_price_cents must be >= 0, got {unit_price}")
    if quantity < 1:
        raise InvalidFieldError(f"quantity must be >= 1, got {quantity}")
    if shipping_fee < 0:
        raise InvalidFieldError(f"shipping_fee_cents must be >= 0, got {shipping_fee}")
    if tip < 0:
        raise InvalidFieldError(f"tip_cents must be >= 0, got {tip}")


class ProxyPurchaseFeeStrategy:
    """base + 10% service + 5% platform + shipping + tip, all charged to the buyer."""

    def quote(
        self,
        unit_price: int,
        quantity: int,
        shipping_fee: int = 0,
        tip: int = 0,
        buyer_pays_shipping: bool = True,
    ) -> PriceBreakdown:
        _check_inputs(unit_price, quantity, shipping_fee, tip)
        base = unit_price * quantity
        service_fee = calculate_fee(base, PROXY_SERVICE_FEE_BPS)
        platform_fee = calculate_fee(base, PROXY_PLATFORM_FEE_BPS)
        return PriceBreakdown(
            unit_price=unit_price,
            quantity=quantity,
            base_price=base,
            service_fee=service_fee,
            platform_fee=platform_fee,
            shipping_fee=shipping_fee,
            tip=tip,
            total_amount=base + service_fee + platform_fee + shipping_fee + tip,
        )


class MarketplaceFeeStrategy:
    """Tiered commission deducted from the seller; buyer pays price (+ shipping)."""

    def quote(
        self,
        unit_price: int,
        quantity: int,
        shipping_fee: int = 0,
        tip: int = 0,
        buyer_pays_shipping: bool = True,
    ) -> PriceBreakdown:
        _check_inputs(unit_price, quantity, shipping_fee, tip)
        if tip:
            raise InvalidFieldError("Marketplace orders do not accept a tip")
        total_price = unit_price * quantity
        charged_shipping = shipping_fee if buyer_pays_shipping else 0
        return PriceBreakdown(
            unit_price=unit_price,
            quantity=quantity,
            base_price=total_price,
            service_fee=0,
            platform_fee=compute_fee(total_price),
            shipping_fee=charged_shipping,
            tip=0,
            total_amount=total_price + charged_shipping,
        )


def verify_client_fees(
    breakdown: PriceBreakdown, claim: ClientFeeClaim, tolerance: int
) -> None:
    """Reject (never correct) client-side fee values that differ from the server's.

    Tolerance is absolute cents regardless of order size.
    """
    checks = (
        ("service_fee_cents", claim.service_fee, breakdown.service_fee),
        ("platform_fee_cents", claim.platform_fee, breakdown.platform_fee),
        ("total_amount_cents", claim.total_amount, breakdown.total_amount),
    )
    for field, supplied, expected in checks:
        if supplied is not None and not within_tolerance(supplied, expected, tolerance):
            raise FeeMismatchError(field, supplied, expected)
