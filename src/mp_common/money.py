"""Integer arithmetic utilities for cents-based amounts.

All prices, fees and totals use int (cents). No float, no Decimal.
Rates are expressed in basis points (1 bps = 0.01%).
"""

BPS_DENOMINATOR = 10_000


def cents_to_display(cents: int, symbol: str = "¥") -> str:
    """Convert cents to display string: 6500 -> '¥65.00', -1200 -> '-¥12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-{symbol}{abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"{symbol}{cents // 100:,}.{cents % 100:02d}"


def calculate_fee(value: int, fee_rate_bps: int) -> int:
    """Calculate fee with ceiling division (platform never loses).

    fee = ceil(value * fee_rate_bps / 10000)
    Using integer ceiling: (a + b - 1) // b
    """
    if value == 0 or fee_rate_bps == 0:
        return 0
    return (value * fee_rate_bps + BPS_DENOMINATOR - 1) // BPS_DENOMINATOR


def within_tolerance(supplied: int, expected: int, tolerance: int) -> bool:
    """Absolute comparison; tolerance does not scale with the amount."""
    return abs(supplied - expected) <= tolerance
