"""Order settlement: split the paid amount between fulfiller and platform.

Runs synchronously inside the receipt-confirmation transition; the settled
fields are persisted by the same conditional UPDATE that records `completed`.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from src.mp_common.datetime_utils import utc_now
from src.mp_common.enums import OrderKind, SettlementStatus
from src.mp_common.errors import SettlementAlreadyCompletedError
from src.mp_order.domain.models import Order

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementResult:
    order_id: str
    settlement_amount: int  # due to the seller / purchaser
    platform_revenue: int
    settled_at: datetime


def compute_settlement(order: Order) -> tuple[int, int]:
    """Return (settlement_amount, platform_revenue) for the order's variant.

    PROXY_PURCHASE: purchaser gets product price + service fee + tip.
    MARKETPLACE:    seller gets total item price minus the tiered commission.
    """
    if order.kind == OrderKind.PROXY_PURCHASE:
        return order.base_price + order.service_fee + order.tip, order.platform_fee
    return order.base_price - order.platform_fee, order.platform_fee


class SettlementProcessor:
    def settle(self, order: Order, at: datetime | None = None) -> SettlementResult:
        """Settle exactly once. A second call is a defect, never a silent re-credit."""
        if order.settlement_status == SettlementStatus.COMPLETED or order.settled_at is not None:
            logger.error(
                "Refusing to settle order twice: order=%s settled_at=%s revenue=%s",
                order.id,
                order.settled_at,
                order.platform_revenue,
            )
            raise SettlementAlreadyCompletedError(order.id)

        settled_at = at or utc_now()
        amount, revenue = compute_settlement(order)
        order.settlement_amount = amount
        order.platform_revenue = revenue
        order.settlement_status = SettlementStatus.COMPLETED.value
        order.settled_at = settled_at

        logger.info(
            "Order settled: order=%s kind=%s payout=%d revenue=%d",
            order.id,
            order.kind,
            amount,
            revenue,
        )
        return SettlementResult(
            order_id=order.id,
            settlement_amount=amount,
            platform_revenue=revenue,
            settled_at=settled_at,
        )
