"""Tests for SettlementProcessor."""

import logging
from datetime import UTC, datetime

import pytest

from src.mp_clearing.domain.settlement import SettlementProcessor, compute_settlement
from src.mp_common.errors import SettlementAlreadyCompletedError
from src.mp_order.domain.models import Order

AT = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)


def _proxy_order() -> Order:
    return Order(
        id="ord_proxy",
        kind="PROXY_PURCHASE",
        listing_id="lst_1",
        buyer_id="buyer",
        seller_id="purchaser",
        quantity=2,
        unit_price=10_000,
        base_price=20_000,
        service_fee=2_000,
        platform_fee=1_000,
        shipping_fee=0,
        tip=500,
        total_amount=23_500,
        status="shipping",
    )


def _marketplace_order() -> Order:
    return Order(
        id="ord_market",
        kind="MARKETPLACE",
        listing_id="lst_2",
        buyer_id="buyer",
        seller_id="seller",
        quantity=1,
        unit_price=60_000,
        base_price=60_000,
        service_fee=0,
        platform_fee=2_400,
        shipping_fee=1_200,
        tip=0,
        total_amount=61_200,
        status="received",
    )


class TestComputeSettlement:
    def test_proxy_purchaser_gets_price_service_and_tip(self) -> None:
        assert compute_settlement(_proxy_order()) == (22_500, 1_000)

    def test_marketplace_commission_deducted(self) -> None:
        assert compute_settlement(_marketplace_order()) == (57_600, 2_400)

    def test_components_sum_to_total(self) -> None:
        for order in (_proxy_order(), _marketplace_order()):
            assert order.components_total == order.total_amount


class TestSettlementProcessor:
    def test_settle_once(self) -> None:
        order = _marketplace_order()
        result = SettlementProcessor().settle(order, AT)
        assert result.settlement_amount == 57_600
        assert result.platform_revenue == 2_400
        assert order.settlement_status == "completed"
        assert order.settled_at == AT
        assert order.is_settled

    def test_second_settle_rejected_and_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        order = _proxy_order()
        processor = SettlementProcessor()
        processor.settle(order, AT)

        with caplog.at_level(logging.ERROR), pytest.raises(SettlementAlreadyCompletedError):
            processor.settle(order, AT)

        assert order.platform_revenue == 1_000
        assert any(r.levelno == logging.ERROR for r in caplog.records)
