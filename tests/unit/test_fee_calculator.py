"""Tests for mp_clearing.domain.fee: tiered commission and fee strategies."""

import pytest

from src.mp_clearing.domain.fee import (
    ClientFeeClaim,
    MarketplaceFeeStrategy,
    ProxyPurchaseFeeStrategy,
    compute_fee,
    tier_rate_bps,
    verify_client_fees,
)
from src.mp_common.errors import FeeMismatchError, InvalidFieldError


class TestTieredFee:
    @pytest.mark.parametrize(
        ("total", "expected"),
        [
            (0, 0),
            (10_000, 500),  # 100.00 @ 5%
            (50_000, 2_500),  # 500.00 is still in the 5% band
            (50_001, 2_001),  # 500.01 @ 4% = 20.0004 -> rounds up
            (300_000, 12_000),
            (300_001, 9_001),
            (1_000_000, 30_000),
            (1_000_001, 25_001),
            (2_000_000, 50_000),
        ],
    )
    def test_band_boundaries(self, total: int, expected: int) -> None:
        assert compute_fee(total) == expected

    def test_rates(self) -> None:
        assert tier_rate_bps(50_000) == 500
        assert tier_rate_bps(50_001) == 400
        assert tier_rate_bps(1_000_001) == 250

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValueError):
            compute_fee(-1)


class TestProxyPurchaseStrategy:
    def test_composition(self) -> None:
        quote = ProxyPurchaseFeeStrategy().quote(10_000, 2, tip=500)
        assert quote.base_price == 20_000
        assert quote.service_fee == 2_000
        assert quote.platform_fee == 1_000
        assert quote.total_amount == 20_000 + 2_000 + 1_000 + 500

    def test_shipping_included(self) -> None:
        quote = ProxyPurchaseFeeStrategy().quote(10_000, 1, shipping_fee=800)
        assert quote.total_amount == 10_000 + 1_000 + 500 + 800

    def test_fees_round_up(self) -> None:
        quote = ProxyPurchaseFeeStrategy().quote(333, 1)
        assert quote.service_fee == 34  # 33.3
        assert quote.platform_fee == 17  # 16.65

    def test_zero_quantity_rejected(self) -> None:
        with pytest.raises(InvalidFieldError):
            ProxyPurchaseFeeStrategy().quote(1_000, 0)

    def test_negative_tip_rejected(self) -> None:
        with pytest.raises(InvalidFieldError):
            ProxyPurchaseFeeStrategy().quote(1_000, 1, tip=-1)


class TestMarketplaceStrategy:
    def test_buyer_pays_shipping(self) -> None:
        quote = MarketplaceFeeStrategy().quote(60_000, 1, shipping_fee=1_200)
        assert quote.platform_fee == 2_400
        assert quote.service_fee == 0
        assert quote.total_amount == 61_200

    def test_seller_pays_shipping(self) -> None:
        quote = MarketplaceFeeStrategy().quote(
            60_000, 1, shipping_fee=1_200, buyer_pays_shipping=False
        )
        assert quote.shipping_fee == 0
        assert quote.total_amount == 60_000

    def test_fee_on_total_not_unit(self) -> None:
        # 2 x 300.00 = 600.00 lands in the 4% band, not 5%
        quote = MarketplaceFeeStrategy().quote(30_000, 2)
        assert quote.platform_fee == 2_400

    def test_tip_rejected(self) -> None:
        with pytest.raises(InvalidFieldError):
            MarketplaceFeeStrategy().quote(1_000, 1, tip=100)


class TestVerifyClientFees:
    def _quote(self):
        return ProxyPurchaseFeeStrategy().quote(10_000, 1)

    def test_exact_match(self) -> None:
        verify_client_fees(
            self._quote(), ClientFeeClaim(service_fee=1_000, platform_fee=500, total_amount=11_500), 1
        )

    def test_one_cent_off_accepted(self) -> None:
        verify_client_fees(self._quote(), ClientFeeClaim(total_amount=11_501), 1)

    def test_two_cents_off_rejected(self) -> None:
        with pytest.raises(FeeMismatchError) as exc_info:
            verify_client_fees(self._quote(), ClientFeeClaim(total_amount=11_498), 1)
        assert exc_info.value.code == 2002
        assert "total_amount_cents" in exc_info.value.message

    def test_unsupplied_values_skipped(self) -> None:
        verify_client_fees(self._quote(), ClientFeeClaim(), 0)

    def test_first_mismatch_reported(self) -> None:
        with pytest.raises(FeeMismatchError, match="service_fee_cents"):
            verify_client_fees(
                self._quote(), ClientFeeClaim(service_fee=900, total_amount=0), 1
            )
