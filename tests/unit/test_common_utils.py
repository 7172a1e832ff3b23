"""Tests for mp_common.id_generator, datetime_utils and money."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from src.mp_common.datetime_utils import ensure_utc, utc_now
from src.mp_common.id_generator import SnowflakeIdGenerator, generate_id
from src.mp_common.money import (
    calculate_fee,
    cents_to_display,
    within_tolerance,
)


class TestSnowflakeIdGenerator:
    def test_unique_ids(self) -> None:
        gen = SnowflakeIdGenerator(machine_id=1)
        ids = {gen.next_id() for _ in range(1000)}
        assert len(ids) == 1000

    def test_monotonically_increasing(self) -> None:
        gen = SnowflakeIdGenerator(machine_id=1)
        prev = gen.next_int()
        for _ in range(100):
            current = gen.next_int()
            assert current > prev
            prev = current

    def test_prefix(self) -> None:
        gen = SnowflakeIdGenerator(machine_id=2)
        prefix, _, digits = gen.next_id("ord").partition("_")
        assert prefix == "ord"
        assert digits.isdigit()

    def test_machine_id_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            SnowflakeIdGenerator(machine_id=1024)

    def test_module_helper(self) -> None:
        assert generate_id("lst").startswith("lst_")


class TestDatetimeUtils:
    def test_utc_now_is_aware(self) -> None:
        assert utc_now().tzinfo == UTC

    def test_naive_treated_as_utc(self) -> None:
        naive = datetime(2026, 1, 1, 12, 0)
        assert ensure_utc(naive) == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def test_aware_converted(self) -> None:
        shanghai = timezone(timedelta(hours=8))
        value = datetime(2026, 1, 1, 20, 0, tzinfo=shanghai)
        assert ensure_utc(value) == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def test_none_passthrough(self) -> None:
        assert ensure_utc(None) is None


class TestCentsToDisplay:
    def test_basic(self) -> None:
        assert cents_to_display(6500) == "¥65.00"

    def test_one_cent(self) -> None:
        assert cents_to_display(1) == "¥0.01"

    def test_large(self) -> None:
        assert cents_to_display(150000) == "¥1,500.00"

    def test_negative(self) -> None:
        assert cents_to_display(-1200) == "-¥12.00"

    def test_custom_symbol(self) -> None:
        assert cents_to_display(999, symbol="$") == "$9.99"


class TestCalculateFee:
    def test_exact(self) -> None:
        assert calculate_fee(10_000, 500) == 500

    def test_rounds_up(self) -> None:
        # 333 * 5% = 16.65 -> 17
        assert calculate_fee(333, 500) == 17

    def test_zero_value(self) -> None:
        assert calculate_fee(0, 500) == 0

    def test_zero_rate(self) -> None:
        assert calculate_fee(10_000, 0) == 0


class TestTolerance:
    def test_tolerance_is_absolute(self) -> None:
        assert within_tolerance(1_000_001, 1_000_000, 1)
        assert not within_tolerance(1_000_002, 1_000_000, 1)
        assert within_tolerance(99, 100, 1)
