# [TESTER] v1

from __future__ import annotations

from decimal import Decimal

import hypothesis.strategies as st
import pytest
from hypothesis import given, settings

from ammgate.core.tick_math import (
    MAX_TICK,
    MIN_TICK,
    human_price_to_pool_price,
    human_price_to_tick,
    pool_price_to_human_price,
    price_to_tick,
    round_tick,
    round_tick_down,
    round_tick_up,
    tick_range_from_prices,
    tick_to_human_price,
    tick_to_price,
)


def test_unit_price_is_tick_zero() -> None:
    assert price_to_tick(1) == 0
    assert tick_to_price(0) == "1"


def test_one_tick_is_one_basis_point() -> None:
    assert price_to_tick("1.0001") == 1
    assert tick_to_price(1) == "1.0001"
    assert price_to_tick(Decimal(1) / Decimal("1.0001")) == -1


def test_price_to_tick_rejects_non_positive_and_non_finite() -> None:
    for bad in (0, -1, "0", "-0.5"):
        with pytest.raises(ValueError):
            price_to_tick(bad)
    with pytest.raises(ValueError):
        price_to_tick("inf")
    with pytest.raises(ValueError):
        price_to_tick("abc")
    with pytest.raises(TypeError):
        price_to_tick(True)


def test_tick_bounds_enforced() -> None:
    with pytest.raises(ValueError):
        tick_to_price(MAX_TICK + 1)
    with pytest.raises(ValueError):
        tick_to_price(MIN_TICK - 1)


def test_rounding_to_spacing() -> None:
    assert round_tick_down(-5, 10) == -10
    assert round_tick_up(-5, 10) == 0
    assert round_tick_down(15, 10) == 10
    assert round_tick_up(15, 10) == 20
    assert round_tick(5, 10) == 10
    assert round_tick(-5, 10) == 0
    assert round_tick(14, 10) == 10
    assert round_tick(-16, 10) == -20


def test_rounding_rejects_bad_spacing() -> None:
    for bad in (0, -10, True):
        with pytest.raises(ValueError):
            round_tick(7, bad)  # type: ignore[arg-type]


def test_human_price_inverts_when_base_is_asset_b() -> None:
    low = human_price_to_tick(50_000, 8, 6)
    high = human_price_to_tick(60_000, 8, 6)
    assert high < low


def test_human_price_to_tick_with_spacing_is_multiple() -> None:
    t = human_price_to_tick("65000", 8, 6, tick_spacing=60)
    assert t % 60 == 0


def test_tick_range_is_ordered_for_both_bases() -> None:
    for base_is_asset_a in (False, True):
        r = tick_range_from_prices(50_000, 60_000, 8, 6, 60, base_is_asset_a=base_is_asset_a)
        assert r.tick_lower < r.tick_upper
        assert r.tick_lower % 60 == 0 and r.tick_upper % 60 == 0
        assert r.actual_price_lower < r.actual_price_upper


def test_tick_range_rejects_inverted_or_degenerate_bounds() -> None:
    with pytest.raises(ValueError):
        tick_range_from_prices(60_000, 50_000, 8, 6, 60)
    with pytest.raises(ValueError):
        tick_range_from_prices("1.0000001", "1.0000002", 0, 0, 60, base_is_asset_a=True)


def test_pool_price_significant_digits() -> None:
    assert human_price_to_pool_price("2", 0, 0, base_is_asset_a=True) == "2"
    assert human_price_to_pool_price("3", 0, 0) == "0.3333333333"


def test_pool_and_human_price_conversions_agree() -> None:
    human = pool_price_to_human_price("0.0002", 8, 6)
    assert human == Decimal(500_000)
    assert tick_to_human_price(0, 0, 0, base_is_asset_a=True) == Decimal(1)


@settings(max_examples=200, deadline=None)
@given(st.integers(min_value=-200_000, max_value=200_000))
def test_tick_price_roundtrip(tick: int) -> None:
    assert price_to_tick(tick_to_price(tick)) == tick


@settings(max_examples=200, deadline=None)
@given(st.integers(min_value=-100_000, max_value=100_000), st.integers(min_value=1, max_value=200))
def test_rounded_ticks_bracket_the_input(tick: int, spacing: int) -> None:
    down = round_tick_down(tick, spacing)
    up = round_tick_up(tick, spacing)
    assert down <= tick <= up
    assert up - down in (0, spacing)
    assert round_tick(tick, spacing) in (down, up)
