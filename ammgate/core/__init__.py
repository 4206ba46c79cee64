"""
Pure AMM math: bonding-curve reserve derivation and concentrated-liquidity ticks.
"""

from .bonding_curve import (
    InvalidConfiguration,
    InvalidParameter,
    VirtualReserves,
    calculate_virtual_reserves,
)
from .tick_math import (
    MAX_TICK,
    MIN_TICK,
    TickRange,
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

__all__ = [
    "InvalidConfiguration",
    "InvalidParameter",
    "VirtualReserves",
    "calculate_virtual_reserves",
    "MAX_TICK",
    "MIN_TICK",
    "TickRange",
    "human_price_to_pool_price",
    "human_price_to_tick",
    "pool_price_to_human_price",
    "price_to_tick",
    "round_tick",
    "round_tick_down",
    "round_tick_up",
    "tick_range_from_prices",
    "tick_to_human_price",
    "tick_to_price",
]
