"""
Bonding-curve virtual reserve derivation for single-sided pools.

A single-sided pool starts with only asset A deposited. Virtual reserves make
the curve behave like a constant-product pool whose marginal price at the
graduation threshold matches the target raise, so trading continues without
a price jump when the pool graduates.

Algorithm Design:
- Type: Exact integer arithmetic / floor division only
- Time Complexity: O(1)
- Invariant: all outputs are non-negative integers, threshold = floor(S * p / 100)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from ..state.balances import Amount


# Supported graduation threshold band: 50 < p <= 95.
MIN_GRADUATION_PCT_EXCLUSIVE = 50
MAX_GRADUATION_PCT = 95

_DIGITS_RE = re.compile(r"^[0-9]+$")

IntLike = Union[int, str]


class InvalidParameter(ValueError):
    pass


class InvalidConfiguration(ValueError):
    pass


@dataclass(frozen=True)
class VirtualReserves:
    virtual_reserve_a: Amount
    virtual_reserve_b: Amount
    threshold: Amount


def _parse_positive(value: IntLike, *, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise InvalidParameter(f"{name} must be an int or a base-10 digit string, got {type(value).__name__}")
    if isinstance(value, str):
        s = value.strip()
        if not _DIGITS_RE.fullmatch(s):
            raise InvalidParameter(f"{name} must be a base-10 digit string: {value!r}")
        n = int(s, 10)
    else:
        n = int(value)
    if n <= 0:
        raise InvalidParameter(f"{name} must be positive: {value!r}")
    return n


def _parse_graduation_pct(value: object) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidParameter(f"graduation_threshold_pct must be an int, got {value!r}")
    if not (MIN_GRADUATION_PCT_EXCLUSIVE < value <= MAX_GRADUATION_PCT):
        raise InvalidParameter(
            f"graduation_threshold_pct must be in ({MIN_GRADUATION_PCT_EXCLUSIVE}, {MAX_GRADUATION_PCT}]: {value}"
        )
    return int(value)


def calculate_virtual_reserves(
    initial_supply: IntLike,
    target_raise: IntLike,
    graduation_threshold_pct: int,
) -> VirtualReserves:
    """
    Derive virtual reserves for a single-sided bonding-curve pool.

    Formula (floor division throughout):
        denom = 2p - 100
        virtual_reserve_a = floor(S * p^2 / (100 * denom))
        virtual_reserve_b = floor(T * (100 - p) / denom)
        threshold = floor(S * p / 100)

    Args:
        initial_supply: S, asset A deposited into the pool (positive)
        target_raise: T, asset B to be raised by graduation (positive)
        graduation_threshold_pct: p, percentage of S sold at graduation

    Returns:
        VirtualReserves with all three values

    Raises:
        InvalidParameter: If S or T is not positive or p is outside the band
        InvalidConfiguration: If the derived denominator is not positive
    """
    s = _parse_positive(initial_supply, name="initial_supply")
    t = _parse_positive(target_raise, name="target_raise")
    p = _parse_graduation_pct(graduation_threshold_pct)

    denom = 2 * p - 100
    if denom <= 0:
        raise InvalidConfiguration(f"graduation_threshold_pct {p} gives non-positive denominator {denom}")

    virtual_reserve_a = (s * p * p) // (100 * denom)
    virtual_reserve_b = (t * (100 - p)) // denom
    threshold = (s * p) // 100

    return VirtualReserves(
        virtual_reserve_a=virtual_reserve_a,
        virtual_reserve_b=virtual_reserve_b,
        threshold=threshold,
    )
