"""
Concentrated-liquidity tick math.

Price relates to tick by `price = 1.0001 ** tick`; each tick is a one basis
point move. Pool price is "smallest units of asset B per smallest unit of
asset A". Human price is "quote per base" in whole units, where either
asset may be the pricing base.

All arithmetic is done with `decimal.Decimal` under a fixed 50-digit
context so results are identical across platforms and round-trips
(price -> tick -> price) converge instead of drifting.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal, localcontext
from typing import Optional, Union

MIN_TICK = -887272
MAX_TICK = 887272

TICK_BASE = Decimal("1.0001")

_PRECISION = 50
_POOL_PRICE_SIGNIFICANT_DIGITS = 10

PriceLike = Union[Decimal, int, float, str]


@dataclass(frozen=True)
class TickRange:
    tick_lower: int
    tick_upper: int
    actual_price_lower: Decimal
    actual_price_upper: Decimal


def _to_decimal(value: PriceLike, *, name: str) -> Decimal:
    if isinstance(value, bool):
        raise TypeError(f"{name} must be numeric, got bool")
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, int):
        d = Decimal(value)
    elif isinstance(value, float):
        # Via repr so 0.1 means 0.1, not its binary expansion.
        d = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            d = Decimal(value.strip())
        except Exception as exc:
            raise ValueError(f"{name} must be a decimal string: {value!r}") from exc
    else:
        raise TypeError(f"{name} must be Decimal|int|float|str, got {type(value).__name__}")
    if not d.is_finite():
        raise ValueError(f"{name} must be finite: {value!r}")
    return d


def _require_positive(value: PriceLike, *, name: str) -> Decimal:
    d = _to_decimal(value, name=name)
    if d <= 0:
        raise ValueError(f"{name} must be positive: {value!r}")
    return d


def _require_tick(tick: int) -> int:
    if not isinstance(tick, int) or isinstance(tick, bool):
        raise TypeError(f"tick must be an int, got {tick!r}")
    if tick < MIN_TICK or tick > MAX_TICK:
        raise ValueError(f"tick must be between {MIN_TICK} and {MAX_TICK}: {tick}")
    return tick


def _require_int(value: int, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int, got {value!r}")
    return value


def _require_spacing(tick_spacing: int) -> int:
    if not isinstance(tick_spacing, int) or isinstance(tick_spacing, bool) or tick_spacing <= 0:
        raise ValueError(f"tick_spacing must be a positive int: {tick_spacing!r}")
    return tick_spacing


def _require_decimals(value: int, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValueError(f"{name} must be a non-negative int: {value!r}")
    return value


def _plain(d: Decimal) -> str:
    # Positional notation; never scientific, no trailing zeros.
    return format(d.normalize(), "f")


def _pow_base(tick: int) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return TICK_BASE ** tick


def price_to_tick(price: PriceLike) -> int:
    """
    Convert a pool price to the nearest tick.

    Raises:
        ValueError: If price is not positive or maps outside the tick range
    """
    p = _require_positive(price, name="price")
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        raw = p.ln() / TICK_BASE.ln()
        # Half-way values round toward +inf.
        tick = int((raw + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR))
    return _require_tick(tick)


def tick_to_price(tick: int) -> str:
    """Exact `1.0001 ** tick` as a positional decimal string."""
    return _plain(_pow_base(_require_tick(tick)))


def round_tick_down(tick: int, tick_spacing: int) -> int:
    tick = _require_int(tick, name="tick")
    s = _require_spacing(tick_spacing)
    return (tick // s) * s


def round_tick_up(tick: int, tick_spacing: int) -> int:
    tick = _require_int(tick, name="tick")
    s = _require_spacing(tick_spacing)
    return -((-tick) // s) * s


def round_tick(tick: int, tick_spacing: int) -> int:
    """Round to the nearest multiple of `tick_spacing` (half-way toward +inf)."""
    tick = _require_int(tick, name="tick")
    s = _require_spacing(tick_spacing)
    return ((2 * tick + s) // (2 * s)) * s


def _human_to_pool(human: Decimal, base_decimals: int, quote_decimals: int, base_is_asset_a: bool) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        if base_is_asset_a:
            return human.scaleb(quote_decimals - base_decimals)
        return Decimal(1).scaleb(base_decimals - quote_decimals) / human


def _pool_to_human(pool: Decimal, base_decimals: int, quote_decimals: int, base_is_asset_a: bool) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        if base_is_asset_a:
            return pool.scaleb(base_decimals - quote_decimals)
        return Decimal(1).scaleb(base_decimals - quote_decimals) / pool


def human_price_to_tick(
    human_price: PriceLike,
    base_decimals: int,
    quote_decimals: int,
    *,
    base_is_asset_a: bool = False,
    tick_spacing: Optional[int] = None,
) -> int:
    """
    Convert a human-readable price ("quote per base") to a tick.

    When the base is asset B (the common case, e.g. BTC priced in a USD
    stablecoin held as asset A) the pool price is the inverse of the human
    price, so a higher human price maps to a lower tick.

    Args:
        human_price: Quote units per one base unit
        base_decimals: Decimals of the base asset
        quote_decimals: Decimals of the quote asset
        base_is_asset_a: Whether the base asset is the pool's asset A
        tick_spacing: If given, round the tick to the nearest valid multiple

    Returns:
        Tick value
    """
    human = _require_positive(human_price, name="human_price")
    bd = _require_decimals(base_decimals, name="base_decimals")
    qd = _require_decimals(quote_decimals, name="quote_decimals")
    tick = price_to_tick(_human_to_pool(human, bd, qd, base_is_asset_a))
    if tick_spacing is not None:
        tick = round_tick(tick, tick_spacing)
    return tick


def tick_to_human_price(
    tick: int,
    base_decimals: int,
    quote_decimals: int,
    *,
    base_is_asset_a: bool = False,
) -> Decimal:
    bd = _require_decimals(base_decimals, name="base_decimals")
    qd = _require_decimals(quote_decimals, name="quote_decimals")
    pool = _pow_base(_require_tick(tick))
    return _pool_to_human(pool, bd, qd, base_is_asset_a)


def tick_range_from_prices(
    price_lower: PriceLike,
    price_upper: PriceLike,
    base_decimals: int,
    quote_decimals: int,
    tick_spacing: int,
    *,
    base_is_asset_a: bool = False,
) -> TickRange:
    """
    Convert a human price range into a valid tick range.

    Guarantees `tick_lower < tick_upper` regardless of which asset is the
    pricing base. The actual prices are the human prices at the rounded
    ticks, which can differ slightly from the requested bounds.

    Raises:
        ValueError: If price_lower >= price_upper, or both bounds round to the same tick
    """
    lo = _require_positive(price_lower, name="price_lower")
    hi = _require_positive(price_upper, name="price_upper")
    if lo >= hi:
        raise ValueError("price_lower must be less than price_upper")
    _require_spacing(tick_spacing)

    tick_a = human_price_to_tick(
        lo, base_decimals, quote_decimals, base_is_asset_a=base_is_asset_a, tick_spacing=tick_spacing
    )
    tick_b = human_price_to_tick(
        hi, base_decimals, quote_decimals, base_is_asset_a=base_is_asset_a, tick_spacing=tick_spacing
    )
    tick_lower = min(tick_a, tick_b)
    tick_upper = max(tick_a, tick_b)
    if tick_lower == tick_upper:
        raise ValueError("price range is narrower than one tick spacing")

    # With asset B as base the lower human price sits at the upper tick.
    lower_price_tick = tick_lower if base_is_asset_a else tick_upper
    upper_price_tick = tick_upper if base_is_asset_a else tick_lower

    return TickRange(
        tick_lower=tick_lower,
        tick_upper=tick_upper,
        actual_price_lower=tick_to_human_price(
            lower_price_tick, base_decimals, quote_decimals, base_is_asset_a=base_is_asset_a
        ),
        actual_price_upper=tick_to_human_price(
            upper_price_tick, base_decimals, quote_decimals, base_is_asset_a=base_is_asset_a
        ),
    )


def human_price_to_pool_price(
    human_price: PriceLike,
    base_decimals: int,
    quote_decimals: int,
    *,
    base_is_asset_a: bool = False,
) -> str:
    """Pool price for an initial-price field, rounded to 10 significant digits."""
    human = _require_positive(human_price, name="human_price")
    bd = _require_decimals(base_decimals, name="base_decimals")
    qd = _require_decimals(quote_decimals, name="quote_decimals")
    pool = _human_to_pool(human, bd, qd, base_is_asset_a)
    with localcontext() as ctx:
        ctx.prec = _POOL_PRICE_SIGNIFICANT_DIGITS
        rounded = +pool
    return _plain(rounded)


def pool_price_to_human_price(
    pool_price: PriceLike,
    base_decimals: int,
    quote_decimals: int,
    *,
    base_is_asset_a: bool = False,
) -> Decimal:
    pool = _require_positive(pool_price, name="pool_price")
    bd = _require_decimals(base_decimals, name="base_decimals")
    qd = _require_decimals(quote_decimals, name="quote_decimals")
    return _pool_to_human(pool, bd, qd, base_is_asset_a)
