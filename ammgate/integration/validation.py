"""
Local preflight checks that run before any fund movement.

Every failure here raises a `PreflightError` subclass; nothing has been
transferred yet, so none of them ever requires clawback.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from ..state.balances import WalletBalance, is_native_asset
from ..core.tick_math import MAX_TICK, MIN_TICK
from ..state.canonical import canonical_amount, canonical_bps, canonical_decimal
from .config import MAX_ROUTE_HOPS, MIN_HOST_FEE_BPS_WITHOUT_HOST
from .errors import InsufficientBalance, InvalidRequest

_HEX_ID_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64,66}$")


def parse_amount(value: Any, *, name: str, allow_zero: bool = False) -> int:
    """Amount as int; ints or base-10 digit strings only."""
    try:
        v = int(canonical_amount(value, name=name))
    except (TypeError, ValueError) as exc:
        raise InvalidRequest(str(exc)) from exc
    if v == 0 and not allow_zero:
        raise InvalidRequest(f"{name} must be positive")
    return v


def parse_decimal_amount(value: Any, *, name: str, allow_zero: bool = False) -> Decimal:
    """Fractional quantity (LP tokens) as Decimal; ints, Decimals or plain decimal strings."""
    try:
        v = Decimal(canonical_decimal(value, name=name))
    except (TypeError, ValueError) as exc:
        raise InvalidRequest(str(exc)) from exc
    if v == 0 and not allow_zero:
        raise InvalidRequest(f"{name} must be positive")
    return v


def parse_bps(value: Any, *, name: str) -> int:
    try:
        return int(canonical_bps(value, name=name))
    except (TypeError, ValueError) as exc:
        raise InvalidRequest(str(exc)) from exc


def require_id(value: Any, *, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequest(f"{name} must be a non-empty string")
    return value.strip()


def looks_like_hex_id(value: str) -> bool:
    return bool(_HEX_ID_RE.fullmatch(value))


def check_host_fee(total_host_fee_bps: int, host_namespace: Optional[str]) -> None:
    """Without a host namespace the host fee may not fall below the floor."""
    if not host_namespace and total_host_fee_bps < MIN_HOST_FEE_BPS_WITHOUT_HOST:
        raise InvalidRequest(
            f"host fee must be at least {MIN_HOST_FEE_BPS_WITHOUT_HOST} bps when no host namespace is given"
        )


def ensure_sufficient_balance(balance: WalletBalance, requirements: Iterable[Tuple[str, int]]) -> None:
    """
    Raise `InsufficientBalance` for the first asset whose summed
    requirement exceeds the wallet balance. The native-asset sentinel is
    checked against the native balance.
    """
    totals: Dict[str, int] = {}
    for asset, amount in requirements:
        key = asset.lower() if is_native_asset(asset) else asset
        totals[key] = totals.get(key, 0) + int(amount)
    for asset, required in totals.items():
        available = balance.get(asset)
        if available < required:
            raise InsufficientBalance(asset, required, available)


@dataclass(frozen=True)
class RouteHop:
    pool_id: str
    asset_in: str
    asset_out: str
    hop_integrator_fee_bps: Optional[int] = None


def validate_route_hops(hops: Sequence[RouteHop]) -> Tuple[RouteHop, ...]:
    if not isinstance(hops, (list, tuple)) or not hops:
        raise InvalidRequest("route swap requires at least one hop")
    if len(hops) > MAX_ROUTE_HOPS:
        raise InvalidRequest(f"route swap cannot have more than {MAX_ROUTE_HOPS} hops")
    out = []
    for i, hop in enumerate(hops):
        if not isinstance(hop, RouteHop):
            raise InvalidRequest(f"hops[{i}] must be a RouteHop")
        require_id(hop.pool_id, name=f"hops[{i}].pool_id")
        require_id(hop.asset_in, name=f"hops[{i}].asset_in")
        require_id(hop.asset_out, name=f"hops[{i}].asset_out")
        if hop.hop_integrator_fee_bps is not None:
            parse_bps(hop.hop_integrator_fee_bps, name=f"hops[{i}].hop_integrator_fee_bps")
        out.append(hop)
    return tuple(out)


@dataclass(frozen=True)
class EscrowRecipient:
    recipient_id: str
    amount: int


def validate_escrow_recipients(recipients: Sequence[EscrowRecipient], asset_amount: int) -> Tuple[EscrowRecipient, ...]:
    if not recipients:
        raise InvalidRequest("escrow requires at least one recipient")
    total = 0
    for i, r in enumerate(recipients):
        require_id(r.recipient_id, name=f"recipients[{i}].recipient_id")
        total += parse_amount(r.amount, name=f"recipients[{i}].amount")
    if total > asset_amount:
        raise InvalidRequest(f"recipient amounts ({total}) exceed escrow amount ({asset_amount})")
    return tuple(recipients)


def validate_tick_range(tick_lower: Any, tick_upper: Any, tick_spacing: Optional[int] = None) -> Tuple[int, int]:
    """
    Ticks must be ints within the tick bounds, strictly ordered, and, when
    the pool's spacing is known, multiples of it.
    """
    for name, tick in (("tick_lower", tick_lower), ("tick_upper", tick_upper)):
        if not isinstance(tick, int) or isinstance(tick, bool):
            raise InvalidRequest(f"{name} must be an int")
        if tick < MIN_TICK or tick > MAX_TICK:
            raise InvalidRequest(f"{name} out of range [{MIN_TICK}, {MAX_TICK}]: {tick}")
        if tick_spacing and tick % tick_spacing:
            raise InvalidRequest(f"{name} {tick} is not a multiple of tick spacing {tick_spacing}")
    if tick_lower >= tick_upper:
        raise InvalidRequest(f"tick_lower ({tick_lower}) must be below tick_upper ({tick_upper})")
    return tick_lower, tick_upper
