"""
TTL-memoized snapshots of remote policy, plus the preflight gates built on
them.

Four snapshots, each with its own TTL:

    feature_flags    GET /v1/config/feature-status   (~5s)
    min_amounts      GET /v1/config/min-amounts      (~5s)
    allowed_assets   GET /v1/config/allowed-assets   (~60s)
    ping             GET /v1/ping                    (~2s)

Reads go through `TtlCache.get_or_refresh(key)`: a fresh entry is returned
without I/O; a stale one triggers exactly one refresh, and every caller
that arrives while it is in flight awaits that same refresh.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Mapping, Optional

from .api_client import GatewayApiClient
from .config import PolicyTtls
from .errors import (
    AssetNotAllowed,
    BelowMinimum,
    FeatureDisabled,
    ServiceDisabled,
    SettlementUnavailable,
)

logger = logging.getLogger(__name__)

FEATURE_FLAGS = "feature_flags"
MIN_AMOUNTS = "min_amounts"
ALLOWED_ASSETS = "allowed_assets"
PING = "ping"

MASTER_KILL_SWITCH = "master_kill_switch"
ALLOW_SWAPS = "allow_swaps"
ALLOW_ROUTE_SWAPS = "allow_route_swaps"
ALLOW_ADD_LIQUIDITY = "allow_add_liquidity"
ALLOW_WITHDRAW_LIQUIDITY = "allow_withdraw_liquidity"
ALLOW_POOL_CREATION = "allow_pool_creation"
ALLOW_WITHDRAW_FEES = "allow_withdraw_fees"

KNOWN_FEATURES: FrozenSet[str] = frozenset(
    {
        MASTER_KILL_SWITCH,
        ALLOW_SWAPS,
        ALLOW_ROUTE_SWAPS,
        ALLOW_ADD_LIQUIDITY,
        ALLOW_WITHDRAW_LIQUIDITY,
        ALLOW_POOL_CREATION,
        ALLOW_WITHDRAW_FEES,
    }
)


@dataclass(frozen=True)
class _Entry:
    value: Any
    fetched_at: float


@dataclass(frozen=True)
class _Loader:
    fetch: Callable[[], Awaitable[Any]]
    ttl_s: float


class TtlCache:
    """Keyed TTL cache with per-key single-flight refresh."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._loaders: Dict[str, _Loader] = {}
        self._entries: Dict[str, _Entry] = {}
        self._inflight: Dict[str, "asyncio.Future[Any]"] = {}
        self.refresh_counts: Dict[str, int] = {}

    def register(self, key: str, fetch: Callable[[], Awaitable[Any]], ttl_s: float) -> None:
        if not isinstance(key, str) or not key:
            raise ValueError("key must be a non-empty string")
        if not isinstance(ttl_s, (int, float)) or isinstance(ttl_s, bool) or ttl_s < 0:
            raise ValueError("ttl_s must be a non-negative number")
        self._loaders[key] = _Loader(fetch=fetch, ttl_s=float(ttl_s))
        self.refresh_counts.setdefault(key, 0)

    def peek(self, key: str) -> Optional[Any]:
        """Cached value regardless of age, or None. Never refreshes."""
        entry = self._entries.get(key)
        return entry.value if entry is not None else None

    def is_fresh(self, key: str) -> bool:
        entry = self._entries.get(key)
        loader = self._loaders.get(key)
        if entry is None or loader is None:
            return False
        return (self._clock() - entry.fetched_at) <= loader.ttl_s

    async def get_or_refresh(self, key: str) -> Any:
        if key not in self._loaders:
            raise KeyError(f"unregistered cache key: {key!r}")
        if self.is_fresh(key):
            return self._entries[key].value

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._refresh(key))
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        # One cancelled waiter must not cancel the shared refresh.
        return await asyncio.shield(task)

    def invalidate(self, key: Optional[str] = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    async def _refresh(self, key: str) -> Any:
        loader = self._loaders[key]
        logger.debug("refreshing %s", key)
        value = await loader.fetch()
        self._entries[key] = _Entry(value=value, fetched_at=self._clock())
        self.refresh_counts[key] = self.refresh_counts.get(key, 0) + 1
        return value

    def _forget(self, key: str, task: "asyncio.Future[Any]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Mark the exception retrieved; waiters already re-raised it.
            task.exception()


def parse_feature_flags(payload: Any) -> Dict[str, bool]:
    items = payload if isinstance(payload, list) else []
    out: Dict[str, bool] = {}
    for item in items:
        if isinstance(item, Mapping) and isinstance(item.get("feature_name"), str):
            out[item["feature_name"]] = bool(item.get("enabled"))
    return out


def parse_min_amounts(payload: Any) -> Dict[str, int]:
    """Enabled minimums keyed by lower-cased asset identifier."""
    items = payload if isinstance(payload, list) else []
    out: Dict[str, int] = {}
    for item in items:
        if not isinstance(item, Mapping) or not item.get("enabled"):
            continue
        asset = item.get("asset_identifier")
        if not isinstance(asset, str) or not asset:
            continue
        out[asset.lower()] = int(str(item.get("min_amount", "0")))
    return out


def parse_allowed_assets(payload: Any) -> Optional[FrozenSet[str]]:
    """
    Enabled asset identifiers, lower-cased. An empty list from the gateway
    means every asset is allowed; that is returned as None.
    """
    items = payload if isinstance(payload, list) else []
    if not items:
        return None
    return frozenset(
        item["asset_identifier"].lower()
        for item in items
        if isinstance(item, Mapping) and item.get("enabled") and isinstance(item.get("asset_identifier"), str)
    )


def parse_ping(payload: Any) -> bool:
    status = payload.get("status") if isinstance(payload, Mapping) else None
    return isinstance(status, str) and status.lower() == "ok"


def relaxed_minimum(minimum: int, fraction: Fraction) -> int:
    return int(minimum * fraction)


class PolicyCache:
    """
    Remote policy snapshots and the gates that read them.

    All asset arguments are hex identifiers; the caller converts
    human-readable addresses before asking.
    """

    def __init__(
        self,
        api: GatewayApiClient,
        *,
        ttls: Optional[PolicyTtls] = None,
        output_min_fraction: Fraction = Fraction(1, 2),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._api = api
        self._fraction = output_min_fraction
        t = ttls or PolicyTtls()
        self.cache = TtlCache(clock=clock)
        self.cache.register(FEATURE_FLAGS, self._fetch_feature_flags, t.feature_flags_s)
        self.cache.register(MIN_AMOUNTS, self._fetch_min_amounts, t.min_amounts_s)
        self.cache.register(ALLOWED_ASSETS, self._fetch_allowed_assets, t.allowed_assets_s)
        self.cache.register(PING, self._fetch_ping, t.ping_s)

    @property
    def output_min_fraction(self) -> Fraction:
        return self._fraction

    async def _fetch_feature_flags(self) -> Dict[str, bool]:
        return parse_feature_flags(await self._api.feature_status())

    async def _fetch_min_amounts(self) -> Dict[str, int]:
        return parse_min_amounts(await self._api.min_amounts())

    async def _fetch_allowed_assets(self) -> Optional[FrozenSet[str]]:
        return parse_allowed_assets(await self._api.allowed_assets())

    async def _fetch_ping(self) -> bool:
        return parse_ping(await self._api.ping())

    # Accessors

    async def feature_flags(self) -> Dict[str, bool]:
        return dict(await self.cache.get_or_refresh(FEATURE_FLAGS))

    async def min_amounts(self) -> Dict[str, int]:
        return dict(await self.cache.get_or_refresh(MIN_AMOUNTS))

    async def allowed_assets(self) -> Optional[FrozenSet[str]]:
        return await self.cache.get_or_refresh(ALLOWED_ASSETS)

    async def ping_ok(self) -> bool:
        return bool(await self.cache.get_or_refresh(PING))

    def invalidate(self, key: Optional[str] = None) -> None:
        self.cache.invalidate(key)

    # Gates

    async def ensure_ping_ok(self) -> None:
        if not await self.ping_ok():
            raise SettlementUnavailable(
                "settlement service unavailable; only read operations are allowed"
            )

    async def ensure_operation_allowed(self, feature: str) -> None:
        """
        Raises:
            SettlementUnavailable: Liveness check failed
            ServiceDisabled: Master kill switch is set
            FeatureDisabled: `feature` is off or not reported
        """
        await self.ensure_ping_ok()
        flags = await self.feature_flags()
        if flags.get(MASTER_KILL_SWITCH):
            raise ServiceDisabled("service temporarily disabled by master kill switch")
        if not flags.get(feature, False):
            raise FeatureDisabled(feature)

    async def assert_meets_min_amount(self, asset: str, amount: int, *, side: str = "input") -> None:
        """
        Input amounts must reach the full minimum; output amounts only the
        relaxed fraction of it.
        """
        if side not in ("input", "output"):
            raise ValueError(f"side must be 'input' or 'output': {side!r}")
        minimum = (await self.min_amounts()).get(asset.lower())
        if minimum is None:
            return
        required = minimum if side == "input" else relaxed_minimum(minimum, self._fraction)
        if int(amount) < required:
            raise BelowMinimum(asset, int(amount), required, side=side)

    async def assert_swap_meets_min_amounts(
        self, asset_in: str, asset_out: str, amount_in: int, min_amount_out: int
    ) -> None:
        mins = await self.min_amounts()
        if not mins:
            return
        # A zero minimum on the input side does not gate; fall through to the output side.
        if mins.get(asset_in.lower()):
            await self.assert_meets_min_amount(asset_in, amount_in, side="input")
        elif mins.get(asset_out.lower()):
            await self.assert_meets_min_amount(asset_out, min_amount_out, side="output")

    async def assert_add_liquidity_meets_min_amounts(
        self, asset_a: str, asset_b: str, amount_a: int, amount_b: int
    ) -> None:
        await self.assert_meets_min_amount(asset_a, amount_a, side="input")
        await self.assert_meets_min_amount(asset_b, amount_b, side="input")

    async def assert_remove_liquidity_meets_min_amounts(
        self, asset_a: str, asset_b: str, predicted_a: int, predicted_b: int
    ) -> None:
        await self.assert_meets_min_amount(asset_a, predicted_a, side="output")
        await self.assert_meets_min_amount(asset_b, predicted_b, side="output")

    async def assert_asset_allowed_for_pool_creation(self, asset: str) -> None:
        allowed = await self.allowed_assets()
        if allowed is None:
            return
        if asset.lower() not in allowed:
            raise AssetNotAllowed(asset)
