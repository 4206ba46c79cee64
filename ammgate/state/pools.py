"""
Read-only pool snapshots.

Pools are owned and mutated by the remote settlement service; the client
only ever holds the last snapshot it fetched.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from .balances import Amount, AssetId, PubKey


class CurveType(Enum):
    CONSTANT_PRODUCT = "CONSTANT_PRODUCT"
    SINGLE_SIDED = "SINGLE_SIDED"
    CONCENTRATED = "CONCENTRATED"


_CURVE_ALIASES = {
    "CONSTANT_PRODUCT": CurveType.CONSTANT_PRODUCT,
    "CONSTANTPRODUCT": CurveType.CONSTANT_PRODUCT,
    "CPMM": CurveType.CONSTANT_PRODUCT,
    "SINGLE_SIDED": CurveType.SINGLE_SIDED,
    "SINGLESIDED": CurveType.SINGLE_SIDED,
    "CONCENTRATED": CurveType.CONCENTRATED,
    "V3_CONCENTRATED": CurveType.CONCENTRATED,
    "V3": CurveType.CONCENTRATED,
}


def normalize_curve_type(curve_type: Optional[object]) -> CurveType:
    """
    Normalize a curve type tag.

    - Tags are canonicalized to upper-case with `-` and spaces mapped to `_`.
    - A missing tag means a constant-product pool.
    """
    if curve_type is None:
        return CurveType.CONSTANT_PRODUCT
    if isinstance(curve_type, CurveType):
        return curve_type
    if not isinstance(curve_type, str) or not curve_type.strip():
        raise ValueError("curve_type must be a non-empty string")
    tag = curve_type.strip().upper().replace("-", "_").replace(" ", "_")
    try:
        return _CURVE_ALIASES[tag]
    except KeyError:
        raise ValueError(f"unsupported curve_type: {curve_type!r}") from None


def _opt_int(obj: Mapping[str, Any], key: str) -> Optional[int]:
    v = obj.get(key)
    if v is None:
        return None
    if isinstance(v, bool):
        raise ValueError(f"{key} must be an integer")
    return int(v)


def _bps(obj: Mapping[str, Any], key: str) -> int:
    v = _opt_int(obj, key)
    if v is None:
        return 0
    if not (0 <= v <= 10_000):
        raise ValueError(f"{key} must be in [0, 10000]: {v}")
    return v


@dataclass(frozen=True)
class Pool:
    """
    Pool snapshot.

    Fields:
        lp_identity_public_key: custody identity of the pool (also its id)
        asset_a / asset_b: token identifiers
        lp_fee_bps / host_fee_bps / integrator_fee_bps: fee rates in basis points
        curve_type: ConstantProduct, SingleSided or Concentrated
        reserve_a / reserve_b: actual reserves, if reported
        virtual_reserve_b / threshold: bonding-curve parameters (single-sided only)
        phase: bonding-curve or lifecycle phase as reported by the service
        tick_spacing: concentrated pools only
    """

    lp_identity_public_key: PubKey
    asset_a: AssetId
    asset_b: AssetId
    lp_fee_bps: int
    host_fee_bps: int
    curve_type: CurveType = CurveType.CONSTANT_PRODUCT
    integrator_fee_bps: int = 0
    reserve_a: Optional[Amount] = None
    reserve_b: Optional[Amount] = None
    virtual_reserve_b: Optional[Amount] = None
    threshold: Optional[Amount] = None
    phase: Optional[str] = None
    host_name: Optional[str] = None
    tick_spacing: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.lp_identity_public_key:
            raise ValueError("lp_identity_public_key must be non-empty")
        if self.curve_type is CurveType.CONCENTRATED:
            if self.tick_spacing is None or self.tick_spacing <= 0:
                raise ValueError("concentrated pools require a positive tick_spacing")
        elif self.tick_spacing is not None:
            raise ValueError("tick_spacing is only valid for concentrated pools")

    @property
    def pool_id(self) -> str:
        return self.lp_identity_public_key

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> "Pool":
        curve = normalize_curve_type(obj.get("curveType"))
        return cls(
            lp_identity_public_key=str(obj.get("lpPubkey") or obj.get("lpIdentityPublicKey") or ""),
            asset_a=str(obj.get("assetAAddress") or obj.get("assetATokenPublicKey") or obj.get("assetAPubkey") or ""),
            asset_b=str(obj.get("assetBAddress") or obj.get("assetBTokenPublicKey") or obj.get("assetBPubkey") or ""),
            lp_fee_bps=_bps(obj, "lpFeeBps"),
            host_fee_bps=_bps(obj, "hostFeeBps"),
            integrator_fee_bps=_bps(obj, "integratorFeeBps"),
            curve_type=curve,
            reserve_a=_opt_int(obj, "actualAssetAReserve") if "actualAssetAReserve" in obj else _opt_int(obj, "assetAReserve"),
            reserve_b=_opt_int(obj, "actualAssetBReserve") if "actualAssetBReserve" in obj else _opt_int(obj, "assetBReserve"),
            virtual_reserve_b=_opt_int(obj, "assetBVirtualReserve"),
            threshold=_opt_int(obj, "threshold"),
            phase=obj.get("phase") or obj.get("status"),
            host_name=obj.get("hostName"),
            tick_spacing=_opt_int(obj, "tickSpacing") if curve is CurveType.CONCENTRATED else None,
        )
