# [TESTER] v1

from __future__ import annotations

import pytest

from ammgate.state.balances import NATIVE_ASSET, WalletBalance, is_native_asset
from ammgate.state.pools import CurveType, Pool, normalize_curve_type


def test_pool_from_gateway_payload() -> None:
    pool = Pool.from_dict(
        {
            "lpPubkey": "03" + "ab" * 32,
            "assetAAddress": "aa" * 32,
            "assetBAddress": NATIVE_ASSET,
            "lpFeeBps": 30,
            "hostFeeBps": "10",
            "curveType": "single-sided",
            "assetAReserve": "1000",
            "assetBReserve": 5,
            "threshold": "800",
            "status": "BONDING",
        }
    )
    assert pool.pool_id == "03" + "ab" * 32
    assert pool.asset_b == NATIVE_ASSET
    assert pool.curve_type is CurveType.SINGLE_SIDED
    assert (pool.reserve_a, pool.reserve_b, pool.threshold) == (1000, 5, 800)
    assert pool.host_fee_bps == 10
    assert pool.phase == "BONDING"


def test_pool_accepts_legacy_asset_keys() -> None:
    pool = Pool.from_dict({"lpIdentityPublicKey": "p", "assetATokenPublicKey": "a", "assetBPubkey": "b"})
    assert (pool.asset_a, pool.asset_b) == ("a", "b")
    assert pool.curve_type is CurveType.CONSTANT_PRODUCT


def test_pool_rejects_missing_id_and_bad_fees() -> None:
    with pytest.raises(ValueError):
        Pool.from_dict({"assetAAddress": "a", "assetBAddress": "b"})
    with pytest.raises(ValueError):
        Pool.from_dict({"lpPubkey": "p", "lpFeeBps": 10_001})


def test_concentrated_pool_requires_tick_spacing() -> None:
    with pytest.raises(ValueError):
        Pool.from_dict({"lpPubkey": "p", "curveType": "V3_CONCENTRATED"})
    pool = Pool.from_dict({"lpPubkey": "p", "curveType": "V3_CONCENTRATED", "tickSpacing": 60})
    assert pool.tick_spacing == 60


@pytest.mark.parametrize("tag,expected", [("cpmm", CurveType.CONSTANT_PRODUCT), ("Single Sided", CurveType.SINGLE_SIDED), (None, CurveType.CONSTANT_PRODUCT)])
def test_curve_type_aliases(tag: object, expected: CurveType) -> None:
    assert normalize_curve_type(tag) is expected


def test_unknown_curve_type_rejected() -> None:
    with pytest.raises(ValueError):
        normalize_curve_type("stableswap")


def test_wallet_balance_native_sentinel() -> None:
    bal = WalletBalance.from_dict({"nativeBalance": "50", "tokenBalances": {"aa": 7}})
    assert bal.get(NATIVE_ASSET) == 50
    assert bal.get(NATIVE_ASSET.upper()) == 50
    assert bal.get("aa") == 7
    assert bal.get("bb") == 0
    assert is_native_asset("02" * 33)
    assert not is_native_asset("03" * 33)


def test_wallet_balance_rejects_negative_amounts() -> None:
    with pytest.raises(ValueError):
        WalletBalance(native_balance=-1)
    with pytest.raises(ValueError):
        WalletBalance(token_balances={"aa": -5})
