"""
Wallet balance snapshot as reported by the wallet collaborator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping


# Type aliases
PubKey = str  # 33-byte compressed secp256k1 public key as hex string
AssetId = str  # token identifier (hex public key or human-readable form)
Amount = int  # Non-negative integer (arbitrary precision)

# Native asset sentinel (BTC)
NATIVE_ASSET = "02" * 33
NATIVE_ASSET_DECIMALS = 8


def is_native_asset(asset: AssetId) -> bool:
    return isinstance(asset, str) and asset.lower() == NATIVE_ASSET


@dataclass(frozen=True)
class WalletBalance:
    """
    Point-in-time balances: native balance plus token balances keyed by
    token identifier.
    """

    native_balance: Amount = 0
    token_balances: Mapping[AssetId, Amount] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.native_balance, int) or isinstance(self.native_balance, bool) or self.native_balance < 0:
            raise ValueError(f"native_balance must be a non-negative int: {self.native_balance!r}")
        for token, amount in self.token_balances.items():
            if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
                raise ValueError(f"balance for {token!r} must be a non-negative int: {amount!r}")

    def get(self, asset: AssetId) -> Amount:
        """Balance for `asset`; 0 if not held."""
        if is_native_asset(asset):
            return self.native_balance
        return int(self.token_balances.get(asset, 0))

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> "WalletBalance":
        native = int(obj.get("nativeBalance", obj.get("native_balance", 0)))
        raw_tokens = obj.get("tokenBalances", obj.get("token_balances", {})) or {}
        tokens: Dict[AssetId, Amount] = {str(k): int(v) for k, v in dict(raw_tokens).items()}
        return cls(native_balance=native, token_balances=tokens)
