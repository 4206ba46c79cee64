"""
Client-side state: balances, pool snapshots, canonical intents and nonces.
"""

from .balances import NATIVE_ASSET, WalletBalance, is_native_asset
from .intents import INTENT_FIELDS, Intent, IntentKind, SignedIntent, build_intent
from .nonces import NonceRegistry, NonceReuseError, generate_nonce
from .pools import CurveType, Pool, normalize_curve_type

__all__ = [
    "NATIVE_ASSET",
    "WalletBalance",
    "is_native_asset",
    "INTENT_FIELDS",
    "Intent",
    "IntentKind",
    "SignedIntent",
    "build_intent",
    "NonceRegistry",
    "NonceReuseError",
    "generate_nonce",
    "CurveType",
    "Pool",
    "normalize_curve_type",
]
