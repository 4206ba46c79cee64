"""
Intent data models and their signable field lists.

An intent is the set of operation parameters the settlement service
verifies before executing a state change. Each kind has a fixed, explicitly
declared field list; the order of that list is the order of the encoded
JSON object, and the service recomputes the same bytes to check the
signature.

Absent optional fields (missing or None) are omitted from the encoding.
Present-but-empty strings are encoded as "" and are therefore a different
intent.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from .canonical import canonical_amount, canonical_bps, canonical_decimal, normalize_hex, ordered_json_bytes, sha256_digest


NONCE_BYTES = 16


class IntentKind(Enum):
    """Intent type enumeration."""
    POOL_INIT_SINGLE_SIDED = "POOL_INIT_SINGLE_SIDED"
    POOL_INIT_CONSTANT_PRODUCT = "POOL_INIT_CONSTANT_PRODUCT"
    POOL_CONFIRM_INITIAL_DEPOSIT = "POOL_CONFIRM_INITIAL_DEPOSIT"
    SWAP = "SWAP"
    ROUTE_SWAP = "ROUTE_SWAP"
    ADD_LIQUIDITY = "ADD_LIQUIDITY"
    REMOVE_LIQUIDITY = "REMOVE_LIQUIDITY"
    REGISTER_HOST = "REGISTER_HOST"
    WITHDRAW_HOST_FEES = "WITHDRAW_HOST_FEES"
    WITHDRAW_INTEGRATOR_FEES = "WITHDRAW_INTEGRATOR_FEES"
    ESCROW_CREATE = "ESCROW_CREATE"
    ESCROW_FUND = "ESCROW_FUND"
    ESCROW_CLAIM = "ESCROW_CLAIM"
    CLAWBACK = "CLAWBACK"
    POOL_INIT_CONCENTRATED = "POOL_INIT_CONCENTRATED"
    INCREASE_LIQUIDITY = "INCREASE_LIQUIDITY"
    DECREASE_LIQUIDITY = "DECREASE_LIQUIDITY"
    COLLECT_FEES = "COLLECT_FEES"


# Field value kinds.
ID = "id"  # non-empty string (public keys, token ids, transfer ids)
TEXT = "text"  # any string, empty allowed
AMOUNT = "amount"  # non-negative integer, encoded as base-10 string
DECIMAL = "decimal"  # non-negative decimal, encoded as canonical string
BPS = "bps"  # basis points in [0, 10000], encoded as base-10 string
INT = "int"  # non-negative integer, encoded as JSON number
TICK = "tick"  # signed integer, encoded as JSON number
BOOL = "bool"
JSON = "json"  # opaque float-free JSON value, key order preserved
RECORDS = "records"  # list of objects with their own field list


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: str
    optional: bool = False
    default: Any = None
    items: Tuple["FieldSpec", ...] = ()


def _f(name: str, kind: str = ID, *, optional: bool = False, default: Any = None,
       items: Iterable[FieldSpec] = ()) -> FieldSpec:
    return FieldSpec(name=name, kind=kind, optional=optional, default=default, items=tuple(items))


NONCE = _f("nonce")

ROUTE_HOP_FIELDS: Tuple[FieldSpec, ...] = (
    _f("lpIdentityPublicKey"),
    _f("inputAssetAddress"),
    _f("outputAssetAddress"),
    _f("hopIntegratorFeeRateBps", BPS, optional=True),
)

ESCROW_RECIPIENT_FIELDS: Tuple[FieldSpec, ...] = (
    _f("recipientId"),
    _f("amount", AMOUNT),
    _f("hasClaimed", BOOL, default=False),
)

INTENT_FIELDS: Dict[IntentKind, Tuple[FieldSpec, ...]] = {
    IntentKind.POOL_INIT_SINGLE_SIDED: (
        _f("poolOwnerPublicKey"),
        _f("assetATokenPublicKey"),
        _f("assetBTokenPublicKey"),
        _f("assetAInitialReserve", AMOUNT),
        _f("virtualReserveA", AMOUNT),
        _f("virtualReserveB", AMOUNT),
        _f("threshold", AMOUNT),
        _f("totalHostFeeRateBps", BPS),
        _f("lpFeeRateBps", BPS),
        NONCE,
    ),
    IntentKind.POOL_INIT_CONSTANT_PRODUCT: (
        _f("poolOwnerPublicKey"),
        _f("assetATokenPublicKey"),
        _f("assetBTokenPublicKey"),
        _f("totalHostFeeRateBps", BPS),
        _f("lpFeeRateBps", BPS),
        NONCE,
    ),
    IntentKind.POOL_CONFIRM_INITIAL_DEPOSIT: (
        _f("poolOwnerPublicKey"),
        _f("lpIdentityPublicKey"),
        _f("assetASparkTransferId"),
        NONCE,
    ),
    IntentKind.SWAP: (
        _f("userPublicKey"),
        _f("lpIdentityPublicKey"),
        _f("assetInSparkTransferId"),
        _f("assetInTokenPublicKey"),
        _f("assetOutTokenPublicKey"),
        _f("amountIn", AMOUNT),
        _f("minAmountOut", AMOUNT),
        _f("maxSlippageBps", BPS),
        NONCE,
        _f("totalIntegratorFeeRateBps", BPS, default="0"),
    ),
    IntentKind.ROUTE_SWAP: (
        _f("userPublicKey"),
        _f("hops", RECORDS, items=ROUTE_HOP_FIELDS),
        _f("initialSparkTransferId"),
        _f("inputAmount", AMOUNT),
        _f("minFinalOutputAmount", AMOUNT),
        _f("maxRouteSlippageBps", BPS),
        NONCE,
        _f("defaultIntegratorFeeRateBps", BPS, default="0"),
    ),
    IntentKind.ADD_LIQUIDITY: (
        _f("userPublicKey"),
        _f("lpIdentityPublicKey"),
        _f("assetASparkTransferId"),
        _f("assetBSparkTransferId"),
        _f("assetAAmount", AMOUNT),
        _f("assetBAmount", AMOUNT),
        _f("assetAMinAmountIn", AMOUNT, default="0"),
        _f("assetBMinAmountIn", AMOUNT, default="0"),
        NONCE,
    ),
    IntentKind.REMOVE_LIQUIDITY: (
        _f("userPublicKey"),
        _f("lpIdentityPublicKey"),
        _f("lpTokensToRemove", DECIMAL),
        NONCE,
    ),
    IntentKind.REGISTER_HOST: (
        _f("namespace"),
        _f("minFeeBps", INT),
        _f("feeRecipientPublicKey"),
        NONCE,
        _f("signature", TEXT, default=""),
    ),
    IntentKind.WITHDRAW_HOST_FEES: (
        _f("hostPublicKey"),
        _f("lpIdentityPublicKey"),
        _f("assetBAmount", AMOUNT, optional=True),
        NONCE,
    ),
    IntentKind.WITHDRAW_INTEGRATOR_FEES: (
        _f("integratorPublicKey"),
        _f("lpIdentityPublicKey"),
        _f("assetBAmount", AMOUNT, optional=True),
        NONCE,
    ),
    IntentKind.ESCROW_CREATE: (
        _f("creatorPublicKey"),
        _f("assetId"),
        _f("assetAmount", AMOUNT),
        _f("recipients", RECORDS, items=ESCROW_RECIPIENT_FIELDS),
        _f("claimConditions", JSON),
        _f("abandonHost", TEXT, optional=True),
        _f("abandonConditions", JSON, optional=True),
        NONCE,
    ),
    IntentKind.ESCROW_FUND: (
        _f("escrowId"),
        _f("creatorPublicKey"),
        _f("sparkTransferId"),
        NONCE,
    ),
    IntentKind.ESCROW_CLAIM: (
        _f("escrowId"),
        _f("recipientPublicKey"),
        NONCE,
    ),
    IntentKind.CLAWBACK: (
        _f("senderPublicKey"),
        _f("sparkTransferId"),
        _f("lpIdentityPublicKey"),
        NONCE,
    ),
    IntentKind.POOL_INIT_CONCENTRATED: (
        _f("poolOwnerPublicKey"),
        _f("assetATokenPublicKey"),
        _f("assetBTokenPublicKey"),
        _f("tickSpacing", INT),
        _f("initialPrice", DECIMAL),
        _f("lpFeeRateBps", BPS),
        _f("totalHostFeeRateBps", BPS),
        NONCE,
    ),
    IntentKind.INCREASE_LIQUIDITY: (
        _f("userPublicKey"),
        _f("lpIdentityPublicKey"),
        _f("tickLower", TICK),
        _f("tickUpper", TICK),
        _f("assetASparkTransferId", TEXT, default=""),
        _f("assetBSparkTransferId", TEXT, default=""),
        _f("amountADesired", AMOUNT),
        _f("amountBDesired", AMOUNT),
        _f("amountAMin", AMOUNT, default="0"),
        _f("amountBMin", AMOUNT, default="0"),
        NONCE,
    ),
    IntentKind.DECREASE_LIQUIDITY: (
        _f("userPublicKey"),
        _f("lpIdentityPublicKey"),
        _f("tickLower", TICK),
        _f("tickUpper", TICK),
        _f("liquidityToRemove", AMOUNT),
        _f("amountAMin", AMOUNT, default="0"),
        _f("amountBMin", AMOUNT, default="0"),
        NONCE,
    ),
    IntentKind.COLLECT_FEES: (
        _f("userPublicKey"),
        _f("lpIdentityPublicKey"),
        _f("tickLower", TICK),
        _f("tickUpper", TICK),
        NONCE,
    ),
}


def _encode_value(spec: FieldSpec, value: Any, *, path: str) -> Any:
    if spec.kind == ID:
        if not isinstance(value, str) or not value:
            raise ValueError(f"{path} must be a non-empty string")
        return value
    if spec.kind == TEXT:
        if not isinstance(value, str):
            raise ValueError(f"{path} must be a string")
        return value
    if spec.kind == AMOUNT:
        return canonical_amount(value, name=path)
    if spec.kind == DECIMAL:
        return canonical_decimal(value, name=path)
    if spec.kind == BPS:
        return canonical_bps(value, name=path)
    if spec.kind == INT:
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ValueError(f"{path} must be a non-negative int")
        return int(value)
    if spec.kind == TICK:
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValueError(f"{path} must be an int")
        return int(value)
    if spec.kind == BOOL:
        if not isinstance(value, bool):
            raise ValueError(f"{path} must be a bool")
        return value
    if spec.kind == JSON:
        # Round-trip through the encoder to reject floats/surrogates early.
        ordered_json_bytes(value)
        return value
    if spec.kind == RECORDS:
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"{path} must be a list")
        return [
            _encode_fields(spec.items, item, path=f"{path}[{i}]")
            for i, item in enumerate(value)
        ]
    raise AssertionError(f"unknown field kind {spec.kind!r}")


def _encode_fields(specs: Tuple[FieldSpec, ...], values: Mapping[str, Any], *, path: str) -> Dict[str, Any]:
    if not isinstance(values, Mapping):
        raise ValueError(f"{path} must be a mapping")
    known = {s.name for s in specs}
    unknown = sorted(k for k in values.keys() if k not in known)
    if unknown:
        raise ValueError(f"{path}: unknown fields {unknown}")

    out: Dict[str, Any] = {}
    for spec in specs:
        value = values.get(spec.name)
        if value is None:
            if spec.default is not None:
                value = spec.default
            elif spec.optional:
                continue
            else:
                raise ValueError(f"{path}: missing required field {spec.name!r}")
        out[spec.name] = _encode_value(spec, value, path=f"{path}.{spec.name}")
    return out


def validate_nonce(nonce: str) -> str:
    return normalize_hex(nonce, name="nonce", nbytes=NONCE_BYTES)


@dataclass(frozen=True)
class Intent:
    """
    A fully-formed, canonical intent.

    `fields` holds the encoded (field, value) pairs in declared order,
    nonce included. Use `build_intent` rather than constructing directly.
    """

    kind: IntentKind
    fields: Tuple[Tuple[str, Any], ...]
    nonce: str

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.fields)

    def encode(self) -> bytes:
        return ordered_json_bytes(self.as_dict())

    def digest(self) -> bytes:
        return sha256_digest(self.encode())

    def get_field(self, key: str, default: Any = None) -> Any:
        """Get encoded field value."""
        return self.as_dict().get(key, default)


@dataclass(frozen=True)
class SignedIntent:
    intent: Intent
    signature: str  # lowercase hex, no prefix

    def request_fields(self) -> Dict[str, str]:
        return {"nonce": self.intent.nonce, "signature": self.signature}


def build_intent(kind: IntentKind, values: Mapping[str, Any], *, nonce: str) -> Intent:
    """
    Build a canonical intent of `kind` from caller values plus a nonce.

    Raises:
        ValueError: On unknown, missing or malformed fields
    """
    if not isinstance(kind, IntentKind):
        raise TypeError("kind must be an IntentKind")
    if "nonce" in values:
        raise ValueError("nonce is supplied separately, not in values")
    n = validate_nonce(nonce)
    merged = dict(values)
    merged["nonce"] = n
    encoded = _encode_fields(INTENT_FIELDS[kind], merged, path=kind.value)
    return Intent(kind=kind, fields=tuple(encoded.items()), nonce=n)


def field_names(kind: IntentKind) -> List[str]:
    return [s.name for s in INTENT_FIELDS[kind]]


def describe(intent: Intent) -> str:
    """Short, log-safe description (kind and nonce only)."""
    return f"{intent.kind.value}(nonce={intent.nonce})"
