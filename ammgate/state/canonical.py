"""
Deterministic canonical encoding primitives.

Intent payloads are hashed and signed on the client and independently
re-hashed by the settlement service, so every helper here must produce the
same bytes for the same logical input on every platform.
"""

from __future__ import annotations

import hashlib
import json
import re
from decimal import Decimal
from typing import Any, Optional


_HEX_CHARS_RE = re.compile(r"^[0-9a-fA-F]*$")
_DIGITS_RE = re.compile(r"^[0-9]+$")
_DECIMAL_RE = re.compile(r"^[0-9]+(\.[0-9]+)?$")

MAX_BPS = 10_000


def _reject_surrogates(s: str) -> None:
    # Surrogate code points are not valid Unicode scalar values and lead to
    # implementation-defined behavior across JSON encoders/UTF-8 encoders.
    for ch in s:
        o = ord(ch)
        if 0xD800 <= o <= 0xDFFF:
            raise TypeError("surrogate code points are not allowed in canonical encoding")


def _reject_floats(value: Any) -> None:
    if isinstance(value, float):
        raise TypeError("floats are not allowed in canonical encoding")
    if isinstance(value, str):
        _reject_surrogates(value)
    if isinstance(value, dict):
        for k in value.keys():
            if not isinstance(k, str):
                raise TypeError("dict keys must be str for canonical encoding")
        for k, v in value.items():
            _reject_surrogates(k)
            _reject_floats(v)
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            _reject_floats(item)
        return


def ordered_json_bytes(value: Any) -> bytes:
    """
    Canonical JSON encoding for hashing/signing, in declared key order.

    Rules:
    - UTF-8, non-ASCII emitted verbatim
    - keys in insertion order (callers build dicts from fixed field lists)
    - separators=(',', ':') (no whitespace)
    - allow_nan=False
    - floats rejected (to avoid representation ambiguity)
    """
    _reject_floats(value)
    text = json.dumps(
        value,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    return text.encode("utf-8")


def sha256_digest(data: bytes) -> bytes:
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError("data must be bytes")
    return hashlib.sha256(bytes(data)).digest()


def sha256_hex(data: bytes) -> str:
    return sha256_digest(data).hex()


def canonical_amount(value: Any, *, name: str) -> str:
    """
    Canonicalize a non-negative integer amount to its base-10 string.

    Accepts ints and digit-only strings. Leading zeros are normalized away;
    signs, whitespace, exponents and fractions are rejected.
    """
    if isinstance(value, bool):
        raise TypeError(f"{name} must be an int or digit string, got bool")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"{name} must be non-negative: {value}")
        return str(int(value))
    if isinstance(value, str):
        if not _DIGITS_RE.fullmatch(value):
            raise ValueError(f"{name} must be a base-10 digit string: {value!r}")
        return str(int(value, 10))
    raise TypeError(f"{name} must be an int or digit string, got {type(value).__name__}")


def canonical_bps(value: Any, *, name: str) -> str:
    s = canonical_amount(value, name=name)
    if int(s) > MAX_BPS:
        raise ValueError(f"{name} must be in [0, {MAX_BPS}]: {s}")
    return s


def normalize_hex(hex_str: str, *, name: str, nbytes: Optional[int] = None) -> str:
    """
    Canonicalize a hex string (lowercase, no 0x prefix).

    Accepts either 0x-prefixed or raw hex input. When `nbytes` is given the
    decoded length must match exactly.
    """
    if not isinstance(hex_str, str):
        raise TypeError(f"{name} must be a str")
    s = hex_str.strip()
    if s.lower().startswith("0x"):
        s = s[2:]
    if len(s) % 2 != 0 or not _HEX_CHARS_RE.fullmatch(s):
        raise ValueError(f"{name} must be valid hex")
    if nbytes is not None:
        if not isinstance(nbytes, int) or isinstance(nbytes, bool) or nbytes <= 0:
            raise ValueError("nbytes must be a positive int")
        if len(s) != 2 * nbytes:
            raise ValueError(f"{name} must be {nbytes} bytes (hex length {2 * nbytes})")
    return s.lower()


def hex_to_bytes(hex_str: str, *, name: str, nbytes: Optional[int] = None) -> bytes:
    return bytes.fromhex(normalize_hex(hex_str, name=name, nbytes=nbytes))


def canonical_decimal(value: Any, *, name: str) -> str:
    """
    Canonicalize a non-negative decimal quantity (e.g. LP token balances).

    Accepts ints, finite Decimals and plain "123" / "123.45" strings. The
    result has no leading integer zeros, no trailing fraction zeros and no
    bare decimal point, so "0010.500" becomes "10.5" and "2.0" becomes "2".
    Floats, exponents and signs are rejected.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"{name} must be an int, Decimal or decimal string, got {type(value).__name__}")
    if isinstance(value, int):
        return canonical_amount(value, name=name)
    if isinstance(value, Decimal):
        if not value.is_finite() or value < 0:
            raise ValueError(f"{name} must be a finite non-negative decimal: {value}")
        text = format(value, "f")
    elif isinstance(value, str):
        text = value
    else:
        raise TypeError(f"{name} must be an int, Decimal or decimal string, got {type(value).__name__}")
    if not _DECIMAL_RE.fullmatch(text):
        raise ValueError(f"{name} must be a plain decimal string: {value!r}")
    whole, _, frac = text.partition(".")
    whole = str(int(whole, 10))
    frac = frac.rstrip("0")
    return f"{whole}.{frac}" if frac else whole
