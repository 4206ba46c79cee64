"""
Raw-message signers.

Everything that needs a signature (intents, auth challenges) goes through
one narrow interface, `RawMessageSigner.sign_raw_message`. Two providers
implement it:

- `WalletSigner` delegates to the custody wallet's identity-key signing.
- `LocalKeySigner` holds a secp256k1 identity key in-process (py_ecc) and
  produces compact 64-byte r||s signatures with low-s normalization.

The provider is chosen explicitly by whoever builds the client; nothing
inspects objects at runtime to guess which one it has.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Protocol, Tuple, runtime_checkable

from py_ecc.secp256k1.secp256k1 import N as _SECP256K1_N
from py_ecc.secp256k1.secp256k1 import ecdsa_raw_recover, ecdsa_raw_sign, privtopub

from ..state.canonical import hex_to_bytes

if TYPE_CHECKING:
    from ..integration.collaborators import Wallet


DIGEST_BYTES = 32
COMPACT_SIGNATURE_BYTES = 64


class SignerError(RuntimeError):
    pass


@runtime_checkable
class RawMessageSigner(Protocol):
    """Signs a 32-byte message digest with the identity key."""

    async def sign_raw_message(self, message: bytes) -> bytes:
        ...


class WalletSigner:
    """Adapter: signing is delegated to the wallet collaborator."""

    def __init__(self, wallet: "Wallet") -> None:
        self._wallet = wallet

    async def sign_raw_message(self, message: bytes) -> bytes:
        sig = await self._wallet.sign_raw_message(bytes(message))
        if not isinstance(sig, (bytes, bytearray)) or not sig:
            raise SignerError("wallet returned an empty or non-bytes signature")
        return bytes(sig)


def _parse_privkey_int(privkey: int) -> int:
    sk = int(privkey)
    if sk <= 0:
        raise ValueError("privkey must be positive")
    if sk >= _SECP256K1_N:
        raise ValueError("privkey out of range (must be < secp256k1 curve order)")
    return sk


def _parse_privkey_to_bytes(privkey: str | int | bytes | bytearray) -> bytes:
    if isinstance(privkey, bool):
        raise TypeError("privkey must be str|int|bytes")
    if isinstance(privkey, int):
        sk = _parse_privkey_int(privkey)
    elif isinstance(privkey, (bytes, bytearray)):
        raw = bytes(privkey)
        if len(raw) != 32:
            raise ValueError("privkey bytes must be length 32")
        sk = _parse_privkey_int(int.from_bytes(raw, byteorder="big", signed=False))
    elif isinstance(privkey, str):
        s = privkey.strip()
        if not s:
            raise ValueError("privkey must be non-empty")
        if not re.fullmatch(r"(0x)?[0-9a-fA-F]{64}", s):
            raise ValueError("privkey must be 32-byte hex (0x... or 64 hex chars)")
        sk = _parse_privkey_int(int.from_bytes(hex_to_bytes(s, name="privkey", nbytes=32), "big"))
    else:
        raise TypeError("privkey must be str|int|bytes")
    return sk.to_bytes(32, byteorder="big")


def compress_public_key(point: Tuple[int, int]) -> bytes:
    x, y = point
    prefix = b"\x03" if y & 1 else b"\x02"
    return prefix + int(x).to_bytes(32, byteorder="big")


class LocalKeySigner:
    """
    In-process secp256k1 identity key.

    `sign_raw_message` expects the 32-byte digest the caller wants signed
    (intent digest, challenge digest) and returns r||s.
    """

    def __init__(self, privkey: str | int | bytes | bytearray) -> None:
        self._sk = _parse_privkey_to_bytes(privkey)
        self._pub = compress_public_key(privtopub(self._sk))

    @property
    def public_key(self) -> bytes:
        return self._pub

    @property
    def public_key_hex(self) -> str:
        return self._pub.hex()

    async def sign_raw_message(self, message: bytes) -> bytes:
        return sign_digest(bytes(message), self._sk)

    def __repr__(self) -> str:
        return f"LocalKeySigner(public_key={self.public_key_hex})"


def sign_digest(digest: bytes, secret_key: bytes) -> bytes:
    if len(digest) != DIGEST_BYTES:
        raise ValueError(f"digest must be {DIGEST_BYTES} bytes, got {len(digest)}")
    _v, r, s = ecdsa_raw_sign(digest, secret_key)
    if s > _SECP256K1_N // 2:
        s = _SECP256K1_N - s
    return int(r).to_bytes(32, "big") + int(s).to_bytes(32, "big")


def verify_compact_signature(digest: bytes, signature: bytes, public_key: bytes) -> bool:
    """
    Check a compact r||s signature by public-key recovery.

    Both recovery ids are tried since compact signatures do not carry one.
    """
    if len(digest) != DIGEST_BYTES or len(signature) != COMPACT_SIGNATURE_BYTES:
        return False
    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:], "big")
    if not (0 < r < _SECP256K1_N and 0 < s < _SECP256K1_N):
        return False
    for v in (27, 28):
        try:
            point = ecdsa_raw_recover(digest, (v, r, s))
        except (ValueError, ZeroDivisionError):
            continue
        if point and compress_public_key(point) == bytes(public_key):
            return True
    return False
