# [TESTER] v1

from __future__ import annotations

import hashlib

import pytest

from ammgate.agents.signer import (
    LocalKeySigner,
    SignerError,
    WalletSigner,
    sign_digest,
    verify_compact_signature,
)

SK_HEX = "0x" + "01" * 32


@pytest.mark.asyncio
async def test_local_signer_produces_verifiable_low_s_signature() -> None:
    signer = LocalKeySigner(SK_HEX)
    digest = hashlib.sha256(b"hello").digest()
    sig = await signer.sign_raw_message(digest)
    assert len(sig) == 64
    s = int.from_bytes(sig[32:], "big")
    from py_ecc.secp256k1.secp256k1 import N

    assert s <= N // 2
    assert verify_compact_signature(digest, sig, signer.public_key)


@pytest.mark.asyncio
async def test_signature_does_not_verify_for_other_digest_or_key() -> None:
    signer = LocalKeySigner(SK_HEX)
    other = LocalKeySigner(2)
    digest = hashlib.sha256(b"a").digest()
    sig = await signer.sign_raw_message(digest)
    assert not verify_compact_signature(hashlib.sha256(b"b").digest(), sig, signer.public_key)
    assert not verify_compact_signature(digest, sig, other.public_key)
    assert not verify_compact_signature(digest, sig[:63], signer.public_key)


def test_public_key_is_compressed() -> None:
    signer = LocalKeySigner(bytes([1]) * 32)
    assert len(signer.public_key) == 33
    assert signer.public_key_hex[:2] in ("02", "03")
    assert signer.public_key_hex == LocalKeySigner(SK_HEX).public_key_hex
    assert "01" * 32 not in repr(signer)


@pytest.mark.parametrize("bad", [0, -1, "", "0x1234", b"\x01" * 31, True, 1.5])
def test_invalid_private_keys_rejected(bad: object) -> None:
    with pytest.raises((ValueError, TypeError)):
        LocalKeySigner(bad)  # type: ignore[arg-type]


def test_sign_digest_requires_32_bytes() -> None:
    with pytest.raises(ValueError):
        sign_digest(b"short", b"\x01" * 32)


class _Wallet:
    def __init__(self, sig: object) -> None:
        self.sig = sig
        self.messages: list = []

    async def sign_raw_message(self, message: bytes) -> object:
        self.messages.append(message)
        return self.sig


@pytest.mark.asyncio
async def test_wallet_signer_delegates() -> None:
    wallet = _Wallet(b"\xaa" * 64)
    sig = await WalletSigner(wallet).sign_raw_message(b"\x00" * 32)  # type: ignore[arg-type]
    assert sig == b"\xaa" * 64
    assert wallet.messages == [b"\x00" * 32]


@pytest.mark.asyncio
async def test_wallet_signer_rejects_empty_signature() -> None:
    with pytest.raises(SignerError):
        await WalletSigner(_Wallet(b"")).sign_raw_message(b"\x00" * 32)  # type: ignore[arg-type]
    with pytest.raises(SignerError):
        await WalletSigner(_Wallet("aa")).sign_raw_message(b"\x00" * 32)  # type: ignore[arg-type]
