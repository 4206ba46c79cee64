# [TESTER] v1

from __future__ import annotations

import pytest

from ammgate.agents.intent_signer import IntentSigner, verify_intent_signature
from ammgate.agents.signer import LocalKeySigner
from ammgate.state.intents import IntentKind, SignedIntent
from ammgate.state.nonces import NonceReuseError

VALUES = {
    "senderPublicKey": "02" + "11" * 32,
    "sparkTransferId": "tx-1",
    "lpIdentityPublicKey": "03" + "22" * 32,
}


@pytest.mark.asyncio
async def test_signed_intent_verifies_against_signer_key() -> None:
    key = LocalKeySigner(7)
    signed = await IntentSigner(key).create_signed(IntentKind.CLAWBACK, VALUES)
    assert signed.signature == signed.signature.lower()
    assert len(signed.signature) == 128
    assert verify_intent_signature(signed, key.public_key_hex)
    assert signed.request_fields() == {"nonce": signed.intent.nonce, "signature": signed.signature}


@pytest.mark.asyncio
async def test_each_intent_gets_a_fresh_nonce() -> None:
    signer = IntentSigner(LocalKeySigner(7))
    a = await signer.create_signed(IntentKind.CLAWBACK, VALUES)
    b = await signer.create_signed(IntentKind.CLAWBACK, VALUES)
    assert a.intent.nonce != b.intent.nonce
    assert a.intent.encode() != b.intent.encode()
    assert signer.nonces.consumed_count() == 2


@pytest.mark.asyncio
async def test_signing_twice_with_one_nonce_fails() -> None:
    signer = IntentSigner(LocalKeySigner(7))
    intent = signer.new_intent(IntentKind.CLAWBACK, VALUES)
    await signer.sign(intent)
    with pytest.raises(NonceReuseError):
        await signer.sign(intent)


def test_tampered_or_malformed_signatures_fail_verification() -> None:
    key = LocalKeySigner(7)
    signer = IntentSigner(key)
    intent = signer.new_intent(IntentKind.CLAWBACK, VALUES)
    assert not verify_intent_signature(SignedIntent(intent=intent, signature="zz"), key.public_key_hex)
    assert not verify_intent_signature(SignedIntent(intent=intent, signature="00" * 64), key.public_key_hex)
    assert not verify_intent_signature(SignedIntent(intent=intent, signature="00" * 64), "not-hex")
