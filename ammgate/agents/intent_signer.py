"""
Intent creation and signing.

Signing scheme: sign SHA256(ordered_json_bytes(intent fields)), where the
field order is the declared order for the intent kind. Signatures are sent
as lowercase hex without a prefix.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ..state.intents import Intent, IntentKind, SignedIntent, build_intent, describe
from ..state.nonces import NonceRegistry
from .signer import RawMessageSigner, verify_compact_signature

logger = logging.getLogger(__name__)


def create_intent(kind: IntentKind, values: Mapping[str, Any], *, nonce: str) -> Intent:
    """
    Create a canonical intent.

    Args:
        kind: Intent kind
        values: Field values (without nonce)
        nonce: Single-use nonce (32 hex chars)

    Returns:
        Intent object
    """
    return build_intent(kind, values, nonce=nonce)


async def sign_intent(intent: Intent, signer: RawMessageSigner) -> SignedIntent:
    """
    Sign an intent's digest with the given signer.

    Args:
        intent: Intent to sign
        signer: Raw-message signer holding the identity key

    Returns:
        SignedIntent object
    """
    sig_bytes = await signer.sign_raw_message(intent.digest())
    return SignedIntent(intent=intent, signature=bytes(sig_bytes).hex())


def verify_intent_signature(signed_intent: SignedIntent, public_key_hex: str) -> bool:
    """
    Verify a compact secp256k1 intent signature against a public key.

    Returns False on malformed input rather than raising.
    """
    try:
        sig = bytes.fromhex(signed_intent.signature)
        pub = bytes.fromhex(public_key_hex)
    except ValueError:
        return False
    return verify_compact_signature(signed_intent.intent.digest(), sig, pub)


class IntentSigner:
    """
    Builds and signs intents, one fresh nonce per intent.

    Each nonce is consumed at signing time; signing a second intent with an
    already-consumed nonce raises `NonceReuseError`.
    """

    def __init__(self, signer: RawMessageSigner, *, nonces: Optional[NonceRegistry] = None) -> None:
        self._signer = signer
        self._nonces = nonces if nonces is not None else NonceRegistry()

    @property
    def nonces(self) -> NonceRegistry:
        return self._nonces

    def new_intent(self, kind: IntentKind, values: Mapping[str, Any]) -> Intent:
        return create_intent(kind, values, nonce=self._nonces.issue())

    async def sign(self, intent: Intent) -> SignedIntent:
        self._nonces.consume(intent.nonce)
        signed = await sign_intent(intent, self._signer)
        logger.debug("signed %s", describe(intent))
        return signed

    async def create_signed(self, kind: IntentKind, values: Mapping[str, Any]) -> SignedIntent:
        return await self.sign(self.new_intent(kind, values))
