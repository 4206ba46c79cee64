"""
Signing agents: raw-message signers and the intent signer built on them.
"""

from .intent_signer import IntentSigner, create_intent, sign_intent, verify_intent_signature
from .signer import LocalKeySigner, RawMessageSigner, SignerError, WalletSigner

__all__ = [
    "IntentSigner",
    "create_intent",
    "sign_intent",
    "verify_intent_signature",
    "LocalKeySigner",
    "RawMessageSigner",
    "SignerError",
    "WalletSigner",
]
