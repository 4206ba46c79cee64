"""
Interfaces of the external collaborators the orchestrator consumes.

The custody wallet executes ledger transfers and owns the identity key; the
address codec converts raw identity keys to network-prefixed human-readable
addresses. Neither is implemented here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from ..state.balances import WalletBalance


@dataclass(frozen=True)
class WalletIdentity:
    public_key: str
    address: str
    network: Optional[str] = None


@dataclass(frozen=True)
class DecodedAddress:
    raw_id: str
    network: str


@runtime_checkable
class Wallet(Protocol):
    async def get_balance(self) -> WalletBalance:
        ...

    async def transfer(self, amount: int, recipient_address: str) -> str:
        """Send native asset; returns the transfer id."""
        ...

    async def transfer_token(self, token_id: str, amount: int, recipient_address: str) -> str:
        """
        Send a token; returns the transfer id.

        `token_id` is always the lower-case hex token identifier (no 0x
        prefix), the same value signed into intents, even when the caller
        named the asset by its human-readable address.
        """
        ...

    async def sign_raw_message(self, message: bytes) -> bytes:
        ...

    async def get_identity(self) -> WalletIdentity:
        ...


@runtime_checkable
class AddressCodec(Protocol):
    def encode(self, raw_id: str, network: str) -> str:
        ...

    def decode(self, human_readable_id: str, network: str) -> DecodedAddress:
        ...
