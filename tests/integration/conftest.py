# [TESTER] v1

from __future__ import annotations

import itertools
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from ammgate.agents.signer import LocalKeySigner
from ammgate.integration.collaborators import DecodedAddress, WalletIdentity
from ammgate.integration.config import (
    BUILTIN_ENVIRONMENTS,
    ClientOptions,
    LegacyClientConfig,
    Network,
)
from ammgate.integration.orchestrator import TransactionOrchestrator
from ammgate.integration.transport import TransportResponse
from ammgate.state.balances import WalletBalance

BASE_URL = "http://localhost:8090"

ASSET_A = "aa" * 32
ASSET_B = "bb" * 32
POOL_ID = "03" + "22" * 32

ALL_FEATURES = [
    {"feature_name": "master_kill_switch", "enabled": False},
    {"feature_name": "allow_swaps", "enabled": True},
    {"feature_name": "allow_route_swaps", "enabled": True},
    {"feature_name": "allow_add_liquidity", "enabled": True},
    {"feature_name": "allow_withdraw_liquidity", "enabled": True},
    {"feature_name": "allow_pool_creation", "enabled": True},
    {"feature_name": "allow_withdraw_fees", "enabled": True},
]


class FakeWallet:
    """In-memory wallet: records transfers and signs with a local key."""

    def __init__(self, *, native: int = 1_000_000, tokens: Optional[Dict[str, int]] = None) -> None:
        self.key = LocalKeySigner(0x1234)
        self.native = native
        self.tokens = dict(tokens if tokens is not None else {ASSET_A: 10**12, ASSET_B: 10**12})
        self.transfers: List[Tuple[str, int, str]] = []
        self.fail_transfer_numbers: set = set()
        self._ids = itertools.count(1)

    @property
    def public_key(self) -> str:
        return self.key.public_key_hex

    async def get_balance(self) -> WalletBalance:
        return WalletBalance(native_balance=self.native, token_balances=dict(self.tokens))

    async def _record(self, asset: str, amount: int, recipient: str) -> str:
        n = len(self.transfers) + 1
        if n in self.fail_transfer_numbers:
            self.fail_transfer_numbers.discard(n)
            raise RuntimeError(f"transfer {n} failed")
        self.transfers.append((asset, amount, recipient))
        return f"tx-{next(self._ids)}"

    async def transfer(self, amount: int, recipient_address: str) -> str:
        return await self._record("native", amount, recipient_address)

    async def transfer_token(self, token_id: str, amount: int, recipient_address: str) -> str:
        return await self._record(token_id, amount, recipient_address)

    async def sign_raw_message(self, message: bytes) -> bytes:
        return await self.key.sign_raw_message(message)

    async def get_identity(self) -> WalletIdentity:
        return WalletIdentity(public_key=self.public_key, address="sprt1wallet", network="REGTEST")


class FakeCodec:
    def encode(self, raw_id: str, network: str) -> str:
        return f"sp{network.lower()}1{raw_id}"

    def decode(self, human_readable_id: str, network: str) -> DecodedAddress:
        prefix = f"sp{network.lower()}1"
        if not human_readable_id.startswith(prefix):
            raise ValueError(f"not a {network} address: {human_readable_id}")
        return DecodedAddress(raw_id=human_readable_id[len(prefix):], network=network)


class FakeGateway:
    """
    HttpTransport stand-in with per-route scripted responses.

    A route holds a queue; each call pops the next entry until one is left,
    which then answers every further call. An entry is (status, body), a
    callable taking (json_body, params) and returning (status, body), or an
    exception instance to raise.
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str, Any, Any, Dict[str, str]]] = []
        self.routes: Dict[Tuple[str, str], List[Any]] = {}
        self._tokens = itertools.count(1)
        self.on("POST", "/v1/auth/challenge", (200, {"challenge": "ab" * 32}))
        self.on("POST", "/v1/auth/verify", lambda body, params: (200, {"accessToken": f"tok-{next(self._tokens)}"}))
        self.on("GET", "/v1/ping", (200, {"status": "ok"}))
        self.on("GET", "/v1/config/feature-status", (200, ALL_FEATURES))
        self.on("GET", "/v1/config/min-amounts", (200, []))
        self.on("GET", "/v1/config/allowed-assets", (200, []))

    def on(self, method: str, path: str, *responses: Any) -> None:
        self.routes[(method, path)] = list(responses)

    def requests(self, method: str, path: str) -> List[Tuple[Any, Dict[str, str]]]:
        return [(body, headers) for m, p, body, _params, headers in self.calls if m == method and p == path]

    def bodies(self, method: str, path: str) -> List[Any]:
        return [body for body, _ in self.requests(method, path)]

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> TransportResponse:
        assert url.startswith(BASE_URL), url
        path = url[len(BASE_URL):]
        self.calls.append((method, path, json_body, params, dict(headers or {})))
        queue = self.routes.get((method, path))
        if not queue:
            return TransportResponse(404, {"errorCode": "FSAG-4001", "message": f"no route {method} {path}"})
        entry = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(entry, BaseException):
            raise entry
        if callable(entry):
            entry = entry(json_body, params)
        status, body = entry
        return TransportResponse(status, body)


@pytest.fixture
def wallet() -> FakeWallet:
    return FakeWallet()


@pytest.fixture
def codec() -> FakeCodec:
    return FakeCodec()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def make_orchestrator(wallet: FakeWallet, codec: FakeCodec, gateway: FakeGateway, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("AMMGATE_GATEWAY_URL", raising=False)
    monkeypatch.delenv("AMMGATE_TIMEOUT_S", raising=False)
    monkeypatch.delenv("AMMGATE_AUTO_CLAWBACK", raising=False)

    async def _make(**options: Any) -> TransactionOrchestrator:
        config = LegacyClientConfig(network=Network.REGTEST, options=ClientOptions(**options))
        return await TransactionOrchestrator.create(
            wallet, codec, config, transport=gateway, environments=BUILTIN_ENVIRONMENTS
        )

    return _make
