# [TESTER] v1

from __future__ import annotations

import asyncio

import pytest

from ammgate.agents.signer import LocalKeySigner, verify_compact_signature
from ammgate.integration.api_client import GatewayApiClient
from ammgate.integration.auth import AuthSession, AuthState, AuthToken, challenge_digest
from ammgate.integration.errors import (
    AuthenticationError,
    ChallengeExpired,
    GatewayError,
    SignatureRejected,
)

BASE_URL = "http://localhost:8090"
EXPIRED = (401, {"errorCode": "FSAG-2004", "message": "token expired"})


def _session(gateway, *, auto: bool = True) -> tuple:
    key = LocalKeySigner(42)
    api = GatewayApiClient(BASE_URL, gateway)
    return AuthSession(api, key, key.public_key_hex, auto_authenticate=auto, clock=lambda: 1000.0), api, key


@pytest.mark.asyncio
async def test_authenticate_signs_sha256_of_challenge(gateway) -> None:
    session, api, key = _session(gateway)
    token = await session.authenticate()

    assert token.token == "tok-1"
    assert token.issued_at == 1000.0
    assert session.state is AuthState.AUTHENTICATED
    assert session.is_authenticated
    assert api.has_access_token

    (challenge_body,) = gateway.bodies("POST", "/v1/auth/challenge")
    assert challenge_body == {"publicKey": key.public_key_hex}
    (verify_body,) = gateway.bodies("POST", "/v1/auth/verify")
    sig = bytes.fromhex(verify_body["signature"])
    assert verify_body["signature"] == verify_body["signature"].lower()
    assert verify_compact_signature(challenge_digest("ab" * 32), sig, key.public_key)


def test_challenge_digest_accepts_prefixed_hex() -> None:
    assert challenge_digest("0xABCD") == challenge_digest("abcd")
    with pytest.raises(ValueError):
        challenge_digest("xyz")


def test_token_repr_hides_secret() -> None:
    assert "secret" not in repr(AuthToken(token="secret", issued_at=1.0))


@pytest.mark.asyncio
async def test_run_reauthenticates_exactly_once(gateway) -> None:
    gateway.on("GET", "/v1/pools", EXPIRED, (200, {"pools": []}))
    session, api, _ = _session(gateway)
    calls = []

    async def op():
        calls.append(1)
        return await api.list_pools()

    assert await session.run(op) == {"pools": []}
    assert len(calls) == 2
    assert len(gateway.bodies("POST", "/v1/auth/verify")) == 2
    headers = [h for _, h in gateway.requests("GET", "/v1/pools")]
    assert [h["Authorization"] for h in headers] == ["Bearer tok-1", "Bearer tok-2"]


@pytest.mark.asyncio
async def test_second_expiry_propagates(gateway) -> None:
    gateway.on("GET", "/v1/pools", EXPIRED)
    session, api, _ = _session(gateway)
    with pytest.raises(GatewayError) as ei:
        await session.run(api.list_pools)
    assert ei.value.is_auth_expired()
    assert len(gateway.bodies("POST", "/v1/auth/verify")) == 2
    assert len(gateway.requests("GET", "/v1/pools")) == 2


@pytest.mark.asyncio
async def test_non_auth_errors_are_not_retried(gateway) -> None:
    gateway.on("GET", "/v1/pools", (503, {"errorCode": "FSAG-3001", "message": "down"}))
    session, api, _ = _session(gateway)
    with pytest.raises(GatewayError):
        await session.run(api.list_pools)
    assert len(gateway.requests("GET", "/v1/pools")) == 1
    assert len(gateway.bodies("POST", "/v1/auth/verify")) == 1


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_authentication(gateway) -> None:
    session, _, _ = _session(gateway)
    tokens = await asyncio.gather(*(session.ensure_authenticated() for _ in range(8)))
    assert {t.token for t in tokens} == {"tok-1"}
    assert len(gateway.bodies("POST", "/v1/auth/challenge")) == 1


@pytest.mark.asyncio
async def test_rejected_signature_returns_to_unauthenticated(gateway) -> None:
    gateway.on("POST", "/v1/auth/verify", (403, {"errorCode": "FSAG-2001", "message": "bad signature"}))
    session, api, _ = _session(gateway)
    with pytest.raises(SignatureRejected):
        await session.authenticate()
    assert session.state is AuthState.UNAUTHENTICATED
    assert not api.has_access_token


@pytest.mark.asyncio
async def test_expired_challenge(gateway) -> None:
    gateway.on("POST", "/v1/auth/verify", (404, {"errorCode": "FSAG-4101", "message": "no session"}))
    session, _, _ = _session(gateway)
    with pytest.raises(ChallengeExpired):
        await session.authenticate()
    assert session.token is None


@pytest.mark.asyncio
async def test_missing_token_or_challenge(gateway) -> None:
    gateway.on("POST", "/v1/auth/verify", (200, {"ok": True}))
    session, _, _ = _session(gateway)
    with pytest.raises(AuthenticationError):
        await session.authenticate()

    gateway.on("POST", "/v1/auth/challenge", (200, {}))
    with pytest.raises(AuthenticationError):
        await session.authenticate()


@pytest.mark.asyncio
async def test_verify_requires_issued_challenge(gateway) -> None:
    session, _, _ = _session(gateway)
    with pytest.raises(AuthenticationError):
        await session.verify("00" * 64)


@pytest.mark.asyncio
async def test_invalidate_clears_header(gateway) -> None:
    session, api, _ = _session(gateway)
    await session.authenticate()
    session.invalidate()
    assert session.state is AuthState.UNAUTHENTICATED
    assert not api.has_access_token


@pytest.mark.asyncio
async def test_manual_mode_never_authenticates(gateway) -> None:
    gateway.on("GET", "/v1/pools", EXPIRED)
    session, api, _ = _session(gateway, auto=False)
    with pytest.raises(GatewayError):
        await session.run(api.list_pools)
    assert gateway.bodies("POST", "/v1/auth/challenge") == []
