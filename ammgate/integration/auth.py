"""
Challenge/response authentication against the gateway.

    UNAUTHENTICATED --request_challenge--> CHALLENGE_ISSUED
    CHALLENGE_ISSUED --verify ok--> AUTHENTICATED
    CHALLENGE_ISSUED --verify rejected--> UNAUTHENTICATED
    AUTHENTICATED --auth-expired error--> UNAUTHENTICATED (one re-auth)

The challenge is hex (optionally 0x-prefixed). The signed message is the
SHA-256 of the challenge bytes; the signature is sent as lowercase hex.
The bearer token is owned by the session and replaced wholesale on every
re-authentication.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

from ..agents.signer import RawMessageSigner
from ..state.canonical import hex_to_bytes, sha256_digest
from .api_client import GatewayApiClient
from .errors import (
    CHALLENGE_EXPIRED_CODES,
    SIGNATURE_REJECTED_CODES,
    AuthenticationError,
    ChallengeExpired,
    GatewayError,
    SignatureRejected,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AuthState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    CHALLENGE_ISSUED = "challenge_issued"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class AuthToken:
    token: str
    issued_at: float

    def __repr__(self) -> str:
        return f"AuthToken(issued_at={self.issued_at})"


def challenge_digest(challenge: str) -> bytes:
    """SHA-256 of the raw challenge bytes."""
    return sha256_digest(hex_to_bytes(challenge, name="challenge"))


class AuthSession:
    """
    Holds the bearer token for one identity and keeps the API client's
    Authorization header in sync with it.

    Concurrent callers needing a token coalesce onto one authentication.
    """

    def __init__(
        self,
        api: GatewayApiClient,
        signer: RawMessageSigner,
        public_key: str,
        *,
        auto_authenticate: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not isinstance(public_key, str) or not public_key:
            raise ValueError("public_key must be a non-empty string")
        self._api = api
        self._signer = signer
        self._public_key = public_key
        self._auto = bool(auto_authenticate)
        self._clock = clock
        self._state = AuthState.UNAUTHENTICATED
        self._token: Optional[AuthToken] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def token(self) -> Optional[AuthToken]:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._state is AuthState.AUTHENTICATED and self._token is not None

    @property
    def public_key(self) -> str:
        return self._public_key

    async def request_challenge(self) -> str:
        resp = await self._api.auth_challenge(self._public_key)
        challenge = resp.get("challenge") if isinstance(resp, dict) else None
        if not isinstance(challenge, str) or not challenge:
            raise AuthenticationError("no challenge received from gateway")
        self._state = AuthState.CHALLENGE_ISSUED
        logger.debug("challenge issued for %s", self._public_key)
        return challenge

    async def sign_challenge(self, challenge: str) -> str:
        sig = await self._signer.sign_raw_message(challenge_digest(challenge))
        return bytes(sig).hex()

    async def verify(self, signature: str) -> AuthToken:
        """
        Exchange a signed challenge for a bearer token.

        Raises:
            SignatureRejected: Gateway refused the signature or key
            ChallengeExpired: Challenge unknown, expired or out of order
            AuthenticationError: Verify returned no token
        """
        if self._state is not AuthState.CHALLENGE_ISSUED:
            raise AuthenticationError(f"verify called in state {self._state.value}")
        try:
            resp = await self._api.auth_verify(self._public_key, signature)
        except GatewayError as exc:
            self._clear()
            if exc.error_code in SIGNATURE_REJECTED_CODES:
                raise SignatureRejected(str(exc)) from exc
            if exc.error_code in CHALLENGE_EXPIRED_CODES:
                raise ChallengeExpired(str(exc)) from exc
            raise
        except Exception:
            self._clear()
            raise
        token = resp.get("accessToken") if isinstance(resp, dict) else None
        if not isinstance(token, str) or not token:
            self._clear()
            raise AuthenticationError("no access token received from gateway")
        self._install(AuthToken(token=token, issued_at=float(self._clock())))
        return self._token

    async def authenticate(self) -> AuthToken:
        """Run the full challenge/sign/verify flow, replacing any current token."""
        async with self._lock:
            return await self._authenticate_locked()

    async def ensure_authenticated(self) -> AuthToken:
        tok = self._token
        if tok is not None:
            return tok
        return await self._refresh(stale=None)

    def invalidate(self) -> None:
        self._clear()

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run an authenticated gateway call.

        `operation` is a factory: on an auth-expired error the session
        re-authenticates once and calls the factory once more, so anything
        signed inside it is signed again with a fresh nonce. A second
        auth-expired error propagates.
        """
        if not self._auto:
            return await operation()
        token = await self.ensure_authenticated()
        try:
            return await operation()
        except GatewayError as exc:
            if not exc.is_auth_expired():
                raise
            logger.info("access token expired for %s; re-authenticating", self._public_key)
        await self._refresh(stale=token)
        return await operation()

    async def _refresh(self, *, stale: Optional[AuthToken]) -> AuthToken:
        async with self._lock:
            current = self._token
            # Another caller already replaced the stale token.
            if current is not None and current is not stale:
                return current
            self._clear()
            return await self._authenticate_locked()

    async def _authenticate_locked(self) -> AuthToken:
        challenge = await self.request_challenge()
        try:
            signature = await self.sign_challenge(challenge)
        except Exception:
            self._clear()
            raise
        return await self.verify(signature)

    def _install(self, token: AuthToken) -> None:
        self._token = token
        self._api.set_access_token(token.token)
        self._state = AuthState.AUTHENTICATED
        logger.info("authenticated %s", self._public_key)

    def _clear(self) -> None:
        self._token = None
        self._api.set_access_token(None)
        self._state = AuthState.UNAUTHENTICATED
