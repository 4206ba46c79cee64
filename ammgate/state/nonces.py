"""
Single-use nonces for intent replay protection.

Nonces are 16 random bytes, hex encoded. The registry remembers the most
recent `max_tracked` nonces this process has issued or signed with, so that
no two signed intents in that window share one, including retries after a
rejection. Older entries are forgotten oldest-first; with 128-bit random
nonces a collision outside the window is negligible.
"""

from __future__ import annotations

import secrets
import threading
from collections import OrderedDict
from dataclasses import dataclass, field

from .intents import NONCE_BYTES, validate_nonce

DEFAULT_MAX_TRACKED = 100_000


class NonceReuseError(ValueError):
    pass


def generate_nonce() -> str:
    return secrets.token_hex(NONCE_BYTES)


def _remember(table: "OrderedDict[str, None]", key: str, limit: int) -> None:
    table[key] = None
    table.move_to_end(key)
    while len(table) > limit:
        table.popitem(last=False)


@dataclass
class NonceRegistry:
    """
    Bounded record of nonces: issued (handed out) and consumed (signed).

    A nonce can be consumed at most once while it is tracked. Issued but
    unconsumed nonces are only remembered so that `issue()` never hands the
    same value out twice.
    """

    max_tracked: int = DEFAULT_MAX_TRACKED
    _issued: "OrderedDict[str, None]" = field(default_factory=OrderedDict, repr=False)
    _consumed: "OrderedDict[str, None]" = field(default_factory=OrderedDict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.max_tracked, int) or isinstance(self.max_tracked, bool) or self.max_tracked <= 0:
            raise ValueError(f"max_tracked must be a positive int: {self.max_tracked!r}")

    def issue(self) -> str:
        with self._lock:
            while True:
                n = generate_nonce()
                if n not in self._issued and n not in self._consumed:
                    _remember(self._issued, n, self.max_tracked)
                    return n

    def consume(self, nonce: str) -> str:
        n = validate_nonce(nonce)
        with self._lock:
            if n in self._consumed:
                raise NonceReuseError(f"nonce already used: {n}")
            self._issued.pop(n, None)
            _remember(self._consumed, n, self.max_tracked)
        return n

    def is_consumed(self, nonce: str) -> bool:
        n = validate_nonce(nonce)
        with self._lock:
            return n in self._consumed

    def consumed_count(self) -> int:
        with self._lock:
            return len(self._consumed)

    def issued_count(self) -> int:
        with self._lock:
            return len(self._issued)
