# [TESTER] v1

from __future__ import annotations

import pytest

from ammgate.state.nonces import NonceRegistry, NonceReuseError, generate_nonce


def test_generated_nonce_is_16_bytes_hex() -> None:
    n = generate_nonce()
    assert len(n) == 32
    assert bytes.fromhex(n)


def test_issue_never_repeats() -> None:
    reg = NonceRegistry()
    issued = {reg.issue() for _ in range(500)}
    assert len(issued) == 500


def test_consume_once() -> None:
    reg = NonceRegistry()
    n = reg.issue()
    assert not reg.is_consumed(n)
    reg.consume(n)
    assert reg.is_consumed(n)
    assert reg.consumed_count() == 1
    with pytest.raises(NonceReuseError):
        reg.consume(n)


def test_consume_normalizes_before_comparing() -> None:
    reg = NonceRegistry()
    n = reg.issue()
    reg.consume(n)
    with pytest.raises(NonceReuseError):
        reg.consume("0x" + n.upper())


def test_consume_rejects_malformed_nonce() -> None:
    with pytest.raises(ValueError):
        NonceRegistry().consume("not-hex")


def test_tracking_is_bounded_oldest_first() -> None:
    reg = NonceRegistry(max_tracked=3)
    nonces = [reg.issue() for _ in range(5)]
    assert reg.issued_count() == 3
    for n in nonces:
        reg.consume(n)
    assert reg.consumed_count() == 3
    assert reg.issued_count() == 0
    assert not reg.is_consumed(nonces[0])
    assert reg.is_consumed(nonces[-1])
    with pytest.raises(NonceReuseError):
        reg.consume(nonces[-1])


@pytest.mark.parametrize("limit", [0, -1, True])
def test_max_tracked_must_be_positive(limit: object) -> None:
    with pytest.raises(ValueError):
        NonceRegistry(max_tracked=limit)
