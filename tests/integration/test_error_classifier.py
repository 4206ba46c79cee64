# [TESTER] v1

from __future__ import annotations

import pytest

from ammgate.integration.errors import (
    ERROR_CODES,
    ErrorBody,
    ErrorCategory,
    GatewayError,
    RecoveryStrategy,
    classify,
)

_DIGIT_CATEGORY = {
    "1": ErrorCategory.VALIDATION,
    "2": ErrorCategory.SECURITY,
    "3": ErrorCategory.INFRASTRUCTURE,
    "4": ErrorCategory.BUSINESS,
    "5": ErrorCategory.SYSTEM,
}


def test_every_declared_code_maps_to_one_triple() -> None:
    assert len(ERROR_CODES) == 37
    for code, spec in ERROR_CODES.items():
        c = classify(code)
        assert c.known
        assert (c.category, c.recovery, c.retryable) == (spec.category, spec.recovery, spec.retryable)
        assert c.category is _DIGIT_CATEGORY[code[5]], code


def test_category_policy_holds_for_table() -> None:
    for code, spec in ERROR_CODES.items():
        if spec.category is ErrorCategory.INFRASTRUCTURE:
            assert spec.recovery is RecoveryStrategy.CLAWBACK_RECOMMENDED
            assert spec.retryable
        if spec.category is ErrorCategory.VALIDATION:
            assert spec.recovery is RecoveryStrategy.CLAWBACK_REQUIRED
            assert not spec.retryable


@pytest.mark.parametrize(
    "code,recovery,retryable",
    [
        ("FSAG-4202", RecoveryStrategy.AUTO_REFUND, True),
        ("FSAG-4001", RecoveryStrategy.AUTO_REFUND, False),
        ("FSAG-2001", RecoveryStrategy.CLAWBACK_REQUIRED, False),
        ("FSAG-3201T2", RecoveryStrategy.CLAWBACK_RECOMMENDED, True),
        ("FSAG-5100", RecoveryStrategy.CLAWBACK_REQUIRED, False),
        ("FSAG-2004", RecoveryStrategy.NONE, True),
    ],
)
def test_selected_codes(code: str, recovery: RecoveryStrategy, retryable: bool) -> None:
    c = classify(code)
    assert c.recovery is recovery
    assert c.retryable is retryable


def test_unknown_infrastructure_code_is_recommended_and_retryable() -> None:
    c = classify("FSAG-3999")
    assert not c.known
    assert c.category is ErrorCategory.INFRASTRUCTURE
    assert c.recovery is RecoveryStrategy.CLAWBACK_RECOMMENDED
    assert c.retryable


@pytest.mark.parametrize("code", ["FSAG-1999", "FSAG-4999", "FSAG-5999", "FSAG-2999", "garbage", "", None, "FSAG-9000"])
def test_other_unknown_codes_fall_back_to_required(code: object) -> None:
    c = classify(code)  # type: ignore[arg-type]
    assert not c.known
    assert c.recovery is RecoveryStrategy.CLAWBACK_REQUIRED
    assert not c.retryable
    assert c.funds_at_risk


def test_error_body_parses_flat_and_nested_shapes() -> None:
    flat = ErrorBody.from_dict(
        {"errorCode": "FSAG-4202", "errorCategory": "Business", "message": "slippage", "requestId": "r1"}
    )
    assert (flat.error_code, flat.message, flat.request_id) == ("FSAG-4202", "slippage", "r1")
    nested = ErrorBody.from_dict({"error": {"code": "FSAG-4001", "message": "nope", "requestId": "r2"}})
    assert (nested.error_code, nested.message, nested.request_id) == ("FSAG-4001", "nope", "r2")
    text = ErrorBody.from_dict("<html>bad gateway</html>", fallback_message="HTTP 502")
    assert text.error_code is None
    assert text.message == "HTTP 502"


def test_gateway_error_helpers() -> None:
    err = GatewayError(400, ErrorBody(error_code="FSAG-4202", message="slippage"))
    assert err.is_slippage_error()
    assert err.will_auto_refund()
    assert not err.should_clawback()
    assert "FSAG-4202" in str(err)

    assert GatewayError(401, ErrorBody(error_code=None, message="")).is_auth_expired()
    assert GatewayError(401, ErrorBody(error_code="FSAG-2004", message="")).is_auth_expired()
    assert not GatewayError(403, ErrorBody(error_code="FSAG-2001", message="")).is_auth_expired()

    unknown = GatewayError(500, ErrorBody(error_code=None, message="boom"))
    assert unknown.recovery is RecoveryStrategy.CLAWBACK_REQUIRED
    assert unknown.should_clawback()
    assert not unknown.is_retryable()


def test_gateway_error_code_predicates() -> None:
    def err(code: str) -> GatewayError:
        return GatewayError(400, ErrorBody(error_code=code, message=""))

    assert err("FSAG-4201").is_insufficient_liquidity()
    assert err("FSAG-4001").is_pool_not_found()
    assert err("FSAG-4401").is_transfer_already_used()
    assert err("FSAG-3001").is_retryable()
    assert not err("FSAG-4001").is_insufficient_liquidity()
