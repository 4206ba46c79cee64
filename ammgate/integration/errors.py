"""
Gateway error taxonomy and classification.

Error codes have the form `FSAG-XXXX`; the first digit names the category:

    1xxx Validation      clawback required, not retryable as-is
    2xxx Security        clawback required, not retryable (auth tokens excepted)
    3xxx Infrastructure  clawback recommended, retryable with backoff
    4xxx Business        mostly auto-refunded by the service
    5xxx System          clawback required, generally not retryable

`ERROR_CODES` lists every code the service emits. Codes missing from the
table are classified by their first digit; anything that cannot be parsed
is treated as a System error. The fallback is the fund-safe choice: only
Infrastructure codes fall back to `clawback_recommended`, everything else
to `clawback_required`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Sequence, Tuple, Union

if TYPE_CHECKING:
    from .clawback import ClawbackCandidate
    from .orchestrator import OperationOutcome


class ErrorCategory(Enum):
    VALIDATION = "Validation"
    SECURITY = "Security"
    INFRASTRUCTURE = "Infrastructure"
    BUSINESS = "Business"
    SYSTEM = "System"


class RecoveryStrategy(Enum):
    CLAWBACK_REQUIRED = "clawback_required"
    CLAWBACK_RECOMMENDED = "clawback_recommended"
    AUTO_REFUND = "auto_refund"
    NONE = "none"


@dataclass(frozen=True)
class ErrorSpec:
    http_status: int
    category: ErrorCategory
    recovery: RecoveryStrategy
    retryable: bool
    summary: str


_V = ErrorCategory.VALIDATION
_S = ErrorCategory.SECURITY
_I = ErrorCategory.INFRASTRUCTURE
_B = ErrorCategory.BUSINESS
_Y = ErrorCategory.SYSTEM

_REQ = RecoveryStrategy.CLAWBACK_REQUIRED
_REC = RecoveryStrategy.CLAWBACK_RECOMMENDED
_REF = RecoveryStrategy.AUTO_REFUND
_NONE = RecoveryStrategy.NONE

ERROR_CODES: Dict[str, ErrorSpec] = {
    # Validation
    "FSAG-1000": ErrorSpec(400, _V, _REQ, False, "Validation failed"),
    "FSAG-1001": ErrorSpec(400, _V, _REQ, False, "Required field missing"),
    "FSAG-1002": ErrorSpec(400, _V, _REQ, False, "Invalid field format"),
    "FSAG-1003": ErrorSpec(400, _V, _REQ, False, "Value out of range"),
    "FSAG-1004": ErrorSpec(409, _V, _REQ, False, "Duplicate value"),
    # Security
    "FSAG-2001": ErrorSpec(403, _S, _REQ, False, "Signature verification failed"),
    "FSAG-2002": ErrorSpec(403, _S, _REQ, False, "Token identity mismatch"),
    "FSAG-2003": ErrorSpec(401, _S, _NONE, True, "Authorization token missing"),
    "FSAG-2004": ErrorSpec(401, _S, _NONE, True, "Authorization token invalid or expired"),
    "FSAG-2005": ErrorSpec(403, _S, _REQ, False, "Nonce verification failed"),
    "FSAG-2101": ErrorSpec(400, _S, _REQ, False, "Public key invalid"),
    # Infrastructure
    "FSAG-3001": ErrorSpec(503, _I, _REC, True, "Service temporarily unavailable"),
    "FSAG-3002": ErrorSpec(500, _I, _REC, True, "Internal server error"),
    "FSAG-3101": ErrorSpec(500, _I, _REC, True, "Database error"),
    "FSAG-3201": ErrorSpec(503, _I, _REC, True, "Settlement service unavailable"),
    "FSAG-3201T1": ErrorSpec(503, _I, _REC, True, "Settlement service unavailable"),
    "FSAG-3201T2": ErrorSpec(503, _I, _REC, True, "Settlement request timed out"),
    "FSAG-3202": ErrorSpec(503, _I, _REC, True, "Dependent service unavailable"),
    "FSAG-3301": ErrorSpec(500, _I, _REC, True, "AMM processor did not receive request"),
    "FSAG-3302": ErrorSpec(503, _I, _REC, True, "AMM processor timed out"),
    "FSAG-3401": ErrorSpec(500, _I, _REC, True, "Internal processing error"),
    "FSAG-3402": ErrorSpec(500, _I, _REC, True, "Internal processing error"),
    # Business
    "FSAG-4001": ErrorSpec(404, _B, _REF, False, "Pool not found"),
    "FSAG-4002": ErrorSpec(404, _B, _NONE, False, "Host not found"),
    "FSAG-4101": ErrorSpec(404, _B, _NONE, True, "Auth session not found"),
    "FSAG-4102": ErrorSpec(400, _B, _NONE, True, "Incorrect authentication flow"),
    "FSAG-4201": ErrorSpec(400, _B, _REF, True, "Insufficient liquidity"),
    "FSAG-4202": ErrorSpec(400, _B, _REF, True, "Slippage exceeded"),
    "FSAG-4203": ErrorSpec(409, _B, _REF, True, "Operation not allowed in current phase"),
    "FSAG-4204": ErrorSpec(400, _B, _NONE, False, "Insufficient LP tokens"),
    "FSAG-4301": ErrorSpec(400, _B, _NONE, False, "Invalid fee configuration"),
    "FSAG-4401": ErrorSpec(409, _B, _NONE, False, "Transfer ID already used"),
    # System
    "FSAG-5001": ErrorSpec(500, _Y, _REQ, True, "Failed to generate unique ID"),
    "FSAG-5002": ErrorSpec(501, _Y, _NONE, False, "Feature not implemented"),
    "FSAG-5003": ErrorSpec(500, _Y, _REQ, False, "Internal state inconsistent"),
    "FSAG-5004": ErrorSpec(500, _Y, _REQ, False, "Invalid configuration parameter"),
    "FSAG-5100": ErrorSpec(500, _Y, _REQ, False, "Unexpected panic"),
}

AUTH_EXPIRED_CODES = frozenset({"FSAG-2003", "FSAG-2004"})
CHALLENGE_EXPIRED_CODES = frozenset({"FSAG-4101", "FSAG-4102"})
SIGNATURE_REJECTED_CODES = frozenset({"FSAG-2001", "FSAG-2002", "FSAG-2101"})

_CODE_RE = re.compile(r"^FSAG-(\d)")

_CATEGORY_BY_DIGIT = {
    "1": ErrorCategory.VALIDATION,
    "2": ErrorCategory.SECURITY,
    "3": ErrorCategory.INFRASTRUCTURE,
    "4": ErrorCategory.BUSINESS,
    "5": ErrorCategory.SYSTEM,
}


@dataclass(frozen=True)
class Classification:
    code: Optional[str]
    category: ErrorCategory
    recovery: RecoveryStrategy
    retryable: bool
    summary: str
    known: bool

    @property
    def funds_at_risk(self) -> bool:
        return self.recovery in (RecoveryStrategy.CLAWBACK_REQUIRED, RecoveryStrategy.CLAWBACK_RECOMMENDED)


def category_from_code(code: Optional[str]) -> ErrorCategory:
    if isinstance(code, str):
        m = _CODE_RE.match(code.strip())
        if m:
            return _CATEGORY_BY_DIGIT.get(m.group(1), ErrorCategory.SYSTEM)
    return ErrorCategory.SYSTEM


def classify(code: Optional[str]) -> Classification:
    """
    Map an error code to {category, recovery, retryability}.

    Unknown codes fall back to the category prefix with a conservative
    recovery: Infrastructure -> clawback_recommended (retryable), anything
    else -> clawback_required (not retryable).
    """
    key = code.strip() if isinstance(code, str) else None
    spec = ERROR_CODES.get(key) if key else None
    if spec is not None:
        return Classification(
            code=key,
            category=spec.category,
            recovery=spec.recovery,
            retryable=spec.retryable,
            summary=spec.summary,
            known=True,
        )
    category = category_from_code(key)
    if category is ErrorCategory.INFRASTRUCTURE:
        return Classification(key, category, RecoveryStrategy.CLAWBACK_RECOMMENDED, True, "Unknown infrastructure error", False)
    return Classification(key, category, RecoveryStrategy.CLAWBACK_REQUIRED, False, f"Unknown {category.value.lower()} error", False)


@dataclass(frozen=True)
class ErrorBody:
    """Structured error body returned by the gateway."""

    error_code: Optional[str]
    message: str
    error_category: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: Optional[str] = None
    service: Optional[str] = None
    severity: Optional[str] = None
    remediation: Optional[str] = None
    details: Any = None

    @classmethod
    def from_dict(cls, obj: Any, *, fallback_message: str = "") -> "ErrorBody":
        if not isinstance(obj, Mapping):
            return cls(error_code=None, message=fallback_message or str(obj or ""))
        # Older gateways nest the error: {"error": {"code", "message", "requestId", "details"}}
        nested = obj.get("error")
        if isinstance(nested, Mapping) and "errorCode" not in obj:
            return cls(
                error_code=_opt_str(nested.get("code")),
                message=str(nested.get("message") or fallback_message),
                request_id=_opt_str(nested.get("requestId")),
                details=nested.get("details"),
            )
        return cls(
            error_code=_opt_str(obj.get("errorCode")),
            message=str(obj.get("message") or obj.get("msg") or fallback_message),
            error_category=_opt_str(obj.get("errorCategory")),
            request_id=_opt_str(obj.get("requestId")),
            timestamp=_opt_str(obj.get("timestamp")),
            service=_opt_str(obj.get("service")),
            severity=_opt_str(obj.get("severity")),
            remediation=_opt_str(obj.get("remediation")),
            details=obj.get("details"),
        )


def _opt_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    return str(v)


class AmmGateError(RuntimeError):
    pass


class TransportError(AmmGateError):
    """Network or protocol failure: the request may or may not have been processed."""


class GatewayError(AmmGateError):
    """Structured error response from the gateway."""

    def __init__(self, status_code: int, body: ErrorBody) -> None:
        self.status_code = int(status_code)
        self.body = body
        self.classification = classify(body.error_code)
        code = body.error_code or f"HTTP {self.status_code}"
        super().__init__(f"{code}: {body.message}")

    @property
    def error_code(self) -> Optional[str]:
        return self.body.error_code

    @property
    def category(self) -> ErrorCategory:
        return self.classification.category

    @property
    def recovery(self) -> RecoveryStrategy:
        return self.classification.recovery

    @property
    def is_retryable(self) -> bool:
        return self.classification.retryable

    def should_clawback(self) -> bool:
        return self.classification.funds_at_risk

    def will_auto_refund(self) -> bool:
        return self.classification.recovery is RecoveryStrategy.AUTO_REFUND

    def is_auth_expired(self) -> bool:
        if self.error_code in AUTH_EXPIRED_CODES:
            return True
        return self.status_code == 401 and self.error_code is None

    def is_slippage_error(self) -> bool:
        return self.error_code == "FSAG-4202"

    def is_insufficient_liquidity(self) -> bool:
        return self.error_code == "FSAG-4201"

    def is_pool_not_found(self) -> bool:
        return self.error_code == "FSAG-4001"

    def is_transfer_already_used(self) -> bool:
        return self.error_code == "FSAG-4401"


class PreflightError(AmmGateError):
    """Local check failed before any funds moved; never requires clawback."""


class InvalidRequest(PreflightError, ValueError):
    pass


class ServiceDisabled(PreflightError):
    pass


class FeatureDisabled(PreflightError):
    def __init__(self, feature: str) -> None:
        self.feature = feature
        super().__init__(f"feature disabled: {feature}")


class SettlementUnavailable(PreflightError):
    pass


class BelowMinimum(PreflightError):
    def __init__(self, asset: str, amount: int, minimum: int, *, side: str = "input") -> None:
        self.asset = asset
        self.amount = int(amount)
        self.minimum = int(minimum)
        self.side = side
        super().__init__(f"{side} amount {amount} for {asset} is below minimum {minimum}")


class AssetNotAllowed(PreflightError):
    def __init__(self, asset: str) -> None:
        self.asset = asset
        super().__init__(f"asset not allowed for pool creation: {asset}")


class InsufficientBalance(PreflightError):
    """`required` and `available` are ints for wallet assets and Decimals for LP tokens."""

    def __init__(self, asset: str, required: Union[int, Decimal], available: Union[int, Decimal]) -> None:
        self.asset = asset
        self.required = required
        self.available = available
        super().__init__(f"insufficient balance for {asset}: required {required}, available {available}")


class AuthenticationError(AmmGateError):
    pass


class SignatureRejected(AuthenticationError):
    pass


class ChallengeExpired(AuthenticationError):
    pass


class StrandedFundsError(AmmGateError):
    """
    Funds reached a custody identity but settlement was never confirmed:
    a later transfer failed, or submit failed at the transport level.
    """

    def __init__(self, message: str, candidates: Sequence["ClawbackCandidate"] = ()) -> None:
        self.clawback_candidates = tuple(candidates)
        super().__init__(message)

    @property
    def transfer_ids(self) -> Tuple[str, ...]:
        return tuple(c.transfer_id for c in self.clawback_candidates)


class InitialDepositFailed(AmmGateError):
    """
    A pool was created but its initial reserve transfer failed. The pool
    exists without the deposit; `created` is the accepted creation outcome.
    """

    def __init__(self, pool_id: str, created: "OperationOutcome", message: str) -> None:
        self.pool_id = pool_id
        self.created = created
        super().__init__(f"pool {pool_id} created but initial deposit failed: {message}")


class ClawbackRejected(AmmGateError):
    def __init__(self, transfer_id: str, message: str) -> None:
        self.transfer_id = transfer_id
        super().__init__(f"clawback of {transfer_id} rejected: {message}")
