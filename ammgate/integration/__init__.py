"""
Gateway integration: configuration, transport, auth, policy gates, error
classification, clawback recovery and the transaction orchestrator.
"""

from .api_client import GatewayApiClient
from .auth import AuthSession, AuthState, AuthToken
from .clawback import (
    AutoClawbackSummary,
    ClawbackAttemptResult,
    ClawbackCandidate,
    ClawbackMonitor,
    ClawbackPollResult,
)
from .collaborators import AddressCodec, DecodedAddress, Wallet, WalletIdentity
from .config import (
    ClientOptions,
    ConfigError,
    Environment,
    GatewayClientConfig,
    LegacyClientConfig,
    Network,
    PolicyTtls,
    ResolvedConfig,
    load_config,
    resolve_config,
)
from .errors import (
    AmmGateError,
    Classification,
    ErrorCategory,
    GatewayError,
    InitialDepositFailed,
    PreflightError,
    RecoveryStrategy,
    StrandedFundsError,
    TransportError,
    classify,
)
from .orchestrator import (
    InitialLiquidity,
    OperationKind,
    OperationOutcome,
    OutcomeStatus,
    TransactionOrchestrator,
)
from .policy_cache import PolicyCache, TtlCache
from .transport import HttpTransport, HttpxTransport, TransportResponse
from .validation import EscrowRecipient, RouteHop

__all__ = [
    "GatewayApiClient",
    "AuthSession",
    "AuthState",
    "AuthToken",
    "AutoClawbackSummary",
    "ClawbackAttemptResult",
    "ClawbackCandidate",
    "ClawbackMonitor",
    "ClawbackPollResult",
    "AddressCodec",
    "DecodedAddress",
    "Wallet",
    "WalletIdentity",
    "ClientOptions",
    "ConfigError",
    "Environment",
    "GatewayClientConfig",
    "LegacyClientConfig",
    "Network",
    "PolicyTtls",
    "ResolvedConfig",
    "load_config",
    "resolve_config",
    "AmmGateError",
    "Classification",
    "ErrorCategory",
    "GatewayError",
    "InitialDepositFailed",
    "PreflightError",
    "RecoveryStrategy",
    "StrandedFundsError",
    "TransportError",
    "classify",
    "InitialLiquidity",
    "OperationKind",
    "OperationOutcome",
    "OutcomeStatus",
    "TransactionOrchestrator",
    "PolicyCache",
    "TtlCache",
    "HttpTransport",
    "HttpxTransport",
    "TransportResponse",
    "EscrowRecipient",
    "RouteHop",
]
