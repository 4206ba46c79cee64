"""
Transaction orchestration: Validate -> Transfer -> Sign -> Submit -> Interpret.

Every state-changing operation runs the same pipeline:

1. Validate: policy gate (liveness, feature flags, minimum amounts,
   allow-lists) plus balance sufficiency. Fails closed by raising a
   `PreflightError`; nothing has moved yet.
2. Transfer: one or more irrevocable wallet transfers to the pool or
   escrow custody identity. If a later transfer fails, the earlier ones
   are stranded and raised as `StrandedFundsError` with clawback
   candidates.
3. Sign: build the intent with the transfer ids and a fresh nonce, encode
   canonically, sign.
4. Submit: POST the signed request. Never retried, except for the single
   re-authentication retry, which re-signs with a new nonce.
5. Interpret: map the response (or classified `GatewayError`) to an
   `OperationOutcome`. `accepted:false` is a business outcome and is
   returned, never raised.

Transport failures after funds moved raise `StrandedFundsError`; the
request may or may not have been processed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..agents.intent_signer import IntentSigner
from ..agents.signer import RawMessageSigner, WalletSigner
from ..core.bonding_curve import calculate_virtual_reserves
from ..core.tick_math import TickRange, tick_range_from_prices
from ..state.balances import NATIVE_ASSET, WalletBalance, is_native_asset
from ..state.intents import IntentKind, SignedIntent
from ..state.pools import CurveType, Pool
from .api_client import GatewayApiClient
from .auth import AuthSession
from .clawback import (
    AutoClawbackSummary,
    ClawbackAttemptResult,
    ClawbackCandidate,
    apply_results,
    make_candidates,
    summarize,
)
from .collaborators import AddressCodec, Wallet
from .config import ClientConfig, Environment, ResolvedConfig, resolve_config
from .errors import (
    ClawbackRejected,
    Classification,
    GatewayError,
    InitialDepositFailed,
    InsufficientBalance,
    InvalidRequest,
    RecoveryStrategy,
    StrandedFundsError,
    TransportError,
)
from .policy_cache import (
    ALLOW_ADD_LIQUIDITY,
    ALLOW_POOL_CREATION,
    ALLOW_ROUTE_SWAPS,
    ALLOW_SWAPS,
    ALLOW_WITHDRAW_FEES,
    ALLOW_WITHDRAW_LIQUIDITY,
    PolicyCache,
)
from .transport import HttpTransport, HttpxTransport
from .validation import (
    EscrowRecipient,
    RouteHop,
    check_host_fee,
    ensure_sufficient_balance,
    looks_like_hex_id,
    parse_amount,
    parse_bps,
    parse_decimal_amount,
    require_id,
    validate_escrow_recipients,
    validate_route_hops,
    validate_tick_range,
)

logger = logging.getLogger(__name__)


class OperationKind(Enum):
    SWAP = "swap"
    ROUTE_SWAP = "route_swap"
    ADD_LIQUIDITY = "add_liquidity"
    REMOVE_LIQUIDITY = "remove_liquidity"
    CREATE_CONSTANT_PRODUCT_POOL = "create_constant_product_pool"
    CREATE_SINGLE_SIDED_POOL = "create_single_sided_pool"
    CONFIRM_INITIAL_DEPOSIT = "confirm_initial_deposit"
    REGISTER_HOST = "register_host"
    WITHDRAW_HOST_FEES = "withdraw_host_fees"
    WITHDRAW_INTEGRATOR_FEES = "withdraw_integrator_fees"
    CREATE_ESCROW = "create_escrow"
    FUND_ESCROW = "fund_escrow"
    CLAIM_ESCROW = "claim_escrow"
    CLAWBACK = "clawback"
    CREATE_CONCENTRATED_POOL = "create_concentrated_pool"
    INCREASE_LIQUIDITY = "increase_liquidity"
    DECREASE_LIQUIDITY = "decrease_liquidity"
    COLLECT_FEES = "collect_fees"


class OutcomeStatus(Enum):
    ACCEPTED = "accepted"
    AUTO_REFUNDED = "auto_refunded"
    CLAWBACK_REQUIRED = "clawback_required"
    CLAWBACK_RECOMMENDED = "clawback_recommended"
    REJECTED = "rejected"


_STATUS_FOR_RECOVERY = {
    RecoveryStrategy.CLAWBACK_REQUIRED: OutcomeStatus.CLAWBACK_REQUIRED,
    RecoveryStrategy.CLAWBACK_RECOMMENDED: OutcomeStatus.CLAWBACK_RECOMMENDED,
}


@dataclass(frozen=True)
class OperationOutcome:
    """
    Classified result of one orchestrated operation.

    `response` is the raw gateway body, if one was received.
    `follow_up` holds the outcome of a chained step (initial liquidity,
    initial deposit confirmation, escrow auto-fund); the outer status and
    candidates already reflect it.
    """

    kind: OperationKind
    status: OutcomeStatus
    response: Any = None
    transfer_ids: Tuple[str, ...] = ()
    clawback_candidates: Tuple[ClawbackCandidate, ...] = ()
    message: Optional[str] = None
    error: Optional[GatewayError] = None
    clawback_summary: Optional[AutoClawbackSummary] = None
    follow_up: Optional["OperationOutcome"] = None

    @property
    def accepted(self) -> bool:
        return self.status is OutcomeStatus.ACCEPTED

    @property
    def classification(self) -> Optional[Classification]:
        return self.error.classification if self.error is not None else None

    @property
    def requires_clawback(self) -> bool:
        return any(not c.succeeded for c in self.clawback_candidates)


@dataclass(frozen=True)
class InitialLiquidity:
    asset_a_amount: int
    asset_b_amount: int
    asset_a_min_amount_in: int = 0
    asset_b_min_amount_in: int = 0


RefundCheck = Callable[[Mapping[str, Any]], bool]


def _no_refund(_: Mapping[str, Any]) -> bool:
    return False


def swap_refunded(response: Mapping[str, Any]) -> bool:
    return bool(response.get("refundedAmount"))


def add_liquidity_refunded(response: Mapping[str, Any]) -> bool:
    refund = response.get("refund")
    if not isinstance(refund, Mapping):
        return False
    return bool(refund.get("assetAAmount") or refund.get("assetBAmount"))


def increase_liquidity_refunded(response: Mapping[str, Any]) -> bool:
    return bool(response.get("amountARefund") or response.get("amountBRefund"))


def _decimal_field(body: Mapping[str, Any], key: str) -> Decimal:
    """Non-negative numeric field of a gateway response; absent means zero."""
    raw = body.get(key)
    if raw is None:
        return Decimal(0)
    try:
        value = Decimal(str(raw))
    except InvalidOperation as exc:
        raise InvalidRequest(f"gateway returned a malformed {key}: {raw!r}") from exc
    if not value.is_finite() or value < 0:
        raise InvalidRequest(f"gateway returned a malformed {key}: {raw!r}")
    return value


def _chain(outer: OperationOutcome, follow_up: OperationOutcome) -> OperationOutcome:
    return replace(
        outer,
        status=follow_up.status,
        transfer_ids=follow_up.transfer_ids,
        clawback_candidates=follow_up.clawback_candidates,
        clawback_summary=follow_up.clawback_summary,
        error=follow_up.error,
        message=follow_up.message,
        follow_up=follow_up,
    )


class TransactionOrchestrator:
    """
    Orchestrates gateway operations for one wallet identity.

    Build with `TransactionOrchestrator.create(...)`, which resolves the
    configuration once and wires the API client, auth session, policy cache
    and intent signer.
    """

    def __init__(
        self,
        *,
        wallet: Wallet,
        codec: AddressCodec,
        api: GatewayApiClient,
        auth: AuthSession,
        policy: PolicyCache,
        intents: IntentSigner,
        config: ResolvedConfig,
        public_key: str,
    ) -> None:
        self._wallet = wallet
        self._codec = codec
        self.api = api
        self.auth = auth
        self.policy = policy
        self.intents = intents
        self.config = config
        self.public_key = public_key

    @classmethod
    async def create(
        cls,
        wallet: Wallet,
        codec: AddressCodec,
        config: ClientConfig,
        *,
        signer: Optional[RawMessageSigner] = None,
        transport: Optional[HttpTransport] = None,
        environments: Optional[Mapping[str, Environment]] = None,
    ) -> "TransactionOrchestrator":
        identity = await wallet.get_identity()
        resolved = resolve_config(config, wallet_network=identity.network, environments=environments)
        api = GatewayApiClient(resolved.gateway_url, transport or HttpxTransport(resolved.timeout_s))
        raw_signer = signer if signer is not None else WalletSigner(wallet)
        auth = AuthSession(
            api, raw_signer, identity.public_key, auto_authenticate=resolved.options.auto_authenticate
        )
        policy = PolicyCache(
            api, ttls=resolved.ttls, output_min_fraction=resolved.options.output_min_fraction
        )
        logger.info("orchestrator for %s on %s (%s)", identity.public_key, resolved.network.value, resolved.gateway_url)
        return cls(
            wallet=wallet,
            codec=codec,
            api=api,
            auth=auth,
            policy=policy,
            intents=IntentSigner(raw_signer),
            config=resolved,
            public_key=identity.public_key,
        )

    # Helpers

    @property
    def network(self) -> str:
        return self.config.network.value

    def asset_hex(self, asset: str) -> str:
        """Hex token identifier for a hex or human-readable asset address."""
        require_id(asset, name="asset")
        if is_native_asset(asset):
            return NATIVE_ASSET
        if looks_like_hex_id(asset):
            return asset[2:].lower() if asset.lower().startswith("0x") else asset.lower()
        return self._codec.decode(asset, self.network).raw_id.lower()

    def custody_address(self, raw_id: str) -> str:
        return self._codec.encode(raw_id, self.network)

    async def get_balance(self) -> WalletBalance:
        return await self._wallet.get_balance()

    async def _check_balance(self, requirements: Sequence[Tuple[str, int]]) -> None:
        balance = await self._wallet.get_balance()
        keyed = []
        for asset, amount in requirements:
            if is_native_asset(asset) or asset in balance.token_balances:
                keyed.append((asset, amount))
            else:
                keyed.append((self.asset_hex(asset), amount))
        ensure_sufficient_balance(balance, keyed)

    async def _transfer(self, asset: str, amount: int, recipient_raw_id: str) -> str:
        address = self.custody_address(recipient_raw_id)
        if is_native_asset(asset):
            tid = await self._wallet.transfer(amount, address)
        else:
            tid = await self._wallet.transfer_token(self.asset_hex(asset), amount, address)
        if not isinstance(tid, str) or not tid:
            raise TransportError("wallet returned an empty transfer id")
        logger.debug("transferred %d of %s to %s: %s", amount, asset, recipient_raw_id, tid)
        return tid

    async def _transfer_all(
        self, kind: OperationKind, transfers: Sequence[Tuple[str, int]], recipient_raw_id: str
    ) -> Tuple[str, ...]:
        done: List[str] = []
        for asset, amount in transfers:
            try:
                done.append(await self._transfer(asset, amount, recipient_raw_id))
            except Exception as exc:
                if not done:
                    raise
                candidates = make_candidates(done, RecoveryStrategy.CLAWBACK_REQUIRED, recipient_raw_id)
                candidates, _ = await self._auto_recover(candidates)
                logger.warning("%s: transfer failed after %d transfer(s): %s", kind.value, len(done), exc)
                raise StrandedFundsError(
                    f"{kind.value}: transfer of {asset} failed after {len(done)} earlier transfer(s)", candidates
                ) from exc
        return tuple(done)

    async def _signed_call(
        self,
        intent_kind: IntentKind,
        values: Mapping[str, Any],
        send: Callable[[SignedIntent], Awaitable[Any]],
    ) -> Any:
        async def attempt() -> Any:
            signed = await self.intents.create_signed(intent_kind, values)
            return await send(signed)

        return await self.auth.run(attempt)

    async def _authed(self, call: Callable[[], Awaitable[Any]]) -> Any:
        return await self.auth.run(call)

    async def _settle(
        self,
        kind: OperationKind,
        submit: Callable[[], Awaitable[Any]],
        *,
        lp: str,
        transfer_ids: Tuple[str, ...] = (),
        accepted_key: Optional[str] = "accepted",
        refunded: RefundCheck = _no_refund,
    ) -> OperationOutcome:
        try:
            response = await submit()
        except GatewayError as exc:
            if not transfer_ids:
                raise
            return await self._outcome_from_error(kind, exc, transfer_ids, lp)
        except Exception as exc:
            if not transfer_ids:
                raise
            recovery = (
                RecoveryStrategy.CLAWBACK_RECOMMENDED
                if isinstance(exc, TransportError)
                else RecoveryStrategy.CLAWBACK_REQUIRED
            )
            candidates, _ = await self._auto_recover(make_candidates(transfer_ids, recovery, lp))
            logger.warning("%s: submit failed after transfers %s: %s", kind.value, list(transfer_ids), exc)
            raise StrandedFundsError(f"{kind.value}: settlement not confirmed: {exc}", candidates) from exc
        return await self._interpret(kind, response, transfer_ids, lp, accepted_key, refunded)

    async def _interpret(
        self,
        kind: OperationKind,
        response: Any,
        transfer_ids: Tuple[str, ...],
        lp: str,
        accepted_key: Optional[str],
        refunded: RefundCheck,
    ) -> OperationOutcome:
        body = response if isinstance(response, Mapping) else {}
        accepted = True if accepted_key is None else bool(body.get(accepted_key, False))
        message = body.get("error") or body.get("message")
        if accepted:
            logger.info("%s accepted", kind.value)
            return OperationOutcome(kind, OutcomeStatus.ACCEPTED, response=response, transfer_ids=transfer_ids)

        logger.warning("%s rejected: %s", kind.value, message or "no reason given")
        if transfer_ids and refunded(body):
            return OperationOutcome(
                kind, OutcomeStatus.AUTO_REFUNDED, response=response, transfer_ids=transfer_ids, message=message
            )
        if not transfer_ids:
            return OperationOutcome(kind, OutcomeStatus.REJECTED, response=response, message=message)

        candidates, summary = await self._auto_recover(
            make_candidates(transfer_ids, RecoveryStrategy.CLAWBACK_REQUIRED, lp)
        )
        return OperationOutcome(
            kind,
            OutcomeStatus.CLAWBACK_REQUIRED,
            response=response,
            transfer_ids=transfer_ids,
            clawback_candidates=candidates,
            message=message,
            clawback_summary=summary,
        )

    async def _outcome_from_error(
        self, kind: OperationKind, exc: GatewayError, transfer_ids: Tuple[str, ...], lp: str
    ) -> OperationOutcome:
        logger.warning("%s failed after transfers %s: %s", kind.value, list(transfer_ids), exc)
        if exc.recovery is RecoveryStrategy.AUTO_REFUND:
            return OperationOutcome(
                kind,
                OutcomeStatus.AUTO_REFUNDED,
                response=exc.body,
                transfer_ids=transfer_ids,
                message=exc.body.message,
                error=exc,
            )
        # Errors that carry no recovery hint still left funds at the pool.
        recovery = exc.recovery if exc.should_clawback() else RecoveryStrategy.CLAWBACK_RECOMMENDED
        candidates, summary = await self._auto_recover(make_candidates(transfer_ids, recovery, lp))
        return OperationOutcome(
            kind,
            _STATUS_FOR_RECOVERY[recovery],
            response=exc.body,
            transfer_ids=transfer_ids,
            clawback_candidates=candidates,
            message=exc.body.message,
            error=exc,
            clawback_summary=summary,
        )

    async def _auto_recover(
        self, candidates: Tuple[ClawbackCandidate, ...]
    ) -> Tuple[Tuple[ClawbackCandidate, ...], Optional[AutoClawbackSummary]]:
        if not self.config.options.auto_clawback or not candidates:
            return candidates, None
        results = [await self.clawback_transfer(c.transfer_id, c.lp_identity_public_key) for c in candidates]
        summary = summarize(results)
        logger.info(
            "auto-clawback recovered %d/%d transfer(s)", summary.success_count, summary.total_transfers
        )
        return apply_results(candidates, results), summary

    # Swaps

    async def swap(
        self,
        *,
        pool_id: str,
        asset_in: str,
        asset_out: str,
        amount_in: Any,
        min_amount_out: Any,
        max_slippage_bps: Optional[int] = None,
        integrator_fee_bps: Optional[int] = None,
        integrator_public_key: Optional[str] = None,
    ) -> OperationOutcome:
        pool_id = require_id(pool_id, name="pool_id")
        amount = parse_amount(amount_in, name="amount_in")
        min_out = parse_amount(min_amount_out, name="min_amount_out", allow_zero=True)
        slippage = parse_bps(
            self.config.options.default_slippage_bps if max_slippage_bps is None else max_slippage_bps,
            name="max_slippage_bps",
        )
        integrator_bps = parse_bps(integrator_fee_bps or 0, name="integrator_fee_bps")
        in_hex, out_hex = self.asset_hex(asset_in), self.asset_hex(asset_out)

        await self.policy.ensure_operation_allowed(ALLOW_SWAPS)
        await self.policy.assert_swap_meets_min_amounts(in_hex, out_hex, amount, min_out)
        await self._check_balance([(asset_in, amount)])

        (tid,) = await self._transfer_all(OperationKind.SWAP, [(asset_in, amount)], pool_id)
        return await self._submit_swap(
            pool_id, tid, in_hex, out_hex, amount, min_out, slippage, integrator_bps, integrator_public_key
        )

    async def execute_swap_intent(
        self,
        *,
        pool_id: str,
        transfer_id: str,
        asset_in: str,
        asset_out: str,
        amount_in: Any,
        min_amount_out: Any,
        max_slippage_bps: Optional[int] = None,
        integrator_fee_bps: Optional[int] = None,
        integrator_public_key: Optional[str] = None,
    ) -> OperationOutcome:
        """
        Sign and submit a swap whose input transfer already reached the pool
        (e.g. made by another process). The swap gates still apply; the
        balance check does not. A rejection lists `transfer_id` for clawback.
        """
        pool_id = require_id(pool_id, name="pool_id")
        tid = require_id(transfer_id, name="transfer_id")
        amount = parse_amount(amount_in, name="amount_in")
        min_out = parse_amount(min_amount_out, name="min_amount_out", allow_zero=True)
        slippage = parse_bps(
            self.config.options.default_slippage_bps if max_slippage_bps is None else max_slippage_bps,
            name="max_slippage_bps",
        )
        integrator_bps = parse_bps(integrator_fee_bps or 0, name="integrator_fee_bps")
        in_hex, out_hex = self.asset_hex(asset_in), self.asset_hex(asset_out)

        await self.policy.ensure_operation_allowed(ALLOW_SWAPS)
        await self.policy.assert_swap_meets_min_amounts(in_hex, out_hex, amount, min_out)
        return await self._submit_swap(
            pool_id, tid, in_hex, out_hex, amount, min_out, slippage, integrator_bps, integrator_public_key
        )

    async def _submit_swap(
        self,
        pool_id: str,
        tid: str,
        in_hex: str,
        out_hex: str,
        amount: int,
        min_out: int,
        slippage: int,
        integrator_bps: int,
        integrator_public_key: Optional[str],
    ) -> OperationOutcome:
        values = {
            "userPublicKey": self.public_key,
            "lpIdentityPublicKey": pool_id,
            "assetInSparkTransferId": tid,
            "assetInTokenPublicKey": in_hex,
            "assetOutTokenPublicKey": out_hex,
            "amountIn": amount,
            "minAmountOut": min_out,
            "maxSlippageBps": slippage,
            "totalIntegratorFeeRateBps": integrator_bps,
        }

        async def send(signed: SignedIntent) -> Any:
            return await self.api.swap(
                {
                    "userPublicKey": self.public_key,
                    "poolId": pool_id,
                    "assetInAddress": in_hex,
                    "assetOutAddress": out_hex,
                    "amountIn": str(amount),
                    "maxSlippageBps": str(slippage),
                    "minAmountOut": str(min_out),
                    "assetInSparkTransferId": tid,
                    "totalIntegratorFeeRateBps": str(integrator_bps),
                    "integratorPublicKey": integrator_public_key or "",
                    **signed.request_fields(),
                }
            )

        return await self._settle(
            OperationKind.SWAP,
            lambda: self._signed_call(IntentKind.SWAP, values, send),
            lp=pool_id,
            transfer_ids=(tid,),
            refunded=swap_refunded,
        )

    async def route_swap(
        self,
        *,
        hops: Sequence[RouteHop],
        initial_asset: str,
        input_amount: Any,
        min_amount_out: Any,
        max_route_slippage_bps: Optional[int] = None,
        integrator_fee_bps: Optional[int] = None,
        integrator_public_key: Optional[str] = None,
    ) -> OperationOutcome:
        route = validate_route_hops(hops)
        amount = parse_amount(input_amount, name="input_amount")
        min_out = parse_amount(min_amount_out, name="min_amount_out", allow_zero=True)
        slippage = parse_bps(
            self.config.options.default_slippage_bps if max_route_slippage_bps is None else max_route_slippage_bps,
            name="max_route_slippage_bps",
        )
        integrator_bps = parse_bps(integrator_fee_bps or 0, name="integrator_fee_bps")
        first_pool = route[0].pool_id
        hop_hex = [(h, self.asset_hex(h.asset_in), self.asset_hex(h.asset_out)) for h in route]

        await self.policy.ensure_operation_allowed(ALLOW_ROUTE_SWAPS)
        await self.policy.assert_swap_meets_min_amounts(
            self.asset_hex(initial_asset), hop_hex[-1][2], amount, min_out
        )
        await self._check_balance([(initial_asset, amount)])

        (tid,) = await self._transfer_all(OperationKind.ROUTE_SWAP, [(initial_asset, amount)], first_pool)

        values = {
            "userPublicKey": self.public_key,
            "hops": [
                {
                    "lpIdentityPublicKey": h.pool_id,
                    "inputAssetAddress": a_in,
                    "outputAssetAddress": a_out,
                    "hopIntegratorFeeRateBps": h.hop_integrator_fee_bps or 0,
                }
                for h, a_in, a_out in hop_hex
            ],
            "initialSparkTransferId": tid,
            "inputAmount": amount,
            "minFinalOutputAmount": min_out,
            "maxRouteSlippageBps": slippage,
            "defaultIntegratorFeeRateBps": integrator_bps,
        }

        async def send(signed: SignedIntent) -> Any:
            return await self.api.route_swap(
                {
                    "userPublicKey": self.public_key,
                    "hops": [
                        {
                            "poolId": h.pool_id,
                            "assetInAddress": a_in,
                            "assetOutAddress": a_out,
                            "hopIntegratorFeeRateBps": str(h.hop_integrator_fee_bps or 0),
                        }
                        for h, a_in, a_out in hop_hex
                    ],
                    "initialSparkTransferId": tid,
                    "inputAmount": str(amount),
                    "maxRouteSlippageBps": str(slippage),
                    "minAmountOut": str(min_out),
                    "integratorFeeRateBps": str(integrator_bps),
                    "integratorPublicKey": integrator_public_key or "",
                    **signed.request_fields(),
                }
            )

        return await self._settle(
            OperationKind.ROUTE_SWAP,
            lambda: self._signed_call(IntentKind.ROUTE_SWAP, values, send),
            lp=first_pool,
            transfer_ids=(tid,),
            refunded=swap_refunded,
        )

    # Liquidity

    async def add_liquidity(
        self,
        *,
        pool_id: str,
        asset_a_amount: Any,
        asset_b_amount: Any,
        asset_a_min_amount_in: Any = 0,
        asset_b_min_amount_in: Any = 0,
    ) -> OperationOutcome:
        pool_id = require_id(pool_id, name="pool_id")
        amount_a = parse_amount(asset_a_amount, name="asset_a_amount")
        amount_b = parse_amount(asset_b_amount, name="asset_b_amount")
        min_a = parse_amount(asset_a_min_amount_in, name="asset_a_min_amount_in", allow_zero=True)
        min_b = parse_amount(asset_b_min_amount_in, name="asset_b_min_amount_in", allow_zero=True)

        await self.policy.ensure_operation_allowed(ALLOW_ADD_LIQUIDITY)
        pool = await self.get_pool(pool_id)
        a_hex, b_hex = self.asset_hex(pool.asset_a), self.asset_hex(pool.asset_b)
        await self.policy.assert_add_liquidity_meets_min_amounts(a_hex, b_hex, amount_a, amount_b)
        await self._check_balance([(pool.asset_a, amount_a), (pool.asset_b, amount_b)])

        tid_a, tid_b = await self._transfer_all(
            OperationKind.ADD_LIQUIDITY, [(pool.asset_a, amount_a), (pool.asset_b, amount_b)], pool_id
        )

        values = {
            "userPublicKey": self.public_key,
            "lpIdentityPublicKey": pool_id,
            "assetASparkTransferId": tid_a,
            "assetBSparkTransferId": tid_b,
            "assetAAmount": amount_a,
            "assetBAmount": amount_b,
            "assetAMinAmountIn": min_a,
            "assetBMinAmountIn": min_b,
        }

        async def send(signed: SignedIntent) -> Any:
            return await self.api.add_liquidity(
                {
                    "userPublicKey": self.public_key,
                    "poolId": pool_id,
                    "assetASparkTransferId": tid_a,
                    "assetBSparkTransferId": tid_b,
                    "assetAAmountToAdd": str(amount_a),
                    "assetBAmountToAdd": str(amount_b),
                    "assetAMinAmountIn": str(min_a),
                    "assetBMinAmountIn": str(min_b),
                    **signed.request_fields(),
                }
            )

        return await self._settle(
            OperationKind.ADD_LIQUIDITY,
            lambda: self._signed_call(IntentKind.ADD_LIQUIDITY, values, send),
            lp=pool_id,
            transfer_ids=(tid_a, tid_b),
            refunded=add_liquidity_refunded,
        )

    async def remove_liquidity(self, *, pool_id: str, lp_tokens_to_remove: Any) -> OperationOutcome:
        """
        Burn LP tokens. LP balances can be fractional, so `lp_tokens_to_remove`
        accepts ints, Decimals or plain decimal strings such as "0.5".
        """
        pool_id = require_id(pool_id, name="pool_id")
        tokens = parse_decimal_amount(lp_tokens_to_remove, name="lp_tokens_to_remove")
        tokens_str = format(tokens, "f")

        await self.policy.ensure_operation_allowed(ALLOW_WITHDRAW_LIQUIDITY)
        position = await self.get_lp_position(pool_id)
        owned = _decimal_field(position, "lpTokensOwned") if isinstance(position, Mapping) else Decimal(0)
        if owned < tokens:
            raise InsufficientBalance(f"lp:{pool_id}", tokens, owned)

        if await self.policy.min_amounts():
            sim = await self.simulate_remove_liquidity(
                {"poolId": pool_id, "providerPublicKey": self.public_key, "lpTokensToRemove": tokens_str}
            )
            sim = sim if isinstance(sim, Mapping) else {}
            pool = await self.get_pool(pool_id)
            await self.policy.assert_remove_liquidity_meets_min_amounts(
                self.asset_hex(pool.asset_a),
                self.asset_hex(pool.asset_b),
                int(_decimal_field(sim, "assetAAmount").to_integral_value(rounding=ROUND_FLOOR)),
                int(_decimal_field(sim, "assetBAmount").to_integral_value(rounding=ROUND_FLOOR)),
            )

        values = {"userPublicKey": self.public_key, "lpIdentityPublicKey": pool_id, "lpTokensToRemove": tokens_str}

        async def send(signed: SignedIntent) -> Any:
            return await self.api.remove_liquidity(
                {
                    "userPublicKey": self.public_key,
                    "poolId": pool_id,
                    "lpTokensToRemove": tokens_str,
                    **signed.request_fields(),
                }
            )

        return await self._settle(
            OperationKind.REMOVE_LIQUIDITY,
            lambda: self._signed_call(IntentKind.REMOVE_LIQUIDITY, values, send),
            lp=pool_id,
        )

    # Concentrated liquidity

    async def _concentrated_pool(self, pool_id: str) -> Pool:
        pool = await self.get_pool(pool_id)
        if pool.curve_type is not CurveType.CONCENTRATED:
            raise InvalidRequest(f"pool {pool_id} is not a concentrated-liquidity pool")
        return pool

    async def create_concentrated_pool(
        self,
        *,
        asset_a: str,
        asset_b: str,
        tick_spacing: int,
        initial_price: Any,
        lp_fee_bps: int,
        total_host_fee_bps: int,
        pool_owner_public_key: Optional[str] = None,
        host_namespace: Optional[str] = None,
    ) -> OperationOutcome:
        """
        Create a concentrated-liquidity pool. `initial_price` is the pool
        price (asset B per asset A) as an int, Decimal or decimal string.
        No funds move; positions are opened with `increase_liquidity`.
        """
        if not isinstance(tick_spacing, int) or isinstance(tick_spacing, bool) or tick_spacing <= 0:
            raise InvalidRequest(f"tick_spacing must be a positive int: {tick_spacing!r}")
        price = format(parse_decimal_amount(initial_price, name="initial_price"), "f")
        lp_fee = parse_bps(lp_fee_bps, name="lp_fee_bps")
        host_fee = parse_bps(total_host_fee_bps, name="total_host_fee_bps")
        a_hex, b_hex = self.asset_hex(asset_a), self.asset_hex(asset_b)
        owner = pool_owner_public_key or self.public_key

        await self.policy.ensure_operation_allowed(ALLOW_POOL_CREATION)
        await self.policy.assert_asset_allowed_for_pool_creation(b_hex)

        values = {
            "poolOwnerPublicKey": owner,
            "assetATokenPublicKey": a_hex,
            "assetBTokenPublicKey": b_hex,
            "tickSpacing": tick_spacing,
            "initialPrice": price,
            "lpFeeRateBps": lp_fee,
            "totalHostFeeRateBps": host_fee,
        }

        async def send(signed: SignedIntent) -> Any:
            body: Dict[str, Any] = {
                "poolOwnerPublicKey": owner,
                "assetAAddress": a_hex,
                "assetBAddress": b_hex,
                "tickSpacing": tick_spacing,
                "initialPrice": price,
                "lpFeeRateBps": str(lp_fee),
                "hostFeeRateBps": str(host_fee),
            }
            if host_namespace:
                body["hostNamespace"] = host_namespace
            body.update(signed.request_fields())
            return await self.api.create_concentrated_pool(body)

        return await self._settle(
            OperationKind.CREATE_CONCENTRATED_POOL,
            lambda: self._signed_call(IntentKind.POOL_INIT_CONCENTRATED, values, send),
            lp=owner,
            accepted_key=None,
        )

    async def increase_liquidity(
        self,
        *,
        pool_id: str,
        tick_lower: int,
        tick_upper: int,
        amount_a_desired: Any,
        amount_b_desired: Any,
        amount_a_min: Any = 0,
        amount_b_min: Any = 0,
        use_free_balance: bool = False,
        retain_excess_in_balance: bool = False,
    ) -> OperationOutcome:
        """
        Open or grow the position in [tick_lower, tick_upper).

        Only non-zero desired amounts are transferred to the pool, and none
        when `use_free_balance` draws on the caller's balance held at the
        pool. An unused transfer slot is signed as an empty transfer id.
        """
        pool_id = require_id(pool_id, name="pool_id")
        amount_a = parse_amount(amount_a_desired, name="amount_a_desired", allow_zero=True)
        amount_b = parse_amount(amount_b_desired, name="amount_b_desired", allow_zero=True)
        min_a = parse_amount(amount_a_min, name="amount_a_min", allow_zero=True)
        min_b = parse_amount(amount_b_min, name="amount_b_min", allow_zero=True)
        if amount_a == 0 and amount_b == 0:
            raise InvalidRequest("at least one desired amount must be positive")
        if min_a > amount_a or min_b > amount_b:
            raise InvalidRequest("minimum amounts cannot exceed desired amounts")

        await self.policy.ensure_operation_allowed(ALLOW_ADD_LIQUIDITY)
        pool = await self._concentrated_pool(pool_id)
        lower, upper = validate_tick_range(tick_lower, tick_upper, pool.tick_spacing)

        legs = [] if use_free_balance else [
            (slot, asset, amount)
            for slot, asset, amount in (("A", pool.asset_a, amount_a), ("B", pool.asset_b, amount_b))
            if amount > 0
        ]
        transfer_ids: Tuple[str, ...] = ()
        if legs:
            await self._check_balance([(asset, amount) for _, asset, amount in legs])
            transfer_ids = await self._transfer_all(
                OperationKind.INCREASE_LIQUIDITY, [(asset, amount) for _, asset, amount in legs], pool_id
            )
        by_slot = {slot: tid for (slot, _, _), tid in zip(legs, transfer_ids)}
        tid_a, tid_b = by_slot.get("A", ""), by_slot.get("B", "")

        values = {
            "userPublicKey": self.public_key,
            "lpIdentityPublicKey": pool_id,
            "tickLower": lower,
            "tickUpper": upper,
            "assetASparkTransferId": tid_a,
            "assetBSparkTransferId": tid_b,
            "amountADesired": amount_a,
            "amountBDesired": amount_b,
            "amountAMin": min_a,
            "amountBMin": min_b,
        }

        async def send(signed: SignedIntent) -> Any:
            return await self.api.increase_liquidity(
                {
                    "poolId": pool_id,
                    "tickLower": lower,
                    "tickUpper": upper,
                    "assetASparkTransferId": tid_a,
                    "assetBSparkTransferId": tid_b,
                    "amountADesired": str(amount_a),
                    "amountBDesired": str(amount_b),
                    "amountAMin": str(min_a),
                    "amountBMin": str(min_b),
                    "useFreeBalance": use_free_balance,
                    "retainExcessInBalance": retain_excess_in_balance,
                    **signed.request_fields(),
                }
            )

        return await self._settle(
            OperationKind.INCREASE_LIQUIDITY,
            lambda: self._signed_call(IntentKind.INCREASE_LIQUIDITY, values, send),
            lp=pool_id,
            transfer_ids=transfer_ids,
            refunded=increase_liquidity_refunded,
        )

    async def price_range_ticks(
        self,
        pool_id: str,
        price_lower: Any,
        price_upper: Any,
        base_decimals: int,
        quote_decimals: int,
        *,
        base_is_asset_a: bool = False,
    ) -> TickRange:
        """Tick range for a human price range, aligned to the pool's tick spacing."""
        pool = await self._concentrated_pool(require_id(pool_id, name="pool_id"))
        try:
            return tick_range_from_prices(
                price_lower,
                price_upper,
                base_decimals,
                quote_decimals,
                pool.tick_spacing,
                base_is_asset_a=base_is_asset_a,
            )
        except (TypeError, ValueError) as exc:
            raise InvalidRequest(str(exc)) from exc

    async def increase_liquidity_in_price_range(
        self,
        *,
        pool_id: str,
        price_lower: Any,
        price_upper: Any,
        base_decimals: int,
        quote_decimals: int,
        amount_a_desired: Any,
        amount_b_desired: Any,
        base_is_asset_a: bool = False,
        **kwargs: Any,
    ) -> OperationOutcome:
        """`increase_liquidity` with the range given as human prices ("quote per base")."""
        ticks = await self.price_range_ticks(
            pool_id, price_lower, price_upper, base_decimals, quote_decimals, base_is_asset_a=base_is_asset_a
        )
        logger.debug(
            "price range %s..%s -> ticks [%d, %d)", price_lower, price_upper, ticks.tick_lower, ticks.tick_upper
        )
        return await self.increase_liquidity(
            pool_id=pool_id,
            tick_lower=ticks.tick_lower,
            tick_upper=ticks.tick_upper,
            amount_a_desired=amount_a_desired,
            amount_b_desired=amount_b_desired,
            **kwargs,
        )

    async def decrease_liquidity(
        self,
        *,
        pool_id: str,
        tick_lower: int,
        tick_upper: int,
        liquidity_to_remove: Any,
        amount_a_min: Any = 0,
        amount_b_min: Any = 0,
        retain_in_balance: bool = False,
    ) -> OperationOutcome:
        """Shrink a position; a `liquidity_to_remove` of 0 removes all of it."""
        pool_id = require_id(pool_id, name="pool_id")
        lower, upper = validate_tick_range(tick_lower, tick_upper)
        liquidity = parse_amount(liquidity_to_remove, name="liquidity_to_remove", allow_zero=True)
        min_a = parse_amount(amount_a_min, name="amount_a_min", allow_zero=True)
        min_b = parse_amount(amount_b_min, name="amount_b_min", allow_zero=True)

        await self.policy.ensure_operation_allowed(ALLOW_WITHDRAW_LIQUIDITY)
        values = {
            "userPublicKey": self.public_key,
            "lpIdentityPublicKey": pool_id,
            "tickLower": lower,
            "tickUpper": upper,
            "liquidityToRemove": liquidity,
            "amountAMin": min_a,
            "amountBMin": min_b,
        }

        async def send(signed: SignedIntent) -> Any:
            return await self.api.decrease_liquidity(
                {
                    "poolId": pool_id,
                    "tickLower": lower,
                    "tickUpper": upper,
                    "liquidityToRemove": str(liquidity),
                    "amountAMin": str(min_a),
                    "amountBMin": str(min_b),
                    "retainInBalance": retain_in_balance,
                    **signed.request_fields(),
                }
            )

        return await self._settle(
            OperationKind.DECREASE_LIQUIDITY,
            lambda: self._signed_call(IntentKind.DECREASE_LIQUIDITY, values, send),
            lp=pool_id,
        )

    async def collect_fees(
        self, *, pool_id: str, tick_lower: int, tick_upper: int, retain_in_balance: bool = False
    ) -> OperationOutcome:
        pool_id = require_id(pool_id, name="pool_id")
        lower, upper = validate_tick_range(tick_lower, tick_upper)

        await self.policy.ensure_operation_allowed(ALLOW_WITHDRAW_FEES)
        values = {
            "userPublicKey": self.public_key,
            "lpIdentityPublicKey": pool_id,
            "tickLower": lower,
            "tickUpper": upper,
        }

        async def send(signed: SignedIntent) -> Any:
            return await self.api.collect_fees(
                {
                    "poolId": pool_id,
                    "tickLower": lower,
                    "tickUpper": upper,
                    "retainInBalance": retain_in_balance,
                    **signed.request_fields(),
                }
            )

        return await self._settle(
            OperationKind.COLLECT_FEES,
            lambda: self._signed_call(IntentKind.COLLECT_FEES, values, send),
            lp=pool_id,
        )

    async def list_concentrated_positions(self, **query: Any) -> Any:
        return await self._authed(lambda: self.api.list_concentrated_positions(query))

    # Pools

    async def create_constant_product_pool(
        self,
        *,
        asset_a: str,
        asset_b: str,
        lp_fee_bps: int,
        total_host_fee_bps: int,
        pool_owner_public_key: Optional[str] = None,
        host_namespace: Optional[str] = None,
        initial_liquidity: Optional[InitialLiquidity] = None,
    ) -> OperationOutcome:
        lp_fee = parse_bps(lp_fee_bps, name="lp_fee_bps")
        host_fee = parse_bps(total_host_fee_bps, name="total_host_fee_bps")
        a_hex, b_hex = self.asset_hex(asset_a), self.asset_hex(asset_b)
        owner = pool_owner_public_key or self.public_key

        await self.policy.ensure_operation_allowed(ALLOW_POOL_CREATION)
        await self.policy.assert_asset_allowed_for_pool_creation(b_hex)
        if initial_liquidity is not None:
            await self._check_balance(
                [(asset_a, initial_liquidity.asset_a_amount), (asset_b, initial_liquidity.asset_b_amount)]
            )

        values = {
            "poolOwnerPublicKey": owner,
            "assetATokenPublicKey": a_hex,
            "assetBTokenPublicKey": b_hex,
            "totalHostFeeRateBps": host_fee,
            "lpFeeRateBps": lp_fee,
        }

        async def send(signed: SignedIntent) -> Any:
            return await self.api.create_constant_product_pool(
                {
                    "poolOwnerPublicKey": owner,
                    "assetAAddress": a_hex,
                    "assetBAddress": b_hex,
                    "lpFeeRateBps": str(lp_fee),
                    "totalHostFeeRateBps": str(host_fee),
                    "hostNamespace": host_namespace or "",
                    **signed.request_fields(),
                }
            )

        created = await self._settle(
            OperationKind.CREATE_CONSTANT_PRODUCT_POOL,
            lambda: self._signed_call(IntentKind.POOL_INIT_CONSTANT_PRODUCT, values, send),
            lp=owner,
            accepted_key=None,
        )
        pool_id = created.response.get("poolId") if isinstance(created.response, Mapping) else None
        if initial_liquidity is None or not pool_id:
            return created
        added = await self.add_liquidity(
            pool_id=pool_id,
            asset_a_amount=initial_liquidity.asset_a_amount,
            asset_b_amount=initial_liquidity.asset_b_amount,
            asset_a_min_amount_in=initial_liquidity.asset_a_min_amount_in,
            asset_b_min_amount_in=initial_liquidity.asset_b_min_amount_in,
        )
        return _chain(created, added)

    async def create_single_sided_pool(
        self,
        *,
        asset_a: str,
        asset_b: str,
        asset_a_initial_reserve: Any,
        lp_fee_bps: int,
        total_host_fee_bps: int,
        virtual_reserve_a: Any = None,
        virtual_reserve_b: Any = None,
        threshold: Any = None,
        target_raise: Any = None,
        graduation_threshold_pct: Optional[int] = None,
        pool_owner_public_key: Optional[str] = None,
        host_namespace: Optional[str] = None,
        disable_initial_deposit: bool = False,
    ) -> OperationOutcome:
        """
        Create a bonding-curve pool and, unless disabled, transfer the
        initial reserve and confirm it.

        Give either explicit (virtual_reserve_a, virtual_reserve_b,
        threshold) or (target_raise, graduation_threshold_pct); the latter
        derives the reserves from the initial reserve as supply.
        """
        reserve = parse_amount(asset_a_initial_reserve, name="asset_a_initial_reserve")
        lp_fee = parse_bps(lp_fee_bps, name="lp_fee_bps")
        host_fee = parse_bps(total_host_fee_bps, name="total_host_fee_bps")
        explicit = (virtual_reserve_a, virtual_reserve_b, threshold)
        derived = (target_raise, graduation_threshold_pct)
        if all(v is not None for v in explicit) and all(v is None for v in derived):
            v_a = parse_amount(virtual_reserve_a, name="virtual_reserve_a")
            v_b = parse_amount(virtual_reserve_b, name="virtual_reserve_b")
            thr = parse_amount(threshold, name="threshold")
        elif all(v is not None for v in derived) and all(v is None for v in explicit):
            try:
                curve = calculate_virtual_reserves(reserve, target_raise, graduation_threshold_pct)
            except (TypeError, ValueError) as exc:
                raise InvalidRequest(str(exc)) from exc
            v_a, v_b, thr = curve.virtual_reserve_a, curve.virtual_reserve_b, curve.threshold
        else:
            raise InvalidRequest(
                "give either virtual_reserve_a/virtual_reserve_b/threshold or target_raise/graduation_threshold_pct"
            )
        check_host_fee(host_fee, host_namespace)
        a_hex, b_hex = self.asset_hex(asset_a), self.asset_hex(asset_b)
        owner = pool_owner_public_key or self.public_key

        await self.policy.ensure_operation_allowed(ALLOW_POOL_CREATION)
        await self.policy.assert_asset_allowed_for_pool_creation(b_hex)
        await self._check_balance([(asset_a, reserve)])

        values = {
            "poolOwnerPublicKey": owner,
            "assetATokenPublicKey": a_hex,
            "assetBTokenPublicKey": b_hex,
            "assetAInitialReserve": reserve,
            "virtualReserveA": v_a,
            "virtualReserveB": v_b,
            "threshold": thr,
            "totalHostFeeRateBps": host_fee,
            "lpFeeRateBps": lp_fee,
        }

        async def send(signed: SignedIntent) -> Any:
            body: Dict[str, Any] = {
                "poolOwnerPublicKey": owner,
                "assetAAddress": a_hex,
                "assetBAddress": b_hex,
                "assetAInitialReserve": str(reserve),
                "virtualReserveA": str(v_a),
                "virtualReserveB": str(v_b),
                "threshold": str(thr),
                "lpFeeRateBps": str(lp_fee),
                "totalHostFeeRateBps": str(host_fee),
            }
            if host_namespace:
                body["hostNamespace"] = host_namespace
            body.update(signed.request_fields())
            return await self.api.create_single_sided_pool(body)

        created = await self._settle(
            OperationKind.CREATE_SINGLE_SIDED_POOL,
            lambda: self._signed_call(IntentKind.POOL_INIT_SINGLE_SIDED, values, send),
            lp=owner,
            accepted_key=None,
        )
        pool_id = created.response.get("poolId") if isinstance(created.response, Mapping) else None
        if disable_initial_deposit or not pool_id:
            return created

        try:
            (tid,) = await self._transfer_all(OperationKind.CREATE_SINGLE_SIDED_POOL, [(asset_a, reserve)], pool_id)
        except Exception as exc:
            logger.warning("pool %s created but initial reserve transfer failed: %s", pool_id, exc)
            raise InitialDepositFailed(pool_id, created, str(exc)) from exc
        confirmed = await self.confirm_initial_deposit(
            pool_id=pool_id, asset_a_transfer_id=tid, pool_owner_public_key=owner
        )
        return _chain(created, confirmed)

    async def confirm_initial_deposit(
        self, *, pool_id: str, asset_a_transfer_id: str, pool_owner_public_key: Optional[str] = None
    ) -> OperationOutcome:
        """Confirm a single-sided pool's initial deposit; the transfer is already at the pool."""
        pool_id = require_id(pool_id, name="pool_id")
        tid = require_id(asset_a_transfer_id, name="asset_a_transfer_id")
        owner = pool_owner_public_key or self.public_key
        values = {"poolOwnerPublicKey": owner, "lpIdentityPublicKey": pool_id, "assetASparkTransferId": tid}

        async def send(signed: SignedIntent) -> Any:
            return await self.api.confirm_initial_deposit(
                {
                    "poolId": pool_id,
                    "assetASparkTransferId": tid,
                    "poolOwnerPublicKey": owner,
                    **signed.request_fields(),
                }
            )

        return await self._settle(
            OperationKind.CONFIRM_INITIAL_DEPOSIT,
            lambda: self._signed_call(IntentKind.POOL_CONFIRM_INITIAL_DEPOSIT, values, send),
            lp=pool_id,
            transfer_ids=(tid,),
            accepted_key="confirmed",
        )

    # Hosts and integrators

    async def register_host(
        self, *, namespace: str, min_fee_bps: int, fee_recipient_public_key: Optional[str] = None
    ) -> OperationOutcome:
        namespace = require_id(namespace, name="namespace")
        if not isinstance(min_fee_bps, int) or isinstance(min_fee_bps, bool):
            raise InvalidRequest("min_fee_bps must be an int")
        parse_bps(min_fee_bps, name="min_fee_bps")
        recipient = fee_recipient_public_key or self.public_key

        await self.policy.ensure_ping_ok()
        values = {"namespace": namespace, "minFeeBps": min_fee_bps, "feeRecipientPublicKey": recipient}

        async def send(signed: SignedIntent) -> Any:
            return await self.api.register_host(
                {
                    "namespace": namespace,
                    "minFeeBps": min_fee_bps,
                    "feeRecipientPublicKey": recipient,
                    **signed.request_fields(),
                }
            )

        return await self._settle(
            OperationKind.REGISTER_HOST,
            lambda: self._signed_call(IntentKind.REGISTER_HOST, values, send),
            lp=recipient,
            accepted_key=None,
        )

    async def withdraw_host_fees(
        self, *, lp_identity_public_key: str, asset_b_amount: Any = None
    ) -> OperationOutcome:
        lp = require_id(lp_identity_public_key, name="lp_identity_public_key")
        amount = parse_amount(asset_b_amount if asset_b_amount is not None else 0, name="asset_b_amount", allow_zero=True)

        await self.policy.ensure_operation_allowed(ALLOW_WITHDRAW_FEES)
        values = {"hostPublicKey": self.public_key, "lpIdentityPublicKey": lp, "assetBAmount": amount}

        async def send(signed: SignedIntent) -> Any:
            return await self.api.withdraw_host_fees(
                {"lpIdentityPublicKey": lp, "assetBAmount": str(amount), **signed.request_fields()}
            )

        return await self._settle(
            OperationKind.WITHDRAW_HOST_FEES,
            lambda: self._signed_call(IntentKind.WITHDRAW_HOST_FEES, values, send),
            lp=lp,
        )

    async def withdraw_integrator_fees(
        self, *, lp_identity_public_key: str, asset_b_amount: Any = None
    ) -> OperationOutcome:
        lp = require_id(lp_identity_public_key, name="lp_identity_public_key")
        amount = parse_amount(asset_b_amount if asset_b_amount is not None else 0, name="asset_b_amount", allow_zero=True)

        await self.policy.ensure_operation_allowed(ALLOW_WITHDRAW_FEES)
        values = {"integratorPublicKey": self.public_key, "lpIdentityPublicKey": lp, "assetBAmount": amount}

        async def send(signed: SignedIntent) -> Any:
            return await self.api.withdraw_integrator_fees(
                {
                    "integratorPublicKey": self.public_key,
                    "lpIdentityPublicKey": lp,
                    "assetBAmount": str(amount),
                    **signed.request_fields(),
                }
            )

        return await self._settle(
            OperationKind.WITHDRAW_INTEGRATOR_FEES,
            lambda: self._signed_call(IntentKind.WITHDRAW_INTEGRATOR_FEES, values, send),
            lp=lp,
        )

    # Escrow

    async def create_escrow(
        self,
        *,
        asset_id: str,
        asset_amount: Any,
        recipients: Sequence[EscrowRecipient],
        claim_conditions: Any,
        abandon_host: Optional[str] = None,
        abandon_conditions: Any = None,
        auto_fund: bool = True,
    ) -> OperationOutcome:
        asset_id = require_id(asset_id, name="asset_id")
        amount = parse_amount(asset_amount, name="asset_amount")
        recips = validate_escrow_recipients(recipients, amount)
        if claim_conditions is None:
            raise InvalidRequest("claim_conditions is required")

        await self.policy.ensure_ping_ok()
        values = {
            "creatorPublicKey": self.public_key,
            "assetId": asset_id,
            "assetAmount": amount,
            "recipients": [
                {"recipientId": r.recipient_id, "amount": r.amount, "hasClaimed": False} for r in recips
            ],
            "claimConditions": claim_conditions,
            "abandonHost": abandon_host,
            "abandonConditions": abandon_conditions,
        }

        async def send(signed: SignedIntent) -> Any:
            body: Dict[str, Any] = {
                "creatorPublicKey": self.public_key,
                "assetId": asset_id,
                "assetAmount": str(amount),
                "recipients": [{"id": r.recipient_id, "amount": str(r.amount)} for r in recips],
                "claimConditions": claim_conditions,
            }
            if abandon_host is not None:
                body["abandonHost"] = abandon_host
            if abandon_conditions is not None:
                body["abandonConditions"] = abandon_conditions
            body.update(signed.request_fields())
            return await self.api.create_escrow(body)

        created = await self._settle(
            OperationKind.CREATE_ESCROW,
            lambda: self._signed_call(IntentKind.ESCROW_CREATE, values, send),
            lp=self.public_key,
            accepted_key=None,
        )
        body = created.response if isinstance(created.response, Mapping) else {}
        if not auto_fund or not body.get("escrowId") or not body.get("depositAddress"):
            return created
        funded = await self.fund_escrow(
            escrow_id=body["escrowId"],
            deposit_address=body["depositAddress"],
            asset_id=asset_id,
            asset_amount=amount,
        )
        return _chain(created, funded)

    async def fund_escrow(
        self, *, escrow_id: str, deposit_address: str, asset_id: str, asset_amount: Any
    ) -> OperationOutcome:
        escrow_id = require_id(escrow_id, name="escrow_id")
        deposit = require_id(deposit_address, name="deposit_address")
        amount = parse_amount(asset_amount, name="asset_amount")

        await self.policy.ensure_ping_ok()
        await self._check_balance([(asset_id, amount)])
        (tid,) = await self._transfer_all(OperationKind.FUND_ESCROW, [(asset_id, amount)], deposit)

        values = {"escrowId": escrow_id, "creatorPublicKey": self.public_key, "sparkTransferId": tid}

        async def send(signed: SignedIntent) -> Any:
            return await self.api.fund_escrow(
                {"escrowId": escrow_id, "sparkTransferId": tid, **signed.request_fields()}
            )

        return await self._settle(
            OperationKind.FUND_ESCROW,
            lambda: self._signed_call(IntentKind.ESCROW_FUND, values, send),
            lp=deposit,
            transfer_ids=(tid,),
        )

    async def claim_escrow(self, *, escrow_id: str) -> OperationOutcome:
        escrow_id = require_id(escrow_id, name="escrow_id")
        await self.policy.ensure_ping_ok()
        values = {"escrowId": escrow_id, "recipientPublicKey": self.public_key}

        async def send(signed: SignedIntent) -> Any:
            return await self.api.claim_escrow({"escrowId": escrow_id, **signed.request_fields()})

        return await self._settle(
            OperationKind.CLAIM_ESCROW,
            lambda: self._signed_call(IntentKind.ESCROW_CLAIM, values, send),
            lp=escrow_id,
        )

    # Clawback

    async def clawback(self, *, transfer_id: str, lp_identity_public_key: str) -> OperationOutcome:
        tid = require_id(transfer_id, name="transfer_id")
        lp = require_id(lp_identity_public_key, name="lp_identity_public_key")
        await self.policy.ensure_ping_ok()
        values = {"senderPublicKey": self.public_key, "sparkTransferId": tid, "lpIdentityPublicKey": lp}

        async def send(signed: SignedIntent) -> Any:
            return await self.api.clawback(
                {
                    "senderPublicKey": self.public_key,
                    "sparkTransferId": tid,
                    "lpIdentityPublicKey": lp,
                    **signed.request_fields(),
                }
            )

        return await self._settle(
            OperationKind.CLAWBACK,
            lambda: self._signed_call(IntentKind.CLAWBACK, values, send),
            lp=lp,
        )

    async def clawback_transfer(self, transfer_id: str, lp_identity_public_key: str) -> ClawbackAttemptResult:
        try:
            outcome = await self.clawback(transfer_id=transfer_id, lp_identity_public_key=lp_identity_public_key)
            if not outcome.accepted:
                raise ClawbackRejected(transfer_id, outcome.message or "rejected by gateway")
        except Exception as exc:
            logger.warning("clawback of %s failed: %s", transfer_id, exc)
            return ClawbackAttemptResult(transfer_id=transfer_id, success=False, error=str(exc))
        logger.info("clawed back %s", transfer_id)
        return ClawbackAttemptResult(transfer_id=transfer_id, success=True, response=outcome.response)

    async def clawback_many(self, transfer_ids: Sequence[str], lp_identity_public_key: str) -> List[ClawbackAttemptResult]:
        """One attempt per transfer, in order; failures do not stop the rest."""
        return [await self.clawback_transfer(tid, lp_identity_public_key) for tid in transfer_ids]

    async def check_clawback_eligibility(self, *, transfer_id: str) -> Any:
        tid = require_id(transfer_id, name="transfer_id")
        await self.policy.ensure_ping_ok()
        return await self._authed(lambda: self.api.check_clawback_eligibility({"sparkTransferId": tid}))

    async def list_clawbackable_transfers(self, *, limit: Optional[int] = None, offset: Optional[int] = None) -> Any:
        await self.policy.ensure_ping_ok()
        return await self._authed(
            lambda: self.api.list_clawbackable_transfers({"limit": limit, "offset": offset})
        )

    # Read-throughs

    async def get_pool(self, pool_id: str) -> Pool:
        raw = await self._authed(lambda: self.api.get_pool(require_id(pool_id, name="pool_id")))
        return Pool.from_dict(raw)

    async def list_pools(self, **query: Any) -> Any:
        return await self._authed(lambda: self.api.list_pools(query))

    async def get_lp_position(self, pool_id: str, provider_public_key: Optional[str] = None) -> Any:
        provider = provider_public_key or self.public_key
        return await self._authed(lambda: self.api.get_lp_position(pool_id, provider))

    async def get_escrow(self, escrow_id: str) -> Any:
        return await self._authed(lambda: self.api.get_escrow(escrow_id))

    async def get_host(self, namespace: str) -> Any:
        return await self._authed(lambda: self.api.get_host(namespace))

    async def get_pool_host_fees(self, *, host_namespace: str, pool_id: str) -> Any:
        return await self._authed(
            lambda: self.api.get_pool_host_fees({"hostNamespace": host_namespace, "poolId": pool_id})
        )

    async def get_host_fees(self, *, host_namespace: str) -> Any:
        return await self._authed(lambda: self.api.get_host_fees({"hostNamespace": host_namespace}))

    async def simulate_swap(self, request: Mapping[str, Any]) -> Any:
        await self.policy.ensure_ping_ok()
        return await self._authed(lambda: self.api.simulate_swap(request))

    async def simulate_route_swap(self, request: Mapping[str, Any]) -> Any:
        validate_route_hops(
            [
                RouteHop(h.get("poolId", ""), h.get("assetInAddress", ""), h.get("assetOutAddress", ""))
                for h in request.get("hops", [])
            ]
        )
        await self.policy.ensure_ping_ok()
        return await self._authed(lambda: self.api.simulate_route_swap(request))

    async def simulate_add_liquidity(self, request: Mapping[str, Any]) -> Any:
        await self.policy.ensure_ping_ok()
        return await self._authed(lambda: self.api.simulate_add_liquidity(request))

    async def simulate_remove_liquidity(self, request: Mapping[str, Any]) -> Any:
        await self.policy.ensure_ping_ok()
        return await self._authed(lambda: self.api.simulate_remove_liquidity(request))
