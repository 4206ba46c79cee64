"""
Clawback candidates, per-transfer attempt results and the background
monitor that recovers stranded transfers.

A candidate exists only for a transfer that has irrevocably reached a
custody identity while settlement did not confirm consuming it. Attempts
are reported per transfer; a batch never succeeds or fails as a whole.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, List, Optional, Protocol, Sequence, Tuple

from .errors import RecoveryStrategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClawbackCandidate:
    transfer_id: str
    recovery_strategy: RecoveryStrategy
    lp_identity_public_key: str
    attempted: bool = False
    succeeded: bool = False
    error: Optional[str] = None

    def with_attempt(self, result: "ClawbackAttemptResult") -> "ClawbackCandidate":
        return replace(self, attempted=True, succeeded=result.success, error=result.error)


@dataclass(frozen=True)
class ClawbackAttemptResult:
    transfer_id: str
    success: bool
    response: Any = None
    error: Optional[str] = None


@dataclass(frozen=True)
class AutoClawbackSummary:
    attempted: bool
    total_transfers: int
    success_count: int
    failure_count: int
    results: Tuple[ClawbackAttemptResult, ...]
    recovered_transfer_ids: Tuple[str, ...]
    unrecovered_transfer_ids: Tuple[str, ...]

    @property
    def fully_recovered(self) -> bool:
        return self.attempted and self.failure_count == 0


def make_candidates(
    transfer_ids: Iterable[str], recovery: RecoveryStrategy, lp_identity_public_key: str
) -> Tuple[ClawbackCandidate, ...]:
    return tuple(
        ClawbackCandidate(
            transfer_id=tid,
            recovery_strategy=recovery,
            lp_identity_public_key=lp_identity_public_key,
        )
        for tid in transfer_ids
    )


def summarize(results: Sequence[ClawbackAttemptResult]) -> AutoClawbackSummary:
    ok = [r.transfer_id for r in results if r.success]
    bad = [r.transfer_id for r in results if not r.success]
    return AutoClawbackSummary(
        attempted=True,
        total_transfers=len(results),
        success_count=len(ok),
        failure_count=len(bad),
        results=tuple(results),
        recovered_transfer_ids=tuple(ok),
        unrecovered_transfer_ids=tuple(bad),
    )


def apply_results(
    candidates: Sequence[ClawbackCandidate], results: Sequence[ClawbackAttemptResult]
) -> Tuple[ClawbackCandidate, ...]:
    by_id = {r.transfer_id: r for r in results}
    return tuple(c.with_attempt(by_id[c.transfer_id]) if c.transfer_id in by_id else c for c in candidates)


class ClawbackClient(Protocol):
    async def list_clawbackable_transfers(self, *, limit: Optional[int] = None, offset: Optional[int] = None) -> Any:
        ...

    async def clawback_transfer(self, transfer_id: str, lp_identity_public_key: str) -> "ClawbackAttemptResult":
        """Attempt one clawback; failures are reported in the result, not raised."""
        ...


@dataclass
class ClawbackPollResult:
    transfers_found: int = 0
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    results: List[ClawbackAttemptResult] = field(default_factory=list)
    error: Optional[str] = None


class ClawbackMonitor:
    """
    Polls the gateway for clawbackable transfers and claws each one back.

    Transfers are processed one at a time. Polls never overlap: `poll_now()`
    while a poll is running waits for it and then runs its own. A transfer
    that was recovered is not attempted again; failed ones are retried on
    the next poll. Only the most recent `max_recovered` recovered ids are
    remembered.
    """

    def __init__(
        self,
        client: ClawbackClient,
        *,
        interval_s: float = 60.0,
        max_transfers_per_poll: int = 100,
        max_recovered: int = 10_000,
        on_result: Optional[Callable[[ClawbackAttemptResult], None]] = None,
        on_poll_complete: Optional[Callable[[ClawbackPollResult], None]] = None,
    ) -> None:
        if not isinstance(interval_s, (int, float)) or interval_s <= 0:
            raise ValueError("interval_s must be positive")
        if not isinstance(max_transfers_per_poll, int) or max_transfers_per_poll <= 0:
            raise ValueError("max_transfers_per_poll must be a positive int")
        if not isinstance(max_recovered, int) or isinstance(max_recovered, bool) or max_recovered <= 0:
            raise ValueError("max_recovered must be a positive int")
        self._client = client
        self._interval_s = float(interval_s)
        self._limit = max_transfers_per_poll
        self._on_result = on_result
        self._on_poll_complete = on_poll_complete
        self._lock = asyncio.Lock()
        self._stopping = asyncio.Event()
        self._task: Optional["asyncio.Task[None]"] = None
        self._max_recovered = max_recovered
        self._recovered: "OrderedDict[str, None]" = OrderedDict()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def recovered_transfer_ids(self) -> Tuple[str, ...]:
        return tuple(sorted(self._recovered))

    def start(self) -> None:
        if self.is_running:
            raise RuntimeError("clawback monitor already running")
        self._stopping.clear()
        self._task = asyncio.ensure_future(self._run())

    async def stop(self) -> None:
        """Stop polling; waits for an in-progress poll to finish."""
        self._stopping.set()
        task = self._task
        if task is not None:
            await task
        self._task = None

    async def poll_now(self) -> ClawbackPollResult:
        async with self._lock:
            return await self._poll()

    async def _run(self) -> None:
        while not self._stopping.is_set():
            await self.poll_now()
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._interval_s)
            except asyncio.TimeoutError:
                pass

    async def _poll(self) -> ClawbackPollResult:
        result = ClawbackPollResult()
        try:
            resp = await self._client.list_clawbackable_transfers(limit=self._limit)
        except Exception as exc:
            logger.warning("clawback poll failed: %s", exc)
            result.error = str(exc)
            self._report(result)
            return result

        transfers = resp.get("transfers", []) if isinstance(resp, dict) else []
        result.transfers_found = len(transfers)
        for transfer in transfers:
            if self._stopping.is_set():
                break
            tid = transfer.get("id")
            lp = transfer.get("lpIdentityPublicKey")
            if not tid or not lp or tid in self._recovered:
                continue
            result.attempted += 1
            attempt = await self._client.clawback_transfer(tid, lp)
            if attempt.success:
                result.succeeded += 1
                self._recovered[tid] = None
                while len(self._recovered) > self._max_recovered:
                    self._recovered.popitem(last=False)
            else:
                result.failed += 1
            result.results.append(attempt)
            if self._on_result is not None:
                self._on_result(attempt)
        self._report(result)
        return result

    def _report(self, result: ClawbackPollResult) -> None:
        if self._on_poll_complete is not None:
            self._on_poll_complete(result)
