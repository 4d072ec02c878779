"""
Daily request quota tracking.

A single authoritative counter per UTC day. Every read and mutation goes
through one asyncio.Lock, so concurrent orchestration runs cannot both see
the same remaining capacity and both consume it.

Usage:
    tracker = QuotaTracker(JsonFileStore(QUOTA_STORE_FILE))
    await tracker.load()

    result = await tracker.try_consume(1)
    if not result.ok:
        raise PipelineError(result.error)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from sumup.config import DAILY_REQUEST_CAP, NEAR_LIMIT_RATIO
from sumup.errors import InvalidInputError, PipelineError, RateLimitError
from sumup.logging_config import debug_log, info, warning
from sumup.storage import KeyValueStore

USED_KEY = "quota.used"
RESET_AT_KEY = "quota.reset_at"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def next_utc_midnight(now: datetime) -> datetime:
    """First UTC midnight strictly after now."""
    now = now.astimezone(timezone.utc)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight + timedelta(days=1)


@dataclass(frozen=True)
class RateLimitStatus:
    """
    Snapshot of the daily quota.

    Attributes:
        requests_used: Requests consumed since the last reset.
        daily_cap: Maximum requests per day.
        reset_at: Next reset instant (UTC midnight).
        near_limit_ratio: Fraction of the cap that counts as "near".
    """
    requests_used: int
    daily_cap: int
    reset_at: datetime
    near_limit_ratio: float = NEAR_LIMIT_RATIO

    @property
    def remaining(self) -> int:
        return max(0, self.daily_cap - self.requests_used)

    @property
    def is_near_limit(self) -> bool:
        return self.requests_used >= self.daily_cap * self.near_limit_ratio

    @property
    def is_over_limit(self) -> bool:
        return self.requests_used >= self.daily_cap

    def can_afford(self, requests: int) -> bool:
        """True if consuming ``requests`` more would stay within the cap."""
        return self.requests_used + requests <= self.daily_cap


@dataclass(frozen=True)
class ConsumeResult:
    """Outcome of try_consume: the post-call snapshot, plus an error on refusal."""
    ok: bool
    status: RateLimitStatus
    error: RateLimitError | None = None


class QuotaTracker:
    """
    Serialized daily request counter with lazy UTC-midnight reset.

    Args:
        store: Key-value store holding ``quota.used`` and ``quota.reset_at``.
        daily_cap: Requests allowed per day.
        near_limit_ratio: Fraction of the cap reported as near-limit.
        clock: Callable returning the current aware UTC datetime.
    """

    def __init__(
        self,
        store: KeyValueStore,
        daily_cap: int = DAILY_REQUEST_CAP,
        near_limit_ratio: float = NEAR_LIMIT_RATIO,
        clock: Callable[[], datetime] = utc_now,
    ):
        if daily_cap <= 0:
            raise ValueError(f"daily_cap must be positive, got {daily_cap}")
        self.store = store
        self.daily_cap = daily_cap
        self.near_limit_ratio = near_limit_ratio
        self._clock = clock
        self._lock = asyncio.Lock()
        self._used = 0
        self._reset_at = next_utc_midnight(clock())
        self._loaded = False

    async def load(self) -> RateLimitStatus:
        """Read the persisted counter. Called once at process start."""
        async with self._lock:
            await self._load_locked()
            await self._maybe_reset_locked()
            return self._snapshot()

    async def _load_locked(self) -> None:
        if self._loaded:
            return
        used = await self.store.get(USED_KEY, 0)
        reset_raw = await self.store.get(RESET_AT_KEY)
        try:
            self._used = max(0, int(used))
        except (TypeError, ValueError):
            warning(f"[QUOTA] Ignoring unreadable stored count {used!r}")
            self._used = 0
        if reset_raw:
            try:
                reset_at = datetime.fromisoformat(reset_raw)
                if reset_at.tzinfo is None:
                    reset_at = reset_at.replace(tzinfo=timezone.utc)
                self._reset_at = reset_at
            except (TypeError, ValueError):
                warning(f"[QUOTA] Ignoring unreadable reset timestamp {reset_raw!r}")
        self._loaded = True
        debug_log(f"[QUOTA] Loaded {self._used}/{self.daily_cap}, reset at {self._reset_at.isoformat()}")

    async def _maybe_reset_locked(self) -> None:
        now = self._clock()
        if now >= self._reset_at:
            self._used = 0
            self._reset_at = next_utc_midnight(now)
            info(f"[QUOTA] Daily quota reset; next reset at {self._reset_at.isoformat()}")
            await self._persist_locked()

    async def _persist_locked(self) -> None:
        await self.store.set(USED_KEY, self._used)
        await self.store.set(RESET_AT_KEY, self._reset_at.isoformat())

    def _snapshot(self) -> RateLimitStatus:
        return RateLimitStatus(
            requests_used=self._used,
            daily_cap=self.daily_cap,
            reset_at=self._reset_at,
            near_limit_ratio=self.near_limit_ratio,
        )

    async def status(self) -> RateLimitStatus:
        """Current snapshot, resetting first if the reset instant has passed."""
        async with self._lock:
            await self._load_locked()
            await self._maybe_reset_locked()
            return self._snapshot()

    async def try_consume(self, n: int = 1) -> ConsumeResult:
        """
        Atomically consume n requests if they fit under the cap.

        Returns:
            ConsumeResult(ok=True) with the updated snapshot, or
            ConsumeResult(ok=False, error=RateLimitError) with no mutation.

        Raises:
            PipelineError(InvalidInputError): if n is not positive.
        """
        if n <= 0:
            raise PipelineError(InvalidInputError(f"cannot consume {n} requests"))

        async with self._lock:
            await self._load_locked()
            await self._maybe_reset_locked()
            if self._used + n > self.daily_cap:
                snapshot = self._snapshot()
                debug_log(f"[QUOTA] Refused {n}: {self._used}/{self.daily_cap} used")
                return ConsumeResult(
                    ok=False,
                    status=snapshot,
                    error=RateLimitError(reset_time=self._reset_at, detail=f"{self._used}/{self.daily_cap} used"),
                )
            self._used += n
            await self._persist_locked()
            snapshot = self._snapshot()

        if snapshot.is_near_limit:
            warning(f"[QUOTA] Near daily limit: {snapshot.requests_used}/{snapshot.daily_cap}")
        else:
            debug_log(f"[QUOTA] Consumed {n}: {snapshot.requests_used}/{snapshot.daily_cap}")
        return ConsumeResult(ok=True, status=snapshot)

    async def release(self, n: int = 1) -> RateLimitStatus:
        """
        Return n previously consumed requests (never below zero).

        Used when a reserved request permanently fails, so the counter only
        reflects requests that produced a result.
        """
        async with self._lock:
            await self._load_locked()
            await self._maybe_reset_locked()
            self._used = max(0, self._used - max(0, n))
            await self._persist_locked()
            debug_log(f"[QUOTA] Released {n}: {self._used}/{self.daily_cap}")
            return self._snapshot()
