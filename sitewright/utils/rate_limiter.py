"""Sliding-window token bucket limiter for per-model token quotas.

Providers meter usage in tokens per minute rather than in concurrent
requests. Each model tier gets a :class:`TokenBucket` that remembers what was
spent inside the current window and answers two questions before a request
goes out: does this fit right now, and if not, how long until it will.

Example usage:
    ```python
    from sitewright.utils.rate_limiter import RateLimiterManager, TokenBucketConfig

    limiter = RateLimiterManager({"high": TokenBucketConfig(max_tokens=30000)})

    if not limiter.can_process("high", 5000):
        await asyncio.sleep(limiter.wait_time_for_tokens("high", 5000))
    response = await call_model(...)
    limiter.consume_tokens("high", response.usage.total_tokens)
    ```

``can_process`` and ``consume_tokens`` are deliberately separate: tokens are
only charged after the downstream call succeeded, so two callers sharing a
bucket could both be admitted against the same headroom. The streaming
orchestrator processes chunks strictly one at a time, which keeps that
window closed.
"""

import math
import time
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from sitewright.config.settings import SitewrightSettings
from sitewright.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class TokenBucketConfig:
    """Configuration for a single token bucket.

    Attributes:
        max_tokens: Tokens allowed inside one window
        window_seconds: Length of the sliding window (default: 60.0)
        refill_rate: Tokens per second, informational only
    """

    max_tokens: int
    window_seconds: float = 60.0
    refill_rate: float | None = None

    def __post_init__(self) -> None:
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be positive")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if self.refill_rate is None:
            self.refill_rate = self.max_tokens / self.window_seconds


@dataclass
class UsageRecord:
    """Tokens charged at a point in time."""

    timestamp: float
    tokens: int


@dataclass
class TokenBucketMetrics:
    """Snapshot of a bucket for reporting.

    Attributes:
        tokens_used: Tokens charged inside the current window
        tokens_available: Headroom left inside the current window
        requests_queued: Callers currently waiting on this bucket
        errors_count: Quota rejections reported by the provider
        average_wait_time: Mean of the recorded waits, in seconds
    """

    tokens_used: int = 0
    tokens_available: int = 0
    requests_queued: int = 0
    errors_count: int = 0
    average_wait_time: float = 0.0


class TokenBucket:
    """Sliding-window token accounting for one model tier.

    Records older than the window are purged lazily whenever the bucket is
    queried. The clock is injectable so tests can drive time by hand.
    """

    def __init__(
        self,
        config: TokenBucketConfig,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.name = name
        self._clock = clock
        self._history: deque[UsageRecord] = deque()
        self._wait_times: list[float] = []
        self._requests_queued = 0
        self._errors_count = 0

    @property
    def max_tokens(self) -> int:
        return self.config.max_tokens

    @property
    def window_seconds(self) -> float:
        return self.config.window_seconds

    def _purge(self, now: float) -> None:
        cutoff = now - self.config.window_seconds
        while self._history and self._history[0].timestamp <= cutoff:
            self._history.popleft()

    @property
    def current_usage(self) -> int:
        """Tokens charged inside the current window."""
        self._purge(self._clock())
        return sum(record.tokens for record in self._history)

    @property
    def available_tokens(self) -> int:
        """Headroom left inside the current window (never negative)."""
        return max(0, self.config.max_tokens - self.current_usage)

    def can_process(self, tokens: int) -> bool:
        """Check whether ``tokens`` fit into the current window."""
        return self.current_usage + tokens <= self.config.max_tokens

    def consume_tokens(self, tokens: int) -> None:
        """Charge ``tokens`` at the current time.

        Advisory bookkeeping: this is not checked against the quota, call it
        after the request it accounts for has completed.
        """
        now = self._clock()
        self._purge(now)
        self._history.append(UsageRecord(timestamp=now, tokens=tokens))
        log.debug(
            "Tokens consumed",
            bucket=self.name,
            tokens=tokens,
            usage=self.current_usage,
            max_tokens=self.config.max_tokens,
        )

    def wait_time_for_tokens(self, tokens: int, record: bool = True) -> float:
        """Seconds until ``tokens`` would fit, 0.0 if they fit now.

        Walks the usage history oldest first until enough tokens would have
        expired to cover the excess. If no record frees enough (the request
        exceeds the whole quota), the full window is returned.

        Args:
            tokens: Size of the pending request
            record: Count the wait towards ``average_wait_time``. Pass False
                for lookups that will not actually be waited out.
        """
        now = self._clock()
        self._purge(now)
        usage = sum(entry.tokens for entry in self._history)
        if usage + tokens <= self.config.max_tokens:
            return 0.0

        excess = usage + tokens - self.config.max_tokens
        wait = self.config.window_seconds
        freed = 0
        for entry in self._history:
            freed += entry.tokens
            if freed >= excess:
                wait = max(0.0, entry.timestamp + self.config.window_seconds - now)
                break

        if record:
            self._wait_times.append(wait)
        log.debug("Wait computed", bucket=self.name, tokens=tokens, wait_seconds=round(wait, 3))
        return wait

    def record_rate_limit_error(self) -> None:
        """Count a quota rejection reported by the provider."""
        self._errors_count += 1
        log.warning("Provider quota exceeded", bucket=self.name, errors=self._errors_count)

    def increment_queued_requests(self) -> None:
        self._requests_queued += 1

    def decrement_queued_requests(self) -> None:
        self._requests_queued = max(0, self._requests_queued - 1)

    @property
    def errors_count(self) -> int:
        return self._errors_count

    @property
    def wait_times(self) -> list[float]:
        return list(self._wait_times)

    @property
    def metrics(self) -> TokenBucketMetrics:
        used = self.current_usage
        average_wait = sum(self._wait_times) / len(self._wait_times) if self._wait_times else 0.0
        return TokenBucketMetrics(
            tokens_used=used,
            tokens_available=max(0, self.config.max_tokens - used),
            requests_queued=self._requests_queued,
            errors_count=self._errors_count,
            average_wait_time=average_wait,
        )

    def reset(self) -> None:
        """Forget all usage, waits and counters."""
        self._history.clear()
        self._wait_times.clear()
        self._requests_queued = 0
        self._errors_count = 0


class RateLimiterManager:
    """Owns one :class:`TokenBucket` per model tier.

    Unknown tiers are never throttled: admission succeeds, waits are zero and
    the reported headroom is infinite.
    """

    def __init__(
        self,
        buckets: Mapping[str, TokenBucketConfig] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._buckets: dict[str, TokenBucket] = {}
        self._warned: set[str] = set()
        for tier, config in (buckets or {}).items():
            self.configure_bucket(tier, config)

    @classmethod
    def from_settings(
        cls,
        settings: SitewrightSettings,
        clock: Callable[[], float] = time.monotonic,
    ) -> "RateLimiterManager":
        """Build one bucket per configured tier."""
        return cls(
            {
                tier: TokenBucketConfig(
                    max_tokens=tier_config.max_tokens,
                    window_seconds=tier_config.window_seconds,
                )
                for tier, tier_config in settings.tiers.items()
            },
            clock=clock,
        )

    def configure_bucket(self, tier: str, config: TokenBucketConfig) -> TokenBucket:
        """Create or replace the bucket for ``tier``."""
        bucket = TokenBucket(config, name=tier, clock=self._clock)
        self._buckets[tier] = bucket
        log.debug(
            "Bucket configured",
            tier=tier,
            max_tokens=config.max_tokens,
            window_seconds=config.window_seconds,
        )
        return bucket

    def get_bucket(self, tier: str) -> TokenBucket | None:
        bucket = self._buckets.get(tier)
        if bucket is None and tier not in self._warned:
            self._warned.add(tier)
            log.warning("No rate limiter configured for tier, not throttling", tier=tier)
        return bucket

    @property
    def tiers(self) -> list[str]:
        return list(self._buckets)

    def can_process(self, tier: str, tokens: int) -> bool:
        bucket = self.get_bucket(tier)
        return True if bucket is None else bucket.can_process(tokens)

    def consume_tokens(self, tier: str, tokens: int) -> None:
        bucket = self.get_bucket(tier)
        if bucket is not None:
            bucket.consume_tokens(tokens)

    def wait_time_for_tokens(self, tier: str, tokens: int, record: bool = True) -> float:
        bucket = self.get_bucket(tier)
        return 0.0 if bucket is None else bucket.wait_time_for_tokens(tokens, record=record)

    def available_tokens(self, tier: str) -> float:
        bucket = self.get_bucket(tier)
        return math.inf if bucket is None else bucket.available_tokens

    def current_usage(self, tier: str) -> int:
        bucket = self.get_bucket(tier)
        return 0 if bucket is None else bucket.current_usage

    def record_rate_limit_error(self, tier: str) -> None:
        bucket = self.get_bucket(tier)
        if bucket is not None:
            bucket.record_rate_limit_error()

    def increment_queued_requests(self, tier: str) -> None:
        bucket = self.get_bucket(tier)
        if bucket is not None:
            bucket.increment_queued_requests()

    def decrement_queued_requests(self, tier: str) -> None:
        bucket = self.get_bucket(tier)
        if bucket is not None:
            bucket.decrement_queued_requests()

    def get_metrics(self, tier: str) -> TokenBucketMetrics | None:
        bucket = self.get_bucket(tier)
        return None if bucket is None else bucket.metrics

    def all_metrics(self) -> dict[str, TokenBucketMetrics]:
        return {tier: bucket.metrics for tier, bucket in self._buckets.items()}

    def reset_all(self) -> None:
        for bucket in self._buckets.values():
            bucket.reset()
