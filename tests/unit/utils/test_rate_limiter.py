"""Tests for the sliding-window token bucket limiter."""

import math
import random

import pytest

from sitewright.config.settings import SitewrightSettings, TierConfig
from sitewright.utils.rate_limiter import (
    RateLimiterManager,
    TokenBucket,
    TokenBucketConfig,
    TokenBucketMetrics,
)
from tests.conftest import FakeClock


class TestTokenBucketConfig:
    """Tests for TokenBucketConfig dataclass."""

    def test_default_window(self):
        """Test the window defaults to one minute."""
        config = TokenBucketConfig(max_tokens=1000)
        assert config.window_seconds == 60.0

    def test_refill_rate_derived(self):
        """Test refill rate defaults to max_tokens per window second."""
        config = TokenBucketConfig(max_tokens=600, window_seconds=60.0)
        assert config.refill_rate == 10.0

    def test_explicit_refill_rate_kept(self):
        """Test an explicit refill rate is not overwritten."""
        config = TokenBucketConfig(max_tokens=600, refill_rate=3.0)
        assert config.refill_rate == 3.0

    @pytest.mark.parametrize("max_tokens", [0, -5])
    def test_rejects_non_positive_max_tokens(self, max_tokens):
        """Test max_tokens must be positive."""
        with pytest.raises(ValueError, match="max_tokens"):
            TokenBucketConfig(max_tokens=max_tokens)

    def test_rejects_non_positive_window(self):
        """Test window_seconds must be positive."""
        with pytest.raises(ValueError, match="window_seconds"):
            TokenBucketConfig(max_tokens=10, window_seconds=0)


class TestTokenBucket:
    """Tests for TokenBucket."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def bucket(self, clock):
        return TokenBucket(TokenBucketConfig(max_tokens=1000, window_seconds=60.0), clock=clock)

    def test_empty_bucket(self, bucket):
        """Test a fresh bucket has full headroom."""
        assert bucket.current_usage == 0
        assert bucket.available_tokens == 1000
        assert bucket.can_process(1000)
        assert not bucket.can_process(1001)

    def test_quota_example(self, bucket, clock):
        """Test the one-minute quota example from start to finish."""
        bucket.consume_tokens(900)

        assert not bucket.can_process(200)
        assert bucket.wait_time_for_tokens(200) == pytest.approx(60.0)

        clock.now = 60.001
        assert bucket.can_process(200)
        assert bucket.wait_time_for_tokens(200) == 0.0

    def test_record_at_window_edge_is_purged(self, bucket, clock):
        """Test a record exactly one window old no longer counts."""
        bucket.consume_tokens(500)
        clock.now = 60.0
        assert bucket.current_usage == 0

    def test_usage_inside_window(self, bucket, clock):
        """Test records inside the window are summed."""
        bucket.consume_tokens(300)
        clock.advance(10)
        bucket.consume_tokens(200)
        assert bucket.current_usage == 500
        assert bucket.available_tokens == 500

    def test_available_never_negative(self, bucket):
        """Test over-consumption clamps headroom at zero."""
        bucket.consume_tokens(1500)
        assert bucket.available_tokens == 0

    def test_wait_uses_oldest_records_first(self, bucket, clock):
        """Test the wait ends when enough old records have expired."""
        bucket.consume_tokens(400)  # t=0
        clock.advance(20)
        bucket.consume_tokens(400)  # t=20
        clock.advance(10)  # now t=30, usage 800

        # Needs 300 more: the t=0 record frees enough at t=60
        assert bucket.wait_time_for_tokens(500) == pytest.approx(30.0)
        # Needs 700 more: both records must expire, the second at t=80
        assert bucket.wait_time_for_tokens(900) == pytest.approx(50.0)

    def test_wait_for_request_above_quota(self, bucket):
        """Test a request larger than the quota waits a full window."""
        assert bucket.wait_time_for_tokens(5000) == 60.0

    def test_wait_times_recorded(self, bucket):
        """Test every non-zero wait is remembered for metrics."""
        bucket.consume_tokens(900)
        bucket.wait_time_for_tokens(200)
        bucket.wait_time_for_tokens(50)  # fits, not recorded
        assert bucket.wait_times == [pytest.approx(60.0)]

    def test_lookup_without_recording(self, bucket):
        """Test informational lookups leave the wait metrics alone."""
        bucket.consume_tokens(900)

        assert bucket.wait_time_for_tokens(200, record=False) == pytest.approx(60.0)
        assert bucket.wait_times == []
        assert bucket.metrics.average_wait_time == 0.0

    def test_errors_and_queue(self, bucket):
        """Test error and queued-request counters."""
        bucket.record_rate_limit_error()
        bucket.increment_queued_requests()
        bucket.increment_queued_requests()
        bucket.decrement_queued_requests()

        metrics = bucket.metrics
        assert metrics.errors_count == 1
        assert metrics.requests_queued == 1

    def test_queue_never_negative(self, bucket):
        """Test decrementing an empty queue stays at zero."""
        bucket.decrement_queued_requests()
        assert bucket.metrics.requests_queued == 0

    def test_metrics_snapshot(self, bucket):
        """Test metrics reflect usage and waits."""
        bucket.consume_tokens(900)
        bucket.wait_time_for_tokens(200)

        metrics = bucket.metrics
        assert isinstance(metrics, TokenBucketMetrics)
        assert metrics.tokens_used == 900
        assert metrics.tokens_available == 100
        assert metrics.average_wait_time == pytest.approx(60.0)

    def test_reset(self, bucket):
        """Test reset forgets everything."""
        bucket.consume_tokens(900)
        bucket.record_rate_limit_error()
        bucket.wait_time_for_tokens(500)

        bucket.reset()

        assert bucket.current_usage == 0
        assert bucket.errors_count == 0
        assert bucket.wait_times == []


class TestTokenBucketRandomHistories:
    """Admission and wait bounds over seeded random usage histories."""

    WINDOW = 60.0
    MAX_TOKENS = 1000

    def _build(self, rng: random.Random) -> tuple[TokenBucket, FakeClock, list[tuple[float, int]]]:
        clock = FakeClock()
        bucket = TokenBucket(
            TokenBucketConfig(max_tokens=self.MAX_TOKENS, window_seconds=self.WINDOW),
            clock=clock,
        )
        history = []
        for _ in range(rng.randint(1, 12)):
            clock.advance(rng.uniform(0.0, 20.0))
            tokens = rng.randint(1, 400)
            bucket.consume_tokens(tokens)
            history.append((clock.now, tokens))
        clock.advance(rng.uniform(0.0, 30.0))
        return bucket, clock, history

    def _usage_at(self, history: list[tuple[float, int]], now: float) -> int:
        return sum(tokens for timestamp, tokens in history if timestamp > now - self.WINDOW)

    @pytest.mark.parametrize("seed", range(20))
    def test_admission_never_exceeds_quota(self, seed):
        """Test admitted requests always fit the tokens still inside the window."""
        rng = random.Random(seed)
        for _ in range(10):
            bucket, clock, history = self._build(rng)
            request = rng.randint(1, self.MAX_TOKENS)

            usage = self._usage_at(history, clock.now)
            assert bucket.current_usage == usage
            assert bucket.can_process(request) == (usage + request <= self.MAX_TOKENS)

    @pytest.mark.parametrize("seed", range(20))
    def test_wait_is_tight(self, seed):
        """Test the computed wait is within one window and is exactly long enough."""
        rng = random.Random(seed)
        for _ in range(10):
            bucket, clock, history = self._build(rng)
            request = rng.randint(1, self.MAX_TOKENS)
            start = clock.now

            wait = bucket.wait_time_for_tokens(request)

            assert 0.0 <= wait <= self.WINDOW
            if bucket.can_process(request):
                assert wait == 0.0
                continue
            assert wait > 0.0
            if wait > 0.01:
                clock.now = start + wait - 0.001
                assert not bucket.can_process(request)
            clock.now = start + wait + 1e-6
            assert bucket.can_process(request)


class TestRateLimiterManager:
    """Tests for RateLimiterManager."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def manager(self, clock):
        return RateLimiterManager(
            {
                "high": TokenBucketConfig(max_tokens=1000),
                "efficient": TokenBucketConfig(max_tokens=5000),
            },
            clock=clock,
        )

    def test_tiers(self, manager):
        """Test configured tiers are listed."""
        assert manager.tiers == ["high", "efficient"]

    def test_tiers_are_independent(self, manager):
        """Test consuming on one tier leaves the other untouched."""
        manager.consume_tokens("high", 900)
        assert not manager.can_process("high", 200)
        assert manager.can_process("efficient", 4000)
        assert manager.current_usage("efficient") == 0

    def test_unknown_tier_is_not_throttled(self, manager):
        """Test an unknown tier is always admitted."""
        assert manager.can_process("turbo", 10**9)
        assert manager.wait_time_for_tokens("turbo", 10**9) == 0.0
        assert manager.available_tokens("turbo") == math.inf
        assert manager.current_usage("turbo") == 0
        assert manager.get_metrics("turbo") is None

    def test_unknown_tier_operations_are_noops(self, manager):
        """Test bookkeeping on an unknown tier does not fail."""
        manager.consume_tokens("turbo", 100)
        manager.record_rate_limit_error("turbo")
        manager.increment_queued_requests("turbo")
        manager.decrement_queued_requests("turbo")
        assert "turbo" not in manager.tiers

    def test_wait_delegates_to_bucket(self, manager, clock):
        """Test waits come from the tier's bucket."""
        manager.consume_tokens("high", 900)
        clock.advance(15)
        assert manager.wait_time_for_tokens("high", 200) == pytest.approx(45.0)

    def test_configure_bucket_replaces(self, manager):
        """Test reconfiguring a tier starts from a fresh bucket."""
        manager.consume_tokens("high", 900)
        manager.configure_bucket("high", TokenBucketConfig(max_tokens=2000))
        assert manager.available_tokens("high") == 2000

    def test_all_metrics(self, manager):
        """Test metrics are reported per tier."""
        manager.consume_tokens("high", 100)
        manager.record_rate_limit_error("efficient")

        metrics = manager.all_metrics()
        assert metrics["high"].tokens_used == 100
        assert metrics["efficient"].errors_count == 1

    def test_reset_all(self, manager):
        """Test reset_all clears every bucket."""
        manager.consume_tokens("high", 500)
        manager.consume_tokens("efficient", 500)
        manager.reset_all()
        assert manager.current_usage("high") == 0
        assert manager.current_usage("efficient") == 0

    def test_from_settings(self, clock):
        """Test one bucket is built per configured tier."""
        settings = SitewrightSettings(
            tiers={
                "high": TierConfig(model="m-high", max_tokens=30000),
                "efficient": TierConfig(model="m-eff", max_tokens=800000, window_seconds=30),
            }
        )
        manager = RateLimiterManager.from_settings(settings, clock=clock)

        assert manager.available_tokens("high") == 30000
        assert manager.get_bucket("efficient").window_seconds == 30
