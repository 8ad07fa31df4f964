"""Tests for redesign run statistics module."""

from time import time

from sitewright.utils.stats import RunStats, TierUsageStats


class TestTierUsageStats:
    """Tests for TierUsageStats dataclass."""

    def test_default_values(self):
        """Test default initialization."""
        stats = TierUsageStats(tier="high")

        assert stats.tier == "high"
        assert stats.model == ""
        assert stats.chunks == 0
        assert stats.succeeded == 0
        assert stats.failed == 0
        assert stats.tokens == 0
        assert stats.total_duration == 0.0


class TestRunStats:
    """Tests for RunStats dataclass."""

    def test_default_values(self):
        """Test default initialization."""
        before = time()
        stats = RunStats()

        assert stats.mode == "single"
        assert stats.total_chunks == 0
        assert stats.total_tokens == 0
        assert stats.tier_usage == {}
        assert stats.end_time is None
        assert stats.start_time >= before

    def test_preservation_rate(self):
        """Test image preservation ratio."""
        assert RunStats().preservation_rate == 1.0
        assert RunStats(images_total=4, images_preserved=3).preservation_rate == 0.75

    def test_add_chunk_result(self):
        """Test recording successes and failures per tier."""
        stats = RunStats(mode="chunked")

        stats.add_chunk_result("high", success=True, tokens=1200, duration=3.0, model="gpt-5")
        stats.add_chunk_result("high", success=False, tokens=900, duration=1.5, model="gpt-5")
        stats.add_chunk_result("efficient", success=True, tokens=400, duration=1.0)

        assert stats.total_chunks == 3
        assert stats.succeeded_chunks == 2
        assert stats.failed_chunks == 1
        assert stats.total_tokens == 2500

        high = stats.tier_usage["high"]
        assert high.model == "gpt-5"
        assert high.chunks == 2
        assert high.succeeded == 1
        assert high.failed == 1
        assert high.tokens == 2100
        assert high.total_duration == 4.5
        assert stats.tier_usage["efficient"].model == ""

    def test_model_filled_in_later(self):
        """Test a tier first seen without a model picks one up later."""
        stats = RunStats()

        stats.add_chunk_result("efficient", success=False)
        stats.add_chunk_result("efficient", success=True, model="gpt-4o")

        assert stats.tier_usage["efficient"].model == "gpt-4o"

    def test_finish(self):
        """Test finishing records the end time and duration."""
        stats = RunStats(start_time=time() - 5)

        stats.finish()

        assert stats.end_time is not None
        assert stats.total_duration >= 4.9


class TestFormatSummary:
    """Tests for RunStats.format_summary."""

    def test_single_request(self):
        """Test the summary of a single request run."""
        stats = RunStats(images_total=4, images_preserved=4, total_duration=12.3)
        stats.add_chunk_result("high", success=True, tokens=15000, model="gpt-5")

        assert stats.format_summary().splitlines() == [
            "Complete: single request",
            "Total: 12s",
            "Images: 4/4 preserved (100%)",
            "Tokens: 15,000",
            "Tiers used: high:gpt-5(1)",
        ]

    def test_chunked_with_rate_limiting(self):
        """Test the summary of a chunked run that waited for quota."""
        stats = RunStats(
            mode="chunked",
            images_total=8,
            images_preserved=6,
            rate_limit_waits=2,
            quota_rejections=1,
            total_wait_seconds=61.26,
            total_duration=90,
        )
        stats.add_chunk_result("high", success=True, tokens=500, model="gpt-5")
        stats.add_chunk_result("efficient", success=False)

        lines = stats.format_summary().splitlines()

        assert lines[0] == "Complete: 1/2 chunks, 1 failed"
        assert "Images: 6/8 preserved (75%)" in lines
        assert "Rate limiting: 2 waits (61.3s), 1 rejections" in lines
        assert lines[-1] == "Tiers used: high:gpt-5(1), efficient:?(1)"

    def test_minimal(self):
        """Test optional lines are left out when there is nothing to report."""
        assert RunStats().format_summary() == "Complete: single request\nTotal: 0s"


class TestToDict:
    """Tests for RunStats.to_dict."""

    def test_to_dict(self):
        """Test JSON-ready structure."""
        stats = RunStats(
            mode="chunked",
            images_total=3,
            images_preserved=2,
            rate_limit_waits=1,
            total_wait_seconds=12.3456,
            total_duration=30.456,
        )
        stats.add_chunk_result("high", success=True, tokens=700, duration=2.3456, model="gpt-5")

        result = stats.to_dict()

        assert result["mode"] == "chunked"
        assert result["chunks"] == {"total": 1, "succeeded": 1, "failed": 0}
        assert result["images"] == {"total": 3, "preserved": 2, "preservation_rate": 0.6667}
        assert result["rate_limiting"] == {
            "waits": 1,
            "quota_rejections": 0,
            "total_wait_seconds": 12.35,
        }
        assert result["duration"] == 30.46
        assert result["tokens"] == 700
        assert result["tier_usage"]["high"] == {
            "model": "gpt-5",
            "chunks": 1,
            "succeeded": 1,
            "failed": 0,
            "tokens": 700,
            "duration": 2.35,
        }
