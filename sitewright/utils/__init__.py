"""Utility module for Sitewright."""

from sitewright.utils.rate_limiter import (
    RateLimiterManager,
    TokenBucket,
    TokenBucketConfig,
    TokenBucketMetrics,
)
from sitewright.utils.stats import RunStats, TierUsageStats

__all__ = [
    # Rate limiting
    "RateLimiterManager",
    "TokenBucket",
    "TokenBucketConfig",
    "TokenBucketMetrics",
    # Statistics
    "RunStats",
    "TierUsageStats",
]
