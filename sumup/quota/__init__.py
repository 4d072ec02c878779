"""
Quota Package

Rolling daily request counter consumed by the strategy selector and the
request orchestrator.
"""

from sumup.quota.quota_tracker import (
    ConsumeResult,
    QuotaTracker,
    RateLimitStatus,
    next_utc_midnight,
)

__all__ = ['QuotaTracker', 'RateLimitStatus', 'ConsumeResult', 'next_utc_midnight']
