"""Rate limiting adapters.

A small abstraction so the service can start with an in-memory limiter and
later move to a shared store without changing the API layer.
"""

from dentserve.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from dentserve.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter

__all__ = ["AbstractRateLimiter", "InMemoryFixedWindowRateLimiter", "RateLimitResult"]
