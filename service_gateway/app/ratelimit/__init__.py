"""
Rate limiting package for the Gateway.

Holds the fixed-window limiter and the middleware that applies it to every
inbound request, keyed by the caller's network origin.
"""

from .fixed_window import FixedWindowRateLimiter, RateLimitDecision, RateLimitMiddleware, RateLimitRecord

__all__ = [
    "FixedWindowRateLimiter",
    "RateLimitDecision",
    "RateLimitMiddleware",
    "RateLimitRecord",
]
