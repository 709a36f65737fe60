"""
Request admission for the search endpoint: per-IP rate limiting and the
App Check access gate.
"""

from .rate_limiter import RateLimiter, RateLimitEntry
from .access_gate import AccessGate, AccessDecision, AccessOutcome

__all__ = [
    'RateLimiter',
    'RateLimitEntry',
    'AccessGate',
    'AccessDecision',
    'AccessOutcome',
]
