"""
Error taxonomy for the key pool.

Recoverable errors (RateLimited, QuotaExceeded) carry the KeyOutcome used to
put the offending key into cooldown. Everything else is terminal for the
calling operation.
"""

from typing import Optional

from .key_registry import KeyOutcome


class PoolError(Exception):
    """Base class for key pool errors"""


class PoolExhausted(PoolError):
    """No key configured, nothing to wait for"""


class RecoverableKeyError(PoolError):
    """Failure attributed to the key: cooldown + retry on another key"""
    outcome = KeyOutcome.RATE_LIMITED


class RateLimited(RecoverableKeyError):
    """HTTP 429 / rate limit"""
    outcome = KeyOutcome.RATE_LIMITED


class QuotaExceeded(RecoverableKeyError):
    """Quota exhausted for the key"""
    outcome = KeyOutcome.QUOTA_EXCEEDED


class MalformedResponse(PoolError):
    """Remote call succeeded but returned data that fails validation"""


class TransportError(PoolError):
    """Network / protocol failure, not the key's fault"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
