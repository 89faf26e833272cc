"""
Shared slowapi limiter and per-route limits.

Decorators need the limits at import time, so they are validated here
through RateLimitConfig rather than at application startup.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from paygate.core.config import load_rate_limits

_limits = load_rate_limits()

DEFAULT_RATE_LIMIT = _limits.default_rate_limit
TRANSACTION_RATE_LIMIT = _limits.transaction_rate_limit
WEBHOOK_RATE_LIMIT = _limits.webhook_rate_limit
MONITORING_RATE_LIMIT = _limits.monitoring_rate_limit

limiter = Limiter(key_func=get_remote_address, default_limits=[DEFAULT_RATE_LIMIT])
