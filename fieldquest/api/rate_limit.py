"""
Shared rate limiter.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from fieldquest.config import settings

limiter = Limiter(key_func=get_remote_address)

# Applied to endpoints that call the scan oracle
SCAN_RATE_LIMIT = f"{settings.rate_limit_requests}/minute"
