"""
Per-route request quotas for the auth endpoints (slowapi, keyed by client IP).
Limits are enforced before the auth subsystem runs; RATE_LIMIT_ENABLED=false turns them off.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from authcore.config import settings

REGISTER_LIMIT = "5/minute"
LOGIN_LIMIT = "10/minute"
REFRESH_LIMIT = "20/minute"
FORGOT_PASSWORD_LIMIT = "3/hour"
RESET_PASSWORD_LIMIT = "5/hour"
VERIFY_EMAIL_LIMIT = "5/hour"
RESEND_VERIFICATION_LIMIT = "3/hour"

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200/minute"],
    enabled=settings.rate_limit_enabled,
)
