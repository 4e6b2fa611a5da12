from authcore.models.user import User
from authcore.models.refresh_token import RefreshToken
from authcore.models.token_blacklist import TokenBlacklist
from authcore.models.user_session import UserSession

__all__ = [
    "User",
    "RefreshToken",
    "TokenBlacklist",
    "UserSession",
]
