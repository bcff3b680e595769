from tokenguard.models.blacklisted_token import BlacklistedToken
from tokenguard.models.refresh_token import RefreshToken

__all__ = [
    "BlacklistedToken",
    "RefreshToken",
]
