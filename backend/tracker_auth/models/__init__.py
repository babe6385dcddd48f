from tracker_auth.models.refresh_token import RefreshToken
from tracker_auth.models.user import User

__all__ = ["RefreshToken", "User"]
