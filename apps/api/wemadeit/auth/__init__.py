from wemadeit.auth.models import User, UserSession

__all__ = [
    "User",
    "UserSession",
]
