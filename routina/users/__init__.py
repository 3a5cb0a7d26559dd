"""
Users - account records, their store, and the ``/api/users`` resource.
"""

from .controllers import UserHandlers
from .errors import get_error_message
from .hashing import PasswordHasher
from .middleware import make_user_by_id
from .models import PUBLIC_FIELDS, UserRecord
from .repository import SQLiteUserRepository, UserRepository
from .routes import build_user_router

__all__ = [
    "UserHandlers",
    "get_error_message",
    "PasswordHasher",
    "make_user_by_id",
    "PUBLIC_FIELDS",
    "UserRecord",
    "SQLiteUserRepository",
    "UserRepository",
    "build_user_router",
]
