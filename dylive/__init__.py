"""
dylive - Douyin live room lookup
Resolve share links, fetch users, rooms and categories, and watch handles go live.
"""

__version__ = "0.1.0"

from .config.settings_manager import Settings, SettingsManager
from .core.douyin_client import DouyinClient
from .core.errors import (
    CredentialRejectedError,
    DyliveError,
    InvalidPageDataError,
    NoRoomError,
    NotFoundError,
    NoUrlError,
    NoUserError,
    TooManyRedirectsError,
    TransportError,
)
from .core.models import Category, Room, User

__all__ = [
    "__version__",
    "Category",
    "CredentialRejectedError",
    "DouyinClient",
    "DyliveError",
    "InvalidPageDataError",
    "NoRoomError",
    "NoUrlError",
    "NoUserError",
    "NotFoundError",
    "Room",
    "Settings",
    "SettingsManager",
    "TooManyRedirectsError",
    "TransportError",
    "User",
]
