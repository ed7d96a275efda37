"""Core configuration, error taxonomy and shared utilities."""

from dotenv import load_dotenv

from .config import Settings, get_settings
from .errors import (
    AccessDenied,
    ChangeNotFound,
    DocEditError,
    MalformedMarkers,
    ProviderTimeout,
    ProviderUnavailable,
    RetrievalFailed,
    SessionBusy,
)

load_dotenv()

__all__ = [
    "AccessDenied",
    "ChangeNotFound",
    "DocEditError",
    "MalformedMarkers",
    "ProviderTimeout",
    "ProviderUnavailable",
    "RetrievalFailed",
    "SessionBusy",
    "Settings",
    "get_settings",
]
