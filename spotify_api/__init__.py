"""Spotify Web API integration: OAuth token lifecycle and bulk playlist sync."""

from .auth import SpotifyAuthClient
from .client import SpotifyClient
from .errors import (
    AnalyzerError,
    AuthRefreshError,
    AuthRequiredError,
    CacheIOError,
    RemoteFetchError,
    SyncFailedError,
)
from .paginator import PaginatedFetcher
from .sync_pipeline import BulkSyncPipeline
from .token_manager import TokenManager
from .token_store import TokenStore

__all__ = [
    "AnalyzerError",
    "AuthRefreshError",
    "AuthRequiredError",
    "BulkSyncPipeline",
    "CacheIOError",
    "PaginatedFetcher",
    "RemoteFetchError",
    "SpotifyAuthClient",
    "SpotifyClient",
    "SyncFailedError",
    "TokenManager",
    "TokenStore",
]
