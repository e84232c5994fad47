"""Builds the analyzer service graph from a loaded config dict."""

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from config import get_config_value
from managers.snapshot_cache import SnapshotCache
from spotify_api.auth import SpotifyAuthClient
from spotify_api.client import SpotifyClient
from spotify_api.paginator import PaginatedFetcher
from spotify_api.rate_limit import FixedDelay
from spotify_api.sync_pipeline import BulkSyncPipeline
from spotify_api.token_manager import TokenManager
from spotify_api.token_store import TokenStore


@dataclass
class AnalyzerServices:
    config: Dict[str, Any]
    token_manager: TokenManager
    client: SpotifyClient
    pipeline: BulkSyncPipeline
    cache: SnapshotCache

    @property
    def scopes(self) -> list:
        return list(get_config_value(self.config, "spotify_scopes"))

    def close(self) -> None:
        self.client.close()
        self.token_manager.auth_client.close()


def build_services(
    config: Dict[str, Any],
    *,
    http: Optional[httpx.Client] = None,
    rate_limiter=None,
) -> AnalyzerServices:
    """Wire TokenStore -> TokenManager -> SpotifyClient -> pipeline -> cache.

    ``http`` replaces both HTTP clients (tests pass one backed by
    httpx.MockTransport); ``rate_limiter`` replaces the per-playlist delay.
    """
    timeout = float(get_config_value(config, "request_timeout_seconds"))

    store = TokenStore(str(get_config_value(config, "env_file")))
    state = store.load(redirect_uri=str(get_config_value(config, "spotify_redirect_uri")))

    auth_client = SpotifyAuthClient(state.credentials, http=http, timeout=timeout)
    token_manager = TokenManager(
        state,
        store=store,
        auth_client=auth_client,
        expiry_margin_ms=int(get_config_value(config, "token_expiry_margin_seconds")) * 1000,
    )
    client = SpotifyClient(token_manager, http=http, timeout=timeout)

    pipeline = BulkSyncPipeline(
        client,
        fetcher=PaginatedFetcher(int(get_config_value(config, "page_size"))),
        rate_limiter=rate_limiter or FixedDelay(float(get_config_value(config, "playlist_delay_seconds"))),
    )

    data_dir = str(get_config_value(config, "data_dir"))
    os.makedirs(data_dir, exist_ok=True)
    cache = SnapshotCache(
        pipeline,
        data_dir=data_dir,
        ttl_seconds=int(get_config_value(config, "snapshot_ttl_seconds")),
    )

    return AnalyzerServices(
        config=config,
        token_manager=token_manager,
        client=client,
        pipeline=pipeline,
        cache=cache,
    )
