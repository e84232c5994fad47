import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from .errors import RemoteFetchError
from .models import Page
from .token_manager import TokenManager

logger = logging.getLogger(__name__)

SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"

MAX_AUDIO_FEATURE_IDS = 100
MAX_ARTIST_IDS = 50


class SpotifyClient:
    """Thin Spotify Web API client.

    Every request asks the TokenManager for a valid token under its lock, so
    a refresh and the request that needs it are serialized. Requests carry a
    bounded timeout; a timeout is reported as a retryable RemoteFetchError.
    Nothing is retried here.
    """

    def __init__(
        self,
        token_manager: TokenManager,
        *,
        http: Optional[httpx.Client] = None,
        timeout: float = 30.0,
        base_url: str = SPOTIFY_API_BASE_URL,
    ):
        self.token_manager = token_manager
        self.base_url = base_url.rstrip("/")
        self._http = http or httpx.Client(timeout=timeout)

    def request_json(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        stage: str = "request",
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        query = {k: str(v) for k, v in (params or {}).items() if v is not None}

        with self.token_manager.lock:
            access_token = self.token_manager.ensure_valid_access_token()
            try:
                resp = self._http.request(
                    method.upper(),
                    url,
                    params=query,
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Accept": "application/json",
                    },
                )
            except httpx.TimeoutException as e:
                raise RemoteFetchError(f"Spotify API request timed out: {method} {path}", stage=stage, retryable=True) from e
            except httpx.HTTPError as e:
                raise RemoteFetchError(f"Spotify API request failed: {e}", stage=stage) from e

        if resp.status_code >= 400:
            raise RemoteFetchError(
                f"Spotify API error {resp.status_code}: {resp.text}",
                stage=stage,
                status_code=resp.status_code,
                retryable=resp.status_code == 429 or resp.status_code >= 500,
            )

        if not resp.content:
            return {}

        try:
            payload = resp.json()
        except json.JSONDecodeError as e:
            raise RemoteFetchError(
                f"Spotify API response was not JSON (status {resp.status_code}): {resp.text}",
                stage=stage,
            ) from e

        if not isinstance(payload, dict):
            raise RemoteFetchError(f"Spotify API response was not an object: {payload}", stage=stage)
        return payload

    @staticmethod
    def _page(payload: Dict[str, Any]) -> Page:
        items = payload.get("items") or []
        return Page(items=[x for x in items if isinstance(x, dict)], next=payload.get("next"))

    def current_user_id(self) -> str:
        me = self.request_json("GET", "/me", stage="me")
        user_id = str(me.get("id") or "").strip()
        if not user_id:
            raise RemoteFetchError("Spotify /me response has no id", stage="me")
        return user_id

    def list_playlists(self, user_id: str, offset: int, limit: int) -> Page:
        payload = self.request_json(
            "GET",
            f"/users/{user_id}/playlists",
            params={"limit": limit, "offset": offset},
            stage="playlists",
        )
        return self._page(payload)

    def list_tracks(self, playlist_id: str, offset: int, limit: int) -> Page:
        # Item shape: {added_at, track: {...}}
        payload = self.request_json(
            "GET",
            f"/playlists/{playlist_id}/tracks",
            params={"limit": limit, "offset": offset, "additional_types": "track"},
            stage="tracks",
        )
        return self._page(payload)

    def get_audio_features(self, track_ids: List[str]) -> List[Optional[Dict[str, Any]]]:
        """Return audio features index-aligned with ``track_ids`` (entries may be None)."""
        if len(track_ids) > MAX_AUDIO_FEATURE_IDS:
            raise ValueError(f"At most {MAX_AUDIO_FEATURE_IDS} track ids per audio-features request")
        if not track_ids:
            return []
        payload = self.request_json(
            "GET", "/audio-features", params={"ids": ",".join(track_ids)}, stage="audio_features"
        )
        feats = payload.get("audio_features") or []
        return [f if isinstance(f, dict) else None for f in feats]

    def get_artists(self, artist_ids: List[str]) -> List[Dict[str, Any]]:
        if len(artist_ids) > MAX_ARTIST_IDS:
            raise ValueError(f"At most {MAX_ARTIST_IDS} artist ids per artists request")
        if not artist_ids:
            return []
        payload = self.request_json("GET", "/artists", params={"ids": ",".join(artist_ids)}, stage="artists")
        return [a for a in payload.get("artists") or [] if isinstance(a, dict)]

    def close(self) -> None:
        self._http.close()
