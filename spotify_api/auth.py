import json
import logging
import urllib.parse
from typing import Any, Dict, Iterable, Optional

import httpx

from .errors import RemoteFetchError
from .models import Credentials, TokenGrant

logger = logging.getLogger(__name__)

SPOTIFY_ACCOUNTS_BASE_URL = "https://accounts.spotify.com"
SPOTIFY_DASHBOARD_URL = "https://developer.spotify.com/dashboard"

# Needed by the playlist listing endpoints.
DEFAULT_SCOPES = ("playlist-read-private", "playlist-read-collaborative")

_CREDENTIAL_KEYS = (
    ("CLIENT_ID", "client_id"),
    ("CLIENT_SECRET", "client_secret"),
    ("REDIRECT_URI", "redirect_uri"),
)


def check_spotify_credentials(credentials: Credentials) -> Dict[str, Any]:
    """Report which .env keys the authorization flow is still missing."""

    missing = [key for key, attr in _CREDENTIAL_KEYS if not getattr(credentials, attr)]
    if not missing:
        return {"ok": True, "missing": [], "message": "Spotify credentials look OK."}

    redirect_uri = credentials.redirect_uri or "http://localhost:3000/"
    message = (
        f"Missing {', '.join(missing)} in .env.\n"
        f"Register an app at {SPOTIFY_DASHBOARD_URL}, add {redirect_uri} as its redirect URI "
        "(it must match exactly), then copy the client id and secret into .env."
    )
    return {"ok": False, "missing": missing, "message": message}


class SpotifyAuthClient:
    """Accounts-service client for the Authorization Code flow (client secret).

    Stateless: token bookkeeping belongs to TokenManager.
    """

    def __init__(
        self,
        credentials: Credentials,
        *,
        http: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        self.credentials = credentials
        self._http = http or httpx.Client(timeout=timeout, follow_redirects=False)

    def build_authorize_url(
        self,
        scopes: Optional[Iterable[str]] = None,
        *,
        state: Optional[str] = None,
        show_dialog: bool = False,
    ) -> str:
        if not self.credentials.redirect_uri:
            raise ValueError("Missing REDIRECT_URI")

        scope_list = list(scopes if scopes is not None else DEFAULT_SCOPES)
        scope_str = " ".join([str(s).strip() for s in scope_list if str(s).strip()])

        params: Dict[str, str] = {
            "client_id": self.credentials.client_id,
            "response_type": "code",
            "redirect_uri": self.credentials.redirect_uri,
            "show_dialog": "true" if show_dialog else "false",
        }
        if scope_str:
            params["scope"] = scope_str
        if state:
            params["state"] = str(state)

        return f"{SPOTIFY_ACCOUNTS_BASE_URL}/authorize?{urllib.parse.urlencode(params)}"

    def exchange_code(self, code: str) -> TokenGrant:
        payload = self._post_form(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.credentials.redirect_uri,
            }
        )
        grant = self._grant_from(payload, "exchange")
        if not grant.refresh_token:
            raise RemoteFetchError(f"Spotify token exchange returned no refresh token: {payload}", stage="token")
        return grant

    def refresh(self, refresh_token: str) -> TokenGrant:
        payload = self._post_form({"grant_type": "refresh_token", "refresh_token": refresh_token})
        return self._grant_from(payload, "refresh")

    @staticmethod
    def _grant_from(payload: Dict[str, Any], action: str) -> TokenGrant:
        if not payload.get("access_token"):
            raise RemoteFetchError(f"Spotify token {action} returned no access token: {payload}", stage="token")

        expires_in = payload.get("expires_in")
        if isinstance(expires_in, bool) or not isinstance(expires_in, int) or expires_in <= 0:
            raise RemoteFetchError(
                f"Spotify token {action} returned an invalid expires_in: {expires_in!r}", stage="token"
            )
        return TokenGrant.from_spotify_token_response(payload)

    def _post_form(self, form: Dict[str, Any]) -> Dict[str, Any]:
        data = {k: str(v) for k, v in (form or {}).items() if v is not None}
        url = f"{SPOTIFY_ACCOUNTS_BASE_URL}/api/token"

        try:
            resp = self._http.post(
                url,
                data=data,
                auth=(self.credentials.client_id, self.credentials.client_secret),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.TimeoutException as e:
            raise RemoteFetchError(f"Spotify token request timed out: {e}", stage="token", retryable=True) from e
        except httpx.HTTPError as e:
            raise RemoteFetchError(f"Spotify token request failed: {e}", stage="token") from e

        if resp.status_code >= 400:
            raise RemoteFetchError(
                f"Spotify token request failed (HTTP {resp.status_code}): {resp.text}",
                stage="token",
                status_code=resp.status_code,
            )

        try:
            payload = resp.json()
        except json.JSONDecodeError as e:
            raise RemoteFetchError(f"Spotify token response was not JSON: {resp.text}", stage="token") from e

        if not isinstance(payload, dict):
            raise RemoteFetchError(f"Spotify token response was not an object: {payload}", stage="token")

        return payload

    def close(self) -> None:
        self._http.close()
