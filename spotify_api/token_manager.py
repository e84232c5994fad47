import logging
import threading
import time
from typing import Callable, Iterable, Optional

from .auth import SpotifyAuthClient
from .errors import AuthRefreshError, AuthRequiredError, RemoteFetchError
from .models import ConfigState, TokenState
from .token_store import TokenStore

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class TokenManager:
    """Owns the OAuth token state machine.

    States: unauthenticated -> authenticated -> (expired) -> refreshing ->
    authenticated. Every successful transition is saved to the TokenStore
    before the method returns.

    ``lock`` is re-entrant. Hold it around ensure_valid_access_token() and the
    request that uses the token so concurrent syncs never race on a refresh.
    """

    def __init__(
        self,
        state: ConfigState,
        *,
        store: TokenStore,
        auth_client: SpotifyAuthClient,
        clock: Callable[[], int] = now_ms,
        expiry_margin_ms: int = 0,
    ):
        self._state = state
        self.store = store
        self.auth_client = auth_client
        self.clock = clock
        self.expiry_margin_ms = int(expiry_margin_ms)
        self.lock = threading.RLock()

    @property
    def state(self) -> ConfigState:
        return self._state

    @property
    def token(self) -> TokenState:
        return self._state.token

    @property
    def is_authenticated(self) -> bool:
        return self._state.token.has_access_token

    def authorize_url(self, scopes: Optional[Iterable[str]] = None, *, state: Optional[str] = None) -> str:
        return self.auth_client.build_authorize_url(scopes, state=state)

    def _commit(self, token: TokenState) -> None:
        new_state = self._state.with_token(token)
        self.store.save(new_state)
        self._state = new_state

    def complete_authorization_code_exchange(self, code: str) -> str:
        """Trade a one-time authorization code for a token pair and persist it."""
        code = str(code or "").strip()
        if not code:
            raise AuthRequiredError("Authorization code is empty")

        with self.lock:
            call_time = self.clock()
            try:
                grant = self.auth_client.exchange_code(code)
            except RemoteFetchError as e:
                raise AuthRequiredError(f"Authorization code exchange failed: {e}") from e

            self._commit(
                TokenState(
                    access_token=grant.access_token,
                    refresh_token=grant.refresh_token,
                    expires_at_ms=call_time + grant.expires_in * 1000,
                )
            )
            logger.info("Authorization complete; token expires at %d", self.token.expires_at_ms)
            return grant.access_token

    def ensure_valid_access_token(self) -> str:
        with self.lock:
            token = self._state.token
            if not token.refresh_token:
                raise AuthRequiredError("No Spotify refresh token stored; run the authorization flow first.")

            if token.has_access_token and not token.is_expired(self.clock(), margin_ms=self.expiry_margin_ms):
                return token.access_token

            return self._refresh(token)

    def _refresh(self, token: TokenState) -> str:
        logger.info("Refreshing Spotify access token...")
        call_time = self.clock()
        try:
            grant = self.auth_client.refresh(token.refresh_token)
        except RemoteFetchError as e:
            # Stale token is kept; clearing it is left to an explicit re-auth.
            logger.error("Token refresh rejected: %s", e)
            raise AuthRefreshError(f"Spotify token refresh failed: {e}") from e

        self._commit(
            TokenState(
                access_token=grant.access_token,
                refresh_token=grant.refresh_token or token.refresh_token,
                expires_at_ms=call_time + grant.expires_in * 1000,
            )
        )
        return grant.access_token
