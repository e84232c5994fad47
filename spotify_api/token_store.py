import logging
import os
import re
from typing import Dict, Optional

from dotenv import dotenv_values

from utils.fileio import atomic_write_text

from .errors import CacheIOError
from .models import ConfigState, Credentials, TokenState

logger = logging.getLogger(__name__)

DEFAULT_ENV_PATH = ".env"

KEY_CLIENT_ID = "CLIENT_ID"
KEY_CLIENT_SECRET = "CLIENT_SECRET"
KEY_REDIRECT_URI = "REDIRECT_URI"
KEY_ACCESS_TOKEN = "ACCESS_TOKEN"
KEY_REFRESH_TOKEN = "REFRESH_TOKEN"
KEY_EXPIRY = "EXPIRY"

TOKEN_KEYS = (KEY_ACCESS_TOKEN, KEY_REFRESH_TOKEN, KEY_EXPIRY)

_BARE_VALUE = re.compile(r"^[A-Za-z0-9_\-.:/@+=,]*$")


def _format_line(key: str, value: str) -> str:
    if _BARE_VALUE.match(value):
        return f"{key}={value}"
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'{key}="{escaped}"'


class TokenStore:
    """Flat key-value `.env` document holding credentials and token state.

    Keys this store does not manage are preserved on save. Writes go through
    a temp file and rename so a crash never leaves a truncated document.
    """

    def __init__(self, path: str = DEFAULT_ENV_PATH):
        self.path = path

    def _read_values(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            raw = dotenv_values(self.path, interpolate=False)
        except (OSError, UnicodeDecodeError) as e:
            raise CacheIOError(f"Failed to read {self.path}: {e}", path=self.path) from e
        return {k: v for k, v in raw.items() if v is not None}

    def load(self, *, redirect_uri: Optional[str] = None) -> ConfigState:
        """Read credentials and tokens.

        ``redirect_uri`` is used when the document does not define REDIRECT_URI.
        A token triple that violates the TokenState invariant is discarded with
        a warning, which leaves the manager unauthenticated.
        """
        values = self._read_values()

        credentials = Credentials(
            client_id=values.get(KEY_CLIENT_ID, "").strip(),
            client_secret=values.get(KEY_CLIENT_SECRET, "").strip(),
            redirect_uri=(values.get(KEY_REDIRECT_URI) or redirect_uri or "").strip(),
        )

        expiry_raw = (values.get(KEY_EXPIRY) or "").strip()
        expires_at_ms: Optional[int] = None
        if expiry_raw:
            try:
                expires_at_ms = int(expiry_raw)
            except ValueError as e:
                raise CacheIOError(f"{KEY_EXPIRY} in {self.path} is not an integer: {expiry_raw!r}", path=self.path) from e

        try:
            token = TokenState(
                access_token=values.get(KEY_ACCESS_TOKEN) or None,
                refresh_token=values.get(KEY_REFRESH_TOKEN) or None,
                expires_at_ms=expires_at_ms,
            )
        except ValueError:
            logger.warning("Incomplete token state in %s; ignoring stored access token", self.path)
            token = TokenState(refresh_token=values.get(KEY_REFRESH_TOKEN) or None)

        return ConfigState(credentials=credentials, token=token)

    def save(self, state: ConfigState) -> None:
        values = self._read_values()

        values[KEY_CLIENT_ID] = state.credentials.client_id
        values[KEY_CLIENT_SECRET] = state.credentials.client_secret
        if state.credentials.redirect_uri:
            values[KEY_REDIRECT_URI] = state.credentials.redirect_uri

        token = state.token
        managed = {
            KEY_ACCESS_TOKEN: token.access_token,
            KEY_REFRESH_TOKEN: token.refresh_token,
            KEY_EXPIRY: None if token.expires_at_ms is None else str(int(token.expires_at_ms)),
        }
        for key, value in managed.items():
            if value is None:
                values.pop(key, None)
            else:
                values[key] = value

        text = "\n".join(_format_line(k, v) for k, v in values.items())
        try:
            atomic_write_text(self.path, text + "\n")
        except OSError as e:
            raise CacheIOError(f"Failed to write {self.path}: {e}", path=self.path) from e
