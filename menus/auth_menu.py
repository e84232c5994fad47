import secrets
import time
import urllib.parse
import webbrowser

import questionary

from spotify_api.auth import check_spotify_credentials
from spotify_api.errors import AuthRequiredError, CacheIOError
from spotify_api.token_manager import TokenManager
from utils.logger import log_error, log_info, log_success, log_warning


def parse_pasted_code(pasted: str, expected_state: str = "") -> str:
    """Return the authorization code from a pasted redirect URL or raw code.

    Raises AuthRequiredError when Spotify reported an error, no code is present,
    or the state does not match the one sent.
    """
    pasted = (pasted or "").strip()
    if not pasted:
        raise AuthRequiredError("No redirect URL / code provided.")

    if "://" not in pasted:
        # Assume user pasted the raw code.
        return pasted

    query = {k: v[0] for k, v in urllib.parse.parse_qs(urllib.parse.urlsplit(pasted).query).items()}

    if query.get("error"):
        raise AuthRequiredError(f"Spotify returned an error: {query['error']}")
    code = query.get("code", "")
    if not code:
        raise AuthRequiredError("Could not find an authorization code. Paste the full redirect URL that contains ?code=...")
    returned_state = query.get("state", "")
    if expected_state and returned_state and returned_state != expected_state:
        raise AuthRequiredError("OAuth state mismatch; paste the redirect URL from the most recent login attempt.")

    return code


def authenticate_interactively(token_manager: TokenManager, scopes=None, *, open_browser: bool = True) -> bool:
    """Print the authorize URL, read the code from stdin and exchange it.

    Returns True when a token pair was obtained and saved.
    """
    creds = check_spotify_credentials(token_manager.state.credentials)
    if not creds.get("ok"):
        log_warning(creds.get("message") or "Spotify credentials are incomplete.")
        return False

    state = secrets.token_urlsafe(16).rstrip("=")
    auth_url = token_manager.authorize_url(scopes, state=state)

    print("\n" + "=" * 72)
    print("SPOTIFY AUTHENTICATION")
    print("=" * 72)
    print("1) Open the URL below and approve access.")
    print("2) Spotify redirects you to REDIRECT_URI.")
    print("3) Paste the FULL redirect URL (or just the code) back here.")
    print("")
    print(auth_url)
    print("=" * 72)

    if open_browser and questionary.confirm("Open the authorize URL in your default browser?", default=True).ask():
        try:
            webbrowser.open(auth_url)
        except webbrowser.Error as e:
            log_warning(f"Could not open a browser: {e}")

    pasted = questionary.text("Enter the code (or the full redirect URL):").ask()

    try:
        code = parse_pasted_code(pasted, state)
        token_manager.complete_authorization_code_exchange(code)
    except (AuthRequiredError, CacheIOError) as e:
        log_error(f"Spotify authentication failed: {e}")
        return False

    expires_at = token_manager.token.expires_at_ms / 1000.0
    exp_str = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(expires_at))
    log_success(f"Spotify authentication successful. Token expires at: {exp_str}")
    log_info(f"Tokens saved to {token_manager.store.path}")
    return True
