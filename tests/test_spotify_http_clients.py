import base64
import os
import sys
import tempfile
import unittest
from pathlib import Path
from urllib.parse import parse_qs, urlparse

import httpx

# Ensure local imports work when running this file directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from spotify_api.auth import SpotifyAuthClient, check_spotify_credentials
from spotify_api.client import SpotifyClient
from spotify_api.errors import AuthRefreshError, RemoteFetchError
from spotify_api.models import ConfigState, Credentials, TokenState
from spotify_api.token_manager import TokenManager
from spotify_api.token_store import TokenStore
from tests.fakes import FakeClock
from tests.spotify_mock import MockSpotify

CREDS = Credentials(client_id="cid", client_secret="secret", redirect_uri="http://localhost:3000/")


class TestSpotifyAuthClient(unittest.TestCase):
    def test_authorize_url(self):
        auth = SpotifyAuthClient(CREDS, http=httpx.Client(transport=MockSpotify().transport()))
        url = auth.build_authorize_url(["playlist-read-private", "playlist-read-collaborative"], state="xyz")
        parsed = urlparse(url)
        qs = parse_qs(parsed.query)
        self.assertEqual(parsed.netloc, "accounts.spotify.com")
        self.assertEqual(qs["response_type"], ["code"])
        self.assertEqual(qs["client_id"], ["cid"])
        self.assertEqual(qs["redirect_uri"], ["http://localhost:3000/"])
        self.assertEqual(qs["scope"], ["playlist-read-private playlist-read-collaborative"])
        self.assertEqual(qs["state"], ["xyz"])

    def test_exchange_code_uses_basic_auth(self):
        mock = MockSpotify(expires_in=1800)
        auth = SpotifyAuthClient(CREDS, http=httpx.Client(transport=mock.transport()))
        grant = auth.exchange_code("ABC123")

        self.assertEqual(grant.access_token, "access-ABC123")
        self.assertEqual(grant.refresh_token, "refresh-ABC123")
        self.assertEqual(grant.expires_in, 1800)

        sent = mock.requests[0].headers["Authorization"]
        self.assertEqual(sent, "Basic " + base64.b64encode(b"cid:secret").decode("ascii"))

    def test_rejected_refresh_is_remote_fetch_error(self):
        auth = SpotifyAuthClient(CREDS, http=httpx.Client(transport=MockSpotify(reject_refresh=True).transport()))
        with self.assertRaises(RemoteFetchError) as ctx:
            auth.refresh("rt")
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.stage, "token")

    def test_timeout_is_retryable(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        auth = SpotifyAuthClient(CREDS, http=httpx.Client(transport=httpx.MockTransport(handler)))
        with self.assertRaises(RemoteFetchError) as ctx:
            auth.refresh("rt")
        self.assertTrue(ctx.exception.retryable)

    def test_credential_check_reports_missing_keys(self):
        self.assertTrue(check_spotify_credentials(CREDS)["ok"])
        status = check_spotify_credentials(Credentials("", "", ""))
        self.assertFalse(status["ok"])
        self.assertEqual(status["missing"], ["CLIENT_ID", "CLIENT_SECRET", "REDIRECT_URI"])
        self.assertIn("developer.spotify.com/dashboard", status["message"])

    def test_grant_without_usable_expiry_is_remote_fetch_error(self):
        for expires_in in (None, 0, -5, "soon", True):
            with self.subTest(expires_in=expires_in):
                body = {"access_token": "at", "refresh_token": "rt"}
                if expires_in is not None:
                    body["expires_in"] = expires_in
                transport = httpx.MockTransport(lambda request, body=body: httpx.Response(200, json=body))
                auth = SpotifyAuthClient(CREDS, http=httpx.Client(transport=transport))

                for call in (auth.refresh, auth.exchange_code):
                    with self.assertRaises(RemoteFetchError) as ctx:
                        call("x")
                    self.assertEqual(ctx.exception.stage, "token")


class TestSpotifyClient(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.store = TokenStore(os.path.join(self._tmp.name, ".env"))
        self.clock = FakeClock()

    def tearDown(self):
        self._tmp.cleanup()

    def make_client(self, mock: MockSpotify, token: TokenState) -> SpotifyClient:
        http = httpx.Client(transport=mock.transport())
        tm = TokenManager(
            ConfigState(CREDS, token),
            store=self.store,
            auth_client=SpotifyAuthClient(CREDS, http=http),
            clock=self.clock,
        )
        return SpotifyClient(tm, http=http)

    def test_pages_and_batches(self):
        mock = MockSpotify()
        client = self.make_client(mock, TokenState("at", "rt", self.clock.now_ms + 60_000))

        playlists = client.list_playlists("u1", 0, 50)
        self.assertEqual([p["id"] for p in playlists.items], ["p1", "p2"])
        self.assertFalse(playlists.has_next)

        tracks = client.list_tracks("p1", 0, 50)
        self.assertEqual(len(tracks.items), 2)

        feats = client.get_audio_features(["t1", "t2"])
        self.assertEqual([f["id"] for f in feats], ["t1", "t2"])
        self.assertEqual([a["id"] for a in client.get_artists(["a1", "a2"])], ["a1", "a2"])
        self.assertEqual(client.current_user_id(), "u1")

        first = mock.requests[0]
        self.assertEqual(first.headers["Authorization"], "Bearer at")
        self.assertEqual(first.url.params["limit"], "50")
        self.assertEqual(first.url.params["offset"], "0")

    def test_expired_token_refreshed_before_request(self):
        mock = MockSpotify()
        client = self.make_client(mock, TokenState("stale", "rt", self.clock.now_ms - 1))

        client.list_playlists("u1", 0, 50)

        self.assertEqual(mock.paths(), ["/api/token", "/v1/users/u1/playlists"])
        self.assertEqual(mock.requests[1].headers["Authorization"], "Bearer refreshed")
        self.assertEqual(self.store.load().token.access_token, "refreshed")

    def test_rejected_refresh_surfaces_auth_refresh_error(self):
        mock = MockSpotify(reject_refresh=True)
        client = self.make_client(mock, TokenState("stale", "rt", self.clock.now_ms - 1))
        with self.assertRaises(AuthRefreshError):
            client.list_playlists("u1", 0, 50)
        self.assertEqual(mock.paths(), ["/api/token"])

    def test_http_error_and_batch_limits(self):
        mock = MockSpotify()
        client = self.make_client(mock, TokenState("at", "rt", self.clock.now_ms + 60_000))

        with self.assertRaises(RemoteFetchError) as ctx:
            client.list_tracks("missing", 0, 50)
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertFalse(ctx.exception.retryable)

        with self.assertRaises(ValueError):
            client.get_audio_features([f"t{i}" for i in range(101)])
        with self.assertRaises(ValueError):
            client.get_artists([f"a{i}" for i in range(51)])
        self.assertEqual(client.get_artists([]), [])


if __name__ == "__main__":
    unittest.main(verbosity=2)
