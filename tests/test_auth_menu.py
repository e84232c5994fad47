import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

# Ensure local imports work when running this file directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from menus import auth_menu
from menus.auth_menu import authenticate_interactively, parse_pasted_code
from spotify_api.errors import AuthRequiredError
from spotify_api.models import ConfigState, Credentials, TokenState
from spotify_api.token_manager import TokenManager
from spotify_api.token_store import TokenStore
from tests.fakes import FakeAuthClient, FakeClock


class _Askable:
    def __init__(self, value):
        self.value = value

    def ask(self):
        return self.value


class TestParsePastedCode(unittest.TestCase):
    def test_raw_code(self):
        self.assertEqual(parse_pasted_code("  ABC123 "), "ABC123")

    def test_redirect_url(self):
        self.assertEqual(parse_pasted_code("http://localhost:3000/?code=AAA&state=S", "S"), "AAA")

    def test_rejections(self):
        cases = [
            ("", ""),
            ("http://localhost:3000/?error=access_denied", ""),
            ("http://localhost:3000/?state=S", "S"),
            ("http://localhost:3000/?code=AAA&state=OTHER", "S"),
        ]
        for pasted, state in cases:
            with self.subTest(pasted=pasted):
                with self.assertRaises(AuthRequiredError):
                    parse_pasted_code(pasted, state)


class TestAuthenticateInteractively(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.store = TokenStore(os.path.join(self._tmp.name, ".env"))
        self.auth = FakeAuthClient(expires_in=3600)

    def tearDown(self):
        self._tmp.cleanup()

    def make_manager(self, creds: Credentials) -> TokenManager:
        return TokenManager(ConfigState(creds, TokenState()), store=self.store, auth_client=self.auth, clock=FakeClock())

    def test_prints_url_reads_code_and_saves_tokens(self):
        tm = self.make_manager(Credentials("cid", "secret", "http://localhost:3000/"))
        fake_q = mock.Mock()
        fake_q.text.return_value = _Askable("ABC123")

        with mock.patch.object(auth_menu, "questionary", fake_q), mock.patch("builtins.print") as fake_print:
            ok = authenticate_interactively(tm, open_browser=False)

        self.assertTrue(ok)
        printed = " ".join(str(c.args[0]) for c in fake_print.call_args_list if c.args)
        self.assertIn("https://accounts.example/authorize", printed)
        self.assertEqual(self.auth.exchange_calls, ["ABC123"])
        self.assertEqual(self.store.load().token.refresh_token, "refresh-ABC123")

    def test_missing_credentials_stop_before_prompt(self):
        tm = self.make_manager(Credentials("", "", ""))
        fake_q = mock.Mock()
        with mock.patch.object(auth_menu, "questionary", fake_q):
            self.assertFalse(authenticate_interactively(tm, open_browser=False))
        fake_q.text.assert_not_called()

    def test_failed_exchange_returns_false(self):
        self.auth.fail_exchange = True
        tm = self.make_manager(Credentials("cid", "secret", "http://localhost:3000/"))
        fake_q = mock.Mock()
        fake_q.text.return_value = _Askable("bad")
        with mock.patch.object(auth_menu, "questionary", fake_q), mock.patch("builtins.print"):
            self.assertFalse(authenticate_interactively(tm, open_browser=False))
        self.assertFalse(tm.is_authenticated)


if __name__ == "__main__":
    unittest.main(verbosity=2)
