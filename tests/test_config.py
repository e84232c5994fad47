import json
import os
import sys
import tempfile
import unittest
from pathlib import Path

# Ensure local imports work when running this file directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from config import DEFAULT_CONFIG, load_config, save_config, validate_config


class TestConfig(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self._tmp.name, "config.json")

    def tearDown(self):
        self._tmp.cleanup()

    def test_missing_file_yields_valid_defaults(self):
        config = load_config(self.path)
        self.assertEqual(config, DEFAULT_CONFIG)
        self.assertEqual(validate_config(config), (True, []))

    def test_file_values_override_defaults(self):
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({"port": 8080, "playlist_delay_seconds": 1}, f)
        config = load_config(self.path)
        self.assertEqual(config["port"], 8080)
        self.assertEqual(config["page_size"], 50)

    def test_save_roundtrip(self):
        config = load_config(self.path)
        config["data_dir"] = "cache"
        self.assertTrue(save_config(config, self.path))
        self.assertEqual(load_config(self.path)["data_dir"], "cache")

    def test_validation_errors(self):
        config = load_config(self.path)
        config.update({"page_size": 100, "port": True, "log_level": "LOUD", "spotify_scopes": ["ok", 3]})
        ok, errors = validate_config(config)
        self.assertFalse(ok)
        self.assertEqual(len(errors), 4)


if __name__ == "__main__":
    unittest.main(verbosity=2)
