import json
import os
from typing import Any, Dict, List, Optional, Tuple

CONFIG_PATH = "config.json"

# Default configuration values. Secrets (client id/secret, tokens) live in .env.
DEFAULT_CONFIG = {
    "env_file": ".env",
    "data_dir": "data",

    # Sync behavior
    "page_size": 50,
    "playlist_delay_seconds": 0.5,
    "request_timeout_seconds": 30,
    "snapshot_ttl_seconds": 0,

    # Spotify Web API (Authorization Code flow)
    "spotify_redirect_uri": "http://localhost:3000/",
    "spotify_scopes": [
        "playlist-read-private",
        "playlist-read-collaborative",
    ],
    "token_expiry_margin_seconds": 0,

    # Web server
    "host": "127.0.0.1",
    "port": 3000,

    # Logging
    "log_level": "INFO",
    "log_file": "",
}

# Validation rules for config fields
CONFIG_SCHEMA = {
    "env_file": {"type": str, "required": True},
    "data_dir": {"type": str, "required": True},

    "page_size": {"type": int, "required": False, "min": 1, "max": 50},
    "playlist_delay_seconds": {"type": (int, float), "required": False, "min": 0, "max": 60},
    "request_timeout_seconds": {"type": (int, float), "required": False, "min": 1, "max": 300},
    "snapshot_ttl_seconds": {"type": int, "required": False, "min": 0},

    "spotify_redirect_uri": {"type": str, "required": False},
    "spotify_scopes": {"type": list, "required": False, "element_type": str},
    "token_expiry_margin_seconds": {"type": int, "required": False, "min": 0, "max": 600},

    "host": {"type": str, "required": False},
    "port": {"type": int, "required": False, "min": 1, "max": 65535},

    "log_level": {"type": str, "required": False, "choices": ["DEBUG", "INFO", "WARNING", "ERROR"]},
    "log_file": {"type": str, "required": False},
}


def load_config(path: str = CONFIG_PATH) -> Dict[str, Any]:
    """Load configuration from file, applying defaults for missing fields.

    A missing file is not an error: the defaults are returned.
    """
    config: Dict[str, Any] = {}
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            config = json.load(f)
        if not isinstance(config, dict):
            raise ValueError(f"{path} must contain a JSON object")

    # Apply defaults for missing fields
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = list(value) if isinstance(value, list) else value

    return config


def save_config(config: Dict[str, Any], path: str = CONFIG_PATH) -> bool:
    """Save configuration to file."""
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except OSError as e:
        raise IOError(f"Failed to save config: {e}")


def _type_label(expected) -> str:
    if isinstance(expected, tuple):
        return "/".join(t.__name__ for t in expected)
    return expected.__name__


def _field_error(key: str, value: Any, rules: Dict[str, Any]) -> Optional[str]:
    """Return the first rule ``value`` breaks, or None."""
    expected = rules.get("type")
    # bool is an int subclass; a flag is never a valid count or port.
    if expected and (isinstance(value, bool) or not isinstance(value, expected)):
        return f"Field '{key}' must be {_type_label(expected)}, got {type(value).__name__}"

    element_type = rules.get("element_type")
    if element_type:
        bad = [v for v in value if not isinstance(v, element_type)]
        if bad:
            return f"Field '{key}' must be a list of {element_type.__name__}, got invalid elements: {bad}"

    choices = rules.get("choices")
    if choices and value not in choices:
        return f"Field '{key}' must be one of {choices}, got '{value}'"

    low, high = rules.get("min"), rules.get("max")
    if low is not None and value < low:
        return f"Field '{key}' must be >= {low}, got {value}"
    if high is not None and value > high:
        return f"Field '{key}' must be <= {high}, got {value}"
    return None


def validate_config(config: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """Check ``config`` against CONFIG_SCHEMA. Returns (is_valid, errors)."""
    errors: List[str] = []
    for key, rules in CONFIG_SCHEMA.items():
        if key not in config:
            if rules.get("required"):
                errors.append(f"Missing required field: {key}")
            continue
        error = _field_error(key, config[key], rules)
        if error:
            errors.append(error)
    return not errors, errors


def get_config_value(config: Dict[str, Any], key: str, default: Any = None) -> Any:
    """Get a single config value, falling back to DEFAULT_CONFIG then ``default``."""
    if key in config:
        return config[key]
    return DEFAULT_CONFIG.get(key, default)
