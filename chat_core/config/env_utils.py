"""Simple .env file manager used to persist endpoint settings."""

from __future__ import annotations

from collections import OrderedDict
from pathlib import Path
from typing import MutableMapping, Optional


ENV_FILE = Path.cwd() / ".env"

API_URL_KEY = "CHAT_API_URL"
API_TOKEN_KEY = "CHAT_API_TOKEN"


def read_env_file(path: Optional[Path] = None) -> MutableMapping[str, str]:
    """Return key/value pairs from the .env file (order preserved)."""

    env_file = path or ENV_FILE
    pairs: MutableMapping[str, str] = OrderedDict()
    if not env_file.exists():
        return pairs
    for raw_line in env_file.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        pairs[key.strip()] = value.strip().strip('"').strip("'")
    return pairs


def write_env_file(data: MutableMapping[str, str], path: Optional[Path] = None) -> None:
    """Persist the given key/value pairs back to the .env file."""

    env_file = path or ENV_FILE
    env_file.parent.mkdir(parents=True, exist_ok=True)
    lines = []
    for key, value in data.items():
        if not key:
            continue
        lines.append(f"{key}={value}")
    env_file.write_text("\n".join(lines) + "\n", encoding="utf-8")


def save_api_settings(
    api_url: Optional[str] = None,
    api_token: Optional[str] = None,
    path: Optional[Path] = None,
) -> MutableMapping[str, str]:
    """Update the endpoint entries in .env, keeping every other key.

    Passing an empty string removes the entry; None leaves it untouched.
    """

    pairs = read_env_file(path)
    for key, value in ((API_URL_KEY, api_url), (API_TOKEN_KEY, api_token)):
        if value is None:
            continue
        if value.strip():
            pairs[key] = value.strip()
        else:
            pairs.pop(key, None)
    write_env_file(pairs, path)
    return pairs
