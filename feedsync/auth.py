"""Account secrets and cookie material for the feed session."""
from __future__ import annotations

import json
import os
import subprocess
from dataclasses import dataclass

from .errors import CredentialParseError
from .models import Cookie

PASS_PATH = "api/feedsync"

ENV_KEYS = ("FEED_USERNAME", "FEED_PASSWORD", "FEED_EMAIL", "FEED_COOKIES", "FEED_DRY_RUN")


@dataclass
class AccountCredentials:
    username: str
    password: str | None = None
    email: str | None = None
    cookies: str | None = None  # inline JSON cookie array
    dry_run: bool = False


def load_from_pass(pass_path: str = PASS_PATH) -> dict | None:
    """Load KEY=VALUE settings from pass."""
    try:
        result = subprocess.run(
            ["pass", "show", pass_path],
            capture_output=True, text=True, timeout=5
        )
    except (OSError, subprocess.SubprocessError):
        return None
    if result.returncode != 0:
        return None
    out: dict[str, str] = {}
    for line in result.stdout.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        k, v = line.split("=", 1)
        out[k.strip()] = v.strip()
    return out if out else None


def load_settings(pass_path: str = PASS_PATH) -> dict:
    """Merge pass entries with FEED_* environment variables (env wins)."""
    settings = dict(load_from_pass(pass_path) or {})
    for key in ENV_KEYS:
        if os.environ.get(key):
            settings[key] = os.environ[key]
    return settings


def load_credentials(settings: dict | None = None) -> AccountCredentials:
    """Build account credentials, raise if the account name is missing."""
    if settings is None:
        settings = load_settings()
    username = (settings.get("FEED_USERNAME") or "").strip().lstrip("@")
    if not username:
        raise SystemExit(f"Missing FEED_USERNAME (pass {PASS_PATH} or environment)")
    return AccountCredentials(
        username=username,
        password=settings.get("FEED_PASSWORD") or None,
        email=settings.get("FEED_EMAIL") or None,
        cookies=settings.get("FEED_COOKIES") or None,
        dry_run=str(settings.get("FEED_DRY_RUN", "")).lower() == "true",
    )


def parse_cookies(raw: str | list) -> list[Cookie]:
    """Parse a JSON cookie array (or an already decoded list)."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CredentialParseError(f"Cookie material is not valid JSON: {e}") from e
    if not isinstance(raw, list):
        raise CredentialParseError("Cookie material must be a JSON array")
    cookies = []
    for entry in raw:
        if not isinstance(entry, dict) or "key" not in entry or "value" not in entry:
            raise CredentialParseError(f"Malformed cookie entry: {entry!r}")
        cookies.append(Cookie.from_dict(entry))
    return cookies
