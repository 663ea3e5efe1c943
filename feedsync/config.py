"""Configuration management for feedsync.

Loads settings from ~/.config/feedsync/config.yaml with sensible defaults.
All settings are optional - defaults work out of the box.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

LOG = logging.getLogger(__name__)

# ============================================================================
# DEFAULTS
# ============================================================================

DEFAULT_CONFIG = {
    # On-disk state
    "paths": {
        "cache_root": "~/.feedsync/itemcache",
        "snapshot_file": "~/.feedsync/timeline_cache.json",
        "last_checked_file": "~/.feedsync/itemcache/latest_checked_item_id.txt",
    },

    # Request queue pacing
    "queue": {
        "base_delay": 1.0,             # Seconds, multiplied by 2**depth on failure
        "pacing_min": 1.5,             # Random pause after every call (seconds)
        "pacing_max": 3.5,
    },

    # Session bootstrap
    "session": {
        "poll_interval": 2.0,          # Seconds between "is logged in" checks
        "max_poll_attempts": 10,       # Checks before forcing a fresh login
        "user_id_delay": 10.0,         # Pause before resolving the account id
    },

    # Timeline reconciliation
    "reconcile": {
        "search_count": 20,            # Recent mentions to pull
        "timeline_count": 50,          # Home timeline items on first bootstrap
        "include_home_timeline": True,
        "fetch_timeout": 10.0,         # Seconds before a search is abandoned
        "source": "twitter",           # Source tag written on records
    },

    # Remote gateway
    "remote": {
        "base_url": "http://localhost:8787",
        "timeout": 20,
        "item_url_template": "https://twitter.com/{username}/status/{id}",
        "cookie_domain": ".twitter.com",     # Domain for cookies that carry none
    },

    "logging": {
        "level": "INFO",
    },
}

# Config file locations (first found wins)
CONFIG_PATHS = [
    Path.home() / ".config/feedsync/config.yaml",
    Path.home() / ".config/feedsync/config.yml",
    Path.home() / ".feedsync.yaml",
    Path("./feedsync.yaml"),
]


# ============================================================================
# CONFIG LOADING
# ============================================================================

_config_cache: dict | None = None


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base, returning new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def find_config_file() -> Path | None:
    """Find the first existing config file."""
    for path in CONFIG_PATHS:
        if path.exists():
            return path
    return None


def load_config(reload: bool = False) -> dict:
    """Load configuration with defaults.

    Returns merged config: defaults + user overrides.
    Config is cached after first load.
    """
    global _config_cache

    if _config_cache is not None and not reload:
        return _config_cache

    config = DEFAULT_CONFIG.copy()

    config_file = find_config_file()
    if config_file:
        try:
            user_config = yaml.safe_load(config_file.read_text()) or {}
            config = _deep_merge(config, user_config)
        except (OSError, yaml.YAMLError) as e:
            LOG.warning("Could not load config from %s: %s", config_file, e)

    _config_cache = config
    return config


def get(key: str, default: Any = None) -> Any:
    """Get a config value by dot-separated key.

    Example:
        get("queue.base_delay")     # Returns 1.0
        get("paths")                # Returns the paths section
    """
    config = load_config()
    parts = key.split(".")
    value = config
    for part in parts:
        if isinstance(value, dict) and part in value:
            value = value[part]
        else:
            return default
    return value


def get_section(section: str) -> dict:
    """Get an entire config section."""
    config = load_config()
    return config.get(section, {})


def get_path(key: str) -> Path:
    """Get a ``paths.*`` entry as an expanded Path."""
    return Path(str(get(f"paths.{key}"))).expanduser()


# ============================================================================
# CLI HELPER
# ============================================================================

def init_config(force: bool = False) -> Path:
    """Create example config file in default location."""
    config_path = CONFIG_PATHS[0]

    if config_path.exists() and not force:
        raise FileExistsError(f"Config already exists: {config_path}")

    config_path.parent.mkdir(parents=True, exist_ok=True)

    example = """# feedsync configuration
# All settings are optional - defaults work out of the box.

paths:
  cache_root: ~/.feedsync/itemcache       # {cache_root}/{thread}/{item}.json
  snapshot_file: ~/.feedsync/timeline_cache.json

queue:
  base_delay: 1.0                # Backoff unit (seconds)
  pacing_min: 1.5                # Random pause after each call
  pacing_max: 3.5

session:
  poll_interval: 2.0             # Seconds between login checks
  max_poll_attempts: 10          # Checks before forcing a new login

reconcile:
  search_count: 20               # Mentions pulled per sync
  fetch_timeout: 10.0            # Give up on a stalled search (seconds)
  source: twitter

remote:
  base_url: http://localhost:8787
  cookie_domain: .twitter.com     # Used when a stored cookie has no domain

logging:
  level: INFO
"""

    config_path.write_text(example)
    return config_path


def show_config() -> None:
    """Print current configuration."""
    config = load_config()
    config_file = find_config_file()

    print("=" * 60)
    print("feedsync configuration")
    print("=" * 60)

    if config_file:
        print(f"Config file: {config_file}")
    else:
        print("Config file: (using defaults)")

    print()
    print(yaml.dump(config, default_flow_style=False, sort_keys=False))
