"""Small on-disk state: last checked item id and the reconciliation snapshot."""
from __future__ import annotations

import json
import logging
from pathlib import Path

from .models import FeedItem

LOG = logging.getLogger(__name__)


def get_last_checked_id(path: Path) -> str | None:
    """Get the last checked item id from the marker file."""
    try:
        if path.exists():
            return path.read_text().strip() or None
    except OSError as e:
        LOG.error("Error loading latest checked item id from %s: %s", path, e)
        return None
    LOG.warning("Last checked item marker not found: %s", path)
    return None


def save_last_checked_id(path: Path, item_id: str) -> None:
    """Save the last checked item id to the marker file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(str(item_id))


def load_snapshot(path: Path) -> list[FeedItem] | None:
    """Load the previous run's candidates, or None when absent/unreadable."""
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        LOG.warning("Ignoring unreadable snapshot %s: %s", path, e)
        return None
    if not isinstance(data, list):
        LOG.warning("Ignoring snapshot %s: expected a JSON array", path)
        return None
    items = []
    for entry in data:
        if isinstance(entry, dict) and entry.get("id"):
            items.append(FeedItem.from_dict(entry))
    return items


def save_snapshot(path: Path, items: list[FeedItem]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps([i.to_dict() for i in items], ensure_ascii=False), encoding="utf-8")
