"""Two-tier item cache: process memory in front of {root}/{thread}/{item}.json files."""
from __future__ import annotations

import json
import logging
from pathlib import Path

from .errors import CacheIOError
from .models import FeedItem

LOG = logging.getLogger(__name__)

UNTHREADED_DIR = "_unthreaded"


class ContentCache:
    def __init__(self, root: Path | str):
        self.root = Path(root).expanduser()
        self._items: dict[str, FeedItem] = {}
        # item id -> thread dir, filled by put() and durable hits
        self._threads: dict[str, str] = {}

    def __contains__(self, item_id: str) -> bool:
        return self.get(item_id) is not None

    def path_for(self, item: FeedItem) -> Path:
        return self.root / (item.conversation_id or UNTHREADED_DIR) / f"{item.id}.json"

    def clear_memory(self) -> None:
        """Drop the in-memory tier (durable files are untouched)."""
        self._items.clear()
        self._threads.clear()

    def get(self, item_id: str) -> FeedItem | None:
        item_id = str(item_id)
        if item_id in self._items:
            return self._items[item_id]

        path = self._find_file(item_id)
        if path is None:
            return None

        item = self._read(path)
        self._items[item_id] = item
        self._threads[item_id] = path.parent.name
        return item

    def put(self, item: FeedItem, *, refresh: bool = False) -> FeedItem:
        """Cache an item in both tiers.

        An id that is already cached keeps its first version unless
        ``refresh`` is set. Returns the cached version. Raises CacheIOError.
        """
        if not item or not item.id:
            raise ValueError("Cannot cache an item without an id")

        if not refresh:
            try:
                existing = self.get(item.id)
            except CacheIOError as e:
                LOG.warning("Replacing unreadable cache entry for %s: %s", item.id, e)
                existing = None
            if existing is not None:
                return existing

        path = self.path_for(item)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(item.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            raise CacheIOError(f"Could not write {path}: {e}") from e

        self._items[item.id] = item
        self._threads[item.id] = path.parent.name
        return item

    def _find_file(self, item_id: str) -> Path | None:
        name = f"{item_id}.json"
        thread = self._threads.get(item_id)
        if thread:
            candidate = self.root / thread / name
            if candidate.exists():
                return candidate

        if not self.root.is_dir():
            return None
        # Thread unknown: scan every thread dir. Sorted so the pick is stable.
        matches = sorted(self.root.glob(f"*/{name}"))
        if len(matches) > 1:
            LOG.warning("Item %s cached under %d threads; using %s", item_id, len(matches), matches[0])
        return matches[0] if matches else None

    def _read(self, path: Path) -> FeedItem:
        try:
            return FeedItem.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, KeyError) as e:
            raise CacheIOError(f"Could not read cached item {path}: {e}") from e
