"""Queued reads from the remote feed, cache first where an id is known."""
from __future__ import annotations

import logging
from typing import Iterable

from .cache import ContentCache
from .errors import ReconciliationFetchError
from .models import FeedItem, SearchPage
from .normalize import normalize_item, normalize_items, normalize_timeline
from .remote import SEARCH_MODE_LATEST, FeedAPI
from .request_queue import BackoffQueue, call_with_timeout

LOG = logging.getLogger(__name__)


class FeedReader:
    def __init__(self, api: FeedAPI, queue: BackoffQueue, cache: ContentCache, fetch_timeout: float = 10.0):
        self.api = api
        self.queue = queue
        self.cache = cache
        self.fetch_timeout = fetch_timeout

    def get_item(self, item_id: str) -> FeedItem | None:
        """Cached item, else one queued fetch that is then cached (CacheIOError propagates)."""
        cached = self.cache.get(item_id)
        if cached is not None:
            return cached

        raw = self.queue.submit(lambda: self.api.get_item(item_id))
        if not raw:
            return None
        item = normalize_item(raw)
        if item is None:
            return None
        return self.cache.put(item)

    def search_items(
        self, query: str, max_items: int, mode: str = SEARCH_MODE_LATEST, cursor: str | None = None
    ) -> SearchPage:
        """Queued search raced against ``fetch_timeout``. Raises ReconciliationFetchError."""
        empty: dict = {"tweets": []}

        def _op():
            return call_with_timeout(
                lambda: self.api.fetch_search(query, max_items, mode, cursor), self.fetch_timeout, empty
            )

        try:
            raw = self.queue.submit(_op) or empty
        except Exception as e:
            raise ReconciliationFetchError(f"Search for {query!r} failed: {e}") from e
        return SearchPage(items=normalize_items(raw.get("tweets", [])), next_cursor=raw.get("next"))

    def fetch_search(
        self, query: str, max_items: int, mode: str = SEARCH_MODE_LATEST, cursor: str | None = None
    ) -> SearchPage:
        """Like search_items, but any failure yields an empty page."""
        try:
            return self.search_items(query, max_items, mode, cursor)
        except ReconciliationFetchError as e:
            LOG.error("Error fetching search results: %s", e)
            return SearchPage()

    def home_timeline(self, count: int, exclude_ids: Iterable[str] = ()) -> list[FeedItem]:
        """Queued home timeline fetch. Raises ReconciliationFetchError."""
        exclude = list(exclude_ids)

        def _op():
            return call_with_timeout(lambda: self.api.fetch_home_timeline(count, exclude), self.fetch_timeout, [])

        try:
            raw = self.queue.submit(_op) or []
        except Exception as e:
            raise ReconciliationFetchError(f"Home timeline fetch failed: {e}") from e
        return normalize_timeline(raw)

    def fetch_home_timeline(self, count: int, exclude_ids: Iterable[str] = ()) -> list[FeedItem]:
        try:
            return self.home_timeline(count, exclude_ids)
        except ReconciliationFetchError as e:
            LOG.error("Error fetching home timeline: %s", e)
            return []
