"""Merge fetched feed items into the record store exactly once.

A run either resumes from the previous snapshot (when part of it is already
ingested) or fetches fresh candidates: recent mentions, plus the home
timeline on the very first bootstrap. Records are keyed by
``derive_record_id(item.id, agent_id)``, so repeated runs over the same
remote state converge on the same set of records.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from .cache import ContentCache
from .errors import CacheIOError
from .models import FeedItem, Record, derive_record_id, room_id_for, string_to_uuid
from .reader import FeedReader
from .remote import SEARCH_MODE_LATEST
from .state import load_snapshot, save_snapshot
from .storage.db import RecordStore

LOG = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    candidates: list[FeedItem] = field(default_factory=list)
    created: list[str] = field(default_factory=list)
    resumed: bool = False


class TimelineReconciler:
    def __init__(
        self,
        reader: FeedReader,
        store: RecordStore,
        agent_id: str,
        username: str,
        snapshot_path: Path,
        *,
        cache: ContentCache | None = None,
        character_name: str | None = None,
        source: str = "twitter",
        search_count: int = 20,
        timeline_count: int = 50,
        include_home_timeline: bool = True,
    ):
        self.reader = reader
        self.store = store
        self.agent_id = agent_id
        self.username = username
        self.snapshot_path = Path(snapshot_path)
        self.cache = cache
        self.character_name = character_name or username
        self.source = source
        self.search_count = search_count
        self.timeline_count = timeline_count
        self.include_home_timeline = include_home_timeline

    def record_id(self, item: FeedItem) -> str:
        return derive_record_id(item.id, self.agent_id)

    def reconcile(self, account_id: str | None = None) -> ReconcileResult:
        """Run one pass. ``account_id`` is the session's own account id."""
        snapshot = load_snapshot(self.snapshot_path)

        if snapshot:
            existing = self._ingested_keys(snapshot)
            if any(self.record_id(item) in existing for item in snapshot):
                created = self._resume(snapshot, existing, account_id)
                save_snapshot(self.snapshot_path, snapshot)
                return ReconcileResult(candidates=snapshot, created=created, resumed=True)

        candidates = self._fetch_candidates(first_bootstrap=snapshot is None)
        self.store.ensure_user_exists(self.agent_id, self.username, self.character_name, self.source)

        existing = self._ingested_keys(candidates)
        created: list[str] = []
        seen: set[str] = set()
        for item in candidates:
            key = self.record_id(item)
            if key in existing or key in seen:
                continue
            seen.add(key)
            if self._ingest(item, account_id):
                created.append(key)

        self._cache_candidates(candidates)
        save_snapshot(self.snapshot_path, candidates)
        LOG.info("Reconciled %d candidates, %d new records", len(candidates), len(created))
        return ReconcileResult(candidates=candidates, created=created)

    def _resume(self, snapshot: list[FeedItem], existing: set[str], account_id: str | None) -> list[str]:
        created = []
        for item in snapshot:
            key = self.record_id(item)
            if key in existing:
                continue
            # Past this point everything was handled by an earlier pass.
            if self.store.get_record_by_id(key) is not None:
                LOG.info("Record for %s already exists, stopping snapshot resume", item.id)
                break
            if self._ingest(item, account_id):
                created.append(key)
        LOG.info("Populated %d missing items from the snapshot", len(created))
        return created

    def _fetch_candidates(self, first_bootstrap: bool) -> list[FeedItem]:
        page = self.reader.fetch_search(f"@{self.username}", self.search_count, SEARCH_MODE_LATEST)
        items = list(page.items)
        if first_bootstrap and self.include_home_timeline:
            items.extend(self.reader.fetch_home_timeline(self.timeline_count))

        unique: dict[str, FeedItem] = {}
        for item in items:
            unique.setdefault(item.id, item)
        return list(unique.values())

    def _ingested_keys(self, items: list[FeedItem]) -> set[str]:
        rooms = {room_id_for(i.conversation_id, self.agent_id) for i in items}
        return {r.id for r in self.store.get_records_by_room_ids(self.agent_id, rooms)}

    def _author_id(self, item: FeedItem, account_id: str | None) -> str:
        if account_id and item.user_id == account_id:
            return self.agent_id
        return string_to_uuid(item.user_id or f"unknown-author-{self.agent_id}")

    def _ingest(self, item: FeedItem, account_id: str | None) -> bool:
        room_id = room_id_for(item.conversation_id, self.agent_id)
        user_id = self._author_id(item, account_id)
        self.store.ensure_connection(user_id, room_id, item.username, item.name, self.source)

        content = {
            "text": item.text,
            "url": item.permanent_url,
            "source": self.source,
        }
        if item.in_reply_to_id:
            content["in_reply_to"] = derive_record_id(item.in_reply_to_id, self.agent_id)

        if item.timestamp is None:
            LOG.warning("Item %s has no creation time, using ingestion time", item.id)
        created_at = (item.timestamp if item.timestamp is not None else int(time.time())) * 1000

        LOG.debug("Creating record for item %s", item.id)
        return self.store.create_record(
            Record(
                id=self.record_id(item),
                user_id=user_id,
                agent_id=self.agent_id,
                room_id=room_id,
                content=content,
                created_at=created_at,
            )
        )

    def _cache_candidates(self, items: list[FeedItem]) -> None:
        if self.cache is None:
            return
        for item in items:
            try:
                self.cache.put(item)
            except CacheIOError as e:
                LOG.warning("Not caching item %s: %s", item.id, e)
