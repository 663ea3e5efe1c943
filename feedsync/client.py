"""FeedClient: session + queue + cache + reconciler for one agent account.

The remote API handle is passed in, so several clients can share one
connection without hidden module state. Construction does no I/O against the
remote side; call ``start()`` to bootstrap and run the initial sync.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Callable

from .auth import AccountCredentials
from .cache import ContentCache
from .config import get, get_path
from .models import FeedItem, Record, SearchPage
from .reader import FeedReader
from .reconcile import ReconcileResult, TimelineReconciler
from .remote import SEARCH_MODE_LATEST, FeedAPI
from .request_queue import BackoffQueue
from .session import CredentialStore, FileCredentialStore, RecordCredentialStore, SessionManager
from .state import get_last_checked_id, save_last_checked_id
from .storage.db import RecordStore

LOG = logging.getLogger(__name__)


class FeedClient:
    def __init__(
        self,
        *,
        agent_id: str,
        store: RecordStore,
        queue: BackoffQueue,
        cache: ContentCache,
        session: SessionManager,
        reader: FeedReader,
        reconciler: TimelineReconciler,
        last_checked_path: Path,
        dry_run: bool = False,
    ):
        self.agent_id = agent_id
        self.store = store
        self.queue = queue
        self.cache = cache
        self.session = session
        self.reader = reader
        self.reconciler = reconciler
        self.last_checked_path = Path(last_checked_path)
        self.dry_run = dry_run
        self.last_checked_id = get_last_checked_id(self.last_checked_path)
        self._ready_callbacks: list[Callable[["FeedClient"], None]] = []
        self._future: Future | None = None
        self._start_lock = threading.Lock()

    @classmethod
    def build(
        cls,
        api: FeedAPI,
        store: RecordStore,
        agent_id: str,
        credentials: AccountCredentials,
        *,
        character_name: str | None = None,
        credential_store: CredentialStore | None = None,
        queue: BackoffQueue | None = None,
    ) -> "FeedClient":
        """Wire a client from config. Cookies persist in the record store unless told otherwise."""
        cache_root = get_path("cache_root")
        queue = queue or BackoffQueue.from_config()
        cache = ContentCache(cache_root)
        if credential_store is None:
            credential_store = (
                RecordCredentialStore(store, agent_id)
                if store is not None
                else FileCredentialStore.for_account(cache_root, credentials.username)
            )
        session = SessionManager(
            api,
            queue,
            credentials,
            credential_store,
            poll_interval=float(get("session.poll_interval", 2.0)),
            max_poll_attempts=int(get("session.max_poll_attempts", 10)),
            user_id_delay=float(get("session.user_id_delay", 10.0)),
        )
        reader = FeedReader(api, queue, cache, fetch_timeout=float(get("reconcile.fetch_timeout", 10.0)))
        reconciler = TimelineReconciler(
            reader,
            store,
            agent_id,
            credentials.username,
            get_path("snapshot_file"),
            cache=cache,
            character_name=character_name,
            source=get("reconcile.source", "twitter"),
            search_count=int(get("reconcile.search_count", 20)),
            timeline_count=int(get("reconcile.timeline_count", 50)),
            include_home_timeline=bool(get("reconcile.include_home_timeline", True)),
        )
        return cls(
            agent_id=agent_id,
            store=store,
            queue=queue,
            cache=cache,
            session=session,
            reader=reader,
            reconciler=reconciler,
            last_checked_path=get_path("last_checked_file"),
            dry_run=credentials.dry_run,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def on_ready(self, callback: Callable[["FeedClient"], None]) -> None:
        self._ready_callbacks.append(callback)

    @property
    def is_ready(self) -> bool:
        return self.session.is_ready

    def start(self) -> "Future[ReconcileResult]":
        """Bootstrap the session, run the initial sync, then fire on_ready callbacks."""
        with self._start_lock:
            if self._future is not None:
                return self._future
            future: Future = Future()
            self._future = future

        def _run():
            try:
                account_id = self.session.bootstrap()
                result = self.reconciler.reconcile(account_id)
                for callback in list(self._ready_callbacks):
                    callback(self)
                future.set_result(result)
            except BaseException as e:
                LOG.error("Feed client initialization failed: %s", e)
                future.set_exception(e)

        threading.Thread(target=_run, name="feedsync-client", daemon=True).start()
        return future

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_item(self, item_id: str) -> FeedItem | None:
        return self.reader.get_item(item_id)

    def fetch_home_timeline(self, count: int) -> list[FeedItem]:
        return self.reader.fetch_home_timeline(count)

    def fetch_search(
        self, query: str, max_items: int, mode: str = SEARCH_MODE_LATEST, cursor: str | None = None
    ) -> SearchPage:
        return self.reader.fetch_search(query, max_items, mode, cursor)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_last_checked_id(self, item_id: str) -> None:
        self.last_checked_id = str(item_id)
        save_last_checked_id(self.last_checked_path, self.last_checked_id)

    def save_request_message(self, record: Record) -> bool:
        """Store an inbound message unless the room's latest record has the same content."""
        if not record.content.get("text"):
            return False
        recent = self.store.get_records(record.room_id, self.agent_id, count=1)
        if recent and recent[0].content == record.content:
            LOG.info("Message already saved: %s", recent[0].id)
            return False
        return self.store.create_record(record)
