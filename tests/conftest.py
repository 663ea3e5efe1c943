"""Pytest configuration and fixtures."""
from __future__ import annotations

import copy
import sqlite3

import pytest

from feedsync import config
from feedsync.request_queue import BackoffQueue
from feedsync.storage.db import SQLiteRecordStore


class FakeFeedAPI:
    """In-memory FeedAPI; records every call in ``calls``."""

    def __init__(
        self,
        *,
        user_id: str | None = "1001",
        logged_in=True,
        search: list[dict] | None = None,
        timeline: list[dict] | None = None,
        items: dict[str, dict] | None = None,
        cookies: list[dict] | None = None,
    ):
        self.user_id = user_id
        # bool, or a list consumed one check at a time (last value sticks)
        self.logged_in = logged_in
        self.search = search or []
        self.timeline = timeline or []
        self.items = items or {}
        self.cookies = cookies if cookies is not None else [{"key": "auth_token", "value": "tok"}]
        self.installed_cookies: list[str] = []
        self.login_error: Exception | None = None
        self.search_error: Exception | None = None
        self.calls: list[tuple] = []

    def login(self, username, password, email=None):
        self.calls.append(("login", username))
        if self.login_error is not None:
            raise self.login_error

    def is_logged_in(self):
        self.calls.append(("is_logged_in",))
        if isinstance(self.logged_in, list):
            return self.logged_in.pop(0) if len(self.logged_in) > 1 else self.logged_in[0]
        return self.logged_in

    def get_cookies(self):
        return list(self.cookies)

    def set_cookies(self, cookies):
        self.calls.append(("set_cookies", len(cookies)))
        self.installed_cookies.extend(cookies)

    def get_item(self, item_id):
        self.calls.append(("get_item", item_id))
        return self.items.get(item_id)

    def fetch_home_timeline(self, count, exclude_ids):
        self.calls.append(("fetch_home_timeline", count))
        return list(self.timeline)[:count]

    def fetch_search(self, query, max_items, mode, cursor=None):
        self.calls.append(("fetch_search", query, max_items, mode))
        if self.search_error is not None:
            raise self.search_error
        return {"tweets": list(self.search)[:max_items], "next": None}

    def resolve_user_id(self, username):
        self.calls.append(("resolve_user_id", username))
        return self.user_id


def flat_item(item_id: str, *, user_id: str = "2002", conversation_id: str | None = None, text: str | None = None,
              timestamp: int = 1700000000, reply_to: str | None = None) -> dict:
    return {
        "id": item_id,
        "userId": user_id,
        "username": f"user{user_id}",
        "name": f"User {user_id}",
        "text": text if text is not None else f"post {item_id}",
        "conversationId": conversation_id or item_id,
        "inReplyToStatusId": reply_to,
        "timestamp": timestamp,
        "permanentUrl": f"https://twitter.com/user{user_id}/status/{item_id}",
    }


@pytest.fixture(autouse=True)
def default_config(monkeypatch):
    """Ignore any config file on the test machine."""
    monkeypatch.setattr(config, "_config_cache", copy.deepcopy(config.DEFAULT_CONFIG))


@pytest.fixture
def fast_queue():
    return BackoffQueue(base_delay=0, pacing_window=(0, 0))


@pytest.fixture
def store():
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return SQLiteRecordStore(conn)


@pytest.fixture
def fake_api():
    return FakeFeedAPI()


@pytest.fixture
def make_item():
    return flat_item


@pytest.fixture
def api_factory():
    return FakeFeedAPI
