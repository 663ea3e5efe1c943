"""Authenticated session bootstrap.

States: uninitialized -> authenticating -> authenticated | failed.

Credentials are installed from the first source that has them: inline
cookies from settings, cookies persisted by an earlier run, or an
interactive login through the request queue. The manager then polls the
remote "logged in" check, forcing a fresh login every ``max_poll_attempts``
checks, and finally resolves the account id with one queued call.
"""
from __future__ import annotations

import json
import logging
import threading
import time
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Callable, Protocol

from .auth import AccountCredentials, parse_cookies
from .errors import AuthenticationError, IdentifierResolutionError, RemoteAPIError, TransientRemoteError
from .models import Cookie, Record, SessionState, string_to_uuid
from .remote import FeedAPI
from .request_queue import BackoffQueue
from .storage.db import RecordStore

LOG = logging.getLogger(__name__)

COOKIE_RECORD_TYPE = "feed-cookies"

Listener = Callable[[str, Any], None]


class CredentialStore(Protocol):
    def load(self) -> list[Cookie] | None: ...

    def save(self, cookies: list[Cookie]) -> None: ...


class RecordCredentialStore:
    """Cookies kept as records in the agent's system room; newest wins."""

    def __init__(self, store: RecordStore, agent_id: str):
        self.store = store
        self.agent_id = agent_id
        self.room_id = string_to_uuid(f"feed-system-{agent_id}")

    def load(self) -> list[Cookie] | None:
        for record in self.store.get_records(self.room_id, self.agent_id, count=5):
            cookies = record.content.get("cookies")
            if record.content.get("type") == COOKIE_RECORD_TYPE and isinstance(cookies, list) and cookies:
                return parse_cookies(cookies)
        return None

    def save(self, cookies: list[Cookie]) -> None:
        payload = [c.to_dict() for c in cookies]
        # Same cookie set -> same id, so re-saving is a no-op.
        fingerprint = json.dumps(payload, sort_keys=True)
        self.store.create_record(
            Record(
                id=string_to_uuid(f"feed-cookies-{self.agent_id}-{fingerprint}"),
                user_id=self.agent_id,
                agent_id=self.agent_id,
                room_id=self.room_id,
                content={
                    "type": COOKIE_RECORD_TYPE,
                    "cookies": payload,
                    "text": "Feed authentication cookies storage",
                },
                created_at=int(time.time() * 1000),
            )
        )


class FileCredentialStore:
    """Cookies kept in ``{cache_root}/{account}_cookies.json``."""

    def __init__(self, path: Path):
        self.path = Path(path)

    @classmethod
    def for_account(cls, cache_root: Path, account: str) -> "FileCredentialStore":
        return cls(Path(cache_root) / f"{account}_cookies.json")

    def load(self) -> list[Cookie] | None:
        if not self.path.exists():
            return None
        cookies = parse_cookies(self.path.read_text(encoding="utf-8"))
        return cookies or None

    def save(self, cookies: list[Cookie]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps([c.to_dict() for c in cookies]), encoding="utf-8")


class SessionManager:
    def __init__(
        self,
        api: FeedAPI,
        queue: BackoffQueue,
        credentials: AccountCredentials,
        credential_store: CredentialStore,
        *,
        poll_interval: float = 2.0,
        max_poll_attempts: int = 10,
        user_id_delay: float = 10.0,
    ):
        self.api = api
        self.queue = queue
        self.credentials = credentials
        self.credential_store = credential_store
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self.user_id_delay = user_id_delay

        self.state = SessionState.UNINITIALIZED
        self.user_id: str | None = None
        self.credential_source: str | None = None
        self._listeners: list[Listener] = []
        self._future: Future | None = None
        self._start_lock = threading.Lock()

    @property
    def is_ready(self) -> bool:
        return self.state == SessionState.AUTHENTICATED and self.user_id is not None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(event, payload)``; returns an unsubscribe callable.

        Events: state_changed, login_error, initialization_error, ready.
        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _emit(self, event: str, payload: Any = None) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception:
                LOG.exception("Session listener failed on %s", event)

    def _set_state(self, state: SessionState) -> None:
        self.state = state
        self._emit("state_changed", state)

    # ------------------------------------------------------------------
    # Two-phase entry points
    # ------------------------------------------------------------------

    def start(self) -> "Future[str]":
        """Run bootstrap() on a background thread; the future yields the account id."""
        with self._start_lock:
            if self._future is not None:
                return self._future
            future: Future = Future()
            self._future = future

        def _run():
            try:
                future.set_result(self.bootstrap())
            except BaseException as e:
                future.set_exception(e)

        threading.Thread(target=_run, name="feedsync-session", daemon=True).start()
        return future

    def await_ready(self, timeout: float | None = None) -> str:
        if self._future is None:
            raise RuntimeError("SessionManager.start() has not been called")
        return self._future.result(timeout)

    def bootstrap(self) -> str:
        """Authenticate and resolve the account id. Raises on failure."""
        self._set_state(SessionState.AUTHENTICATING)
        try:
            self.credential_source = self._install_credentials()
            self._wait_until_logged_in()
            user_id = self._resolve_user_id()
        except AuthenticationError as e:
            LOG.error("Failed to log in as %s: %s", self.credentials.username, e)
            self._set_state(SessionState.FAILED)
            self._emit("login_error", e)
            raise
        except Exception as e:
            LOG.error("Session initialization failed: %s", e)
            self._set_state(SessionState.FAILED)
            self._emit("initialization_error", e)
            raise

        LOG.info("Account id for %s: %s", self.credentials.username, user_id)
        self.user_id = user_id
        self._set_state(SessionState.AUTHENTICATED)
        self._emit("ready", user_id)
        return user_id

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _install_credentials(self) -> str:
        if self.credentials.cookies:
            cookies = parse_cookies(self.credentials.cookies)
            self.install_cookies(cookies)
            self.credential_store.save(cookies)
            return "inline"

        saved = self.credential_store.load()
        if saved:
            self.install_cookies(saved)
            return "restored"

        self.login()
        return "login"

    def install_cookies(self, cookies: list[Cookie]) -> None:
        self.api.set_cookies([c.to_header_string() for c in cookies])

    def login(self) -> list[Cookie]:
        """Interactive login through the queue; persists the resulting cookies."""
        creds = self.credentials
        try:
            self.queue.submit(lambda: self.api.login(creds.username, creds.password, creds.email))
        except AuthenticationError:
            raise
        except RemoteAPIError as e:
            raise AuthenticationError(f"Login rejected: {e}", e.status_code) from e
        LOG.info("Logged in to feed as %s", creds.username)

        cookies = [Cookie.from_dict(c) for c in self.api.get_cookies()]
        self.credential_store.save(cookies)
        return cookies

    def _check_logged_in(self) -> bool:
        try:
            return bool(self.api.is_logged_in())
        except TransientRemoteError as e:
            LOG.warning("Login check failed: %s", e)
            return False

    def _wait_until_logged_in(self) -> None:
        waits = 0
        while not self._check_logged_in():
            LOG.info("Waiting for feed login")
            time.sleep(self.poll_interval)
            if waits >= self.max_poll_attempts:
                LOG.error("Still not logged in after %d checks, logging in again", waits)
                self.login()
                waits = 0
            waits += 1

    def _resolve_user_id(self) -> str:
        username = self.credentials.username

        def _lookup():
            # Let login-related rate limits settle first.
            time.sleep(self.user_id_delay)
            # One attempt only: a transient error must not be requeued.
            try:
                return self.api.resolve_user_id(username)
            except RemoteAPIError as e:
                LOG.error("Account id lookup for %s failed: %s", username, e)
                return None

        try:
            user_id = self.queue.submit(_lookup)
        except Exception as e:
            raise IdentifierResolutionError(f"Error getting id for {username}: {e}") from e
        if not user_id:
            raise IdentifierResolutionError(f"No account id returned for {username}")
        return str(user_id)
