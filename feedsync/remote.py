"""Remote feed API surface and the default HTTP adapter."""
from __future__ import annotations

import logging
from typing import Any, Protocol

import requests

from .errors import AuthenticationError, RemoteAPIError, TransientRemoteError

LOG = logging.getLogger(__name__)

SEARCH_MODE_LATEST = "Latest"
SEARCH_MODE_TOP = "Top"

TRANSIENT_STATUS = {408, 425, 429, 500, 502, 503, 504}
AUTH_STATUS = {401, 403}


class FeedAPI(Protocol):
    """What the session, client and reconciler need from the remote side.

    Payloads are returned raw; see ``normalize`` for the item shapes.
    """

    def login(self, username: str, password: str | None, email: str | None = None) -> None: ...

    def is_logged_in(self) -> bool: ...

    def get_cookies(self) -> list[dict]: ...

    def set_cookies(self, cookies: list[str]) -> None: ...

    def get_item(self, item_id: str) -> dict | None: ...

    def fetch_home_timeline(self, count: int, exclude_ids: list[str]) -> list[dict]: ...

    def fetch_search(self, query: str, max_items: int, mode: str, cursor: str | None = None) -> dict: ...

    def resolve_user_id(self, username: str) -> str | None: ...


def parse_cookie_string(value: str) -> dict:
    """Parse 'k=v; Domain=..; Path=..; Secure; HttpOnly; SameSite=..' into a cookie dict."""
    parts = [p.strip() for p in value.split(";")]
    key, _, val = parts[0].partition("=")
    cookie: dict[str, Any] = {"key": key.strip(), "value": val.strip(), "secure": False, "httpOnly": False}
    for attr in parts[1:]:
        if not attr:
            continue
        name, _, attr_value = attr.partition("=")
        name = name.strip().lower()
        if name == "domain":
            cookie["domain"] = attr_value.strip()
        elif name == "path":
            cookie["path"] = attr_value.strip()
        elif name == "secure":
            cookie["secure"] = True
        elif name == "httponly":
            cookie["httpOnly"] = True
        elif name == "samesite":
            cookie["sameSite"] = attr_value.strip()
    return cookie


class HttpFeedAPI:
    """FeedAPI over a JSON gateway, keeping auth in a requests cookie jar.

    Endpoints: POST /login, GET /session, GET /items/{id}, GET /timeline/home,
    GET /search, GET /users/by-name/{name}.
    """

    def __init__(self, base_url: str, timeout: float = 20, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = session or requests.Session()

    @classmethod
    def from_config(cls) -> "HttpFeedAPI":
        from .config import get

        return cls(get("remote.base_url"), timeout=float(get("remote.timeout", 20)))

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = self.base_url + path
        try:
            r = self.http.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientRemoteError(f"{method} {path}: {e}") from e

        if r.status_code in TRANSIENT_STATUS:
            raise TransientRemoteError(f"{method} {path}: HTTP {r.status_code}", r.status_code)
        if r.status_code in AUTH_STATUS:
            raise AuthenticationError(f"{method} {path}: HTTP {r.status_code}", r.status_code)
        if r.status_code >= 400:
            raise RemoteAPIError(f"{method} {path}: HTTP {r.status_code} {r.text[:200]}", r.status_code)
        return r

    def login(self, username: str, password: str | None, email: str | None = None) -> None:
        if not password:
            raise AuthenticationError("No password configured for interactive login")
        self._request("POST", "/login", json={"username": username, "password": password, "email": email})
        LOG.info("Logged in as %s", username)

    def is_logged_in(self) -> bool:
        try:
            r = self._request("GET", "/session")
        except AuthenticationError:
            return False
        return bool(r.json().get("loggedIn"))

    def get_cookies(self) -> list[dict]:
        return [
            {
                "key": c.name,
                "value": c.value,
                "domain": c.domain,
                "path": c.path,
                "secure": bool(c.secure),
                "httpOnly": c.has_nonstandard_attr("HttpOnly"),
            }
            for c in self.http.cookies
        ]

    def set_cookies(self, cookies: list[str]) -> None:
        for raw in cookies:
            c = parse_cookie_string(raw)
            self.http.cookies.set(
                c["key"], c["value"], domain=c.get("domain", ""), path=c.get("path", "/"), secure=c["secure"]
            )

    def get_item(self, item_id: str) -> dict | None:
        try:
            r = self._request("GET", f"/items/{item_id}")
        except RemoteAPIError as e:
            if e.status_code == 404:
                return None
            raise
        return r.json()

    def fetch_home_timeline(self, count: int, exclude_ids: list[str]) -> list[dict]:
        params: dict[str, Any] = {"count": count}
        if exclude_ids:
            params["exclude"] = ",".join(exclude_ids)
        r = self._request("GET", "/timeline/home", params=params)
        return r.json().get("items", [])

    def fetch_search(self, query: str, max_items: int, mode: str, cursor: str | None = None) -> dict:
        params: dict[str, Any] = {"q": query, "count": max_items, "mode": mode}
        if cursor:
            params["cursor"] = cursor
        r = self._request("GET", "/search", params=params)
        data = r.json()
        return {"tweets": data.get("tweets", []), "next": data.get("next")}

    def resolve_user_id(self, username: str) -> str | None:
        r = self._request("GET", f"/users/by-name/{username}")
        return r.json().get("id")
