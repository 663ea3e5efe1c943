from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from typing import Any

# Fixed namespace so derived ids are stable across processes and restarts.
FEEDSYNC_NAMESPACE = uuid.UUID("6f1c2b1e-9a4d-5c3e-8f0a-2d7b4e6a9c11")


def string_to_uuid(value: str) -> str:
    """Deterministically map an arbitrary string to a UUID string."""
    return str(uuid.uuid5(FEEDSYNC_NAMESPACE, str(value)))


def derive_record_id(item_id: str, agent_id: str) -> str:
    """Durable record key for an item ingested on behalf of an agent."""
    return string_to_uuid(f"{item_id}-{agent_id}")


def default_cookie_domain() -> str:
    from .config import get

    return get("remote.cookie_domain", ".twitter.com")


def room_id_for(conversation_id: str | None, agent_id: str) -> str:
    if conversation_id:
        return string_to_uuid(conversation_id)
    return string_to_uuid(f"default-room-{agent_id}")


class SessionState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


@dataclass
class Cookie:
    key: str
    value: str
    domain: str = field(default_factory=default_cookie_domain)
    path: str = "/"
    secure: bool = True
    http_only: bool = True
    same_site: str | None = "Lax"

    def to_header_string(self) -> str:
        """Render as a Set-Cookie style string the remote client accepts."""
        return (
            f"{self.key}={self.value}; Domain={self.domain}; Path={self.path}; "
            f"{'Secure' if self.secure else ''}; {'HttpOnly' if self.http_only else ''}; "
            f"SameSite={self.same_site or 'Lax'}"
        )

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "value": self.value,
            "domain": self.domain,
            "path": self.path,
            "secure": self.secure,
            "httpOnly": self.http_only,
            "sameSite": self.same_site,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Cookie":
        return cls(
            key=str(d["key"]),
            value=str(d["value"]),
            domain=d.get("domain") or default_cookie_domain(),
            path=d.get("path") or "/",
            secure=bool(d.get("secure", True)),
            http_only=bool(d.get("httpOnly", d.get("http_only", True))),
            same_site=d.get("sameSite", d.get("same_site")) or "Lax",
        )


@dataclass
class FeedItem:
    """A normalized post."""
    id: str
    user_id: str | None = None
    username: str | None = None
    name: str | None = None
    text: str = ""
    conversation_id: str | None = None
    in_reply_to_id: str | None = None
    created_at: str | None = None
    timestamp: int | None = None
    hashtags: list = field(default_factory=list)
    mentions: list = field(default_factory=list)
    photos: list = field(default_factory=list)
    videos: list = field(default_factory=list)
    urls: list = field(default_factory=list)
    permanent_url: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "username": self.username,
            "name": self.name,
            "text": self.text,
            "conversationId": self.conversation_id,
            "inReplyToStatusId": self.in_reply_to_id,
            "createdAt": self.created_at,
            "timestamp": self.timestamp,
            "hashtags": self.hashtags,
            "mentions": self.mentions,
            "photos": self.photos,
            "videos": self.videos,
            "urls": self.urls,
            "permanentUrl": self.permanent_url,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "FeedItem":
        return cls(
            id=str(d["id"]),
            user_id=d.get("userId"),
            username=d.get("username"),
            name=d.get("name"),
            text=d.get("text") or "",
            conversation_id=d.get("conversationId"),
            in_reply_to_id=d.get("inReplyToStatusId"),
            created_at=d.get("createdAt"),
            timestamp=d.get("timestamp"),
            hashtags=list(d.get("hashtags") or []),
            mentions=list(d.get("mentions") or []),
            photos=list(d.get("photos") or []),
            videos=list(d.get("videos") or []),
            urls=list(d.get("urls") or []),
            permanent_url=d.get("permanentUrl"),
        )


@dataclass
class SearchPage:
    items: list[FeedItem] = field(default_factory=list)
    next_cursor: str | None = None


@dataclass
class Record:
    """A persisted entry in the long-term record store."""
    id: str
    user_id: str
    agent_id: str
    room_id: str
    content: dict[str, Any]
    created_at: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "agent_id": self.agent_id,
            "room_id": self.room_id,
            "content": self.content,
            "created_at": self.created_at,
        }
