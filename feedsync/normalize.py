"""Normalize raw feed payloads into FeedItem.

The remote side returns the same post in two shapes: a flattened one
(``text``, ``userId``, ``conversationId`` ...) and the nested legacy one
(``legacy.full_text``, ``core.user_results.result.legacy.screen_name`` ...).
Flattened fields always win; legacy paths are the fallback.
"""
from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Iterable

from .config import get
from .models import FeedItem

LOG = logging.getLogger(__name__)

VISIBILITY_WRAPPER = "TweetWithVisibilityResults"
LEGACY_TIME_FORMAT = "%a %b %d %H:%M:%S %z %Y"


def _dig(d: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(d, dict):
            return None
        d = d.get(key)
    return d


def _prefer(flat: Any, legacy: Any) -> Any:
    return flat if flat is not None else legacy


def _media(raw: dict, flat_key: str, media_type: str) -> list:
    flat = raw.get(flat_key)
    if flat is not None:
        return list(flat)
    media = _dig(raw, "legacy", "entities", "media") or []
    return [m for m in media if isinstance(m, dict) and m.get("type") == media_type]


def parse_timestamp(value: str | None) -> int | None:
    """Epoch seconds from a legacy ('Wed Oct 10 20:19:24 +0000 2018') or ISO string."""
    if not value:
        return None
    try:
        return int(dt.datetime.strptime(value, LEGACY_TIME_FORMAT).timestamp())
    except ValueError:
        pass
    try:
        parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return int(parsed.timestamp())


def permanent_url(item_id: str, username: str | None) -> str | None:
    if not username:
        return None
    template = get("remote.item_url_template", "https://twitter.com/{username}/status/{id}")
    return template.format(username=username, id=item_id)


def normalize_item(raw: dict) -> FeedItem | None:
    """Map either wire shape to a FeedItem; None when no id can be found."""
    item_id = _prefer(raw.get("id"), _prefer(raw.get("rest_id"), _dig(raw, "legacy", "id_str")))
    if item_id is None:
        return None
    item_id = str(item_id)

    user_legacy = _dig(raw, "core", "user_results", "result", "legacy")
    username = _prefer(raw.get("username"), _dig(user_legacy, "screen_name"))
    created_at = _prefer(raw.get("createdAt"), _dig(raw, "legacy", "created_at"))
    timestamp = raw.get("timestamp")
    if timestamp is None:
        timestamp = parse_timestamp(created_at)

    return FeedItem(
        id=item_id,
        user_id=_prefer(raw.get("userId"), _dig(raw, "legacy", "user_id_str")),
        username=username,
        name=_prefer(raw.get("name"), _dig(user_legacy, "name")),
        text=_prefer(raw.get("text"), _dig(raw, "legacy", "full_text")) or "",
        conversation_id=_prefer(raw.get("conversationId"), _dig(raw, "legacy", "conversation_id_str")),
        in_reply_to_id=_prefer(raw.get("inReplyToStatusId"), _dig(raw, "legacy", "in_reply_to_status_id_str")),
        created_at=created_at,
        timestamp=int(timestamp) if timestamp is not None else None,
        hashtags=list(_prefer(raw.get("hashtags"), _dig(raw, "legacy", "entities", "hashtags")) or []),
        mentions=list(_prefer(raw.get("mentions"), _dig(raw, "legacy", "entities", "user_mentions")) or []),
        photos=_media(raw, "photos", "photo"),
        videos=_media(raw, "videos", "video"),
        urls=list(_prefer(raw.get("urls"), _dig(raw, "legacy", "entities", "urls")) or []),
        permanent_url=_prefer(raw.get("permanentUrl"), permanent_url(item_id, username)),
    )


def normalize_items(raw_items: Iterable[dict]) -> list[FeedItem]:
    items = []
    for raw in raw_items or []:
        if not isinstance(raw, dict):
            continue
        item = normalize_item(raw)
        if item is None:
            LOG.debug("Skipping payload without an id: %s", list(raw.keys()))
            continue
        items.append(item)
    return items


def normalize_timeline(raw_items: Iterable[dict]) -> list[FeedItem]:
    """Normalize home timeline entries, dropping visibility wrappers."""
    return normalize_items(
        r for r in raw_items or [] if isinstance(r, dict) and r.get("__typename") != VISIBILITY_WRAPPER
    )
