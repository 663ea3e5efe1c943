from __future__ import annotations

from feedsync import config
from feedsync.models import Cookie, FeedItem, derive_record_id, room_id_for, string_to_uuid


def test_string_to_uuid_is_deterministic():
    assert string_to_uuid("abc") == string_to_uuid("abc")
    assert string_to_uuid("abc") != string_to_uuid("abd")


def test_derived_key_depends_on_agent():
    assert derive_record_id("1", "agent-a") != derive_record_id("1", "agent-b")
    assert derive_record_id("1", "agent-a") == string_to_uuid("1-agent-a")


def test_room_id_defaults_per_agent():
    assert room_id_for(None, "agent-a") == string_to_uuid("default-room-agent-a")
    assert room_id_for("55", "agent-a") == string_to_uuid("55")


def test_cookie_header_string():
    c = Cookie(key="auth_token", value="v", secure=False, http_only=True, same_site=None)
    assert c.to_header_string() == "auth_token=v; Domain=.twitter.com; Path=/; ; HttpOnly; SameSite=Lax"


def test_cookie_wire_keys():
    c = Cookie.from_dict({"key": "a", "value": "b", "httpOnly": False, "sameSite": "Strict"})
    assert c.to_dict()["httpOnly"] is False
    assert c.to_dict()["sameSite"] == "Strict"


def test_feed_item_dict_shape():
    item = FeedItem(id="1", conversation_id="9", in_reply_to_id="8", permanent_url="u")
    d = item.to_dict()
    assert d["conversationId"] == "9"
    assert d["inReplyToStatusId"] == "8"
    assert FeedItem.from_dict(d) == item


def test_cookie_domain_default_comes_from_config(monkeypatch):
    monkeypatch.setitem(config._config_cache["remote"], "cookie_domain", "gw.example")

    assert Cookie(key="a", value="b").domain == "gw.example"
    assert Cookie.from_dict({"key": "a", "value": "b"}).domain == "gw.example"
    assert Cookie.from_dict({"key": "a", "value": "b", "domain": ".other"}).domain == ".other"
