"""Command implementations behind the feedsync CLI."""
from __future__ import annotations

import json
from concurrent.futures import TimeoutError as FutureTimeoutError

from .auth import load_credentials
from .client import FeedClient
from .config import find_config_file, get_path, init_config, show_config
from .errors import FeedSyncError
from .models import FeedItem, string_to_uuid
from .remote import HttpFeedAPI
from .session import FileCredentialStore
from .storage.db import SQLiteRecordStore, open_db


def build_client(args, character_name: str | None = None) -> FeedClient:
    credentials = load_credentials()
    agent_id = args.agent_id or string_to_uuid(f"agent-{credentials.username}")
    if args.db:
        store = SQLiteRecordStore(open_db(args.db))
    else:
        store = SQLiteRecordStore.for_account(credentials.username)
    credential_store = None
    if args.cookie_file:
        credential_store = FileCredentialStore.for_account(get_path("cache_root"), credentials.username)
    return FeedClient.build(
        HttpFeedAPI.from_config(),
        store,
        agent_id,
        credentials,
        character_name=character_name,
        credential_store=credential_store,
    )


def format_item(item: FeedItem) -> str:
    header = f"@{item.username or 'unknown'}"
    if item.name:
        header = f"{item.name} (@{item.username})"
    lines = [
        "─────────────────────────────",
        f"{header}  •  {item.created_at or '?'}",
        "",
        item.text[:500] + ("..." if len(item.text) > 500 else ""),
    ]
    if item.permanent_url:
        lines.append(item.permanent_url)
    return "\n".join(lines)


def run_sync(args) -> int:
    client = build_client(args, character_name=args.character)
    print(f"🔗 Connecting as @{client.session.credentials.username}...")
    try:
        result = client.start().result(args.timeout)
    except FutureTimeoutError:
        print(f"⏱️ Timed out after {args.timeout}s (state: {client.session.state.value})")
        return 124
    except FeedSyncError as e:
        print(f"✗ Sync failed: {e}")
        return 1

    mode = "resumed from snapshot" if result.resumed else "fresh fetch"
    print(f"✓ Account id {client.session.user_id} ({client.session.credential_source})")
    print(f"✓ {len(result.candidates)} candidates ({mode}), {len(result.created)} new records")
    return 0


def run_item(args) -> int:
    client = build_client(args)
    cached = client.cache.get(args.item_id)
    if cached is None:
        try:
            client.session.bootstrap()
        except FeedSyncError as e:
            print(f"✗ Login failed: {e}")
            return 1
    item = cached or client.get_item(args.item_id)
    if item is None:
        print(f"No item {args.item_id}")
        return 1
    print(format_item(item))
    print()
    print(json.dumps(item.to_dict(), indent=2, ensure_ascii=False))
    return 0


def run_search(args) -> int:
    client = build_client(args)
    try:
        client.session.bootstrap()
    except FeedSyncError as e:
        print(f"✗ Login failed: {e}")
        return 1

    print(f"\n🔍 Searching for: {args.query}")
    page = client.fetch_search(args.query, args.limit, args.mode, args.cursor)
    if not page.items:
        print("\nNo items found.")
        return 0

    print(f"\n📋 Found {len(page.items)} items:\n")
    for item in page.items:
        print(format_item(item))
        print()
    if page.next_cursor:
        print(f"Next page: --cursor {page.next_cursor}")
    return 0


def run_config(args) -> int:
    if args.path:
        print(find_config_file() or "(no config file - using defaults)")
        return 0
    if not args.init:
        show_config()
        return 0
    try:
        path = init_config(force=args.force)
    except FileExistsError as e:
        print(f"✗ {e} (use --force to overwrite)")
        return 1
    print(f"✓ Created config file: {path}")
    return 0
