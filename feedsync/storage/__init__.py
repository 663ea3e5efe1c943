"""SQLite record store for feedsync (per-account).

Holds ingested items as records keyed by their derived id, plus the
accounts/rooms/participants needed for "ensure connection".
"""

from .db import RecordStore, SQLiteRecordStore, ensure_schema, open_db  # noqa: F401
