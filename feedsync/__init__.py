"""feedsync - session, cache and timeline sync for rate-limited social feeds."""

__version__ = "0.3.0"
