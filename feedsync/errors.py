"""Exceptions raised by feedsync."""
from __future__ import annotations


class FeedSyncError(Exception):
    """Base class for all feedsync errors."""


class RemoteAPIError(FeedSyncError):
    """The remote feed API rejected a call."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransientRemoteError(RemoteAPIError):
    """Rate limit, timeout or connectivity problem; safe to retry."""


class AuthenticationError(RemoteAPIError):
    """Credentials were refused or the login flow failed."""


class IdentifierResolutionError(FeedSyncError):
    """The authenticated account's id could not be resolved."""


class CredentialParseError(FeedSyncError):
    """Inline or persisted cookie material is malformed."""


class CacheIOError(FeedSyncError):
    """Reading or writing the durable item cache failed."""


class ReconciliationFetchError(FeedSyncError):
    """Fetching candidates for reconciliation failed."""
