"""Exception hierarchy for the content sync engine.

Request-level errors (``RequestValidationError``, ``ExistingStateError``)
abort a sync before any write.  Record-level errors
(``NormalizationError``, ``StoreError``) are caught by the engine and
converted into error entries of the ``SyncResult``.
"""


class ContentSyncError(Exception):
    """Base class for all content sync errors."""


class RequestValidationError(ContentSyncError):
    """The sync request itself is malformed (bad scope, no records)."""


class ExistingStateError(ContentSyncError):
    """The current store state could not be read."""


class NormalizationError(ContentSyncError):
    """A single external record could not be normalized."""


class StoreError(ContentSyncError):
    """A store write was rejected."""


class StoreUnavailableError(StoreError):
    """The store could not be reached (connection refused, timeout)."""
