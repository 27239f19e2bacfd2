"""Errors raised by the bucketed key/value layer.

Backend failures are re-raised as one of these with the driver error chained
as ``__cause__``. A missing row is never an error: reads normalise it to an
empty value, the default mime or an empty key list.
"""


class BucketKVError(Exception):
    """Base class for every error raised by bucketkv."""


class StoreConnectionError(BucketKVError):
    """The backend is unreachable or the database alias is not configured."""


class ValidationError(BucketKVError, ValueError):
    """A record exceeds one of the column size limits. Nothing was written."""

    what = "record"

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"{self.what} too long: {size} bytes (limit {limit})")


class BucketTooLong(ValidationError):
    what = "bucket id"


class KeyTooLong(ValidationError):
    what = "key"


class ValueTooLarge(ValidationError):
    what = "value"


class TransactionError(BucketKVError):
    """Begin, commit or rollback failed."""


class StorageError(BucketKVError):
    """Any other backend failure during get, upsert, delete or scan."""
