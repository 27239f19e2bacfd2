"""
Bucketed key/value handle.

``BucketKV`` maps (bucket, key) to a binary value on top of ``RowStore``. It
keeps a current bucket, opens its connection lazily, optionally closes it
after every operation, and scopes a sequence of operations into one
transaction with ``begin``/``commit``/``rollback`` or ``transaction()``.

A handle is not thread-safe: the current bucket and the transaction are
plain instance state. Give each thread its own handle.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from bucketkv import conf
from bucketkv.exceptions import BucketKVError
from bucketkv.models import DEFAULT_BUCKET, MIME_BUCKET, MimeRecord, Record
from bucketkv.rowstore import RowStore
from bucketkv.tallies import TallyMixin
from bucketkv.validators import ValueType, resolve_bucket, to_bytes, validate_record

logger = logging.getLogger(__name__)


class BucketKV(TallyMixin):
    """
    Key/value handle over one database alias.

    Examples
    --------
        >>> kv = BucketKV()
        >>> kv.set_bucket("docs")
        >>> kv.set("readme", b"<h1>hi</h1>")
        >>> kv.get("readme")
        b'<h1>hi</h1>'
        >>> kv.get_mime("readme")
        'text/html'

        >>> with kv.transaction():
        ...     kv.set("a", b"1")
        ...     kv.tally_incr("writes")

    Parameters
    ----------
    database : str, optional
        Django database alias. Defaults to ``BUCKETKV_DATABASE``.
    auto_close : bool, optional
        Close the connection after each operation (never inside a
        transaction). Defaults to ``BUCKETKV_AUTO_CLOSE``.
    """

    def __init__(self, database: Optional[str] = None, auto_close: Optional[bool] = None):
        self.database = database or conf.get_database_alias()
        self.auto_close = conf.get_auto_close() if auto_close is None else auto_close
        self.store = RowStore(self.database)
        self._bucket = DEFAULT_BUCKET

    def __enter__(self) -> "BucketKV":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"BucketKV(database={self.database!r}, bucket={self.bucket!r})"

    # --- session state --------------------------------------------------------

    @property
    def bucket(self) -> str:
        """The effective current bucket."""
        return resolve_bucket(self._bucket)

    def set_bucket(self, name: str) -> None:
        """Use ``name`` for every following operation; empty selects the default bucket."""
        self._bucket = name

    @property
    def in_transaction(self) -> bool:
        return self.store.in_transaction

    def open(self) -> None:
        self.store.open()

    def close(self) -> None:
        self.store.close()

    def begin(self) -> None:
        self.store.begin()

    def commit(self) -> None:
        self.store.commit()

    def rollback(self) -> None:
        self.store.rollback()

    @contextmanager
    def transaction(self) -> Iterator["BucketKV"]:
        """Run the block in one transaction: commit on success, roll back and re-raise on error."""
        self.open()
        try:
            self.begin()
        except BucketKVError:
            # A transaction that was already active stays open for its owner.
            if self.auto_close and not self.in_transaction:
                self.close()
            raise
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        else:
            self.commit()
        finally:
            if self.auto_close:
                self.close()

    @contextmanager
    def _session(self) -> Iterator[RowStore]:
        self.open()
        try:
            yield self.store
        finally:
            if self.auto_close and not self.store.in_transaction:
                self.close()

    # --- records --------------------------------------------------------------

    def get(self, key: str) -> bytes:
        """Return the value stored under ``key``; b"" when there is none."""
        with self._session() as store:
            value = store.get_row(Record, self.bucket, key)
        return value if value is not None else b""

    def get_mime(self, key: str) -> str:
        """Return the content type recorded for ``key``, or the default mime."""
        with self._session() as store:
            value = store.get_row(MimeRecord, MIME_BUCKET, key)
        if not value:
            return conf.get_default_mime()
        return value.decode("utf-8", errors="replace")

    def set(self, key: str, value: ValueType) -> None:
        """
        Create or replace the value of ``key`` in the current bucket.

        Raises:
            BucketTooLong, KeyTooLong, ValueTooLarge: before anything is written
            StorageError: the backend rejected the write
        """
        data = to_bytes(value)
        bucket = self.bucket
        validate_record(bucket, key, data)
        with self._session() as store:
            store.upsert_row(Record, bucket, key, data)
        logger.debug(f"Stored {len(data)} bytes at {bucket}/{key}")

    def set_mime(self, key: str, mime: str) -> None:
        """Record the content type of ``key``."""
        data = to_bytes(mime)
        validate_record(MIME_BUCKET, key, data)
        with self._session() as store:
            store.upsert_row(MimeRecord, MIME_BUCKET, key, data)

    def delete(self, key: str) -> None:
        """
        Delete ``key`` from the current bucket together with its mime record.

        Both deletes always run. Outside a transaction they are independent:
        if the mime delete fails the data record stays deleted and the error
        is raised.
        """
        bucket = self.bucket
        with self._session() as store:
            store.delete_row(Record, bucket, key)
            store.delete_row(MimeRecord, MIME_BUCKET, key)
        logger.debug(f"Deleted {bucket}/{key}")

    def list_keys(self, pattern: str = "") -> List[str]:
        """Return the keys of the current bucket that start with ``pattern``, unsorted."""
        with self._session() as store:
            return store.scan_prefix(Record, self.bucket, pattern)
