"""
Row store adapter over the Django ORM.

Runs the row primitives (get, upsert, delete, prefix scan, increment) against
one database alias. While a transaction started with ``begin()`` is active,
Django routes every query issued on that alias through it, so callers never
pick between the transaction and the plain connection themselves.
"""

import logging
import re
from contextlib import contextmanager
from typing import List, Optional, Type

from django.core.exceptions import ImproperlyConfigured
from django.db import Error, connections, transaction
from django.utils.connection import ConnectionDoesNotExist

from bucketkv.exceptions import StorageError, StoreConnectionError, TransactionError
from bucketkv.models import MimeRecord, Record, Row

logger = logging.getLogger(__name__)

TABLES = (Record, MimeRecord)
COUNTER_PATTERN = re.compile(r"-?[0-9]+")


@contextmanager
def _storage_errors(action: str, bucket: str, key: str):
    """Re-raise driver errors as StorageError, keeping the driver error as the cause."""
    try:
        yield
    except Error as exc:
        logger.warning(f"Row {action} failed for {bucket}/{key}: {exc}")
        raise StorageError(f"{action} {bucket}/{key} failed: {exc}") from exc


def _parse_counter(raw: bytes, bucket: str, key: str) -> int:
    text = raw.decode("ascii", errors="replace")
    # int() alone would also take whitespace and digit separators
    if not COUNTER_PATTERN.fullmatch(text):
        raise StorageError(f"Counter {bucket}/{key} holds a non-integer value: {text!r}")
    return int(text)


class RowStore:
    """
    Connection, transaction and row access for a single database alias.

    Pool size and connection lifetime come from the alias's ``DATABASES``
    entry (``CONN_MAX_AGE`` and engine ``OPTIONS``); nothing is tuned per call.
    """

    def __init__(self, alias: str):
        self.alias = alias
        self._connection = None
        self._atomic = None

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    @property
    def in_transaction(self) -> bool:
        return self._atomic is not None

    # --- connection -----------------------------------------------------------

    def open(self) -> None:
        """
        Connect and make sure the backing tables exist. No-op when already open.

        Raises:
            StoreConnectionError: alias not configured, backend unreachable or
                the tables could not be created
        """
        if self._connection is not None:
            return

        try:
            connection = connections[self.alias]
        except (ConnectionDoesNotExist, ImproperlyConfigured) as exc:
            raise StoreConnectionError(f"Database {self.alias!r} is not configured: {exc}") from exc

        try:
            connection.ensure_connection()
            self._ensure_schema(connection)
        except Error as exc:
            logger.error(f"Cannot open database {self.alias!r}: {exc}")
            raise StoreConnectionError(f"Cannot open database {self.alias!r}: {exc}") from exc

        self._connection = connection
        logger.debug(f"Opened database {self.alias!r}")

    def _ensure_schema(self, connection) -> None:
        # Create-if-absent only; existing tables are never altered.
        existing = set(connection.introspection.table_names())
        missing = [model for model in TABLES if model._meta.db_table not in existing]
        if not missing:
            return
        with connection.schema_editor() as editor:
            for model in missing:
                logger.info(f"Creating table {model._meta.db_table} on {self.alias!r}")
                editor.create_model(model)

    def close(self) -> None:
        """
        Release the connection. An active transaction is rolled back first.

        Safe to call when nothing is open. The connection itself goes back to
        Django, which keeps it alive while ``CONN_MAX_AGE`` allows. Inside a
        caller's ``atomic`` block the connection is left alone; Django releases
        it at the end of the request.
        """
        try:
            if self._atomic is not None:
                logger.warning(f"Closing {self.alias!r} inside a transaction, rolling back")
                self.rollback()
        finally:
            connection, self._connection = self._connection, None
            if connection is not None and not connection.in_atomic_block:
                try:
                    connection.close_if_unusable_or_obsolete()
                except Error as exc:
                    raise StoreConnectionError(f"Cannot close database {self.alias!r}: {exc}") from exc
                logger.debug(f"Released database {self.alias!r}")

    # --- transactions ---------------------------------------------------------

    def begin(self) -> None:
        """
        Start a transaction; every row operation joins it until commit or rollback.

        Raises:
            TransactionError: no open connection, a transaction is already
                active, or the backend refused to start one
        """
        if self._connection is None:
            raise TransactionError(f"Cannot begin a transaction on {self.alias!r}: connection is not open")
        if self._atomic is not None:
            raise TransactionError("A transaction is already active; nested transactions are not supported")

        atomic = transaction.atomic(using=self.alias)
        try:
            atomic.__enter__()
        except Error as exc:
            raise TransactionError(f"Cannot begin a transaction on {self.alias!r}: {exc}") from exc
        self._atomic = atomic
        logger.debug(f"Began transaction on {self.alias!r}")

    def commit(self) -> None:
        """Commit the active transaction. Without one this silently does nothing."""
        if self._atomic is None:
            return

        if connections[self.alias].needs_rollback:
            # A query failed inside the transaction; Django will only roll it back.
            self.rollback()
            raise TransactionError(
                f"Transaction on {self.alias!r} was marked for rollback after a failed query; "
                f"its changes were discarded"
            )

        self._finish(rollback=False)
        logger.debug(f"Committed transaction on {self.alias!r}")

    def rollback(self) -> None:
        """Roll back the active transaction. Without one this silently does nothing."""
        if self._atomic is None:
            return

        self._finish(rollback=True)
        logger.debug(f"Rolled back transaction on {self.alias!r}")

    def _finish(self, rollback: bool) -> None:
        atomic, self._atomic = self._atomic, None
        try:
            if rollback:
                transaction.set_rollback(True, using=self.alias)
            atomic.__exit__(None, None, None)
        except Error as exc:
            action = "roll back" if rollback else "commit"
            logger.error(f"Cannot {action} transaction on {self.alias!r}: {exc}")
            raise TransactionError(f"Cannot {action} transaction on {self.alias!r}: {exc}") from exc

    # --- rows -----------------------------------------------------------------

    def get_row(self, model: Type[Row], bucket: str, key: str) -> Optional[bytes]:
        """Return the stored value, or None when the row does not exist."""
        with _storage_errors("get", bucket, key):
            try:
                value = (
                    model.objects.using(self.alias)
                    .values_list("value", flat=True)
                    .get(bucket=bucket, key=key)
                )
            except model.DoesNotExist:
                return None
        # PostgreSQL hands back memoryview for binary columns
        return bytes(value)

    def upsert_row(self, model: Type[Row], bucket: str, key: str, value: bytes) -> None:
        """Insert the row or replace the value of the existing (bucket, key) row in one statement."""
        options = {"update_conflicts": True, "update_fields": ["value"]}
        # MySQL's ON DUPLICATE KEY UPDATE takes no conflict target
        if connections[self.alias].features.supports_update_conflicts_with_target:
            options["unique_fields"] = ["bucket", "key"]

        with _storage_errors("upsert", bucket, key):
            model.objects.using(self.alias).bulk_create(
                [model(bucket=bucket, key=key, value=value)], **options
            )

    def delete_row(self, model: Type[Row], bucket: str, key: str) -> None:
        with _storage_errors("delete", bucket, key):
            model.objects.using(self.alias).filter(bucket=bucket, key=key).delete()

    def scan_prefix(self, model: Type[Row], bucket: str, prefix: str) -> List[str]:
        """Return the keys in ``bucket`` starting with ``prefix``, in backend order."""
        with _storage_errors("scan", bucket, f"{prefix}*"):
            keys = list(
                model.objects.using(self.alias)
                .filter(bucket=bucket, key__startswith=prefix)
                .values_list("key", flat=True)
            )
        # LIKE ignores case on SQLite and on MySQL's default collations
        return [key for key in keys if key.startswith(prefix)]

    def increment_row(self, model: Type[Row], bucket: str, key: str, delta: int, initial: int) -> int:
        """
        Atomically add ``delta`` to an integer row and return the new value.

        The row is locked for the read-modify-write. A missing or empty row
        counts as ``initial``, and is written even when ``delta`` is zero.

        Raises:
            StorageError: the stored value is not a base-10 integer, or the
                backend failed
        """
        with _storage_errors("increment", bucket, key):
            with transaction.atomic(using=self.alias):
                row = (
                    model.objects.using(self.alias)
                    .select_for_update()
                    .filter(bucket=bucket, key=key)
                    .first()
                )
                current = bytes(row.value) if row is not None else b""
                if current:
                    result = _parse_counter(current, bucket, key) + delta
                else:
                    result = initial + delta

                if not current or delta:
                    self.upsert_row(model, bucket, key, str(result).encode("ascii"))
        return result
