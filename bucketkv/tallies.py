"""
Named integer counters ("tallies").

A tally lives in the current bucket as an ordinary record whose key is the
tally name behind a reserved prefix, and whose value is the count written as
base-10 text. A missing record means the tally is uninitialized, not zero.
"""

from bucketkv.models import Record
from bucketkv.validators import validate_record

TALLY_KEY_PREFIX = "_______#tally-"


def tally_key(key: str) -> str:
    """Return the record key that stores the tally named ``key``."""
    return f"{TALLY_KEY_PREFIX}{key}"


class TallyMixin:
    """Counter operations for a handle that provides ``bucket``, ``set`` and ``_session``."""

    def tally(self, key: str, offset: int = 0) -> int:
        """
        Return the tally, initializing it to ``offset`` if it does not exist yet.

        Once initialized, later calls return the stored value whatever
        ``offset`` they pass.
        """
        return self._count(key, delta=0, initial=offset)

    def tally_incr(self, key: str) -> int:
        """Add one to the tally (starting from 0 when uninitialized) and return the new value."""
        return self._count(key, delta=1, initial=0)

    def tally_decr(self, key: str) -> int:
        """Subtract one from the tally (starting from 0 when uninitialized) and return the new value."""
        return self._count(key, delta=-1, initial=0)

    def tally_reset(self, key: str) -> None:
        """Set the tally to 0 whether or not it exists."""
        self.set(tally_key(key), b"0")

    def _count(self, key: str, delta: int, initial: int) -> int:
        bucket = self.bucket
        name = tally_key(key)
        validate_record(bucket, name, b"")
        with self._session() as store:
            return store.increment_row(Record, bucket, name, delta, initial)
