from typing import Union

from bucketkv.exceptions import BucketTooLong, KeyTooLong, ValueTooLarge
from bucketkv.models import BUCKET_MAX_LENGTH, DEFAULT_BUCKET, KEY_MAX_LENGTH, VALUE_MAX_SIZE

ValueType = Union[bytes, bytearray, memoryview, str]


def resolve_bucket(name: str) -> str:
    """Return the effective bucket for ``name``; unset or empty means the default bucket."""
    return name or DEFAULT_BUCKET


def to_bytes(value: ValueType) -> bytes:
    """Normalize a value to bytes. Text is stored as UTF-8."""
    if isinstance(value, bytes):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    raise TypeError(f"value must be bytes or str, not {type(value).__name__}")


def validate_record(bucket: str, key: str, value: bytes) -> None:
    """
    Check a record against the column limits before anything is written.

    Raises:
        BucketTooLong: bucket is longer than 50 bytes
        KeyTooLong: key is longer than 300 bytes
        ValueTooLarge: value is larger than 16,777,215 bytes
    """
    size = len(bucket.encode("utf-8"))
    if size > BUCKET_MAX_LENGTH:
        raise BucketTooLong(size, BUCKET_MAX_LENGTH)

    size = len(key.encode("utf-8"))
    if size > KEY_MAX_LENGTH:
        raise KeyTooLong(size, KEY_MAX_LENGTH)

    if len(value) > VALUE_MAX_SIZE:
        raise ValueTooLarge(len(value), VALUE_MAX_SIZE)
