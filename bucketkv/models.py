from django.db import models

BUCKET_MAX_LENGTH = 50
KEY_MAX_LENGTH = 300
VALUE_MAX_SIZE = 16_777_215  # MEDIUMBLOB

DEFAULT_BUCKET = "default"
MIME_BUCKET = "--mime--"


class Row(models.Model):
    """Three-column (bucket, key, value) row; (bucket, key) is unique."""

    bucket = models.CharField(max_length=BUCKET_MAX_LENGTH)
    key = models.CharField(max_length=KEY_MAX_LENGTH)
    value = models.BinaryField(blank=True, default=b"", max_length=VALUE_MAX_SIZE)

    class Meta:
        abstract = True
        constraints = [
            models.UniqueConstraint(
                fields=["bucket", "key"],
                name="%(app_label)s_%(class)s_bucket_key",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.bucket}/{self.key}"


class Record(Row):
    """Data and tally rows, partitioned by bucket."""

    class Meta(Row.Meta):
        db_table = "bucketkv_record"


class MimeRecord(Row):
    """Content-type side-channel, one row per data key."""

    class Meta(Row.Meta):
        db_table = "bucketkv_mime"
