from rest_framework import serializers

from bucketkv.models import KEY_MAX_LENGTH

MAX_BATCH_SIZE = 1000  # Maximum items written in a single batch transaction

TALLY_ACTIONS = ("incr", "decr", "reset")


class KeyListSerializer(serializers.Serializer):
    """Keys of a bucket matching a prefix."""

    bucket = serializers.CharField(help_text="Effective bucket name")
    count = serializers.IntegerField(help_text="Number of keys returned")
    keys = serializers.ListField(
        child=serializers.CharField(),
        help_text="Matching keys, in backend order (not sorted)",
    )


class StoredValueSerializer(serializers.Serializer):
    """Summary of a value written through the API."""

    bucket = serializers.CharField()
    key = serializers.CharField()
    size = serializers.IntegerField(help_text="Number of bytes stored")
    mime = serializers.CharField(help_text="Content type reported for the key")


class BatchItemSerializer(serializers.Serializer):
    """Serializer for a single item in a batch write."""

    key = serializers.CharField(
        max_length=KEY_MAX_LENGTH,
        help_text="The key for this item (max 300 bytes)",
    )
    value = serializers.CharField(
        allow_blank=True,
        trim_whitespace=False,
        help_text="The value to store for this key, encoded as UTF-8. Can be empty string.",
    )
    mime = serializers.CharField(
        required=False,
        help_text="Optional content type recorded for the key",
    )


class BatchPutSerializer(serializers.Serializer):
    """Serializer for batch writes."""

    items = BatchItemSerializer(
        many=True,
        help_text="Key/value pairs written to the bucket in a single transaction",
    )

    def validate_items(self, items):
        if not items:
            raise serializers.ValidationError("At least one item is required")

        if len(items) > MAX_BATCH_SIZE:
            raise serializers.ValidationError(
                f"Batch size {len(items)} exceeds maximum of {MAX_BATCH_SIZE} items"
            )

        keys = [item["key"] for item in items]
        if len(keys) != len(set(keys)):
            raise serializers.ValidationError("Duplicate keys detected in batch request")
        return items


class TallySerializer(serializers.Serializer):
    key = serializers.CharField()
    value = serializers.IntegerField(help_text="Current value of the tally")


class TallyActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(
        choices=TALLY_ACTIONS,
        help_text="incr and decr add or subtract one; reset sets the tally to 0",
    )
