import logging

from django.db import connections
from django.http import HttpResponse
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from bucketkv import conf
from bucketkv.exceptions import BucketKVError, StoreConnectionError, ValidationError
from bucketkv.serializers import (
    BatchPutSerializer,
    KeyListSerializer,
    StoredValueSerializer,
    TallyActionSerializer,
    TallySerializer,
)
from bucketkv.services import BucketKV

logger = logging.getLogger(__name__)

BUCKET_PARAMETER = OpenApiParameter(
    name="bucket",
    type=str,
    location=OpenApiParameter.PATH,
    description="Bucket holding the key (max 50 bytes)",
)
KEY_PARAMETER = OpenApiParameter(
    name="key",
    type=str,
    location=OpenApiParameter.PATH,
    description="The key (max 300 bytes)",
)


def _bucket_handle(bucket: str) -> BucketKV:
    kv = BucketKV()
    kv.set_bucket(bucket)
    return kv


def _error_response(exc: BucketKVError) -> Response:
    """Map a store error onto an HTTP status."""
    if isinstance(exc, ValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, StoreConnectionError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        logger.error(f"Key/value request failed: {exc}")
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return Response({"detail": str(exc)}, status=code)


class KeyValueView(APIView):
    """Read, write and delete a single key. Values travel as raw bytes."""

    @extend_schema(
        operation_id="read_key",
        summary="Read a value",
        description="Return the stored bytes with the key's recorded content type (text/html when none is recorded).",
        parameters=[BUCKET_PARAMETER, KEY_PARAMETER],
        responses={
            (200, "*/*"): OpenApiResponse(response=OpenApiTypes.BINARY, description="The stored value"),
            404: OpenApiResponse(description="Key not found or empty"),
        },
        tags=["Key-Value Operations"],
    )
    def get(self, request, bucket: str, key: str):
        try:
            with _bucket_handle(bucket) as kv:
                value = kv.get(key)
                mime = kv.get_mime(key)
        except BucketKVError as exc:
            return _error_response(exc)

        # Absent and empty values cannot be told apart.
        if not value:
            return Response({"detail": "Key not found"}, status=status.HTTP_404_NOT_FOUND)
        return HttpResponse(value, content_type=mime)

    @extend_schema(
        operation_id="put_key",
        summary="Create or update a value",
        description=(
            "Store the raw request body under the key, replacing any previous value. "
            "The content type is taken from the `mime` query parameter, or else from the request Content-Type."
        ),
        parameters=[
            BUCKET_PARAMETER,
            KEY_PARAMETER,
            OpenApiParameter(
                name="mime",
                type=str,
                location=OpenApiParameter.QUERY,
                description="Content type to record for the key",
                required=False,
            ),
        ],
        request={"*/*": OpenApiTypes.BINARY},
        responses={
            200: OpenApiResponse(response=StoredValueSerializer, description="Value stored"),
            400: OpenApiResponse(description="Bucket, key or value exceeds its size limit"),
        },
        tags=["Key-Value Operations"],
    )
    def put(self, request, bucket: str, key: str):
        body = request.body
        mime = request.query_params.get("mime") or request.content_type

        try:
            with _bucket_handle(bucket) as kv:
                with kv.transaction():
                    kv.set(key, body)
                    if mime:
                        kv.set_mime(key, mime)
                stored_mime = kv.get_mime(key)
        except BucketKVError as exc:
            return _error_response(exc)

        serializer = StoredValueSerializer(
            {"bucket": kv.bucket, "key": key, "size": len(body), "mime": stored_mime}
        )
        return Response(serializer.data, status=status.HTTP_200_OK)

    @extend_schema(
        operation_id="delete_key",
        summary="Delete a value",
        description="Remove the key and its content type. Deleting a missing key succeeds.",
        parameters=[BUCKET_PARAMETER, KEY_PARAMETER],
        responses={204: OpenApiResponse(description="Key deleted")},
        tags=["Key-Value Operations"],
    )
    def delete(self, request, bucket: str, key: str):
        try:
            with _bucket_handle(bucket) as kv:
                kv.delete(key)
        except BucketKVError as exc:
            return _error_response(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)


class KeyListView(APIView):
    """List the keys of a bucket by prefix."""

    @extend_schema(
        operation_id="list_keys",
        summary="List keys by prefix",
        description="Return every key in the bucket that starts with `prefix`. Order is not guaranteed.",
        parameters=[
            BUCKET_PARAMETER,
            OpenApiParameter(
                name="prefix",
                type=str,
                location=OpenApiParameter.QUERY,
                description="Key prefix to match (default: all keys)",
                required=False,
            ),
        ],
        responses={200: OpenApiResponse(response=KeyListSerializer, description="Matching keys")},
        tags=["Key-Value Operations"],
    )
    def get(self, request, bucket: str):
        prefix = request.query_params.get("prefix", "")
        try:
            with _bucket_handle(bucket) as kv:
                keys = kv.list_keys(prefix)
        except BucketKVError as exc:
            return _error_response(exc)

        serializer = KeyListSerializer({"bucket": kv.bucket, "count": len(keys), "keys": keys})
        return Response(serializer.data)


class BatchPutView(APIView):
    """Write several keys of one bucket in a single transaction."""

    @extend_schema(
        operation_id="batch_put",
        summary="Batch create or update values",
        description=(
            "Write multiple key/value pairs in a single transaction. All writes succeed or none do. "
            "Duplicate keys within the batch are not allowed."
        ),
        parameters=[BUCKET_PARAMETER],
        request=BatchPutSerializer,
        responses={
            200: OpenApiResponse(response=KeyListSerializer, description="Keys written"),
            400: OpenApiResponse(description="Invalid batch (duplicate keys, empty items, size limits)"),
        },
        tags=["Key-Value Operations"],
    )
    def post(self, request, bucket: str):
        serializer = BatchPutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        items = serializer.validated_data["items"]

        try:
            with _bucket_handle(bucket) as kv:
                with kv.transaction():
                    for item in items:
                        kv.set(item["key"], item["value"])
                        if item.get("mime"):
                            kv.set_mime(item["key"], item["mime"])
        except BucketKVError as exc:
            return _error_response(exc)

        keys = [item["key"] for item in items]
        logger.info(f"Batch wrote {len(keys)} keys to bucket {kv.bucket}")
        return Response(KeyListSerializer({"bucket": kv.bucket, "count": len(keys), "keys": keys}).data)


class TallyView(APIView):
    """Read and update a named counter."""

    @extend_schema(
        operation_id="read_tally",
        summary="Read a tally",
        description="Return the tally, initializing it to `offset` when it does not exist yet.",
        parameters=[
            BUCKET_PARAMETER,
            KEY_PARAMETER,
            OpenApiParameter(
                name="offset",
                type=int,
                location=OpenApiParameter.QUERY,
                description="Initial value for a new tally (default: 0)",
                required=False,
            ),
        ],
        responses={
            200: OpenApiResponse(response=TallySerializer, description="Current tally"),
            400: OpenApiResponse(description="Invalid offset"),
        },
        tags=["Tallies"],
    )
    def get(self, request, bucket: str, key: str):
        try:
            offset = int(request.query_params.get("offset", 0))
        except ValueError:
            return Response({"detail": "offset must be an integer"}, status=status.HTTP_400_BAD_REQUEST)

        try:
            with _bucket_handle(bucket) as kv:
                value = kv.tally(key, offset)
        except BucketKVError as exc:
            return _error_response(exc)
        return Response(TallySerializer({"key": key, "value": value}).data)

    @extend_schema(
        operation_id="update_tally",
        summary="Increment, decrement or reset a tally",
        parameters=[BUCKET_PARAMETER, KEY_PARAMETER],
        request=TallyActionSerializer,
        responses={200: OpenApiResponse(response=TallySerializer, description="Tally after the update")},
        tags=["Tallies"],
    )
    def post(self, request, bucket: str, key: str):
        serializer = TallyActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        action = serializer.validated_data["action"]

        try:
            with _bucket_handle(bucket) as kv:
                if action == "incr":
                    value = kv.tally_incr(key)
                elif action == "decr":
                    value = kv.tally_decr(key)
                else:
                    kv.tally_reset(key)
                    value = 0
        except BucketKVError as exc:
            return _error_response(exc)
        return Response(TallySerializer({"key": key, "value": value}).data)


class HealthCheckView(APIView):
    """Report whether the backing database can be opened."""

    @extend_schema(
        operation_id="health_check",
        summary="Health check",
        description="Opens the configured database (creating the tables if needed) and reports its vendor.",
        responses={
            200: OpenApiResponse(description="Database reachable"),
            503: OpenApiResponse(description="Database unreachable or not configured"),
        },
        tags=["Health & Monitoring"],
    )
    def get(self, request):
        alias = conf.get_database_alias()
        try:
            with BucketKV(database=alias):
                vendor = connections[alias].vendor
        except BucketKVError as exc:
            return Response(
                {"status": "unavailable", "database": alias, "detail": str(exc)},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        return Response({"status": "healthy", "database": alias, "vendor": vendor}, status=status.HTTP_200_OK)
