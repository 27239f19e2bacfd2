from unittest import mock

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITransactionTestCase

from bucketkv.exceptions import StorageError, StoreConnectionError
from bucketkv.rowstore import RowStore
from bucketkv.services import BucketKV


class KeyValueApiTests(APITransactionTestCase):
    def test_put_and_read_key(self):
        url = reverse("bucketkv:key-detail", args=["docs", "alpha"])
        response = self.client.put(url, b"first", content_type="text/plain")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["bucket"], "docs")
        self.assertEqual(response.data["size"], 5)
        self.assertEqual(response.data["mime"], "text/plain")

        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.content, b"first")
        self.assertEqual(response["Content-Type"], "text/plain")

    def test_mime_query_parameter_wins(self):
        url = reverse("bucketkv:key-detail", args=["docs", "data"])
        response = self.client.put(
            f"{url}?mime=application/json", b'{"a": 1}', content_type="application/octet-stream"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(BucketKV().get_mime("data"), "application/json")

    def test_missing_key_returns_404(self):
        url = reverse("bucketkv:key-detail", args=["docs", "missing"])
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_removes_key(self):
        kv = BucketKV()
        kv.set_bucket("docs")
        kv.set("temp", b"old")

        url = reverse("bucketkv:key-detail", args=["docs", "temp"])
        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_bucket_too_long_returns_400(self):
        url = reverse("bucketkv:key-detail", args=["b" * 51, "k"])
        response = self.client.put(url, b"v", content_type="text/plain")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_storage_failure_returns_500(self):
        url = reverse("bucketkv:key-detail", args=["docs", "k"])
        with mock.patch.object(RowStore, "get_row", side_effect=StorageError("boom")):
            response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    def test_list_keys_by_prefix(self):
        kv = BucketKV()
        kv.set_bucket("docs")
        for key in ("sample1", "sample2", "other1"):
            kv.set(key, b"x")

        url = reverse("bucketkv:key-list", args=["docs"])
        response = self.client.get(url, {"prefix": "sample"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 2)
        self.assertEqual(set(response.data["keys"]), {"sample1", "sample2"})

    def test_batch_put_writes_all_items(self):
        url = reverse("bucketkv:batch", args=["docs"])
        payload = {
            "items": [
                {"key": "alpha", "value": "1"},
                {"key": "beta", "value": "2", "mime": "text/plain"},
            ]
        }
        response = self.client.post(url, payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 2)

        kv = BucketKV()
        kv.set_bucket("docs")
        self.assertEqual(kv.get("alpha"), b"1")
        self.assertEqual(kv.get("beta"), b"2")
        self.assertEqual(kv.get_mime("beta"), "text/plain")

    def test_batch_put_is_all_or_nothing(self):
        url = reverse("bucketkv:batch", args=["docs"])
        payload = {
            "items": [
                {"key": "alpha", "value": "1"},
                {"key": "beta", "value": "x" * 10},
            ]
        }
        with mock.patch("bucketkv.validators.VALUE_MAX_SIZE", 5):
            response = self.client.post(url, payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        kv = BucketKV()
        kv.set_bucket("docs")
        self.assertEqual(kv.get("alpha"), b"")

    def test_batch_put_rejects_duplicate_keys(self):
        url = reverse("bucketkv:batch", args=["docs"])
        payload = {"items": [{"key": "a", "value": "1"}, {"key": "a", "value": "2"}]}
        response = self.client.post(url, payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_tally_read_and_update(self):
        url = reverse("bucketkv:tally", args=["stats", "hits"])
        response = self.client.get(url, {"offset": 5})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["value"], 5)

        response = self.client.post(url, {"action": "incr"}, format="json")
        self.assertEqual(response.data["value"], 6)

        response = self.client.post(url, {"action": "decr"}, format="json")
        self.assertEqual(response.data["value"], 5)

        response = self.client.post(url, {"action": "reset"}, format="json")
        self.assertEqual(response.data["value"], 0)

        response = self.client.get(url, {"offset": 99})
        self.assertEqual(response.data["value"], 0)

    def test_tally_rejects_bad_input(self):
        url = reverse("bucketkv:tally", args=["stats", "hits"])
        self.assertEqual(self.client.get(url, {"offset": "ten"}).status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(url, {"action": "double"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_health_check(self):
        response = self.client.get(reverse("bucketkv:health"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "healthy")
        self.assertEqual(response.data["vendor"], "sqlite")

    def test_health_check_reports_unreachable_database(self):
        with mock.patch.object(RowStore, "open", side_effect=StoreConnectionError("down")):
            response = self.client.get(reverse("bucketkv:health"))
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)

    def test_schema_is_served(self):
        response = self.client.get(reverse("schema"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
