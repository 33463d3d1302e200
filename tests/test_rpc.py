import base64
import unittest
from datetime import datetime, timezone

from botocore.exceptions import ClientError

from bucket_console.errors import (
    OperationError,
    PartialRenameError,
    PayloadTooLargeError,
    SourceNotFoundError,
    StorageConnectionError,
    ValidationError,
)
from bucket_console.models import Bucket, Credentials, ListingPage, ObjectInfo
from bucket_console.rpc import StorageRPC, decoded_base64_length
from bucket_console.services import StorageService
from test_services import FakeS3Client, stored

CREDENTIALS = {
    "account_id": "acct",
    "access_key_id": "access",
    "secret_access_key": "secret",
}


class FakeService:
    def __init__(self, credentials):
        self.credentials = credentials
        self.calls = []
        self.error = None
        self.buckets = [Bucket(name="alpha", creation_date=datetime(2024, 1, 1, tzinfo=timezone.utc))]
        self.page = ListingPage(
            objects=[ObjectInfo(key="a.txt", size=3)],
            common_prefixes=["dir/"],
            continuation_token="next",
            is_truncated=True,
        )

    def _record(self, *call):
        self.calls.append(call)
        if self.error:
            raise self.error

    def list_buckets(self):
        self._record("list_buckets")
        return self.buckets

    def list_objects(self, bucket_name, prefix="", continuation_token=None):
        self._record("list_objects", bucket_name, prefix, continuation_token)
        return self.page

    def sign_download_url(self, bucket_name, key, expires_in=3600):
        self._record("sign", bucket_name, key, expires_in)
        return "https://signed"

    def delete_object(self, bucket_name, key):
        self._record("delete_object", bucket_name, key)

    def rename_object(self, bucket_name, old_key, new_key):
        self._record("rename_object", bucket_name, old_key, new_key)

    def put_object(self, bucket_name, key, body, content_type=None):
        self._record("put_object", bucket_name, key, body, content_type)

    def create_bucket(self, name):
        self._record("create_bucket", name)

    def delete_bucket(self, name):
        self._record("delete_bucket", name)


class StorageRPCTests(unittest.TestCase):
    def setUp(self):
        self.services = []
        self.next_error = None

        def factory(credentials):
            service = FakeService(credentials)
            service.error = self.next_error
            self.services.append(service)
            return service

        self.rpc = StorageRPC(service_factory=factory, max_upload_bytes=6)

    def request(self, **fields):
        return {**CREDENTIALS, **fields}

    def test_validate_credentials_returns_buckets(self):
        result = self.rpc.validate_credentials(self.request())

        self.assertEqual(
            {"success": True, "buckets": [{"name": "alpha", "creation_date": "2024-01-01T00:00:00+00:00"}]},
            result,
        )
        self.assertEqual(Credentials("acct", "access", "secret"), self.services[0].credentials)

    def test_validate_credentials_reports_failure_without_raising(self):
        self.next_error = StorageConnectionError("InvalidAccessKeyId")

        result = self.rpc.validate_credentials(self.request())

        self.assertEqual({"success": False, "error": "Invalid credentials or connection error"}, result)

    def test_missing_credential_field_is_rejected_before_service_is_built(self):
        request = self.request(bucket_name="alpha", key="a.txt")
        request["secret_access_key"] = ""

        with self.assertRaises(ValidationError) as ctx:
            self.rpc.delete_object(request)

        self.assertEqual("Secret Access Key is required", str(ctx.exception))
        self.assertEqual([], self.services)

    def test_empty_bucket_name_is_rejected(self):
        with self.assertRaises(ValidationError):
            self.rpc.list_objects(self.request(bucket_name=""))

        self.assertEqual([], self.services)

    def test_optional_endpoint_is_threaded_through(self):
        self.rpc.list_buckets(self.request(endpoint="http://localhost:9000"))

        self.assertEqual("http://localhost:9000", self.services[0].credentials.endpoint)

    def test_each_call_builds_a_fresh_service(self):
        self.rpc.delete_object(self.request(bucket_name="alpha", key="a.txt"))
        self.rpc.delete_object(self.request(bucket_name="alpha", key="b.txt"))

        self.assertEqual(2, len(self.services))
        self.assertIsNot(self.services[0], self.services[1])

    def test_list_objects_returns_page_shape(self):
        result = self.rpc.list_objects(
            self.request(bucket_name="alpha", prefix="dir/", continuation_token="tok")
        )

        self.assertEqual(("list_objects", "alpha", "dir/", "tok"), self.services[0].calls[0])
        self.assertEqual(["dir/"], result["common_prefixes"])
        self.assertEqual("a.txt", result["objects"][0]["key"])
        self.assertEqual("next", result["continuation_token"])
        self.assertTrue(result["is_truncated"])

    def test_list_objects_defaults_prefix_to_root(self):
        self.rpc.list_objects(self.request(bucket_name="alpha"))

        self.assertEqual(("list_objects", "alpha", "", None), self.services[0].calls[0])

    def test_get_signed_url_defaults_expiry(self):
        url = self.rpc.get_signed_url(self.request(bucket_name="alpha", key="a.txt"))

        self.assertEqual("https://signed", url)
        self.assertEqual(("sign", "alpha", "a.txt", 3600), self.services[0].calls[0])

    def test_get_signed_url_rejects_invalid_expiry(self):
        with self.assertRaises(ValidationError):
            self.rpc.get_signed_url(self.request(bucket_name="alpha", key="a.txt", expires_in=0))

    def test_backend_failure_is_labelled(self):
        cause = ClientError({"Error": {"Code": "AccessDenied", "Message": "Denied"}}, "DeleteObject")
        self.next_error = cause

        with self.assertRaises(OperationError) as ctx:
            self.rpc.delete_object(self.request(bucket_name="alpha", key="a.txt"))

        self.assertEqual(f"Failed to delete object: {cause}", str(ctx.exception))
        self.assertEqual("delete object", ctx.exception.action)
        self.assertIs(cause, ctx.exception.__cause__)

    def test_missing_rename_source_is_labelled(self):
        self.next_error = SourceNotFoundError("alpha", "old.txt")

        with self.assertRaises(OperationError) as ctx:
            self.rpc.rename_object(self.request(bucket_name="alpha", old_key="old.txt", new_key="new.txt"))

        self.assertEqual(
            "Failed to rename object: Object old.txt does not exist in bucket alpha",
            str(ctx.exception),
        )
        self.assertNotIsInstance(ctx.exception, PartialRenameError)

    def test_partial_rename_is_surfaced_distinctly(self):
        partial = PartialRenameError("alpha", "old.txt", "new.txt", "delete refused")
        self.next_error = partial

        with self.assertRaises(PartialRenameError) as ctx:
            self.rpc.rename_object(self.request(bucket_name="alpha", old_key="old.txt", new_key="new.txt"))

        self.assertIs(partial, ctx.exception)

    def test_rename_returns_success(self):
        result = self.rpc.rename_object(self.request(bucket_name="alpha", old_key="old.txt", new_key="new.txt"))

        self.assertEqual({"success": True}, result)
        self.assertEqual(("rename_object", "alpha", "old.txt", "new.txt"), self.services[0].calls[0])

    def test_upload_over_limit_is_rejected_before_any_call(self):
        encoded = base64.b64encode(b"1234567").decode("ascii")

        with self.assertRaises(PayloadTooLargeError) as ctx:
            self.rpc.upload_object(self.request(bucket_name="alpha", key="big.bin", file_base64=encoded))

        self.assertEqual((7, 6), (ctx.exception.size, ctx.exception.limit))
        self.assertEqual([], self.services)

    def test_upload_at_limit_is_accepted(self):
        encoded = base64.b64encode(b"123456").decode("ascii")

        result = self.rpc.upload_object(
            self.request(bucket_name="alpha", key="ok.bin", file_base64=encoded, content_type="application/octet-stream")
        )

        self.assertEqual({"success": True}, result)
        self.assertEqual(
            ("put_object", "alpha", "ok.bin", b"123456", "application/octet-stream"),
            self.services[0].calls[0],
        )

    def test_upload_just_under_limit_is_accepted(self):
        encoded = base64.b64encode(b"12345").decode("ascii")

        self.rpc.upload_object(self.request(bucket_name="alpha", key="ok.bin", file_base64=encoded))

        self.assertEqual(b"12345", self.services[0].calls[0][3])

    def test_upload_rejects_invalid_base64(self):
        with self.assertRaises(ValidationError):
            self.rpc.upload_object(self.request(bucket_name="alpha", key="a.bin", file_base64="!!!!"))

        self.assertEqual([], self.services)

    def test_create_bucket_requires_three_characters(self):
        with self.assertRaises(ValidationError):
            self.rpc.create_bucket(self.request(name="ab"))

        self.assertEqual({"success": True}, self.rpc.create_bucket(self.request(name="abc")))

    def test_delete_bucket_failure_is_labelled(self):
        self.next_error = RuntimeError("The bucket you tried to delete is not empty.")

        with self.assertRaises(OperationError) as ctx:
            self.rpc.delete_bucket(self.request(name="alpha"))

        self.assertEqual(
            "Failed to delete bucket: The bucket you tried to delete is not empty.",
            str(ctx.exception),
        )


class DecodedLengthTests(unittest.TestCase):
    def test_matches_decoded_size(self):
        for raw in (b"", b"a", b"ab", b"abc", b"abcd"):
            encoded = base64.b64encode(raw).decode("ascii")
            self.assertEqual(len(raw), decoded_base64_length(encoded))


class StorageRPCEndToEndTests(unittest.TestCase):
    def test_listing_a_folder_through_the_real_service(self):
        fake = FakeS3Client(
            {
                "media": {
                    "photos/a.png": stored(b"png"),
                    "photos/b/c.png": stored(b"png"),
                    "docs/d.txt": stored(b"txt"),
                }
            }
        )
        rpc = StorageRPC(
            service_factory=lambda credentials: StorageService(
                credentials, client_factory=lambda *_, **__: fake
            )
        )

        result = rpc.list_objects({**CREDENTIALS, "bucket_name": "media", "prefix": "photos/"})

        self.assertEqual(["photos/b/"], result["common_prefixes"])
        self.assertEqual(["photos/a.png"], [obj["key"] for obj in result["objects"]])
        self.assertFalse(result["is_truncated"])
        self.assertIsNone(result["continuation_token"])


if __name__ == "__main__":
    unittest.main()
