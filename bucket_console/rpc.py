from __future__ import annotations
"""Request validation and dispatch for storage console operations."""
import base64
import binascii
import logging
from contextlib import contextmanager
from functools import partial
from typing import Any, Callable, Iterator, Mapping

from botocore.exceptions import BotoCoreError, ClientError

from .errors import (
    OperationError,
    PayloadTooLargeError,
    StorageConnectionError,
    ValidationError,
)
from .models import DEFAULT_ENDPOINT_TEMPLATE, CredentialCheck, Credentials
from .services import StorageService

LOGGER = logging.getLogger(__name__)

# 100 MiB of base64 text decodes to 75 MiB.
MAX_UPLOAD_BYTES = 75 * 1024 * 1024
DEFAULT_EXPIRES_IN = 3600
MIN_BUCKET_NAME_LENGTH = 3
INVALID_CREDENTIALS_MESSAGE = "Invalid credentials or connection error"

Request = Mapping[str, Any]
ServiceFactory = Callable[[Credentials], StorageService]


def decoded_base64_length(encoded: str) -> int:
    """Number of bytes ``encoded`` decodes to, computed without decoding it."""

    stripped = encoded.strip()
    if not stripped:
        return 0
    padding = min(len(stripped) - len(stripped.rstrip("=")), 2)
    return len(stripped) * 3 // 4 - padding


def _required(request: Request, field: str, label: str) -> str:
    value = request.get(field)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{label} is required")
    return value


def _optional(request: Request, field: str) -> str | None:
    value = request.get(field)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value


def parse_credentials(request: Request) -> Credentials:
    """Build :class:`Credentials` from the credential fields of ``request``."""

    return Credentials(
        account_id=_required(request, "account_id", "Account ID"),
        access_key_id=_required(request, "access_key_id", "Access Key ID"),
        secret_access_key=_required(request, "secret_access_key", "Secret Access Key"),
        endpoint=_optional(request, "endpoint"),
    )


@contextmanager
def _labelled(action: str) -> Iterator[None]:
    try:
        yield
    except (OperationError, ValidationError):
        raise
    except Exception as exc:
        LOGGER.error("Error trying to %s: %s", action, exc)
        raise OperationError(action, str(exc)) from exc


class StorageRPC:
    """Stateless operation surface.

    Every call carries its own credentials and gets a fresh
    :class:`StorageService`; nothing is shared between calls.
    """

    def __init__(
        self,
        *,
        service_factory: ServiceFactory | None = None,
        endpoint_template: str = DEFAULT_ENDPOINT_TEMPLATE,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        default_expires_in: int = DEFAULT_EXPIRES_IN,
    ):
        self._service_factory = service_factory or partial(
            StorageService, endpoint_template=endpoint_template
        )
        self._max_upload_bytes = max_upload_bytes
        self._default_expires_in = default_expires_in

    @property
    def max_upload_bytes(self) -> int:
        return self._max_upload_bytes

    def validate_credentials(self, request: Request) -> dict[str, Any]:
        """Return ``{"success": True, "buckets": [...]}`` or a failure shape.

        Backend failures never raise here so the caller can show them inline.
        """
        credentials = parse_credentials(request)
        try:
            buckets = self._service_factory(credentials).list_buckets()
        except (StorageConnectionError, BotoCoreError, ClientError, ValueError) as exc:
            LOGGER.warning("Credential validation failed for account %s: %s", credentials.account_id, exc)
            return CredentialCheck(success=False, error=INVALID_CREDENTIALS_MESSAGE).to_dict()
        LOGGER.info("Validated credentials for account %s", credentials.account_id)
        return CredentialCheck(success=True, buckets=buckets).to_dict()

    def list_buckets(self, request: Request) -> dict[str, Any]:
        credentials = parse_credentials(request)
        with _labelled("list buckets"):
            buckets = self._service_factory(credentials).list_buckets()
        return {"buckets": [bucket.to_dict() for bucket in buckets]}

    def list_objects(self, request: Request) -> dict[str, Any]:
        credentials = parse_credentials(request)
        bucket_name = _required(request, "bucket_name", "Bucket name")
        prefix = _optional(request, "prefix") or ""
        continuation_token = _optional(request, "continuation_token")
        with _labelled("list objects"):
            page = self._service_factory(credentials).list_objects(
                bucket_name, prefix, continuation_token
            )
        return page.to_dict()

    def get_signed_url(self, request: Request) -> str:
        credentials = parse_credentials(request)
        bucket_name = _required(request, "bucket_name", "Bucket name")
        key = _required(request, "key", "Object key")
        expires_in = request.get("expires_in", self._default_expires_in)
        if isinstance(expires_in, bool) or not isinstance(expires_in, int) or expires_in <= 0:
            raise ValidationError("expires_in must be a positive number of seconds")
        with _labelled("get signed URL"):
            return self._service_factory(credentials).sign_download_url(bucket_name, key, expires_in)

    def delete_object(self, request: Request) -> dict[str, bool]:
        credentials = parse_credentials(request)
        bucket_name = _required(request, "bucket_name", "Bucket name")
        key = _required(request, "key", "Object key")
        with _labelled("delete object"):
            self._service_factory(credentials).delete_object(bucket_name, key)
        return {"success": True}

    def rename_object(self, request: Request) -> dict[str, bool]:
        """Move an object to a new key.

        Not atomic: a :class:`PartialRenameError` means both keys exist.
        """
        credentials = parse_credentials(request)
        bucket_name = _required(request, "bucket_name", "Bucket name")
        old_key = _required(request, "old_key", "Original key")
        new_key = _required(request, "new_key", "New key")
        with _labelled("rename object"):
            self._service_factory(credentials).rename_object(bucket_name, old_key, new_key)
        return {"success": True}

    def upload_object(self, request: Request) -> dict[str, bool]:
        credentials = parse_credentials(request)
        bucket_name = _required(request, "bucket_name", "Bucket name")
        key = _required(request, "key", "Object key")
        file_base64 = _required(request, "file_base64", "File data")
        content_type = _optional(request, "content_type")

        size = decoded_base64_length(file_base64)
        if size > self._max_upload_bytes:
            LOGGER.warning("Rejected upload of %d bytes to %s/%s", size, bucket_name, key)
            raise PayloadTooLargeError(size, self._max_upload_bytes)
        try:
            body = base64.b64decode(file_base64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValidationError("File data is not valid base64") from exc

        with _labelled("upload object"):
            self._service_factory(credentials).put_object(bucket_name, key, body, content_type)
        return {"success": True}

    def create_bucket(self, request: Request) -> dict[str, bool]:
        credentials = parse_credentials(request)
        name = _required(request, "name", "Bucket name")
        if len(name) < MIN_BUCKET_NAME_LENGTH:
            raise ValidationError(
                f"Bucket name must be at least {MIN_BUCKET_NAME_LENGTH} characters."
            )
        with _labelled("create bucket"):
            self._service_factory(credentials).create_bucket(name)
        return {"success": True}

    def delete_bucket(self, request: Request) -> dict[str, bool]:
        credentials = parse_credentials(request)
        name = _required(request, "name", "Bucket name")
        with _labelled("delete bucket"):
            self._service_factory(credentials).delete_bucket(name)
        return {"success": True}
