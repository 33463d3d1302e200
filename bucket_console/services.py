from __future__ import annotations
"""Storage client adapter for S3-compatible endpoints."""
import logging
from typing import Callable, Optional, Union

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .errors import NotFoundError, StorageConnectionError
from .models import DEFAULT_ENDPOINT_TEMPLATE, Bucket, Credentials, ListingPage, ObjectInfo, ObjectProbe
from .rename import rename_object

LOGGER = logging.getLogger(__name__)

PAGE_SIZE = 1000
DELIMITER = "/"
REGION = "auto"
NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
INVALID_RANGE_CODES = {"416", "InvalidRange"}


def is_not_found(exc: ClientError) -> bool:
    error = exc.response.get("Error", {})
    return str(error.get("Code", "")) in NOT_FOUND_CODES


def is_invalid_range(exc: ClientError) -> bool:
    error = exc.response.get("Error", {})
    return str(error.get("Code", "")) in INVALID_RANGE_CODES


class StorageService:
    """Wraps a single S3 client bound to one credential bundle.

    A new instance is built for every call so no connection state outlives
    the request that created it.
    """

    def __init__(
        self,
        credentials: Credentials,
        *,
        client_factory: Callable[..., object] | None = None,
        endpoint_template: str = DEFAULT_ENDPOINT_TEMPLATE,
    ):
        self._credentials = credentials
        self._client_factory = client_factory or boto3.client
        self._endpoint_url = credentials.resolve_endpoint(endpoint_template)
        self._client = self._create_client()

    @property
    def endpoint_url(self) -> str:
        return self._endpoint_url

    def _create_client(self):
        config = Config(signature_version="s3v4")
        return self._client_factory(
            "s3",
            endpoint_url=self._endpoint_url,
            region_name=REGION,
            aws_access_key_id=self._credentials.access_key_id,
            aws_secret_access_key=self._credentials.secret_access_key,
            config=config,
        )

    def list_buckets(self) -> list[Bucket]:
        """Return the buckets visible to the credentials.

        Raises:
            StorageConnectionError: when the endpoint rejects the call.
        """
        LOGGER.debug("Listing buckets at %s", self._endpoint_url)
        try:
            response = self._client.list_buckets()
        except (BotoCoreError, ClientError) as exc:
            LOGGER.error("Error listing buckets at %s: %s", self._endpoint_url, exc)
            raise StorageConnectionError(str(exc)) from exc
        return [
            Bucket(name=entry["Name"], creation_date=entry.get("CreationDate"))
            for entry in response.get("Buckets", [])
        ]

    def list_objects(
        self,
        bucket_name: str,
        prefix: str = "",
        continuation_token: str | None = None,
    ) -> ListingPage:
        """Return one page of keys and common prefixes directly under ``prefix``."""

        params = {
            "Bucket": bucket_name,
            "Prefix": prefix,
            "Delimiter": DELIMITER,
            "MaxKeys": PAGE_SIZE,
        }
        if continuation_token:
            params["ContinuationToken"] = continuation_token
        LOGGER.debug("Listing objects in '%s' under '%s'", bucket_name, prefix)
        try:
            response = self._client.list_objects_v2(**params)
        except (BotoCoreError, ClientError) as exc:
            LOGGER.error("Error listing objects in bucket %s: %s", bucket_name, exc)
            raise

        objects = [
            ObjectInfo(
                key=entry["Key"],
                size=entry.get("Size", 0),
                last_modified=entry.get("LastModified"),
                etag=entry.get("ETag"),
                storage_class=entry.get("StorageClass"),
            )
            for entry in response.get("Contents", [])
        ]
        prefixes = [common["Prefix"] for common in response.get("CommonPrefixes", [])]
        return ListingPage(
            objects=objects,
            common_prefixes=prefixes,
            continuation_token=response.get("NextContinuationToken"),
            is_truncated=bool(response.get("IsTruncated", False)),
        )

    def head_or_peek(self, bucket_name: str, key: str) -> ObjectProbe:
        """Check that ``key`` exists by reading only its first byte.

        Raises:
            NotFoundError: when the key does not exist.
        """
        try:
            response = self._client.get_object(Bucket=bucket_name, Key=key, Range="bytes=0-0")
        except ClientError as exc:
            if is_not_found(exc):
                raise NotFoundError(f"Object {key} does not exist in bucket {bucket_name}") from exc
            if not is_invalid_range(exc):
                LOGGER.error("Error probing object %s: %s", key, exc)
                raise
            # zero-byte objects have no first byte to read
            response = self._head_object(bucket_name, key)
        body = response.get("Body")
        if body is not None:
            body.close()
        return ObjectProbe(
            content_type=response.get("ContentType"),
            metadata=dict(response.get("Metadata") or {}),
        )

    def _head_object(self, bucket_name: str, key: str) -> dict:
        try:
            return self._client.head_object(Bucket=bucket_name, Key=key)
        except ClientError as exc:
            if is_not_found(exc):
                raise NotFoundError(f"Object {key} does not exist in bucket {bucket_name}") from exc
            LOGGER.error("Error probing object %s: %s", key, exc)
            raise

    def put_object(
        self,
        bucket_name: str,
        key: str,
        body: Union[bytes, str],
        content_type: str | None = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> None:
        """Write ``body`` at ``key``, replacing any existing object."""

        params = {"Bucket": bucket_name, "Key": key, "Body": body}
        if content_type:
            params["ContentType"] = content_type
        if metadata:
            params["Metadata"] = metadata
        LOGGER.debug("Putting object '%s' into '%s'", key, bucket_name)
        try:
            self._client.put_object(**params)
        except (BotoCoreError, ClientError) as exc:
            LOGGER.error("Error uploading object %s: %s", key, exc)
            raise

    def delete_object(self, bucket_name: str, key: str) -> None:
        LOGGER.debug("Deleting object '%s' from '%s'", key, bucket_name)
        try:
            self._client.delete_object(Bucket=bucket_name, Key=key)
        except (BotoCoreError, ClientError) as exc:
            LOGGER.error("Error deleting object %s: %s", key, exc)
            raise

    def create_bucket(self, bucket_name: str) -> None:
        LOGGER.debug("Creating bucket '%s'", bucket_name)
        try:
            self._client.create_bucket(Bucket=bucket_name)
        except (BotoCoreError, ClientError) as exc:
            LOGGER.error("Error creating bucket %s: %s", bucket_name, exc)
            raise

    def delete_bucket(self, bucket_name: str) -> None:
        """Delete an empty bucket. The backend refuses non-empty buckets."""

        LOGGER.debug("Deleting bucket '%s'", bucket_name)
        try:
            self._client.delete_bucket(Bucket=bucket_name)
        except (BotoCoreError, ClientError) as exc:
            LOGGER.error("Error deleting bucket %s: %s", bucket_name, exc)
            raise

    def sign_download_url(self, bucket_name: str, key: str, expires_in: int = 3600) -> str:
        """Create a time-limited GET URL for ``key``."""

        if expires_in <= 0:
            raise ValueError("expires_in must be greater than zero")
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket_name, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            LOGGER.error("Error generating signed URL for %s: %s", key, exc)
            raise

    def rename_object(self, bucket_name: str, old_key: str, new_key: str) -> None:
        """Move ``old_key`` to ``new_key``. See :func:`rename.rename_object` for failure modes."""

        rename_object(self, bucket_name, old_key, new_key)
