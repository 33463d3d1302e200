from __future__ import annotations
"""Data models for credentials, buckets and object listings."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

DEFAULT_ENDPOINT_TEMPLATE = "https://{account_id}.r2.cloudflarestorage.com"


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Credentials:
    """The credential bundle attached to every storage call."""

    account_id: str
    access_key_id: str
    secret_access_key: str
    endpoint: Optional[str] = None

    def resolve_endpoint(self, template: str = DEFAULT_ENDPOINT_TEMPLATE) -> str:
        if self.endpoint:
            return self.endpoint
        return template.format(account_id=self.account_id)

    def to_request(self) -> dict[str, str]:
        payload = {
            "account_id": self.account_id,
            "access_key_id": self.access_key_id,
            "secret_access_key": self.secret_access_key,
        }
        if self.endpoint:
            payload["endpoint"] = self.endpoint
        return payload


@dataclass
class Bucket:
    name: str
    creation_date: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "creation_date": _isoformat(self.creation_date)}


@dataclass
class ObjectInfo:
    """A single object as returned by a listing."""

    key: str
    size: int = 0
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    storage_class: Optional[str] = None
    content_type: Optional[str] = None
    metadata: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "size": self.size,
            "last_modified": _isoformat(self.last_modified),
            "etag": self.etag,
            "storage_class": self.storage_class,
            "content_type": self.content_type,
            "metadata": dict(self.metadata),
        }


@dataclass
class ObjectProbe:
    """Content type and user metadata captured by an existence probe."""

    content_type: Optional[str] = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class ListingPage:
    """One page of a prefix listing.

    ``continuation_token`` must be passed back unchanged to fetch the next
    page. A missing token together with ``is_truncated=False`` marks the
    final page.
    """

    objects: list[ObjectInfo] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)
    continuation_token: Optional[str] = None
    is_truncated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "objects": [obj.to_dict() for obj in self.objects],
            "common_prefixes": list(self.common_prefixes),
            "continuation_token": self.continuation_token,
            "is_truncated": self.is_truncated,
        }


@dataclass
class CredentialCheck:
    """Outcome of a credential validation call."""

    success: bool
    buckets: list[Bucket] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "buckets": [bucket.to_dict() for bucket in self.buckets]}
        return {"success": False, "error": self.error}
