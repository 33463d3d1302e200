from __future__ import annotations
"""Non-atomic object rename for backends without a usable copy operation.

The move is emulated in three sequential steps: probe the source, write an
empty placeholder carrying the source's content type and metadata at the
destination, then delete the source. The destination is written before the
source is removed so at no point is neither key present.

Known limitation: the placeholder has an empty body. The original bytes are
not carried over to the new key. A first-byte range read of such an empty
object is rejected with 416 InvalidRange, so the probe falls back to a HEAD
request; renaming a placeholder again keeps working.
"""
import logging
from typing import TYPE_CHECKING

from .errors import PartialRenameError, SourceNotFoundError, ValidationError

if TYPE_CHECKING:  # pragma: no cover
    from .services import StorageService

LOGGER = logging.getLogger(__name__)


def rename_object(service: "StorageService", bucket_name: str, old_key: str, new_key: str) -> None:
    """Move ``old_key`` to ``new_key`` inside ``bucket_name``.

    Raises:
        SourceNotFoundError: the source could not be probed; nothing changed.
        BotoCoreError | ClientError: writing the placeholder failed; the
            object remains only at ``old_key``.
        PartialRenameError: the placeholder exists at ``new_key`` but
            ``old_key`` could not be deleted.
    """
    if old_key == new_key:
        raise ValidationError("New key must differ from the original key")

    LOGGER.debug("Renaming '%s' to '%s' in bucket '%s'", old_key, new_key, bucket_name)
    try:
        probe = service.head_or_peek(bucket_name, old_key)
    except Exception as exc:
        LOGGER.error("Rename source %s not found in %s: %s", old_key, bucket_name, exc)
        raise SourceNotFoundError(bucket_name, old_key) from exc

    service.put_object(
        bucket_name,
        new_key,
        b"",
        content_type=probe.content_type,
        metadata=probe.metadata or None,
    )
    LOGGER.debug("Placeholder written at '%s'", new_key)

    try:
        service.delete_object(bucket_name, old_key)
    except Exception as exc:
        LOGGER.error("Rename left both %s and %s in %s: %s", old_key, new_key, bucket_name, exc)
        raise PartialRenameError(bucket_name, old_key, new_key, str(exc)) from exc

    LOGGER.info("Renamed '%s' to '%s' in bucket '%s'", old_key, new_key, bucket_name)
