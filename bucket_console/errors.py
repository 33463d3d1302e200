from __future__ import annotations
"""Exception hierarchy for storage console operations."""


class ConsoleError(RuntimeError):
    """Base class for every error raised by the console."""


class StorageConnectionError(ConsoleError):
    """Raised when the storage endpoint rejects the credentials or cannot be reached."""


class NotFoundError(ConsoleError):
    """Raised when a probed object does not exist."""


class SourceNotFoundError(NotFoundError):
    """Raised when the object to rename does not exist. Nothing was modified."""

    def __init__(self, bucket_name: str, key: str):
        self.bucket_name = bucket_name
        self.key = key
        super().__init__(f"Object {key} does not exist in bucket {bucket_name}")


class OperationError(ConsoleError):
    """A backend failure labelled with the operation that triggered it."""

    def __init__(self, action: str, reason: str):
        self.action = action
        self.reason = reason
        super().__init__(f"Failed to {action}: {reason}")


class PartialRenameError(OperationError):
    """The placeholder was written at ``new_key`` but ``old_key`` survived.

    Both keys exist afterwards: the original content at ``old_key`` and an
    empty object at ``new_key``.
    """

    def __init__(self, bucket_name: str, old_key: str, new_key: str, reason: str):
        self.bucket_name = bucket_name
        self.old_key = old_key
        self.new_key = new_key
        super().__init__(
            "rename object",
            f"created '{new_key}' but could not delete '{old_key}' in bucket "
            f"{bucket_name}; both keys now exist ({reason})",
        )


class ValidationError(ConsoleError, ValueError):
    """Raised when a request is missing a required field."""


class PayloadTooLargeError(ValidationError):
    """Raised when an upload exceeds the configured size ceiling."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        megabytes, remainder = divmod(limit, 1024 * 1024)
        readable = f"{megabytes}MB" if megabytes and not remainder else f"{limit} bytes"
        super().__init__(f"File too large. Maximum upload size is {readable}")
