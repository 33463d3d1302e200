from __future__ import annotations
"""UI-agnostic helpers for formatting, key composition and upload encoding."""
import base64
import mimetypes
import os
from dataclasses import dataclass
from datetime import datetime
from importlib.metadata import PackageNotFoundError, metadata, version
from typing import Callable, Optional

from .errors import PayloadTooLargeError

DIST_NAME = "bucket-console"
BYTE_UNITS = ("Bytes", "KB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB")

FILE_CATEGORIES = {
    "image": {"jpg", "jpeg", "png", "gif", "webp", "svg", "bmp", "ico"},
    "text": {"txt", "md", "rtf", "csv", "json", "xml", "log"},
    "code": {
        "html", "css", "js", "jsx", "ts", "tsx", "php", "py",
        "java", "c", "cpp", "cs", "go", "rb", "swift",
    },
    "archive": {"zip", "rar", "tar", "gz", "7z"},
    "video": {"mp4", "webm", "mov", "avi", "wmv", "flv", "mkv"},
    "audio": {"mp3", "wav", "ogg", "flac", "m4a", "aac"},
}


@dataclass(frozen=True)
class PackageInfo:
    name: str
    version: str
    summary: str
    homepage: str | None
    repository: str | None
    author: str | None


def load_package_info(dist_name: str = DIST_NAME) -> PackageInfo:
    try:
        distribution_metadata = metadata(dist_name)
        package_version = version(dist_name)
    except PackageNotFoundError:
        return PackageInfo(
            name="Bucket Console",
            version="",
            summary="Manage buckets and objects on S3-compatible storage.",
            homepage=None,
            repository=None,
            author=None,
        )
    summary = distribution_metadata.get("Summary") or ""
    author = distribution_metadata.get("Author") or distribution_metadata.get("Author-email")
    homepage = distribution_metadata.get("Home-page")
    repository = None
    for entry in distribution_metadata.get_all("Project-URL") or []:
        label, _, link = entry.partition(",")
        label = label.strip().lower()
        url = link.strip()
        if label == "repository":
            repository = url
        elif label == "homepage" and not homepage:
            homepage = url
    return PackageInfo(
        name=distribution_metadata.get("Name"),
        version=package_version,
        summary=summary,
        homepage=homepage or None,
        repository=repository,
        author=author or None,
    )


def format_bytes(size: int, decimals: int = 2) -> str:
    """Human readable size: ``0 Bytes``, ``1 KB``, ``1.5 KB``."""

    if size <= 0:
        return "0 Bytes"
    digits = max(decimals, 0)
    exponent = 0
    while exponent < len(BYTE_UNITS) - 1 and size >= 1024 ** (exponent + 1):
        exponent += 1
    value = size / 1024 ** exponent
    text = f"{value:.{digits}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {BYTE_UNITS[exponent]}"


def format_last_modified(last_modified: object) -> str:
    if not last_modified:
        return "-"
    if isinstance(last_modified, datetime):
        return last_modified.strftime("%Y-%m-%d %H:%M:%S %Z").strip() or last_modified.isoformat()
    return str(last_modified)


def file_type_category(filename: str) -> str:
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    for category, extensions in FILE_CATEGORIES.items():
        if extension in extensions:
            return category
    return "file"


def compose_s3_key(prefix: str, name: str) -> str:
    key_name = name.strip()
    if not key_name:
        raise ValueError("Object name cannot be empty")
    cleaned_prefix = prefix.strip().lstrip("/")
    if cleaned_prefix and not cleaned_prefix.endswith("/"):
        cleaned_prefix += "/"
    return f"{cleaned_prefix}{key_name}" if cleaned_prefix else key_name


def guess_content_type(path: str) -> Optional[str]:
    content_type, _ = mimetypes.guess_type(path)
    return content_type


def encode_file_base64(
    path: str,
    *,
    chunk_size: int,
    max_bytes: int,
    progress_callback: Optional[Callable[[int], None]] = None,
) -> str:
    """Read ``path`` in chunks and return its base64 text.

    Files over ``max_bytes`` are rejected before any byte is read. Chunks are
    aligned to 3 bytes so the encoded pieces join without padding in between.
    """
    size = os.path.getsize(path)
    if size > max_bytes:
        raise PayloadTooLargeError(size, max_bytes)
    step = max(chunk_size - chunk_size % 3, 3)
    parts: list[str] = []
    transferred = 0
    with open(path, "rb") as handle:
        while True:
            chunk = handle.read(step)
            if not chunk:
                break
            parts.append(base64.b64encode(chunk).decode("ascii"))
            transferred += len(chunk)
            if progress_callback:
                progress_callback(transferred)
    return "".join(parts)
