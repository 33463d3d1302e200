from __future__ import annotations
"""Application settings persistence helpers."""

from dataclasses import asdict, dataclass
import json
import logging
from pathlib import Path

from .models import DEFAULT_ENDPOINT_TEMPLATE
from .rpc import DEFAULT_EXPIRES_IN, MAX_UPLOAD_BYTES

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class AppSettings:
    """Simple container for persistent app settings."""

    endpoint_template: str = DEFAULT_ENDPOINT_TEMPLATE
    signed_url_expiry: int = DEFAULT_EXPIRES_IN
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    upload_chunk_size: int = 3 * 1024 * 1024
    listing_stale_seconds: int = 30
    log_level: str = "INFO"

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level, logging.INFO)


def _positive_int(value: object, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _chunk_size(value: object) -> int:
    # base64 chunks only concatenate cleanly on 3-byte boundaries
    size = _positive_int(value, AppSettings.upload_chunk_size)
    return max(size - size % 3, 3)


class SettingsStorage:
    """JSON-backed persistence for :class:`AppSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".bucket_console_settings.json"
        self._path = Path(storage_path)

    def load(self) -> AppSettings:
        if not self._path.exists():
            return AppSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return AppSettings()
        if not isinstance(data, dict):
            return AppSettings()

        template = data.get("endpoint_template")
        if not isinstance(template, str) or "{account_id}" not in template:
            template = AppSettings.endpoint_template
        log_level = str(data.get("log_level", AppSettings.log_level)).upper()
        if log_level not in LOG_LEVELS:
            log_level = AppSettings.log_level
        return AppSettings(
            endpoint_template=template,
            signed_url_expiry=_positive_int(data.get("signed_url_expiry"), AppSettings.signed_url_expiry),
            max_upload_bytes=_positive_int(data.get("max_upload_bytes"), AppSettings.max_upload_bytes),
            upload_chunk_size=_chunk_size(data.get("upload_chunk_size")),
            listing_stale_seconds=_positive_int(
                data.get("listing_stale_seconds"), AppSettings.listing_stale_seconds
            ),
            log_level=log_level,
        )

    def save(self, settings: AppSettings) -> None:
        payload = asdict(settings)
        payload["signed_url_expiry"] = max(int(settings.signed_url_expiry), 1)
        payload["max_upload_bytes"] = max(int(settings.max_upload_bytes), 1)
        payload["upload_chunk_size"] = _chunk_size(settings.upload_chunk_size)
        payload["listing_stale_seconds"] = max(int(settings.listing_stale_seconds), 1)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            return
