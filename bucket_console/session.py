from __future__ import annotations
"""Client-side session state: stored credentials and navigation location."""
import json
import logging
from pathlib import Path
from typing import Optional

import keyring
from keyring.errors import KeyringError

from .models import Credentials
from .ui_utils import compose_s3_key

LOGGER = logging.getLogger(__name__)

STORAGE_KEY = "bucket-console-credentials"


class KeychainStore:
    """Encapsulates OS keychain access for secrets."""

    def __init__(self, service_name: str = "bucket-console"):
        self._service_name = service_name

    def get_secret(self, account_id: str) -> str:
        if not account_id:
            return ""
        try:
            return keyring.get_password(self._service_name, account_id) or ""
        except KeyringError:
            LOGGER.warning("Keychain lookup failed for account %s", account_id)
            return ""

    def set_secret(self, account_id: str, secret_key: str) -> None:
        if not account_id:
            return
        if not secret_key:
            self.delete_secret(account_id)
            return
        try:
            keyring.set_password(self._service_name, account_id, secret_key)
        except KeyringError:
            LOGGER.warning("Keychain write failed for account %s", account_id)
            return

    def delete_secret(self, account_id: str) -> None:
        if not account_id:
            return
        try:
            keyring.delete_password(self._service_name, account_id)
        except KeyringError:
            return


class CredentialStore:
    """Holds the credential bundle and persists it across restarts.

    Everything but the secret access key is written to a JSON file under
    :data:`STORAGE_KEY`; the secret lives in the OS keychain. Consumers check
    :attr:`is_hydrated` to tell "not loaded yet" apart from "loaded and empty".
    """

    def __init__(self, storage_path: str | Path | None = None, keychain: KeychainStore | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".bucket_console_credentials.json"
        self._path = Path(storage_path)
        self._keychain = keychain or KeychainStore()
        self._credentials: Optional[Credentials] = None
        self._is_authenticated = False
        self._is_hydrated = False

    @property
    def credentials(self) -> Optional[Credentials]:
        return self._credentials

    @property
    def is_authenticated(self) -> bool:
        return self._is_authenticated

    @property
    def is_hydrated(self) -> bool:
        return self._is_hydrated

    def hydrate(self) -> Optional[Credentials]:
        try:
            entry = self._read_entry()
            if entry:
                self._load_entry(entry)
        finally:
            self._is_hydrated = True
        return self._credentials

    def set_credentials(self, credentials: Credentials) -> None:
        self._credentials = credentials
        self._is_authenticated = True
        self._keychain.set_secret(credentials.account_id, credentials.secret_access_key)
        self._write_entry(
            {
                "credentials": {
                    "account_id": credentials.account_id,
                    "access_key_id": credentials.access_key_id,
                    "endpoint": credentials.endpoint,
                },
                "is_authenticated": True,
            }
        )

    def clear_credentials(self) -> None:
        if self._credentials:
            self._keychain.delete_secret(self._credentials.account_id)
        self._credentials = None
        self._is_authenticated = False
        self._write_entry({"credentials": None, "is_authenticated": False})

    def _load_entry(self, entry: dict) -> None:
        stored = entry.get("credentials")
        if not isinstance(stored, dict):
            return
        try:
            account_id = stored["account_id"]
            access_key_id = stored["access_key_id"]
        except KeyError:
            return
        secret = stored.get("secret_access_key", "")
        if secret:
            # migrate plaintext secrets into the keychain
            self._keychain.set_secret(account_id, secret)
            sanitized = {name: value for name, value in stored.items() if name != "secret_access_key"}
            self._write_entry({**entry, "credentials": sanitized})
        else:
            secret = self._keychain.get_secret(account_id)
        if not secret:
            LOGGER.info("No stored secret for account %s", account_id)
            return
        self._credentials = Credentials(
            account_id=account_id,
            access_key_id=access_key_id,
            secret_access_key=secret,
            endpoint=stored.get("endpoint") or None,
        )
        self._is_authenticated = bool(entry.get("is_authenticated", False))

    def _read_entry(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return {}
        if not isinstance(data, dict):
            return {}
        entry = data.get(STORAGE_KEY)
        return entry if isinstance(entry, dict) else {}

    def _write_entry(self, entry: dict) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps({STORAGE_KEY: entry}, indent=2), encoding="utf-8")
        except OSError:
            LOGGER.warning("Could not persist credentials to %s", self._path)


def _normalize_prefix(prefix: str) -> str:
    if prefix and not prefix.endswith("/"):
        return prefix + "/"
    return prefix


class NavigationState:
    """Currently selected bucket and key prefix.

    ``current_prefix`` is always empty or ends with ``/``.
    """

    def __init__(self) -> None:
        self.current_bucket: Optional[str] = None
        self.current_prefix = ""

    def set_current_bucket(self, bucket: Optional[str]) -> None:
        self.current_bucket = bucket
        self.current_prefix = ""

    def set_current_prefix(self, prefix: str) -> None:
        self.current_prefix = _normalize_prefix(prefix or "")

    def navigate_to_folder(self, prefix: str) -> None:
        self.set_current_prefix(prefix)

    def navigate_up(self) -> None:
        if not self.current_prefix:
            return
        parent, sep, _ = self.current_prefix[:-1].rpartition("/")
        self.current_prefix = parent + "/" if sep else ""

    def breadcrumbs(self) -> list[tuple[str, str]]:
        items = [("Root", "")]
        cumulative = ""
        if not self.current_prefix:
            return items
        for part in self.current_prefix[:-1].split("/"):
            cumulative += f"{part}/"
            items.append((part or "/", cumulative))
        return items

    def folder_name(self, common_prefix: str) -> str:
        return self._relative(common_prefix).rstrip("/")

    def object_name(self, key: str) -> str:
        return self._relative(key)

    def key_for(self, name: str) -> str:
        return compose_s3_key(self.current_prefix, name)

    def _relative(self, value: str) -> str:
        if self.current_prefix and value.startswith(self.current_prefix):
            return value[len(self.current_prefix):]
        return value
