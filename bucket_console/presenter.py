from __future__ import annotations
"""View-agnostic presenter that runs console operations off the UI thread."""
from dataclasses import replace
import logging
import os
import threading
import time
from typing import Any, Callable

from .models import Credentials
from .rpc import StorageRPC
from .session import CredentialStore, NavigationState
from .settings import AppSettings, SettingsStorage
from .ui_utils import PackageInfo, encode_file_base64, guess_content_type, load_package_info


DispatchFn = Callable[[Callable[[], None]], None]
ExecutorFn = Callable[[Callable[[], None]], None]
SuccessFn = Callable[[Any], None]
ErrorFn = Callable[[str], None]
DoneFn = Callable[[], None]

LOGGER = logging.getLogger(__name__)


class NotAuthenticatedError(RuntimeError):
    """Raised when an operation is attempted before credentials are stored."""


def _start_thread(task: Callable[[], None]) -> None:
    threading.Thread(target=task, daemon=True).start()


class ConsolePresenter:
    """Runs RPC calls in the background and returns results via callbacks.

    Credentials come from the :class:`CredentialStore` and are attached to
    every request; the bucket and prefix come from :class:`NavigationState`.
    """

    def __init__(
        self,
        *,
        rpc: StorageRPC | None = None,
        credential_store: CredentialStore | None = None,
        navigation: NavigationState | None = None,
        settings_storage: SettingsStorage | None = None,
        dispatch: DispatchFn | None = None,
        executor: ExecutorFn | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings_storage = settings_storage or SettingsStorage()
        self._settings = self._settings_storage.load()
        self._rpc = rpc or StorageRPC(
            endpoint_template=self._settings.endpoint_template,
            max_upload_bytes=self._settings.max_upload_bytes,
            default_expires_in=self._settings.signed_url_expiry,
        )
        self._credential_store = credential_store or CredentialStore()
        self.navigation = navigation or NavigationState()
        self._dispatch = dispatch or (lambda func: func())
        self._executor = executor or _start_thread
        self._clock = clock
        self._listing_cache: dict[tuple[str, str, str | None], tuple[float, dict]] = {}
        self._listing_generation = 0
        self._package_info = load_package_info()

    @property
    def settings(self) -> AppSettings:
        return replace(self._settings)

    @property
    def package_info(self) -> PackageInfo:
        return self._package_info

    @property
    def is_authenticated(self) -> bool:
        return self._credential_store.is_authenticated

    @property
    def is_hydrated(self) -> bool:
        return self._credential_store.is_hydrated

    @property
    def credentials(self) -> Credentials | None:
        return self._credential_store.credentials

    def save_settings(self, settings: AppSettings) -> None:
        self._settings = settings
        self._settings_storage.save(settings)

    def hydrate(self) -> Credentials | None:
        return self._credential_store.hydrate()

    def login(
        self,
        credentials: Credentials,
        *,
        on_success: Callable[[list[dict]], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> None:
        LOGGER.debug("Validating credentials for account '%s'", credentials.account_id)

        def task() -> None:
            try:
                result = self._rpc.validate_credentials(credentials.to_request())
            except Exception as exc:
                LOGGER.exception("Unexpected credential validation error")
                message = str(exc)
                self._dispatch(lambda: on_error(message))
            else:
                if result["success"]:
                    self._credential_store.set_credentials(credentials)
                    self._dispatch(lambda: on_success(result["buckets"]))
                else:
                    self._dispatch(lambda: on_error(result["error"]))
            finally:
                if on_done:
                    self._dispatch(on_done)

        self._executor(task)

    def logout(self) -> None:
        self._credential_store.clear_credentials()
        self.navigation.set_current_bucket(None)
        self._listing_cache.clear()

    def select_bucket(self, bucket_name: str | None) -> None:
        self.navigation.set_current_bucket(bucket_name)

    def open_folder(self, prefix: str) -> None:
        self.navigation.navigate_to_folder(prefix)

    def navigate_up(self) -> None:
        self.navigation.navigate_up()

    def refresh_buckets(self, *, on_success: Callable[[list[dict]], None], on_error: ErrorFn) -> None:
        self._submit(
            "Error loading buckets",
            lambda request: self._rpc.list_buckets(request)["buckets"],
            {},
            on_success,
            on_error,
        )

    def list_objects(
        self,
        *,
        on_success: Callable[[dict], None],
        on_error: ErrorFn,
        continuation_token: str | None = None,
        force: bool = False,
        on_done: DoneFn | None = None,
    ) -> None:
        bucket_name = self.navigation.current_bucket
        if not bucket_name:
            on_error("No bucket selected")
            return
        prefix = self.navigation.current_prefix
        cache_key = (bucket_name, prefix, continuation_token)
        cached = self._listing_cache.get(cache_key)
        if cached and not force and self._clock() - cached[0] < self._settings.listing_stale_seconds:
            LOGGER.debug("Serving cached listing for '%s' under '%s'", bucket_name, prefix)
            on_success(cached[1])
            if on_done:
                on_done()
            return

        generation = self._listing_generation

        def call(request: dict) -> dict:
            listing = self._rpc.list_objects(request)
            # a mutation finished while this listing was in flight
            if generation == self._listing_generation:
                self._listing_cache[cache_key] = (self._clock(), listing)
            return listing

        self._submit(
            "Error listing objects",
            call,
            {"bucket_name": bucket_name, "prefix": prefix, "continuation_token": continuation_token},
            on_success,
            on_error,
            on_done,
        )

    def delete_object(self, key: str, *, on_success: DoneFn, on_error: ErrorFn) -> None:
        self._submit_mutation(
            "Error deleting object",
            self._rpc.delete_object,
            {"bucket_name": self.navigation.current_bucket, "key": key},
            on_success,
            on_error,
        )

    def rename_object(self, old_key: str, new_name: str, *, on_success: DoneFn, on_error: ErrorFn) -> None:
        try:
            new_key = self.navigation.key_for(new_name)
        except ValueError as exc:
            on_error(f"Error renaming object: {exc}")
            return
        self._submit_mutation(
            "Error renaming object",
            self._rpc.rename_object,
            {"bucket_name": self.navigation.current_bucket, "old_key": old_key, "new_key": new_key},
            on_success,
            on_error,
        )

    def get_download_url(self, key: str, *, on_success: Callable[[str], None], on_error: ErrorFn) -> None:
        self._submit(
            "Error generating download link",
            self._rpc.get_signed_url,
            {
                "bucket_name": self.navigation.current_bucket,
                "key": key,
                "expires_in": self._settings.signed_url_expiry,
            },
            on_success,
            on_error,
        )

    def upload_file(
        self,
        source_path: str,
        *,
        on_success: DoneFn,
        on_error: ErrorFn,
        on_progress: Callable[[int], None] | None = None,
        on_done: DoneFn | None = None,
    ) -> None:
        bucket_name = self.navigation.current_bucket
        try:
            key = self.navigation.key_for(os.path.basename(source_path))
        except ValueError as exc:
            on_error(f"Error uploading file: {exc}")
            if on_done:
                on_done()
            return
        progress_callback = None
        if on_progress:
            progress_callback = lambda total: self._dispatch(lambda: on_progress(total))

        def call(request: dict) -> dict:
            encoded = encode_file_base64(
                source_path,
                chunk_size=self._settings.upload_chunk_size,
                max_bytes=self._rpc.max_upload_bytes,
                progress_callback=progress_callback,
            )
            return self._rpc.upload_object({**request, "file_base64": encoded})

        self._submit_mutation(
            "Error uploading file",
            call,
            {"bucket_name": bucket_name, "key": key, "content_type": guess_content_type(source_path)},
            on_success,
            on_error,
            on_done,
        )

    def create_bucket(self, name: str, *, on_success: DoneFn, on_error: ErrorFn) -> None:
        self._submit_mutation("Error creating bucket", self._rpc.create_bucket, {"name": name}, on_success, on_error)

    def delete_bucket(self, name: str, *, on_success: DoneFn, on_error: ErrorFn) -> None:
        def call(request: dict) -> dict:
            result = self._rpc.delete_bucket(request)
            if self.navigation.current_bucket == name:
                self.navigation.set_current_bucket(None)
            return result

        self._submit_mutation("Error deleting bucket", call, {"name": name}, on_success, on_error)

    def invalidate_listings(self) -> None:
        self._listing_generation += 1
        self._listing_cache.clear()

    def _request(self, fields: dict) -> dict:
        credentials = self._credential_store.credentials
        if not credentials or not self._credential_store.is_authenticated:
            raise NotAuthenticatedError("Not connected to storage")
        return {**credentials.to_request(), **fields}

    def _submit_mutation(
        self,
        label: str,
        call: Callable[[dict], object],
        fields: dict,
        on_success: DoneFn,
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> None:
        def mutate(request: dict) -> object:
            try:
                return call(request)
            finally:
                # a failed mutation may still have changed the bucket
                self.invalidate_listings()

        self._submit(label, mutate, fields, lambda _result: on_success(), on_error, on_done)

    def _submit(
        self,
        label: str,
        call: Callable[[dict], object],
        fields: dict,
        on_success: SuccessFn,
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> None:
        def task() -> None:
            try:
                result = call(self._request(fields))
            except Exception as exc:
                LOGGER.exception("%s", label)
                message = f"{label}: {exc}"
                self._dispatch(lambda: on_error(message))
            else:
                self._dispatch(lambda: on_success(result))
            finally:
                if on_done:
                    self._dispatch(on_done)

        self._executor(task)
