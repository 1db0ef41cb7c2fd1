"""
Storage ports used by the submissions context.

Keep these small and framework-agnostic so tests can supply simple fakes.
"""
from __future__ import annotations

from typing import Any, Dict, Protocol

from salaysay.errors import BackendError, BackendErrorKind


class StorageAdapterProtocol(Protocol):
    """Blob storage operations needed for salaysay uploads.

    Intent:
        Hide the Supabase SDK behind four calls: write, existence check,
        signed read URL and delete.

    Errors:
        Implementations raise `BackendError` with a `BackendErrorKind`.
    """

    def put_object(self, *, bucket: str, key: str, body: bytes, content_type: str) -> None: ...

    def object_exists(self, *, bucket: str, key: str) -> bool: ...

    def presign_download(self, *, bucket: str, key: str, expires_in: int) -> Dict[str, Any]: ...

    def delete_object(self, *, bucket: str, key: str) -> None: ...


class NullStorageAdapter:
    """Fallback adapter that signals the storage backend is not configured."""

    def _fail(self) -> BackendError:
        return BackendError(BackendErrorKind.STORAGE_MISCONFIGURED, "storage_adapter_not_configured")

    def put_object(self, *, bucket: str, key: str, body: bytes, content_type: str) -> None:  # noqa: D401
        raise self._fail()

    def object_exists(self, *, bucket: str, key: str) -> bool:  # noqa: D401
        raise self._fail()

    def presign_download(self, *, bucket: str, key: str, expires_in: int) -> Dict[str, Any]:  # noqa: D401
        raise self._fail()

    def delete_object(self, *, bucket: str, key: str) -> None:  # noqa: D401
        raise self._fail()


__all__ = ["StorageAdapterProtocol", "NullStorageAdapter"]
