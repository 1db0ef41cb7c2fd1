"""
Supabase-backed storage adapter for salaysay uploads.

This adapter implements StorageAdapterProtocol using a provided Supabase client.
The client is duck-typed and is expected to expose `.storage.from_(bucket)` (supabase-py) or
`.from_(bucket)` (storage3) which returns an object offering:

- upload(path, body, file_options) -> Any
- list(folder, options) -> [{ name, ... }]
- create_signed_url(path, expires_in) -> { signedURL | signedUrl | signed_url | url }
- remove([path]) -> Any

Errors:
- Client exceptions are translated into `BackendError` kinds based on the HTTP
  status and error code reported by the storage API, never by callers.

Security:
- The caller must ensure the client is initialized with the Service Role key.
- The bucket must be private; browsers receive only short-lived signed URLs.
"""
from __future__ import annotations

from typing import Any, Dict
import logging
import os
from urllib.parse import urlparse as _urlparse, urlunparse as _urlunparse

from salaysay.errors import BackendError, BackendErrorKind
from salaysay.storage.keys import split_key

logger = logging.getLogger("salaysay.storage")

_BUCKET_MISSING_CODES = {"bucket_not_found", "nosuchbucket", "bucket not found"}


def _error_fields(exc: Exception) -> tuple[int | None, str]:
    """Extract (status, code) from storage3/supabase exceptions.

    storage3 raises either `StorageApiError` (attributes `status`, `code`) or
    the older `StorageException` whose first arg is the JSON error payload.
    """
    status: Any = getattr(exc, "status", None)
    code: Any = getattr(exc, "code", None) or getattr(exc, "error", None)
    payload = exc.args[0] if exc.args and isinstance(exc.args[0], dict) else None
    if payload:
        status = status or payload.get("statusCode") or payload.get("status")
        code = code or payload.get("error") or payload.get("code")
    try:
        status_int = int(status) if status is not None else None
    except (TypeError, ValueError):
        status_int = None
    return status_int, str(code or "").strip().lower()


def classify_storage_error(exc: Exception) -> BackendErrorKind:
    """Map a storage client exception onto the closed error taxonomy."""
    if isinstance(exc, BackendError):
        return exc.kind
    status, code = _error_fields(exc)
    if code in _BUCKET_MISSING_CODES:
        return BackendErrorKind.STORAGE_MISCONFIGURED
    if status in (401, 403) or code in {"unauthorized", "accessdenied", "invalidjwt"}:
        return BackendErrorKind.PERMISSION_DENIED
    if status == 404:
        return BackendErrorKind.STORAGE_MISCONFIGURED
    if status == 409 or code == "duplicate":
        return BackendErrorKind.INTEGRITY
    return BackendErrorKind.UNAVAILABLE


class SupabaseStorageAdapter:
    """Storage adapter using a supabase client for Storage operations."""

    def __init__(self, client: Any):
        # Duck-typed supabase client, e.g., from `supabase import create_client(...)`.
        self._client = client

    # --- Helpers -----------------------------------------------------------------

    def _bucket(self, bucket: str) -> Any:
        """Return a bucket proxy from either supabase client or storage3 client.

        Supports two client shapes:
        - supabase.create_client(...): expose `.storage.from_(bucket)`
        - storage3 SyncStorageClient: expose `.from_(bucket)` directly
        """
        c = self._client
        storage = getattr(c, "storage", None)
        if storage is not None and hasattr(storage, "from_"):
            return storage.from_(bucket)
        if hasattr(c, "from_"):
            return c.from_(bucket)  # type: ignore[attr-defined]
        raise BackendError(BackendErrorKind.STORAGE_MISCONFIGURED, "invalid_supabase_client")

    @staticmethod
    def _first_key(d: Dict[str, Any], *keys: str) -> Any:
        for k in keys:
            if k in d and d[k] is not None:
                return d[k]
        return None

    @staticmethod
    def _normalize_key(bucket: str, key: str) -> str:
        # Keys are relative to the bucket (storage3 prepends the bucket id)
        norm_key = key.lstrip("/")
        prefix = f"{bucket}/"
        if norm_key.startswith(prefix):
            norm_key = norm_key[len(prefix):]
        return norm_key

    def _translate(self, op: str, exc: Exception) -> BackendError:
        kind = classify_storage_error(exc)
        if op == "upload" and kind is BackendErrorKind.INTEGRITY:
            # A 409 on upload means the key is taken, not a row constraint.
            kind = BackendErrorKind.UNAVAILABLE
        logger.warning("storage %s failed: kind=%s error=%s", op, kind.value, exc.__class__.__name__)
        return BackendError(kind, exc.__class__.__name__)

    # --- Protocol methods --------------------------------------------------------

    def put_object(self, *, bucket: str, key: str, body: bytes, content_type: str) -> None:
        """Upload a binary object to Supabase Storage.

        Behavior:
            - Normalizes the key relative to the bucket.
            - Passes content-type via options to be compatible across client versions
              (supports both "content-type" and "contentType" keys).
            - Never overwrites: keys are unique per upload (`upsert` stays false).

        Raises:
            BackendError with the classified kind.
        """
        norm_key = self._normalize_key(bucket, key)
        opts = {"content-type": content_type, "contentType": content_type, "upsert": "false"}
        try:
            self._bucket(bucket).upload(norm_key, body, opts)
        except BackendError:
            raise
        except Exception as exc:
            raise self._translate("upload", exc) from exc

    def object_exists(self, *, bucket: str, key: str) -> bool:
        """Return True when `key` is listable under its parent prefix.

        Uses a prefix listing with a name search rather than a download so the
        check stays cheap for large PDFs.
        """
        folder, name = split_key(self._normalize_key(bucket, key))
        try:
            entries = self._bucket(bucket).list(folder, {"search": name, "limit": 100})
        except BackendError:
            raise
        except Exception as exc:
            raise self._translate("list", exc) from exc
        if isinstance(entries, dict):
            entries = entries.get("data") or []
        for entry in entries or []:
            if isinstance(entry, dict) and entry.get("name") == name:
                return True
        return False

    def presign_download(self, *, bucket: str, key: str, expires_in: int) -> Dict[str, Any]:
        norm_key = self._normalize_key(bucket, key)
        try:
            res = self._bucket(bucket).create_signed_url(norm_key, expires_in)
        except BackendError:
            raise
        except Exception as exc:
            raise self._translate("sign", exc) from exc
        url = None
        if isinstance(res, dict):
            url = self._first_key(res, "signedURL", "signedUrl", "signed_url", "url")
            data = res.get("data") if "data" in res else None
            if url is None and isinstance(data, dict):
                url = self._first_key(data, "signedURL", "signedUrl", "signed_url", "url")
        if not url:
            raise BackendError(BackendErrorKind.UNAVAILABLE, "failed_to_presign_download")
        return {"url": self._normalize_signed_url_host(str(url)), "expires_in": expires_in}

    def delete_object(self, *, bucket: str, key: str) -> None:
        norm_key = self._normalize_key(bucket, key)
        try:
            self._bucket(bucket).remove([norm_key])
        except BackendError:
            raise
        except Exception as exc:
            raise self._translate("remove", exc) from exc

    # --- Local helpers ---------------------------------------------------------

    def _normalize_signed_url_host(self, url: str) -> str:
        """For local dev, rewrite signed URL host to SUPABASE_PUBLIC_URL or SUPABASE_URL.

        Only active when SUPABASE_REWRITE_SIGNED_URL_HOST=true. Some local setups
        return signed URLs with container-internal hosts that browsers cannot
        resolve; the token is path-bound, so swapping the host keeps it valid.
        """
        force = (os.getenv("SUPABASE_REWRITE_SIGNED_URL_HOST", "false").lower() == "true")
        base = (os.getenv("SUPABASE_PUBLIC_URL") or os.getenv("SUPABASE_URL") or "").strip()
        if not force or not base:
            return url
        try:
            src = _urlparse(url)
            dst = _urlparse(base)
            if not src.scheme or not src.netloc or not dst.netloc:
                return url
            path = src.path or "/"
            if path.startswith("/object/"):
                path = "/storage/v1" + path
            while "//" in path:
                path = path.replace("//", "/")
            return _urlunparse((dst.scheme or src.scheme, dst.netloc, path, src.params, src.query, src.fragment))
        except ValueError:
            return url


__all__ = ["SupabaseStorageAdapter", "classify_storage_error"]
