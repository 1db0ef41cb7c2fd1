"""
Supabase Storage bootstrap helpers.

Intent:
    Ensure the private uploads bucket exists on startup (dev/stage friendly).

Security & Safety:
    - Controlled by `AUTO_CREATE_STORAGE_BUCKETS=true` env flag.
    - Requires server-side `SUPABASE_SERVICE_ROLE_KEY`.
    - Idempotent: lists buckets first, creates only missing ones.

Usage:
    Call `ensure_buckets_from_env()` after wiring the storage adapter.
"""
from __future__ import annotations

import logging
import os
from typing import Iterable

import requests

from salaysay.storage.config import get_max_upload_bytes, get_uploads_bucket
from salaysay.storage.upload_policy import ALLOWED_FILE_MIME

_log = logging.getLogger("salaysay.storage")

_TIMEOUT = (3, 10)


def _env_flag(name: str, default: str = "false") -> bool:
    return (os.getenv(name, default) or "").strip().lower() == "true"


def _headers(key: str) -> dict[str, str]:
    return {"apikey": key, "Authorization": f"Bearer {key}"}


def _list_buckets(base_url: str, key: str) -> list[dict]:
    url = f"{base_url.rstrip('/')}/storage/v1/bucket"
    try:
        resp = requests.get(url, headers=_headers(key), timeout=_TIMEOUT)
    except requests.RequestException as exc:
        _log.warning("list buckets failed: error=%s", type(exc).__name__)
        return []
    _log.debug("GET /storage/v1/bucket status=%s", resp.status_code)
    try:
        data = resp.json()
    except ValueError:
        data = []
    return data if isinstance(data, list) else []


def _create_bucket(base_url: str, key: str, name: str) -> bool:
    url = f"{base_url.rstrip('/')}/storage/v1/bucket"
    payload = {
        "name": name,
        "public": False,
        "file_size_limit": get_max_upload_bytes(),
        "allowed_mime_types": sorted(ALLOWED_FILE_MIME),
    }
    try:
        resp = requests.post(url, headers=_headers(key), json=payload, timeout=_TIMEOUT)
    except requests.RequestException as exc:
        _log.warning("create bucket '%s' failed: error=%s", name, type(exc).__name__)
        return False
    if resp.status_code >= 300:
        # 409 conflict / 403 forbidden / 503 unavailable are all worth seeing
        _log.warning("create bucket '%s' failed: status=%s body=%s", name, resp.status_code, resp.text)
        return False
    _log.debug("POST /storage/v1/bucket status=%s created='%s'", resp.status_code, name)
    return True


def ensure_buckets(base_url: str, key: str, buckets: Iterable[str]) -> bool:
    """Ensure each bucket in `buckets` exists; create if missing.

    Parameters:
        base_url: Supabase API base (e.g., http://127.0.0.1:54321)
        key: Service role key for server-side administration
        buckets: Bucket names to ensure exist (always private)

    Behavior:
        - Lists existing buckets, creates only missing ones (idempotent).
        - Re-lists afterwards and warns when a requested bucket is still missing.

    Returns:
        True when every requested bucket exists afterwards.
    """
    wanted = {name for name in buckets if name}
    existing = {str(it.get("name") or it.get("id") or "") for it in _list_buckets(base_url, key)}
    missing = wanted - existing
    if not missing:
        return True
    for name in sorted(missing):
        _create_bucket(base_url, key, name)
    final = {str(it.get("name") or it.get("id") or "") for it in _list_buckets(base_url, key)}
    still_missing = wanted - final
    for name in sorted(still_missing):
        _log.warning("bucket '%s' still missing after bootstrap", name)
    return not still_missing


def ensure_buckets_from_env() -> bool:
    """Read env and ensure the uploads bucket when AUTO_CREATE_STORAGE_BUCKETS=true.

    Env:
        - AUTO_CREATE_STORAGE_BUCKETS=true (opt-in safety)
        - SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY (server-side credentials)
        - SALAYSAY_STORAGE_BUCKET (default: salaysay-uploads)

    Behavior:
        - No-ops when AUTO_CREATE_STORAGE_BUCKETS is not exactly 'true'.
        - Returns False when mandatory env is missing.
    """
    if not _env_flag("AUTO_CREATE_STORAGE_BUCKETS"):
        return False
    _log.warning(
        "AUTO_CREATE_STORAGE_BUCKETS=true detected (dev/test convenience only). Disable this flag in prod/stage environments."
    )
    base = (os.getenv("SUPABASE_URL") or "").strip()
    key = (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    if not base or not key:
        return False
    return ensure_buckets(base, key, [get_uploads_bucket()])


__all__ = ["ensure_buckets_from_env", "ensure_buckets"]
