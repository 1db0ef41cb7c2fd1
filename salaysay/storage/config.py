"""
Centralized storage configuration for the salaysay uploads bucket.

Intent:
    Provide a single source of truth for the bucket name, the upload size limit
    and the signed URL lifetime so routes, use cases and bootstrap code agree.

Behavior:
    - UPLOADS_BUCKET_DEFAULT defines the canonical bucket ("salaysay-uploads").
    - get_uploads_bucket() reads SALAYSAY_STORAGE_BUCKET with a sane fallback.
    - Size and TTL helpers accept env overrides and clamp them to contract
      bounds; invalid values fall back to defaults.

Permissions:
    Pure configuration; no external calls or privileges required.
"""
from __future__ import annotations

import os


UPLOADS_BUCKET_DEFAULT = "salaysay-uploads"

MAX_UPLOAD_BYTES_DEFAULT = 5 * 1024 * 1024
MAX_UPLOAD_BYTES_CONTRACT = 10 * 1024 * 1024

SIGNED_URL_TTL_DEFAULT = 60
SIGNED_URL_TTL_MIN = 10
SIGNED_URL_TTL_MAX = 3600


def get_uploads_bucket() -> str:
    """Return the configured uploads bucket name.

    Env:
        SALAYSAY_STORAGE_BUCKET – optional override; otherwise defaults to
        UPLOADS_BUCKET_DEFAULT.
    """
    return (os.getenv("SALAYSAY_STORAGE_BUCKET") or UPLOADS_BUCKET_DEFAULT).strip()


# --- Size limits --------------------------------------------------------------

def _parse_int_env(name: str, default: int, *, contract_max: int | None = None) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value <= 0:
        return default
    if isinstance(contract_max, int) and contract_max > 0:
        value = min(value, contract_max)
    return value


def get_max_upload_bytes() -> int:
    """Maximum size of a single salaysay PDF (default 5 MiB, clamped to 10 MiB)."""
    return _parse_int_env(
        "SALAYSAY_MAX_UPLOAD_BYTES",
        MAX_UPLOAD_BYTES_DEFAULT,
        contract_max=MAX_UPLOAD_BYTES_CONTRACT,
    )


def get_signed_url_ttl_seconds() -> int:
    """Lifetime of signed read URLs handed to the browser (default 60s)."""
    value = _parse_int_env("SALAYSAY_SIGNED_URL_TTL_SECONDS", SIGNED_URL_TTL_DEFAULT)
    return max(SIGNED_URL_TTL_MIN, min(value, SIGNED_URL_TTL_MAX))


def format_megabytes(size_bytes: int) -> str:
    """Render a byte limit the way users read it ("5", "7.5")."""
    mb = size_bytes / (1024 * 1024)
    return f"{mb:g}" if mb != int(mb) else str(int(mb))


__all__ = [
    "UPLOADS_BUCKET_DEFAULT",
    "MAX_UPLOAD_BYTES_DEFAULT",
    "get_uploads_bucket",
    "get_max_upload_bytes",
    "get_signed_url_ttl_seconds",
    "format_megabytes",
]
