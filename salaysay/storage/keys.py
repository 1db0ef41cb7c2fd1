"""
Helpers to generate standardized storage keys for Supabase Storage.

Why:
    Every upload needs a globally unique key that still shows the original file
    name, because the dashboard derives the displayed name from the key.

Conventions:
    - Salaysay uploads: {epoch_ms}-{token}_{sanitized original name}
    - The token is 8 random hex characters so uploads within the same
      millisecond never share a key.
    - Optional owner prefix: {owner}/{epoch_ms}-{token}_{name}

Security:
    - Sanitization removes characters outside [A-Za-z0-9._-] from segments.
    - Leading dots and dashes are stripped so keys cannot form traversal parts.
"""
from __future__ import annotations

import os
import re
import secrets
import time
import unicodedata

_SEGMENT_RE = re.compile(r"[^A-Za-z0-9._-]+")


def _sanitize_segment(value: str, *, fallback: str = "x") -> str:
    value = value or ""
    normalized = unicodedata.normalize("NFKD", value)
    ascii_value = normalized.encode("ascii", "ignore").decode("ascii")
    sanitized = _SEGMENT_RE.sub("-", ascii_value).strip("-_.")
    return sanitized or fallback


def _sanitize_filename(filename: str | None) -> str:
    """Keep a readable stem and a lowercase extension."""
    base = os.path.basename((filename or "").replace("\\", "/"))
    stem, ext = os.path.splitext(base)
    ext = "".join(ch for ch in ext.lower() if ch.isalnum() or ch == ".")
    if ext and not ext.startswith("."):
        ext = f".{ext}"
    return f"{_sanitize_segment(stem, fallback='file')}{ext}"


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def make_upload_key(
    *,
    filename: str,
    epoch_ms: int | None = None,
    token: str | None = None,
    owner_prefix: str | None = None,
) -> str:
    """Build a storage key for a salaysay upload.

    Returns: {epoch_ms}-{token}_{name}, prefixed with {owner}/ when given.
    A fixed `epoch_ms` without a `token` yields the deterministic {epoch_ms}_{name}.
    """
    if epoch_ms is None:
        epoch_ms = _epoch_ms()
        token = token or secrets.token_hex(4)
    stamp = f"{epoch_ms}-{_sanitize_segment(token)}" if token else str(epoch_ms)
    name = _sanitize_filename(filename)
    key = f"{stamp}_{name}"
    if owner_prefix:
        key = f"{_sanitize_segment(owner_prefix, fallback='owner')}/{key}"
    return key


def display_name_from_key(key: str) -> str:
    """Return the last path segment of a key (what the dashboard shows)."""
    return (key or "").rstrip("/").split("/")[-1] or key


def split_key(key: str) -> tuple[str, str]:
    """Split a key into (folder, name); folder is "" for top-level keys."""
    norm = (key or "").strip("/")
    if "/" not in norm:
        return "", norm
    folder, name = norm.rsplit("/", 1)
    return folder, name


__all__ = ["make_upload_key", "display_name_from_key", "split_key"]
