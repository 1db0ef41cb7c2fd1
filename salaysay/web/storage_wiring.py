"""
Helper for wiring the Supabase-backed storage adapter into the container.

Why:
    App startup may occur before Supabase is reachable locally. The helper is
    idempotent, so it runs at startup and can be retried later; until it
    succeeds the container keeps the NullStorageAdapter and uploads fail with
    a storage-misconfigured notice.

Security:
    Requires SUPABASE_SERVICE_ROLE_KEY and SUPABASE_URL environment variables.
    The helper only wires server-side adapters; no secrets are exposed to clients.
"""
from __future__ import annotations

import logging
import os
from urllib.parse import urlparse

from salaysay.storage.bootstrap import ensure_buckets_from_env
from salaysay.storage.supabase_adapter import SupabaseStorageAdapter
from salaysay.web.container import AppContainer

logger = logging.getLogger("salaysay.web")


def _is_local_host(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return host in {"127.0.0.1", "localhost"}


def _build_client(url: str, key: str):
    """Return a storage-capable client or None.

    Preferred: the official supabase client. Local `supabase start` keys are
    not JWTs, which the supabase client rejects; for local hosts (or when
    SUPABASE_FALLBACK_STORAGE3=true) fall back to a bare storage3 client.
    """
    try:
        from supabase import create_client

        return create_client(url, key)
    except Exception as exc:
        logger.warning("Supabase client unavailable: %s", exc.__class__.__name__)

    force = (os.getenv("SUPABASE_FALLBACK_STORAGE3", "false").lower() == "true")
    if not force and not _is_local_host(url):
        return None
    from storage3 import SyncStorageClient

    storage_url = f"{url.rstrip('/')}/storage/v1"
    headers = {"Authorization": f"Bearer {key}", "apikey": key}
    return SyncStorageClient(storage_url, headers)


def wire_supabase_adapter_if_configured(container: AppContainer) -> bool:
    """Attempt to wire the Supabase storage adapter into `container`.

    Behavior:
        - Returns True when wiring succeeds (adapter injected).
        - Returns False when not configured or the client cannot be built
          (keeps the current adapter).
        - Safe and idempotent to call multiple times.
    """
    url = (os.getenv("SUPABASE_URL") or "").strip()
    key = (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    if not url or not key:
        return False

    client = _build_client(url, key)
    if client is None:
        return False
    container.set_storage_adapter(SupabaseStorageAdapter(client))
    logger.info("Storage adapter wired: Supabase")

    # Dev convenience: make sure the uploads bucket exists when asked to.
    ensure_buckets_from_env()
    return True


__all__ = ["wire_supabase_adapter_if_configured"]
