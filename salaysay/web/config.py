"""
Configuration and startup security checks for SALAYSAY.

Why: Student records must not end up behind an accidentally insecure
deployment. This module provides a single guard that enforces minimal
production safety constraints without burdening local development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os


def current_environment() -> str:
    return (os.getenv("SALAYSAY_ENV", "dev") or "dev").strip().lower()


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _is_placeholder(value: str) -> bool:
    upper = value.strip().upper()
    return not upper or upper == "DUMMY_DO_NOT_USE" or upper.startswith("CHANGE_ME")


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Intent: Abort process startup when obviously insecure settings are detected
    in production/staging. Development remains permissive for convenience.

    Checks:
    - Supabase Service Role key must be set and not a placeholder.
    - OIDC client id/secret must be set and not placeholders.
    - DATABASE_URL must not explicitly disable TLS.
    - REDIRECT_URI must use https.
    - Bucket auto-creation must be off.
    """

    env = current_environment()
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    # 1) Supabase Service Role key
    if _is_placeholder(os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")):
        raise SystemExit(
            "Refusing to start: SUPABASE_SERVICE_ROLE_KEY is unset or a dummy placeholder in production."
        )

    # 2) OIDC client credentials
    for var in ("OIDC_CLIENT_ID", "OIDC_CLIENT_SECRET"):
        if _is_placeholder(os.getenv(var, "")):
            raise SystemExit(f"Refusing to start: {var} is unset or a placeholder in production.")

    # 3) Postgres TLS: basic guard to avoid explicit disable
    for key in ("DATABASE_URL", "SALAYSAY_DATABASE_URL"):
        if "sslmode=disable" in os.getenv(key, ""):
            raise SystemExit(
                f"Refusing to start: {key} contains sslmode=disable in production. Use sslmode=require or verify TLS."
            )

    # 4) Redirect URI must be https, otherwise session cookies (secure) never return
    redirect_uri = (os.getenv("REDIRECT_URI") or "").strip().lower()
    if not redirect_uri.startswith("https://"):
        raise SystemExit("Refusing to start: REDIRECT_URI must use https in production.")

    # 5) Dev conveniences stay off
    if (os.getenv("AUTO_CREATE_STORAGE_BUCKETS", "false") or "").strip().lower() == "true":
        raise SystemExit(
            "Refusing to start: AUTO_CREATE_STORAGE_BUCKETS must be false in production/staging."
        )
