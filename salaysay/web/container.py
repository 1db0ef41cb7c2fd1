"""
Composition root for the web app.

Why:
    Routes must not reach for module-level backend clients. Everything that
    talks to the outside world (identity provider, database, object storage)
    is constructed here once, stored on `app.state.container`, and handed to
    handlers through `get_container`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os

from fastapi import Request

from salaysay.identity_access.oidc import GOOGLE_ISSUER, OIDCClient, OIDCConfig
from salaysay.identity_access.domain import allowed_email_domain
from salaysay.identity_access.stores import SessionStore, StateStore
from salaysay.storage.config import get_uploads_bucket
from salaysay.storage.ports import NullStorageAdapter, StorageAdapterProtocol
from salaysay.submissions.batches import UploadBatchStore
from salaysay.submissions.ports import SubmissionRepoProtocol
from salaysay.submissions.repo_memory import InMemorySubmissionRepo
from salaysay.web.config import current_environment

logger = logging.getLogger("salaysay.web")


class AuthSettings:
    def __init__(self) -> None:
        self._env_override: str | None = None

    @property
    def environment(self) -> str:
        if self._env_override is not None:
            return self._env_override
        return current_environment()

    def override_environment(self, env: str | None) -> None:
        """Override environment for tests (e.g., "prod"), or reset with None."""
        self._env_override = env


def load_oidc_config() -> OIDCConfig:
    issuer = os.getenv("OIDC_ISSUER", GOOGLE_ISSUER).rstrip("/")
    client_id = os.getenv("OIDC_CLIENT_ID", "salaysay-web")
    client_secret = os.getenv("OIDC_CLIENT_SECRET") or None
    redirect_uri = os.getenv("REDIRECT_URI", "http://localhost:8000/auth/callback")
    overrides = {
        name: value
        for name, value in (
            ("auth_endpoint", os.getenv("OIDC_AUTH_ENDPOINT")),
            ("token_endpoint", os.getenv("OIDC_TOKEN_ENDPOINT")),
            ("jwks_uri", os.getenv("OIDC_JWKS_URI")),
        )
        if value
    }
    return OIDCConfig(
        issuer=issuer,
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=redirect_uri,
        hosted_domain=allowed_email_domain(),
        **overrides,
    )


def _build_default_repo() -> SubmissionRepoProtocol:
    """Prefer the Postgres repo; fall back to in-memory when unavailable."""
    try:
        from salaysay.submissions.repo_db import DBSubmissionRepo
    except ImportError as exc:  # pragma: no cover - psycopg missing entirely
        logger.warning("Submissions repo import failed: %s", exc.__class__.__name__)
        return InMemorySubmissionRepo()
    use_memory = (os.getenv("SALAYSAY_REPO", "") or "").strip().lower() == "memory"
    if use_memory:
        return InMemorySubmissionRepo()
    try:
        return DBSubmissionRepo()
    except Exception as exc:
        logger.warning("Submissions repo unavailable (%s); using in-memory fallback", exc.__class__.__name__)
        return InMemorySubmissionRepo()


@dataclass
class AppContainer:
    repo: SubmissionRepoProtocol
    storage: StorageAdapterProtocol = field(default_factory=NullStorageAdapter)
    oidc_config: OIDCConfig = field(default_factory=load_oidc_config)
    settings: AuthSettings = field(default_factory=AuthSettings)
    state_store: StateStore = field(default_factory=StateStore)
    session_store: SessionStore = field(default_factory=SessionStore)
    batches: UploadBatchStore = field(default_factory=UploadBatchStore)
    bucket: str = field(default_factory=get_uploads_bucket)

    @property
    def oidc(self) -> OIDCClient:
        return OIDCClient(self.oidc_config)

    def set_storage_adapter(self, adapter: StorageAdapterProtocol) -> None:
        """Allow startup wiring or tests to provide a concrete storage adapter."""
        self.storage = adapter


def build_container() -> AppContainer:
    return AppContainer(repo=_build_default_repo())


def get_container(request: Request) -> AppContainer:
    """FastAPI dependency returning the container of the serving app."""
    return request.app.state.container


__all__ = ["AppContainer", "AuthSettings", "build_container", "get_container", "load_oidc_config"]
