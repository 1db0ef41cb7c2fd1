"""
Pytest configuration for salaysay tests.

Why: Force AnyIO to use the asyncio backend, keep the app on the in-memory
repository, and provide a container with a recording fake storage adapter so
API tests never reach Postgres, Supabase or Google.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path
from urllib.parse import urlparse

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

# Importing salaysay.web.main builds a default app; keep it off the database.
os.environ["SALAYSAY_REPO"] = "memory"
os.environ["SALAYSAY_ENV"] = "test"

from salaysay.errors import BackendError  # noqa: E402
from salaysay.identity_access.oidc import GOOGLE_ISSUER, OIDCConfig  # noqa: E402
from salaysay.submissions.models import Profile  # noqa: E402
from salaysay.submissions.repo_memory import InMemorySubmissionRepo  # noqa: E402
from salaysay.web.auth_utils import SESSION_COOKIE_NAME  # noqa: E402
from salaysay.web.container import AppContainer  # noqa: E402


class FakeStorageAdapter:
    """Dict-backed storage that records every call.

    Set `fail_on["put"|"exists"|"presign"|"delete"]` to a BackendError to make
    the next calls of that operation fail.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_on: dict[str, BackendError] = {}

    def _maybe_fail(self, op: str) -> None:
        exc = self.fail_on.get(op)
        if exc is not None:
            raise exc

    def put_object(self, *, bucket: str, key: str, body: bytes, content_type: str) -> None:
        self.calls.append(("put", key))
        self._maybe_fail("put")
        self.objects[(bucket, key)] = body

    def object_exists(self, *, bucket: str, key: str) -> bool:
        self.calls.append(("exists", key))
        self._maybe_fail("exists")
        return (bucket, key) in self.objects

    def presign_download(self, *, bucket: str, key: str, expires_in: int) -> dict:
        self.calls.append(("presign", key))
        self._maybe_fail("presign")
        return {"url": f"https://storage.test/{bucket}/{key}?token=signed", "expires_in": expires_in}

    def delete_object(self, *, bucket: str, key: str) -> None:
        self.calls.append(("delete", key))
        self._maybe_fail("delete")
        self.objects.pop((bucket, key), None)

    def resolve(self, url: str) -> bytes | None:
        """Return the blob a signed URL points at (what a browser would fetch)."""
        bucket, _, key = urlparse(url).path.lstrip("/").partition("/")
        return self.objects.get((bucket, key))


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_feature_flags(monkeypatch: pytest.MonkeyPatch):
    """Keep every test on a permissive dev-like environment."""
    monkeypatch.setenv("SALAYSAY_ENV", "test")
    for var in (
        "SALAYSAY_STRICT_CSRF",
        "SALAYSAY_TRUST_PROXY",
        "SALAYSAY_MAX_UPLOAD_BYTES",
        "SALAYSAY_SIGNED_URL_TTL_SECONDS",
        "SALAYSAY_STORAGE_BUCKET",
        "SALAYSAY_ALLOWED_EMAIL_DOMAIN",
        "SALAYSAY_REVIEWER_EMAILS",
        "SALAYSAY_TIMEZONE",
        "SUPABASE_URL",
        "SUPABASE_SERVICE_ROLE_KEY",
        "AUTO_CREATE_STORAGE_BUCKETS",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture
def repo() -> InMemorySubmissionRepo:
    return InMemorySubmissionRepo()


@pytest.fixture
def storage() -> FakeStorageAdapter:
    return FakeStorageAdapter()


@pytest.fixture
def container(repo: InMemorySubmissionRepo, storage: FakeStorageAdapter) -> AppContainer:
    cfg = OIDCConfig(
        issuer=GOOGLE_ISSUER,
        client_id="salaysay-test",
        redirect_uri="http://test/auth/callback",
        hosted_domain="neu.edu.ph",
    )
    return AppContainer(repo=repo, storage=storage, oidc_config=cfg, bucket="salaysay-uploads")


@pytest.fixture
def app(container: AppContainer):
    from salaysay.web.main import create_app

    return create_app(container)


@pytest.fixture
def login(container: AppContainer, repo: InMemorySubmissionRepo):
    """Return a helper that opens a session and yields the cookie dict.

    The helper also stores the profile, mirroring what /auth/callback does.
    """

    def _login(
        email: str = "juan.delacruz@neu.edu.ph",
        *,
        sub: str | None = None,
        name: str = "Juan Dela Cruz",
        roles: list[str] | None = None,
    ) -> dict[str, str]:
        sub = sub or f"sub-{email.split('@')[0]}"
        repo.upsert_profile(Profile(id=sub, email=email, full_name=name))
        sess = container.session_store.create(sub=sub, email=email, name=name, roles=roles or ["student"])
        return {SESSION_COOKIE_NAME: sess.session_id}

    return _login
