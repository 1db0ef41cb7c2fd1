"""
Storage bootstrap: HTTP timeouts and exception handling.

Expected:
  - ensure_buckets_from_env does not hang when the network fails.
  - requests.get/post are called with conservative timeouts.
  - The function returns False without raising.
"""

from __future__ import annotations

import time
from types import SimpleNamespace

import pytest
import requests

from salaysay.storage import bootstrap


def _env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTO_CREATE_STORAGE_BUCKETS", "true")
    monkeypatch.setenv("SUPABASE_URL", "http://supabase.local:54321")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "srk")


def test_timeouts(monkeypatch: pytest.MonkeyPatch) -> None:
    _env(monkeypatch)
    calls: list[tuple[str, dict]] = []

    def _raise_get(*args, **kwargs):
        calls.append(("get", kwargs))
        raise requests.exceptions.ConnectTimeout("boom")

    def _raise_post(*args, **kwargs):
        calls.append(("post", kwargs))
        raise requests.exceptions.ReadTimeout("boom")

    monkeypatch.setattr(requests, "get", _raise_get, raising=True)
    monkeypatch.setattr(requests, "post", _raise_post, raising=True)

    t0 = time.time()
    ok = bootstrap.ensure_buckets_from_env()
    dt = time.time() - t0

    assert ok is False
    assert dt < 2.0
    kinds = [k for (k, _kw) in calls]
    assert "get" in kinds
    assert "post" in kinds
    for _k, kw in calls:
        to = kw["timeout"]
        assert isinstance(to, tuple) and len(to) == 2
        assert to[0] <= 5 and to[1] <= 15


def test_creates_missing_bucket_as_private_pdf_only(monkeypatch: pytest.MonkeyPatch) -> None:
    _env(monkeypatch)
    monkeypatch.setenv("SALAYSAY_STORAGE_BUCKET", "incident-pdfs")
    created: list[dict] = []
    listings = iter([[], [{"name": "incident-pdfs"}]])

    monkeypatch.setattr(requests, "get", lambda *a, **kw: SimpleNamespace(status_code=200, json=lambda: next(listings)))

    def _post(url, **kwargs):
        created.append(kwargs["json"])
        return SimpleNamespace(status_code=200, text="")

    monkeypatch.setattr(requests, "post", _post)

    assert bootstrap.ensure_buckets_from_env() is True
    assert created == [
        {
            "name": "incident-pdfs",
            "public": False,
            "file_size_limit": 5 * 1024 * 1024,
            "allowed_mime_types": ["application/pdf"],
        }
    ]


def test_existing_bucket_is_left_alone(monkeypatch: pytest.MonkeyPatch) -> None:
    _env(monkeypatch)
    monkeypatch.setattr(
        requests, "get", lambda *a, **kw: SimpleNamespace(status_code=200, json=lambda: [{"id": "salaysay-uploads"}])
    )

    def _post(*_a, **_kw):
        raise AssertionError("must not create an existing bucket")

    monkeypatch.setattr(requests, "post", _post)
    assert bootstrap.ensure_buckets_from_env() is True


def test_disabled_flag_is_a_no_op(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTO_CREATE_STORAGE_BUCKETS", "false")

    def _get(*_a, **_kw):
        raise AssertionError("no network when disabled")

    monkeypatch.setattr(requests, "get", _get)
    assert bootstrap.ensure_buckets_from_env() is False
