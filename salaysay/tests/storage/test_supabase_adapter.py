"""
Supabase storage adapter against a duck-typed fake client.

Covers key normalization, the prefix-listing existence check, signed URL
extraction across client versions and error classification.
"""
from __future__ import annotations

from types import SimpleNamespace

import pytest

from salaysay.errors import BackendError, BackendErrorKind
from salaysay.storage.supabase_adapter import SupabaseStorageAdapter, classify_storage_error


class FakeBucket:
    def __init__(self, parent: "FakeClient", name: str):
        self.parent = parent
        self.name = name

    def _maybe_fail(self):
        if self.parent.error is not None:
            raise self.parent.error

    def upload(self, path, body, opts):
        self._maybe_fail()
        self.parent.calls.append(("upload", self.name, path, opts))
        self.parent.objects[path] = body

    def list(self, folder, opts):
        self._maybe_fail()
        self.parent.calls.append(("list", self.name, folder, opts))
        prefix = f"{folder}/" if folder else ""
        return [
            {"name": key[len(prefix):]}
            for key in self.parent.objects
            if key.startswith(prefix) and "/" not in key[len(prefix):] and opts["search"] in key
        ]

    def create_signed_url(self, path, expires_in):
        self._maybe_fail()
        self.parent.calls.append(("sign", self.name, path, expires_in))
        return self.parent.signed_response(path)

    def remove(self, paths):
        self._maybe_fail()
        self.parent.calls.append(("remove", self.name, paths))
        for p in paths:
            self.parent.objects.pop(p, None)


class FakeClient:
    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.calls: list[tuple] = []
        self.error: Exception | None = None
        self.signed_response = lambda path: {"signedURL": f"http://kong:8000/object/sign/b/{path}?token=t"}
        self.storage = SimpleNamespace(from_=lambda bucket: FakeBucket(self, bucket))


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


def test_put_normalizes_bucket_prefix_and_never_upserts(client):
    adapter = SupabaseStorageAdapter(client)
    adapter.put_object(bucket="salaysay-uploads", key="/salaysay-uploads/1_a.pdf", body=b"%PDF", content_type="application/pdf")

    op, bucket, path, opts = client.calls[0]
    assert (op, bucket, path) == ("upload", "salaysay-uploads", "1_a.pdf")
    assert opts["content-type"] == "application/pdf"
    assert opts["upsert"] == "false"


def test_object_exists_matches_exact_name_in_folder(client):
    client.objects = {"1_report.pdf": b"x", "owner/2_report.pdf": b"y", "1_report.pdf.bak": b"z"}
    adapter = SupabaseStorageAdapter(client)

    assert adapter.object_exists(bucket="b", key="1_report.pdf") is True
    assert adapter.object_exists(bucket="b", key="owner/2_report.pdf") is True
    assert adapter.object_exists(bucket="b", key="3_missing.pdf") is False
    assert client.calls[1][2] == "owner"


@pytest.mark.parametrize(
    "response",
    [
        {"signedURL": "https://x/sign?token=1"},
        {"signedUrl": "https://x/sign?token=1"},
        {"data": {"signed_url": "https://x/sign?token=1"}},
    ],
)
def test_presign_accepts_client_response_shapes(client, response):
    client.signed_response = lambda path: response
    signed = SupabaseStorageAdapter(client).presign_download(bucket="b", key="1_a.pdf", expires_in=60)
    assert signed == {"url": "https://x/sign?token=1", "expires_in": 60}


def test_presign_without_url_is_unavailable(client):
    client.signed_response = lambda path: {"error": "nope"}
    with pytest.raises(BackendError) as info:
        SupabaseStorageAdapter(client).presign_download(bucket="b", key="1_a.pdf", expires_in=60)
    assert info.value.kind is BackendErrorKind.UNAVAILABLE


def test_signed_url_host_rewrite_is_opt_in(client, monkeypatch: pytest.MonkeyPatch):
    adapter = SupabaseStorageAdapter(client)
    monkeypatch.setenv("SUPABASE_PUBLIC_URL", "http://127.0.0.1:54321")
    plain = adapter.presign_download(bucket="b", key="1_a.pdf", expires_in=60)["url"]
    assert plain.startswith("http://kong:8000/")

    monkeypatch.setenv("SUPABASE_REWRITE_SIGNED_URL_HOST", "true")
    rewritten = adapter.presign_download(bucket="b", key="1_a.pdf", expires_in=60)["url"]
    assert rewritten == "http://127.0.0.1:54321/storage/v1/object/sign/b/1_a.pdf?token=t"


def test_delete_removes_single_key(client):
    client.objects = {"1_a.pdf": b"x"}
    SupabaseStorageAdapter(client).delete_object(bucket="b", key="1_a.pdf")
    assert client.objects == {}


class StorageApiError(Exception):
    def __init__(self, message: str, code: str, status: int):
        super().__init__(message)
        self.code = code
        self.status = status


@pytest.mark.parametrize(
    "exc, kind",
    [
        (StorageApiError("Bucket not found", "Bucket not found", 400), BackendErrorKind.STORAGE_MISCONFIGURED),
        (Exception({"statusCode": 404, "error": "not_found"}), BackendErrorKind.STORAGE_MISCONFIGURED),
        (StorageApiError("denied", "Unauthorized", 403), BackendErrorKind.PERMISSION_DENIED),
        (Exception({"statusCode": "401", "error": "InvalidJWT"}), BackendErrorKind.PERMISSION_DENIED),
        (StorageApiError("exists", "Duplicate", 409), BackendErrorKind.INTEGRITY),
        (ConnectionError("reset"), BackendErrorKind.UNAVAILABLE),
        (BackendError(BackendErrorKind.INTEGRITY), BackendErrorKind.INTEGRITY),
    ],
)
def test_classify_storage_error(exc, kind):
    assert classify_storage_error(exc) is kind


def test_client_errors_surface_as_backend_errors(client):
    client.error = StorageApiError("denied", "Unauthorized", 403)
    adapter = SupabaseStorageAdapter(client)
    with pytest.raises(BackendError) as info:
        adapter.put_object(bucket="b", key="1_a.pdf", body=b"x", content_type="application/pdf")
    assert info.value.kind is BackendErrorKind.PERMISSION_DENIED


def test_duplicate_object_on_upload_is_not_reported_as_a_row_error(client):
    client.error = StorageApiError("The resource already exists", "Duplicate", 409)
    with pytest.raises(BackendError) as info:
        SupabaseStorageAdapter(client).put_object(bucket="b", key="1_a.pdf", body=b"x", content_type="application/pdf")
    assert info.value.kind is BackendErrorKind.UNAVAILABLE


def test_storage3_client_shape_is_supported():
    inner = FakeClient()
    bare = SimpleNamespace(from_=inner.storage.from_)
    SupabaseStorageAdapter(bare).put_object(bucket="b", key="1_a.pdf", body=b"x", content_type="application/pdf")
    assert inner.objects == {"1_a.pdf": b"x"}


def test_client_without_storage_is_misconfigured():
    with pytest.raises(BackendError) as info:
        SupabaseStorageAdapter(object()).delete_object(bucket="b", key="k")
    assert info.value.kind is BackendErrorKind.STORAGE_MISCONFIGURED
