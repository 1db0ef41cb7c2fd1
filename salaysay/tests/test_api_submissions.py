"""
Submissions API: end-to-end upload, listing, review and deletion over HTTP.

Covers:
- A 2 MB PDF uploaded with a category shows up as one pending row whose
  signed URL resolves to the stored bytes.
- Unauthenticated calls, cache headers and CSRF refusals.
- Per-row authorization for status changes and deletion.
- Upload dialog bookkeeping: retry, remove and discard.
"""
from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

from salaysay.errors import BackendError, BackendErrorKind
from salaysay.submissions.models import Profile, SubmissionStatus
from salaysay.submissions.usecases import AcceptFilesUseCase, CandidateFile


pytestmark = pytest.mark.anyio("asyncio")

BUCKET = "salaysay-uploads"


def _client(app, cookies: dict | None = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test", cookies=cookies or {})


def _pdf(name: str, size: int = 64):
    return ("files", (name, b"%PDF-1.7\n" + b"0" * max(size - 9, 0), "application/pdf"))


async def _open_batch(client: httpx.AsyncClient, *files) -> dict:
    r = await client.post("/api/uploads", files=list(files))
    assert r.status_code == 201, r.text
    return r.json()


async def test_upload_two_megabyte_pdf_end_to_end(app, login, storage):
    async with _client(app, login()) as client:
        batch = await _open_batch(client, _pdf("incident.pdf", size=2 * 1024 * 1024))
        assert [t["status"] for t in batch["tasks"]] == ["pending"]

        r_submit = await client.post(f"/api/uploads/{batch['id']}/submit", json={"violation_type": "Attendance Issue"})
        assert r_submit.status_code == 200
        body = r_submit.json()
        assert body["completed"] == 1
        assert body["failed"] == 0
        assert body["tasks"][0]["status"] == "completed"
        assert body["notice"]["title"] == "Upload complete"

        r_list = await client.get("/api/submissions")
        items = r_list.json()["items"]
        assert len(items) == 1
        row = items[0]
        assert row["status"] == "pending_review"
        assert row["violation_type"] == "Attendance Issue"
        assert row["file_name"].endswith("_incident.pdf")

        r_view = await client.get(f"/api/submissions/{row['id']}/view-url")
    assert r_view.status_code == 200
    blob = storage.resolve(r_view.json()["url"])
    assert blob is not None and len(blob) == 2 * 1024 * 1024


async def test_api_requires_session(app):
    async with _client(app) as client:
        r = await client.get("/api/submissions")
    assert r.status_code == 401
    assert r.json() == {"error": "unauthenticated"}
    assert r.headers["Cache-Control"] == "private, no-store"


async def test_responses_are_private_and_hardened(app, login):
    async with _client(app, login()) as client:
        r = await client.get("/api/submissions")
    assert r.status_code == 200
    assert r.headers["Cache-Control"] == "private, no-store"
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert "default-src 'self'" in r.headers["Content-Security-Policy"]


async def test_violation_types_are_listed_in_order(app, login):
    async with _client(app, login()) as client:
        r = await client.get("/api/violation-types")
    assert r.json()["items"][0] == "Attendance Issue"
    assert r.json()["items"][-1] == "Other"


async def test_cross_origin_write_is_refused(app, login, repo):
    async with _client(app, login()) as client:
        r = await client.post(
            "/api/uploads", files=[_pdf("a.pdf")], headers={"Origin": "https://evil.example"}
        )
    assert r.status_code == 403
    assert r.json()["detail"] == "csrf_violation"


async def test_strict_csrf_requires_origin_or_referer(app, login, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SALAYSAY_STRICT_CSRF", "true")
    async with _client(app, login()) as client:
        bare = await client.post("/api/uploads", files=[_pdf("a.pdf")])
        same = await client.post("/api/uploads", files=[_pdf("a.pdf")], headers={"Origin": "http://test"})
    assert bare.status_code == 403
    assert same.status_code == 201


async def test_wrong_type_rejects_the_whole_selection(app, login, container):
    async with _client(app, login()) as client:
        r = await client.post(
            "/api/uploads",
            files=[_pdf("a.pdf"), ("files", ("notes.txt", b"hello", "text/plain"))],
        )
    assert r.status_code == 400
    assert r.json()["error"] == "wrong_type"
    assert r.json()["file_name"] == "notes.txt"
    assert r.json()["notice"]["description"] == "Please upload only PDF files."
    assert container.batches._data == {}


async def test_oversized_file_is_refused(app, login, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SALAYSAY_MAX_UPLOAD_BYTES", "1024")
    async with _client(app, login()) as client:
        r = await client.post("/api/uploads", files=[_pdf("big.pdf", size=2048)])
    assert r.status_code == 400
    assert r.json()["error"] == "too_large"


async def test_oversized_part_is_judged_by_size_without_being_read(app, login, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SALAYSAY_MAX_UPLOAD_BYTES", "1024")
    seen: list[CandidateFile] = []
    original = AcceptFilesUseCase.execute

    def recording_execute(self, req):
        seen.extend(req.files)
        return original(self, req)

    monkeypatch.setattr(AcceptFilesUseCase, "execute", recording_execute)
    async with _client(app, login()) as client:
        r = await client.post("/api/uploads", files=[_pdf("small.pdf"), _pdf("big.pdf", size=4096)])
    assert r.status_code == 400
    assert r.json()["file_name"] == "big.pdf"
    assert [(f.file_name, f.body, f.size_bytes) for f in seen][1] == ("big.pdf", b"", 4096)
    assert seen[0].body.startswith(b"%PDF")


async def test_request_over_the_selection_budget_is_refused_before_parsing(app, login, container, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SALAYSAY_MAX_UPLOAD_BYTES", "1024")
    called = []
    monkeypatch.setattr(AcceptFilesUseCase, "execute", lambda self, req: called.append(req))
    async with _client(app, login()) as client:
        r = await client.post("/api/uploads", files=[_pdf("huge.pdf", size=200_000)])
    assert r.status_code == 413
    assert r.json()["error"] == "too_large"
    assert r.json()["notice"]["title"] == "File too large"
    assert called == []
    assert container.batches._data == {}


async def test_selection_is_refused_when_upload_memory_is_full(app, login, container):
    container.batches._max_total_bytes = 100
    async with _client(app, login()) as client:
        r = await client.post("/api/uploads", files=[_pdf("a.pdf", size=200)])
    assert r.status_code == 503
    assert r.json()["error"] == "busy"
    assert r.json()["notice"]["title"] == "Upload unavailable"


async def test_submit_without_category_is_rejected(app, login, storage):
    async with _client(app, login()) as client:
        batch = await _open_batch(client, _pdf("a.pdf"))
        r = await client.post(f"/api/uploads/{batch['id']}/submit", json={"violation_type": "  "})
    assert r.status_code == 400
    assert r.json()["error"] == "missing_category"
    assert r.json()["notice"]["title"] == "Missing information"
    assert storage.calls == []


async def test_failed_task_can_be_retried(app, login, storage):
    async with _client(app, login()) as client:
        batch = await _open_batch(client, _pdf("a.pdf"))
        storage.fail_on["put"] = BackendError(BackendErrorKind.STORAGE_MISCONFIGURED)
        r_submit = await client.post(f"/api/uploads/{batch['id']}/submit", json={"violation_type": "Other"})
        task = r_submit.json()["tasks"][0]
        assert task["status"] == "error"
        assert task["error"]["description"] == "Storage bucket not found. Please contact support."
        assert r_submit.json()["failed"] == 1

        storage.fail_on.clear()
        r_retry = await client.post(
            f"/api/uploads/{batch['id']}/tasks/{task['id']}/retry", json={"violation_type": "Other"}
        )
        assert r_retry.status_code == 200
        assert r_retry.json()["task"]["status"] == "completed"

        r_again = await client.post(
            f"/api/uploads/{batch['id']}/tasks/{task['id']}/retry", json={"violation_type": "Other"}
        )
    assert r_again.status_code == 409
    assert r_again.json()["detail"] == "task_not_failed"


async def test_remove_task_and_discard_batch(app, login):
    cookies = login()
    async with _client(app, cookies) as client:
        batch = await _open_batch(client, _pdf("a.pdf"), _pdf("b.pdf"))
        first = batch["tasks"][0]["id"]

        r_remove = await client.delete(f"/api/uploads/{batch['id']}/tasks/{first}")
        assert [t["file_name"] for t in r_remove.json()["tasks"]] == ["b.pdf"]

        r_discard = await client.delete(f"/api/uploads/{batch['id']}")
        assert r_discard.json() == {"discarded": batch["id"]}
        r_gone = await client.get(f"/api/uploads/{batch['id']}")
    assert r_gone.status_code == 404


async def test_batches_are_private_to_their_owner(app, login):
    async with _client(app, login()) as client:
        batch = await _open_batch(client, _pdf("a.pdf"))
    async with _client(app, login("maria.santos@neu.edu.ph")) as other:
        r = await other.get(f"/api/uploads/{batch['id']}")
    assert r.status_code == 404


def _seed_row(repo, storage, owner: str = "sub-juan.delacruz"):
    if repo.get_profile(owner) is None:
        repo.upsert_profile(Profile(id=owner, email=f"{owner}@neu.edu.ph"))
    row = repo.insert_submission(
        user_id=owner, file_path="1700000000000_report.pdf", violation_type="Other", status=SubmissionStatus.PENDING_REVIEW
    )
    storage.objects[(BUCKET, row.file_path)] = b"%PDF"
    return row


async def test_status_change_by_owner(app, login, repo, storage):
    cookies = login()
    row = _seed_row(repo, storage)
    async with _client(app, cookies) as client:
        r = await client.patch(f"/api/submissions/{row.id}/status", json={"status": "approved"})
    assert r.status_code == 200
    assert r.json()["submission"]["status"] == "approved"
    assert r.json()["notice"]["description"] == "Document status changed to approved."
    assert repo.get_submission(row.id).status is SubmissionStatus.APPROVED


async def test_status_change_by_non_owner_is_forbidden(app, login, repo, storage):
    row = _seed_row(repo, storage)
    async with _client(app, login("maria.santos@neu.edu.ph")) as client:
        r = await client.patch(f"/api/submissions/{row.id}/status", json={"status": "approved"})
    assert r.status_code == 403
    assert repo.get_submission(row.id).status is SubmissionStatus.PENDING_REVIEW


async def test_reviewer_changes_status_in_all_scope_only(app, login, repo, storage):
    row = _seed_row(repo, storage)
    cookies = login("dean@neu.edu.ph", roles=["reviewer"])
    async with _client(app, cookies) as client:
        mine = await client.patch(f"/api/submissions/{row.id}/status", json={"status": "rejected"})
        everyone = await client.patch(
            f"/api/submissions/{row.id}/status", json={"status": "rejected", "scope": "all"}
        )
        listing = await client.get("/api/submissions", params={"scope": "all"})
    assert mine.status_code == 403
    assert everyone.status_code == 200
    assert [i["id"] for i in listing.json()["items"]] == [row.id]


async def test_student_cannot_list_all_scope(app, login):
    async with _client(app, login()) as client:
        r = await client.get("/api/submissions", params={"scope": "all"})
    assert r.status_code == 403


async def test_invalid_status_is_a_bad_request(app, login, repo, storage):
    cookies = login()
    row = _seed_row(repo, storage)
    async with _client(app, cookies) as client:
        r = await client.patch(f"/api/submissions/{row.id}/status", json={"status": "archived"})
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_status"


async def test_delete_by_owner_removes_blob_and_row(app, login, repo, storage):
    cookies = login()
    row = _seed_row(repo, storage)
    async with _client(app, cookies) as client:
        r = await client.delete(f"/api/submissions/{row.id}")
        listing = await client.get("/api/submissions")
    assert r.status_code == 200
    assert r.json()["deleted"] == row.id
    assert listing.json()["items"] == []
    assert (BUCKET, row.file_path) not in storage.objects


async def test_delete_by_reviewer_is_forbidden(app, login, repo, storage):
    row = _seed_row(repo, storage)
    async with _client(app, login("dean@neu.edu.ph", roles=["reviewer"])) as client:
        r = await client.delete(f"/api/submissions/{row.id}")
    assert r.status_code == 403
    assert repo.get_submission(row.id) is not None


async def test_storage_failure_on_delete_surfaces_notice(app, login, repo, storage):
    cookies = login()
    row = _seed_row(repo, storage)
    storage.fail_on["delete"] = BackendError(BackendErrorKind.PERMISSION_DENIED)
    async with _client(app, cookies) as client:
        r = await client.delete(f"/api/submissions/{row.id}")
    assert r.status_code == 502
    assert r.json()["notice"]["title"] == "Failed to delete file"
    assert repo.get_submission(row.id) is not None


async def test_listing_sorts_by_query(app, login, repo, storage):
    cookies = login()
    owner = "sub-juan.delacruz"
    for key in ("1_b.pdf", "2_A.pdf", "3_c.pdf"):
        repo.insert_submission(user_id=owner, file_path=key, violation_type="Other", status=SubmissionStatus.PENDING_REVIEW)
        storage.objects[(BUCKET, key)] = b"%PDF"
    async with _client(app, cookies) as client:
        r = await client.get("/api/submissions", params={"sort": "category", "dir": "desc"})
        bad = await client.get("/api/submissions", params={"sort": "size"})
    assert r.json()["sort"] == {"field": "category", "direction": "desc"}
    assert len(r.json()["items"]) == 3
    assert bad.status_code == 400
