"""
Listing with reconciliation: rows whose blob vanished are dropped and deleted.
"""
from __future__ import annotations

import pytest

from salaysay.errors import BackendError, BackendErrorKind
from salaysay.submissions.models import Profile, Scope, SubmissionStatus
from salaysay.submissions.policy import Caller
from salaysay.submissions.usecases import ListSubmissionsInput, ListSubmissionsUseCase


pytestmark = pytest.mark.anyio("asyncio")

BUCKET = "salaysay-uploads"


def _seed(repo, storage, owner: str, key: str, *, with_blob: bool = True):
    if owner not in repo.profiles:
        repo.upsert_profile(Profile(id=owner, email=f"{owner}@neu.edu.ph"))
    row = repo.insert_submission(user_id=owner, file_path=key, violation_type="Other", status=SubmissionStatus.PENDING_REVIEW)
    if with_blob:
        storage.objects[(BUCKET, key)] = b"%PDF"
    return row


async def test_removed_blob_excludes_and_deletes_row_idempotently(repo, storage):
    keep = _seed(repo, storage, "u1", "1_keep.pdf")
    gone = _seed(repo, storage, "u1", "2_gone.pdf")
    del storage.objects[(BUCKET, "2_gone.pdf")]
    usecase = ListSubmissionsUseCase(repo, storage, bucket=BUCKET)
    req = ListSubmissionsInput(caller=Caller(sub="u1"), scope=Scope.MINE)

    first = await usecase.execute(req)
    second = await usecase.execute(req)

    assert [r.id for r in first] == [keep.id]
    assert [r.id for r in second] == [keep.id]
    assert gone.id not in repo.submissions


async def test_existence_check_error_keeps_the_row(repo, storage):
    row = _seed(repo, storage, "u1", "1_a.pdf", with_blob=False)
    storage.fail_on["exists"] = BackendError(BackendErrorKind.UNAVAILABLE)

    rows = await ListSubmissionsUseCase(repo, storage, bucket=BUCKET).execute(
        ListSubmissionsInput(caller=Caller(sub="u1"))
    )

    assert [r.id for r in rows] == [row.id]
    assert row.id in repo.submissions


async def test_every_row_gets_one_existence_check(repo, storage):
    for i in range(5):
        _seed(repo, storage, "u1", f"{i}_f.pdf")

    await ListSubmissionsUseCase(repo, storage, bucket=BUCKET).execute(ListSubmissionsInput(caller=Caller(sub="u1")))

    assert sorted(k for op, k in storage.calls if op == "exists") == sorted(f"{i}_f.pdf" for i in range(5))


async def test_orphan_cleanup_failure_is_not_surfaced(repo, storage, monkeypatch: pytest.MonkeyPatch):
    _seed(repo, storage, "u1", "1_gone.pdf", with_blob=False)

    def _boom(_id: str) -> None:
        raise BackendError(BackendErrorKind.UNAVAILABLE)

    monkeypatch.setattr(repo, "delete_submission", _boom)
    rows = await ListSubmissionsUseCase(repo, storage, bucket=BUCKET).execute(ListSubmissionsInput(caller=Caller(sub="u1")))

    assert rows == []


async def test_mine_scope_only_lists_own_rows(repo, storage):
    mine = _seed(repo, storage, "u1", "1_mine.pdf")
    _seed(repo, storage, "u2", "2_theirs.pdf")

    rows = await ListSubmissionsUseCase(repo, storage, bucket=BUCKET).execute(ListSubmissionsInput(caller=Caller(sub="u1")))

    assert [r.id for r in rows] == [mine.id]


async def test_all_scope_requires_reviewer(repo, storage):
    _seed(repo, storage, "u1", "1_a.pdf")
    _seed(repo, storage, "u2", "2_b.pdf")
    usecase = ListSubmissionsUseCase(repo, storage, bucket=BUCKET)

    with pytest.raises(PermissionError):
        await usecase.execute(ListSubmissionsInput(caller=Caller(sub="u1"), scope=Scope.ALL))

    rows = await usecase.execute(ListSubmissionsInput(caller=Caller(sub="r1", roles=("reviewer",)), scope=Scope.ALL))
    assert {r.user_id for r in rows} == {"u1", "u2"}
    assert all(r.owner_email for r in rows)
