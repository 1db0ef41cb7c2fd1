"""
Status mutation, deletion and signed-URL viewing: authorization and ordering.
"""
from __future__ import annotations

import pytest

from salaysay.errors import BackendError, BackendErrorKind
from salaysay.submissions.models import Profile, Scope, SubmissionStatus
from salaysay.submissions.policy import Caller
from salaysay.submissions.usecases import (
    DeleteSubmissionInput,
    DeleteSubmissionUseCase,
    UpdateStatusInput,
    UpdateStatusUseCase,
    ViewUrlInput,
    ViewUrlUseCase,
)


BUCKET = "salaysay-uploads"
OWNER = Caller(sub="owner", email="owner@neu.edu.ph", roles=("student",))
OTHER = Caller(sub="other", email="other@neu.edu.ph", roles=("student",))
REVIEWER = Caller(sub="rev", email="rev@neu.edu.ph", roles=("reviewer",))


@pytest.fixture
def row(repo, storage):
    repo.upsert_profile(Profile(id="owner", email="owner@neu.edu.ph"))
    sub = repo.insert_submission(
        user_id="owner", file_path="1700000000000_report.pdf", violation_type="Other", status=SubmissionStatus.PENDING_REVIEW
    )
    storage.objects[(BUCKET, sub.file_path)] = b"%PDF"
    return sub


def test_non_owner_in_mine_scope_cannot_change_status(repo, row):
    usecase = UpdateStatusUseCase(repo)
    for caller in (OTHER, REVIEWER):
        with pytest.raises(PermissionError):
            usecase.execute(UpdateStatusInput(submission_id=row.id, status="approved", caller=caller, scope=Scope.MINE))
    assert repo.get_submission(row.id).status is SubmissionStatus.PENDING_REVIEW


def test_student_in_all_scope_still_cannot_change_others_status(repo, row):
    with pytest.raises(PermissionError):
        UpdateStatusUseCase(repo).execute(
            UpdateStatusInput(submission_id=row.id, status="approved", caller=OTHER, scope=Scope.ALL)
        )


def test_reviewer_in_all_scope_can_change_status(repo, row):
    result = UpdateStatusUseCase(repo).execute(
        UpdateStatusInput(submission_id=row.id, status="rejected", caller=REVIEWER, scope=Scope.ALL)
    )
    assert result.changed is True
    assert repo.get_submission(row.id).status is SubmissionStatus.REJECTED


def test_owner_can_move_status_freely(repo, row):
    usecase = UpdateStatusUseCase(repo)
    for target in ("approved", "rejected", "pending_review"):
        usecase.execute(UpdateStatusInput(submission_id=row.id, status=target, caller=OWNER))
        assert repo.get_submission(row.id).status.value == target


def test_self_transition_skips_the_write(repo, row, monkeypatch: pytest.MonkeyPatch):
    def _no_write(*_args, **_kwargs):
        raise AssertionError("update_status must not be called")

    monkeypatch.setattr(repo, "update_status", _no_write)
    result = UpdateStatusUseCase(repo).execute(
        UpdateStatusInput(submission_id=row.id, status="pending_review", caller=OWNER)
    )
    assert result.changed is False


def test_invalid_status_and_missing_row(repo, row):
    usecase = UpdateStatusUseCase(repo)
    with pytest.raises(ValueError):
        usecase.execute(UpdateStatusInput(submission_id=row.id, status="archived", caller=OWNER))
    with pytest.raises(LookupError):
        usecase.execute(UpdateStatusInput(submission_id="missing", status="approved", caller=OWNER))


def test_delete_removes_blob_then_row(repo, storage, row):
    DeleteSubmissionUseCase(repo, storage, bucket=BUCKET).execute(DeleteSubmissionInput(submission_id=row.id, caller=OWNER))

    assert (BUCKET, row.file_path) not in storage.objects
    assert repo.get_submission(row.id) is None


def test_delete_is_owner_only_even_for_reviewers(repo, storage, row):
    with pytest.raises(PermissionError):
        DeleteSubmissionUseCase(repo, storage, bucket=BUCKET).execute(
            DeleteSubmissionInput(submission_id=row.id, caller=REVIEWER)
        )
    assert storage.calls == []


def test_failed_blob_delete_keeps_the_row(repo, storage, row):
    storage.fail_on["delete"] = BackendError(BackendErrorKind.UNAVAILABLE)
    with pytest.raises(BackendError):
        DeleteSubmissionUseCase(repo, storage, bucket=BUCKET).execute(
            DeleteSubmissionInput(submission_id=row.id, caller=OWNER)
        )
    assert repo.get_submission(row.id) is not None


def test_view_url_for_owner_and_reviewer_in_all_scope(repo, storage, row):
    usecase = ViewUrlUseCase(repo, storage, bucket=BUCKET, ttl_seconds=60)

    signed = usecase.execute(ViewUrlInput(submission_id=row.id, caller=OWNER))
    assert signed["expires_in"] == 60
    assert signed["file_name"] == "1700000000000_report.pdf"
    assert storage.resolve(signed["url"]) == b"%PDF"

    usecase.execute(ViewUrlInput(submission_id=row.id, caller=REVIEWER, scope=Scope.ALL))
    with pytest.raises(PermissionError):
        usecase.execute(ViewUrlInput(submission_id=row.id, caller=OTHER, scope=Scope.ALL))
