"""
Submissions API routes (JSON).

Why:
    The dashboard talks to these endpoints for listing, reviewing, viewing and
    deleting submissions, and for driving the upload dialog. Every response is
    user-scoped and carries `Cache-Control: private, no-store`.

Errors:
    Failures the user sees are returned as `{"error": <kind>, "notice":
    {title, description, variant}}` so the client can show the toast as-is.
"""
from __future__ import annotations

import logging
import os

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic.functional_validators import field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

from salaysay.errors import BackendError, BackendErrorKind
from salaysay.storage.upload_policy import policy_from_env
from salaysay.submissions import notices
from salaysay.submissions.models import VIOLATION_TYPES, Scope, UploadStatus
from salaysay.submissions.notices import Notice
from salaysay.submissions.policy import Caller
from salaysay.submissions.usecases import (
    AcceptFilesInput,
    AcceptFilesUseCase,
    CandidateFile,
    DeleteSubmissionInput,
    DeleteSubmissionUseCase,
    ListSubmissionsInput,
    ListSubmissionsUseCase,
    SortState,
    SubmitBatchInput,
    SubmitBatchUseCase,
    UpdateStatusInput,
    UpdateStatusUseCase,
    UploadRejected,
    UploadTaskInput,
    UploadTaskUseCase,
    ViewUrlInput,
    ViewUrlUseCase,
    sort_submissions,
)
from salaysay.web.container import AppContainer, get_container
from salaysay.web.routes.security import _is_same_origin, _require_strict_same_origin


submissions_router = APIRouter(tags=["Submissions"])
logger = logging.getLogger("salaysay.web")

# Storage or configuration trouble is on our side (503); refusals and
# constraint failures from the backends surface as a bad gateway (502).
_BACKEND_STATUS = {
    BackendErrorKind.STORAGE_MISCONFIGURED: 503,
    BackendErrorKind.PERMISSION_DENIED: 502,
    BackendErrorKind.INTEGRITY: 502,
    BackendErrorKind.UNAVAILABLE: 503,
}


class StatusUpdatePayload(BaseModel):
    status: str
    scope: str | None = None


class SubmitBatchPayload(BaseModel):
    violation_type: str | None = None

    @field_validator("violation_type")
    @classmethod
    def _strip_empty(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v if v else None
        return v


class RetryTaskPayload(SubmitBatchPayload):
    pass


def _json_private(payload, *, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=payload, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def _private_error(payload: dict, *, status_code: int) -> JSONResponse:
    headers = {"Cache-Control": "private, no-store", "Vary": "Origin"}
    return JSONResponse(content=payload, status_code=status_code, headers=headers)


def _notice_error(error: str, notice: Notice, *, status_code: int) -> JSONResponse:
    return _private_error({"error": error, "notice": notice.to_dict()}, status_code=status_code)


def _backend_error(exc: BackendError, notice: Notice) -> JSONResponse:
    return _notice_error(exc.kind.value, notice, status_code=_BACKEND_STATUS[exc.kind])


def _csrf_guard(request: Request) -> JSONResponse | None:
    """Enforce same-origin for browser write requests.

    Behavior:
        - In production or when SALAYSAY_STRICT_CSRF=true, require that either
          Origin or Referer is present AND same-origin.
        - Otherwise fall back to `_is_same_origin`, which permits requests
          without these headers (scripts, tests).
        - Violations return 403 with detail=csrf_violation.
    """
    prod_env = (os.getenv("SALAYSAY_ENV", "dev") or "").lower() in {"prod", "production"}
    strict = prod_env or (os.getenv("SALAYSAY_STRICT_CSRF", "false") or "").lower() == "true"
    ok = _require_strict_same_origin(request) if strict else _is_same_origin(request)
    if not ok:
        return _private_error({"error": "forbidden", "detail": "csrf_violation"}, status_code=403)
    return None


def _caller(request: Request) -> Caller:
    user = getattr(request.state, "user", None) or {}
    roles = user.get("roles") or []
    return Caller(sub=str(user.get("sub") or ""), email=str(user.get("email") or ""), roles=tuple(roles))


def _parse_scope(raw: str | None) -> Scope | JSONResponse:
    try:
        return Scope.parse(raw)
    except ValueError:
        return _private_error({"error": "bad_request", "detail": "invalid_scope"}, status_code=400)


def _upload_usecase(container: AppContainer) -> UploadTaskUseCase:
    return UploadTaskUseCase(container.repo, container.storage, bucket=container.bucket)


# --- Submissions --------------------------------------------------------------

@submissions_router.get("/api/violation-types")
async def list_violation_types():
    return _json_private({"items": list(VIOLATION_TYPES)})


@submissions_router.get("/api/submissions")
async def list_submissions(
    request: Request,
    scope: str | None = None,
    sort: str | None = None,
    direction: str | None = Query(default=None, alias="dir"),
):
    """
    List submissions of a scope, sorted, with stale rows swept out.

    Behavior:
        - `scope=mine` (default) lists the caller's rows; `scope=all` requires
          the reviewer role (403 otherwise).
        - `sort`/`dir` select the column order (default: newest first).
        - A repository failure returns the "Failed to load files" notice.
    """
    container = get_container(request)
    parsed = _parse_scope(scope)
    if isinstance(parsed, JSONResponse):
        return parsed
    try:
        state = SortState.parse(sort, direction)
    except ValueError:
        return _private_error({"error": "bad_request", "detail": "invalid_sort"}, status_code=400)
    usecase = ListSubmissionsUseCase(container.repo, container.storage, bucket=container.bucket)
    try:
        rows = await usecase.execute(ListSubmissionsInput(caller=_caller(request), scope=parsed))
    except PermissionError:
        return _private_error({"error": "forbidden"}, status_code=403)
    except BackendError as exc:
        logger.warning("list submissions failed: kind=%s", exc.kind.value)
        return _backend_error(exc, notices.load_failed())
    rows = sort_submissions(rows, state)
    return _json_private({
        "items": [r.to_dict() for r in rows],
        "scope": parsed.value,
        "sort": {"field": state.field.value, "direction": state.direction.value},
    })


@submissions_router.patch("/api/submissions/{submission_id}/status")
async def update_submission_status(request: Request, submission_id: str, payload: StatusUpdatePayload):
    """
    Change the review status of one submission.

    Permissions:
        Owner, or a reviewer acting with `scope=all` (query or body).
    """
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    container = get_container(request)
    parsed = _parse_scope(payload.scope or request.query_params.get("scope"))
    if isinstance(parsed, JSONResponse):
        return parsed
    usecase = UpdateStatusUseCase(container.repo)
    try:
        result = usecase.execute(
            UpdateStatusInput(submission_id=submission_id, status=payload.status, caller=_caller(request), scope=parsed)
        )
    except ValueError:
        return _notice_error("invalid_status", notices.status_update_failed(), status_code=400)
    except PermissionError:
        return _private_error({"error": "forbidden"}, status_code=403)
    except LookupError:
        return _private_error({"error": "not_found"}, status_code=404)
    except BackendError as exc:
        logger.warning("status update failed: submission=%s kind=%s", submission_id, exc.kind.value)
        return _backend_error(exc, notices.status_update_failed())
    sub = result.submission
    return _json_private({
        "submission": sub.to_dict(),
        "changed": result.changed,
        "notice": notices.status_updated(sub.status.label).to_dict(),
    })


@submissions_router.delete("/api/submissions/{submission_id}")
async def delete_submission(request: Request, submission_id: str):
    """Delete blob then row; owner only."""
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    container = get_container(request)
    usecase = DeleteSubmissionUseCase(container.repo, container.storage, bucket=container.bucket)
    try:
        usecase.execute(DeleteSubmissionInput(submission_id=submission_id, caller=_caller(request)))
    except PermissionError:
        return _private_error({"error": "forbidden"}, status_code=403)
    except LookupError:
        return _private_error({"error": "not_found"}, status_code=404)
    except BackendError as exc:
        logger.warning("delete failed: submission=%s kind=%s", submission_id, exc.kind.value)
        return _backend_error(exc, notices.delete_failed())
    return _json_private({"deleted": submission_id, "notice": notices.deleted().to_dict()})


@submissions_router.get("/api/submissions/{submission_id}/view-url")
async def submission_view_url(request: Request, submission_id: str, scope: str | None = None):
    """Return a short-lived signed URL for reading the PDF."""
    container = get_container(request)
    parsed = _parse_scope(scope)
    if isinstance(parsed, JSONResponse):
        return parsed
    usecase = ViewUrlUseCase(container.repo, container.storage, bucket=container.bucket)
    try:
        signed = usecase.execute(ViewUrlInput(submission_id=submission_id, caller=_caller(request), scope=parsed))
    except PermissionError:
        return _private_error({"error": "forbidden"}, status_code=403)
    except LookupError:
        return _private_error({"error": "not_found"}, status_code=404)
    except BackendError as exc:
        logger.warning("view url failed: submission=%s kind=%s", submission_id, exc.kind.value)
        return _backend_error(exc, notices.view_failed())
    return _json_private(signed)


# --- Upload dialog ------------------------------------------------------------

async def _read_request_stream_with_limit(request: Request, limit: int) -> tuple[bytes | None, str | None]:
    """Consume the request stream without buffering unlimited bytes."""

    total = 0
    buffer = bytearray()
    async for chunk in request.stream():
        if not chunk:
            continue
        buffer.extend(chunk)
        total += len(chunk)
        if limit > 0 and total > limit:
            return None, "size_exceeded"
    if not buffer:
        return None, "empty_body"
    return bytes(buffer), None


def _replayed(request: Request, body: bytes) -> Request:
    """Return a request over the same scope whose stream yields `body`."""

    async def receive():
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(request.scope, receive=receive)


@submissions_router.post("/api/uploads")
async def create_upload_batch(request: Request):
    """
    Gate a file selection (multipart field `files`) and open an upload batch.

    Behavior:
        - 201 with the batch and one `pending` task per file.
        - 400 with the matching notice when any file is not a PDF or too
          large; nothing is created in that case. Parts larger than the limit
          are judged by their parsed size and never read.
        - 413 when the request itself exceeds the selection budget
          (files x limit + multipart overhead), checked before parsing.
        - 503 when the server holds too many pending upload bytes.
    """
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    container = get_container(request)
    policy = policy_from_env()
    limit = policy.request_limit_bytes()
    too_large = notices.too_large(policy.max_size_bytes)
    declared = (request.headers.get("content-length") or "").strip()
    if declared.isdigit() and int(declared) > limit:
        return _notice_error("too_large", too_large, status_code=413)
    body, body_error = await _read_request_stream_with_limit(request, limit)
    if body_error == "size_exceeded":
        return _notice_error("too_large", too_large, status_code=413)
    try:
        form = await _replayed(request, body or b"").form(max_files=policy.max_files, max_fields=policy.max_files)
    except StarletteHTTPException:
        return _private_error({"error": "bad_request", "detail": "invalid_form"}, status_code=400)
    files = []
    try:
        for item in form.getlist("files"):
            # Text parts and empty file inputs carry no filename.
            if isinstance(item, str) or not getattr(item, "filename", None):
                continue
            mime_type = item.content_type or ""
            size = getattr(item, "size", None)
            if size is not None and not policy.allows_size(size):
                files.append(CandidateFile(file_name=item.filename, mime_type=mime_type, body=b"", declared_size=size))
                continue
            files.append(CandidateFile(file_name=item.filename, mime_type=mime_type, body=await item.read()))
    finally:
        await form.close()
    usecase = AcceptFilesUseCase(container.batches, policy)
    try:
        batch = usecase.execute(AcceptFilesInput(owner_id=_caller(request).sub, files=files))
    except UploadRejected as exc:
        payload = {"error": exc.kind, "notice": exc.notice.to_dict()}
        if exc.file_name:
            payload["file_name"] = exc.file_name
        return _private_error(payload, status_code=503 if exc.kind == "busy" else 400)
    return _json_private(batch.to_dict(), status_code=201)


@submissions_router.get("/api/uploads/{batch_id}")
async def get_upload_batch(request: Request, batch_id: str):
    container = get_container(request)
    try:
        batch = container.batches.get(batch_id, owner_id=_caller(request).sub)
    except LookupError:
        return _private_error({"error": "not_found"}, status_code=404)
    return _json_private(batch.to_dict())


@submissions_router.post("/api/uploads/{batch_id}/submit")
async def submit_upload_batch(request: Request, batch_id: str, payload: SubmitBatchPayload):
    """
    Upload every pending task of the batch, one after another.

    Behavior:
        - 400 with a notice when the category or the identity is missing.
        - Otherwise 200 with the batch; failed tasks carry their notice and
          can be retried individually.
    """
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    container = get_container(request)
    caller = _caller(request)
    try:
        batch = container.batches.get(batch_id, owner_id=caller.sub)
    except LookupError:
        return _private_error({"error": "not_found"}, status_code=404)
    usecase = SubmitBatchUseCase(_upload_usecase(container))
    try:
        result = usecase.execute(SubmitBatchInput(batch=batch, owner_id=caller.sub, violation_type=payload.violation_type))
    except UploadRejected as exc:
        return _notice_error(exc.kind, exc.notice, status_code=400)
    body = batch.to_dict()
    body["completed"] = result.completed
    body["failed"] = len(result.failed)
    if result.completed:
        body["notice"] = notices.upload_succeeded(result.completed).to_dict()
    elif result.failed:
        body["notice"] = result.failed[0].notice.to_dict() if result.failed[0].notice else None
    return _json_private(body)


@submissions_router.post("/api/uploads/{batch_id}/tasks/{task_id}/retry")
async def retry_upload_task(request: Request, batch_id: str, task_id: str, payload: RetryTaskPayload):
    """Retry one failed task (error -> uploading); 409 for any other state."""
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    container = get_container(request)
    caller = _caller(request)
    try:
        task = container.batches.get(batch_id, owner_id=caller.sub).find(task_id)
    except LookupError:
        return _private_error({"error": "not_found"}, status_code=404)
    if task.status is not UploadStatus.ERROR:
        return _private_error({"error": "conflict", "detail": "task_not_failed"}, status_code=409)
    try:
        outcome = _upload_usecase(container).execute(
            UploadTaskInput(task=task, owner_id=caller.sub, violation_type=payload.violation_type)
        )
    except UploadRejected as exc:
        return _notice_error(exc.kind, exc.notice, status_code=400)
    body = {"task": outcome.task.to_dict()}
    body["notice"] = notices.upload_succeeded(1).to_dict() if outcome.ok else outcome.notice.to_dict()
    return _json_private(body)


@submissions_router.delete("/api/uploads/{batch_id}/tasks/{task_id}")
async def remove_upload_task(request: Request, batch_id: str, task_id: str):
    """Drop a task from the dialog list; a stored blob (if any) is kept."""
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    container = get_container(request)
    try:
        batch = container.batches.get(batch_id, owner_id=_caller(request).sub)
        task = batch.find(task_id)
    except LookupError:
        return _private_error({"error": "not_found"}, status_code=404)
    if task.status is UploadStatus.UPLOADING:
        return _private_error({"error": "conflict", "detail": "task_in_flight"}, status_code=409)
    batch.remove(task_id)
    return _json_private(batch.to_dict())


@submissions_router.delete("/api/uploads/{batch_id}")
async def discard_upload_batch(request: Request, batch_id: str):
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    container = get_container(request)
    try:
        container.batches.discard(batch_id, owner_id=_caller(request).sub)
    except LookupError:
        return _private_error({"error": "not_found"}, status_code=404)
    return _json_private({"discarded": batch_id})


__all__ = ["submissions_router"]
