"""
Server-rendered pages.

The dashboard renders the same data as `GET /api/submissions`: the listing
sweep runs on every page load, then the rows are sorted by the `sort`/`dir`
query parameters. Invalid scope or sort values fall back to the defaults
instead of failing the page.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from salaysay.errors import BackendError
from salaysay.storage.config import get_max_upload_bytes
from salaysay.submissions import notices
from salaysay.submissions.models import VIOLATION_TYPES, Scope
from salaysay.submissions.usecases import ListSubmissionsInput, ListSubmissionsUseCase, SortState, sort_submissions
from salaysay.web.components import DashboardPage
from salaysay.web.container import get_container
from salaysay.web.routes.submissions import _caller


pages_router = APIRouter(tags=["Pages"])
logger = logging.getLogger("salaysay.web")


@pages_router.get("/", response_class=HTMLResponse)
async def dashboard(
    request: Request,
    scope: str | None = None,
    sort: str | None = None,
    direction: str | None = Query(default=None, alias="dir"),
):
    container = get_container(request)
    caller = _caller(request)
    try:
        parsed_scope = Scope.parse(scope)
    except ValueError:
        parsed_scope = Scope.MINE
    if parsed_scope is Scope.ALL and not caller.is_reviewer:
        return RedirectResponse(url="/", status_code=303)
    try:
        state = SortState.parse(sort, direction)
    except ValueError:
        state = SortState()

    rows = []
    notice = None
    usecase = ListSubmissionsUseCase(container.repo, container.storage, bucket=container.bucket)
    try:
        rows = sort_submissions(await usecase.execute(ListSubmissionsInput(caller=caller, scope=parsed_scope)), state)
    except BackendError as exc:
        logger.warning("dashboard load failed: kind=%s", exc.kind.value)
        notice = notices.load_failed()

    page = DashboardPage(
        user=request.state.user,
        caller=caller,
        rows=rows,
        sort=state,
        scope=parsed_scope,
        violation_types=VIOLATION_TYPES,
        max_bytes=get_max_upload_bytes(),
        notice=notice,
    )
    return HTMLResponse(content=page.render(), headers={"Cache-Control": "private, no-store"})


__all__ = ["pages_router"]
