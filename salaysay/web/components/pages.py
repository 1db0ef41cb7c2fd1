"""
Full-page components: dashboard, signed-out and access-denied pages.
"""

from typing import Any, Dict, Optional, Sequence
from urllib.parse import urlencode

from salaysay.submissions.models import Scope, Submission
from salaysay.submissions.notices import Notice, access_denied
from salaysay.submissions.policy import Caller
from salaysay.submissions.usecases.sorting import SortState

from .base import Component
from .layout import Layout
from .notice import NoticeBanner
from .submissions_table import SubmissionsTable
from .upload_dialog import UploadDialog


class DashboardPage(Component):
    """Submissions dashboard for the signed-in caller.

    Reviewers get a scope switch between their own documents and everybody's.
    A load failure renders the notice in place of the table.
    """

    def __init__(
        self,
        *,
        user: Dict[str, Any],
        caller: Caller,
        rows: Sequence[Submission],
        sort: SortState,
        scope: Scope,
        violation_types: Sequence[str],
        max_bytes: int,
        notice: Optional[Notice] = None,
    ):
        self.user = user
        self.caller = caller
        self.rows = rows
        self.sort = sort
        self.scope = scope
        self.violation_types = violation_types
        self.max_bytes = max_bytes
        self.notice = notice

    def render(self) -> str:
        if self.notice is not None:
            table_html = ""
        else:
            table_html = SubmissionsTable(self.rows, caller=self.caller, sort=self.sort, scope=self.scope).render()
        content = f"""
<section class="dashboard" data-scope="{self.scope.value}">
    <div class="dashboard__toolbar">
        <h1>{"All submissions" if self.scope is Scope.ALL else "My submissions"}</h1>
        {self._render_scope_switch()}
        <button type="button" class="button button--primary" data-action="open-upload">Upload PDF</button>
    </div>
    {NoticeBanner(self.notice).render()}
    {table_html}
    {UploadDialog(self.violation_types, max_bytes=self.max_bytes).render()}
</section>"""
        return Layout("Dashboard", content, user=self.user).render()

    def _render_scope_switch(self) -> str:
        if not self.caller.is_reviewer:
            return ""
        links = []
        for scope, label in ((Scope.MINE, "My documents"), (Scope.ALL, "All users")):
            query = urlencode({"scope": scope.value, "sort": self.sort.field.value, "dir": self.sort.direction.value})
            css = self.classes("scope-switch__link", active=scope is self.scope)
            current = ' aria-current="page"' if scope is self.scope else ""
            links.append(f'<a class="{css}" href="/?{query}"{current}>{label}</a>')
        return f'<nav class="scope-switch" aria-label="Scope">{"".join(links)}</nav>'


class SignedOutPage(Component):
    def render(self) -> str:
        content = """
<section class="auth-info">
    <h1>Signed out</h1>
    <p>You have been signed out of Salaysay.</p>
    <p><a class="button button--primary" href="/auth/login">Sign in again</a></p>
</section>"""
        return Layout("Signed out", content, show_header=False).render()


class AccessDeniedPage(Component):
    def __init__(self, domain: str):
        self.domain = domain

    def render(self) -> str:
        notice = access_denied(self.domain)
        content = f"""
<section class="auth-info">
    {NoticeBanner(notice).render()}
    <p><a class="button button--primary" href="/auth/login">Sign in with another account</a></p>
</section>"""
        return Layout("Access Denied", content, show_header=False).render()
