"""
Submissions table for the dashboard.

Renders one row per submission with sortable column headers. Each header
links to the state produced by `SortState.toggle`, so the table itself keeps
no client-side sort logic. Row actions (view, status change, delete) are
plain data attributes picked up by `salaysay.js`.
"""

from typing import Iterable, List
from urllib.parse import urlencode

from salaysay.submissions.models import Scope, Submission, SubmissionStatus, format_created
from salaysay.submissions.policy import Caller, can_delete, can_edit_status
from salaysay.submissions.usecases.sorting import SortDirection, SortField, SortState

from .base import Component


_COLUMNS = (
    (SortField.NAME, "File name"),
    (SortField.DATE, "Date submitted"),
    (SortField.CATEGORY, "Violation type"),
    (SortField.STATUS, "Status"),
)


class SubmissionsTable(Component):
    def __init__(
        self,
        rows: Iterable[Submission],
        *,
        caller: Caller,
        sort: SortState,
        scope: Scope = Scope.MINE,
    ):
        self.rows: List[Submission] = list(rows)
        self.caller = caller
        self.sort = sort
        self.scope = scope

    def render(self) -> str:
        if not self.rows:
            return self._render_empty()
        owner_head = '<th scope="col">Submitted by</th>' if self.scope is Scope.ALL else ""
        head = "".join(self._render_header_cell(field, label) for field, label in _COLUMNS)
        body = "".join(self._render_row(row) for row in self.rows)
        return (
            '<table class="submissions-table" id="submissions-table">'
            f"<thead><tr>{head}{owner_head}<th scope=\"col\">Actions</th></tr></thead>"
            f"<tbody>{body}</tbody>"
            "</table>"
        )

    def _render_empty(self) -> str:
        text = "No salaysay files uploaded yet."
        return f'<div class="empty-state" id="submissions-table"><p>{text}</p></div>'

    def sort_href(self, field: SortField) -> str:
        nxt = self.sort.toggle(field)
        query = {"scope": self.scope.value, "sort": nxt.field.value, "dir": nxt.direction.value}
        return f"/?{urlencode(query)}"

    def _render_header_cell(self, field: SortField, label: str) -> str:
        active = field is self.sort.field
        if active:
            aria_sort = "ascending" if self.sort.direction is SortDirection.ASC else "descending"
            arrow = " &#9650;" if self.sort.direction is SortDirection.ASC else " &#9660;"
        else:
            aria_sort, arrow = "none", ""
        attrs = self.attributes(scope="col", aria_sort=aria_sort, class_=self.classes("sortable", active=active))
        return f'<th {attrs}><a href="{self.escape(self.sort_href(field))}">{self.escape(label)}{arrow}</a></th>'

    def _render_row(self, row: Submission) -> str:
        owner_cell = ""
        if self.scope is Scope.ALL:
            owner = row.owner_name or row.owner_email or row.user_id
            owner_cell = f"<td>{self.escape(owner)}</td>"
        return (
            f'<tr data-submission-id="{self.escape(row.id)}">'
            f"<td>{self.escape(row.file_name)}</td>"
            f'<td><time datetime="{self.escape(row.created_at.isoformat())}">{self.escape(format_created(row.created_at))}</time></td>'
            f"<td>{self.escape(row.violation_type)}</td>"
            f"<td>{self._render_status(row)}</td>"
            f"{owner_cell}"
            f"<td class=\"row-actions\">{self._render_actions(row)}</td>"
            "</tr>"
        )

    def _render_status(self, row: Submission) -> str:
        badge = (
            f'<span class="{self.classes("status-badge", "status-badge--" + row.status.value)}">'
            f"{self.escape(row.status.label)}</span>"
        )
        if not can_edit_status(self.caller, row, self.scope):
            return badge
        options = "".join(
            f'<option value="{s.value}"{" selected" if s is row.status else ""}>{self.escape(s.label)}</option>'
            for s in SubmissionStatus
        )
        attrs = self.attributes(
            class_="status-select",
            data_action="status",
            data_submission_id=row.id,
            data_scope=self.scope.value,
            aria_label=f"Status of {row.file_name}",
        )
        return f"<select {attrs}>{options}</select>"

    def _render_actions(self, row: Submission) -> str:
        view = self.attributes(
            type="button",
            class_="button button--small",
            data_action="view",
            data_submission_id=row.id,
            data_scope=self.scope.value,
        )
        parts = [f"<button {view}>View</button>"]
        if can_delete(self.caller, row):
            delete = self.attributes(
                type="button",
                class_="button button--small button--danger",
                data_action="delete",
                data_submission_id=row.id,
                data_confirm=f"Delete {row.file_name}?",
            )
            parts.append(f"<button {delete}>Delete</button>")
        return "".join(parts)
