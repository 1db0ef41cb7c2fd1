"""
Upload dialog: file picker, violation category and the per-file task list.

The dialog posts the selection to `/api/uploads` (gate), then submits the
batch with the chosen category. The task list is re-rendered client-side from
the batch JSON; `UploadTaskList` gives the server-side initial markup.
"""

from typing import Iterable, Sequence

from salaysay.storage.config import format_megabytes
from salaysay.storage.upload_policy import ALLOWED_FILE_MIME
from salaysay.submissions.models import UploadStatus, UploadTask

from .base import Component
from .forms import FileUploadField, SelectField


_STATUS_TEXT = {
    UploadStatus.PENDING: "Waiting",
    UploadStatus.UPLOADING: "Uploading",
    UploadStatus.COMPLETED: "Uploaded",
    UploadStatus.ERROR: "Failed",
}


class UploadTaskList(Component):
    def __init__(self, tasks: Iterable[UploadTask], *, batch_id: str = ""):
        self.tasks = list(tasks)
        self.batch_id = batch_id

    def render(self) -> str:
        items = "".join(self._render_item(t) for t in self.tasks)
        return f'<ul class="upload-tasks" id="upload-tasks" data-batch-id="{self.escape(self.batch_id)}">{items}</ul>'

    def _render_item(self, task: UploadTask) -> str:
        error_html = ""
        actions = ""
        if task.status is UploadStatus.ERROR and task.error is not None:
            error_html = f'<p class="upload-task__error">{self.escape(task.error.description)}</p>'
            actions = self._button("Retry", "retry", task)
        if task.status in (UploadStatus.PENDING, UploadStatus.ERROR):
            actions += self._button("Remove", "remove", task)
        return (
            f'<li class="{self.classes("upload-task", "upload-task--" + task.status.value)}" data-task-id="{self.escape(task.id)}">'
            f'<span class="upload-task__name">{self.escape(task.file_name)}</span>'
            f'<span class="upload-task__status">{_STATUS_TEXT[task.status]}</span>'
            f"{error_html}{actions}"
            "</li>"
        )

    def _button(self, label: str, action: str, task: UploadTask) -> str:
        attrs = self.attributes(type="button", class_="button button--small", data_action=action, data_task_id=task.id)
        return f"<button {attrs}>{label}</button>"


class UploadDialog(Component):
    def __init__(self, violation_types: Sequence[str], *, max_bytes: int):
        self.violation_types = violation_types
        self.max_bytes = max_bytes

    def render(self) -> str:
        accept = ",".join(sorted(ALLOWED_FILE_MIME))
        files_field = FileUploadField(
            "files",
            "PDF documents",
            required=True,
            help_text=f"PDF only, up to {format_megabytes(self.max_bytes)}MB per file.",
        ).render(accept=accept, multiple=True)
        category_field = SelectField("violation_type", "Violation type", required=True).render(
            self.violation_types, placeholder="Select a violation type"
        )
        return f"""
<dialog id="upload-dialog" class="upload-dialog" aria-labelledby="upload-dialog-title">
    <form id="upload-form" method="dialog" data-max-bytes="{self.max_bytes}">
        <h2 id="upload-dialog-title">Upload incident reports</h2>
        {files_field}
        {category_field}
        {UploadTaskList([]).render()}
        <div class="upload-dialog__actions">
            <button type="button" class="button button--ghost" data-action="close-dialog">Close</button>
            <button type="submit" class="button button--primary">Upload</button>
        </div>
    </form>
</dialog>"""
