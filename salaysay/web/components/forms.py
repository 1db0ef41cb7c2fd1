"""
Form field components used by the upload dialog.
"""

from typing import Optional, Sequence

from .base import Component


class FormField(Component):
    """Wrapper that renders label, input slot, help, and error text."""

    def __init__(
        self,
        field_id: str,
        label: str,
        *,
        required: bool = False,
        help_text: Optional[str] = None,
        error_text: Optional[str] = None,
    ) -> None:
        self.field_id = field_id
        self.label = label
        self.required = required
        self.help_text = help_text
        self.error_text = error_text

    def render(self, input_html: str) -> str:
        required_marker = '<span class="form-required" aria-hidden="true">*</span>' if self.required else ""
        help_html = (
            f'<p class="form-help" id="{self.field_id}-help">{self.escape(self.help_text)}</p>'
            if self.help_text
            else ""
        )
        error_html = (
            f'<p class="form-error" role="alert" id="{self.field_id}-error">{self.escape(self.error_text)}</p>'
            if self.error_text
            else ""
        )
        label_attrs = self.attributes(for_=self.field_id, class_="form-label")
        return (
            f'<div class="{self.classes("form-field", form_field_error=bool(self.error_text))}">'
            f"<label {label_attrs}>{self.escape(self.label)}{required_marker}</label>"
            f"{input_html}{help_html}{error_html}"
            "</div>"
        )

    def _describedby(self) -> Optional[str]:
        return f"{self.field_id}-help" if self.help_text else None


class FileUploadField(FormField):
    def render(self, accept: Optional[str] = None, *, multiple: bool = False) -> str:
        input_attrs = self.attributes(
            id=self.field_id,
            name=self.field_id,
            type="file",
            accept=accept,
            multiple=multiple,
            required=self.required,
            aria_describedby=self._describedby(),
        )
        return super().render(f"<input {input_attrs}>")


class SelectField(FormField):
    def render(self, options: Sequence[str], *, placeholder: str = "", selected: Optional[str] = None) -> str:
        select_attrs = self.attributes(
            id=self.field_id,
            name=self.field_id,
            required=self.required,
            aria_describedby=self._describedby(),
        )
        opts = []
        if placeholder:
            opts.append(f'<option value="">{self.escape(placeholder)}</option>')
        for value in options:
            sel = " selected" if value == selected else ""
            opts.append(f'<option value="{self.escape(value)}"{sel}>{self.escape(value)}</option>')
        return super().render(f"<select {select_attrs}>{''.join(opts)}</select>")
