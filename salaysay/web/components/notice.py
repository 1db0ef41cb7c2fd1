"""
Inline notice banner (toast) for server-rendered pages.
"""

from typing import Optional

from salaysay.submissions.notices import Notice

from .base import Component


class NoticeBanner(Component):
    def __init__(self, notice: Optional[Notice]):
        self.notice = notice

    def render(self) -> str:
        if self.notice is None:
            return ""
        css = self.classes("notice", notice_destructive=self.notice.variant == "destructive")
        role = "alert" if self.notice.variant == "destructive" else "status"
        return (
            f'<div class="{css}" role="{role}">'
            f'<strong class="notice__title">{self.escape(self.notice.title)}</strong>'
            f'<p class="notice__description">{self.escape(self.notice.description)}</p>'
            "</div>"
        )
