# Salaysay component system
# Pure Python components for server-rendered HTML

from .base import Component
from .layout import Layout
from .notice import NoticeBanner
from .forms import FormField, FileUploadField, SelectField
from .submissions_table import SubmissionsTable
from .upload_dialog import UploadDialog, UploadTaskList
from .pages import AccessDeniedPage, DashboardPage, SignedOutPage

__all__ = [
    "Component",
    "Layout",
    "NoticeBanner",
    "FormField",
    "FileUploadField",
    "SelectField",
    "SubmissionsTable",
    "UploadDialog",
    "UploadTaskList",
    "AccessDeniedPage",
    "DashboardPage",
    "SignedOutPage",
]
