"""Use case layer for the submissions context.

Re-export common use cases for convenient imports in tests.
"""

from .uploads import (
    AcceptFilesInput,
    AcceptFilesUseCase,
    CandidateFile,
    SubmitBatchInput,
    SubmitBatchUseCase,
    UploadRejected,
    UploadTaskInput,
    UploadTaskUseCase,
)
from .listing import ListSubmissionsInput, ListSubmissionsUseCase
from .review import (
    DeleteSubmissionInput,
    DeleteSubmissionUseCase,
    UpdateStatusInput,
    UpdateStatusUseCase,
    ViewUrlInput,
    ViewUrlUseCase,
)
from .sorting import SortDirection, SortField, SortState, sort_submissions

__all__ = [
    "AcceptFilesInput",
    "AcceptFilesUseCase",
    "CandidateFile",
    "SubmitBatchInput",
    "SubmitBatchUseCase",
    "UploadRejected",
    "UploadTaskInput",
    "UploadTaskUseCase",
    "ListSubmissionsInput",
    "ListSubmissionsUseCase",
    "DeleteSubmissionInput",
    "DeleteSubmissionUseCase",
    "UpdateStatusInput",
    "UpdateStatusUseCase",
    "ViewUrlInput",
    "ViewUrlUseCase",
    "SortDirection",
    "SortField",
    "SortState",
    "sort_submissions",
]
