"""
User-facing notices (title + description) surfaced by the dashboard.

Every failure the user can see maps to exactly one Notice builder here so the
wording stays consistent between the JSON API and the rendered pages.
"""
from __future__ import annotations

from dataclasses import dataclass

from salaysay.errors import BackendErrorKind
from salaysay.storage.config import format_megabytes


@dataclass(frozen=True)
class Notice:
    title: str
    description: str
    variant: str = "destructive"

    def to_dict(self) -> dict:
        return {"title": self.title, "description": self.description, "variant": self.variant}


# --- Validation ---------------------------------------------------------------

def wrong_type() -> Notice:
    return Notice("Invalid file type", "Please upload only PDF files.")


def too_large(max_bytes: int) -> Notice:
    return Notice("File too large", f"Maximum file size is {format_megabytes(max_bytes)}MB.")


def empty_batch() -> Notice:
    return Notice("No files selected", "Please choose at least one PDF file.")


def too_many_files(max_files: int) -> Notice:
    return Notice("Too many files", f"Please select at most {max_files} files at a time.")


def missing_category() -> Notice:
    return Notice("Missing information", "Please select a violation type.")


def missing_identity() -> Notice:
    return Notice("Authentication error", "User ID not found. Please log in again.")


# --- Remote failures ----------------------------------------------------------

def upload_failed(kind: BackendErrorKind) -> Notice:
    """Choose the upload failure text by error kind (exhaustive)."""
    match kind:
        case BackendErrorKind.STORAGE_MISCONFIGURED:
            description = "Storage bucket not found. Please contact support."
        case BackendErrorKind.PERMISSION_DENIED:
            description = "Permission denied. Please check your authentication status."
        case BackendErrorKind.INTEGRITY:
            description = "Database relation error. User profile may not exist."
        case BackendErrorKind.UNAVAILABLE:
            description = "There was an error uploading your file. Please try again."
    return Notice("Upload failed", description)


def uploads_busy() -> Notice:
    return Notice("Upload unavailable", "Too many uploads are in progress. Please try again in a few minutes.")


def upload_succeeded(count: int) -> Notice:
    noun = "file" if count == 1 else "files"
    return Notice("Upload complete", f"{count} {noun} uploaded successfully.", variant="default")


def load_failed() -> Notice:
    return Notice("Failed to load files", "There was an error loading your files. Please try again.")


def view_failed() -> Notice:
    return Notice("Failed to view file", "There was an error opening the file. Please try again.")


def status_updated(status_label: str) -> Notice:
    return Notice("Status updated", f"Document status changed to {status_label}.", variant="default")


def status_update_failed() -> Notice:
    return Notice("Failed to update status", "There was an error updating the document status.")


def delete_failed() -> Notice:
    return Notice("Failed to delete file", "There was an error deleting the file. Please try again.")


def deleted() -> Notice:
    return Notice("File deleted", "The document was removed.", variant="default")


def access_denied(domain: str) -> Notice:
    return Notice("Access Denied", f"Only @{domain} email addresses are allowed.")
