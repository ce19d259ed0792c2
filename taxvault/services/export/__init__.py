"""Tax export package."""

from taxvault.services.export.archiver import (
    REPORT_ENTRY_NAME,
    AttachmentOutcome,
    AttachmentUnavailableError,
    ExportArchive,
    ExportArchiver,
    attachment_archive_name,
    sanitize_description,
)

__all__ = [
    "REPORT_ENTRY_NAME",
    "AttachmentOutcome",
    "AttachmentUnavailableError",
    "ExportArchive",
    "ExportArchiver",
    "attachment_archive_name",
    "sanitize_description",
]
