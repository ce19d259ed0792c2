"""
Data Models Package

This package contains all Pydantic models used by TaxVault.
"""

from taxvault.models.files import (
    ResolvedFile,
    StoredFileMetadata,
    StoredFileRecord,
    UploadResult,
    guess_mime_type,
    original_name_from_stored,
)
from taxvault.models.ledger import (
    EntryType,
    LedgerEntry,
    ReportSummary,
)
from taxvault.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # File models
    "ResolvedFile",
    "StoredFileMetadata",
    "StoredFileRecord",
    "UploadResult",
    "guess_mime_type",
    "original_name_from_stored",
    # Ledger models
    "EntryType",
    "LedgerEntry",
    "ReportSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
