"""Services package."""

from taxvault.services.export import (
    AttachmentUnavailableError,
    ExportArchive,
    ExportArchiver,
)
from taxvault.services.ledger import InMemoryLedgerSource, LedgerSourceInterface
from taxvault.services.reports import TaxReportGenerator, generate_tax_report
from taxvault.services.storage import (
    BlobStoreInterface,
    FileTooLargeError,
    InvalidFileNameError,
    LocalBlobStore,
    NotFoundError,
    StorageError,
    UnsupportedFileTypeError,
)

__all__ = [
    # Export
    "AttachmentUnavailableError",
    "ExportArchive",
    "ExportArchiver",
    # Ledger
    "InMemoryLedgerSource",
    "LedgerSourceInterface",
    # Reports
    "TaxReportGenerator",
    "generate_tax_report",
    # Storage
    "BlobStoreInterface",
    "FileTooLargeError",
    "InvalidFileNameError",
    "LocalBlobStore",
    "NotFoundError",
    "StorageError",
    "UnsupportedFileTypeError",
]
