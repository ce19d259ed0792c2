"""
Storage Services Package

Provides the abstract blob store interface and the local filesystem
implementation used for encrypted attachments.
"""

from taxvault.services.storage.interface import (
    BlobStoreInterface,
    FileTooLargeError,
    InvalidFileNameError,
    NotFoundError,
    StorageError,
    UnsupportedFileTypeError,
)
from taxvault.services.storage.local_blob_store import (
    ALLOWED_MIME_TYPES,
    MAX_FILE_SIZE,
    LocalBlobStore,
)

__all__ = [
    # Interface
    "BlobStoreInterface",
    # Exceptions
    "FileTooLargeError",
    "InvalidFileNameError",
    "NotFoundError",
    "StorageError",
    "UnsupportedFileTypeError",
    # Local implementation
    "ALLOWED_MIME_TYPES",
    "MAX_FILE_SIZE",
    "LocalBlobStore",
]
