"""
Stored File Models

These models describe what lives in the blob store:
1. The sidecar metadata record written next to each encrypted blob
2. Listing entries for a user's files
3. The result of resolving a stored name back to plaintext

DESIGN DECISION: Sidecar metadata is best-effort. It is modelled as an
Optional companion value on records and resolved files, and callers check
for its presence instead of catching exceptions. When it is missing, name
and type are derived from the stored filename.
"""

import re
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


ENCRYPTED_SUFFIX = ".encrypted"
METADATA_SUFFIX = ".meta"
DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES_BY_EXTENSION = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

# Stored names start with the upload time in unix milliseconds
_TIMESTAMP_PREFIX = re.compile(r"^(\d+)-")

# C0 and C1 control characters, including CR and LF
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")


def strip_control_chars(text: str) -> str:
    return _CONTROL_CHARS.sub("", text)


def strip_encrypted_suffix(stored_name: str) -> str:
    if stored_name.endswith(ENCRYPTED_SUFFIX):
        return stored_name[:-len(ENCRYPTED_SUFFIX)]
    return stored_name


def original_name_from_stored(stored_name: str) -> str:
    """
    Best guess at the uploaded filename from a stored name.

    "1718000000000-invoice.pdf.encrypted" -> "invoice.pdf"
    """
    name = strip_encrypted_suffix(stored_name)
    return _TIMESTAMP_PREFIX.sub("", name, count=1) or name


def upload_millis_from_stored(stored_name: str) -> Optional[int]:
    match = _TIMESTAMP_PREFIX.match(stored_name)
    return int(match.group(1)) if match else None


def guess_mime_type(file_name: str) -> str:
    """Sniff a MIME type from the filename extension."""
    lowered = strip_encrypted_suffix(file_name).lower()
    for extension, mime_type in MIME_TYPES_BY_EXTENSION.items():
        if lowered.endswith(extension):
            return mime_type
    return DEFAULT_MIME_TYPE


class StoredFileMetadata(BaseModel):
    """
    Sidecar metadata written as JSON next to each encrypted blob.

    The JSON keys are camelCase; they must stay compatible with sidecars
    written by the previous backend.
    """
    model_config = ConfigDict(populate_by_name=True)

    original_name: str = Field(
        ...,
        alias="originalName",
        min_length=1,
        description="Filename as uploaded by the user"
    )
    file_type: str = Field(
        ...,
        alias="fileType",
        description="Declared MIME type"
    )
    original_size: int = Field(
        ...,
        alias="originalSize",
        ge=0,
        description="Plaintext size in bytes"
    )
    encrypted_size: int = Field(
        ...,
        alias="encryptedSize",
        ge=0,
        description="Envelope size in bytes"
    )
    upload_date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias="uploadDate",
        description="When the file was uploaded"
    )

    def to_json_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True, indent=2).encode("utf-8")


class StoredFileRecord(BaseModel):
    """One encrypted artifact in an owner's space, as returned by listings."""

    owner_id: str
    stored_name: str
    file_url: str = Field(
        ...,
        description="Logical reference: /files/{owner_id}/{stored_name}"
    )
    encrypted_size_bytes: int = Field(ge=0)
    metadata: Optional[StoredFileMetadata] = None

    @property
    def original_name(self) -> str:
        if self.metadata is not None:
            return self.metadata.original_name
        return original_name_from_stored(self.stored_name)

    @property
    def mime_type(self) -> str:
        if self.metadata is not None:
            return self.metadata.file_type
        return guess_mime_type(self.stored_name)


class ResolvedFile(BaseModel):
    """Plaintext content of a stored file plus what we know about it."""

    stored_name: str = Field(
        ...,
        description="Physical name that was read (may carry .encrypted)"
    )
    content: bytes
    original_name: str
    mime_type: str
    encrypted: bool
    metadata: Optional[StoredFileMetadata] = None

    @property
    def size(self) -> int:
        return len(self.content)


class UploadResult(BaseModel):
    """What the upload boundary hands back to the caller."""

    stored_name: str
    file_url: str
    file_name: str = Field(
        ...,
        description="Original filename"
    )
    file_type: str = Field(
        ...,
        description="Declared MIME type"
    )
