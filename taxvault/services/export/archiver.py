"""
Tax Export Archiver

Bundles the generated tax report and the decrypted attachments of all ledger
entries into one ZIP archive:

    Einkommenssteuer_Übersicht.pdf
    attachments/income_1_Website relaunch.pdf
    attachments/expense_2_Office chairs.jpg
    ...

DESIGN DECISION: A missing or undecryptable receipt must not block the tax
export. Each attachment is resolved in its own task; failures come back as
values, are logged, and the archive is written with whatever resolved. Only
a failure to write the archive itself is fatal.

Attachment tasks run concurrently. The archive has a single writer that runs
after every task has settled, so appends never interleave.
"""

import asyncio
import io
import re
import zipfile
from pathlib import PurePosixPath
from typing import Optional, Sequence
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from taxvault.audit import AuditLogger
from taxvault.crypto import CryptoError
from taxvault.models.ledger import LedgerEntry
from taxvault.services.storage import BlobStoreInterface, StorageError


REPORT_ENTRY_NAME = "Einkommenssteuer_Übersicht.pdf"
ATTACHMENTS_DIR = "attachments"
MAX_DESCRIPTION_LENGTH = 50

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9\s]")
_WHITESPACE = re.compile(r"\s")

logger = structlog.get_logger(__name__)


class AttachmentUnavailableError(Exception):
    """An attachment could not be located or decrypted. Never fatal."""

    def __init__(self, reference: str, reason: str):
        self.reference = reference
        self.reason = reason
        super().__init__(f"Attachment {reference} unavailable: {reason}")


class AttachmentOutcome(BaseModel):
    """Result of resolving one entry's attachment."""

    ordinal: int = Field(ge=1)
    reference: str
    archive_name: Optional[str] = None
    content: Optional[bytes] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.content is not None


class ExportArchive(BaseModel):
    """A finished archive and what went into it."""

    content: bytes
    attachment_names: list[str] = Field(default_factory=list)
    skipped_references: list[str] = Field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.content)


def sanitize_description(description: str) -> str:
    """Keep ASCII letters, digits and spaces; at most 50 characters."""
    cleaned = _WHITESPACE.sub(" ", _UNSAFE_CHARS.sub("", description))
    return cleaned[:MAX_DESCRIPTION_LENGTH]


def attachment_archive_name(entry: LedgerEntry, ordinal: int, original_name: str) -> str:
    """attachments/{type}_{ordinal}_{description}{ext}"""
    extension = PurePosixPath(original_name).suffix
    description = sanitize_description(entry.description)
    return f"{ATTACHMENTS_DIR}/{entry.entry_type.value}_{ordinal}_{description}{extension}"


def write_archive(report_document: bytes, outcomes: Sequence[AttachmentOutcome]) -> bytes:
    """Single writer: the report first, then attachments in ordinal order."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(
        buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9
    ) as archive:
        archive.writestr(REPORT_ENTRY_NAME, report_document)
        for outcome in outcomes:
            archive.writestr(outcome.archive_name, outcome.content)
    return buffer.getvalue()


class ExportArchiver:
    """
    Assembles the tax export archive.

    The blob store carries the encryption engine, so no password is passed
    around here.
    """

    def __init__(
        self,
        blob_store: BlobStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._blob_store = blob_store
        self._audit_logger = audit_logger

    async def _fetch_attachment(
        self,
        entry: LedgerEntry,
        ordinal: int,
        owner_id: str,
    ) -> AttachmentOutcome:
        """
        Resolve one attachment.

        Raises:
            AttachmentUnavailableError: If it cannot be found or decrypted
        """
        reference = entry.attachment_url or ""
        try:
            resolved = await self._blob_store.resolve(owner_id, reference)
        except (StorageError, CryptoError, OSError) as e:
            raise AttachmentUnavailableError(reference, type(e).__name__) from e

        return AttachmentOutcome(
            ordinal=ordinal,
            reference=reference,
            archive_name=attachment_archive_name(entry, ordinal, resolved.original_name),
            content=resolved.content,
        )

    async def _collect(
        self,
        entry: LedgerEntry,
        ordinal: int,
        owner_id: str,
        correlation_id: Optional[UUID],
    ) -> AttachmentOutcome:
        """Task body; failures are returned, not raised."""
        try:
            return await self._fetch_attachment(entry, ordinal, owner_id)
        except AttachmentUnavailableError as e:
            logger.warning(
                "attachment_skipped",
                owner_id=owner_id,
                entry_id=entry.id,
                reference=e.reference,
                reason=e.reason,
            )
            if self._audit_logger:
                await self._audit_logger.log_attachment_skipped(
                    owner_id=owner_id,
                    reference=e.reference,
                    reason=e.reason,
                    correlation_id=correlation_id,
                )
            return AttachmentOutcome(
                ordinal=ordinal,
                reference=e.reference,
                error=e.reason,
            )

    async def build_export(
        self,
        entries: Sequence[LedgerEntry],
        owner_id: str,
        report_document: bytes,
        correlation_id: Optional[UUID] = None,
    ) -> ExportArchive:
        """
        Build the archive for ``entries``.

        Entries with an attachment are numbered 1..n in the order supplied.
        """
        with_attachments = [entry for entry in entries if entry.has_attachment]

        outcomes = await asyncio.gather(*(
            self._collect(entry, ordinal, owner_id, correlation_id)
            for ordinal, entry in enumerate(with_attachments, start=1)
        ))

        included = [outcome for outcome in outcomes if outcome.ok]
        skipped = [outcome.reference for outcome in outcomes if not outcome.ok]

        # Write errors here are fatal for the export
        content = await asyncio.to_thread(write_archive, report_document, included)

        return ExportArchive(
            content=content,
            attachment_names=[outcome.archive_name for outcome in included],
            skipped_references=skipped,
        )
