"""
Main Orchestrator for TaxVault

This module ties the components together and defines the boundary
operations the web layer calls:

1. File flows: upload, fetch (inline), download (attachment), list
2. Tax export: ledger entries → PDF report → ZIP with decrypted attachments

DESIGN DECISION: The orchestrator enforces the error boundaries:
- Validation errors (size, type) reach the caller with a clear reason
- Decryption problems are logged with the stored name, but the caller only
  sees a generic failure, never cipher details
- A missing attachment never fails an export; a failed report does

Authentication is not handled here. Every operation receives the already
authenticated owner id.
"""

import asyncio
from datetime import date
from typing import Optional
from urllib.parse import quote
from uuid import UUID

from pydantic import BaseModel, Field

from taxvault.audit import AuditLogger, create_correlation_id, set_log_level
from taxvault.config import Settings, get_settings
from taxvault.crypto import CryptoError, EncryptionEngine
from taxvault.models.files import (
    ResolvedFile,
    StoredFileRecord,
    UploadResult,
    strip_control_chars,
)
from taxvault.services.export import ExportArchiver
from taxvault.services.ledger import InMemoryLedgerSource, LedgerSourceInterface
from taxvault.services.reports import TaxReportGenerator
from taxvault.services.storage import (
    BlobStoreInterface,
    FileTooLargeError,
    InvalidFileNameError,
    LocalBlobStore,
    NotFoundError,
    UnsupportedFileTypeError,
)


EXPORT_CONTENT_TYPE = "application/zip"
NO_CACHE_HEADERS = {
    "Cache-Control": "private, no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class FileAccessError(Exception):
    """A stored file exists but could not be read. Deliberately vague."""
    pass


class ExportError(Exception):
    """The tax export could not be produced."""
    pass


def export_filename(year: int) -> str:
    return f"Einkommenssteuer_{year}_Komplett.zip"


def content_disposition(disposition: str, filename: str) -> str:
    """Header value with an ASCII fallback and the RFC 5987 UTF-8 name."""
    filename = strip_control_chars(filename)
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "")
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


class FileResponse(BaseModel):
    """Decrypted file ready to be sent to the browser."""

    content: bytes
    content_type: str
    filename: str
    disposition: str = Field(
        default="inline",
        pattern="^(inline|attachment)$",
    )

    def headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": self.content_type,
            "Content-Disposition": content_disposition(self.disposition, self.filename),
            "Content-Length": str(len(self.content)),
        }
        if self.disposition == "attachment":
            headers.update(NO_CACHE_HEADERS)
        return headers


class ExportResult(BaseModel):
    """The tax package for one year. Not persisted."""

    year: int
    content: bytes
    filename: str
    content_type: str = EXPORT_CONTENT_TYPE
    entry_count: int = Field(ge=0)
    attachments_included: int = Field(ge=0)
    attachments_skipped: list[str] = Field(default_factory=list)

    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": self.content_type,
            "Content-Disposition": content_disposition("attachment", self.filename),
            "Content-Length": str(len(self.content)),
        }


class FileFlow:
    """
    Upload, serve and list a user's attachments.

    Fetch, download and export all read through BlobStore.resolve, so the
    encrypted/legacy lookup lives in one place.
    """

    def __init__(
        self,
        blob_store: BlobStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._blob_store = blob_store
        self._audit_logger = audit_logger

    async def upload_file(
        self,
        owner_id: str,
        file_name: str,
        mime_type: str,
        content: bytes,
        correlation_id: Optional[UUID] = None,
    ) -> UploadResult:
        """
        Encrypt and store an uploaded file.

        Raises:
            FileTooLargeError, UnsupportedFileTypeError, InvalidFileNameError:
                The upload was rejected; the message is safe to show
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            result = await self._blob_store.save(owner_id, file_name, mime_type, content)
        except (FileTooLargeError, UnsupportedFileTypeError, InvalidFileNameError) as e:
            if self._audit_logger:
                await self._audit_logger.log_upload_rejected(
                    owner_id=owner_id,
                    file_name=file_name,
                    reason=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_file_uploaded(
                owner_id=owner_id,
                stored_name=result.stored_name,
                mime_type=result.file_type,
                file_size=len(content),
                correlation_id=correlation_id,
            )

        return result

    async def _resolve(
        self,
        owner_id: str,
        stored_name: str,
        correlation_id: UUID,
    ) -> ResolvedFile:
        try:
            return await self._blob_store.resolve(owner_id, stored_name)
        except (NotFoundError, InvalidFileNameError):
            if self._audit_logger:
                await self._audit_logger.log_file_not_found(
                    owner_id=owner_id,
                    stored_name=stored_name,
                    correlation_id=correlation_id,
                )
            raise
        except CryptoError as e:
            if self._audit_logger:
                await self._audit_logger.log_decryption_failed(
                    owner_id=owner_id,
                    stored_name=stored_name,
                    error_type=type(e).__name__,
                    correlation_id=correlation_id,
                )
            raise FileAccessError("File could not be read") from None

    async def _serve(
        self,
        owner_id: str,
        stored_name: str,
        disposition: str,
        correlation_id: Optional[UUID],
    ) -> FileResponse:
        correlation_id = correlation_id or create_correlation_id()
        resolved = await self._resolve(owner_id, stored_name, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_file_served(
                owner_id=owner_id,
                stored_name=resolved.stored_name,
                disposition=disposition,
                encrypted=resolved.encrypted,
                correlation_id=correlation_id,
            )

        return FileResponse(
            content=resolved.content,
            content_type=resolved.mime_type,
            filename=resolved.original_name,
            disposition=disposition,
        )

    async def fetch_file(
        self,
        owner_id: str,
        stored_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> FileResponse:
        """
        Decrypted file for inline viewing.

        Raises:
            NotFoundError: No such file (maps to 404)
            InvalidFileNameError: Name is not a plain filename (maps to 404)
            FileAccessError: File exists but failed to decrypt
        """
        return await self._serve(owner_id, stored_name, "inline", correlation_id)

    async def download_file(
        self,
        owner_id: str,
        stored_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> FileResponse:
        """Same as fetch_file, but forces a download and disables caching."""
        return await self._serve(owner_id, stored_name, "attachment", correlation_id)

    async def list_files(self, owner_id: str) -> list[StoredFileRecord]:
        return await self._blob_store.list_files(owner_id)


class TaxExportFlow:
    """
    Produces the yearly tax package.

    Flow:
    1. Fetch the owner's ledger entries for the calendar year
    2. Render the PDF overview
    3. Bundle it with every attachment that can be resolved
    """

    def __init__(
        self,
        ledger_source: LedgerSourceInterface,
        blob_store: BlobStoreInterface,
        report_generator: Optional[TaxReportGenerator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger_source = ledger_source
        self._report_generator = report_generator or TaxReportGenerator()
        self._archiver = ExportArchiver(blob_store, audit_logger)
        self._audit_logger = audit_logger

    async def export_tax_year(
        self,
        owner_id: str,
        year: int,
        correlation_id: Optional[UUID] = None,
    ) -> ExportResult:
        """
        Build the export archive for ``year``.

        Raises:
            ValueError: If year is outside the supported calendar range
            ExportError: If the report could not be generated
        """
        if not 1 <= year < 9999:
            raise ValueError(f"Invalid tax year: {year}")

        correlation_id = correlation_id or create_correlation_id()

        entries = await self._ledger_source.list_entries(
            owner_id,
            date_from=date(year, 1, 1),
            date_to=date(year + 1, 1, 1),
        )

        if self._audit_logger:
            await self._audit_logger.log_export_started(
                owner_id=owner_id,
                year=year,
                entry_count=len(entries),
                correlation_id=correlation_id,
            )

        try:
            report = await asyncio.to_thread(
                self._report_generator.generate, entries, year, owner_id
            )
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_export_failed(
                    owner_id=owner_id,
                    year=year,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise ExportError("Tax report could not be generated") from e

        try:
            archive = await self._archiver.build_export(
                entries, owner_id, report, correlation_id=correlation_id
            )
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_export_failed(
                    owner_id=owner_id,
                    year=year,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_export_completed(
                owner_id=owner_id,
                year=year,
                attachments_included=len(archive.attachment_names),
                attachments_skipped=len(archive.skipped_references),
                archive_size=archive.size,
                correlation_id=correlation_id,
            )

        return ExportResult(
            year=year,
            content=archive.content,
            filename=export_filename(year),
            entry_count=len(entries),
            attachments_included=len(archive.attachment_names),
            attachments_skipped=archive.skipped_references,
        )


def create_app_components(
    ledger_source: Optional[LedgerSourceInterface] = None,
    settings: Optional[Settings] = None,
) -> tuple[FileFlow, TaxExportFlow]:
    """
    Factory function to create all application components.

    This is the only place that reads configuration. The encryption password
    and limits are handed to the engine and blob store from here.

    Args:
        ledger_source: Access to the finance backend's entries.
                       Defaults to an empty in-memory source.
        settings: Settings to use instead of the cached environment settings

    Returns:
        (file_flow, tax_export_flow)
    """
    settings = settings or get_settings()
    encryption = settings.encryption
    storage = settings.storage

    set_log_level(settings.app.log_level)

    engine = EncryptionEngine(
        encryption.password.get_secret_value(),
        scrypt_n=encryption.scrypt_n,
        scrypt_r=encryption.scrypt_r,
        scrypt_p=encryption.scrypt_p,
    )
    blob_store = LocalBlobStore(
        root_dir=storage.upload_dir,
        engine=engine,
        max_file_size_bytes=storage.max_upload_size_bytes,
        allowed_mime_types=storage.allowed_mime_types_set,
    )
    audit_logger = AuditLogger()

    file_flow = FileFlow(blob_store, audit_logger)
    export_flow = TaxExportFlow(
        ledger_source=ledger_source or InMemoryLedgerSource(),
        blob_store=blob_store,
        audit_logger=audit_logger,
    )

    return file_flow, export_flow
