"""
Audit Logger

DESIGN DECISION: Every upload, file access and export is logged.
This provides:
1. Complete traceability
2. Operator diagnostics for files that fail to decrypt
3. A record of attachments dropped from tax exports

The audit logger:
- Is async so flows can await it without caring how events are shipped
- Never raises into the business flow
- Supports correlation IDs to trace related events
"""

import logging
from typing import Any, Callable, Optional
from uuid import UUID, uuid4

import structlog
from pydantic import ValidationError

from taxvault.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def set_log_level(level: str) -> None:
    """Route structured logs to stderr at ``level`` and above."""
    logging.basicConfig(format="%(message)s", level=level)
    logging.getLogger().setLevel(level)


class AuditLogger:
    """
    Central audit logging service.

    Events are rendered as JSON lines through structlog.
    """

    def __init__(self, logger_name: str = "taxvault.audit"):
        self._logger = structlog.get_logger(logger_name)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be emitted.
        """
        log_dict = event.to_log_dict()

        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except (OSError, ValueError, TypeError) as e:
            # Broken handler or unserializable detail; never fail the caller
            logging.getLogger(__name__).error(
                "audit_emit_failed event_id=%s error=%s", event.event_id, e
            )
            return False

        return True

    async def _emit(self, build: Callable[..., AuditEvent], **fields: Any) -> bool:
        """Build an event and log it. A malformed event is dropped, not raised."""
        try:
            event = build(**fields)
        except ValidationError as e:
            logging.getLogger(__name__).error(
                "audit_event_invalid builder=%s errors=%d", build.__name__, e.error_count()
            )
            return False
        return await self.log(event)

    async def log_file_uploaded(
        self,
        owner_id: str,
        stored_name: str,
        mime_type: str,
        file_size: int,
        correlation_id: UUID,
    ) -> None:
        """Log a successful upload."""
        await self._emit(
            AuditEventBuilder.file_uploaded,
            owner_id=owner_id,
            stored_name=stored_name,
            mime_type=mime_type,
            file_size=file_size,
            correlation_id=correlation_id,
        )

    async def log_upload_rejected(
        self,
        owner_id: str,
        file_name: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Log an upload refused by validation."""
        await self._emit(
            AuditEventBuilder.file_upload_rejected,
            owner_id=owner_id,
            file_name=file_name,
            reason=reason,
            correlation_id=correlation_id,
        )

    async def log_file_served(
        self,
        owner_id: str,
        stored_name: str,
        disposition: str,
        encrypted: bool,
        correlation_id: UUID,
    ) -> None:
        await self._emit(
            AuditEventBuilder.file_served,
            owner_id=owner_id,
            stored_name=stored_name,
            disposition=disposition,
            encrypted=encrypted,
            correlation_id=correlation_id,
        )

    async def log_file_not_found(
        self,
        owner_id: str,
        stored_name: str,
        correlation_id: UUID,
    ) -> None:
        await self._emit(
            AuditEventBuilder.file_not_found,
            owner_id=owner_id,
            stored_name=stored_name,
            correlation_id=correlation_id,
        )

    async def log_decryption_failed(
        self,
        owner_id: str,
        stored_name: str,
        error_type: str,
        correlation_id: UUID,
    ) -> None:
        """Log a tampered, corrupt or wrongly keyed file."""
        await self._emit(
            AuditEventBuilder.file_decryption_failed,
            owner_id=owner_id,
            stored_name=stored_name,
            error_type=error_type,
            correlation_id=correlation_id,
        )

    async def log_export_started(
        self,
        owner_id: str,
        year: int,
        entry_count: int,
        correlation_id: UUID,
    ) -> None:
        await self._emit(
            AuditEventBuilder.export_started,
            owner_id=owner_id,
            year=year,
            entry_count=entry_count,
            correlation_id=correlation_id,
        )

    async def log_attachment_skipped(
        self,
        owner_id: str,
        reference: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an attachment that was left out of an export."""
        await self._emit(
            AuditEventBuilder.attachment_skipped,
            owner_id=owner_id,
            reference=reference,
            reason=reason,
            correlation_id=correlation_id,
        )

    async def log_export_completed(
        self,
        owner_id: str,
        year: int,
        attachments_included: int,
        attachments_skipped: int,
        archive_size: int,
        correlation_id: UUID,
    ) -> None:
        await self._emit(
            AuditEventBuilder.export_completed,
            owner_id=owner_id,
            year=year,
            attachments_included=attachments_included,
            attachments_skipped=attachments_skipped,
            archive_size=archive_size,
            correlation_id=correlation_id,
        )

    async def log_export_failed(
        self,
        owner_id: str,
        year: int,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self._emit(
            AuditEventBuilder.export_failed,
            owner_id=owner_id,
            year=year,
            error_message=error_message,
            correlation_id=correlation_id,
        )


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a tax export).
    Pass it through all subsequent operations.
    """
    return uuid4()
