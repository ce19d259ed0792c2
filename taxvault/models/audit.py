"""
Audit Models for TaxVault

Every access to a stored file and every export is logged for audit purposes.
This provides:
1. Traceability of who uploaded, viewed and exported which documents
2. Operator diagnostics when a file fails to decrypt
3. A record of attachments that were left out of a tax export

DESIGN DECISION: Audit events never carry file contents, key material or
cipher internals. Stored names and sizes are enough to diagnose problems.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator


MAX_DESCRIPTION_LENGTH = 500


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Uploads
    FILE_UPLOADED = "file_uploaded"
    FILE_UPLOAD_REJECTED = "file_upload_rejected"

    # Serving
    FILE_SERVED = "file_served"
    FILE_NOT_FOUND = "file_not_found"
    FILE_DECRYPTION_FAILED = "file_decryption_failed"

    # Tax export
    EXPORT_STARTED = "export_started"
    ATTACHMENT_SKIPPED = "attachment_skipped"
    EXPORT_COMPLETED = "export_completed"
    EXPORT_FAILED = "export_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who and what
    owner_id: Optional[str] = Field(
        default=None,
        description="User the affected files or entries belong to"
    )
    stored_name: Optional[str] = Field(
        default=None,
        description="Stored file the event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one export)"
    )

    description: str = Field(
        ...,
        max_length=MAX_DESCRIPTION_LENGTH,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    @field_validator('description', mode='before')
    @classmethod
    def clip_description(cls, v: Any) -> Any:
        """Descriptions embed file names and references; cut them to fit."""
        if isinstance(v, str) and len(v) > MAX_DESCRIPTION_LENGTH:
            return v[:MAX_DESCRIPTION_LENGTH - 3] + "..."
        return v

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "stored_name": self.stored_name,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.file_uploaded(owner_id, stored_name, ...)
        event = AuditEventBuilder.attachment_skipped(owner_id, reference, ...)
    """

    @staticmethod
    def file_uploaded(
        owner_id: str,
        stored_name: str,
        mime_type: str,
        file_size: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FILE_UPLOADED,
            owner_id=owner_id,
            stored_name=stored_name,
            correlation_id=correlation_id,
            description=f"File uploaded and encrypted: {stored_name}",
            details={
                "mime_type": mime_type,
                "file_size_bytes": file_size,
            },
            is_user_action=True,
        )

    @staticmethod
    def file_upload_rejected(
        owner_id: str,
        file_name: str,
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FILE_UPLOAD_REJECTED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Upload rejected: {file_name}",
            error_message=reason,
            details={
                "file_name": file_name,
            },
            is_user_action=True,
        )

    @staticmethod
    def file_served(
        owner_id: str,
        stored_name: str,
        disposition: str,
        encrypted: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FILE_SERVED,
            owner_id=owner_id,
            stored_name=stored_name,
            correlation_id=correlation_id,
            description=f"File served ({disposition}): {stored_name}",
            details={
                "disposition": disposition,
                "encrypted": encrypted,
            },
            is_user_action=True,
        )

    @staticmethod
    def file_not_found(
        owner_id: str,
        stored_name: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FILE_NOT_FOUND,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            stored_name=stored_name,
            correlation_id=correlation_id,
            description=f"File not found: {stored_name}",
        )

    @staticmethod
    def file_decryption_failed(
        owner_id: str,
        stored_name: str,
        error_type: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FILE_DECRYPTION_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            stored_name=stored_name,
            correlation_id=correlation_id,
            description=f"Stored file could not be decrypted: {stored_name}",
            error_code=error_type,
        )

    @staticmethod
    def export_started(
        owner_id: str,
        year: int,
        entry_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_STARTED,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Tax export started for {year}",
            details={
                "year": year,
                "entry_count": entry_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def attachment_skipped(
        owner_id: str,
        reference: str,
        reason: str,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ATTACHMENT_SKIPPED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Attachment left out of export: {reference}",
            error_message=reason,
            details={
                "reference": reference,
            },
        )

    @staticmethod
    def export_completed(
        owner_id: str,
        year: int,
        attachments_included: int,
        attachments_skipped: int,
        archive_size: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_COMPLETED,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=(
                f"Tax export for {year} completed with "
                f"{attachments_included} attachments"
            ),
            details={
                "year": year,
                "attachments_included": attachments_included,
                "attachments_skipped": attachments_skipped,
                "archive_size_bytes": archive_size,
            },
        )

    @staticmethod
    def export_failed(
        owner_id: str,
        year: int,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Tax export for {year} failed",
            error_message=error_message,
            details={
                "year": year,
            },
        )
