"""
Tests for TaxVault models

Test strategy:
1. Unit tests for individual models and their validators
2. Flow tests live next to the services they exercise
3. No network access; files only under pytest's tmp_path
"""

import json
import pytest
from datetime import date, datetime, timezone
from uuid import uuid4

from pydantic import ValidationError

from taxvault.audit import AuditLogger
from taxvault.models.audit import (
    MAX_DESCRIPTION_LENGTH,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from taxvault.models.files import (
    DEFAULT_MIME_TYPE,
    StoredFileMetadata,
    StoredFileRecord,
    guess_mime_type,
    original_name_from_stored,
    strip_encrypted_suffix,
    upload_millis_from_stored,
)
from taxvault.models.ledger import EntryType, LedgerEntry, ReportSummary


class TestLedgerModels:
    """Tests for ledger entry models."""

    def test_ledger_entry_creation(self):
        """Test LedgerEntry model creation."""
        entry = LedgerEntry(
            id="42",
            owner_id="user-1",
            entry_type=EntryType.EXPENSE,
            invoice_date=date(2024, 5, 1),
            counterparty="Stadtwerke",
            description="Strom",
            amount=8950,
        )
        assert entry.entry_type == EntryType.EXPENSE
        assert entry.amount == 8950
        assert entry.has_attachment is False

    def test_ledger_entry_strips_whitespace(self):
        """Test that whitespace is stripped from text fields."""
        entry = LedgerEntry(
            id="1",
            owner_id="user-1",
            entry_type="income",
            invoice_date=date(2024, 1, 2),
            counterparty="  ACME  ",
            amount=1,
        )
        assert entry.counterparty == "ACME"
        assert entry.entry_type == EntryType.INCOME

    def test_ledger_entry_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValidationError):
            LedgerEntry(
                id="1",
                owner_id="user-1",
                entry_type=EntryType.INCOME,
                invoice_date=date(2024, 1, 2),
                amount=-1,
            )

    def test_empty_attachment_url_is_no_attachment(self):
        entry = LedgerEntry(
            id="1",
            owner_id="user-1",
            entry_type=EntryType.INCOME,
            invoice_date=date(2024, 1, 2),
            amount=0,
            attachment_url="",
        )
        assert entry.has_attachment is False

    def test_category_label_fallback(self):
        """Test generic labels when no counterparty was recorded."""
        income = LedgerEntry(
            id="1", owner_id="u", entry_type=EntryType.INCOME,
            invoice_date=date(2024, 1, 1), amount=0,
        )
        expense = income.model_copy(update={"entry_type": EntryType.EXPENSE})
        assert income.category_label == "Einnahme"
        assert expense.category_label == "Ausgabe"

    def test_report_summary_net_income(self):
        summary = ReportSummary(total_income=15000, total_expenses=3000)
        assert summary.net_income == 12000


class TestFileModels:
    """Tests for stored file models and name helpers."""

    def test_original_name_from_stored(self):
        assert original_name_from_stored("1718000000000-invoice.pdf.encrypted") == "invoice.pdf"
        assert original_name_from_stored("1718000000000-invoice.pdf") == "invoice.pdf"
        assert original_name_from_stored("no-prefix.pdf") == "no-prefix.pdf"

    def test_timestamp_prefix(self):
        assert upload_millis_from_stored("1718000000000-a.pdf") == 1718000000000
        assert upload_millis_from_stored("a.pdf") is None

    def test_strip_encrypted_suffix(self):
        assert strip_encrypted_suffix("a.pdf.encrypted") == "a.pdf"
        assert strip_encrypted_suffix("a.pdf") == "a.pdf"

    @pytest.mark.parametrize("name, expected", [
        ("1-scan.PNG.encrypted", "image/png"),
        ("1-letter.docx", "application/vnd.openxmlformats-officedocument.wordprocessingml.document"),
        ("1-letter.doc", "application/msword"),
        ("1-photo.jpeg", "image/jpeg"),
        ("1-archive.tar", DEFAULT_MIME_TYPE),
    ])
    def test_guess_mime_type(self, name, expected):
        assert guess_mime_type(name) == expected

    def test_metadata_json_uses_camel_case(self):
        """Test sidecar keys stay compatible with existing files."""
        metadata = StoredFileMetadata(
            original_name="invoice.pdf",
            file_type="application/pdf",
            original_size=100,
            encrypted_size=144,
            upload_date=datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc),
        )
        payload = json.loads(metadata.to_json_bytes())
        assert payload["originalName"] == "invoice.pdf"
        assert payload["fileType"] == "application/pdf"
        assert payload["originalSize"] == 100
        assert payload["encryptedSize"] == 144
        assert payload["uploadDate"].startswith("2024-06-10T12:00:00")

    def test_metadata_parses_existing_sidecar(self):
        raw = json.dumps({
            "originalName": "rechnung.pdf",
            "fileType": "application/pdf",
            "originalSize": 10,
            "encryptedSize": 54,
            "uploadDate": "2023-11-02T08:15:30.123Z",
        })
        metadata = StoredFileMetadata.model_validate_json(raw)
        assert metadata.original_name == "rechnung.pdf"
        assert metadata.upload_date.year == 2023

    def test_record_falls_back_to_stored_name(self):
        record = StoredFileRecord(
            owner_id="user-1",
            stored_name="1-scan.png.encrypted",
            file_url="/files/user-1/1-scan.png.encrypted",
            encrypted_size_bytes=60,
        )
        assert record.original_name == "scan.png"
        assert record.mime_type == "image/png"


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.FILE_UPLOADED,
            description="Test file uploaded",
        )
        assert event.event_type == AuditEventType.FILE_UPLOADED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.EXPORT_COMPLETED,
            owner_id="user-1",
            description="Export done",
            details={"year": 2024},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "export_completed"
        assert log_dict["owner_id"] == "user-1"
        assert log_dict["details"]["year"] == 2024
        assert log_dict["correlation_id"] is None

    def test_audit_event_builder_file_uploaded(self):
        """Test AuditEventBuilder.file_uploaded."""
        correlation_id = uuid4()

        event = AuditEventBuilder.file_uploaded(
            owner_id="user-1",
            stored_name="1-a.pdf.encrypted",
            mime_type="application/pdf",
            file_size=1024,
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.FILE_UPLOADED
        assert event.stored_name == "1-a.pdf.encrypted"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_attachment_skipped(self):
        """Test AuditEventBuilder.attachment_skipped."""
        event = AuditEventBuilder.attachment_skipped(
            owner_id="user-1",
            reference="/files/user-1/1-gone.pdf",
            reason="NotFoundError",
            correlation_id=None,
        )

        assert event.severity == AuditSeverity.WARNING
        assert event.details["reference"] == "/files/user-1/1-gone.pdf"
        assert event.error_message == "NotFoundError"

    def test_long_description_is_clipped(self):
        """Test descriptions built from long file names still validate."""
        event = AuditEvent(
            event_type=AuditEventType.FILE_NOT_FOUND,
            description="File not found: " + "a" * 1000,
        )
        assert len(event.description) == MAX_DESCRIPTION_LENGTH
        assert event.description.endswith("...")

    def test_builder_with_long_reference(self):
        event = AuditEventBuilder.attachment_skipped(
            owner_id="user-1",
            reference="/files/" + "d/" * 300 + "x.pdf",
            reason="NotFoundError",
            correlation_id=None,
        )
        assert len(event.description) <= MAX_DESCRIPTION_LENGTH
        assert event.details["reference"].endswith("x.pdf")


def _invalid_event() -> AuditEvent:
    return AuditEvent(event_type="no_such_event", description="broken")


class TestAuditLogger:
    """Tests for the audit logger's guarantees towards callers."""

    @pytest.mark.asyncio
    async def test_invalid_event_is_dropped_not_raised(self):
        assert await AuditLogger()._emit(_invalid_event) is False

    @pytest.mark.asyncio
    async def test_valid_event_is_logged(self):
        emitted = await AuditLogger()._emit(
            AuditEventBuilder.export_started,
            owner_id="user-1",
            year=2024,
            entry_count=3,
            correlation_id=uuid4(),
        )
        assert emitted is True
