"""Tests for the tax report generator."""

import re
from datetime import date, datetime

import pytest

from taxvault.models.ledger import EntryType
from taxvault.services.reports import (
    TaxReportGenerator,
    build_table_rows,
    format_amount,
    format_currency,
    format_date,
    generate_tax_report,
    summarize_entries,
)


class TestFormatting:
    """German number and date formatting."""

    @pytest.mark.parametrize("minor_units, expected", [
        (0, "0,00"),
        (5, "0,05"),
        (100, "1,00"),
        (123456, "1.234,56"),
        (100000000, "1.000.000,00"),
        (-1200050, "-12.000,50"),
    ])
    def test_format_amount(self, minor_units, expected):
        assert format_amount(minor_units) == expected

    def test_format_currency(self):
        assert format_currency(1500000) == "15.000,00 EUR"

    def test_format_date(self):
        assert format_date(date(2024, 3, 5)) == "05.03.2024"


class TestSummary:
    """Totals computed from ledger entries."""

    def test_totals(self, make_entry):
        entries = [
            make_entry(EntryType.INCOME, 10000),
            make_entry(EntryType.INCOME, 5000),
            make_entry(EntryType.EXPENSE, 3000),
        ]
        summary = summarize_entries(entries)
        assert summary.total_income == 15000
        assert summary.total_expenses == 3000
        assert summary.net_income == 12000
        assert summary.income_count == 2
        assert summary.expense_count == 1

    def test_net_income_can_be_negative(self, make_entry):
        summary = summarize_entries([
            make_entry(EntryType.INCOME, 1000),
            make_entry(EntryType.EXPENSE, 4000),
        ])
        assert summary.net_income == -3000

    def test_empty(self):
        summary = summarize_entries([])
        assert summary.total_income == 0
        assert summary.net_income == 0


class TestTableRows:
    """Row data shown in the income and expense tables."""

    def test_row_columns(self, make_entry):
        entry = make_entry(
            EntryType.EXPENSE,
            249999,
            invoice_date=date(2024, 11, 2),
            description="Laptop",
            counterparty="Computer Shop",
            attachment_url="/files/user-1/1-laptop.pdf.encrypted",
        )
        [row] = build_table_rows([entry])
        assert row == ("02.11.2024", "Laptop", "Computer Shop", "2.499,99", "Ja")

    def test_missing_counterparty_uses_generic_label(self, make_entry):
        [income_row] = build_table_rows([make_entry(EntryType.INCOME, counterparty="")])
        [expense_row] = build_table_rows([make_entry(EntryType.EXPENSE, counterparty="")])
        assert income_row[2] == "Einnahme"
        assert expense_row[2] == "Ausgabe"

    def test_no_attachment_flag(self, make_entry):
        [row] = build_table_rows([make_entry(attachment_url=None)])
        assert row[4] == "Nein"

    def test_rows_keep_supplied_order(self, make_entry):
        entries = [
            make_entry(description="Later", invoice_date=date(2024, 12, 1)),
            make_entry(description="Earlier", invoice_date=date(2024, 1, 1)),
        ]
        assert [row[1] for row in build_table_rows(entries)] == ["Later", "Earlier"]


def _render(entries):
    """Uncompressed document, so rendered text can be searched directly."""
    return TaxReportGenerator(compress=False).generate(
        entries, 2024, "user-1", generated_at=datetime(2025, 1, 10, 9, 30)
    )


def _page_count(document: bytes) -> int:
    return int(re.search(rb"/Count (\d+)", document).group(1))


class TestGenerate:
    """The rendered PDF document."""

    def test_generates_pdf(self, make_entry):
        entries = [
            make_entry(EntryType.INCOME, 10000, description="Consulting"),
            make_entry(EntryType.EXPENSE, 3000, description="Software €"),
        ]
        document = TaxReportGenerator().generate(
            entries, 2024, "user-1", generated_at=datetime(2025, 1, 10, 9, 30)
        )
        assert document.startswith(b"%PDF")
        assert document.rstrip().endswith(b"%%EOF")

    def test_summary_totals_are_formatted(self, make_entry):
        document = _render([
            make_entry(EntryType.INCOME, 10000),
            make_entry(EntryType.INCOME, 5000),
            make_entry(EntryType.EXPENSE, 3000),
        ])
        assert b"Gesamteinkommen:" in document
        assert b"150,00 EUR" in document
        assert b"30,00 EUR" in document
        assert b"120,00 EUR" in document

    def test_negative_net_income_is_shown(self, make_entry):
        document = _render([
            make_entry(EntryType.INCOME, 1000),
            make_entry(EntryType.EXPENSE, 4000),
        ])
        assert b"-30,00 EUR" in document

    def test_both_tables_present(self, make_entry):
        document = _render([
            make_entry(EntryType.INCOME, description="Consulting"),
            make_entry(EntryType.EXPENSE, description="Software"),
        ])
        assert b"Einkommen:" in document
        assert b"Ausgaben:" in document
        assert b"Betrag" in document

    def test_expense_table_omitted_without_expenses(self, make_entry):
        document = _render([make_entry(EntryType.INCOME, description="Consulting")])
        assert b"Einkommen:" in document
        assert b"Ausgaben:" not in document
        assert b"Consulting" in document

    def test_income_table_omitted_without_income(self, make_entry):
        document = _render([make_entry(EntryType.EXPENSE, 500, description="Paper")])
        assert b"Einkommen:" not in document
        assert b"Ausgaben:" in document
        assert b"5,00" in document

    def test_no_entries_has_summary_only(self):
        document = _render([])
        assert b"Zusammenfassung:" in document
        assert b"0,00 EUR" in document
        assert b"Datum" not in document

    def test_rows_rendered_in_supplied_order(self, make_entry):
        document = _render([
            make_entry(description="Row B", invoice_date=date(2024, 12, 1)),
            make_entry(description="Row A", invoice_date=date(2024, 1, 1)),
        ])
        assert document.index(b"Row B") < document.index(b"Row A")
        assert b"01.12.2024" in document

    def test_footer_on_single_page(self, make_entry):
        document = _render([make_entry()])
        assert _page_count(document) == 1
        assert b"Generiert am 10.01.2025 09:30 - Seite 1 von 1" in document

    def test_footer_counts_every_page(self, make_entry):
        entries = [make_entry(EntryType.INCOME, 100 * i) for i in range(1, 120)]
        document = _render(entries)

        pages = _page_count(document)
        assert pages > 1
        for page in range(1, pages + 1):
            assert f"Seite {page} von {pages}".encode() in document

    def test_long_description_is_shortened(self, make_entry):
        document = _render([make_entry(description="Wartungsvertrag " * 20)])
        assert b"Wartungsvertrag Wartungsvertrag" in document
        assert b"..." in document
        assert ("Wartungsvertrag " * 20).strip().encode() not in document

    def test_only_expenses(self, make_entry):
        document = generate_tax_report(
            [make_entry(EntryType.EXPENSE, 500)], 2024, "user-1"
        )
        assert document.startswith(b"%PDF")

    def test_non_latin_text_does_not_break_rendering(self, make_entry):
        entry = make_entry(description="Büromaterial 📎 – Kaffee", counterparty="Café Ω")
        document = _render([entry])
        assert b"Kaffee" in document
        assert b"?" in document
