"""
Tax Report PDF Generator

Builds the yearly income tax overview (Einkommenssteuer Übersicht) that goes
into every tax export:

1. Title
2. Summary block: total income, total expenses, net income
3. Income table (omitted when there is no income)
4. Expense table (omitted when there are no expenses)
5. Footer on every page: generation time and "Seite i von n"

DESIGN DECISION: Formatting follows German conventions (31.12.2024,
1.234,56) because the report is filed with German tax authorities. This is a
fixed policy, not an i18n mechanism.

The built-in PDF fonts only cover Latin-1, so amounts are suffixed with "EUR"
rather than the euro sign and any other text is reduced to Latin-1.
"""

from datetime import date, datetime
from typing import Iterable, Optional, Sequence

import structlog
from fpdf import FPDF

from taxvault.models.ledger import EntryType, LedgerEntry, ReportSummary


REPORT_FONT = "Helvetica"
TABLE_HEADINGS = ("Datum", "Beschreibung", "Kategorie", "Betrag (EUR)", "Anhang")
TABLE_COL_WIDTHS = (22, 62, 45, 33, 18)
AMOUNT_COLUMN = 3
ROW_HEIGHT = 6

INCOME_COLOR = (34, 197, 94)
EXPENSE_COLOR = (239, 68, 68)
WHITE = (255, 255, 255)
ROW_FILL = (248, 248, 248)

logger = structlog.get_logger(__name__)


# =============================================================================
# FORMATTING
# =============================================================================

def format_amount(minor_units: int) -> str:
    """123456 -> "1.234,56"."""
    sign = "-" if minor_units < 0 else ""
    euros, cents = divmod(abs(minor_units), 100)
    grouped = f"{euros:,}".replace(",", ".")
    return f"{sign}{grouped},{cents:02d}"


def format_currency(minor_units: int) -> str:
    """123456 -> "1.234,56 EUR"."""
    return f"{format_amount(minor_units)} EUR"


def format_date(value: date) -> str:
    """Day.month.year, e.g. 05.03.2024."""
    return value.strftime("%d.%m.%Y")


def _pdf_text(text: str) -> str:
    """Make arbitrary user text printable with the core fonts."""
    return text.replace("€", "EUR").encode("latin-1", "replace").decode("latin-1")


# =============================================================================
# AGGREGATION
# =============================================================================

def summarize_entries(entries: Iterable[LedgerEntry]) -> ReportSummary:
    """Totals per side of the ledger, in cents."""
    summary = ReportSummary()
    for entry in entries:
        if entry.entry_type == EntryType.INCOME:
            summary.total_income += entry.amount
            summary.income_count += 1
        else:
            summary.total_expenses += entry.amount
            summary.expense_count += 1
    return summary


def build_table_rows(entries: Iterable[LedgerEntry]) -> list[tuple[str, ...]]:
    """One row per entry, in the order supplied."""
    return [
        (
            format_date(entry.invoice_date),
            entry.description,
            entry.category_label or "-",
            format_amount(entry.amount),
            "Ja" if entry.has_attachment else "Nein",
        )
        for entry in entries
    ]


# =============================================================================
# PDF
# =============================================================================

class TaxReportPDF(FPDF):
    """A4 document with the generation footer on every page."""

    def __init__(self, generated_at: datetime):
        super().__init__(orientation="P", unit="mm", format="A4")
        self.generated_at = generated_at
        self.set_auto_page_break(auto=True, margin=20)

    def footer(self):
        self.set_y(-15)
        self.set_font(REPORT_FONT, "", 8)
        self.set_text_color(0, 0, 0)
        stamp = self.generated_at.strftime("%d.%m.%Y %H:%M")
        # {nb} is replaced with the page count when the document is closed
        self.cell(0, 10, f"Generiert am {stamp} - Seite {self.page_no()} von {{nb}}")

    def heading(self, text: str, size: int = 14) -> None:
        self.set_font(REPORT_FONT, "B", size)
        self.set_text_color(0, 0, 0)
        self.cell(0, 10, _pdf_text(text), new_x="LMARGIN", new_y="NEXT")

    def summary_line(self, label: str, amount: int) -> None:
        self.set_font(REPORT_FONT, "", 11)
        self.cell(45, 7, _pdf_text(label))
        self.cell(0, 7, format_currency(amount), new_x="LMARGIN", new_y="NEXT")

    def _fit(self, text: str, width: float) -> str:
        """Shorten ``text`` with "..." until it fits into a column."""
        text = _pdf_text(text)
        if self.get_string_width(text) <= width - 2:
            return text
        while text and self.get_string_width(text + "...") > width - 2:
            text = text[:-1]
        return text + "..."

    def table_row(
        self,
        cells: Sequence[str],
        header_color: Optional[tuple[int, int, int]] = None,
    ) -> None:
        header = header_color is not None
        self.set_font(REPORT_FONT, "B" if header else "", 8)
        if header:
            self.set_fill_color(*header_color)
            self.set_text_color(*WHITE)
        else:
            self.set_fill_color(*ROW_FILL)
            self.set_text_color(0, 0, 0)
        for i, cell in enumerate(cells):
            width = TABLE_COL_WIDTHS[i]
            # Amounts right aligned, everything else left
            align = "R" if i == AMOUNT_COLUMN else "L"
            self.cell(width, ROW_HEIGHT, self._fit(cell, width), border=1, fill=True, align=align)
        self.ln(ROW_HEIGHT)

    def entry_table(
        self,
        rows: Sequence[tuple[str, ...]],
        header_color: tuple[int, int, int],
    ) -> None:
        self.table_row(TABLE_HEADINGS, header_color)
        for row in rows:
            if self.will_page_break(ROW_HEIGHT):
                self.add_page()
                self.table_row(TABLE_HEADINGS, header_color)
            self.table_row(row)


class TaxReportGenerator:
    """
    Renders ledger entries for one year into the tax overview PDF.

    Pure apart from the generation timestamp, which can be pinned with
    ``generated_at``. No filesystem or network access.

    ``compress=False`` leaves the page content streams as plain text.
    """

    def __init__(self, compress: bool = True):
        self._compress = compress

    def generate(
        self,
        entries: Sequence[LedgerEntry],
        year: int,
        owner_id: str,
        generated_at: Optional[datetime] = None,
    ) -> bytes:
        generated_at = generated_at or datetime.now()

        income = [e for e in entries if e.entry_type == EntryType.INCOME]
        expenses = [e for e in entries if e.entry_type == EntryType.EXPENSE]
        summary = summarize_entries(entries)

        pdf = TaxReportPDF(generated_at)
        pdf.set_compression(self._compress)
        pdf.set_title(f"Einkommenssteuer Übersicht {year}")
        pdf.add_page()

        pdf.heading(f"Einkommenssteuer Übersicht {year}", size=20)
        pdf.ln(4)

        pdf.heading("Zusammenfassung:")
        pdf.summary_line("Gesamteinkommen:", summary.total_income)
        pdf.summary_line("Gesamtausgaben:", summary.total_expenses)
        pdf.summary_line("Nettoeinkommen:", summary.net_income)

        if income:
            pdf.ln(6)
            pdf.heading("Einkommen:")
            pdf.entry_table(build_table_rows(income), INCOME_COLOR)

        if expenses:
            pdf.ln(6)
            pdf.heading("Ausgaben:")
            pdf.entry_table(build_table_rows(expenses), EXPENSE_COLOR)

        document = bytes(pdf.output())
        logger.info(
            "tax_report_generated",
            owner_id=owner_id,
            year=year,
            income_entries=summary.income_count,
            expense_entries=summary.expense_count,
            pages=pdf.page_no(),
            size_bytes=len(document),
        )
        return document


def generate_tax_report(
    entries: Sequence[LedgerEntry],
    year: int,
    owner_id: str,
    generated_at: Optional[datetime] = None,
) -> bytes:
    """Module-level shortcut for TaxReportGenerator().generate()."""
    return TaxReportGenerator().generate(entries, year, owner_id, generated_at)
