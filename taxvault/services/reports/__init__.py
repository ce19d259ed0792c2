"""Report generation package."""

from taxvault.services.reports.pdf_report import (
    TaxReportGenerator,
    build_table_rows,
    format_amount,
    format_currency,
    format_date,
    generate_tax_report,
    summarize_entries,
)

__all__ = [
    "TaxReportGenerator",
    "build_table_rows",
    "format_amount",
    "format_currency",
    "format_date",
    "generate_tax_report",
    "summarize_entries",
]
