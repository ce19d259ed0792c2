"""
Ledger Models

Income and expense line items are owned by the finance backend's relational
store. This package only reads them, to build the yearly tax export.

Amounts are integers in minor currency units (cents), exactly as the store
keeps them. Nothing here does float arithmetic on money.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EntryType(str, Enum):
    """Which side of the ledger an entry belongs to."""
    INCOME = "income"
    EXPENSE = "expense"


class LedgerEntry(BaseModel):
    """
    A single income or expense record.

    For income the counterparty is the customer, for expenses the vendor.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Record identifier in the ledger store"
    )
    owner_id: str = Field(
        ...,
        min_length=1,
        description="User the record belongs to"
    )
    entry_type: EntryType
    invoice_date: date
    counterparty: str = Field(
        default="",
        description="Customer (income) or vendor (expense)"
    )
    description: str = Field(
        default="",
        description="Free text description"
    )
    amount: int = Field(
        ...,
        ge=0,
        description="Amount in cents"
    )
    attachment_url: Optional[str] = Field(
        default=None,
        description="Logical reference to a stored file"
    )

    @property
    def has_attachment(self) -> bool:
        return bool(self.attachment_url)

    @property
    def category_label(self) -> str:
        """Counterparty, or a generic label when none was recorded."""
        if self.counterparty:
            return self.counterparty
        return "Einnahme" if self.entry_type == EntryType.INCOME else "Ausgabe"


class ReportSummary(BaseModel):
    """Totals shown at the top of the tax report, all in cents."""

    total_income: int = 0
    total_expenses: int = 0
    income_count: int = 0
    expense_count: int = 0

    @property
    def net_income(self) -> int:
        """Signed; negative when expenses exceed income."""
        return self.total_income - self.total_expenses
