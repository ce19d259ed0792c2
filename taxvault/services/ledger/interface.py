"""
Ledger Source Interface

The income/expense records live in the finance backend's relational store,
which this package does not own. The export flow only needs one filtered
read, so that is all the interface offers.

InMemoryLedgerSource is the reference implementation used by tests and by
local runs without a database.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, Optional

from taxvault.models.ledger import EntryType, LedgerEntry


class LedgerSourceInterface(ABC):
    """Read-only access to an owner's ledger entries."""

    @abstractmethod
    async def list_entries(
        self,
        owner_id: str,
        date_from: date,
        date_to: date,
        entry_type: Optional[EntryType] = None,
    ) -> list[LedgerEntry]:
        """
        List an owner's entries by invoice date.

        Args:
            owner_id: Authenticated user id
            date_from: First invoice date included
            date_to: First invoice date excluded
            entry_type: Only income or only expenses if given

        Returns:
            Matching entries, income before expenses, each side in
            invoice date order
        """
        pass


class InMemoryLedgerSource(LedgerSourceInterface):
    """Ledger source backed by a plain list."""

    def __init__(self, entries: Optional[Iterable[LedgerEntry]] = None):
        self._entries: list[LedgerEntry] = list(entries or [])

    def add(self, entry: LedgerEntry) -> None:
        self._entries.append(entry)

    async def list_entries(
        self,
        owner_id: str,
        date_from: date,
        date_to: date,
        entry_type: Optional[EntryType] = None,
    ) -> list[LedgerEntry]:
        matches = [
            entry for entry in self._entries
            if entry.owner_id == owner_id
            and date_from <= entry.invoice_date < date_to
            and (entry_type is None or entry.entry_type == entry_type)
        ]
        # Income first, then expenses; stable within the same date
        side_order = {EntryType.INCOME: 0, EntryType.EXPENSE: 1}
        return sorted(
            matches,
            key=lambda e: (side_order[e.entry_type], e.invoice_date),
        )
