"""Ledger access package."""

from taxvault.services.ledger.interface import InMemoryLedgerSource, LedgerSourceInterface

__all__ = ["InMemoryLedgerSource", "LedgerSourceInterface"]
