"""Shared fixtures. scrypt cost is lowered so the suite stays fast."""

from datetime import date

import pytest

from taxvault.crypto import EncryptionEngine
from taxvault.models.ledger import EntryType, LedgerEntry
from taxvault.services.storage import LocalBlobStore


TEST_PASSWORD = "correct horse battery staple"
OWNER_ID = "user-1"


@pytest.fixture
def engine() -> EncryptionEngine:
    return EncryptionEngine(TEST_PASSWORD, scrypt_n=2**10)


@pytest.fixture
def blob_store(tmp_path, engine) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "uploads", engine)


@pytest.fixture
def make_entry():
    """Build LedgerEntry objects with sensible defaults."""
    counter = {"n": 0}

    def _make(entry_type=EntryType.INCOME, amount=10000, **overrides) -> LedgerEntry:
        counter["n"] += 1
        fields = {
            "id": f"entry-{counter['n']}",
            "owner_id": OWNER_ID,
            "entry_type": entry_type,
            "invoice_date": date(2024, 3, 15),
            "counterparty": "ACME GmbH",
            "description": f"Entry {counter['n']}",
            "amount": amount,
        }
        fields.update(overrides)
        return LedgerEntry(**fields)

    return _make
