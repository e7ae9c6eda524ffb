"""Tests for the ledger codec and exports."""

import csv
import io
import json
from datetime import date, datetime
from decimal import Decimal

import pytest

from lumina.ledger import commit
from lumina.models import AppData, Theme, TransactionDraft, TransactionType
from lumina.services.storage import (
    FormatError,
    StorageError,
    backup_filename,
    deserialize,
    deserialize_draft,
    export_transactions_csv,
    serialize,
    serialize_draft,
)


LEGACY_BACKUP = """{
  "wallets": [
    {"id": "w1", "name": "Wallet", "type": "CASH", "balance": 50.1, "currency": "USD", "color": "#3b82f6"},
    {"id": "w2", "name": "Main Checking", "type": "BANK", "balance": 2450, "currency": "USD", "color": "#10b981"}
  ],
  "categories": [
    {"id": "c1", "name": "Food & Dining", "icon": "utensils", "color": "#ef4444", "budgetLimit": 600}
  ],
  "tags": [],
  "transactions": [
    {"id": "t2", "amount": 20, "type": "TRANSFER", "categoryId": "", "walletId": "w2",
     "toWalletId": "w1", "date": "2024-05-02T10:00:00.000Z", "note": "",
     "tags": [], "createdAt": 1714644000000, "updatedAt": 1714644000000},
    {"id": "t1", "amount": 12.34, "type": "EXPENSE", "categoryId": "c1", "walletId": "w1",
     "date": "2024-05-01T10:00:00.000Z", "note": "Lunch",
     "tags": [], "createdAt": 1714557600000, "updatedAt": 1714557600000}
  ],
  "settings": {"baseCurrency": "USD", "theme": "dark", "enableNotifications": true}
}"""


class TestRoundTrip:
    """Tests for serialize/deserialize."""

    def test_commit_then_round_trip(self, state, now):
        """Test a committed ledger survives serialize → deserialize intact."""
        _, state = commit(state, {
            "amount": "30.10", "walletId": "w1", "categoryId": "c1",
            "note": "Groceries, weekly", "tags": ["tg1"], "date": now,
        }, now=now)
        restored = deserialize(serialize(state))
        assert restored == state
        assert restored.transactions[0].amount == Decimal("30.10")
        assert restored.transactions[0].created_at == now
        assert restored.version == state.version

    def test_serialize_is_deterministic(self, state):
        """Test equal states encode to identical bytes."""
        assert serialize(state) == serialize(state.model_copy())

    def test_serialize_uses_legacy_keys(self, state):
        """Test the document uses the backup key names."""
        document = json.loads(serialize(state))
        assert set(document) >= {"wallets", "categories", "tags", "transactions", "settings", "version"}
        assert document["wallets"][0]["type"] == "CASH"
        assert document["wallets"][0]["balance"] == "100.00"
        assert "enableNotifications" in document["settings"]

    def test_legacy_backup_imports(self):
        """Test an older backup with numeric money and no version loads."""
        state = deserialize(LEGACY_BACKUP.encode("utf-8"))
        assert state.version == 0
        assert state.wallet("w1").balance == Decimal("50.1")
        assert state.transactions[1].amount == Decimal("12.34")
        assert state.transactions[0].type == TransactionType.TRANSFER
        assert state.transactions[0].category_id is None
        assert state.settings.theme == Theme.DARK
        assert state.category("c1").budget_limit == Decimal("600")

    def test_accepts_text(self, state):
        """Test deserialize also takes an already-decoded string."""
        assert deserialize(serialize(state).decode("utf-8")) == state


class TestFormatErrors:
    """Tests for documents that are not ledgers."""

    def test_not_utf8(self):
        """Test undecodable bytes are a FormatError."""
        with pytest.raises(FormatError):
            deserialize(b"\xff\xfe\x00garbage")

    def test_malformed_json(self):
        """Test broken JSON is a FormatError."""
        with pytest.raises(FormatError, match="not valid JSON"):
            deserialize(b'{"wallets": [')

    def test_deeply_nested_json(self):
        """Test nesting beyond the decoder's depth is a FormatError."""
        with pytest.raises(FormatError) as exc_info:
            deserialize(b"[" * 100000 + b"]" * 100000)
        assert exc_info.value.issues[0].issue_type == "malformed_json"

    def test_not_an_object(self):
        """Test a JSON array is not a ledger."""
        with pytest.raises(FormatError) as exc_info:
            deserialize(b"[1, 2, 3]")
        assert exc_info.value.issues[0].issue_type == "invalid_type"

    def test_missing_transactions(self):
        """Test a document without transactions is rejected."""
        with pytest.raises(FormatError) as exc_info:
            deserialize(b'{"wallets": []}')
        assert [i.field for i in exc_info.value.issues] == ["transactions"]

    def test_every_schema_issue_listed(self):
        """Test all problems are reported, not just the first."""
        document = {
            "wallets": [{"id": "w1", "type": "VAULT", "balance": "x"}],
            "transactions": [{"id": "t1"}],
        }
        with pytest.raises(FormatError) as exc_info:
            deserialize(json.dumps(document))
        fields = [i.field for i in exc_info.value.issues]
        assert len(fields) >= 4
        assert any(f.startswith("wallets.0") for f in fields)
        assert any(f.startswith("transactions.0") for f in fields)

    def test_format_error_is_storage_error(self):
        """Test FormatError can be handled as a StorageError."""
        with pytest.raises(StorageError):
            deserialize(b"nope")


class TestDraftCodec:
    """Tests for encoding the entry form's unsaved draft."""

    def test_partial_draft_round_trip(self):
        """Test unset fields are left out and come back unset."""
        draft = TransactionDraft(amount=Decimal("7.25"), wallet_id="w1", tag_ids=("tg1",))
        raw = serialize_draft(draft)
        document = json.loads(raw)
        assert document["amount"] == "7.25"
        assert document["walletId"] == "w1"
        assert document["tags"] == ["tg1"]
        assert "categoryId" not in document
        assert deserialize_draft(raw) == draft

    @pytest.mark.parametrize("raw", [b"{half", b"[]", b'{"amount": "lots"}', b"\xff"])
    def test_unreadable_draft(self, raw):
        """Test a stored draft that cannot be read back is a FormatError."""
        with pytest.raises(FormatError):
            deserialize_draft(raw)


class TestCsvExport:
    """Tests for the CSV transaction export."""

    def test_header_and_rows(self, state, make_transaction):
        """Test one row per transaction with names resolved."""
        state = state.model_copy(update={"transactions": (
            make_transaction(amount=Decimal("12.50"), note="Lunch", date=datetime(2024, 5, 3, 12)),
        )})
        lines = export_transactions_csv(state).splitlines()
        assert lines[0] == "Date,Amount,Type,Category,Wallet,Note"
        assert lines[1] == "2024-05-03,12.50,EXPENSE,Food & Dining,Cash,Lunch"

    def test_unresolved_names_are_na(self, state, make_transaction):
        """Test transfers and unknown references show N/A."""
        state = state.model_copy(update={"transactions": (
            make_transaction(type=TransactionType.TRANSFER, category_id=None, to_wallet_id="w2"),
            make_transaction(category_id="ghost", wallet_id="gone"),
        )})
        rows = list(csv.reader(io.StringIO(export_transactions_csv(state))))
        assert rows[1][3] == "N/A"
        assert rows[2][3] == "N/A"
        assert rows[2][4] == "N/A"

    def test_notes_with_commas_and_quotes(self, state, make_transaction):
        """Test notes with delimiters survive a CSV reader."""
        note = 'Dinner, drinks and "tips"'
        state = state.model_copy(update={"transactions": (make_transaction(note=note),)})
        rows = list(csv.reader(io.StringIO(export_transactions_csv(state))))
        assert len(rows[1]) == 6
        assert rows[1][5] == note

    def test_ledger_order(self, state, make_transaction):
        """Test rows follow the newest-first ledger order."""
        state = state.model_copy(update={"transactions": (
            make_transaction(note="newer"),
            make_transaction(note="older"),
        )})
        rows = list(csv.reader(io.StringIO(export_transactions_csv(state))))
        assert [r[5] for r in rows[1:]] == ["newer", "older"]

    def test_empty_ledger(self, state):
        """Test an empty ledger exports just the header."""
        assert export_transactions_csv(state) == "Date,Amount,Type,Category,Wallet,Note\n"


class TestBackupFilename:
    """Tests for export file names."""

    def test_json_name(self):
        assert backup_filename("json", date(2024, 5, 20)) == "lumina_backup_2024-05-20.json"

    def test_csv_name(self):
        assert backup_filename("csv", date(2024, 5, 20)) == "lumina_transactions_2024-05-20.csv"

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            backup_filename("xlsx")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
