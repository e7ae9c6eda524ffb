"""Tests for file and in-memory storage backends."""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from tenacity import wait_none

from lumina.ledger import commit
from lumina.models import AuditEventBuilder, TransactionDraft
from lumina.services.storage import (
    FormatError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    JsonFileAuditStorage,
    JsonFileLedgerStorage,
    StorageError,
)


class TestJsonFileLedgerStorage:
    """Tests for the JSON file ledger backend."""

    @pytest.mark.asyncio
    async def test_missing_file_loads_none(self, tmp_path):
        """Test a fresh data dir has no ledger."""
        storage = JsonFileLedgerStorage(tmp_path / "lumina_data_v2.json")
        assert await storage.load_state() is None

    @pytest.mark.asyncio
    async def test_save_then_load(self, tmp_path, state, now):
        """Test a saved ledger loads back equal."""
        _, state = commit(state, {"amount": 30, "walletId": "w1", "categoryId": "c1"}, now=now)
        storage = JsonFileLedgerStorage(tmp_path / "data" / "ledger.json")

        assert await storage.save_state(state) is True
        loaded = await storage.load_state()

        assert loaded == state
        assert loaded.wallet("w1").balance == Decimal("70.00")

    @pytest.mark.asyncio
    async def test_save_replaces_whole_file(self, tmp_path, state):
        """Test the newest save wins and no temp files are left behind."""
        path = tmp_path / "ledger.json"
        storage = JsonFileLedgerStorage(path)
        await storage.save_state(state)
        newer = state.model_copy(update={"version": 7})
        await storage.save_state(newer)

        assert (await storage.load_state()).version == 7
        assert [p.name for p in tmp_path.iterdir()] == ["ledger.json"]

    @pytest.mark.asyncio
    async def test_corrupt_file_raises_format_error(self, tmp_path):
        """Test a damaged file is reported, not silently replaced."""
        path = tmp_path / "ledger.json"
        path.write_text("{not json", encoding="utf-8")
        storage = JsonFileLedgerStorage(path)

        with pytest.raises(FormatError):
            await storage.load_state()
        assert path.read_text(encoding="utf-8") == "{not json"

    @pytest.mark.asyncio
    async def test_unwritable_location_raises_storage_error(self, tmp_path, state, monkeypatch):
        """Test OS failures surface as StorageError after retries."""
        monkeypatch.setattr(JsonFileLedgerStorage._write_with_retry.retry, "wait", wait_none())
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory", encoding="utf-8")
        storage = JsonFileLedgerStorage(blocker / "ledger.json")

        with pytest.raises(StorageError):
            await storage.save_state(state)


class TestDraftStorage:
    """Tests for keeping the entry form's unsaved draft."""

    @pytest.mark.asyncio
    async def test_file_round_trip(self, tmp_path):
        """Test a partial draft is saved beside the ledger and read back."""
        storage = JsonFileLedgerStorage(tmp_path / "lumina_data_v2.json")
        draft = TransactionDraft(
            amount=Decimal("12.30"),
            wallet_id="w1",
            note="Coffee",
            date=datetime(2024, 5, 10, 8, 15),
        )

        assert await storage.load_draft() is None
        assert await storage.save_draft(draft) is True
        assert storage.draft_path == tmp_path / "lumina_transaction_draft.json"
        assert await storage.load_draft() == draft

    @pytest.mark.asyncio
    async def test_clear(self, tmp_path):
        """Test clearing removes the draft and is fine when there is none."""
        storage = JsonFileLedgerStorage(tmp_path / "ledger.json")
        await storage.save_draft(TransactionDraft(note="half typed"))

        assert await storage.clear_draft() is True
        assert not storage.draft_path.exists()
        assert await storage.clear_draft() is True
        assert await storage.load_draft() is None

    @pytest.mark.asyncio
    async def test_unreadable_draft_is_dropped(self, tmp_path):
        """Test a damaged draft file restores as no draft."""
        storage = JsonFileLedgerStorage(tmp_path / "ledger.json")
        storage.draft_path.write_text('{"amount": "lots"', encoding="utf-8")
        assert await storage.load_draft() is None

    @pytest.mark.asyncio
    async def test_draft_does_not_touch_ledger(self, tmp_path, state):
        """Test saving and clearing a draft leaves the ledger file alone."""
        storage = JsonFileLedgerStorage(tmp_path / "ledger.json")
        await storage.save_state(state)
        await storage.save_draft(TransactionDraft(amount=Decimal("1")))
        await storage.clear_draft()
        assert await storage.load_state() == state

    @pytest.mark.asyncio
    async def test_in_memory_round_trip(self):
        """Test the in-memory backend keeps drafts through the codec."""
        storage = InMemoryLedgerStorage()
        draft = TransactionDraft(amount=Decimal("4.50"), tag_ids=("tg1",))
        await storage.save_draft(draft)
        assert isinstance(storage.draft_raw, bytes)
        assert await storage.load_draft() == draft
        await storage.clear_draft()
        assert await storage.load_draft() is None


class TestJsonFileAuditStorage:
    """Tests for the JSON-lines audit backend."""

    @pytest.mark.asyncio
    async def test_append_and_query(self, tmp_path):
        """Test events are appended and found by correlation and entity."""
        storage = JsonFileAuditStorage(tmp_path / "audit.jsonl")
        cid = uuid4()
        committed = AuditEventBuilder.transaction_committed("tx-1", "EXPENSE", "30.00", 1, cid)
        saved = AuditEventBuilder.state_saved(1, cid)
        other = AuditEventBuilder.state_reset(2, uuid4())

        for event in (committed, saved, other):
            assert await storage.append_event(event) is True

        lines = (tmp_path / "audit.jsonl").read_text(encoding="utf-8").splitlines()
        assert len(lines) == 3

        by_cid = await storage.get_events_by_correlation_id(cid)
        assert [e.event_id for e in by_cid] == [committed.event_id, saved.event_id]

        by_entity = await storage.get_events_by_entity("transaction", "tx-1")
        assert [e.event_id for e in by_entity] == [committed.event_id]

        recent = await storage.get_recent_events(limit=1)
        assert recent[0].event_id == other.event_id

    @pytest.mark.asyncio
    async def test_unreadable_lines_skipped(self, tmp_path):
        """Test one bad line does not hide the rest of the log."""
        path = tmp_path / "audit.jsonl"
        event = AuditEventBuilder.state_reset(1, uuid4())
        path.write_text("garbage\n" + event.to_json_line() + "\n", encoding="utf-8")

        events = await JsonFileAuditStorage(path).get_recent_events()
        assert [e.event_id for e in events] == [event.event_id]

    @pytest.mark.asyncio
    async def test_empty_log(self, tmp_path):
        """Test a missing log reads as empty."""
        assert await JsonFileAuditStorage(tmp_path / "none.jsonl").get_recent_events() == []


class TestInMemoryStorage:
    """Tests for the in-memory backends."""

    @pytest.mark.asyncio
    async def test_ledger_round_trip(self, state):
        """Test the in-memory store goes through the codec."""
        storage = InMemoryLedgerStorage()
        assert await storage.load_state() is None
        await storage.save_state(state)
        assert isinstance(storage.raw, bytes)
        assert await storage.load_state() == state
        assert storage.save_count == 1

    @pytest.mark.asyncio
    async def test_configured_failure(self, state):
        """Test save failures can be simulated."""
        storage = InMemoryLedgerStorage()
        storage.fail_saves = True
        with pytest.raises(StorageError):
            await storage.save_state(state)

    @pytest.mark.asyncio
    async def test_audit_queries(self):
        """Test the in-memory audit log answers the same queries."""
        storage = InMemoryAuditStorage()
        cid = uuid4()
        event = AuditEventBuilder.import_declined(cid)
        await storage.append_event(event)
        assert await storage.get_events_by_correlation_id(cid) == [event]
        assert await storage.get_recent_events() == [event]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
