"""
Unit Tests for SQLite Audit Adapter

Tests for the append-only hash-chained journal.
"""

import json
import sqlite3

import pytest

from courier_assist.adapters.persistence.audit import GENESIS_HASH, SQLiteAuditAdapter
from courier_assist.core.entities import AuditEvent, GeoLocation
from courier_assist.core.ports import AuditPort


class TestSQLiteAuditAdapter:
    """Tests for SQLiteAuditAdapter."""

    @pytest.fixture
    def audit(self, tmp_path):
        return SQLiteAuditAdapter(str(tmp_path / "nested" / "audit.db"))

    @pytest.fixture
    def make_event(self, clock):
        def factory(event_type="command_received", actor="courier", **metadata):
            event = AuditEvent(
                event_type=event_type,
                actor=actor,
                metadata=metadata,
                timestamp=clock(),
            )
            clock.advance(seconds=1)
            return event
        return factory

    def test_implements_port(self, audit):
        """Tests that the adapter satisfies AuditPort."""
        assert isinstance(audit, AuditPort)

    def test_empty_journal(self, audit):
        """Tests a freshly created journal."""
        assert audit.get_last_hash() == GENESIS_HASH
        assert audit.get_event_count() == 0
        assert audit.verify_integrity()
        assert audit.get_events() == []

    def test_append_and_read(self, audit, make_event, clock):
        """Tests storing and reading one event."""
        event = make_event(text="where is my next delivery")

        event_id = audit.append_event(event)
        stored = audit.get_events()[0]

        assert event_id == event.event_id
        assert stored.event_id == event.event_id
        assert stored.event_type == "command_received"
        assert stored.actor == "courier"
        assert stored.metadata == {"text": "where is my next delivery"}
        assert stored.timestamp == event.timestamp
        assert stored.previous_hash == GENESIS_HASH

    def test_hash_chain(self, audit, make_event):
        """Tests linking of consecutive hashes."""
        audit.append_event(make_event())
        first_hash = audit.get_last_hash()
        audit.append_event(make_event())

        newest = audit.get_events()[0]

        assert first_hash != GENESIS_HASH
        assert newest.previous_hash == first_hash
        assert audit.get_last_hash() != first_hash
        assert audit.verify_integrity()

    def test_tampering_is_detected(self, audit, make_event):
        """Tests detection of an edited payload."""
        audit.append_event(make_event(text="reached pickup location"))
        audit.append_event(make_event(text="delayed due to traffic"))

        conn = sqlite3.connect(str(audit.db_path))
        conn.execute("UPDATE journal SET payload = ? WHERE seq = 1", ('{}',))
        conn.commit()
        conn.close()

        assert not audit.verify_integrity()

    def test_filters_and_pagination(self, audit, make_event):
        """Tests type, actor, limit and offset filters."""
        for i in range(5):
            audit.append_event(make_event(text=f"command {i}"))
        audit.append_event(make_event("safety_situation_detected", actor="system"))

        assert len(audit.get_events(event_type="command_received")) == 5
        assert [e.event_type for e in audit.get_events(actor="system")] == ["safety_situation_detected"]

        page = audit.get_events(event_type="command_received", limit=2, offset=1)
        assert [e.metadata["text"] for e in page] == ["command 3", "command 2"]

    def test_dataclass_metadata(self, audit, make_event):
        """Tests serialization of dataclass metadata."""
        audit.append_event(make_event(location=GeoLocation(1.5, 2.5)))

        stored = audit.get_events()[0]

        assert stored.metadata["location"] == {"latitude": 1.5, "longitude": 2.5, "accuracy": None}

    def test_statistics(self, audit, make_event):
        """Tests the journal statistics."""
        audit.append_event(make_event())
        audit.append_event(make_event())
        audit.append_event(make_event("intent_rejected", query="play music", reason="blocked"))
        audit.append_event(make_event("safety_situation_detected", actor="system"))

        stats = audit.get_statistics()

        assert stats["total_events"] == 4
        assert stats["events_by_type"]["command_received"] == 2
        assert stats["events_by_actor"] == {"courier": 3, "system": 1}
        assert stats["first_event"] < stats["last_event"]

    def test_rejected_queries(self, audit, make_event):
        """Tests the rejected query report."""
        audit.append_event(make_event("intent_rejected", query="play music", reason="blocked"))
        audit.append_event(make_event("intent_accepted", action="get_next_delivery"))

        rejected = audit.get_rejected_queries()

        assert len(rejected) == 1
        assert rejected[0]["query"] == "play music"
        assert rejected[0]["reason"] == "blocked"

    def test_command_history_pending(self, audit, make_event):
        """Tests a command without an outcome."""
        audit.append_event(make_event(text="navigate home"))

        history = audit.get_command_history()

        assert history[0]["status"] == "pending"
        assert "action" not in history[0]

    def test_search_events(self, audit, make_event):
        """Tests the payload text search."""
        audit.append_event(make_event(text="call customer Jane"))
        audit.append_event(make_event(text="reached pickup location"))

        found = audit.search_events("Jane")

        assert len(found) == 1
        assert found[0]["metadata"]["text"] == "call customer Jane"

    def test_export_to_json(self, audit, make_event, tmp_path):
        """Tests the JSON export."""
        audit.append_event(make_event(text="first"))
        audit.append_event(make_event(text="second"))
        target = tmp_path / "export.json"

        exported = audit.export_to_json(str(target))

        data = json.loads(target.read_text(encoding="utf-8"))
        assert exported == 2
        assert data["total_events"] == 2
        assert [e["metadata"]["text"] for e in data["events"]] == ["second", "first"]

    def test_reopen_keeps_chain(self, audit, make_event):
        """Tests continuing the chain after reopening the file."""
        audit.append_event(make_event())
        reopened = SQLiteAuditAdapter(str(audit.db_path))
        reopened.append_event(make_event())

        assert reopened.get_event_count() == 2
        assert reopened.verify_integrity()
