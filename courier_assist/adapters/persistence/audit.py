"""
SQLite Audit Adapter

Append-only journal of assistant decisions with hash chain integrity.
The core never writes here on its own; the application pipeline records
received commands, domain rejections, accepted intents and safety situations.

Chain:

    GENESIS <- e1.hash <- e2.hash <- ... <- eN.hash

Each row stores the hash of its predecessor and its own hash over
(event_id, recorded_at, event_type, actor, payload, previous_hash), so editing
any stored field or deleting a row breaks verification from that row on.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

from courier_assist.core.entities import AuditEvent
from courier_assist.core.policy import serialize_parameters

logger = logging.getLogger(__name__)

GENESIS_HASH = "GENESIS"

SCHEMA = """
CREATE TABLE IF NOT EXISTS journal (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id TEXT UNIQUE NOT NULL,
    recorded_at TEXT NOT NULL,
    event_type TEXT NOT NULL,
    actor TEXT NOT NULL,
    payload TEXT NOT NULL,
    previous_hash TEXT NOT NULL,
    event_hash TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_journal_type ON journal(event_type);
CREATE INDEX IF NOT EXISTS idx_journal_actor ON journal(actor);
"""

# Event types that make up one courier command
COMMAND_EVENTS = ("command_received", "intent_accepted", "intent_rejected")


class SQLiteAuditAdapter:
    """
    SQLite-based append-only audit journal.

    Examples:

    ```
    audit = SQLiteAuditAdapter("data/audit.db")

    audit.append_event(AuditEvent(
        event_type="intent_rejected",
        actor="courier",
        metadata={"query": "play some music", "reason": "..."},
    ))

    if not audit.verify_integrity():
        print("WARNING: Audit journal has been tampered with!")
    ```
    """

    def __init__(
        self,
        db_path: str = "data/audit.db",
        create_if_missing: bool = True,
    ) -> None:
        self.db_path = Path(db_path).expanduser()
        self._lock = threading.Lock()

        if create_if_missing:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._connect() as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(str(self.db_path), timeout=10.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    # ============================================
    # Journal
    # ============================================

    def append_event(self, event: AuditEvent) -> str:
        """
        Chains the event to the current head and stores it.

        Args:
            event: Event to record (its previous_hash is ignored)

        Returns:
            ID of the stored event
        """
        payload = serialize_parameters(event.metadata)

        with self._lock:
            chained = dataclasses.replace(event, previous_hash=self.get_last_hash())

            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO journal "
                    "(event_id, recorded_at, event_type, actor, payload, previous_hash, event_hash) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        chained.event_id,
                        chained.timestamp.isoformat(),
                        chained.event_type,
                        chained.actor,
                        payload,
                        chained.previous_hash,
                        chained.compute_hash(payload),
                    ),
                )
                conn.commit()

        logger.debug(f"Audit event recorded: {event.event_type} ({event.event_id})")
        return event.event_id

    def get_events(
        self,
        event_type: Optional[str] = None,
        actor: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[AuditEvent]:
        """
        Events newest first, optionally filtered by type and actor.
        """
        clauses: List[str] = []
        params: List[Any] = []
        if event_type:
            clauses.append("event_type = ?")
            params.append(event_type)
        if actor:
            clauses.append("actor = ?")
            params.append(actor)

        where = f"WHERE {' AND '.join(clauses)} " if clauses else ""
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM journal {where}ORDER BY seq DESC LIMIT ? OFFSET ?",
                params + [limit, offset],
            ).fetchall()

        return [_row_to_event(row) for row in rows]

    def get_last_hash(self) -> str:
        with self._connect() as conn:
            row = conn.execute("SELECT event_hash FROM journal ORDER BY seq DESC LIMIT 1").fetchone()
        return row["event_hash"] if row else GENESIS_HASH

    def get_event_count(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM journal").fetchone()[0]

    def verify_integrity(self) -> bool:
        """
        Walks the chain from GENESIS and recomputes every hash.

        Returns:
            True if no stored row was modified, removed or reordered
        """
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM journal ORDER BY seq ASC").fetchall()

        expected_previous = GENESIS_HASH
        for row in rows:
            if row["previous_hash"] != expected_previous:
                logger.warning(f"Audit chain broken at seq {row['seq']}: unexpected previous hash")
                return False
            if _row_to_event(row).compute_hash(row["payload"]) != row["event_hash"]:
                logger.warning(f"Audit chain broken at seq {row['seq']}: hash mismatch")
                return False
            expected_previous = row["event_hash"]

        return True

    def export_to_json(self, filepath: str, limit: int = 10000) -> int:
        """
        Writes the newest events to a JSON file.

        Returns:
            Number of exported events
        """
        events = [_event_to_dict(e) for e in self.get_events(limit=limit)]

        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(
                {
                    "exported_at": datetime.now(timezone.utc).isoformat(),
                    "total_events": len(events),
                    "events": events,
                },
                f,
                indent=2,
                ensure_ascii=False,
            )

        return len(events)

    # ============================================
    # Reports
    # ============================================

    def get_statistics(self) -> Dict[str, Any]:
        with self._connect() as conn:
            by_type = conn.execute(
                "SELECT event_type, COUNT(*) AS n FROM journal GROUP BY event_type ORDER BY n DESC"
            ).fetchall()
            by_actor = conn.execute(
                "SELECT actor, COUNT(*) AS n FROM journal GROUP BY actor ORDER BY n DESC"
            ).fetchall()
            span = conn.execute(
                "SELECT COUNT(*) AS total, MIN(recorded_at) AS first, MAX(recorded_at) AS last FROM journal"
            ).fetchone()

        return {
            "total_events": span["total"],
            "events_by_type": {row["event_type"]: row["n"] for row in by_type},
            "events_by_actor": {row["actor"]: row["n"] for row in by_actor},
            "first_event": span["first"],
            "last_event": span["last"],
        }

    def get_rejected_queries(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Domain rejections as {timestamp, query, reason}, newest first."""
        return [
            {
                "timestamp": event.timestamp.isoformat(),
                "query": event.metadata.get("query"),
                "reason": event.metadata.get("reason"),
            }
            for event in self.get_events(event_type="intent_rejected", limit=limit)
        ]

    def get_command_history(self, limit: int = 50) -> List[Dict[str, Any]]:
        """
        Courier commands with their outcome, newest first.

        A command_received event opens a command; the next accepted or
        rejected event settles it. Commands never settled stay "pending".
        """
        placeholders = ", ".join("?" for _ in COMMAND_EVENTS)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT event_type, recorded_at, payload FROM journal "
                f"WHERE event_type IN ({placeholders}) ORDER BY seq ASC",
                COMMAND_EVENTS,
            ).fetchall()

        commands: List[Dict[str, Any]] = []
        for row in rows:
            metadata = json.loads(row["payload"])
            if row["event_type"] == "command_received":
                commands.append({
                    "timestamp": row["recorded_at"],
                    "text": metadata.get("text"),
                    "status": "pending",
                })
            elif commands and commands[-1]["status"] == "pending":
                settled = commands[-1]
                settled["status"] = "accepted" if row["event_type"] == "intent_accepted" else "rejected"
                settled["action"] = metadata.get("action")

        return commands[::-1][:limit]

    def search_events(self, search_text: str, limit: int = 100) -> List[Dict[str, Any]]:
        """Events whose payload contains the text, newest first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM journal WHERE payload LIKE ? ORDER BY seq DESC LIMIT ?",
                (f"%{search_text}%", limit),
            ).fetchall()
        return [_event_to_dict(_row_to_event(row)) for row in rows]


def _row_to_event(row: sqlite3.Row) -> AuditEvent:
    return AuditEvent(
        event_id=row["event_id"],
        timestamp=datetime.fromisoformat(row["recorded_at"]),
        event_type=row["event_type"],
        actor=row["actor"],
        metadata=json.loads(row["payload"]),
        previous_hash=row["previous_hash"],
    )


def _event_to_dict(event: AuditEvent) -> Dict[str, Any]:
    return {
        "event_id": event.event_id,
        "timestamp": event.timestamp.isoformat(),
        "event_type": event.event_type,
        "actor": event.actor,
        "metadata": event.metadata,
    }
