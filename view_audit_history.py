#!/usr/bin/env python3
"""
Audit History Viewer

Reads the courier assistant's audit journal: what couriers asked, what the
domain guard turned away, which safety situations were raised, and whether
the hash chain is still intact.
"""

import argparse
import sys
from pathlib import Path

from courier_assist.adapters.persistence.audit import SQLiteAuditAdapter
from courier_assist.core.config import get_audit_db_path

WIDTH = 70

STATUS_ICONS = {
    "accepted": "✅",
    "rejected": "🚫",
    "pending": "⏳",
}


def heading(title):
    print("=" * WIDTH)
    print(title)
    print("=" * WIDTH)
    print()


def print_counts(label, counts, total):
    print(f"{label}:")
    print("-" * 40)
    for name, count in counts.items():
        share = count / total * 100 if total else 0
        print(f"  {name:28s} {count:5d} ({share:5.1f}%)")
    print()


def print_statistics(audit):
    heading("📊 JOURNAL STATISTICS")

    stats = audit.get_statistics()
    total = stats["total_events"]

    print(f"Events:  {total}")
    print(f"From:    {stats['first_event'] or '-'}")
    print(f"To:      {stats['last_event'] or '-'}")
    print()

    print_counts("By event type", stats["events_by_type"], total)
    print_counts("By actor", stats["events_by_actor"], total)


def print_command_history(audit, limit):
    heading("📜 COURIER COMMANDS")

    commands = audit.get_command_history(limit=limit)
    if not commands:
        print("No commands recorded.")
        print()
        return

    for cmd in commands:
        icon = STATUS_ICONS.get(cmd["status"], "❓")
        action = f" -> {cmd['action']}" if cmd.get("action") else ""
        print(f"{icon} {cmd['timestamp']}  \"{cmd['text']}\"{action}")
    print()


def print_rejected_queries(audit, limit):
    heading("🚫 OFF-DOMAIN REQUESTS")

    rejected = audit.get_rejected_queries(limit=limit)
    if not rejected:
        print("Nothing was rejected.")
        print()
        return

    for entry in rejected:
        print(f"{entry['timestamp']}  \"{entry['query']}\"")
        print(f"    {entry['reason']}")
    print()


def print_safety_events(audit, limit):
    heading("🚗 SAFETY SITUATIONS")

    events = audit.get_events(event_type="safety_situation_detected", limit=limit)
    if not events:
        print("No safety situations recorded.")
        print()
        return

    for event in events:
        data = event.metadata
        print(
            f"{event.timestamp.isoformat()}  {data.get('situation_type')} "
            f"({data.get('severity')}), mode {data.get('operation_mode')}"
        )
    print()


def print_integrity(audit):
    heading("🔒 HASH CHAIN")

    if audit.verify_integrity():
        print(f"✅ Intact ({audit.get_event_count()} events)")
    else:
        print("❌ BROKEN: the journal was modified outside the assistant")
    print()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Courier Assist audit journal viewer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python view_audit_history.py --stats --verify
  python view_audit_history.py --history --limit 50
  python view_audit_history.py --rejected --safety
  python view_audit_history.py --export journal.json
        """,
    )

    parser.add_argument("--db", type=str, default=None, help="Journal path (default: <DATA_FOLDER>/audit.db)")
    parser.add_argument("--stats", action="store_true", help="Event counts by type and actor")
    parser.add_argument("--history", action="store_true", help="Courier commands and their outcome")
    parser.add_argument("--rejected", action="store_true", help="Requests stopped by the domain guard")
    parser.add_argument("--safety", action="store_true", help="Detected safety situations")
    parser.add_argument("--verify", action="store_true", help="Verify the hash chain")
    parser.add_argument("--export", type=str, metavar="FILE", help="Export the journal to JSON")
    parser.add_argument("--limit", type=int, default=20, help="Rows per report (default: 20)")

    args = parser.parse_args()

    reports = [args.stats, args.history, args.rejected, args.safety, args.verify, args.export]
    if not any(reports):
        parser.print_help()
        sys.exit(0)

    db_path = Path(args.db).expanduser() if args.db else get_audit_db_path()
    if not db_path.exists():
        print(f"❌ No journal at {db_path}")
        print("Run `courier-assist` first to create it.")
        sys.exit(1)

    audit = SQLiteAuditAdapter(db_path=str(db_path), create_if_missing=False)

    if args.stats:
        print_statistics(audit)
    if args.history:
        print_command_history(audit, args.limit)
    if args.rejected:
        print_rejected_queries(audit, args.limit)
    if args.safety:
        print_safety_events(audit, args.limit)
    if args.verify:
        print_integrity(audit)
    if args.export:
        count = audit.export_to_json(args.export)
        print(f"✅ Exported {count} events to {args.export}")


if __name__ == "__main__":
    main()
