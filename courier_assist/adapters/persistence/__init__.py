"""
Courier Assist Persistence Adapters Package

Adapters for data storage:
- Audit Log (SQLite)
"""

from courier_assist.adapters.persistence.audit import SQLiteAuditAdapter

__all__ = [
    "SQLiteAuditAdapter",
]
