"""
Courier Assist Core Ports (Interfaces)

Contracts implemented by adapters in the infrastructure layer.
The core components never call these themselves; the application
pipeline receives an implementation and records its decisions through it.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, List, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from courier_assist.core.entities import AuditEvent


# ============================================
# Persistence Ports
# ============================================

@runtime_checkable
class AuditPort(Protocol):
    """
    Port for the audit journal.

    IMPORTANT: The journal is append-only to ensure integrity.

    Implementations:
        - SQLiteAuditAdapter
    """

    @abstractmethod
    def append_event(self, event: "AuditEvent") -> str:
        """
        Adds an event to the journal.

        Args:
            event: Event to record

        Returns:
            ID of the created event
        """
        ...

    @abstractmethod
    def get_events(
        self,
        event_type: Optional[str] = None,
        actor: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List["AuditEvent"]:
        """Retrieves events, newest first."""
        ...

    @abstractmethod
    def verify_integrity(self) -> bool:
        """
        Verifies the hash chain.

        Returns:
            True if the journal has not been modified
        """
        ...

    @abstractmethod
    def get_last_hash(self) -> str:
        ...
