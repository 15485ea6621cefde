"""Audit log service."""

from datetime import datetime
from typing import List

from models.audit import AuditEvent
from services.store import AUDIT_LOG_KEY

MAX_AUDIT_EVENTS = 100


class AuditService:
    """Keeps a bounded, most-recent-first log of audit events."""

    def __init__(self, store):
        self.store = store

    def add_event(self, event_type: str, **metadata) -> AuditEvent:
        """Record an event, evicting the oldest entries beyond the cap.

        Args:
            event_type: Event tag.
            **metadata: Type-specific details.

        Returns:
            The stored AuditEvent with its timestamp.
        """
        event = AuditEvent(
            type=event_type,
            timestamp=datetime.now().isoformat(),
            metadata=metadata,
        )
        log = self.store.load(AUDIT_LOG_KEY, [])
        log.insert(0, event.to_dict())
        self.store.persist(AUDIT_LOG_KEY, log[:MAX_AUDIT_EVENTS])
        return event

    def find_all(self) -> List[AuditEvent]:
        """Get all events, newest first."""
        return [AuditEvent.from_dict(row) for row in self.store.load(AUDIT_LOG_KEY, [])]
