"""Audit event model for the reclassification log."""

from dataclasses import dataclass, field
from typing import Any, Dict

RECLASSIFICATION_APPLIED = "reclassification_applied"
RECLASSIFICATION_UNDONE = "reclassification_undone"


@dataclass
class AuditEvent:
    """Represents one entry in the audit log.

    Attributes:
        type: Event tag, e.g. "reclassification_applied".
        timestamp: ISO timestamp assigned when the event is stored.
        metadata: Type-specific details (mode, scope, counts).
    """

    type: str
    timestamp: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"type": self.type, "timestamp": self.timestamp, **self.metadata}

    @classmethod
    def from_dict(cls, data: dict) -> "AuditEvent":
        metadata = {k: v for k, v in data.items() if k not in ("type", "timestamp")}
        return cls(
            type=data.get("type", "unknown"),
            timestamp=data.get("timestamp", ""),
            metadata=metadata,
        )
