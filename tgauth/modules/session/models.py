"""Session record."""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict

from ..identity import Identity


@dataclass
class Session:
    """Authenticated user session, refreshed on every access."""

    id: str
    identity: Identity
    created_at: float
    last_activity: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "identity": self.identity.to_dict(),
            "created_at": self.created_at,
            "last_activity": self.last_activity,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        """Create from dictionary (e.g., from JSON)."""
        return cls(
            id=data["id"],
            identity=Identity.from_dict(data["identity"]),
            created_at=float(data["created_at"]),
            last_activity=float(data["last_activity"]),
            metadata=dict(data.get("metadata") or {}),
        )

    def copy(self) -> "Session":
        return copy.deepcopy(self)
