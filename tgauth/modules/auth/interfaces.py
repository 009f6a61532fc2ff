"""Authentication interfaces following Black Box Design principles."""
from typing import Any, Dict, Protocol

from ..audit import AuditRecorder, NullAuditRecorder
from ..identity import Identity

__all__ = ["AuditRecorder", "NullAuditRecorder", "RealtimeHandle", "ResultSink"]


class ResultSink(Protocol):
    """Protocol for delivering a successful authentication result."""

    def dispatch(self, event: Any, identity: Identity) -> Any:
        """
        Deliver the identity without blocking the caller.

        Args:
            event: DeliveryEvent naming the artifact family
            identity: Authenticated identity
        """
        ...


class RealtimeHandle(Protocol):
    """Protocol for a real-time messaging server (e.g. a Socket.IO server)."""

    def emit(self, event: str, data: Dict[str, Any]) -> Any:
        """Emit an event to connected clients. May return an awaitable."""
        ...
