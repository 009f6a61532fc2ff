"""
Audit trail for authentication and session transitions.

Every store receives an AuditService at construction and reports each state
transition through ``record()``. Recording never raises: storage failures are
logged and dropped so that audit problems cannot affect authentication.
"""

import json
import logging
import time
import uuid
from collections import deque
from enum import Enum
from typing import Any, Deque, Dict, Iterable, List, Optional, Protocol

from ..identity import Identity

logger = logging.getLogger(__name__)


class AuditEventType(str, Enum):
    """Kinds of audited events."""

    DEEPLINK_GENERATED = "auth.deeplink.generated"
    DEEPLINK_USED = "auth.deeplink.used"
    DEEPLINK_INVALID = "auth.deeplink.invalid"
    DEEPLINK_EXPIRED = "auth.deeplink.expired"

    CODE_GENERATED = "auth.code.generated"
    CODE_USED = "auth.code.used"
    CODE_INVALID = "auth.code.invalid"
    CODE_EXPIRED = "auth.code.expired"

    WIDGET_SUCCESS = "auth.widget.success"
    WIDGET_INVALID = "auth.widget.invalid"

    TWOFA_INITIATED = "auth.2fa.initiated"
    TWOFA_SUCCESS = "auth.2fa.success"
    TWOFA_FAILED = "auth.2fa.failed"
    TWOFA_RESET = "auth.2fa.reset"

    SESSION_CREATED = "session.created"
    SESSION_ACCESSED = "session.accessed"
    SESSION_UPDATED = "session.updated"
    SESSION_EXPIRED = "session.expired"
    SESSION_DELETED = "session.deleted"

    SECURITY_TOO_MANY_ATTEMPTS = "security.too_many_attempts"


def mask(value: Optional[str], keep: int = 4) -> Optional[str]:
    """Shorten a secret for audit metadata."""
    if value is None:
        return None
    return f"{value[:keep]}..."


class AuditRecorder(Protocol):
    """Protocol for the audit sink every store reports transitions to. Must not raise."""

    async def record(
        self,
        event_type: AuditEventType,
        identity: Optional[Identity] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...


class NullAuditRecorder:
    """Audit recorder that discards every event."""

    async def record(self, event_type, identity=None, metadata=None) -> None:
        return None


class AuditStorage(Protocol):
    """Protocol for audit event backends."""

    async def save_event(self, event: Dict[str, Any]) -> None:
        ...

    async def get_events(self) -> List[Dict[str, Any]]:
        """Return stored events, newest first."""
        ...


class MemoryAuditStorage:
    """Bounded in-memory audit storage (tests and single-process deployments)."""

    def __init__(self, max_events: int = 10000):
        self._events: Deque[Dict[str, Any]] = deque(maxlen=max_events)

    async def save_event(self, event: Dict[str, Any]) -> None:
        self._events.appendleft(dict(event))

    async def get_events(self) -> List[Dict[str, Any]]:
        return list(self._events)

    def clear(self) -> None:
        self._events.clear()


class RedisAuditStorage:
    """Audit storage in a capped Redis list."""

    def __init__(self, redis_client, key: str = "tgauth:audit", max_events: int = 10000):
        """
        Initialize Redis audit storage.

        Args:
            redis_client: Async Redis client
            key: List key holding the audit trail
            max_events: Number of most recent events kept
        """
        self.redis = redis_client
        self.key = key
        self.max_events = max_events

    async def save_event(self, event: Dict[str, Any]) -> None:
        await self.redis.lpush(self.key, json.dumps(event, default=str))
        await self.redis.ltrim(self.key, 0, self.max_events - 1)

    async def get_events(self) -> List[Dict[str, Any]]:
        raw_events = await self.redis.lrange(self.key, 0, -1)
        events = []
        for raw in raw_events:
            try:
                events.append(json.loads(raw))
            except (TypeError, ValueError):
                logger.warning("Skipping unreadable audit entry in %s", self.key)
        return events


class AuditService:
    """
    Records audit events into a pluggable storage backend.

    Constructed once by the host and injected into each store.
    """

    def __init__(self, storage: Optional[AuditStorage] = None, enabled: bool = True, clock=time.time):
        self.storage = storage if storage is not None else MemoryAuditStorage()
        self.enabled = enabled
        self._clock = clock

    async def record(
        self,
        event_type: AuditEventType,
        identity: Optional[Identity] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Record a single audit event.

        Args:
            event_type: Kind of event
            identity: Identity involved, if any
            metadata: Additional event data (secrets must already be masked)
        """
        if not self.enabled:
            return

        event = {
            "event_id": str(uuid.uuid4()),
            "timestamp": self._clock(),
            "type": AuditEventType(event_type).value,
            "user_id": identity.id if identity else None,
            "username": identity.username if identity else None,
            "metadata": metadata or {},
        }

        try:
            await self.storage.save_event(event)
        except Exception as e:
            logger.error(f"Failed to record audit event {event['type']}: {e}")
            return

        logger.debug(f"Audit: {event['type']} user={event['user_id']} {event['metadata']}")

    async def get_events(
        self,
        from_timestamp: Optional[float] = None,
        to_timestamp: Optional[float] = None,
        event_types: Optional[Iterable[AuditEventType]] = None,
        user_id: Optional[Any] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        Query recorded events, newest first.

        Returns:
            Matching events; an empty list if storage is unavailable
        """
        if not self.enabled:
            return []

        try:
            events = await self.storage.get_events()
        except Exception as e:
            logger.error(f"Failed to read audit events: {e}")
            return []

        wanted = {AuditEventType(t).value for t in event_types} if event_types else None

        filtered = [
            event
            for event in events
            if (from_timestamp is None or event["timestamp"] >= from_timestamp)
            and (to_timestamp is None or event["timestamp"] <= to_timestamp)
            and (wanted is None or event["type"] in wanted)
            and (user_id is None or event["user_id"] == user_id)
        ]
        filtered.sort(key=lambda event: event["timestamp"], reverse=True)

        end = None if limit is None else offset + limit
        return filtered[offset:end]
