"""
Session persistence adapters.

Adapters implement a full-snapshot contract: ``save`` replaces whatever was
stored with the given sessions and ``load`` returns the last saved set.
"""

import json
import logging
from typing import Dict, Protocol

from ..session.models import Session

logger = logging.getLogger(__name__)


class SessionPersistence(Protocol):
    """Protocol for session snapshot storage."""

    async def save(self, sessions: Dict[str, Session]) -> None:
        ...

    async def load(self) -> Dict[str, Session]:
        ...


class InMemorySessionPersistence:
    """Keeps the last snapshot in process memory."""

    def __init__(self):
        self._snapshot: Dict[str, dict] = {}
        self.save_count = 0

    async def save(self, sessions: Dict[str, Session]) -> None:
        self._snapshot = {sid: s.to_dict() for sid, s in sessions.items()}
        self.save_count += 1

    async def load(self) -> Dict[str, Session]:
        return {sid: Session.from_dict(data) for sid, data in self._snapshot.items()}


class RedisSessionPersistence:
    """Stores the session snapshot as one JSON document in Redis."""

    def __init__(self, redis_client, key: str = "tgauth:sessions"):
        """
        Initialize Redis persistence.

        Args:
            redis_client: Async Redis client
            key: Key holding the JSON snapshot
        """
        self.redis = redis_client
        self.key = key

    async def save(self, sessions: Dict[str, Session]) -> None:
        document = {sid: s.to_dict() for sid, s in sessions.items()}
        await self.redis.set(self.key, json.dumps(document, default=str))

    async def load(self) -> Dict[str, Session]:
        raw = await self.redis.get(self.key)
        if not raw:
            return {}

        sessions = {}
        for sid, data in json.loads(raw).items():
            try:
                sessions[sid] = Session.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                # Skip a corrupt entry rather than losing the whole snapshot
                logger.warning(f"Skipping unreadable session {sid[:4]}...: {e}")
        return sessions
