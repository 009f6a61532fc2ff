import asyncio
import logging
import secrets
import time
from typing import Any, Callable, Dict, List, Optional, Set

from ...config.provider import SessionConfig
from ..audit import AuditEventType, AuditRecorder, NullAuditRecorder, mask
from ..identity import Identity
from .models import Session

logger = logging.getLogger(__name__)


def default_session_id() -> str:
    return secrets.token_urlsafe(32)


class SessionStore:
    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        persistence=None,
        audit: Optional[AuditRecorder] = None,
        id_generator: Callable[[], str] = default_session_id,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize session store.

        Args:
            config: Session lifetime and sweep interval (seconds)
            persistence: Adapter with async save(sessions) / load(); None keeps
                sessions in memory only
            audit: Audit recorder for session transitions
            id_generator: Produces new session ids
            clock: Time source returning epoch seconds
        """
        self.config = config or SessionConfig()
        self.persistence = persistence
        self.audit = audit or NullAuditRecorder()
        self.id_generator = id_generator
        self._clock = clock

        self._sessions: Dict[str, Session] = {}
        self._save_lock = asyncio.Lock()
        self._pending_saves: Set[asyncio.Task] = set()
        self._sweeper: Optional[asyncio.Task] = None
        self._sweeping = False

    async def start(self) -> None:
        """
        Load the persisted snapshot and start the background sweep.

        Logic:
        1. Load prior sessions (failures leave the store empty)
        2. Schedule the periodic sweep task
        """
        await self.load()
        if self._sweeper is None:
            self._sweeper = asyncio.create_task(self._sweep_loop())
        logger.info(f"Session store started with {len(self._sessions)} sessions")

    async def stop(self) -> None:
        """Stop the background sweep and wait for pending saves."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        await self.flush()

    async def load(self) -> int:
        """
        Repopulate state from the persistence adapter.

        Sessions already created in this process win over loaded ones.

        Returns:
            Number of sessions loaded
        """
        if self.persistence is None:
            return 0

        try:
            loaded = await self.persistence.load()
        except Exception as e:
            logger.error(f"Failed to load sessions, starting empty: {e}")
            return 0

        count = 0
        for session_id, session in (loaded or {}).items():
            if session_id not in self._sessions:
                self._sessions[session_id] = session
                count += 1
        return count

    def _is_expired(self, session: Session, now: Optional[float] = None) -> bool:
        now = self._clock() if now is None else now
        return now - session.last_activity > self.config.lifetime

    async def create(self, identity: Identity, metadata: Optional[Dict[str, Any]] = None) -> Session:
        """
        Create a session for an authenticated identity.

        Args:
            identity: Identity the session belongs to (copied)
            metadata: Optional initial metadata

        Returns:
            The new session
        """
        now = self._clock()
        session = Session(
            id=self.id_generator(),
            identity=identity.copy(),
            created_at=now,
            last_activity=now,
            metadata=dict(metadata or {}),
        )
        self._sessions[session.id] = session
        self._persist()

        await self.audit.record(
            AuditEventType.SESSION_CREATED, identity, {"session_id": mask(session.id)}
        )
        return session.copy()

    async def get(self, session_id: str) -> Optional[Session]:
        """
        Get a live session and extend its life.

        Args:
            session_id: Session identifier

        Returns:
            Session copy, or None if unknown or expired
        """
        session = self._sessions.get(session_id)
        if session is None:
            return None

        now = self._clock()
        if self._is_expired(session, now):
            await self._expire(session)
            return None

        session.last_activity = max(session.last_activity, now)
        self._persist()

        await self.audit.record(
            AuditEventType.SESSION_ACCESSED, session.identity, {"session_id": mask(session_id)}
        )
        return session.copy()

    async def update(self, session_id: str, metadata: Dict[str, Any]) -> bool:
        """
        Merge ``metadata`` into a live session and refresh its activity.

        Returns:
            True if the session exists and was updated
        """
        session = self._sessions.get(session_id)
        if session is None:
            return False

        now = self._clock()
        if self._is_expired(session, now):
            await self._expire(session)
            return False

        session.metadata.update(metadata)
        session.last_activity = max(session.last_activity, now)
        self._persist()

        await self.audit.record(
            AuditEventType.SESSION_UPDATED,
            session.identity,
            {"session_id": mask(session_id), "keys": sorted(metadata)},
        )
        return True

    async def delete(self, session_id: str) -> bool:
        """
        Delete a session.

        Returns:
            True if a live session was removed
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False

        self._persist()
        await self.audit.record(
            AuditEventType.SESSION_DELETED, session.identity, {"session_id": mask(session_id)}
        )
        return not self._is_expired(session)

    async def clear_for_identity(self, identity_id: Any) -> int:
        """
        Delete every session belonging to ``identity_id``.

        Returns:
            Number of live sessions removed
        """
        now = self._clock()
        removed = [
            session
            for session in self._sessions.values()
            if str(session.identity.id) == str(identity_id)
        ]
        for session in removed:
            del self._sessions[session.id]

        if removed:
            self._persist()
            for session in removed:
                await self.audit.record(
                    AuditEventType.SESSION_DELETED, session.identity, {"session_id": mask(session.id)}
                )

        return sum(1 for session in removed if not self._is_expired(session, now))

    async def sweep(self) -> int:
        """
        Remove expired sessions and persist once if anything changed.

        Skipped (returns 0) while another sweep is still running.

        Returns:
            Number of sessions removed
        """
        if self._sweeping:
            return 0

        self._sweeping = True
        try:
            now = self._clock()
            expired = [s for s in self._sessions.values() if self._is_expired(s, now)]
            for session in expired:
                del self._sessions[session.id]

            if expired:
                self._persist()
                logger.info(f"Swept {len(expired)} expired sessions")
                for session in expired:
                    await self.audit.record(
                        AuditEventType.SESSION_EXPIRED,
                        session.identity,
                        {"session_id": mask(session.id)},
                    )
            return len(expired)
        finally:
            self._sweeping = False

    def active_sessions(self) -> List[Session]:
        """Copies of all sessions that have not expired."""
        now = self._clock()
        return [s.copy() for s in self._sessions.values() if not self._is_expired(s, now)]

    def __len__(self) -> int:
        return len(self._sessions)

    async def flush(self) -> None:
        """Wait for scheduled saves to complete."""
        while self._pending_saves:
            await asyncio.gather(*list(self._pending_saves), return_exceptions=True)

    async def _expire(self, session: Session) -> None:
        self._sessions.pop(session.id, None)
        self._persist()
        await self.audit.record(
            AuditEventType.SESSION_EXPIRED, session.identity, {"session_id": mask(session.id)}
        )

    def _persist(self) -> None:
        """Schedule a best-effort save of the current snapshot."""
        if self.persistence is None:
            return

        snapshot = {session_id: s.copy() for session_id, s in self._sessions.items()}
        task = asyncio.get_running_loop().create_task(self._save(snapshot))
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)

    async def _save(self, snapshot: Dict[str, Session]) -> None:
        async with self._save_lock:
            try:
                await self.persistence.save(snapshot)
            except Exception as e:
                logger.error(f"Failed to persist {len(snapshot)} sessions: {e}")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.sweep_interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Session sweep failed: {e}")
