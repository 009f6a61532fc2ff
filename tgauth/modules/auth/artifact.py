"""
Single-use login artifacts: deeplink tokens and numeric login codes.

An artifact is generated on request, handed to the user, and presented back
by the bot together with the user's identity. Redemption succeeds exactly
once. A missing artifact and an already used one are reported the same way so
that callers cannot probe which tokens ever existed.
"""

import logging
import secrets
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, Optional

from ...config.provider import BotSettings
from ..audit import AuditEventType, mask
from ..dispatch import DeliveryEvent
from ..identity import Identity
from .interfaces import AuditRecorder, NullAuditRecorder, ResultSink

logger = logging.getLogger(__name__)

# Draws per generate() before the value space is considered full
MAX_GENERATE_ATTEMPTS = 100


class ArtifactSpaceExhausted(RuntimeError):
    """Raised when no unissued artifact value could be drawn."""


class ArtifactKind(str, Enum):
    """Kinds of single-use artifacts."""

    DEEPLINK = "deeplink"
    CODE = "code"


_EVENTS = {
    ArtifactKind.DEEPLINK: {
        "generated": AuditEventType.DEEPLINK_GENERATED,
        "used": AuditEventType.DEEPLINK_USED,
        "invalid": AuditEventType.DEEPLINK_INVALID,
        "expired": AuditEventType.DEEPLINK_EXPIRED,
    },
    ArtifactKind.CODE: {
        "generated": AuditEventType.CODE_GENERATED,
        "used": AuditEventType.CODE_USED,
        "invalid": AuditEventType.CODE_INVALID,
        "expired": AuditEventType.CODE_EXPIRED,
    },
}


@dataclass
class Artifact:
    """A single-use credential keyed by its own value."""

    value: str
    kind: ArtifactKind
    created_at: float
    used: bool = False
    captured_identity: Optional[Identity] = None


def generate_token() -> str:
    """128-bit hex token for deeplinks."""
    return secrets.token_hex(16)


def generate_numeric_code(length: int) -> str:
    """Uniformly random decimal code of exactly ``length`` digits."""
    low = 10 ** (length - 1)
    high = 10 ** length - 1
    return str(low + secrets.randbelow(high - low + 1))


class ArtifactStore:
    """
    Keyed collection of single-use artifacts of one kind.

    ``lifetime`` is an optional expiry policy in seconds; ``None`` keeps
    artifacts valid until they are used.
    """

    def __init__(
        self,
        kind: ArtifactKind,
        dispatcher: ResultSink,
        audit: Optional[AuditRecorder] = None,
        lifetime: Optional[float] = None,
        code_length: int = 6,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize artifact store.

        Args:
            kind: Artifact kind this store issues
            dispatcher: Receives the identity of each successful redemption
            audit: Audit recorder for state transitions
            lifetime: Seconds an artifact stays redeemable (None = forever)
            code_length: Digits per numeric code (CODE kind only)
            clock: Time source returning epoch seconds
        """
        self.kind = ArtifactKind(kind)
        self.dispatcher = dispatcher
        self.audit = audit or NullAuditRecorder()
        self.lifetime = lifetime
        self.code_length = code_length
        self._clock = clock
        self._artifacts: Dict[str, Artifact] = {}
        self._lock = threading.Lock()

    def _new_value(self) -> str:
        if self.kind is ArtifactKind.DEEPLINK:
            return generate_token()
        return generate_numeric_code(self.code_length)

    async def generate(self) -> str:
        """
        Register a fresh unused artifact.

        Returns:
            The artifact value (token or code)

        Raises:
            ArtifactSpaceExhausted: If every draw hit an already issued value
        """
        with self._lock:
            # Issued values are never reissued, used or not
            for _ in range(MAX_GENERATE_ATTEMPTS):
                value = self._new_value()
                if value not in self._artifacts:
                    break
            else:
                logger.error(
                    f"No free {self.kind.value} value after {MAX_GENERATE_ATTEMPTS} draws "
                    f"({len(self._artifacts)} issued)"
                )
                raise ArtifactSpaceExhausted(f"{self.kind.value} values exhausted")
            self._artifacts[value] = Artifact(value=value, kind=self.kind, created_at=self._clock())

        await self.audit.record(_EVENTS[self.kind]["generated"], metadata={"value": mask(value, 2)})
        return value

    def is_expired(self, artifact: Artifact) -> bool:
        if self.lifetime is None:
            return False
        return self._clock() - artifact.created_at > self.lifetime

    async def redeem(self, value: str, identity: Identity) -> bool:
        """
        Consume an artifact on behalf of ``identity``.

        Args:
            value: Token or code presented by the user
            identity: Identity of the presenting user

        Returns:
            True exactly once per artifact; False for unknown, used or expired values
        """
        expired = False
        with self._lock:
            artifact = self._artifacts.get(value)
            if artifact is None or artifact.used:
                artifact = None
            elif self.is_expired(artifact):
                expired = True
                artifact = None
            else:
                artifact.used = True
                artifact.captured_identity = identity.copy()

        if artifact is None:
            event = "expired" if expired else "invalid"
            logger.warning(f"Rejected {self.kind.value} redemption for user {identity.id}: {event}")
            await self.audit.record(
                _EVENTS[self.kind][event], identity, {"value": mask(value, 2)}
            )
            return False

        self.dispatcher.dispatch(DeliveryEvent.LOGIN, artifact.captured_identity)
        logger.info(f"User {identity.id} authenticated via {self.kind.value}")
        await self.audit.record(_EVENTS[self.kind]["used"], identity, {"value": mask(value, 2)})
        return True

    def invalidate(self, value: str) -> None:
        """Mark an artifact used without dispatching. No-op if absent or used."""
        with self._lock:
            artifact = self._artifacts.get(value)
            if artifact is not None:
                artifact.used = True

    def get(self, value: str) -> Optional[Artifact]:
        """Return a copy of the artifact, if known."""
        artifact = self._artifacts.get(value)
        return replace(artifact) if artifact else None

    def __len__(self) -> int:
        return len(self._artifacts)


class DeeplinkAuth(ArtifactStore):
    """Deeplink artifacts that open the bot with a ``/start <token>`` payload."""

    def __init__(self, bot_settings: BotSettings, dispatcher: ResultSink, **kwargs):
        super().__init__(ArtifactKind.DEEPLINK, dispatcher, **kwargs)
        self.bot_settings = bot_settings

    def deeplink_url(self, token: str) -> str:
        """Telegram link that starts the bot with ``token``."""
        return f"https://t.me/{self.bot_settings.get_bot_username()}?start={token}"

    async def generate_deeplink(self) -> str:
        """Generate a token and return its deeplink URL."""
        return self.deeplink_url(await self.generate())
