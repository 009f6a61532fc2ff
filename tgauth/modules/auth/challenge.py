"""
Two-factor challenges delivered through the Telegram bot.

One live challenge exists per subject. ``start`` replaces any previous
challenge and resets its attempt counter; ``verify`` consumes attempts until
the code matches, the challenge expires, or the attempt cap is reached.
"""

import hmac
import logging
import secrets
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional, Union

from ...config.provider import BotSettings, ChallengeConfig
from ..audit import AuditEventType
from ..dispatch import DeliveryEvent
from ..identity import Identity
from .artifact import generate_numeric_code
from .interfaces import AuditRecorder, NullAuditRecorder, ResultSink

logger = logging.getLogger(__name__)

SubjectId = Union[int, str]


@dataclass
class Challenge:
    """Two-factor verification state for one subject."""

    subject_id: str
    code: str
    created_at: float
    expires_at: float
    used: bool = False
    verified: bool = False
    attempts: int = 0
    captured_identity: Optional[Identity] = None


def verified_subject_identity(subject_id: SubjectId) -> Identity:
    """Minimal identity delivered when a challenge was started without one."""
    return Identity(id=subject_id, first_name="Unknown", extra={"twofa_verified": True})


def generate_challenge_code(length: int) -> str:
    """
    Generate a decimal code of ``length`` digits.

    Codes up to 8 digits are a uniform integer in the exact digit range;
    longer codes are drawn digit by digit from the system CSPRNG.
    """
    if length <= 8:
        return generate_numeric_code(length)
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


class ChallengeStore:
    """Two-factor challenge store keyed by subject id."""

    def __init__(
        self,
        dispatcher: ResultSink,
        config: Optional[ChallengeConfig] = None,
        audit: Optional[AuditRecorder] = None,
        bot_settings: Optional[BotSettings] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize challenge store.

        Args:
            dispatcher: Receives the identity of each verified subject
            config: Code length, lifetime and attempt limit
            audit: Audit recorder for state transitions
            bot_settings: Source of the code message template
            clock: Time source returning epoch seconds
        """
        self.dispatcher = dispatcher
        self.config = config or ChallengeConfig()
        self.audit = audit or NullAuditRecorder()
        self.bot_settings = bot_settings
        self._clock = clock
        self._challenges: Dict[str, Challenge] = {}
        self._lock = threading.Lock()

    async def start(self, subject_id: SubjectId, identity: Optional[Identity] = None) -> str:
        """
        Start a new challenge for ``subject_id``, discarding any previous one.

        Args:
            subject_id: Telegram user id being challenged
            identity: Identity delivered on success (optional)

        Returns:
            The generated code
        """
        key = str(subject_id)
        code = generate_challenge_code(self.config.code_length)
        now = self._clock()

        with self._lock:
            self._challenges[key] = Challenge(
                subject_id=key,
                code=code,
                created_at=now,
                expires_at=now + self.config.code_lifetime,
                captured_identity=identity.copy() if identity else None,
            )

        logger.info(f"2FA initiated for user {key}")
        await self.audit.record(AuditEventType.TWOFA_INITIATED, identity, {"subject_id": key})
        return code

    async def verify(self, subject_id: SubjectId, code: str) -> bool:
        """
        Check a code against the subject's live challenge.

        Returns:
            True only for a matching code on an unexpired, unused challenge
            with attempts remaining
        """
        return await self.verify_identity(subject_id, code) is not None

    async def verify_identity(self, subject_id: SubjectId, code: str) -> Optional[Identity]:
        """
        Check a code and return the identity delivered for it.

        Args:
            subject_id: Telegram user id
            code: Code entered by the user

        Returns:
            The dispatched identity on success, None otherwise
        """
        key = str(subject_id)
        reason = None
        attempts = 0

        with self._lock:
            challenge = self._challenges.get(key)
            if challenge is None:
                reason = "not_found"
            elif self._clock() > challenge.expires_at:
                reason = "expired"
            elif challenge.used:
                reason = "used"
            elif challenge.attempts >= self.config.max_attempts:
                reason = "too_many_attempts"
            else:
                challenge.attempts += 1
                attempts = challenge.attempts
                if hmac.compare_digest(challenge.code.encode(), str(code).encode()):
                    challenge.used = True
                    challenge.verified = True
                else:
                    reason = "mismatch"

        if reason == "too_many_attempts":
            logger.warning(f"Too many 2FA attempts for user {key}")
            await self.audit.record(
                AuditEventType.SECURITY_TOO_MANY_ATTEMPTS,
                metadata={"subject_id": key, "attempts": challenge.attempts},
            )
            return None

        if reason is not None:
            logger.warning(f"2FA verification failed for user {key}: {reason}")
            metadata = {"subject_id": key, "reason": reason}
            if reason == "mismatch":
                metadata["attempts"] = attempts
            await self.audit.record(AuditEventType.TWOFA_FAILED, metadata=metadata)
            return None

        identity = challenge.captured_identity or verified_subject_identity(subject_id)
        self.dispatcher.dispatch(DeliveryEvent.TWO_FA, identity)

        logger.info(f"2FA verified successfully for user {key}")
        await self.audit.record(AuditEventType.TWOFA_SUCCESS, identity, {"subject_id": key})
        return identity

    def is_verified(self, subject_id: SubjectId) -> bool:
        """Whether the subject's current challenge has been verified."""
        challenge = self._challenges.get(str(subject_id))
        return challenge.verified if challenge else False

    async def reset(self, subject_id: SubjectId) -> None:
        """Discard the subject's challenge and attempt counter."""
        key = str(subject_id)
        with self._lock:
            self._challenges.pop(key, None)

        logger.info(f"2FA reset for user {key}")
        await self.audit.record(AuditEventType.TWOFA_RESET, metadata={"subject_id": key})

    def get(self, subject_id: SubjectId) -> Optional[Challenge]:
        """Return a copy of the subject's challenge, if any."""
        challenge = self._challenges.get(str(subject_id))
        return replace(challenge) if challenge else None

    def code_message(self, code: str) -> str:
        """Render the bot message that carries ``code`` to the user."""
        default = "Your login code: {code}"
        if self.bot_settings is None:
            return default.replace("{code}", code)
        return self.bot_settings.get_message("two_fa_code", default, code=code)
