"""
Telegram Login Widget payload verification.

The widget posts the user's profile fields together with ``auth_date`` and a
``hash``. The hash is an HMAC-SHA256 of the sorted ``key=value`` lines, keyed
with SHA256 of the bot token.
"""

import hashlib
import hmac
import logging
import time
from typing import Any, Callable, Mapping, Optional

from ...config.provider import ConfigurationError
from ..audit import AuditEventType
from ..dispatch import DeliveryEvent
from ..identity import Identity
from .interfaces import AuditRecorder, NullAuditRecorder, ResultSink

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("id", "first_name", "auth_date", "hash")

# Widget data older than this is rejected regardless of signature
MAX_AUTH_AGE = 24 * 60 * 60


def build_check_string(payload: Mapping[str, Any]) -> str:
    """Canonical data-check string: sorted ``key=value`` lines without ``hash``."""
    return "\n".join(
        f"{key}={payload[key]}"
        for key in sorted(payload)
        if key != "hash" and payload[key] not in (None, "")
    )


class SignatureVerifier:
    """Validates login widget payloads against the bot token."""

    def __init__(
        self,
        bot_token: str,
        dispatcher: Optional[ResultSink] = None,
        audit: Optional[AuditRecorder] = None,
        validate_signature: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize widget verifier.

        Args:
            bot_token: Bot token shared with Telegram
            dispatcher: Receives the identity of each accepted payload
            audit: Audit recorder for accepted and rejected payloads
            validate_signature: Disable only for local development
            clock: Time source returning epoch seconds

        Raises:
            ConfigurationError: If bot_token is empty
        """
        if not bot_token:
            raise ConfigurationError("bot_token is required for widget verification")

        self._secret_key = hashlib.sha256(bot_token.encode()).digest()
        self.dispatcher = dispatcher
        self.audit = audit or NullAuditRecorder()
        self.validate_signature = validate_signature
        self._clock = clock

    def compute_hash(self, payload: Mapping[str, Any]) -> str:
        """Hex HMAC-SHA256 of the payload's check string."""
        check_string = build_check_string(payload)
        return hmac.new(self._secret_key, check_string.encode(), hashlib.sha256).hexdigest()

    def check_signature(self, payload: Mapping[str, Any]) -> bool:
        """Whether the payload's ``hash`` matches its contents."""
        supplied = payload.get("hash")
        if not isinstance(supplied, str):
            return False
        return hmac.compare_digest(self.compute_hash(payload), supplied.lower())

    def rejection_reason(self, payload: Any) -> Optional[str]:
        """
        Check a payload without side effects.

        Returns:
            None if the payload is acceptable, otherwise a short reason
        """
        if not isinstance(payload, Mapping):
            return "not_an_object"

        for name in REQUIRED_FIELDS:
            if payload.get(name) in (None, ""):
                return f"missing_{name}"

        try:
            auth_date = int(payload["auth_date"])
        except (TypeError, ValueError):
            return "bad_auth_date"

        if self._clock() - auth_date > MAX_AUTH_AGE:
            return "expired"

        if self.validate_signature and not self.check_signature(payload):
            return "bad_signature"

        return None

    async def verify(self, payload: Any) -> Optional[Identity]:
        """
        Verify a widget payload and deliver the identity.

        Args:
            payload: Mapping posted by the widget

        Returns:
            The Identity on success, None if the payload is rejected
        """
        reason = self.rejection_reason(payload)
        if reason is not None:
            logger.warning(f"Rejected widget payload: {reason}")
            await self.audit.record(AuditEventType.WIDGET_INVALID, metadata={"reason": reason})
            return None

        extra = {
            key: value
            for key, value in payload.items()
            if key not in ("id", "first_name", "last_name", "username", "language_code", "photo_url", "hash")
        }
        raw_id = payload["id"]
        identity = Identity(
            id=int(raw_id) if str(raw_id).lstrip("-").isdigit() else raw_id,
            first_name=payload["first_name"],
            last_name=payload.get("last_name"),
            username=payload.get("username"),
            language_code=payload.get("language_code"),
            photo_url=payload.get("photo_url"),
            extra=extra,
        )

        if self.dispatcher is not None:
            self.dispatcher.dispatch(DeliveryEvent.WIDGET, identity)

        logger.info(f"User {identity.id} authenticated via widget")
        await self.audit.record(AuditEventType.WIDGET_SUCCESS, identity)
        return identity
