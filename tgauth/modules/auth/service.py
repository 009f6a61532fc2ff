"""
Authentication Service Facade following Black Box Design principles.

This module provides:
- A single object exposing every enabled authentication method
- Standardized authentication results
- Lifecycle hooks for the host (start/shutdown)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional

from ..audit import AuditService
from ..dispatch import ResultDispatcher
from ..identity import Identity
from ..session import Session, SessionStore
from .artifact import ArtifactStore, DeeplinkAuth
from .challenge import ChallengeStore
from .widget import SignatureVerifier

logger = logging.getLogger(__name__)


@dataclass
class AuthResult:
    """Standardized authentication result."""
    ok: bool
    identity: Optional[Identity] = None
    method: Optional[Literal["deeplink", "code", "widget", "2fa"]] = None
    session_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class TelegramAuth:
    """
    Facade over the composed authentication stack.

    Methods that are disabled in configuration are None.
    """
    sessions: SessionStore
    dispatcher: ResultDispatcher
    audit: AuditService
    deeplink: Optional[DeeplinkAuth] = None
    code: Optional[ArtifactStore] = None
    widget: Optional[SignatureVerifier] = None
    two_fa: Optional[ChallengeStore] = None

    async def start(self) -> None:
        """Load persisted sessions and start background sweeping."""
        await self.sessions.start()

    async def shutdown(self) -> None:
        """Stop sweeping, flush session saves and finish pending deliveries."""
        await self.sessions.stop()
        await self.dispatcher.drain()

    async def redeem(self, method: str, value: str, identity: Identity) -> AuthResult:
        """
        Redeem a deeplink token or login code presented by the bot.

        Args:
            method: "deeplink" or "code"
            value: Token or code
            identity: Telegram user presenting it
        """
        store = self.deeplink if method == "deeplink" else self.code if method == "code" else None
        if store is None:
            return AuthResult(ok=False, error=f"Method {method} is not enabled")

        if not await store.redeem(value, identity):
            return AuthResult(ok=False, error="Invalid or already used")

        session = await self.sessions.create(identity, {"method": method})
        return AuthResult(ok=True, identity=identity, method=method, session_id=session.id)

    async def authenticate_widget(self, payload: Dict[str, Any]) -> AuthResult:
        """Verify login widget data and open a session for the user."""
        if self.widget is None:
            return AuthResult(ok=False, error="Widget authentication is not enabled")

        identity = await self.widget.verify(payload)
        if identity is None:
            return AuthResult(ok=False, error="Invalid widget data")

        session = await self.sessions.create(identity, {"method": "widget"})
        return AuthResult(ok=True, identity=identity, method="widget", session_id=session.id)

    async def verify_two_factor(self, subject_id: Any, code: str) -> AuthResult:
        """Verify a 2FA code and open a session for the subject."""
        if self.two_fa is None:
            return AuthResult(ok=False, error="Two-factor authentication is not enabled")

        identity = await self.two_fa.verify_identity(subject_id, code)
        if identity is None:
            return AuthResult(ok=False, error="Invalid or expired code")

        session = await self.sessions.create(identity, {"method": "2fa"})
        return AuthResult(ok=True, identity=identity, method="2fa", session_id=session.id)

    async def check_session(self, session_id: str) -> Optional[Session]:
        """Return the live session for ``session_id``, extending its life."""
        return await self.sessions.get(session_id)
