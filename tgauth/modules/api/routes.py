"""
Authentication routes.

The router reads the composed TelegramAuth from ``app.state.auth`` so that the
host can build it inside its lifespan.
"""

import hmac
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Request, Response

from ..auth import ArtifactSpaceExhausted, ArtifactStore, AuthResult, TelegramAuth
from .models import (
    AuthResponse,
    DeeplinkResponse,
    IdentityModel,
    LoginCodeResponse,
    RedeemRequest,
    SessionResponse,
    TwoFactorStartRequest,
    TwoFactorStartResponse,
    TwoFactorVerifyRequest,
)

logger = logging.getLogger(__name__)

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def get_auth(request: Request) -> TelegramAuth:
    """Resolve the auth stack, 503 until the host has started it."""
    auth = getattr(request.app.state, "auth", None)
    if auth is None:
        raise HTTPException(503, "Service not initialized")
    return auth


async def verify_bot_secret(
    request: Request,
    secret: Optional[str] = Header(None, alias=SECRET_HEADER),
) -> None:
    """Check the shared secret on bot-facing endpoints. No configured secret keeps them closed."""
    expected = getattr(request.app.state, "webhook_secret", None)
    if not expected:
        logger.error("Rejected bot request: no webhook secret configured")
        raise HTTPException(403, "Bot endpoints are disabled")
    if secret is None or not hmac.compare_digest(secret.encode(), expected.encode()):
        logger.warning("Rejected bot request with missing or wrong secret token")
        raise HTTPException(403, "Invalid secret token")


def _require(method: Any, name: str) -> Any:
    if method is None:
        raise HTTPException(404, f"{name} authentication is not enabled")
    return method


async def _issue(store: ArtifactStore) -> str:
    try:
        return await store.generate()
    except ArtifactSpaceExhausted as e:
        raise HTTPException(503, str(e)) from None


def _auth_response(result: AuthResult) -> AuthResponse:
    if not result.ok:
        raise HTTPException(401, result.error or "Authentication failed")
    return AuthResponse(
        method=result.method,
        session_id=result.session_id,
        identity=IdentityModel.from_identity(result.identity),
    )


def create_auth_router() -> APIRouter:
    """
    Create the authentication router.

    Returns:
        FastAPI router with artifact, widget, 2FA and session endpoints
    """
    router = APIRouter(tags=["auth"])

    @router.get("/auth/deeplink", response_model=DeeplinkResponse)
    async def issue_deeplink(auth: TelegramAuth = Depends(get_auth)):
        """
        Issue a single-use deeplink token.

        Returns:
            200: Token and t.me URL
            404: Deeplink authentication disabled
            503: No unissued token available
        """
        deeplink = _require(auth.deeplink, "Deeplink")
        token = await _issue(deeplink)
        return DeeplinkResponse(token=token, url=deeplink.deeplink_url(token))

    @router.get("/auth/code", response_model=LoginCodeResponse)
    async def issue_code(auth: TelegramAuth = Depends(get_auth)):
        """Issue a single-use login code for the user to send to the bot."""
        code_store = _require(auth.code, "Code")
        return LoginCodeResponse(code=await _issue(code_store))

    @router.post(
        "/auth/redeem",
        response_model=AuthResponse,
        dependencies=[Depends(verify_bot_secret)],
    )
    async def redeem(request: RedeemRequest, auth: TelegramAuth = Depends(get_auth)):
        """
        Redeem a token or code presented to the bot.

        Returns:
            200: Session opened
            401: Unknown, used or expired value
            403: Wrong secret token
            404: Method disabled
        """
        _require(getattr(auth, request.method), request.method.capitalize())
        result = await auth.redeem(request.method, request.value, request.identity.to_identity())
        return _auth_response(result)

    @router.post("/auth/widget", response_model=AuthResponse)
    async def widget_login(
        payload: Dict[str, Any] = Body(...), auth: TelegramAuth = Depends(get_auth)
    ):
        """
        Verify Login Widget data.

        Returns:
            200: Session opened
            401: Missing fields, stale or bad signature
        """
        _require(auth.widget, "Widget")
        return _auth_response(await auth.authenticate_widget(payload))

    @router.post(
        "/auth/2fa/start",
        response_model=TwoFactorStartResponse,
        dependencies=[Depends(verify_bot_secret)],
    )
    async def start_two_factor(
        request: TwoFactorStartRequest, auth: TelegramAuth = Depends(get_auth)
    ):
        """Start a challenge; the bot sends the returned message to the user."""
        two_fa = _require(auth.two_fa, "Two-factor")
        identity = request.identity.to_identity() if request.identity else None
        code = await two_fa.start(request.subject_id, identity)
        challenge = two_fa.get(request.subject_id)
        return TwoFactorStartResponse(
            subject_id=challenge.subject_id,
            code=code,
            message=two_fa.code_message(code),
            expires_at=datetime.fromtimestamp(challenge.expires_at, tz=timezone.utc),
        )

    @router.post("/auth/2fa/verify", response_model=AuthResponse)
    async def verify_two_factor(
        request: TwoFactorVerifyRequest, auth: TelegramAuth = Depends(get_auth)
    ):
        """
        Verify a 2FA code.

        Returns:
            200: Session opened
            401: Wrong, expired or exhausted code
        """
        _require(auth.two_fa, "Two-factor")
        return _auth_response(await auth.verify_two_factor(request.subject_id, request.code))

    @router.get("/sessions/{session_id}", response_model=SessionResponse)
    async def get_session(session_id: str, auth: TelegramAuth = Depends(get_auth)):
        """
        Get a live session and extend its life.

        Returns:
            200: Session details
            404: Session not found or expired
        """
        session = await auth.check_session(session_id)
        if session is None:
            raise HTTPException(404, "Session not found")
        return SessionResponse.from_session(session, auth.sessions.config.lifetime)

    @router.delete("/sessions/{session_id}", status_code=204)
    async def end_session(session_id: str, auth: TelegramAuth = Depends(get_auth)):
        """
        End a session (logout).

        Returns:
            204: Session ended
            404: Session not found
        """
        if not await auth.sessions.delete(session_id):
            raise HTTPException(404, "Session not found")
        return Response(status_code=204)

    return router
