"""
tgauth API data models.

These models define the request and response bodies of the HTTP surface.
Conversion to and from the internal dataclasses happens here so that the
stores never see pydantic objects.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..identity import Identity
from ..session import Session


def _utc(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


class IdentityModel(BaseModel):
    """Telegram user as exchanged over HTTP. Unknown fields are kept."""

    model_config = ConfigDict(extra="allow")

    id: Union[int, str]
    first_name: str = ""
    is_bot: bool = False
    last_name: Optional[str] = None
    username: Optional[str] = None
    language_code: Optional[str] = None
    photo_url: Optional[str] = None

    def to_identity(self) -> Identity:
        return Identity.from_dict(self.model_dump(exclude_none=True))

    @classmethod
    def from_identity(cls, identity: Identity) -> "IdentityModel":
        return cls(**identity.to_dict())


# Request Models (API Input)


class RedeemRequest(BaseModel):
    """Bot request to redeem a deeplink token or login code for a user."""

    method: Literal["deeplink", "code"]
    value: str = Field(..., min_length=1, max_length=128)
    identity: IdentityModel


class TwoFactorStartRequest(BaseModel):
    """Bot request to start a 2FA challenge."""

    subject_id: Union[int, str]
    identity: Optional[IdentityModel] = Field(
        None, description="Identity delivered when the challenge is verified"
    )


class TwoFactorVerifyRequest(BaseModel):
    """Code entered by the user on the web page."""

    subject_id: Union[int, str]
    code: str = Field(..., min_length=1, max_length=32)


# Response Models (API Output)


class DeeplinkResponse(BaseModel):
    """Freshly issued deeplink."""

    token: str
    url: str


class LoginCodeResponse(BaseModel):
    """Freshly issued login code to be sent to the bot."""

    code: str


class TwoFactorStartResponse(BaseModel):
    """Challenge issued for the bot to deliver."""

    subject_id: str
    code: str
    message: str = Field(..., description="Bot message carrying the code")
    expires_at: datetime


class AuthResponse(BaseModel):
    """Successful authentication with the session it opened."""

    ok: bool = True
    method: str
    session_id: str
    identity: IdentityModel


class SessionResponse(BaseModel):
    """Live session details."""

    session_id: str
    identity: IdentityModel
    created_at: datetime
    last_activity: datetime
    expires_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_session(cls, session: Session, lifetime: float) -> "SessionResponse":
        return cls(
            session_id=session.id,
            identity=IdentityModel.from_identity(session.identity),
            created_at=_utc(session.created_at),
            last_activity=_utc(session.last_activity),
            expires_at=_utc(session.last_activity + lifetime),
            metadata=session.metadata,
        )
