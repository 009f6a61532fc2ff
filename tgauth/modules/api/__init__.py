"""
API Module - Black Box Interface

Purpose: HTTP routing over the authentication stack
Interface: create_auth_router(), request/response models
Hidden: Request validation, error responses

The API module only orchestrates - it contains no business logic.
All logic is delegated to the auth and session modules.
"""

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
from .routes import create_auth_router

__all__ = [
    "AuthResponse",
    "DeeplinkResponse",
    "IdentityModel",
    "LoginCodeResponse",
    "RedeemRequest",
    "SessionResponse",
    "TwoFactorStartRequest",
    "TwoFactorStartResponse",
    "TwoFactorVerifyRequest",
    "create_auth_router",
]
