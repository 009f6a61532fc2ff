"""
Authentication Module - Black Box Interface

Purpose: Issue and verify Telegram login artifacts
Interface: ArtifactStore.generate()/redeem(), ChallengeStore.start()/verify(),
           SignatureVerifier.verify(), TelegramAuthFactory.build()
Hidden: Token formats, code generation, signature canonicalization

This module can be completely replaced with any other auth implementation
without affecting the session, dispatch or audit modules.
"""

from .artifact import (
    Artifact,
    ArtifactKind,
    ArtifactSpaceExhausted,
    ArtifactStore,
    DeeplinkAuth,
)
from .challenge import Challenge, ChallengeStore
from .factory import TelegramAuthFactory
from .service import AuthResult, TelegramAuth
from .widget import SignatureVerifier

__all__ = [
    "Artifact",
    "ArtifactKind",
    "ArtifactSpaceExhausted",
    "ArtifactStore",
    "AuthResult",
    "Challenge",
    "ChallengeStore",
    "DeeplinkAuth",
    "SignatureVerifier",
    "TelegramAuth",
    "TelegramAuthFactory",
]
