"""
Session Module - Black Box Interface

Purpose: Manage authenticated user session lifecycle
Interface: create(), get(), update(), delete(), clear_for_identity(), sweep()
Hidden: Sliding expiry, snapshot persistence, background sweeping

Replaceable with any session backend (database, in-memory, distributed cache).
"""

from .models import Session
from .session import SessionStore

__all__ = ["Session", "SessionStore"]
