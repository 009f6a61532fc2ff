"""
Audit Module - Black Box Interface

Purpose: Record every authentication and session transition
Interface: AuditService.record(), AuditService.get_events()
Hidden: Event storage (memory, Redis), serialization, retention

Replaceable with any object exposing an async record() that never raises.
"""

from .audit import (
    AuditEventType,
    AuditRecorder,
    AuditService,
    MemoryAuditStorage,
    NullAuditRecorder,
    RedisAuditStorage,
    mask,
)

__all__ = [
    "AuditEventType",
    "AuditRecorder",
    "AuditService",
    "MemoryAuditStorage",
    "NullAuditRecorder",
    "RedisAuditStorage",
    "mask",
]
