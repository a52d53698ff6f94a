# Integration Module
"""
Security audit trail for the transfer layer.

All events are recorded with privacy-preserving principal hashes.
"""

from .event_logger import (
    EventType,
    SecurityEvent,
    EventLogger,
    AuditChainError,
    get_principal_hash,
)

__all__ = [
    'EventType',
    'SecurityEvent',
    'EventLogger',
    'AuditChainError',
    'get_principal_hash',
]
