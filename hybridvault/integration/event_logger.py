"""
Event Logger Module

Security audit trail for file exchange.

Features:
- Key exchange, envelope, storage, download and delete events
- Privacy-preserving principal hashes (SHA-256)
- Tamper-evident trail: every entry is chained to the previous entry hash
- Bounded memory: only the newest max_entries are kept; evicted entries
  roll into the chain head so the retained window still verifies
- Mirrored to the standard logging system

Integrity violations are always recorded and logged at WARNING.
"""

import hashlib
import json
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any, Callable, Deque

from ..config import DEFAULT_AUDIT_MAX_ENTRIES as DEFAULT_MAX_ENTRIES


logger = logging.getLogger(__name__)

# ============================================================================
# Constants
# ============================================================================

EVENT_VERSION = "1.0"
GENESIS_HASH = '0' * 64


# ============================================================================
# Privacy Functions
# ============================================================================

def get_principal_hash(principal: str) -> str:
    """
    SHA-256 of a principal id, so audit entries can be correlated per
    principal without storing the id itself.
    """
    return hashlib.sha256(principal.encode('utf-8')).hexdigest()


def get_principal_hash_short(principal: str) -> str:
    """First 16 hex characters of the principal hash."""
    return get_principal_hash(principal)[:16]


# ============================================================================
# Event Types
# ============================================================================

class EventType(Enum):
    """Security events recorded by the transfer layer."""

    # Key events
    KEY_EXCHANGE = "key_exchange"

    # Envelope events
    ENVELOPE_ACCEPTED = "envelope_accepted"
    INTEGRITY_VIOLATION = "integrity_violation"
    DECRYPTION_FAILED = "decryption_failed"

    # Artifact events
    ARTIFACT_STORED = "artifact_stored"
    UPLOAD_ROLLED_BACK = "upload_rolled_back"
    DOWNLOAD_VERIFIED = "download_verified"
    DOWNLOAD_CONTAMINATED = "download_contaminated"
    ACCESS_DENIED = "access_denied"
    ARTIFACT_DELETED = "artifact_deleted"


WARNING_EVENTS = {
    EventType.INTEGRITY_VIOLATION,
    EventType.DECRYPTION_FAILED,
    EventType.UPLOAD_ROLLED_BACK,
    EventType.DOWNLOAD_CONTAMINATED,
    EventType.ACCESS_DENIED,
}


class AuditChainError(Exception):
    """Raised when the audit trail fails chain validation."""
    pass


# ============================================================================
# Event Structure
# ============================================================================

@dataclass
class SecurityEvent:
    """
    A security event to be logged.

    All principal-identifying information is hashed.
    """
    event_type: EventType
    principal_hash: str
    timestamp: int
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': EVENT_VERSION,
            'type': self.event_type.value,
            'principal': self.principal_hash,
            'time': self.timestamp,
            'iso_time': datetime.fromtimestamp(self.timestamp, tz=timezone.utc).isoformat(),
            'details': self.details,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SecurityEvent':
        return cls(
            event_type=EventType(data['type']),
            principal_hash=data['principal'],
            timestamp=data['time'],
            details=data.get('details', {}),
        )

    def canonical(self) -> str:
        """Compact JSON used for chaining."""
        return json.dumps(self.to_dict(), separators=(',', ':'), sort_keys=True)

    def __str__(self) -> str:
        dt = datetime.fromtimestamp(self.timestamp, tz=timezone.utc)
        return (
            f"[{dt.strftime('%Y-%m-%d %H:%M:%S')}] "
            f"{self.event_type.value} | "
            f"principal:{self.principal_hash[:8]}..."
        )


@dataclass(frozen=True)
class AuditEntry:
    """One link of the audit chain."""
    index: int
    prev_hash: str
    event: SecurityEvent
    hash: str


def compute_entry_hash(index: int, prev_hash: str, event: SecurityEvent) -> str:
    payload = f"{index}|{prev_hash}|{event.canonical()}".encode('utf-8')
    return hashlib.sha256(payload).hexdigest()


# ============================================================================
# Event Logger
# ============================================================================

class EventLogger:
    """
    Hash-chained security audit trail.

    Example:
        >>> audit = EventLogger()
        >>> audit.log_integrity_violation("report.pdf", "partner-x")
        >>> audit.verify_chain()
        True
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._entries: Deque[AuditEntry] = deque(maxlen=max_entries)
        # Hash and index the first retained entry chains from
        self._head_hash = GENESIS_HASH
        self._head_index = 0
        self._next_index = 0
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[SecurityEvent], None]] = []

    def _add_event(self, event: SecurityEvent) -> SecurityEvent:
        with self._lock:
            index = self._next_index
            prev_hash = self._entries[-1].hash if self._entries else self._head_hash
            entry = AuditEntry(
                index=index,
                prev_hash=prev_hash,
                event=event,
                hash=compute_entry_hash(index, prev_hash, event),
            )
            if len(self._entries) == self._entries.maxlen:
                evicted = self._entries[0]
                self._head_hash = evicted.hash
                self._head_index = evicted.index + 1
            self._entries.append(entry)
            self._next_index += 1

        level = logging.WARNING if event.event_type in WARNING_EVENTS else logging.INFO
        logger.log(level, "audit %s %s", event.event_type.value, event.details)

        for callback in self._callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception("Audit callback failed for %s", event.event_type.value)

        return event

    def record(self, event_type: EventType, principal: str,
               **details: Any) -> SecurityEvent:
        """Record an event for a principal (hashed before storage)."""
        event = SecurityEvent(
            event_type=event_type,
            principal_hash=get_principal_hash(principal),
            timestamp=int(time.time()),
            details=details,
        )
        return self._add_event(event)

    def add_callback(self, callback: Callable[[SecurityEvent], None]) -> None:
        """Add a callback to be notified of new events."""
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[SecurityEvent], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    # ========================================================================
    # Transfer Events
    # ========================================================================

    def log_key_exchange(self, requester: str = 'anonymous') -> SecurityEvent:
        """Public key bundle handed out."""
        return self.record(EventType.KEY_EXCHANGE, requester, algo='RSA-2048-OAEP-SHA256')

    def log_envelope_accepted(self, filename: str, sender: str, size: int) -> SecurityEvent:
        return self.record(EventType.ENVELOPE_ACCEPTED, sender, filename=filename, size=size)

    def log_integrity_violation(self, filename: str, sender: str) -> SecurityEvent:
        return self.record(EventType.INTEGRITY_VIOLATION, sender, filename=filename)

    def log_decryption_failed(self, filename: str, sender: str, stage: str) -> SecurityEvent:
        return self.record(EventType.DECRYPTION_FAILED, sender, filename=filename, stage=stage)

    def log_artifact_stored(self, artifact_id: str, owner: str, source: str,
                            size: int) -> SecurityEvent:
        return self.record(
            EventType.ARTIFACT_STORED, source,
            artifact_id=artifact_id,
            owner=get_principal_hash_short(owner),
            size=size,
        )

    def log_upload_rolled_back(self, artifact_id: str, source: str, reason: str) -> SecurityEvent:
        return self.record(EventType.UPLOAD_ROLLED_BACK, source,
                           artifact_id=artifact_id, reason=reason)

    def log_download(self, artifact_id: str, requester: str, verified: bool) -> SecurityEvent:
        event_type = EventType.DOWNLOAD_VERIFIED if verified else EventType.DOWNLOAD_CONTAMINATED
        return self.record(event_type, requester, artifact_id=artifact_id)

    def log_access_denied(self, artifact_id: str, requester: str, action: str) -> SecurityEvent:
        return self.record(EventType.ACCESS_DENIED, requester,
                           artifact_id=artifact_id, action=action)

    def log_artifact_deleted(self, artifact_id: str, actor: str, file_removed: bool) -> SecurityEvent:
        return self.record(EventType.ARTIFACT_DELETED, actor,
                           artifact_id=artifact_id, file_removed=file_removed)

    # ========================================================================
    # Retrieval
    # ========================================================================

    @property
    def length(self) -> int:
        """Entries currently retained."""
        return len(self._entries)

    @property
    def total_recorded(self) -> int:
        """Entries ever recorded, including evicted ones."""
        return self._next_index

    @property
    def max_entries(self) -> int:
        return self._entries.maxlen

    def get_all_events(self) -> List[SecurityEvent]:
        return [entry.event for entry in list(self._entries)]

    def get_events_by_type(self, event_type: EventType) -> List[SecurityEvent]:
        return [e for e in self.get_all_events() if e.event_type == event_type]

    def get_principal_events(self, principal: str) -> List[SecurityEvent]:
        principal_hash = get_principal_hash(principal)
        return [e for e in self.get_all_events() if e.principal_hash == principal_hash]

    def get_recent_events(self, count: int = 10) -> List[SecurityEvent]:
        events = self.get_all_events()
        return events[-count:]

    def verify_chain(self) -> bool:
        """
        Validate every retained link of the trail, starting from the chain
        head left by evicted entries.

        Raises:
            AuditChainError: If an entry was altered, removed or reordered
        """
        with self._lock:
            entries = list(self._entries)
            prev_hash, expected = self._head_hash, self._head_index
        for position, entry in enumerate(entries, start=expected):
            if entry.index != position:
                raise AuditChainError(f"Entry {position} has index {entry.index}")
            if entry.prev_hash != prev_hash:
                raise AuditChainError(f"Entry {position}: previous hash mismatch")
            if compute_entry_hash(entry.index, entry.prev_hash, entry.event) != entry.hash:
                raise AuditChainError(f"Entry {position}: hash mismatch")
            prev_hash = entry.hash
        return True

    def to_json(self) -> str:
        """Export the trail as JSON."""
        return json.dumps([
            {
                'index': entry.index,
                'prev_hash': entry.prev_hash,
                'hash': entry.hash,
                'event': entry.event.to_dict(),
            }
            for entry in self._entries
        ], indent=2)

    @classmethod
    def from_json(cls, json_str: str,
                  max_entries: int = DEFAULT_MAX_ENTRIES) -> 'EventLogger':
        """
        Import a trail and validate it.

        A trail whose first entry is not index 0 is a rolled-over window;
        its first prev_hash becomes the chain head.
        """
        items = json.loads(json_str)
        if len(items) > max_entries:
            raise AuditChainError(f"Trail has {len(items)} entries, limit is {max_entries}")
        audit = cls(max_entries)
        if items and items[0]['index'] > 0:
            audit._head_index = items[0]['index']
            audit._head_hash = items[0]['prev_hash']
        audit._next_index = audit._head_index + len(items)
        for item in items:
            audit._entries.append(AuditEntry(
                index=item['index'],
                prev_hash=item['prev_hash'],
                event=SecurityEvent.from_dict(item['event']),
                hash=item['hash'],
            ))
        audit.verify_chain()
        return audit
