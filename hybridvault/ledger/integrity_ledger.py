"""
Integrity Ledger Module

JSON-backed store of artifact records, kept apart from any user-account
database so that compromising one does not expose the other.

Each record holds the per-artifact HMAC key and value needed to re-verify
the stored plaintext later.

Concurrency:
- Every mutation is read-all / mutate / write-all under one process-wide
  lock, so concurrent uploads and deletes cannot lose updates
- The file is replaced atomically (temp file + rename)
"""

import json
import logging
import os
import secrets
import tempfile
import threading
import time
from dataclasses import dataclass, asdict, replace
from pathlib import Path
from typing import List, Optional, Dict, Any, Union


logger = logging.getLogger(__name__)

# Fields that identify, locate or verify an artifact and can never change.
# owner_principal, id and filename derive the on-disk path.
IMMUTABLE_FIELDS = (
    'id', 'owner_principal', 'filename', 'created_at', 'integrity_hash', 'integrity_key',
)


class LedgerError(Exception):
    """Raised when the ledger file is unreadable or a write is rejected."""
    pass


@dataclass(frozen=True)
class ArtifactRecord:
    """
    Immutable ledger entry for one stored artifact.

    integrity_key is the artifact's own HMAC key (hex); integrity_hash is
    HMAC-SHA256(plaintext, integrity_key) (hex).
    """
    id: str
    filename: str
    filetype: str
    integrity_hash: str
    integrity_key: str
    owner_principal: str
    source_principal: str
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ArtifactRecord':
        return cls(
            id=data['id'],
            filename=data['filename'],
            filetype=data['filetype'],
            integrity_hash=data['integrity_hash'],
            integrity_key=data['integrity_key'],
            owner_principal=data['owner_principal'],
            source_principal=data['source_principal'],
            created_at=data['created_at'],
        )

    def summary(self) -> Dict[str, str]:
        """Listing view without integrity material."""
        return {
            'id': self.id,
            'filename': self.filename,
            'filetype': self.filetype,
            'uploadedAt': self.created_at,
            'uploadedBy': self.source_principal,
            'uploadedFor': self.owner_principal,
        }

    def __repr__(self) -> str:
        return (
            f"ArtifactRecord(id={self.id!r}, filename={self.filename!r}, "
            f"owner={self.owner_principal!r})"
        )


class IntegrityLedger:
    """
    Append-only(-ish) record store.

    Records are created once, may have descriptive fields (filetype,
    source_principal) updated, and are removed by an explicit delete.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_exists(self) -> None:
        if not self._path.exists():
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._save_all([])

    def _load_all(self) -> List[ArtifactRecord]:
        self._ensure_exists()
        try:
            with open(self._path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return [ArtifactRecord.from_dict(item) for item in data]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise LedgerError(f"Ledger file {self._path} is corrupted") from e

    def _save_all(self, records: List[ArtifactRecord]) -> None:
        fd, tmp_path = tempfile.mkstemp(
            prefix='.ledger-', suffix='.tmp', dir=str(self._path.parent)
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump([r.to_dict() for r in records], f, indent=2)
            os.replace(tmp_path, self._path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_all(self) -> List[ArtifactRecord]:
        with self._lock:
            return self._load_all()

    def get_by_id(self, record_id: str) -> Optional[ArtifactRecord]:
        for record in self.get_all():
            if record.id == record_id:
                return record
        return None

    def get_by_owner(self, principal: str) -> List[ArtifactRecord]:
        """Records whose artifact is intended for this principal."""
        return [r for r in self.get_all() if r.owner_principal == principal]

    def get_by_source(self, principal: str) -> List[ArtifactRecord]:
        """Records uploaded by this principal (or external sender)."""
        return [r for r in self.get_all() if r.source_principal == principal]

    # ------------------------------------------------------------------
    # Mutations (serialized)
    # ------------------------------------------------------------------

    def create(self, record: ArtifactRecord) -> ArtifactRecord:
        """
        Append a new record.

        Raises:
            LedgerError: If a record with the same id already exists
        """
        with self._lock:
            records = self._load_all()
            if any(r.id == record.id for r in records):
                raise LedgerError(f"Duplicate artifact id: {record.id}")
            records.append(record)
            self._save_all(records)
        logger.debug("Ledger record created: %s", record.id)
        return record

    def update(self, record_id: str, **changes) -> Optional[ArtifactRecord]:
        """
        Replace selected fields of a record.

        Returns:
            The updated record, or None if no record has this id

        Raises:
            LedgerError: On an attempt to change a field in IMMUTABLE_FIELDS
        """
        forbidden = [name for name in changes if name in IMMUTABLE_FIELDS]
        if forbidden:
            raise LedgerError(f"Cannot change immutable fields: {', '.join(forbidden)}")

        with self._lock:
            records = self._load_all()
            for index, record in enumerate(records):
                if record.id == record_id:
                    try:
                        records[index] = replace(record, **changes)
                    except TypeError as e:
                        raise LedgerError(f"Unknown record field in {sorted(changes)}") from e
                    self._save_all(records)
                    return records[index]
        return None

    def delete(self, record_id: str) -> bool:
        """Remove a record. Returns False if it did not exist."""
        with self._lock:
            records = self._load_all()
            remaining = [r for r in records if r.id != record_id]
            if len(remaining) == len(records):
                return False
            self._save_all(remaining)
        logger.debug("Ledger record deleted: %s", record_id)
        return True

    @staticmethod
    def generate_id(prefix: str = 'file') -> str:
        """Unique record id: <prefix>_<unix ms>_<random hex>."""
        return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(6)}"

    def __len__(self) -> int:
        return len(self.get_all())
