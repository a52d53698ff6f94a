"""
Transfer Service

Orchestrates artifact lifecycle across the ledger and the file store:

    Uploading -> Stored -> (Verified | Contaminated) -> Deleted

Upload writes the ledger record first, then the file; if the file write
fails the record is rolled back. A record without a file is tolerated and
reported as NotFoundOnDisk; a file without a record is never left behind.

Every artifact gets its own freshly generated HMAC key. The transport MAC
key authenticates envelopes in flight only and is never used at rest.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Union

from ..auth.principal import Principal, is_admin, may_access, may_delete
from ..config import UPLOADS_PRINCIPAL, EXTERNAL_SOURCE
from ..core_crypto.engine import compute_mac, generate_mac_key, verify_mac
from ..files.file_store import FileStore, FileStoreError, StoredFileNotFound, UnsafePathError
from ..integration.event_logger import EventLogger
from ..keys.key_store import KeyStore, KeyStoreError
from ..ledger.integrity_ledger import ArtifactRecord, IntegrityLedger, LedgerError
from .envelope import TransferEnvelope
from .errors import (
    AccessDenied,
    IntegrityViolation,
    KeyUnwrapError,
    NotFoundOnDisk,
    PayloadDecryptError,
    RecordNotFound,
    StorageError,
    TransferError,
    ValidationError,
)
from .protocol import HybridTransferProtocol


logger = logging.getLogger(__name__)

# User-facing integrity verdicts
NO_CONTAMINATION = "No contamination detected"
CONTAMINATED = "Contaminated"


def verdict(verified: bool) -> str:
    return NO_CONTAMINATION if verified else CONTAMINATED


class ArtifactState(Enum):
    UPLOADING = "uploading"
    STORED = "stored"
    VERIFIED = "verified"
    CONTAMINATED = "contaminated"
    DELETED = "deleted"


@dataclass
class DownloadResult:
    """
    Plaintext plus its at-rest verification outcome.

    Callers must treat verified == False as untrusted content and surface
    it as contaminated.
    """
    record: ArtifactRecord
    plaintext: bytes
    verified: bool

    @property
    def filename(self) -> str:
        return self.record.filename

    @property
    def verdict(self) -> str:
        return verdict(self.verified)

    @property
    def state(self) -> ArtifactState:
        return ArtifactState.VERIFIED if self.verified else ArtifactState.CONTAMINATED


@dataclass
class IntegrityReport:
    artifact_id: str
    valid: bool
    message: str


def _filetype(filename: str) -> str:
    ext = os.path.splitext(filename)[1].lower()
    return ext or 'unknown'


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TransferService:
    """
    Upload, download, verify and delete artifacts.

    Example:
        >>> service = TransferService(ledger, file_store, key_store)
        >>> record = service.upload(b"quarterly numbers", "q3.txt", "alice", "bob")
        >>> result = service.download(record.id, Principal("alice"))
        >>> result.verdict
        'No contamination detected'
    """

    def __init__(self, ledger: IntegrityLedger, file_store: FileStore,
                 key_store: Optional[KeyStore] = None,
                 event_logger: Optional[EventLogger] = None,
                 uploads_principal: str = UPLOADS_PRINCIPAL,
                 external_source: str = EXTERNAL_SOURCE):
        self._ledger = ledger
        self._files = file_store
        self._key_store = key_store
        self._audit = event_logger or EventLogger()
        self._uploads_principal = uploads_principal
        self._external_source = external_source

    @property
    def uploads_principal(self) -> str:
        return self._uploads_principal

    @property
    def event_logger(self) -> EventLogger:
        return self._audit

    # ========================================================================
    # Upload
    # ========================================================================

    def upload(self, plaintext: bytes, filename: str, owner_principal: str,
               source_principal: str, id_prefix: str = 'file') -> ArtifactRecord:
        """
        Store plaintext for an owner and record its integrity data.

        Args:
            plaintext: File content
            filename: Original filename
            owner_principal: Principal the artifact is intended for
            source_principal: Uploading admin or external sender

        Returns:
            The created ArtifactRecord

        Raises:
            ValidationError: Bad arguments or unsafe names
            StorageError: Ledger or disk failure (rolled back where possible)
        """
        if not isinstance(plaintext, (bytes, bytearray)):
            raise ValidationError("File content must be bytes")
        for value, what in ((filename, 'filename'), (owner_principal, 'owner'),
                            (source_principal, 'source')):
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"Missing {what}")

        plaintext = bytes(plaintext)
        integrity_key = generate_mac_key()
        record = ArtifactRecord(
            id=self._ledger.generate_id(id_prefix),
            filename=filename,
            filetype=_filetype(filename),
            integrity_hash=compute_mac(plaintext, integrity_key).hex(),
            integrity_key=integrity_key.hex(),
            owner_principal=owner_principal,
            source_principal=source_principal,
            created_at=_now_iso(),
        )

        try:
            self._files.path_for(owner_principal, record.id, filename)
        except UnsafePathError as e:
            raise ValidationError(str(e)) from e

        # Uploading: record first, so a failure never leaves an unrecorded file
        try:
            self._ledger.create(record)
        except (LedgerError, OSError) as e:
            raise StorageError("Could not write ledger record") from e

        try:
            self._files.write(owner_principal, record.id, filename, plaintext)
        except (OSError, FileStoreError) as e:
            self._rollback(record, e)

        self._audit.log_artifact_stored(record.id, owner_principal, source_principal,
                                        len(plaintext))
        logger.info("Stored artifact %s for %s (%d bytes)", record.id,
                    owner_principal, len(plaintext))
        return record

    def _rollback(self, record: ArtifactRecord, cause: Exception) -> None:
        try:
            self._ledger.delete(record.id)
        except (LedgerError, OSError) as e:
            logger.error("Rollback of %s failed; ledger record has no file", record.id)
            raise StorageError(
                f"File write failed and rollback failed for {record.id}"
            ) from e
        self._audit.log_upload_rolled_back(record.id, record.source_principal,
                                           type(cause).__name__)
        raise StorageError("File write failed; upload rolled back") from cause

    def receive_envelope(self, envelope: Union[TransferEnvelope, Dict]) -> ArtifactRecord:
        """
        Accept an external submission and store it under the uploads sentinel.

        Raises:
            ValidationError: Missing envelope fields
            IntegrityViolation: Transport MAC mismatch (nothing decrypted)
            KeyUnwrapError / PayloadDecryptError: Decryption failures
            StorageError: Persisting the plaintext failed
        """
        if not isinstance(envelope, TransferEnvelope):
            envelope = TransferEnvelope.from_dict(envelope)
        if self._key_store is None:
            raise TransferError("No key store configured for receiving envelopes")

        sender = envelope.sender_info or self._external_source
        try:
            protocol = HybridTransferProtocol(self._key_store.key_pair,
                                              self._key_store.transport_mac_key)
        except KeyStoreError as e:
            raise StorageError("Key material unavailable") from e

        try:
            plaintext = protocol.unpack(envelope)
        except IntegrityViolation:
            self._audit.log_integrity_violation(envelope.filename, sender)
            raise
        except (KeyUnwrapError, PayloadDecryptError) as e:
            self._audit.log_decryption_failed(envelope.filename, sender, e.kind)
            logger.warning("Envelope %r rejected: %s", envelope.filename, e.kind)
            raise

        self._audit.log_envelope_accepted(envelope.filename, sender, len(plaintext))
        return self.upload(plaintext, envelope.filename, self._uploads_principal,
                           sender, id_prefix='ext')

    # ========================================================================
    # Download / verify
    # ========================================================================

    def _get_record(self, artifact_id: str) -> Optional[ArtifactRecord]:
        try:
            return self._ledger.get_by_id(artifact_id)
        except (LedgerError, OSError) as e:
            raise StorageError("Could not read ledger") from e

    def _read_bytes(self, record: ArtifactRecord) -> bytes:
        try:
            return self._files.read(record.owner_principal, record.id, record.filename)
        except StoredFileNotFound as e:
            logger.error("Artifact %s has a ledger record but no file on disk", record.id)
            raise NotFoundOnDisk("File not found on disk") from e
        except (OSError, FileStoreError) as e:
            raise StorageError("Could not read stored file") from e

    @staticmethod
    def _verify(record: ArtifactRecord, data: bytes) -> bool:
        try:
            key = bytes.fromhex(record.integrity_key)
            expected = bytes.fromhex(record.integrity_hash)
        except ValueError:
            return False
        return verify_mac(data, key, expected)

    def download(self, artifact_id: str, requester: Principal) -> DownloadResult:
        """
        Fetch an artifact and re-verify it against the ledger.

        Raises:
            RecordNotFound: No record with this id
            AccessDenied: Requester is not allowed to read it
            NotFoundOnDisk: Record exists but the file is missing
        """
        record = self._get_record(artifact_id)
        if record is None:
            raise RecordNotFound("File not found")

        if not may_access(requester, record.owner_principal, self._uploads_principal):
            self._audit.log_access_denied(artifact_id, requester.principal_id, 'download')
            raise AccessDenied("Access denied")

        data = self._read_bytes(record)
        verified = self._verify(record, data)

        self._audit.log_download(artifact_id, requester.principal_id, verified)
        if not verified:
            logger.warning("Artifact %s failed integrity verification", artifact_id)

        return DownloadResult(record=record, plaintext=data, verified=verified)

    def check_integrity(self, artifact_id: str) -> IntegrityReport:
        """Verify a stored artifact without returning its bytes."""
        record = self._get_record(artifact_id)
        if record is None:
            return IntegrityReport(artifact_id, False, "File not found")
        try:
            data = self._read_bytes(record)
        except NotFoundOnDisk:
            return IntegrityReport(artifact_id, False, "File not found on disk")

        valid = self._verify(record, data)
        return IntegrityReport(artifact_id, valid, verdict(valid))

    # ========================================================================
    # Delete
    # ========================================================================

    def delete(self, artifact_id: str, actor: Principal) -> bool:
        """
        Remove an artifact's file and ledger record.

        Both removals are attempted even if the first one fails.

        Returns:
            False if no such record exists

        Raises:
            AccessDenied: The delete policy rejects the actor
            StorageError: One of the removals failed
        """
        record = self._get_record(artifact_id)
        if record is None:
            return False

        if not may_delete(actor, record.owner_principal, record.source_principal):
            self._audit.log_access_denied(artifact_id, actor.principal_id, 'delete')
            raise AccessDenied("Only administrators can delete files")

        errors: List[Exception] = []
        file_removed = False
        record_removed = False

        try:
            file_removed = self._files.remove(record.owner_principal, record.id, record.filename)
        except (OSError, FileStoreError) as e:
            errors.append(e)

        try:
            record_removed = self._ledger.delete(record.id)
        except (LedgerError, OSError) as e:
            errors.append(e)

        self._audit.log_artifact_deleted(artifact_id, actor.principal_id, file_removed)

        if errors:
            logger.error("Delete of %s incomplete: %s", artifact_id,
                         ', '.join(type(e).__name__ for e in errors))
            raise StorageError(f"Delete of {artifact_id} incomplete") from errors[0]

        logger.info("Deleted artifact %s", artifact_id)
        return record_removed

    # ========================================================================
    # Listings (summaries only, never integrity keys)
    # ========================================================================

    def list_for(self, principal: str) -> List[Dict[str, str]]:
        return [r.summary() for r in self._ledger.get_by_owner(principal)]

    def list_external(self) -> List[Dict[str, str]]:
        return self.list_for(self._uploads_principal)

    def list_all(self, actor: Principal) -> List[Dict[str, str]]:
        """Admin-wide view."""
        if not is_admin(actor):
            raise AccessDenied("Admin view requires administrator role")
        return [r.summary() for r in self._ledger.get_all()]
