# Transfer Module
"""
Hybrid file exchange:
- Envelope packaging (AES-256-CBC + RSA-OAEP + HMAC-SHA256)
- MAC verified BEFORE key unwrap and payload decryption
- Artifact storage with per-artifact integrity keys
- Contamination verdicts on download
"""

from .envelope import TransferEnvelope, REQUIRED_FIELDS
from .errors import (
    TransferError,
    ValidationError,
    IntegrityViolation,
    KeyUnwrapError,
    PayloadDecryptError,
    NotFound,
    RecordNotFound,
    NotFoundOnDisk,
    AccessDenied,
    StorageError,
)
from .protocol import package_for_transfer, unpack_transfer, HybridTransferProtocol
from .sender import build_upload_payload, payload_from_file
from .service import (
    TransferService,
    DownloadResult,
    IntegrityReport,
    ArtifactState,
    NO_CONTAMINATION,
    CONTAMINATED,
    verdict,
)

__all__ = [
    'TransferEnvelope',
    'REQUIRED_FIELDS',
    'package_for_transfer',
    'unpack_transfer',
    'HybridTransferProtocol',
    'build_upload_payload',
    'payload_from_file',
    'TransferService',
    'DownloadResult',
    'IntegrityReport',
    'ArtifactState',
    'NO_CONTAMINATION',
    'CONTAMINATED',
    'verdict',
    'TransferError',
    'ValidationError',
    'IntegrityViolation',
    'KeyUnwrapError',
    'PayloadDecryptError',
    'NotFound',
    'RecordNotFound',
    'NotFoundOnDisk',
    'AccessDenied',
    'StorageError',
]
