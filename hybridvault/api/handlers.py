"""
Transfer Gateway

Framework-free request handlers for the file exchange endpoints. Each
handler takes already-parsed inputs (JSON body, query values, the
authenticated Principal or None) and returns an ApiResponse. Binding them
to an HTTP framework is left to the hosting application.

Endpoints:
    GET    public-key         key exchange bundle (public)
    GET    external/upload    endpoint description (public)
    POST   external/upload    encrypted third-party submission (public)
    POST   files/upload       admin upload for a principal
    GET    files/download     download or verify-only
    DELETE files/delete       admin delete
    GET    files/list         own files, or all files for admins

Responses carry verdict strings and coarse error codes only; key material
and tracebacks never leave this layer.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ..auth.principal import Principal, is_admin as default_is_admin
from ..config import DEFAULT_MAX_PAYLOAD_BYTES
from ..files.file_store import sanitize_filename
from ..keys.key_store import KeyStore, KeyStoreError
from ..transfer.envelope import REQUIRED_FIELDS, missing_fields, TransferEnvelope
from ..transfer.errors import (
    AccessDenied,
    IntegrityViolation,
    KeyUnwrapError,
    NotFound,
    PayloadDecryptError,
    TransferError,
    ValidationError,
)
from ..transfer.service import TransferService, CONTAMINATED, NO_CONTAMINATION, verdict


logger = logging.getLogger(__name__)

INTEGRITY_HEADER = 'X-Integrity-Status'


@dataclass
class ApiResponse:
    """Status, JSON body and optional raw content."""
    status: int
    body: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)
    content: Optional[bytes] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def _error(status: int, message: str, kind: str, **extra: Any) -> ApiResponse:
    body = {'success': False, 'error': message, 'kind': kind}
    body.update(extra)
    return ApiResponse(status, body)


def _unauthenticated() -> ApiResponse:
    return _error(401, 'Not authenticated', 'unauthenticated')


class TransferGateway:
    """
    Request handlers bound to one TransferService and KeyStore.

    Args:
        service: Transfer service
        key_store: Receiver key material
        is_admin: Authorization predicate supplied by the host
        max_payload_bytes: Upper bound on encoded payload size
    """

    def __init__(self, service: TransferService, key_store: KeyStore,
                 is_admin: Callable[[Principal], bool] = default_is_admin,
                 max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES):
        self._service = service
        self._key_store = key_store
        self._is_admin = is_admin
        self._max_payload_bytes = max_payload_bytes

    # ========================================================================
    # Public endpoints
    # ========================================================================

    def public_key(self) -> ApiResponse:
        """Key exchange bundle: public key, transport MAC key, algorithms."""
        try:
            bundle = self._key_store.key_exchange_bundle()
        except KeyStoreError:
            logger.exception("Key store unavailable")
            return _error(500, 'Failed to retrieve public key', 'key_store_error')

        self._service.event_logger.log_key_exchange()
        body = {'success': True}
        body.update(bundle)
        return ApiResponse(200, body)

    def describe_external_upload(self) -> ApiResponse:
        return ApiResponse(200, {
            'method': 'POST',
            'description': 'Upload encrypted files from third-party systems',
            'contentType': 'application/json',
            'requiredFields': {
                'encryptedData': 'AES-256-CBC encrypted file content (base64)',
                'encryptedKey': 'RSA-OAEP-SHA256 encrypted AES key (base64)',
                'iv': 'Initialization Vector (hex, 32 characters)',
                'hmac': 'HMAC-SHA256 of the encrypted bytes (hex, 64 characters)',
                'filename': 'Original filename',
            },
            'optionalFields': {
                'senderInfo': 'Identifier for the sending system',
            },
        })

    def external_upload(self, body: Any) -> ApiResponse:
        """Receive, verify, decrypt and store a third-party envelope."""
        if not isinstance(body, dict):
            return _error(400, 'Request body must be a JSON object', ValidationError.kind)

        missing = missing_fields(body)
        if missing:
            return _error(400, 'Missing required fields', ValidationError.kind,
                          required=list(REQUIRED_FIELDS), missing=missing)

        encoded_size = len(body['encryptedData']) + len(body['encryptedKey'])
        if encoded_size > self._max_payload_bytes:
            return _error(413, 'Payload too large', 'payload_too_large')

        try:
            envelope = TransferEnvelope.from_dict(body)
            record = self._service.receive_envelope(envelope)
        except ValidationError as e:
            return _error(400, str(e), e.kind)
        except IntegrityViolation as e:
            return _error(400, 'HMAC verification failed - file integrity compromised',
                          e.kind, integrityStatus=CONTAMINATED)
        except KeyUnwrapError as e:
            return _error(400, 'Failed to decrypt AES key - invalid RSA encryption', e.kind)
        except PayloadDecryptError as e:
            return _error(400, 'Failed to decrypt file - invalid AES encryption or IV', e.kind)
        except TransferError as e:
            logger.error("External upload failed: %s", e.kind)
            return _error(500, 'Internal error during file processing', e.kind)

        return ApiResponse(200, {
            'success': True,
            'message': 'File received, verified, decrypted and stored successfully',
            'file': {
                'id': record.id,
                'originalName': record.filename,
                'source': 'external',
                'integrityStatus': NO_CONTAMINATION,
            },
        })

    # ========================================================================
    # Authenticated endpoints
    # ========================================================================

    def upload(self, principal: Optional[Principal], filename: str, content: bytes,
               target_principal: str) -> ApiResponse:
        """Admin uploads a file for another principal."""
        if principal is None:
            return _unauthenticated()
        if not self._is_admin(principal):
            return _error(403, 'Only administrators can upload files', AccessDenied.kind)
        if not filename or not target_principal or content is None:
            return _error(400, 'File and target user are required', ValidationError.kind)
        if len(content) > self._max_payload_bytes:
            return _error(413, 'Payload too large', 'payload_too_large')

        try:
            record = self._service.upload(content, filename, target_principal,
                                          principal.principal_id)
        except ValidationError as e:
            return _error(400, str(e), e.kind)
        except TransferError as e:
            return _error(500, 'Upload failed', e.kind)

        return ApiResponse(200, {'success': True, 'message': 'File uploaded', 'fileId': record.id})

    def download(self, principal: Optional[Principal], artifact_id: Optional[str],
                 verify_only: bool = False) -> ApiResponse:
        """Download with integrity verdict, or verdict only."""
        if principal is None:
            return _unauthenticated()
        if not artifact_id:
            return _error(400, 'File id required', ValidationError.kind)

        try:
            result = self._service.download(artifact_id, principal)
        except NotFound as e:
            return _error(404, str(e), e.kind)
        except AccessDenied as e:
            return _error(403, str(e), e.kind)
        except TransferError as e:
            return _error(500, 'Download failed', e.kind)

        if verify_only:
            return ApiResponse(200, {
                'valid': result.verified,
                'message': result.verdict,
                'filename': result.filename,
            })

        # Quotes and CR/LF never reach the header
        safe_name = sanitize_filename(result.filename)
        return ApiResponse(
            200,
            headers={
                'Content-Type': 'application/octet-stream',
                'Content-Disposition': f'attachment; filename="{safe_name}"',
                INTEGRITY_HEADER: verdict(result.verified),
            },
            content=result.plaintext,
        )

    def delete(self, principal: Optional[Principal], artifact_id: Optional[str]) -> ApiResponse:
        if principal is None:
            return _unauthenticated()
        if not self._is_admin(principal):
            return _error(403, 'Only administrators can delete files', AccessDenied.kind)
        if not artifact_id:
            return _error(400, 'File id required', ValidationError.kind)

        try:
            deleted = self._service.delete(artifact_id, principal)
        except AccessDenied as e:
            return _error(403, str(e), e.kind)
        except TransferError as e:
            return _error(500, 'Delete failed', e.kind)

        if not deleted:
            return _error(404, 'File not found', 'record_not_found')
        return ApiResponse(200, {'success': True, 'message': 'File deleted'})

    def list_files(self, principal: Optional[Principal], admin_view: bool = False) -> ApiResponse:
        if principal is None:
            return _unauthenticated()
        try:
            if admin_view and self._is_admin(principal):
                files = self._service.list_all(principal)
            else:
                files = self._service.list_for(principal.principal_id)
        except TransferError as e:
            return _error(500, 'Could not list files', e.kind)
        return ApiResponse(200, {'files': files})
