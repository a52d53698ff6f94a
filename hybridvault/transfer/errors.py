"""
Transfer error taxonomy.

Every failure that leaves the transfer layer is one of these. The `kind`
code is the coarse classification shown to callers; messages never contain
key material.
"""


class TransferError(Exception):
    """Base class for all transfer failures."""
    kind = 'transfer_error'


class ValidationError(TransferError):
    """Missing or malformed request fields. No side effects."""
    kind = 'validation_error'


class IntegrityViolation(TransferError):
    """MAC mismatch. Raised before any decryption is attempted."""
    kind = 'integrity_violation'


class KeyUnwrapError(TransferError):
    """The wrapped symmetric key could not be decrypted."""
    kind = 'key_unwrap_error'


class PayloadDecryptError(TransferError):
    """The payload could not be decrypted with the unwrapped key."""
    kind = 'payload_decrypt_error'


class NotFound(TransferError):
    kind = 'not_found'


class RecordNotFound(NotFound):
    """No ledger record with this id."""
    kind = 'record_not_found'


class NotFoundOnDisk(NotFound):
    """The ledger record exists but the stored bytes are missing."""
    kind = 'not_found_on_disk'


class AccessDenied(TransferError):
    kind = 'access_denied'


class StorageError(TransferError):
    """Disk I/O failure while writing or removing an artifact."""
    kind = 'storage_error'
