"""
Hybrid Transfer Protocol

Sender:
    key, iv      = fresh random values
    ciphertext   = AES-256-CBC(plaintext, key, iv)
    wrapped_key  = RSA-OAEP(key, recipient_public_key)
    mac          = HMAC-SHA256(ciphertext, transport_mac_key)

Receiver, strictly in this order:
    1. verify mac over ciphertext   -> IntegrityViolation
    2. unwrap key                   -> KeyUnwrapError
    3. decrypt payload              -> PayloadDecryptError

The MAC covers the ciphertext bytes only (Encrypt-then-MAC). Nothing is
decrypted until the MAC has verified.
"""

import base64
import binascii
import logging
from typing import Optional

from ..core_crypto.engine import (
    KeyPair,
    DecryptionError,
    AES_KEY_SIZE,
    generate_symmetric_key,
    generate_iv,
    symmetric_encrypt,
    symmetric_decrypt,
    asymmetric_encrypt,
    asymmetric_decrypt,
    compute_mac,
    verify_mac,
)
from .envelope import TransferEnvelope
from .errors import IntegrityViolation, KeyUnwrapError, PayloadDecryptError


logger = logging.getLogger(__name__)


def _b64decode(value: str) -> bytes:
    return base64.b64decode(value.encode('ascii'), validate=True)


def package_for_transfer(plaintext: bytes, recipient_public_key,
                         transport_mac_key: bytes, filename: str,
                         sender_info: Optional[str] = None) -> TransferEnvelope:
    """
    Encrypt plaintext for a recipient and authenticate the ciphertext.

    Args:
        plaintext: File content
        recipient_public_key: Receiver's RSA public key
        transport_mac_key: Shared transport HMAC key
        filename: Original filename carried in the envelope
        sender_info: Optional sender identification

    Returns:
        TransferEnvelope with wire-encoded fields
    """
    key = generate_symmetric_key()
    iv = generate_iv()

    ciphertext = symmetric_encrypt(plaintext, key, iv)
    encrypted_key = asymmetric_encrypt(key, recipient_public_key)
    mac = compute_mac(ciphertext, transport_mac_key)

    return TransferEnvelope(
        ciphertext=base64.b64encode(ciphertext).decode('ascii'),
        encrypted_key=base64.b64encode(encrypted_key).decode('ascii'),
        iv=iv.hex(),
        mac=mac.hex(),
        filename=filename,
        sender_info=sender_info,
    )


def unpack_transfer(envelope: TransferEnvelope, recipient_private_key,
                    transport_mac_key: bytes) -> bytes:
    """
    Verify and decrypt an envelope.

    Raises:
        IntegrityViolation: MAC missing, malformed or not matching
        KeyUnwrapError: Wrapped key cannot be decrypted or has the wrong size
        PayloadDecryptError: Ciphertext cannot be decrypted
    """
    # STEP 1: Verify MAC BEFORE any decryption
    try:
        ciphertext = _b64decode(envelope.ciphertext)
        expected_mac = bytes.fromhex(envelope.mac)
    except (ValueError, binascii.Error) as e:
        raise IntegrityViolation("Envelope ciphertext or MAC is malformed") from e

    if not verify_mac(ciphertext, transport_mac_key, expected_mac):
        raise IntegrityViolation("HMAC verification failed - data has been tampered with")

    # STEP 2: Unwrap the symmetric key
    try:
        key = asymmetric_decrypt(_b64decode(envelope.encrypted_key), recipient_private_key)
    except (DecryptionError, ValueError, binascii.Error) as e:
        raise KeyUnwrapError("Failed to decrypt AES key") from e
    if len(key) != AES_KEY_SIZE:
        raise KeyUnwrapError("Unwrapped key has the wrong length")

    # STEP 3: Decrypt the payload
    try:
        iv = bytes.fromhex(envelope.iv)
        return symmetric_decrypt(ciphertext, key, iv)
    except (DecryptionError, ValueError) as e:
        raise PayloadDecryptError("Failed to decrypt file - invalid ciphertext or IV") from e


class HybridTransferProtocol:
    """
    Protocol endpoint bound to one side's keys.

    Example:
        >>> receiver = HybridTransferProtocol(key_store.key_pair, key_store.transport_mac_key)
        >>> sender = HybridTransferProtocol(KeyPair.from_public_pem(pem), mac_key)
        >>> envelope = sender.package(b"report", "report.txt")
        >>> receiver.unpack(envelope)
        b'report'
    """

    def __init__(self, key_pair: KeyPair, transport_mac_key: bytes):
        self._key_pair = key_pair
        self._transport_mac_key = transport_mac_key

    def package(self, plaintext: bytes, filename: str,
                sender_info: Optional[str] = None) -> TransferEnvelope:
        return package_for_transfer(
            plaintext, self._key_pair.public_key, self._transport_mac_key,
            filename, sender_info
        )

    def unpack(self, envelope: TransferEnvelope) -> bytes:
        if self._key_pair.private_key is None:
            raise KeyUnwrapError("No private key available to unwrap the envelope")
        try:
            return unpack_transfer(envelope, self._key_pair.private_key, self._transport_mac_key)
        except IntegrityViolation:
            logger.warning("Rejected envelope for %r: MAC verification failed", envelope.filename)
            raise
