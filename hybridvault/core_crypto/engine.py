"""
Crypto Engine Module

Stateless cryptographic building blocks used by the transfer protocol:
- AES-256-CBC symmetric encryption with PKCS7 padding
- RSA-2048 key pairs with OAEP (SHA-256) key wrapping
- HMAC-SHA256 message authentication
- Secure random key and IV generation

Security features:
- Fresh IV per encryption call (never reused with the same key)
- Oversized RSA input is rejected, never truncated
- Constant-time MAC comparison that never raises
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from typing import Optional, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, padding, serialization
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes


# Constants
AES_KEY_SIZE = 32           # 256-bit symmetric keys
AES_BLOCK_SIZE = 16         # 128-bit block / IV
RSA_KEY_SIZE = 2048
RSA_PUBLIC_EXPONENT = 65537
MAC_SIZE = 32               # HMAC-SHA256 output
MAC_KEY_SIZE = 32

# OAEP overhead: 2 * hash length + 2
OAEP_HASH_SIZE = 32
OAEP_OVERHEAD = 2 * OAEP_HASH_SIZE + 2

ALGORITHMS = {
    'asymmetric': 'RSA-2048-OAEP-SHA256',
    'symmetric': 'AES-256-CBC',
    'mac': 'HMAC-SHA256',
}


class DecryptionError(Exception):
    """Raised when a ciphertext cannot be decrypted (padding, length, key)."""
    pass


@dataclass
class KeyPair:
    """RSA key pair container."""
    private_key: Optional[rsa.RSAPrivateKey]
    public_key: rsa.RSAPublicKey

    def public_pem(self) -> str:
        """Public key as SubjectPublicKeyInfo PEM."""
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo
        ).decode('ascii')

    def private_pem(self) -> bytes:
        """Private key as unencrypted PKCS8 PEM. Stays inside the key store."""
        if self.private_key is None:
            raise ValueError("Key pair has no private component")
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        )

    @classmethod
    def from_public_pem(cls, pem: Union[str, bytes]) -> 'KeyPair':
        """Create a public-only KeyPair (sender side)."""
        return cls(None, load_public_key(pem))

    def __repr__(self) -> str:
        has_private = self.private_key is not None
        return f"KeyPair(rsa-{self.public_key.key_size}, private={has_private})"


# ============================================================================
# Random material
# ============================================================================

def generate_symmetric_key() -> bytes:
    """Generate a random 256-bit AES key."""
    return secrets.token_bytes(AES_KEY_SIZE)


def generate_iv() -> bytes:
    """
    Generate a random 128-bit IV.

    Must be called for every encryption; an IV is never reused with
    the same key.
    """
    return secrets.token_bytes(AES_BLOCK_SIZE)


def generate_mac_key() -> bytes:
    """Generate a random 256-bit HMAC key."""
    return secrets.token_bytes(MAC_KEY_SIZE)


# ============================================================================
# Symmetric encryption (AES-256-CBC)
# ============================================================================

def _check_symmetric_params(key: bytes, iv: bytes) -> None:
    if len(key) != AES_KEY_SIZE:
        raise ValueError(f"Key must be {AES_KEY_SIZE} bytes")
    if len(iv) != AES_BLOCK_SIZE:
        raise ValueError(f"IV must be {AES_BLOCK_SIZE} bytes")


def symmetric_encrypt(plaintext: bytes, key: bytes, iv: bytes) -> bytes:
    """
    Encrypt with AES-256-CBC and PKCS7 padding.

    Deterministic for a given (plaintext, key, iv).

    Args:
        plaintext: Data to encrypt
        key: 32-byte key
        iv: 16-byte IV

    Returns:
        Ciphertext (multiple of the block size)
    """
    _check_symmetric_params(key, iv)

    padder = padding.PKCS7(AES_BLOCK_SIZE * 8).padder()
    padded = padder.update(plaintext) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def symmetric_decrypt(ciphertext: bytes, key: bytes, iv: bytes) -> bytes:
    """
    Decrypt AES-256-CBC ciphertext and strip PKCS7 padding.

    Raises:
        DecryptionError: If the length is not a positive multiple of the
            block size or the padding is invalid
    """
    _check_symmetric_params(key, iv)

    if not ciphertext or len(ciphertext) % AES_BLOCK_SIZE != 0:
        raise DecryptionError("Ciphertext length is not a multiple of the block size")

    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()

    unpadder = padding.PKCS7(AES_BLOCK_SIZE * 8).unpadder()
    try:
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        raise DecryptionError("Invalid padding") from e


# ============================================================================
# Asymmetric encryption (RSA-OAEP)
# ============================================================================

def _oaep() -> asym_padding.OAEP:
    return asym_padding.OAEP(
        mgf=asym_padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None
    )


def generate_asymmetric_key_pair(key_size: int = RSA_KEY_SIZE) -> KeyPair:
    """Generate a new RSA key pair (2048-bit by default)."""
    private_key = rsa.generate_private_key(
        public_exponent=RSA_PUBLIC_EXPONENT,
        key_size=key_size
    )
    return KeyPair(private_key, private_key.public_key())


def max_wrap_size(public_key: rsa.RSAPublicKey) -> int:
    """Largest input asymmetric_encrypt accepts for this key."""
    return public_key.key_size // 8 - OAEP_OVERHEAD


def asymmetric_encrypt(data: bytes, public_key: rsa.RSAPublicKey) -> bytes:
    """
    Encrypt a small value (a symmetric key) with RSA-OAEP/SHA-256.

    Raises:
        ValueError: If data exceeds the OAEP bound for the key size
    """
    limit = max_wrap_size(public_key)
    if len(data) > limit:
        raise ValueError(f"Data too long for RSA-OAEP: {len(data)} > {limit} bytes")
    return public_key.encrypt(data, _oaep())


def asymmetric_decrypt(ciphertext: bytes, private_key: rsa.RSAPrivateKey) -> bytes:
    """
    Decrypt RSA-OAEP/SHA-256 ciphertext.

    Raises:
        DecryptionError: On padding or format mismatch
    """
    try:
        return private_key.decrypt(ciphertext, _oaep())
    except ValueError as e:
        raise DecryptionError("RSA-OAEP decryption failed") from e


def load_public_key(pem: Union[str, bytes]) -> rsa.RSAPublicKey:
    """Load an RSA public key from PEM."""
    if isinstance(pem, str):
        pem = pem.encode('ascii')
    try:
        key = serialization.load_pem_public_key(pem)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise ValueError("Invalid public key PEM") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise ValueError("Public key is not an RSA key")
    return key


def load_private_key(pem: bytes) -> rsa.RSAPrivateKey:
    """Load an unencrypted RSA private key from PEM."""
    try:
        key = serialization.load_pem_private_key(pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise ValueError("Invalid private key PEM") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ValueError("Private key is not an RSA key")
    return key


# ============================================================================
# Message authentication (HMAC-SHA256)
# ============================================================================

def compute_mac(data: bytes, key: bytes) -> bytes:
    """Compute HMAC-SHA256."""
    return hmac.new(key, data, hashlib.sha256).digest()


def verify_mac(data: bytes, key: bytes, expected_tag: bytes) -> bool:
    """
    Verify HMAC-SHA256 using constant-time comparison.

    A tag of the wrong length or type simply fails verification.
    """
    if not isinstance(expected_tag, (bytes, bytearray)):
        return False
    try:
        computed = compute_mac(data, key)
    except TypeError:
        return False
    return hmac.compare_digest(computed, bytes(expected_tag))
