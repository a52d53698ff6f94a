# Core Cryptography Module
"""
Cryptographic primitives for hybrid file exchange:
- AES-256-CBC with PKCS7 padding
- RSA-2048 OAEP (SHA-256) key wrapping
- HMAC-SHA256 authentication
- Secure random key / IV generation
"""

from .engine import (
    KeyPair,
    DecryptionError,
    generate_symmetric_key,
    generate_iv,
    generate_mac_key,
    symmetric_encrypt,
    symmetric_decrypt,
    generate_asymmetric_key_pair,
    asymmetric_encrypt,
    asymmetric_decrypt,
    load_public_key,
    load_private_key,
    max_wrap_size,
    compute_mac,
    verify_mac,
    ALGORITHMS,
    AES_KEY_SIZE,
    AES_BLOCK_SIZE,
    MAC_SIZE,
)

__all__ = [
    'KeyPair',
    'DecryptionError',
    'generate_symmetric_key',
    'generate_iv',
    'generate_mac_key',
    'symmetric_encrypt',
    'symmetric_decrypt',
    'generate_asymmetric_key_pair',
    'asymmetric_encrypt',
    'asymmetric_decrypt',
    'load_public_key',
    'load_private_key',
    'max_wrap_size',
    'compute_mac',
    'verify_mac',
    'ALGORITHMS',
    'AES_KEY_SIZE',
    'AES_BLOCK_SIZE',
    'MAC_SIZE',
]
