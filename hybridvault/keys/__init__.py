# Key Management Module
"""
Persistent key material:
- RSA-2048 key pair generated once, loaded thereafter
- Transport HMAC key shared with senders
- Owner-only permissions on private material
"""

from .key_store import KeyStore, KeyStoreError

__all__ = [
    'KeyStore',
    'KeyStoreError',
]
