"""
Email Hashing Module

Privacy-preserving email lookup keys:
- Normalized address (lowercase, trimmed)
- PBKDF2-HMAC-SHA256 with per-user salt + server-wide pepper
- Constant-time verification

The pepper and iteration count come from an injected EmailHashingConfig,
never from the environment inside this module.
"""

import hmac
import secrets

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..config import EmailHashingConfig


SALT_SIZE = 16


def normalize_email(email: str) -> str:
    return email.strip().lower()


class EmailHasher:
    """
    Example:
        >>> hasher = EmailHasher(EmailHashingConfig(pepper="server-secret"))
        >>> salt = hasher.generate_salt()
        >>> digest = hasher.hash_email("Alice@Example.com", salt)
        >>> hasher.verify_email("alice@example.com ", digest, salt)
        True
    """

    def __init__(self, config: EmailHashingConfig):
        self._config = config

    @staticmethod
    def generate_salt() -> str:
        """Random per-user salt (hex), stored with the user record."""
        return secrets.token_hex(SALT_SIZE)

    def hash_email(self, email: str, salt: str) -> str:
        """
        Hash a normalized email address.

        Args:
            email: Plaintext email address
            salt: Per-user salt (hex)

        Returns:
            Hex-encoded derived key
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=self._config.key_length,
            salt=(salt + self._config.pepper).encode('utf-8'),
            iterations=self._config.iterations,
        )
        return kdf.derive(normalize_email(email).encode('utf-8')).hex()

    def verify_email(self, email: str, hashed_email: str, salt: str) -> bool:
        """Constant-time check of an address against a stored hash."""
        computed = self.hash_email(email, salt)
        return hmac.compare_digest(computed, hashed_email)
