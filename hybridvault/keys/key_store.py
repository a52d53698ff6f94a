"""
Key Store Module

Long-lived key material for the receiving side:
- RSA-2048 key pair (public.pem / private.pem)
- Transport HMAC key shared with senders (hmac.key, hex)

Keys are generated once and loaded thereafter. Initialization happens at
most once per KeyStore instance; concurrent first callers block on a lock
instead of racing to generate two different key pairs.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Dict, Any, Optional, Union

from ..core_crypto.engine import (
    KeyPair,
    ALGORITHMS,
    generate_asymmetric_key_pair,
    generate_mac_key,
    load_private_key,
)


logger = logging.getLogger(__name__)

PUBLIC_KEY_FILE = 'public.pem'
PRIVATE_KEY_FILE = 'private.pem'
HMAC_KEY_FILE = 'hmac.key'

PRIVATE_FILE_MODE = 0o600

SENDER_INSTRUCTIONS = {
    'step1': 'Generate a random AES-256 key and IV',
    'step2': 'Encrypt your file using AES-256-CBC with the key and IV',
    'step3': 'Encrypt the raw AES key using this RSA public key (OAEP, SHA-256)',
    'step4': 'Calculate HMAC-SHA256 of the encrypted bytes using the hex-decoded hmacKey',
    'step5': 'Send encryptedData, encryptedKey, iv, hmac and filename to the upload endpoint',
}


class KeyStoreError(Exception):
    """Raised when key material on disk is missing, partial or unreadable."""
    pass


def _write_file(path: Path, data: bytes, mode: int = 0o644) -> None:
    """Write via a temp file and rename so readers never see a partial key."""
    tmp_path = path.with_name(path.name + '.tmp')
    fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, 'wb') as f:
        f.write(data)
    os.chmod(tmp_path, mode)
    os.replace(tmp_path, path)


class KeyStore:
    """
    Persistent key material, constructed once and injected where needed.

    Example:
        >>> store = KeyStore("./keys")
        >>> bundle = store.key_exchange_bundle()
        >>> bundle['algorithm']['symmetric']
        'AES-256-CBC'
    """

    def __init__(self, keys_dir: Union[str, Path]):
        self._keys_dir = Path(keys_dir)
        self._lock = threading.Lock()
        self._initialized = False
        self._key_pair: Optional[KeyPair] = None
        self._transport_mac_key: Optional[bytes] = None

    @property
    def keys_dir(self) -> Path:
        return self._keys_dir

    @property
    def public_key_path(self) -> Path:
        return self._keys_dir / PUBLIC_KEY_FILE

    @property
    def private_key_path(self) -> Path:
        return self._keys_dir / PRIVATE_KEY_FILE

    @property
    def hmac_key_path(self) -> Path:
        return self._keys_dir / HMAC_KEY_FILE

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> 'KeyStore':
        """
        Load keys from disk, generating them first if none exist.

        Safe to call any number of times from any thread.

        Raises:
            KeyStoreError: If only some of the key files are present or
                they cannot be parsed
        """
        if self._initialized:
            return self

        with self._lock:
            if self._initialized:
                return self

            self._keys_dir.mkdir(parents=True, exist_ok=True)
            paths = (self.public_key_path, self.private_key_path, self.hmac_key_path)
            present = [p.exists() for p in paths]

            if all(present):
                self._load()
                logger.info("Loaded existing RSA key pair from %s", self._keys_dir)
            elif not any(present):
                self._generate_and_save()
                logger.info("Generated new RSA key pair in %s", self._keys_dir)
            else:
                missing = [p.name for p, ok in zip(paths, present) if not ok]
                raise KeyStoreError(
                    f"Incomplete key material in {self._keys_dir}: missing {', '.join(missing)}"
                )

            self._initialized = True

        return self

    def _load(self) -> None:
        try:
            private_key = load_private_key(self.private_key_path.read_bytes())
            mac_key = bytes.fromhex(self.hmac_key_path.read_text().strip())
        except (OSError, ValueError) as e:
            raise KeyStoreError(f"Unreadable key material in {self._keys_dir}") from e

        self._key_pair = KeyPair(private_key, private_key.public_key())
        self._transport_mac_key = mac_key

    def _generate_and_save(self) -> None:
        key_pair = generate_asymmetric_key_pair()
        mac_key = generate_mac_key()

        _write_file(self.private_key_path, key_pair.private_pem(), PRIVATE_FILE_MODE)
        _write_file(self.hmac_key_path, mac_key.hex().encode('ascii'), PRIVATE_FILE_MODE)
        _write_file(self.public_key_path, key_pair.public_pem().encode('ascii'))

        self._key_pair = key_pair
        self._transport_mac_key = mac_key

    def rotate(self) -> None:
        """
        Replace the key pair and transport MAC key on disk.

        Envelopes packaged against the old public key can no longer be
        unpacked afterwards. Per-artifact integrity keys are unaffected.
        """
        with self._lock:
            self._keys_dir.mkdir(parents=True, exist_ok=True)
            self._generate_and_save()
            self._initialized = True
        logger.info("Rotated RSA key pair and transport MAC key")

    @property
    def key_pair(self) -> KeyPair:
        self.initialize()
        return self._key_pair

    @property
    def public_key(self):
        return self.key_pair.public_key

    @property
    def private_key(self):
        """Private key (never share this)."""
        return self.key_pair.private_key

    @property
    def public_key_pem(self) -> str:
        return self.key_pair.public_pem()

    @property
    def transport_mac_key(self) -> bytes:
        """HMAC key shared with senders for envelopes in transit."""
        self.initialize()
        return self._transport_mac_key

    def key_exchange_bundle(self) -> Dict[str, Any]:
        """
        Public bootstrap data for senders.

        Contains only the public key and the transport MAC key.
        """
        return {
            'publicKey': self.public_key_pem,
            'hmacKey': self.transport_mac_key.hex(),
            'algorithm': dict(ALGORITHMS),
            'instructions': dict(SENDER_INSTRUCTIONS),
        }

    def __repr__(self) -> str:
        return f"KeyStore({str(self._keys_dir)!r}, initialized={self._initialized})"
