"""
Third-party sender.

Builds the external upload payload from the receiver's key bundle (the
public key endpoint response):

    1. Fresh AES-256 key and IV
    2. AES-256-CBC encrypt the file
    3. RSA-OAEP wrap the AES key with the receiver's public key
    4. HMAC-SHA256 over the ciphertext with the transport MAC key
"""

import os
from typing import Any, Dict, Optional

from ..core_crypto.engine import load_public_key
from .protocol import package_for_transfer


def build_upload_payload(plaintext: bytes, filename: str,
                         key_bundle: Dict[str, Any],
                         sender_info: Optional[str] = None) -> Dict[str, Any]:
    """
    Encrypt a file for the receiver described by key_bundle.

    Args:
        plaintext: File content
        filename: Name to submit
        key_bundle: {'publicKey': PEM, 'hmacKey': hex, ...}
        sender_info: Optional sender identification

    Returns:
        JSON-ready upload dictionary
    """
    try:
        public_key = load_public_key(key_bundle['publicKey'])
        mac_key = bytes.fromhex(key_bundle['hmacKey'])
    except KeyError as e:
        raise ValueError(f"Key bundle is missing {e.args[0]}") from e

    envelope = package_for_transfer(plaintext, public_key, mac_key, filename, sender_info)
    return envelope.to_dict()


def payload_from_file(path: str, key_bundle: Dict[str, Any],
                      sender_info: Optional[str] = None) -> Dict[str, Any]:
    """Convenience function: read a file and build its upload payload."""
    with open(path, 'rb') as f:
        data = f.read()
    return build_upload_payload(data, os.path.basename(path), key_bundle, sender_info)
