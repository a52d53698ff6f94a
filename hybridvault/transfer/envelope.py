"""
Transfer envelope: the bundle exchanged between sender and receiver.

Wire format (JSON):
    {
      "encryptedData": base64 ciphertext,
      "encryptedKey":  base64 RSA-wrapped AES key,
      "iv":            hex IV (32 chars),
      "hmac":          hex HMAC-SHA256 of the ciphertext bytes (64 chars),
      "filename":      original filename,
      "senderInfo":    optional sender identification
    }
"""

import json
from dataclasses import dataclass
from typing import Dict, Any, List, Optional

from .errors import ValidationError


REQUIRED_FIELDS = ('encryptedData', 'encryptedKey', 'iv', 'hmac', 'filename')


@dataclass(frozen=True)
class TransferEnvelope:
    """
    Envelope fields kept in their wire encodings.

    Decoding happens inside unpack_transfer so that a malformed MAC is
    reported as an integrity failure rather than a parse error.
    """
    ciphertext: str          # base64
    encrypted_key: str       # base64
    iv: str                  # hex
    mac: str                 # hex
    filename: str
    sender_info: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire dictionary."""
        data = {
            'encryptedData': self.ciphertext,
            'encryptedKey': self.encrypted_key,
            'iv': self.iv,
            'hmac': self.mac,
            'filename': self.filename,
        }
        if self.sender_info is not None:
            data['senderInfo'] = self.sender_info
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransferEnvelope':
        """
        Build an envelope from a wire dictionary.

        Raises:
            ValidationError: If a required field is missing, empty or not
                a string
        """
        if not isinstance(data, dict):
            raise ValidationError("Envelope must be a JSON object")

        missing = missing_fields(data)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        sender_info = data.get('senderInfo')
        if sender_info is not None and not isinstance(sender_info, str):
            raise ValidationError("senderInfo must be a string")

        return cls(
            ciphertext=data['encryptedData'],
            encrypted_key=data['encryptedKey'],
            iv=data['iv'],
            mac=data['hmac'],
            filename=data['filename'],
            sender_info=sender_info or None,
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, json_str: str) -> 'TransferEnvelope':
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ValidationError("Envelope is not valid JSON") from e
        return cls.from_dict(data)


def missing_fields(data: Dict[str, Any]) -> List[str]:
    """Names of required fields that are absent, empty or not strings."""
    return [
        name for name in REQUIRED_FIELDS
        if not isinstance(data.get(name), str) or not data.get(name)
    ]
