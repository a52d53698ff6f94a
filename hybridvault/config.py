"""
Configuration Management

Handles loading configuration from environment variables and config files.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Owner used for externally submitted artifacts
UPLOADS_PRINCIPAL = 'uploads'
EXTERNAL_SOURCE = 'external-system'

DEFAULT_MAX_PAYLOAD_BYTES = 25 * 1024 * 1024  # 25 MB
DEFAULT_EMAIL_HASH_ITERATIONS = 100_000
DEFAULT_AUDIT_MAX_ENTRIES = 10_000


@dataclass
class VaultConfig:
    """
    Vault configuration.

    Configuration priority (highest to lowest):
    1. Environment variables (VAULT_*)
    2. Config file (JSON)
    3. Default values
    """
    # Storage
    keys_dir: Path = field(default_factory=lambda: Path('./keys'))
    files_dir: Path = field(default_factory=lambda: Path('./Files'))
    data_dir: Path = field(default_factory=lambda: Path('./data'))
    ledger_filename: str = 'fileMetadata.json'

    # Transfer
    uploads_principal: str = UPLOADS_PRINCIPAL
    external_source: str = EXTERNAL_SOURCE
    max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES

    # Audit
    audit_max_entries: int = DEFAULT_AUDIT_MAX_ENTRIES

    # Logging
    log_level: str = 'INFO'

    @property
    def ledger_path(self) -> Path:
        return self.data_dir / self.ledger_filename

    @classmethod
    def from_env(cls) -> 'VaultConfig':
        """Load configuration from environment variables."""
        load_dotenv()

        config = cls()

        for name in ('keys_dir', 'files_dir', 'data_dir'):
            value = os.getenv(f'VAULT_{name.upper()}')
            if value:
                setattr(config, name, Path(value))

        config.ledger_filename = os.getenv('VAULT_LEDGER_FILENAME', config.ledger_filename)
        config.uploads_principal = os.getenv('VAULT_UPLOADS_PRINCIPAL', config.uploads_principal)
        config.external_source = os.getenv('VAULT_EXTERNAL_SOURCE', config.external_source)
        config.max_payload_bytes = int(
            os.getenv('VAULT_MAX_PAYLOAD_BYTES', config.max_payload_bytes)
        )
        config.audit_max_entries = int(
            os.getenv('VAULT_AUDIT_MAX_ENTRIES', config.audit_max_entries)
        )
        config.log_level = os.getenv('VAULT_LOG_LEVEL', config.log_level)

        return config

    @classmethod
    def from_file(cls, path: Path) -> 'VaultConfig':
        """Load configuration from a JSON file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        config = cls()

        for name in ('keys_dir', 'files_dir', 'data_dir'):
            if name in data:
                setattr(config, name, Path(data[name]))

        config.ledger_filename = data.get('ledger_filename', config.ledger_filename)
        config.uploads_principal = data.get('uploads_principal', config.uploads_principal)
        config.external_source = data.get('external_source', config.external_source)
        config.max_payload_bytes = data.get('max_payload_bytes', config.max_payload_bytes)
        config.audit_max_entries = data.get('audit_max_entries', config.audit_max_entries)
        config.log_level = data.get('log_level', config.log_level)

        return config

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'keys_dir': str(self.keys_dir),
            'files_dir': str(self.files_dir),
            'data_dir': str(self.data_dir),
            'ledger_filename': self.ledger_filename,
            'uploads_principal': self.uploads_principal,
            'external_source': self.external_source,
            'max_payload_bytes': self.max_payload_bytes,
            'audit_max_entries': self.audit_max_entries,
            'log_level': self.log_level,
        }

    def save(self, path: Path):
        """Save configuration to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


@dataclass(frozen=True)
class EmailHashingConfig:
    """
    Secrets for the email hashing collaborator.

    The pepper is a server-wide secret that is never stored next to the
    per-user salts.
    """
    pepper: str
    iterations: int = DEFAULT_EMAIL_HASH_ITERATIONS
    key_length: int = 32

    def __post_init__(self):
        if not self.pepper:
            raise ValueError("Email pepper must not be empty")
        if self.iterations < 1:
            raise ValueError("Iteration count must be positive")

    def __repr__(self) -> str:
        return f"EmailHashingConfig(iterations={self.iterations}, key_length={self.key_length})"

    @classmethod
    def from_env(cls) -> 'EmailHashingConfig':
        """Load from EMAIL_PEPPER / EMAIL_HASH_ITERATIONS."""
        load_dotenv()
        pepper = os.getenv('EMAIL_PEPPER')
        if not pepper:
            raise ValueError("EMAIL_PEPPER is not set")
        iterations = int(os.getenv('EMAIL_HASH_ITERATIONS', DEFAULT_EMAIL_HASH_ITERATIONS))
        return cls(pepper=pepper, iterations=iterations)


def load_config(config_path: Optional[Path] = None) -> VaultConfig:
    """
    Load configuration from file and environment.

    Environment variables override file settings.
    """
    config = VaultConfig()

    if config_path and config_path.exists():
        config = VaultConfig.from_file(config_path)

    env_config = VaultConfig.from_env()
    defaults = VaultConfig()

    for key in config.to_dict():
        env_val = getattr(env_config, key)
        if env_val != getattr(defaults, key):
            setattr(config, key, env_val)

    return config


def configure_logging(level: str = 'INFO') -> None:
    """Install a stream handler on the package logger."""
    logger = logging.getLogger('hybridvault')
    logger.setLevel(level.upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
