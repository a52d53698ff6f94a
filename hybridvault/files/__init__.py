# File Storage Module
"""
Artifact placement on disk:
- One namespace directory per owning principal
- Filenames sanitized to [A-Za-z0-9.-]
- Resolved paths confined to their namespace root
"""

from .file_store import (
    FileStore,
    FileStoreError,
    StoredFileNotFound,
    UnsafePathError,
    sanitize_filename,
)

__all__ = [
    'FileStore',
    'FileStoreError',
    'StoredFileNotFound',
    'UnsafePathError',
    'sanitize_filename',
]
