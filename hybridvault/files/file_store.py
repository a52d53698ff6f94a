"""
File Store Module

Places artifact plaintext on disk, one directory per owning principal:

    <root>/<principal>/<artifact id>_<sanitized filename>

Path safety:
- Every name component is reduced to [A-Za-z0-9.-] before use
- The resolved path must stay inside the principal's namespace root,
  checked before any filesystem operation
- Stored names are bounded by MAX_STORED_NAME_LENGTH
"""

import logging
import os
import re
from pathlib import Path
from typing import Union


logger = logging.getLogger(__name__)

UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9.-]')

# Common NAME_MAX, less room for the '.part' suffix used while writing
MAX_STORED_NAME_LENGTH = 255 - len('.part')


class FileStoreError(Exception):
    pass


class StoredFileNotFound(FileStoreError):
    """No bytes on disk for the requested artifact."""
    pass


class UnsafePathError(FileStoreError):
    """A derived path would leave its namespace root."""
    pass


def sanitize_filename(name: str) -> str:
    """Replace every character outside [A-Za-z0-9.-] with '_'."""
    return UNSAFE_CHARS.sub('_', name)


def _sanitize_component(name: str, what: str) -> str:
    safe = sanitize_filename(name)
    if not safe or set(safe) == {'.'}:
        raise UnsafePathError(f"Invalid {what}: {name!r}")
    return safe


class FileStore:
    """Per-principal artifact storage rooted at one directory."""

    def __init__(self, root: Union[str, Path]):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _namespace_path(self, principal: str) -> Path:
        safe = _sanitize_component(principal, 'principal')
        root = self._root.resolve()
        path = (root / safe).resolve()
        if path.parent != root:
            raise UnsafePathError(f"Namespace escapes store root: {principal!r}")
        return path

    def ensure_namespace(self, principal: str) -> Path:
        """Create the principal's directory if needed. Idempotent."""
        path = self._namespace_path(principal)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def path_for(self, principal: str, artifact_id: str, filename: str) -> Path:
        """
        Deterministic location of an artifact.

        Ledger ids have a fixed <prefix>_<ms>_<hex> shape, so the id is an
        unambiguous prefix and distinct ids never share a path.
        """
        namespace = self._namespace_path(principal)
        stored_name = (
            f"{_sanitize_component(artifact_id, 'artifact id')}_"
            f"{sanitize_filename(filename)}"
        )
        if len(stored_name) > MAX_STORED_NAME_LENGTH:
            raise UnsafePathError(
                f"Filename too long: {len(stored_name)} > {MAX_STORED_NAME_LENGTH} characters"
            )
        path = (namespace / stored_name).resolve()
        if path.parent != namespace:
            raise UnsafePathError(f"Artifact path escapes namespace: {stored_name!r}")
        return path

    def write(self, principal: str, artifact_id: str, filename: str, data: bytes) -> Path:
        """
        Write artifact bytes, replacing the target atomically.

        Raises:
            OSError: On disk failure
        """
        path = self.path_for(principal, artifact_id, filename)
        self.ensure_namespace(principal)
        tmp_path = path.with_name(path.name + '.part')
        try:
            with open(tmp_path, 'wb') as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError:
            if tmp_path.exists():
                tmp_path.unlink()
            raise
        logger.debug("Stored %d bytes at %s", len(data), path)
        return path

    def read(self, principal: str, artifact_id: str, filename: str) -> bytes:
        """
        Read artifact bytes.

        Raises:
            StoredFileNotFound: If nothing is stored at the derived path
        """
        path = self.path_for(principal, artifact_id, filename)
        try:
            with open(path, 'rb') as f:
                return f.read()
        except FileNotFoundError as e:
            raise StoredFileNotFound(f"No stored file for artifact {artifact_id}") from e

    def exists(self, principal: str, artifact_id: str, filename: str) -> bool:
        return self.path_for(principal, artifact_id, filename).is_file()

    def remove(self, principal: str, artifact_id: str, filename: str) -> bool:
        """Delete artifact bytes. Returns False if they were already gone."""
        path = self.path_for(principal, artifact_id, filename)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.debug("Removed %s", path)
        return True
