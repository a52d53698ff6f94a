# Integrity Ledger Module
"""
Artifact metadata store:
- One immutable record per stored artifact
- Per-artifact HMAC key and value for at-rest verification
- Serialized read-all / write-all mutations
"""

from .integrity_ledger import ArtifactRecord, IntegrityLedger, LedgerError

__all__ = [
    'ArtifactRecord',
    'IntegrityLedger',
    'LedgerError',
]
