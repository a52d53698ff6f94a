# Authentication Collaborators
"""
Narrow interfaces consumed by the transfer layer:
- Principal (principal_id, role) supplied by authentication
- is_admin / may_access / may_delete authorization predicates
- EmailHasher for privacy-preserving email lookups
"""

from .principal import (
    Principal,
    ROLE_ADMIN,
    ROLE_USER,
    is_admin,
    may_access,
    may_delete,
)

from .email_hashing import (
    EmailHasher,
    normalize_email,
)

__all__ = [
    # Principals
    'Principal',
    'ROLE_ADMIN',
    'ROLE_USER',
    'is_admin',
    'may_access',
    'may_delete',
    # Email hashing
    'EmailHasher',
    'normalize_email',
]
