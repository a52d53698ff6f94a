"""
Principals and authorization rules.

Authentication itself happens elsewhere; this module only models the
(principal_id, role) pair it hands over and the predicates the transfer
layer needs.
"""

from dataclasses import dataclass


ROLE_ADMIN = 'admin'
ROLE_USER = 'user'


@dataclass(frozen=True)
class Principal:
    """Authenticated caller."""
    principal_id: str
    role: str = ROLE_USER

    def __post_init__(self):
        if not self.principal_id:
            raise ValueError("Principal id must not be empty")

    def __str__(self) -> str:
        return self.principal_id


def is_admin(principal: Principal) -> bool:
    """Authorization predicate gating upload, delete and the admin listing."""
    return principal is not None and principal.role == ROLE_ADMIN


def may_access(principal: Principal, owner_principal: str, uploads_principal: str) -> bool:
    """
    Download rule: the owner, or an admin for externally submitted
    artifacts (owned by the uploads sentinel).
    """
    if principal.principal_id == owner_principal:
        return True
    return owner_principal == uploads_principal and is_admin(principal)


def may_delete(principal: Principal, owner_principal: str, source_principal: str) -> bool:
    """
    Delete rule.

    Any admin may delete any artifact, not only the admin who uploaded it.
    Tighten here (e.g. require principal_id == source_principal) without
    touching the service.
    """
    return is_admin(principal)
