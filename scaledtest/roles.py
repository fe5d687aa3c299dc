"""User role definitions and the role gate.

Single source of truth for role names, their ordering, and the check every
protected operation runs against the verified token's roles.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from scaledtest.services.auth_service import TokenClaims


class UserRole(StrEnum):
    READONLY = "readonly"
    MAINTAINER = "maintainer"
    OWNER = "owner"


ROLE_HIERARCHY: dict[str, int] = {
    UserRole.READONLY: 1,
    UserRole.MAINTAINER: 2,
    UserRole.OWNER: 3,
}


def roles_at_least(role: UserRole) -> frozenset[str]:
    """All roles with equal or higher privileges than ``role``."""
    level = ROLE_HIERARCHY[role]
    return frozenset(r for r, lvl in ROLE_HIERARCHY.items() if lvl >= level)


# Static per-operation requirements. Empty means any authenticated caller.
READ_ROLES: frozenset[str] = frozenset()
WRITE_ROLES: frozenset[str] = roles_at_least(UserRole.MAINTAINER)
OWNER_ROLES: frozenset[str] = roles_at_least(UserRole.OWNER)


@dataclass(frozen=True, slots=True)
class Roles:
    """Normalized role set built once per verified token.

    Realm-level roles and the client-scoped roles of the configured client are
    merged; roles granted to other clients are ignored.
    """

    names: frozenset[str] = frozenset()

    @classmethod
    def from_claims(cls, payload: dict, client_id: str) -> Roles:
        realm_roles = (payload.get("realm_access") or {}).get("roles") or []
        client_access = (payload.get("resource_access") or {}).get(client_id) or {}
        client_roles = client_access.get("roles") or []
        return cls(names=frozenset(str(r) for r in [*realm_roles, *client_roles]))

    def has_any(self, required: Iterable[str]) -> bool:
        """True when no role is required or at least one required role is held."""
        required = frozenset(required)
        if not required:
            return True
        return not self.names.isdisjoint(required)

    def highest(self) -> UserRole | None:
        """Highest hierarchy role held, if any."""
        known = [UserRole(r) for r in self.names if r in ROLE_HIERARCHY]
        if not known:
            return None
        return max(known, key=lambda r: ROLE_HIERARCHY[r])


def check_roles(claims: TokenClaims, required: Iterable[str]) -> None:
    """Raise ForbiddenError unless ``claims`` satisfies ``required``."""
    required = frozenset(required)
    if claims.roles.has_any(required):
        return

    from scaledtest.exceptions import ForbiddenError

    raise ForbiddenError(required_roles=required)
