from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated JWT.

    user_id: subject from the token
    roles: platform roles (admin, user)
    organization_id: active organization claim, if the token carries one
    """

    user_id: str
    roles: frozenset[str]
    organization_id: str | None = None

    def has_role(self, role: str) -> bool:
        return role in self.roles
