# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""The authenticated actor a service call is made on behalf of."""

from dataclasses import dataclass

from classreg.models.common import ActorRole

ADMIN_ROLES = frozenset({ActorRole.ADMIN.value, ActorRole.SUPER_ADMIN.value})


@dataclass(frozen=True)
class Actor:
    """Identity and role of the caller.

    Attributes:
        id: User id as issued by the authenticating gateway.
        role: Role code (see ActorRole).
    """

    id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def has_role(self, *roles: ActorRole | str) -> bool:
        """Check whether the actor holds any of the given roles."""
        return self.role in {getattr(r, "value", r) for r in roles}
