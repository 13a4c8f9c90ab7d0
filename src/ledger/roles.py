"""
Identity & role registry.

Maps each identity to exactly one role and answers the authorization
predicates every other ledger component gates its mutations on.
"""

import logging
from typing import Optional, Union

from .errors import AlreadyInitialized, InvalidRole, Unauthorized
from .schema import ASSIGNABLE_ROLES, Identity, Role, RoleAssigned

logger = logging.getLogger(__name__)


def coerce_role(value: Union[Role, str]) -> Role:
    """Parse a role name, raising InvalidRole for anything unrecognized."""
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value).strip().lower())
    except ValueError:
        raise InvalidRole(f"Unknown role: {value!r}") from None


class RoleRegistry:
    """
    Identity → role mapping.

    The owner is fixed by initialize() and cannot be granted, revoked or
    overwritten through assign_role(). Every other identity can be moved
    between admin and user freely; there is no role history.
    """

    def __init__(self):
        self._roles: dict[Identity, Role] = {}
        self._owner: Optional[Identity] = None

    def initialize(self, deployer: Identity) -> None:
        """Make `deployer` the owner. Allowed exactly once."""
        if self._owner is not None:
            raise AlreadyInitialized(f"Registry already owned by {self._owner!r}")
        if not deployer:
            raise InvalidRole("Owner identity cannot be empty")
        self._roles[deployer] = Role.OWNER
        self._owner = deployer
        logger.info(f"Role registry initialized, owner={deployer}")

    @property
    def owner(self) -> Optional[Identity]:
        return self._owner

    def assign_role(self, caller: Identity, target: Identity, role: Union[Role, str]) -> RoleAssigned:
        """
        Give `target` the admin or user role, overwriting what it held.

        Raises:
            Unauthorized: caller is not the owner
            InvalidRole: role is owner/none/unknown, or target is the owner
        """
        if not self.is_owner(caller):
            raise Unauthorized(f"{caller!r} is not the owner")

        parsed = coerce_role(role)
        if parsed not in ASSIGNABLE_ROLES:
            raise InvalidRole(f"Role {parsed.value!r} cannot be assigned")
        if target == self._owner:
            raise InvalidRole("The owner's role cannot be reassigned")

        self._roles[target] = parsed
        return RoleAssigned(target=target, role=parsed)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_role(self, identity: Identity) -> Role:
        return self._roles.get(identity, Role.NONE)

    def is_owner(self, identity: Identity) -> bool:
        return self.get_role(identity) == Role.OWNER

    def is_admin_or_owner(self, identity: Identity) -> bool:
        return self.get_role(identity) in (Role.ADMIN, Role.OWNER)

    def is_user(self, identity: Identity) -> bool:
        return self.get_role(identity) == Role.USER

    def members(self, role: Union[Role, str]) -> list[Identity]:
        """Identities currently holding `role`, in first-assignment order."""
        parsed = coerce_role(role)
        return [identity for identity, held in self._roles.items() if held == parsed]

    def to_dict(self) -> dict[Identity, str]:
        return {identity: role.value for identity, role in self._roles.items()}
