"""
Policy ledger.

Assigns sequential policy ids, stores policy records and indexes them by
holder. Issuance and deactivation are gated on the role registry.
"""

import logging

from .errors import NotARegisteredUser, RecordNotFound, Unauthorized
from .roles import RoleRegistry
from .schema import Identity, Policy, PolicyIssued, validate_record_id

logger = logging.getLogger(__name__)


class PolicyLedger:
    """
    Sequential policy store.

    Usage:
        ledger = PolicyLedger(registry)

        # Issue (caller must be admin/owner, user must hold the user role)
        event = ledger.issue_policy(admin, alice, "flood cover", 1000)

        # Read
        policy = ledger.get_policy(event.policy_id)
        ids = ledger.get_user_policies(alice)

        # One-way deactivation
        ledger.deactivate_policy(admin, event.policy_id)
    """

    def __init__(self, registry: RoleRegistry, strict_lookup: bool = False):
        self.registry = registry
        self.strict_lookup = strict_lookup
        self._next_id = 0
        self._policies: dict[int, Policy] = {}
        self._by_holder: dict[Identity, list[int]] = {}

    def issue_policy(
        self,
        caller: Identity,
        user: Identity,
        details: str,
        coverage_amount: int,
    ) -> PolicyIssued:
        """
        Issue a new active policy to a registered user.

        Args:
            caller: Admin or owner issuing the policy
            user: Identity holding the user role
            details: Free-text policy terms
            coverage_amount: Non-negative coverage

        Returns:
            PolicyIssued notification carrying the new id

        Raises:
            Unauthorized: caller is neither admin nor owner
            NotARegisteredUser: user does not hold the user role
        """
        if not self.registry.is_admin_or_owner(caller):
            raise Unauthorized(f"{caller!r} cannot issue policies")
        if not self.registry.is_user(user):
            raise NotARegisteredUser(f"{user!r} is not a registered user")

        policy_id = self._next_id + 1
        # Validated before any state changes
        policy = Policy(
            id=policy_id,
            holder=user,
            details=details,
            coverage_amount=coverage_amount,
            is_active=True,
        )

        self._next_id = policy_id
        self._policies[policy_id] = policy
        self._by_holder.setdefault(user, []).append(policy_id)
        return PolicyIssued(policy_id=policy_id, holder=user)

    def deactivate_policy(self, caller: Identity, policy_id: int) -> None:
        """
        Clear the active flag of a policy. Any admin may deactivate any policy.

        A missing id is a silent no-op unless strict lookup is enabled.
        A negative or non-int id raises pydantic's ValidationError.
        """
        if not self.registry.is_admin_or_owner(caller):
            raise Unauthorized(f"{caller!r} cannot deactivate policies")

        policy_id = validate_record_id(policy_id)
        policy = self._policies.get(policy_id)
        if policy is None:
            if self.strict_lookup:
                raise RecordNotFound(f"Policy {policy_id} does not exist")
            logger.debug(f"Deactivation of unknown policy {policy_id} ignored")
            return

        if policy.is_active:
            self._policies[policy_id] = policy.model_copy(update={"is_active": False})

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_policy(self, policy_id: int) -> Policy:
        """Stored policy, or the zero-valued policy when absent."""
        policy = self._policies.get(policy_id)
        return policy if policy is not None else Policy.empty()

    def get_user_policies(self, holder: Identity) -> list[int]:
        return list(self._by_holder.get(holder, []))

    def exists(self, policy_id: int) -> bool:
        return policy_id in self._policies

    @property
    def policy_count(self) -> int:
        return self._next_id

    def all_policies(self) -> list[Policy]:
        return [self._policies[pid] for pid in sorted(self._policies)]

    def holder_index(self) -> dict[Identity, list[int]]:
        return {holder: list(ids) for holder, ids in self._by_holder.items()}
