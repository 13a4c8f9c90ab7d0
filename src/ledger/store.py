"""
In-memory insurance ledger.

Owns the role registry, the policy ledger, the claim ledger and the
notification bus behind one lock. Each operation either commits all of
its changes and then publishes its notification, or raises with nothing
changed and nothing published.
"""

import logging
import threading
from contextlib import contextmanager
from functools import lru_cache
from typing import Optional, Union

from .claims import ClaimLedger
from .errors import LedgerError
from .events import EventBus
from .policies import PolicyLedger
from .roles import RoleRegistry
from .schema import Claim, ClaimStatus, Identity, LedgerEvent, Policy, Role

logger = logging.getLogger(__name__)


class InsuranceLedger:
    """
    Authorization-gated policy and claim store.

    Usage:
        ledger = InsuranceLedger(owner="0xowner")

        ledger.assign_role("0xowner", "alice", "user")
        ledger.assign_role("0xowner", "bob", "admin")

        policy_id = ledger.issue_policy("bob", "alice", "flood cover", 1000)
        claim_id = ledger.submit_claim("alice", policy_id, "water damage", 500)
        ledger.update_claim_status("bob", claim_id, "approved")
    """

    def __init__(
        self,
        owner: Identity,
        events: Optional[EventBus] = None,
        strict_lookup: bool = False,
    ):
        self._lock = threading.RLock()
        self.events = events or EventBus()
        self.strict_lookup = strict_lookup

        self.roles = RoleRegistry()
        self.roles.initialize(owner)
        self.policies = PolicyLedger(self.roles, strict_lookup=strict_lookup)
        self.claims = ClaimLedger(self.roles, self.policies, strict_lookup=strict_lookup)

    @contextmanager
    def _operation(self, name: str, caller: Identity):
        """Run one mutating call under the ledger lock, logging rejections."""
        with self._lock:
            try:
                yield
            except LedgerError as e:
                logger.warning(f"{name} rejected for {caller!r}: {e.code} - {e.message}")
                raise

    def _publish(self, event: LedgerEvent) -> LedgerEvent:
        return self.events.publish(event)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def assign_role(self, caller: Identity, target: Identity, role: Union[Role, str]) -> Role:
        """Owner-only: make `target` an admin or a user."""
        with self._operation("assign_role", caller):
            event = self.roles.assign_role(caller, target, role)
            self._publish(event)
        logger.info(f"✅ Role {event.role.value} assigned to {target}")
        return event.role

    def issue_policy(self, caller: Identity, user: Identity, details: str, coverage_amount: int) -> int:
        """Admin/owner: issue an active policy to a registered user. Returns the policy id."""
        with self._operation("issue_policy", caller):
            event = self.policies.issue_policy(caller, user, details, coverage_amount)
            self._publish(event)
        logger.info(f"✅ Policy {event.policy_id} issued to {user} (coverage {coverage_amount})")
        return event.policy_id

    def deactivate_policy(self, caller: Identity, policy_id: int) -> None:
        """Admin/owner: deactivate a policy for good."""
        with self._operation("deactivate_policy", caller):
            self.policies.deactivate_policy(caller, policy_id)
        logger.info(f"Policy {policy_id} deactivated by {caller}")

    def submit_claim(self, caller: Identity, policy_id: int, description: str, amount: int) -> int:
        """User: file a claim against one of the caller's active policies. Returns the claim id."""
        with self._operation("submit_claim", caller):
            event = self.claims.submit_claim(caller, policy_id, description, amount)
            self._publish(event)
        logger.info(f"✅ Claim {event.claim_id} submitted on policy {policy_id} by {caller}")
        return event.claim_id

    def update_claim_status(
        self,
        caller: Identity,
        claim_id: int,
        new_status: Union[ClaimStatus, str],
    ) -> ClaimStatus:
        """Admin/owner: resolve a pending claim. Succeeds once per claim."""
        with self._operation("update_claim_status", caller):
            event = self.claims.update_claim_status(caller, claim_id, new_status)
            self._publish(event)
        logger.info(f"✅ Claim {claim_id} moved to {event.status.value} by {caller}")
        return event.status

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def owner(self) -> Identity:
        return self.roles.owner

    def get_role(self, identity: Identity) -> Role:
        with self._lock:
            return self.roles.get_role(identity)

    def is_owner(self, identity: Identity) -> bool:
        with self._lock:
            return self.roles.is_owner(identity)

    def is_admin_or_owner(self, identity: Identity) -> bool:
        with self._lock:
            return self.roles.is_admin_or_owner(identity)

    def is_user(self, identity: Identity) -> bool:
        with self._lock:
            return self.roles.is_user(identity)

    def get_policy(self, policy_id: int) -> Policy:
        with self._lock:
            return self.policies.get_policy(policy_id)

    def get_user_policies(self, holder: Identity) -> list[int]:
        with self._lock:
            return self.policies.get_user_policies(holder)

    def get_claim(self, claim_id: int) -> Claim:
        with self._lock:
            return self.claims.get_claim(claim_id)

    def get_user_claims(self, claimant: Identity) -> list[int]:
        with self._lock:
            return self.claims.get_user_claims(claimant)

    def claims_for_policy(self, policy_id: int) -> list[int]:
        with self._lock:
            return self.claims.claims_for_policy(policy_id)

    @property
    def policy_count(self) -> int:
        with self._lock:
            return self.policies.policy_count

    @property
    def claim_count(self) -> int:
        with self._lock:
            return self.claims.claim_count

    def snapshot(self) -> dict:
        """Plain-dict dump of the whole ledger."""
        with self._lock:
            return {
                "owner": self.owner,
                "strict_lookup": self.strict_lookup,
                "roles": self.roles.to_dict(),
                "policy_count": self.policies.policy_count,
                "claim_count": self.claims.claim_count,
                "policies": [p.model_dump(mode="json") for p in self.policies.all_policies()],
                "claims": [c.model_dump(mode="json") for c in self.claims.all_claims()],
                "holder_index": self.policies.holder_index(),
                "claimant_index": self.claims.claimant_index(),
            }


# =============================================================================
# Convenience Functions
# =============================================================================

@lru_cache
def get_ledger() -> InsuranceLedger:
    """Get the default ledger (singleton), built from settings."""
    from ..utils.config import get_settings

    settings = get_settings()
    logger.info(f"Creating default ledger, owner={settings.ledger_owner}, strict={settings.ledger_strict_lookup}")
    return InsuranceLedger(
        owner=settings.ledger_owner,
        events=EventBus(history_size=settings.event_history_size),
        strict_lookup=settings.ledger_strict_lookup,
    )


def assign_role(caller: Identity, target: Identity, role: Union[Role, str]) -> Role:
    """Assign a role on the default ledger."""
    return get_ledger().assign_role(caller, target, role)


def issue_policy(caller: Identity, user: Identity, details: str, coverage_amount: int) -> int:
    """Issue a policy on the default ledger."""
    return get_ledger().issue_policy(caller, user, details, coverage_amount)


def deactivate_policy(caller: Identity, policy_id: int) -> None:
    """Deactivate a policy on the default ledger."""
    get_ledger().deactivate_policy(caller, policy_id)


def submit_claim(caller: Identity, policy_id: int, description: str, amount: int) -> int:
    """Submit a claim on the default ledger."""
    return get_ledger().submit_claim(caller, policy_id, description, amount)


def update_claim_status(caller: Identity, claim_id: int, new_status: Union[ClaimStatus, str]) -> ClaimStatus:
    """Update a claim status on the default ledger."""
    return get_ledger().update_claim_status(caller, claim_id, new_status)


def get_policy(policy_id: int) -> Policy:
    """Get a policy from the default ledger."""
    return get_ledger().get_policy(policy_id)


def get_claim(claim_id: int) -> Claim:
    """Get a claim from the default ledger."""
    return get_ledger().get_claim(claim_id)
