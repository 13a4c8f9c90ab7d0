"""
Claim ledger and claim-status state machine.

A claim starts SUBMITTED. While it is SUBMITTED an admin or the owner may
set its status once, to any value; from then on the claim is frozen.
There are no adjacency rules: SUBMITTED -> PAID is accepted directly, and
APPROVED -> PAID is not possible.
"""

import logging
from typing import Union

from .errors import (
    ClaimNotPending,
    InvalidClaimStatus,
    NotPolicyHolder,
    PolicyInactive,
    RecordNotFound,
    Unauthorized,
)
from .policies import PolicyLedger
from .roles import RoleRegistry
from .schema import (
    Claim,
    ClaimStatus,
    ClaimStatusUpdated,
    ClaimSubmitted,
    Identity,
    validate_record_id,
)

logger = logging.getLogger(__name__)


def coerce_status(value: Union[ClaimStatus, str]) -> ClaimStatus:
    """Parse a status name, raising InvalidClaimStatus for anything unrecognized."""
    if isinstance(value, ClaimStatus):
        return value
    try:
        return ClaimStatus(str(value).strip().lower())
    except ValueError:
        raise InvalidClaimStatus(f"Unknown claim status: {value!r}") from None


class ClaimLedger:
    """Sequential claim store indexed by claimant."""

    def __init__(self, registry: RoleRegistry, policies: PolicyLedger, strict_lookup: bool = False):
        self.registry = registry
        self.policies = policies
        self.strict_lookup = strict_lookup
        self._next_id = 0
        self._claims: dict[int, Claim] = {}
        self._by_claimant: dict[Identity, list[int]] = {}
        self._by_policy: dict[int, list[int]] = {}

    def submit_claim(
        self,
        caller: Identity,
        policy_id: int,
        description: str,
        amount: int,
    ) -> ClaimSubmitted:
        """
        File a claim against one of the caller's active policies.

        Raises:
            Unauthorized: caller does not hold the user role
            PolicyInactive: policy deactivated or never issued
            NotPolicyHolder: caller is not the policy's holder
            ValidationError: policy_id or amount is negative or not an int
        """
        if not self.registry.is_user(caller):
            raise Unauthorized(f"{caller!r} cannot submit claims")

        policy_id = validate_record_id(policy_id)
        policy = self.policies.get_policy(policy_id)
        if not policy.is_active:
            raise PolicyInactive(f"Policy {policy_id} is not active")
        if policy.holder != caller:
            raise NotPolicyHolder(f"{caller!r} does not hold policy {policy_id}")

        claim_id = self._next_id + 1
        claim = Claim(
            id=claim_id,
            policy_id=policy_id,
            claimant=caller,
            description=description,
            status=ClaimStatus.SUBMITTED,
            amount=amount,
        )

        self._next_id = claim_id
        self._claims[claim_id] = claim
        self._by_claimant.setdefault(caller, []).append(claim_id)
        self._by_policy.setdefault(policy_id, []).append(claim_id)
        return ClaimSubmitted(claim_id=claim_id, policy_id=policy_id, claimant=caller)

    def update_claim_status(
        self,
        caller: Identity,
        claim_id: int,
        new_status: Union[ClaimStatus, str],
    ) -> ClaimStatusUpdated:
        """
        Move a pending claim to `new_status`. One shot per claim.

        Without strict lookup an unknown id reads as the zero claim, which is
        pending, so the update lands in a default-valued slot for that id.

        Raises:
            Unauthorized: caller is neither admin nor owner
            ValidationError: claim_id is negative or not an int
            InvalidClaimStatus: new_status is not a known status
            RecordNotFound: unknown id with strict lookup enabled
            ClaimNotPending: claim already left SUBMITTED
        """
        if not self.registry.is_admin_or_owner(caller):
            raise Unauthorized(f"{caller!r} cannot update claims")

        claim_id = validate_record_id(claim_id)
        status = coerce_status(new_status)

        claim = self._claims.get(claim_id)
        if claim is None:
            if self.strict_lookup:
                raise RecordNotFound(f"Claim {claim_id} does not exist")
            logger.debug(f"Status update on unknown claim {claim_id} writes a default slot")
            claim = Claim.empty()

        if not claim.is_pending:
            raise ClaimNotPending(f"Claim {claim_id} is already {claim.status.value}")

        self._claims[claim_id] = claim.model_copy(update={"status": status})
        return ClaimStatusUpdated(claim_id=claim_id, status=status)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_claim(self, claim_id: int) -> Claim:
        """Stored claim, or the zero-valued claim when absent."""
        claim = self._claims.get(claim_id)
        return claim if claim is not None else Claim.empty()

    def get_user_claims(self, claimant: Identity) -> list[int]:
        return list(self._by_claimant.get(claimant, []))

    def claims_for_policy(self, policy_id: int) -> list[int]:
        return list(self._by_policy.get(policy_id, []))

    @property
    def claim_count(self) -> int:
        return self._next_id

    def all_claims(self) -> list[Claim]:
        """Submitted claims in id order. Default-valued slots are left out."""
        return [self._claims[cid] for cid in sorted(self._claims) if self._claims[cid].exists]

    def claimant_index(self) -> dict[Identity, list[int]]:
        return {claimant: list(ids) for claimant, ids in self._by_claimant.items()}
