"""
Insurance ledger module.

Authorization-gated policy and claim records with a one-shot claim
status state machine.
"""

from .errors import (
    AlreadyInitialized,
    ClaimNotPending,
    InvalidClaimStatus,
    InvalidRole,
    LedgerError,
    NotARegisteredUser,
    NotPolicyHolder,
    PolicyInactive,
    RecordNotFound,
    Unauthorized,
)
from .events import EventBus
from .schema import (
    # Enums
    Role,
    ClaimStatus,
    # Records
    Policy,
    Claim,
    # Notifications
    LedgerEvent,
    RoleAssigned,
    PolicyIssued,
    ClaimSubmitted,
    ClaimStatusUpdated,
)
from .store import (
    InsuranceLedger,
    get_ledger,
    assign_role,
    issue_policy,
    deactivate_policy,
    submit_claim,
    update_claim_status,
    get_policy,
    get_claim,
)

__all__ = [
    # Ledger
    "InsuranceLedger",
    "EventBus",
    "get_ledger",
    "assign_role",
    "issue_policy",
    "deactivate_policy",
    "submit_claim",
    "update_claim_status",
    "get_policy",
    "get_claim",
    # Enums
    "Role",
    "ClaimStatus",
    # Records
    "Policy",
    "Claim",
    # Notifications
    "LedgerEvent",
    "RoleAssigned",
    "PolicyIssued",
    "ClaimSubmitted",
    "ClaimStatusUpdated",
    # Errors
    "LedgerError",
    "Unauthorized",
    "InvalidRole",
    "NotARegisteredUser",
    "PolicyInactive",
    "NotPolicyHolder",
    "ClaimNotPending",
    "InvalidClaimStatus",
    "RecordNotFound",
    "AlreadyInitialized",
]
