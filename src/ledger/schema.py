"""
Canonical record schema for the insurance ledger.

Defines the role and claim-status enums, the policy and claim records,
and the notification models broadcast to external observers.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


# Opaque participant reference (account address, public key, ...)
Identity = str

# The zero identity, held by default-valued records
NULL_IDENTITY: Identity = ""

# Policy and claim ids: unsigned, no coercion from str/float/bool
RecordId = Annotated[int, Field(ge=0, strict=True)]

_record_id = TypeAdapter(RecordId)


def validate_record_id(value) -> int:
    """Return `value` if it is a non-negative int, else raise pydantic's ValidationError."""
    return _record_id.validate_python(value)


# ============================================================================
# Enums
# ============================================================================


class Role(str, Enum):
    """Role held by an identity. Unassigned identities hold NONE."""
    NONE = "none"
    OWNER = "owner"
    ADMIN = "admin"
    USER = "user"


# Roles the owner may hand out through assign_role
ASSIGNABLE_ROLES = frozenset({Role.ADMIN, Role.USER})


class ClaimStatus(str, Enum):
    """
    Lifecycle status of a claim.

    SUBMITTED is the initial (and zero) value. A single status update is
    allowed while a claim is SUBMITTED; after that the claim is frozen.
    """
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


# ============================================================================
# Records
# ============================================================================


class Policy(BaseModel):
    """An insurance policy issued to a registered user."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(default=0, ge=0, description="Sequential policy id, 0 for an absent record")
    holder: Identity = Field(default=NULL_IDENTITY, description="Policyholder identity")
    details: str = Field(default="", description="Free-text policy terms")
    coverage_amount: int = Field(default=0, ge=0, description="Coverage, whole currency units")
    is_active: bool = Field(default=False, description="Cleared on deactivation, never set again")

    @classmethod
    def empty(cls) -> "Policy":
        """The zero-valued policy returned for ids that were never issued."""
        return cls()

    @property
    def exists(self) -> bool:
        return self.id != 0


class Claim(BaseModel):
    """A claim filed by a policyholder against one of their policies."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(default=0, ge=0, description="Sequential claim id, 0 for an absent record")
    policy_id: int = Field(default=0, ge=0, description="Policy the claim was filed against")
    claimant: Identity = Field(default=NULL_IDENTITY, description="Identity that filed the claim")
    description: str = Field(default="", description="What happened")
    status: ClaimStatus = Field(default=ClaimStatus.SUBMITTED, description="Current lifecycle status")
    amount: int = Field(default=0, ge=0, description="Amount claimed, whole currency units")

    @classmethod
    def empty(cls) -> "Claim":
        """The zero-valued claim returned for ids that were never submitted."""
        return cls()

    @property
    def exists(self) -> bool:
        return self.id != 0

    @property
    def is_pending(self) -> bool:
        return self.status == ClaimStatus.SUBMITTED


# ============================================================================
# Notifications
# ============================================================================


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerEvent(BaseModel):
    """Base for notifications broadcast after a committed mutation."""

    model_config = ConfigDict(frozen=True)

    name: str = "LedgerEvent"
    sequence: int = Field(default=0, ge=0, description="Position in the event history, assigned on publish")
    emitted_at: datetime = Field(default_factory=_utcnow)


class RoleAssigned(LedgerEvent):
    name: Literal["RoleAssigned"] = "RoleAssigned"
    target: Identity
    role: Role


class PolicyIssued(LedgerEvent):
    name: Literal["PolicyIssued"] = "PolicyIssued"
    policy_id: int
    holder: Identity


class ClaimSubmitted(LedgerEvent):
    name: Literal["ClaimSubmitted"] = "ClaimSubmitted"
    claim_id: int
    policy_id: int
    claimant: Identity


class ClaimStatusUpdated(LedgerEvent):
    name: Literal["ClaimStatusUpdated"] = "ClaimStatusUpdated"
    claim_id: int
    status: ClaimStatus


AnyLedgerEvent = Union[RoleAssigned, PolicyIssued, ClaimSubmitted, ClaimStatusUpdated]

EVENT_NAMES = ("RoleAssigned", "PolicyIssued", "ClaimSubmitted", "ClaimStatusUpdated")


# ============================================================================
# Request Payloads
# ============================================================================


class RoleAssignment(BaseModel):
    """Body of a role assignment request."""
    target: Identity = Field(description="Identity receiving the role")
    role: str = Field(description="'admin' or 'user'")

    @field_validator("target")
    @classmethod
    def validate_target(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("target identity cannot be empty")
        return v.strip()


class PolicyRequest(BaseModel):
    """Body of a policy issuance request."""
    user: Identity = Field(description="Registered user receiving the policy")
    details: str = Field(default="", description="Free-text policy terms")
    coverage_amount: int = Field(ge=0, description="Coverage, whole currency units")


class ClaimRequest(BaseModel):
    """Body of a claim submission request."""
    policy_id: int = Field(ge=0, description="Policy the claim is filed against")
    description: str = Field(default="", description="What happened")
    amount: int = Field(ge=0, description="Amount claimed, whole currency units")


class StatusUpdate(BaseModel):
    """Body of a claim status update request."""
    status: str = Field(description="'submitted', 'approved', 'rejected' or 'paid'")
