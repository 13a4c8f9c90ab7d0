"""
Ledger exception taxonomy.

Every rejected operation raises one of these before any state changes.
"""


class LedgerError(Exception):
    """Base exception for ledger errors."""

    code = "LedgerError"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class Unauthorized(LedgerError):
    """Raised when the caller's role does not permit the operation."""
    code = "Unauthorized"


class InvalidRole(LedgerError):
    """Raised when assigning the owner role, the empty role, or an unknown role."""
    code = "InvalidRole"


class NotARegisteredUser(LedgerError):
    """Raised when a policy is issued to an identity without the user role."""
    code = "NotARegisteredUser"


class PolicyInactive(LedgerError):
    """Raised when claiming against a deactivated or never-issued policy."""
    code = "PolicyInactive"


class NotPolicyHolder(LedgerError):
    """Raised when the caller does not hold the policy being claimed against."""
    code = "NotPolicyHolder"


class ClaimNotPending(LedgerError):
    """Raised when updating a claim that already left the submitted state."""
    code = "ClaimNotPending"


class InvalidClaimStatus(LedgerError):
    """Raised when a status update names an unknown status."""
    code = "InvalidClaimStatus"


class RecordNotFound(LedgerError):
    """Raised for missing policy/claim ids when strict lookup is enabled."""
    code = "RecordNotFound"


class AlreadyInitialized(LedgerError):
    """Raised when the role registry is initialized a second time."""
    code = "AlreadyInitialized"
