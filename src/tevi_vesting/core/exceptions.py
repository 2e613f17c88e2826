"""
Vesting ledger exception hierarchy.

Provides typed exceptions for every rejected ledger operation so callers can
distinguish authorization failures, malformed input, lifecycle violations and
internal consistency faults without parsing messages.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class VestingError(Exception):
    """Base exception for all vesting ledger errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the caller can succeed later without changing input
        code: Stable machine-readable identifier
    """

    code = "VESTING_ERROR"
    recoverable = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if recoverable is not None:
            self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "details": dict(self.details),
            "recoverable": self.recoverable,
        }


# ==================== Authorization Errors ====================


class AuthorizationError(VestingError):
    """Raised when the caller lacks administrative capability."""

    code = "UNAUTHORIZED"


class NotAdminError(AuthorizationError):
    """Raised when a non-admin principal calls an admin-only operation."""

    code = "NOT_ADMIN"


# ==================== Validation Errors ====================


class ValidationError(VestingError):
    """Raised when operation input is malformed."""

    code = "INVALID_INPUT"


class InvalidScheduleError(ValidationError):
    """Raised when schedule parameters are out of range."""

    code = "INVALID_SCHEDULE"


class ZeroAmountError(ValidationError):
    """Raised when a deposit amount is zero or negative."""

    code = "ZERO_AMOUNT"


class LengthMismatchError(ValidationError):
    """Raised when recipient and amount sequences differ in length."""

    code = "LENGTH_MISMATCH"


class AllocationBelowClaimedError(ValidationError):
    """Raised when a preserving overwrite would set total below claimed."""

    code = "ALLOCATION_BELOW_CLAIMED"


# ==================== State Errors ====================


class StateError(VestingError):
    """Raised when an operation is not permitted in the current lifecycle state.

    These are recoverable: the caller may succeed after a state change
    (a deposit, the passage of time, an admin action).
    """

    code = "INVALID_STATE"
    recoverable = True


class AlreadyLockedError(StateError):
    """Raised when configuration is attempted after vesting started."""

    code = "ALREADY_LOCKED"
    recoverable = False


class AssetNotConfiguredError(StateError):
    """Raised when funding or starting before an asset is bound."""

    code = "ASSET_NOT_CONFIGURED"


class InsufficientBalanceError(StateError):
    """Raised when held funds cannot cover the requested operation."""

    code = "INSUFFICIENT_BALANCE"


class NothingToClaimError(StateError):
    """Raised when a claim would release zero units."""

    code = "NOTHING_TO_CLAIM"


class NotStartedError(StateError):
    """Raised when claiming before vesting has been started."""

    code = "NOT_STARTED"


class NotWhitelistedError(StateError):
    """Raised when the claimant is unknown or paused.

    Paused and unknown recipients are deliberately indistinguishable.
    """

    code = "NOT_WHITELISTED"


class UnknownRecipientError(StateError):
    """Raised when an admin targets a recipient with no allocation."""

    code = "UNKNOWN_RECIPIENT"
    recoverable = False


# ==================== Consistency Errors ====================


class ConsistencyError(VestingError):
    """Raised when claimed exceeds what the schedule has released.

    Should never happen with correct inputs; the claim is rejected rather
    than underflowing a counter.
    """

    code = "CONSISTENCY"


# ==================== Treasury Errors ====================


class TreasuryError(VestingError):
    """Raised by a treasury adapter when a balance move cannot be performed."""

    code = "TREASURY"
