"""
Vesting ledger core.

Re-exports the controller, its collaborator contracts and the error types.
"""

from .claim_engine import claimable, next_unlock_time, vested_amount
from .config import RewhitelistPolicy, VestingSettings
from .controller import LedgerState, VestingController, VestingInfo
from .events import EventLog, VestingEvent, VestingEventType
from .exceptions import (
    AllocationBelowClaimedError,
    AlreadyLockedError,
    AssetNotConfiguredError,
    AuthorizationError,
    ConsistencyError,
    InsufficientBalanceError,
    InvalidScheduleError,
    LengthMismatchError,
    NotAdminError,
    NothingToClaimError,
    NotStartedError,
    NotWhitelistedError,
    StateError,
    TreasuryError,
    UnknownRecipientError,
    ValidationError,
    VestingError,
    ZeroAmountError,
)
from .ownership import Ownable, assert_admin
from .presets import PRESETS, SchedulePreset, get_preset
from .schedule import VestingSchedule, build_schedule
from .state_store import load_controller, new_controller, save_controller
from .treasury import InMemoryTreasury
from .whitelist import Allocation, WhitelistLedger

__all__ = [
    # Engine
    "claimable",
    "vested_amount",
    "next_unlock_time",
    # Ledger
    "VestingController",
    "VestingInfo",
    "LedgerState",
    "VestingSchedule",
    "build_schedule",
    "Allocation",
    "WhitelistLedger",
    "new_controller",
    "load_controller",
    "save_controller",
    "PRESETS",
    "SchedulePreset",
    "get_preset",
    # Collaborators
    "Ownable",
    "assert_admin",
    "InMemoryTreasury",
    "EventLog",
    "VestingEvent",
    "VestingEventType",
    # Configuration
    "VestingSettings",
    "RewhitelistPolicy",
    # Errors
    "VestingError",
    "AuthorizationError",
    "NotAdminError",
    "ValidationError",
    "InvalidScheduleError",
    "ZeroAmountError",
    "LengthMismatchError",
    "AllocationBelowClaimedError",
    "StateError",
    "AlreadyLockedError",
    "AssetNotConfiguredError",
    "InsufficientBalanceError",
    "NothingToClaimError",
    "NotStartedError",
    "NotWhitelistedError",
    "UnknownRecipientError",
    "ConsistencyError",
    "TreasuryError",
]
