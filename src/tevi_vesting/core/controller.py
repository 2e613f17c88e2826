"""
Vesting controller: the only writer of ledger state.

Lifecycle:
    configure -> deposit / whitelist (any order, repeatable) -> start -> claim

``start_vesting`` is a one-way lock. Before it, the schedule may be
reconfigured and funding accumulates; after it, the schedule is frozen and
recipients may claim.

Every public operation runs under a single re-entrant lock, reads the clock
once, checks authorization and all preconditions, performs any treasury
transfer, and only then writes ledger state. A failure at any step leaves
the ledger exactly as it was.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from . import claim_engine
from .config import VestingSettings
from .events import EventLog, EventSink, VestingEvent, VestingEventType
from .exceptions import (
    AlreadyLockedError,
    AssetNotConfiguredError,
    ConsistencyError,
    InsufficientBalanceError,
    NotStartedError,
    NotWhitelistedError,
    NothingToClaimError,
    ZeroAmountError,
)
from .ownership import OwnershipAuthority, assert_admin, normalize_address
from .schedule import VestingSchedule, build_schedule
from .treasury import TreasuryAdapter
from .whitelist import WhitelistLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VestingInfo:
    """Snapshot of one recipient's position at a given time."""

    total_amount: int
    claimed_amount: int
    claimable: int
    last_claim_time: int
    paused: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_amount": self.total_amount,
            "claimed_amount": self.claimed_amount,
            "claimable": self.claimable,
            "last_claim_time": self.last_claim_time,
            "paused": self.paused,
        }


@dataclass
class LedgerState:
    schedule: Optional[VestingSchedule] = None
    held_balance: int = 0
    asset_configured: bool = False
    locked: bool = False
    started_at: int = 0
    whitelist: WhitelistLedger = field(default_factory=WhitelistLedger)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schedule": self.schedule.to_dict() if self.schedule else None,
            "held_balance": self.held_balance,
            "asset_configured": self.asset_configured,
            "locked": self.locked,
            "started_at": self.started_at,
            "whitelist": self.whitelist.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerState":
        schedule_data = data.get("schedule")
        return cls(
            schedule=VestingSchedule.from_dict(schedule_data) if schedule_data else None,
            held_balance=int(data.get("held_balance", 0)),
            asset_configured=bool(data.get("asset_configured", False)),
            locked=bool(data.get("locked", False)),
            started_at=int(data.get("started_at", 0)),
            whitelist=WhitelistLedger.from_dict(data.get("whitelist", {})),
        )


class VestingController:
    """
    Orchestrates schedule configuration, funding, whitelisting and claims.

    Args:
        address: Custody address of this ledger in the treasury
        authority: Answers who may administer the ledger
        treasury: Moves asset balances
        time_provider: Returns the current unix time in seconds
        event_sink: Receives ledger events (defaults to an in-memory log)
        settings: Policy switches for re-whitelisting and post-lock edits
        state: Existing state to resume from
    """

    def __init__(
        self,
        address: str,
        authority: OwnershipAuthority,
        treasury: TreasuryAdapter,
        time_provider: Callable[[], int] | None = None,
        event_sink: EventSink | None = None,
        settings: VestingSettings | None = None,
        state: LedgerState | None = None,
    ):
        if not address:
            raise ValueError("Ledger address cannot be empty.")
        self.address = normalize_address(address)
        self.authority = authority
        self.treasury = treasury
        self.settings = settings or VestingSettings()
        self.events = event_sink if event_sink is not None else EventLog()
        self._time_provider = time_provider or (lambda: int(time.time()))
        self._state = state or LedgerState(whitelist=WhitelistLedger(self.settings.rewhitelist_policy))
        self._state.whitelist.policy = self.settings.rewhitelist_policy
        self._lock = threading.RLock()

    def _current_time(self) -> int:
        timestamp = self._time_provider()
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise ValueError("time_provider must return an integer timestamp") from exc

    def _emit(self, event_type: VestingEventType, now: int, **data: Any) -> None:
        self.events.emit(VestingEvent(event_type=event_type, timestamp=now, data=data))

    @property
    def state(self) -> LedgerState:
        return self._state

    # ==================== Admin Operations ====================

    def configure_vesting(
        self,
        admin: str,
        cliff_periods: int,
        initial_unlock_bps: int,
        linear_periods: int,
        asset_id: str,
        start_time: int,
        epoch_seconds: int,
    ) -> VestingSchedule:
        """
        Set or replace the schedule and bind the disbursed asset.

        Raises:
            NotAdminError: If ``admin`` is not the ledger admin
            AlreadyLockedError: If vesting has started
            InvalidScheduleError: If a parameter is out of range
        """
        with self._lock:
            now = self._current_time()
            assert_admin(self.authority, admin)
            if self._state.locked:
                raise AlreadyLockedError("Schedule is locked; vesting already started")
            schedule = build_schedule(
                cliff_periods=cliff_periods,
                initial_unlock_bps=initial_unlock_bps,
                linear_periods=linear_periods,
                asset_id=asset_id,
                start_time=start_time,
                epoch_seconds=epoch_seconds,
            )
            self.treasury.ensure_receiving_slot(self.address, schedule.asset_id)

            previous = self._state.schedule
            if previous is not None and previous.asset_id != schedule.asset_id and self._state.held_balance:
                logger.warning(
                    "Asset rebound while holding deposits of the previous asset",
                    extra={
                        "event": "vesting.asset_rebound",
                        "previous_asset": previous.asset_id[:10],
                        "held_balance": self._state.held_balance,
                    },
                )
            self._state.schedule = schedule
            self._state.asset_configured = True

            logger.info(
                "Vesting configured",
                extra={"event": "vesting.configured", **schedule.to_dict()},
            )
            self._emit(VestingEventType.CONFIGURED, now, **schedule.to_dict())
            return schedule

    def deposit(self, admin: str, amount: int) -> int:
        """
        Move ``amount`` from the admin into custody.

        Returns:
            New held balance

        Raises:
            NotAdminError: If ``admin`` is not the ledger admin
            ZeroAmountError: If ``amount`` is not positive
            AssetNotConfiguredError: If no asset is bound yet
            TreasuryError: If the admin balance is short
        """
        with self._lock:
            now = self._current_time()
            assert_admin(self.authority, admin)
            if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
                raise ZeroAmountError("Deposit amount must be a positive integer", details={"amount": repr(amount)})
            schedule = self._require_asset()

            self.treasury.transfer(admin, self.address, schedule.asset_id, amount)
            self._state.held_balance += amount

            logger.info(
                "Tokens deposited",
                extra={
                    "event": "vesting.deposited",
                    "admin": admin[:10],
                    "amount": amount,
                    "held_balance": self._state.held_balance,
                },
            )
            self._emit(VestingEventType.DEPOSITED, now, admin=normalize_address(admin), amount=amount)
            return self._state.held_balance

    def batch_whitelist(self, admin: str, recipients: Sequence[str], amounts: Sequence[int]) -> int:
        """
        Create or overwrite allocations.

        No funding check happens here; ``start_vesting`` performs it.

        Returns:
            Number of allocations written

        Raises:
            NotAdminError: If ``admin`` is not the ledger admin
            LengthMismatchError: If the sequences differ in length
            AlreadyLockedError: If locked and post-lock whitelisting is disabled
        """
        with self._lock:
            now = self._current_time()
            assert_admin(self.authority, admin)
            recipients = list(recipients)
            amounts = list(amounts)
            if self._state.locked and not self.settings.allow_post_lock_whitelist:
                raise AlreadyLockedError("Whitelist is frozen once vesting has started")
            staged = self._state.whitelist.prepare_batch(recipients, amounts)
            self._state.whitelist.apply_batch(staged)

            if self._state.locked:
                shortfall = self._shortfall()
                if shortfall:
                    logger.warning(
                        "Post-lock whitelist leaves ledger underfunded",
                        extra={"event": "vesting.underfunded", "shortfall": shortfall},
                    )
            logger.info(
                "Users whitelisted",
                extra={"event": "vesting.whitelisted", "count": len(staged), "locked": self._state.locked},
            )
            self._emit(
                VestingEventType.WHITELISTED,
                now,
                recipients=list(staged.keys()),
                amounts=[a.total_amount for a in staged.values()],
            )
            return len(staged)

    def set_pause(self, admin: str, recipient: str, paused: bool) -> None:
        """
        Pause or unpause one recipient's claims.

        Raises:
            NotAdminError: If ``admin`` is not the ledger admin
            UnknownRecipientError: If ``recipient`` has no allocation
        """
        with self._lock:
            now = self._current_time()
            assert_admin(self.authority, admin)
            self._state.whitelist.set_paused(recipient, bool(paused))

            logger.info(
                "Recipient %s",
                "paused" if paused else "unpaused",
                extra={"event": "vesting.pause_changed", "recipient": recipient[:10], "paused": bool(paused)},
            )
            self._emit(
                VestingEventType.PAUSED if paused else VestingEventType.UNPAUSED,
                now,
                recipient=normalize_address(recipient),
            )

    def start_vesting(self, admin: str) -> int:
        """
        Lock the schedule and open claims.

        Returns:
            The timestamp recorded as the start of vesting

        Raises:
            NotAdminError: If ``admin`` is not the ledger admin
            AlreadyLockedError: If vesting already started
            AssetNotConfiguredError: If no asset is bound
            InsufficientBalanceError: If held funds do not cover all allocations
        """
        with self._lock:
            now = self._current_time()
            assert_admin(self.authority, admin)
            if self._state.locked:
                raise AlreadyLockedError("Vesting already started")
            schedule = self._require_asset()
            required = self._state.whitelist.total_allocated()
            # held_balance may still count units of a previously bound asset
            custody = self.treasury.balance_of(self.address, schedule.asset_id)
            if min(self._state.held_balance, custody) < required:
                raise InsufficientBalanceError(
                    f"Held balance {self._state.held_balance} (custody {custody} of {schedule.asset_id}) "
                    f"does not cover allocations {required}",
                    details={"held_balance": self._state.held_balance, "custody": custody, "required": required},
                )

            self._state.locked = True
            self._state.started_at = now

            logger.info(
                "Vesting started",
                extra={
                    "event": "vesting.started",
                    "started_at": now,
                    "held_balance": self._state.held_balance,
                    "allocated": required,
                },
            )
            self._emit(VestingEventType.STARTED, now, started_at=now)
            return now

    # ==================== Recipient Operations ====================

    def claim(self, recipient: str) -> int:
        """
        Pay out everything the schedule has released to ``recipient``.

        Returns:
            Amount transferred

        Raises:
            NotWhitelistedError: If the recipient is unknown or paused
            NotStartedError: If vesting has not started
            NothingToClaimError: If nothing new has vested
            InsufficientBalanceError: If custody cannot cover the payout
            ConsistencyError: If claimed exceeds vested
        """
        with self._lock:
            now = self._current_time()
            address = normalize_address(recipient or "")
            allocation = self._state.whitelist.get(address) if address else None
            if allocation is None or allocation.paused:
                logger.warning(
                    "Claim rejected: recipient not whitelisted",
                    extra={"event": "vesting.claim_rejected", "recipient": address[:10]},
                )
                raise NotWhitelistedError(f"Recipient {recipient!r} is not whitelisted")
            if not self._state.locked or self._state.schedule is None:
                raise NotStartedError("Vesting has not started")

            schedule = self._state.schedule
            try:
                amount = claim_engine.claimable(
                    schedule, allocation.total_amount, allocation.claimed_amount, now
                )
            except ConsistencyError:
                logger.error(
                    "Claim rejected: ledger inconsistency",
                    extra={"event": "vesting.claim_inconsistent", "recipient": address[:10]},
                    exc_info=True,
                )
                raise
            if amount == 0:
                raise NothingToClaimError("Nothing to claim yet", details={"next_unlock": self._next_unlock(now)})
            if amount > self._state.held_balance:
                raise InsufficientBalanceError(
                    f"Held balance {self._state.held_balance} cannot cover claim {amount}",
                    details={"held_balance": self._state.held_balance, "amount": amount},
                )

            self.treasury.transfer(self.address, address, schedule.asset_id, amount)
            self._state.whitelist.record_claim(address, amount, now)
            self._state.held_balance -= amount

            logger.info(
                "Tokens claimed",
                extra={
                    "event": "vesting.claimed",
                    "recipient": address[:10],
                    "amount": amount,
                    "claimed_amount": allocation.claimed_amount,
                    "total_amount": allocation.total_amount,
                },
            )
            self._emit(VestingEventType.CLAIMED, now, recipient=address, amount=amount)
            return amount

    # ==================== View Functions ====================

    def vesting_info(self, recipient: str, now: Optional[int] = None) -> VestingInfo:
        """
        Recipient snapshot with a live claimable amount.

        The claimable figure is schedule-relative and ignores the paused flag.

        Raises:
            UnknownRecipientError: If ``recipient`` has no allocation
        """
        with self._lock:
            current = self._current_time() if now is None else int(now)
            allocation = self._state.whitelist.require(recipient)
            claimable = 0
            if self._state.schedule is not None:
                claimable = claim_engine.claimable(
                    self._state.schedule,
                    allocation.total_amount,
                    allocation.claimed_amount,
                    current,
                    strict=False,
                )
            return VestingInfo(
                total_amount=allocation.total_amount,
                claimed_amount=allocation.claimed_amount,
                claimable=claimable,
                last_claim_time=allocation.last_claim_time,
                paused=allocation.paused,
            )

    def contract_balance(self) -> int:
        return self._state.held_balance

    def schedule(self) -> Optional[VestingSchedule]:
        return self._state.schedule

    def schedule_info(self) -> Dict[str, Any]:
        """Schedule fields plus lifecycle flags."""
        with self._lock:
            schedule = self._state.schedule
            return {
                "schedule": schedule.to_dict() if schedule else None,
                "asset_configured": self._state.asset_configured,
                "locked": self._state.locked,
                "started_at": self._state.started_at,
            }

    def total_allocated(self) -> int:
        return self._state.whitelist.total_allocated()

    def amount_needed_to_fund(self) -> int:
        with self._lock:
            return self._shortfall()

    def next_unlock_time(self, now: Optional[int] = None) -> int:
        with self._lock:
            current = self._current_time() if now is None else int(now)
            return self._next_unlock(current)

    def all_recipients(self) -> List[Tuple[str, int]]:
        with self._lock:
            return self._state.whitelist.recipients()

    # ==================== Helpers ====================

    def _require_asset(self) -> VestingSchedule:
        if not self._state.asset_configured or self._state.schedule is None:
            raise AssetNotConfiguredError("No asset configured; call configure_vesting first")
        return self._state.schedule

    def _shortfall(self) -> int:
        return max(0, self._state.whitelist.total_allocated() - self._state.held_balance)

    def _next_unlock(self, now: int) -> int:
        if self._state.schedule is None:
            return 0
        return claim_engine.next_unlock_time(self._state.schedule, self._state.locked, now)
