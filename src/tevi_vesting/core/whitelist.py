"""
Per-recipient allocation store.

Recipients are keyed by normalized address. Entries are never deleted; they
are overwritten by a later whitelist call or paused.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from .config import RewhitelistPolicy
from .exceptions import (
    AllocationBelowClaimedError,
    ConsistencyError,
    LengthMismatchError,
    UnknownRecipientError,
    ValidationError,
)
from .ownership import normalize_address

logger = logging.getLogger(__name__)


@dataclass
class Allocation:
    total_amount: int
    claimed_amount: int = 0
    last_claim_time: int = 0
    paused: bool = False

    @property
    def unclaimed(self) -> int:
        return self.total_amount - self.claimed_amount

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Allocation":
        return cls(
            total_amount=int(data["total_amount"]),
            claimed_amount=int(data.get("claimed_amount", 0)),
            last_claim_time=int(data.get("last_claim_time", 0)),
            paused=bool(data.get("paused", False)),
        )


class WhitelistLedger:
    """Mapping of recipient address to ``Allocation``."""

    def __init__(self, policy: RewhitelistPolicy = RewhitelistPolicy.RESET):
        self.policy = policy
        self._allocations: Dict[str, Allocation] = {}

    def __contains__(self, recipient: str) -> bool:
        return normalize_address(recipient) in self._allocations

    def __len__(self) -> int:
        return len(self._allocations)

    def __iter__(self) -> Iterator[Tuple[str, Allocation]]:
        return iter(self._allocations.items())

    def get(self, recipient: str) -> Optional[Allocation]:
        return self._allocations.get(normalize_address(recipient))

    def require(self, recipient: str) -> Allocation:
        allocation = self.get(recipient)
        if allocation is None:
            raise UnknownRecipientError(
                f"Recipient {recipient!r} is not whitelisted",
                details={"recipient": recipient},
            )
        return allocation

    def total_allocated(self) -> int:
        return sum(a.total_amount for a in self._allocations.values())

    def total_outstanding(self) -> int:
        return sum(a.unclaimed for a in self._allocations.values())

    def recipients(self) -> List[Tuple[str, int]]:
        return [(addr, a.total_amount) for addr, a in self._allocations.items()]

    def prepare_batch(self, recipients: Sequence[str], amounts: Sequence[int]) -> Dict[str, Allocation]:
        """
        Validate a whitelist batch and build the records it would write.

        Nothing is stored, so a rejected batch leaves the ledger untouched.
        A recipient listed twice keeps the last amount.

        Raises:
            LengthMismatchError: If the sequences differ in length
            ValidationError: On an empty address or a negative/non-integer amount
            AllocationBelowClaimedError: Under the preserve policy, when a new
                total is below what the recipient already claimed
        """
        if len(recipients) != len(amounts):
            raise LengthMismatchError(
                f"Got {len(recipients)} recipients and {len(amounts)} amounts",
                details={"recipients": len(recipients), "amounts": len(amounts)},
            )

        staged: Dict[str, Allocation] = {}
        for raw_address, amount in zip(recipients, amounts):
            address = normalize_address(raw_address or "")
            if not address:
                raise ValidationError("Recipient address cannot be empty.")
            if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
                raise ValidationError(
                    f"Allocation for {address} must be a non-negative integer",
                    details={"recipient": address, "amount": repr(amount)},
                )

            existing = staged.get(address) or self._allocations.get(address)
            if existing is not None and self.policy == RewhitelistPolicy.PRESERVE:
                if amount < existing.claimed_amount:
                    raise AllocationBelowClaimedError(
                        f"New allocation {amount} for {address} is below claimed {existing.claimed_amount}",
                        details={"recipient": address, "amount": amount, "claimed_amount": existing.claimed_amount},
                    )
                staged[address] = Allocation(
                    total_amount=amount,
                    claimed_amount=existing.claimed_amount,
                    last_claim_time=existing.last_claim_time,
                    paused=existing.paused,
                )
            else:
                staged[address] = Allocation(total_amount=amount)
        return staged

    def apply_batch(self, staged: Dict[str, Allocation]) -> None:
        overwritten = [addr for addr in staged if addr in self._allocations]
        self._allocations.update(staged)
        if overwritten:
            logger.info(
                "Existing allocations overwritten",
                extra={
                    "event": "vesting.whitelist_overwrite",
                    "count": len(overwritten),
                    "policy": self.policy.value,
                },
            )

    def set_paused(self, recipient: str, paused: bool) -> Allocation:
        allocation = self.require(recipient)
        allocation.paused = paused
        return allocation

    def record_claim(self, recipient: str, amount: int, now: int) -> Allocation:
        allocation = self.require(recipient)
        if allocation.claimed_amount + amount > allocation.total_amount:
            raise ConsistencyError(
                "Claim would exceed allocation",
                details={
                    "recipient": recipient,
                    "amount": amount,
                    "claimed_amount": allocation.claimed_amount,
                    "total_amount": allocation.total_amount,
                },
            )
        allocation.claimed_amount += amount
        allocation.last_claim_time = now
        return allocation

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy": self.policy.value,
            "allocations": {addr: a.to_dict() for addr, a in self._allocations.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WhitelistLedger":
        ledger = cls(policy=RewhitelistPolicy(data.get("policy", RewhitelistPolicy.RESET.value)))
        ledger._allocations = {
            normalize_address(addr): Allocation.from_dict(item)
            for addr, item in data.get("allocations", {}).items()
        }
        return ledger
