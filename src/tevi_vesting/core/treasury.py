"""
Treasury adapter contract and an in-memory reference implementation.

The ledger never touches balances directly; it asks a ``TreasuryAdapter`` to
move value. ``InMemoryTreasury`` keeps per-asset balances keyed by address and
tracks which addresses have a receiving slot (a primary store) for an asset.

Security features:
- Balance underflow prevention
- Negative amount rejection
- Transfers are all-or-nothing
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Protocol, Set, Tuple

from .exceptions import TreasuryError
from .ownership import normalize_address

logger = logging.getLogger(__name__)


class TreasuryAdapter(Protocol):
    def transfer(self, sender: str, recipient: str, asset_id: str, amount: int) -> None:
        ...

    def ensure_receiving_slot(self, address: str, asset_id: str) -> None:
        ...

    def balance_of(self, address: str, asset_id: str) -> int:
        ...


class InMemoryTreasury:
    """
    Multi-asset balance book.

    Balances live in ``balances[asset_id][address]``. A transfer implicitly
    opens a receiving slot for the recipient, as a primary store would.
    """

    def __init__(self) -> None:
        self.balances: Dict[str, Dict[str, int]] = {}
        self.slots: Set[Tuple[str, str]] = set()
        self._lock = threading.RLock()

    # ==================== View Functions ====================

    def balance_of(self, address: str, asset_id: str) -> int:
        return self.balances.get(asset_id, {}).get(normalize_address(address), 0)

    def has_slot(self, address: str, asset_id: str) -> bool:
        return (normalize_address(address), asset_id) in self.slots

    def total_supply(self, asset_id: str) -> int:
        return sum(self.balances.get(asset_id, {}).values())

    # ==================== State-Changing Functions ====================

    def ensure_receiving_slot(self, address: str, asset_id: str) -> None:
        """Idempotently prepare ``address`` to hold ``asset_id``."""
        key = (normalize_address(address), asset_id)
        with self._lock:
            if key in self.slots:
                return
            self.slots.add(key)
            self.balances.setdefault(asset_id, {}).setdefault(key[0], 0)
        logger.debug(
            "Receiving slot created",
            extra={"event": "treasury.slot_created", "address": key[0][:10], "asset_id": asset_id[:10]},
        )

    def mint(self, address: str, asset_id: str, amount: int) -> None:
        """Credit new units to ``address`` (local funding only)."""
        self._validate_amount(amount)
        self.ensure_receiving_slot(address, asset_id)
        with self._lock:
            book = self.balances[asset_id]
            addr = normalize_address(address)
            book[addr] = book.get(addr, 0) + amount
        logger.info(
            "Treasury mint",
            extra={"event": "treasury.mint", "address": address[:10], "asset_id": asset_id[:10], "amount": amount},
        )

    def transfer(self, sender: str, recipient: str, asset_id: str, amount: int) -> None:
        """
        Move ``amount`` of ``asset_id`` between addresses.

        Raises:
            TreasuryError: If the amount is invalid or the sender balance is short
        """
        self._validate_amount(amount)
        sender_norm = normalize_address(sender)
        recipient_norm = normalize_address(recipient)
        if not recipient_norm:
            raise TreasuryError("Treasury: recipient is empty")

        with self._lock:
            sender_balance = self.balance_of(sender_norm, asset_id)
            if sender_balance < amount:
                raise TreasuryError(
                    f"Treasury: transfer amount exceeds balance ({amount} > {sender_balance})",
                    details={"sender": sender_norm, "asset_id": asset_id, "amount": amount, "balance": sender_balance},
                )
            self.ensure_receiving_slot(recipient_norm, asset_id)
            book = self.balances.setdefault(asset_id, {})
            book[sender_norm] = sender_balance - amount
            book[recipient_norm] = book.get(recipient_norm, 0) + amount

        logger.debug(
            "Treasury transfer",
            extra={
                "event": "treasury.transfer",
                "from": sender_norm[:10],
                "to": recipient_norm[:10],
                "amount": amount,
            },
        )

    # ==================== Helpers ====================

    @staticmethod
    def _validate_amount(amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise TreasuryError("Treasury: amount must be an integer")
        if amount < 0:
            raise TreasuryError("Treasury: amount cannot be negative")

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "balances": {asset: dict(book) for asset, book in self.balances.items()},
            "slots": sorted([list(slot) for slot in self.slots]),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryTreasury":
        treasury = cls()
        treasury.balances = {
            asset: {addr: int(value) for addr, value in book.items()}
            for asset, book in data.get("balances", {}).items()
        }
        treasury.slots = {(addr, asset) for addr, asset in data.get("slots", [])}
        return treasury
