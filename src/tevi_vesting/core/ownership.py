"""
Administrative capability for a ledger instance.

Admin rights belong to whoever currently owns the ledger, as answered by an
``OwnershipAuthority``. Nothing caches the answer: every admin-gated operation
asks again, so a transfer of ownership takes effect on the very next call.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

from .exceptions import NotAdminError, ValidationError

logger = logging.getLogger(__name__)


class OwnershipAuthority(Protocol):
    def is_admin(self, principal: str) -> bool:
        ...


def normalize_address(address: str) -> str:
    """Normalize address to lowercase."""
    return address.strip().lower()


def assert_admin(authority: OwnershipAuthority, principal: str) -> None:
    """
    Require ``principal`` to currently hold admin capability.

    Raises:
        NotAdminError: If the authority rejects the principal
    """
    if not principal or not authority.is_admin(normalize_address(principal)):
        logger.warning(
            "Admin check failed",
            extra={"event": "vesting.not_admin", "principal": (principal or "")[:10]},
        )
        raise NotAdminError(
            f"Caller {principal!r} is not the ledger admin",
            details={"principal": principal},
        )


class Ownable:
    """
    Single-owner authority with transfer and renounce.

    An empty owner means ownership was renounced; nobody is admin afterwards.
    """

    def __init__(self, owner: str):
        if not owner or not owner.strip():
            raise ValidationError("Owner address cannot be empty.")
        self._owner = normalize_address(owner)

    @property
    def owner(self) -> Optional[str]:
        return self._owner or None

    def is_admin(self, principal: str) -> bool:
        return bool(self._owner) and normalize_address(principal) == self._owner

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        """Owner-only: hand admin capability to ``new_owner``."""
        assert_admin(self, caller)
        if not new_owner or not new_owner.strip():
            raise ValidationError("New owner cannot be empty; use renounce_ownership.")
        previous = self._owner
        self._owner = normalize_address(new_owner)
        logger.info(
            "Ownership transferred",
            extra={"event": "vesting.ownership_transferred", "previous": previous[:10], "new": self._owner[:10]},
        )

    def renounce_ownership(self, caller: str) -> None:
        """Owner-only: leave the ledger without an admin."""
        assert_admin(self, caller)
        previous = self._owner
        self._owner = ""
        logger.warning(
            "Ownership renounced",
            extra={"event": "vesting.ownership_renounced", "previous": previous[:10]},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"owner": self._owner}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Ownable":
        authority = cls.__new__(cls)
        authority._owner = normalize_address(data.get("owner") or "")
        return authority
