"""
JSON persistence for a locally hosted ledger.

Bundles the controller state together with its reference collaborators
(owner authority, in-memory treasury, event log) so the CLI can run one
operation per invocation against a state file.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .config import VestingSettings
from .controller import LedgerState, VestingController
from .events import EventLog
from .ownership import Ownable, normalize_address
from .treasury import InMemoryTreasury
from .whitelist import WhitelistLedger

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class StateFileError(Exception):
    """Raised when a state file is missing, unreadable or of an unknown version."""
    pass


def derive_ledger_address(owner: str, salt: str = "") -> str:
    """Deterministic 20-byte ledger address derived from its creator."""
    digest = hashlib.sha3_256(f"tevi-vesting:{normalize_address(owner)}:{salt}".encode()).digest()
    return f"0x{digest[-20:].hex()}"


def new_controller(
    owner: str,
    settings: Optional[VestingSettings] = None,
    time_provider: Callable[[], int] | None = None,
    address: Optional[str] = None,
) -> VestingController:
    """Create a fresh ledger with reference collaborators."""
    settings = settings or VestingSettings()
    return VestingController(
        address=address or derive_ledger_address(owner),
        authority=Ownable(owner),
        treasury=InMemoryTreasury(),
        time_provider=time_provider,
        event_sink=EventLog(),
        settings=settings,
        state=LedgerState(whitelist=WhitelistLedger(settings.rewhitelist_policy)),
    )


def controller_to_dict(controller: VestingController) -> Dict[str, Any]:
    if not isinstance(controller.authority, Ownable):
        raise StateFileError("Only Ownable authorities can be persisted")
    if not isinstance(controller.treasury, InMemoryTreasury):
        raise StateFileError("Only the in-memory treasury can be persisted")
    if not isinstance(controller.events, EventLog):
        raise StateFileError("Only EventLog sinks can be persisted")
    return {
        "version": STATE_VERSION,
        "address": controller.address,
        "authority": controller.authority.to_dict(),
        "treasury": controller.treasury.to_dict(),
        "events": controller.events.to_list(),
        "ledger": controller.state.to_dict(),
    }


def controller_from_dict(
    data: Dict[str, Any],
    settings: Optional[VestingSettings] = None,
    time_provider: Callable[[], int] | None = None,
) -> VestingController:
    version = data.get("version")
    if version != STATE_VERSION:
        raise StateFileError(f"Unsupported state version {version!r}")
    return VestingController(
        address=data["address"],
        authority=Ownable.from_dict(data.get("authority", {})),
        treasury=InMemoryTreasury.from_dict(data.get("treasury", {})),
        time_provider=time_provider,
        event_sink=EventLog.from_list(data.get("events", [])),
        settings=settings,
        state=LedgerState.from_dict(data.get("ledger", {})),
    )


def save_controller(controller: VestingController, path: Path) -> None:
    """Atomically write controller state to ``path``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = controller_to_dict(controller)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=".tevi-", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, sort_keys=True)
        os.replace(tmp_name, path)
    except OSError:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    logger.debug("Ledger state saved", extra={"event": "state.saved", "path": str(path)})


def load_controller(
    path: Path,
    settings: Optional[VestingSettings] = None,
    time_provider: Callable[[], int] | None = None,
) -> VestingController:
    path = Path(path)
    if not path.exists():
        raise StateFileError(f"State file {path} does not exist; run 'init' first")
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except json.JSONDecodeError as exc:
        raise StateFileError(f"State file {path} is not valid JSON: {exc}") from exc
    return controller_from_dict(data, settings=settings, time_provider=time_provider)
