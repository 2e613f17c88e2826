"""
Vesting ledger configuration.

Settings come from environment variables, optionally layered over a YAML
file. Environment values always win over file values.

Environment variables:
- TEVI_NETWORK: "testnet" (default) or "mainnet"
- TEVI_LOG_LEVEL: logging level name (default INFO)
- TEVI_LOG_FILE: optional JSON log file path
- TEVI_REWHITELIST_POLICY: "reset" (default) or "preserve"
- TEVI_ALLOW_POST_LOCK_WHITELIST: "1"/"0", "true"/"false" (default true)
- TEVI_STATE_FILE: local CLI state path
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"


class RewhitelistPolicy(Enum):
    """What happens to claim history when a recipient is whitelisted again."""

    RESET = "reset"
    PRESERVE = "preserve"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

DEFAULT_STATE_FILE = os.path.join(os.getcwd(), "tevi_vesting_state.json")


def _parse_bool(name: str, raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    value = str(raw).strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


def _parse_enum(name: str, enum_cls, raw: Any):
    try:
        return enum_cls(str(raw).strip().lower())
    except ValueError as exc:
        choices = ", ".join(member.value for member in enum_cls)
        raise ConfigurationError(f"{name} must be one of: {choices}; got {raw!r}") from exc


@dataclass
class VestingSettings:
    network: NetworkType = NetworkType.TESTNET
    log_level: str = "INFO"
    log_file: Optional[str] = None
    rewhitelist_policy: RewhitelistPolicy = RewhitelistPolicy.RESET
    allow_post_lock_whitelist: bool = True
    state_file: str = DEFAULT_STATE_FILE

    def __post_init__(self) -> None:
        if not isinstance(self.network, NetworkType):
            self.network = _parse_enum("network", NetworkType, self.network)
        if not isinstance(self.rewhitelist_policy, RewhitelistPolicy):
            self.rewhitelist_policy = _parse_enum("rewhitelist_policy", RewhitelistPolicy, self.rewhitelist_policy)
        self.allow_post_lock_whitelist = _parse_bool("allow_post_lock_whitelist", self.allow_post_lock_whitelist)
        level = str(self.log_level).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ConfigurationError(f"log_level {self.log_level!r} is not a logging level")
        self.log_level = level

    @classmethod
    def from_env(cls, base: Optional[Mapping[str, Any]] = None, environ: Optional[Mapping[str, str]] = None) -> "VestingSettings":
        """Build settings from ``base`` values overridden by environment variables."""
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = dict(base or {})
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ConfigurationError(f"Unknown settings: {', '.join(sorted(unknown))}")

        overrides = {
            "network": env.get("TEVI_NETWORK"),
            "log_level": env.get("TEVI_LOG_LEVEL"),
            "log_file": env.get("TEVI_LOG_FILE"),
            "rewhitelist_policy": env.get("TEVI_REWHITELIST_POLICY"),
            "allow_post_lock_whitelist": env.get("TEVI_ALLOW_POST_LOCK_WHITELIST"),
            "state_file": env.get("TEVI_STATE_FILE"),
        }
        for key, raw in overrides.items():
            if raw is not None and str(raw).strip():
                values[key] = str(raw).strip()

        settings = cls(**values)
        if settings.network == NetworkType.MAINNET and settings.rewhitelist_policy == RewhitelistPolicy.RESET:
            logger.warning(
                "Re-whitelisting resets claim history on mainnet",
                extra={"event": "config.rewhitelist_reset", "network": settings.network.value},
            )
        return settings

    @classmethod
    def from_yaml(cls, path: Path, environ: Optional[Mapping[str, str]] = None) -> "VestingSettings":
        """Load a YAML mapping, then apply environment overrides."""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Config file {path} does not exist")
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping.")
        return cls.from_env(base=data, environ=environ)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["network"] = self.network.value
        data["rewhitelist_policy"] = self.rewhitelist_policy.value
        return data
