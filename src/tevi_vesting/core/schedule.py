"""
Vesting schedule record and parameter validation.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict

from .exceptions import InvalidScheduleError

BPS_DENOMINATOR = 10_000


@dataclass(frozen=True)
class VestingSchedule:
    """
    Unlock schedule bound to a single fungible asset.

    Periods are whole epochs counted from ``start_time``. Nothing vests until
    ``cliff_periods`` epochs have elapsed; at that point ``initial_unlock_bps``
    of the allocation unlocks, and the remainder releases evenly over
    ``linear_periods`` further epochs.
    """

    cliff_periods: int
    initial_unlock_bps: int
    linear_periods: int
    epoch_seconds: int
    start_time: int
    asset_id: str

    @property
    def cliff_end(self) -> int:
        return self.start_time + self.cliff_periods * self.epoch_seconds

    @property
    def end_time(self) -> int:
        """Timestamp at which the final linear period completes."""
        return self.start_time + (self.cliff_periods + self.linear_periods) * self.epoch_seconds

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VestingSchedule":
        return build_schedule(
            cliff_periods=data["cliff_periods"],
            initial_unlock_bps=data["initial_unlock_bps"],
            linear_periods=data["linear_periods"],
            asset_id=data["asset_id"],
            start_time=data["start_time"],
            epoch_seconds=data["epoch_seconds"],
        )


def _require_int(name: str, value: Any) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidScheduleError(
            f"{name} must be an integer",
            details={"field": name, "value": repr(value)},
        )
    return value


def build_schedule(
    cliff_periods: int,
    initial_unlock_bps: int,
    linear_periods: int,
    asset_id: str,
    start_time: int,
    epoch_seconds: int,
) -> VestingSchedule:
    """
    Validate raw parameters and return a schedule.

    Raises:
        InvalidScheduleError: If any parameter is out of range
    """
    for name, value in (
        ("cliff_periods", cliff_periods),
        ("initial_unlock_bps", initial_unlock_bps),
        ("linear_periods", linear_periods),
        ("start_time", start_time),
        ("epoch_seconds", epoch_seconds),
    ):
        _require_int(name, value)

    if not 0 <= initial_unlock_bps <= BPS_DENOMINATOR:
        raise InvalidScheduleError(
            f"initial_unlock_bps must be within [0, {BPS_DENOMINATOR}]",
            details={"field": "initial_unlock_bps", "value": initial_unlock_bps},
        )
    for name, value in (
        ("cliff_periods", cliff_periods),
        ("linear_periods", linear_periods),
        ("epoch_seconds", epoch_seconds),
        ("start_time", start_time),
    ):
        if value <= 0:
            raise InvalidScheduleError(
                f"{name} must be positive",
                details={"field": name, "value": value},
            )
    if not asset_id:
        raise InvalidScheduleError("asset_id cannot be empty", details={"field": "asset_id"})

    return VestingSchedule(
        cliff_periods=cliff_periods,
        initial_unlock_bps=initial_unlock_bps,
        linear_periods=linear_periods,
        epoch_seconds=epoch_seconds,
        start_time=start_time,
        asset_id=str(asset_id),
    )
