"""
Named vesting schedules used by the token launch.

Each preset fixes cliff, initial unlock and linear length; start time and
asset are supplied at configuration time. Epochs default to 30 days.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from .exceptions import InvalidScheduleError
from .schedule import VestingSchedule, build_schedule

MONTH_SECONDS = 30 * 24 * 3600


@dataclass(frozen=True)
class SchedulePreset:
    name: str
    description: str
    cliff_periods: int
    initial_unlock_bps: int
    linear_periods: int
    epoch_seconds: int = MONTH_SECONDS

    def build(self, asset_id: str, start_time: int, epoch_seconds: Optional[int] = None) -> VestingSchedule:
        return build_schedule(
            cliff_periods=self.cliff_periods,
            initial_unlock_bps=self.initial_unlock_bps,
            linear_periods=self.linear_periods,
            asset_id=asset_id,
            start_time=start_time,
            epoch_seconds=self.epoch_seconds if epoch_seconds is None else epoch_seconds,
        )


PRESETS: Dict[str, SchedulePreset] = {
    preset.name: preset
    for preset in (
        SchedulePreset("private_investor", "Private investors: 3 month cliff, 10% TGE, 36 months linear", 3, 1000, 36),
        SchedulePreset("seed_angel", "Seed and angel: 6 month cliff, 10% TGE, 36 months linear", 6, 1000, 36),
        SchedulePreset("team_advisor", "Team and advisors: 6 month cliff, no TGE, 60 months linear", 6, 0, 60),
        SchedulePreset("foundation", "Foundation: 3 month cliff, no TGE, 60 months linear", 3, 0, 60),
        SchedulePreset("ecosystem", "Ecosystem: 3 month cliff, no TGE, 60 months linear", 3, 0, 60),
    )
}


def get_preset(name: str) -> SchedulePreset:
    key = name.strip().lower().replace("-", "_")
    try:
        return PRESETS[key]
    except KeyError:
        raise InvalidScheduleError(
            f"Unknown schedule preset {name!r}",
            details={"preset": name, "available": sorted(PRESETS)},
        ) from None
