"""
Claimable-amount computation for cliff + initial unlock + linear schedules.

All arithmetic is integer-only. Per-period release truncates, and the final
period releases whatever the truncation left behind, so every allocated unit
becomes claimable once the schedule completes.
"""

from __future__ import annotations

import logging

from .exceptions import ConsistencyError
from .schedule import BPS_DENOMINATOR, VestingSchedule

logger = logging.getLogger(__name__)


def elapsed_periods(schedule: VestingSchedule, now: int) -> int:
    """Whole epochs elapsed since ``start_time`` (0 at or before start)."""
    if now <= schedule.start_time:
        return 0
    return (now - schedule.start_time) // schedule.epoch_seconds


def vested_amount(schedule: VestingSchedule, total_amount: int, now: int) -> int:
    """
    Cumulative amount released by ``now`` for an allocation of ``total_amount``.

    Args:
        schedule: Vesting schedule
        total_amount: Allocation size
        now: Current timestamp (seconds)

    Returns:
        Units unlocked to date, between 0 and ``total_amount``
    """
    if now <= schedule.start_time:
        return 0

    periods = elapsed_periods(schedule, now)
    # The initial unlock is gated by the cliff as well
    if periods < schedule.cliff_periods:
        return 0

    initial_amount = total_amount * schedule.initial_unlock_bps // BPS_DENOMINATOR
    remaining = total_amount - initial_amount
    vested_periods = min(periods - schedule.cliff_periods, schedule.linear_periods)

    if vested_periods == schedule.linear_periods:
        linear_amount = remaining
    else:
        per_period = remaining // schedule.linear_periods
        linear_amount = per_period * vested_periods

    return initial_amount + linear_amount


def claimable(
    schedule: VestingSchedule,
    total_amount: int,
    claimed_amount: int,
    now: int,
    strict: bool = True,
) -> int:
    """
    Newly claimable amount: vested to date minus already claimed.

    Args:
        schedule: Vesting schedule
        total_amount: Allocation size
        claimed_amount: Units already paid out
        now: Current timestamp (seconds)
        strict: Raise on a claimed amount above the vested amount. When False
            the shortfall is logged and 0 is returned.

    Raises:
        ConsistencyError: If ``claimed_amount`` exceeds the vested amount and
            ``strict`` is set
    """
    to_date = vested_amount(schedule, total_amount, now)
    if claimed_amount > to_date:
        if strict:
            raise ConsistencyError(
                "Claimed amount exceeds vested amount",
                details={
                    "claimed_amount": claimed_amount,
                    "vested_amount": to_date,
                    "total_amount": total_amount,
                    "now": now,
                },
            )
        logger.warning(
            "Claimed amount exceeds vested amount; reporting nothing claimable",
            extra={
                "event": "vesting.claimable_inconsistent",
                "claimed_amount": claimed_amount,
                "vested_amount": to_date,
            },
        )
        return 0
    return to_date - claimed_amount


def next_unlock_time(schedule: VestingSchedule, locked: bool, now: int) -> int:
    """
    Timestamp of the next unlock event, or 0 when there is none.

    Returns 0 while vesting has not started or once the linear window has
    ended. Before the cliff ends the cliff end is returned; inside the linear
    window the start of the next whole period.
    """
    if not locked:
        return 0
    if now < schedule.cliff_end:
        return schedule.cliff_end
    if now >= schedule.end_time:
        return 0
    periods = elapsed_periods(schedule, now)
    return schedule.start_time + (periods + 1) * schedule.epoch_seconds
