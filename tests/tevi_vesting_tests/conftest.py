import pytest

from tevi_vesting.core.config import VestingSettings
from tevi_vesting.core.state_store import new_controller

ADMIN = "0xadmin"
ASSET = "0xtevi"
START = 1_700_000_000
EPOCH = 100


class ManualClock:
    def __init__(self, start_time: int):
        self.current_time = start_time

    def now(self) -> int:
        return self.current_time

    def advance(self, seconds: int):
        self.current_time += seconds

    def set(self, timestamp: int):
        self.current_time = timestamp


@pytest.fixture
def clock():
    return ManualClock(start_time=START - 1_000)


@pytest.fixture
def settings():
    return VestingSettings()


@pytest.fixture
def controller(clock, settings):
    """Unconfigured ledger owned by ADMIN with 1,000,000 units minted to ADMIN."""
    ctl = new_controller(ADMIN, settings=settings, time_provider=clock.now)
    ctl.treasury.mint(ADMIN, ASSET, 1_000_000)
    return ctl


@pytest.fixture
def configured(controller):
    """Ledger with the cliff=3 / 10% / linear=12 schedule configured."""
    controller.configure_vesting(
        ADMIN,
        cliff_periods=3,
        initial_unlock_bps=1000,
        linear_periods=12,
        asset_id=ASSET,
        start_time=START,
        epoch_seconds=EPOCH,
    )
    return controller


@pytest.fixture
def started(configured):
    """Started ledger with alice=1000 and bob=500, exactly funded."""
    configured.batch_whitelist(ADMIN, ["0xalice", "0xbob"], [1000, 500])
    configured.deposit(ADMIN, 1500)
    configured.start_vesting(ADMIN)
    return configured
