import pytest

from tevi_vesting.core.config import RewhitelistPolicy, VestingSettings
from tevi_vesting.core.events import VestingEventType
from tevi_vesting.core.exceptions import (
    AllocationBelowClaimedError,
    AlreadyLockedError,
    AssetNotConfiguredError,
    ConsistencyError,
    InsufficientBalanceError,
    InvalidScheduleError,
    LengthMismatchError,
    NotAdminError,
    NothingToClaimError,
    NotStartedError,
    NotWhitelistedError,
    StateError,
    TreasuryError,
    UnknownRecipientError,
    ValidationError,
    ZeroAmountError,
)
from tevi_vesting.core.state_store import new_controller

ADMIN = "0xadmin"
ASSET = "0xtevi"
START = 1_700_000_000
EPOCH = 100


def _configure(ctl, **overrides):
    params = dict(
        cliff_periods=3,
        initial_unlock_bps=1000,
        linear_periods=12,
        asset_id=ASSET,
        start_time=START,
        epoch_seconds=EPOCH,
    )
    params.update(overrides)
    return ctl.configure_vesting(ADMIN, **params)


class TestConfigure:
    def test_configure_binds_asset_and_slot(self, controller):
        schedule = _configure(controller)
        info = controller.schedule_info()
        assert info["asset_configured"] is True
        assert info["locked"] is False
        assert info["schedule"]["cliff_periods"] == 3
        assert controller.schedule() == schedule
        assert controller.treasury.has_slot(controller.address, ASSET)

    def test_reconfigure_before_lock(self, configured):
        _configure(configured, cliff_periods=6, initial_unlock_bps=0)
        assert configured.schedule().cliff_periods == 6
        assert configured.schedule().initial_unlock_bps == 0

    def test_configure_requires_admin(self, controller):
        with pytest.raises(NotAdminError):
            controller.configure_vesting("0xmallory", 3, 1000, 12, ASSET, START, EPOCH)
        assert controller.schedule() is None

    def test_invalid_schedule_leaves_state(self, configured):
        before = configured.schedule()
        with pytest.raises(InvalidScheduleError):
            _configure(configured, linear_periods=0)
        assert configured.schedule() == before

    def test_configure_after_lock_rejected(self, started):
        with pytest.raises(AlreadyLockedError):
            _configure(started, cliff_periods=1)


class TestDeposit:
    def test_deposit_moves_funds(self, configured):
        assert configured.deposit(ADMIN, 400) == 400
        assert configured.contract_balance() == 400
        assert configured.treasury.balance_of(configured.address, ASSET) == 400
        assert configured.treasury.balance_of(ADMIN, ASSET) == 1_000_000 - 400

    def test_zero_amount(self, configured):
        with pytest.raises(ZeroAmountError):
            configured.deposit(ADMIN, 0)
        with pytest.raises(ZeroAmountError):
            configured.deposit(ADMIN, -5)

    def test_asset_not_configured(self, controller):
        with pytest.raises(AssetNotConfiguredError):
            controller.deposit(ADMIN, 10)

    def test_non_admin(self, configured):
        with pytest.raises(NotAdminError):
            configured.deposit("0xalice", 10)

    def test_short_admin_balance_is_atomic(self, configured):
        with pytest.raises(TreasuryError):
            configured.deposit(ADMIN, 2_000_000)
        assert configured.contract_balance() == 0
        assert configured.treasury.balance_of(ADMIN, ASSET) == 1_000_000


class TestWhitelist:
    def test_batch_whitelist(self, configured):
        assert configured.batch_whitelist(ADMIN, ["0xAlice", "0xbob"], [1000, 500]) == 2
        assert configured.all_recipients() == [("0xalice", 1000), ("0xbob", 500)]
        assert configured.total_allocated() == 1500
        assert configured.amount_needed_to_fund() == 1500

    def test_length_mismatch(self, configured):
        with pytest.raises(LengthMismatchError):
            configured.batch_whitelist(ADMIN, ["0xalice", "0xbob"], [1000])
        assert configured.all_recipients() == []

    def test_non_admin(self, configured):
        with pytest.raises(NotAdminError):
            configured.batch_whitelist("0xalice", ["0xalice"], [10**9])

    def test_bad_entry_rejects_whole_batch(self, configured):
        with pytest.raises(ValidationError):
            configured.batch_whitelist(ADMIN, ["0xalice", "0xbob"], [1000, -1])
        assert configured.all_recipients() == []

    def test_whitelist_before_configure_allowed(self, controller):
        controller.batch_whitelist(ADMIN, ["0xalice"], [10])
        assert controller.total_allocated() == 10

    def test_amount_needed_to_fund_tracks_deposits(self, configured):
        configured.batch_whitelist(ADMIN, ["0xalice"], [1000])
        configured.deposit(ADMIN, 600)
        assert configured.amount_needed_to_fund() == 400
        configured.deposit(ADMIN, 600)
        assert configured.amount_needed_to_fund() == 0

    def test_amount_needed_to_fund_counts_claimed_allocations(self, started, clock):
        clock.set(START + 3 * EPOCH)
        assert started.claim("0xalice") == 100
        assert started.contract_balance() == 1400
        # allocated 1500 against 1400 still held
        assert started.amount_needed_to_fund() == 100


class TestStartVesting:
    def test_insufficient_then_exact_funding(self, configured):
        configured.batch_whitelist(ADMIN, ["0xalice", "0xbob"], [1000, 500])
        configured.deposit(ADMIN, 1499)
        with pytest.raises(InsufficientBalanceError):
            configured.start_vesting(ADMIN)
        assert configured.state.locked is False

        configured.deposit(ADMIN, 1)
        configured.start_vesting(ADMIN)
        assert configured.state.locked is True

    def test_outstanding_covered_after_start(self, started):
        outstanding = sum(t for _, t in started.all_recipients())
        assert outstanding <= started.contract_balance()

    def test_records_start_moment(self, configured, clock):
        configured.start_vesting(ADMIN)
        assert configured.state.started_at == clock.now()
        assert configured.schedule().start_time == START

    def test_already_locked(self, started):
        with pytest.raises(AlreadyLockedError):
            started.start_vesting(ADMIN)

    def test_asset_not_configured(self, controller):
        with pytest.raises(AssetNotConfiguredError):
            controller.start_vesting(ADMIN)

    def test_non_admin(self, configured):
        with pytest.raises(NotAdminError):
            configured.start_vesting("0xbob")

    def test_rebound_asset_needs_fresh_custody(self, configured, clock):
        configured.treasury.mint(ADMIN, "0xold", 1000)
        _configure(configured, asset_id="0xold")
        configured.deposit(ADMIN, 1000)
        _configure(configured, asset_id="0xnew")
        configured.batch_whitelist(ADMIN, ["0xalice"], [1000])

        with pytest.raises(InsufficientBalanceError) as exc_info:
            configured.start_vesting(ADMIN)
        assert exc_info.value.details["custody"] == 0
        assert configured.state.locked is False

        configured.treasury.mint(ADMIN, "0xnew", 1000)
        configured.deposit(ADMIN, 1000)
        configured.start_vesting(ADMIN)
        clock.set(START + 3 * EPOCH)
        assert configured.claim("0xalice") == 100


class TestClaim:
    def test_scenario_cliff_initial_linear(self, started, clock):
        clock.set(START + 3 * EPOCH - 1)
        with pytest.raises(NothingToClaimError):
            started.claim("0xalice")

        clock.set(START + 3 * EPOCH)
        assert started.claim("0xalice") == 100

        clock.set(START + 4 * EPOCH)
        assert started.vesting_info("0xalice").claimable == 75
        assert started.claim("0xalice") == 75

        info = started.vesting_info("0xalice")
        assert info.claimed_amount == 175
        assert info.last_claim_time == START + 4 * EPOCH
        assert started.contract_balance() == 1500 - 175
        assert started.treasury.balance_of("0xalice", ASSET) == 175

    def test_second_claim_same_instant(self, started, clock):
        clock.set(START + 5 * EPOCH)
        started.claim("0xbob")
        with pytest.raises(NothingToClaimError):
            started.claim("0xbob")

    def test_claims_exhaust_exactly(self, started, clock):
        total = 0
        for period in range(0, 20):
            clock.set(START + period * EPOCH)
            try:
                total += started.claim("0xbob")
            except NothingToClaimError:
                pass
        assert total == 500
        info = started.vesting_info("0xbob")
        assert info.claimed_amount == info.total_amount == 500

    def test_unknown_and_paused_share_error(self, started, clock):
        clock.set(START + 5 * EPOCH)
        with pytest.raises(NotWhitelistedError) as unknown:
            started.claim("0xstranger")
        started.set_pause(ADMIN, "0xalice", True)
        with pytest.raises(NotWhitelistedError) as paused:
            started.claim("0xalice")
        assert type(unknown.value) is type(paused.value)
        assert unknown.value.code == paused.value.code

    def test_unpause_restores_schedule_value(self, started, clock):
        clock.set(START + 4 * EPOCH)
        started.set_pause(ADMIN, "0xalice", True)
        clock.set(START + 6 * EPOCH)
        started.set_pause(ADMIN, "0xalice", False)
        # cliff + 3 linear periods; the paused interval is not deducted
        assert started.claim("0xalice") == 100 + 3 * 75

    def test_claim_before_start(self, configured, clock):
        configured.batch_whitelist(ADMIN, ["0xalice"], [1000])
        configured.deposit(ADMIN, 1000)
        clock.set(START + 10 * EPOCH)
        with pytest.raises(NotStartedError):
            configured.claim("0xalice")

    def test_state_errors_are_recoverable(self, started):
        with pytest.raises(StateError) as exc_info:
            started.claim("0xalice")
        assert exc_info.value.recoverable is True


class TestPause:
    def test_unknown_recipient(self, started):
        with pytest.raises(UnknownRecipientError):
            started.set_pause(ADMIN, "0xstranger", True)

    def test_non_admin(self, started):
        with pytest.raises(NotAdminError):
            started.set_pause("0xalice", "0xalice", False)

    def test_pause_visible_in_info(self, started):
        started.set_pause(ADMIN, "0xbob", True)
        assert started.vesting_info("0xbob").paused is True


class TestQueries:
    def test_vesting_info_idempotent(self, started):
        now = START + 7 * EPOCH
        assert started.vesting_info("0xalice", now=now) == started.vesting_info("0xalice", now=now)

    def test_vesting_info_unknown(self, started):
        with pytest.raises(UnknownRecipientError):
            started.vesting_info("0xnobody")

    def test_vesting_info_before_configure(self, controller):
        controller.batch_whitelist(ADMIN, ["0xalice"], [10])
        assert controller.vesting_info("0xalice").claimable == 0

    def test_next_unlock_time(self, configured, clock):
        assert configured.next_unlock_time() == 0
        configured.start_vesting(ADMIN)
        assert configured.next_unlock_time() == START + 3 * EPOCH
        assert configured.next_unlock_time(now=START + 15 * EPOCH) == 0


class TestOwnership:
    def test_transfer_changes_admin_immediately(self, configured):
        configured.authority.transfer_ownership(ADMIN, "0xNewAdmin")
        with pytest.raises(NotAdminError):
            configured.deposit(ADMIN, 1)
        configured.treasury.mint("0xnewadmin", ASSET, 10)
        assert configured.deposit("0xnewadmin", 10) == 10


class TestPostLockPolicies:
    def test_post_lock_whitelist_allowed_by_default(self, started, clock):
        started.batch_whitelist(ADMIN, ["0xcarol"], [10_000])
        assert started.amount_needed_to_fund() == 10_000

    def test_underfunded_claim_fails_closed(self, started, clock):
        started.batch_whitelist(ADMIN, ["0xcarol"], [100_000])
        clock.set(START + 20 * EPOCH)
        with pytest.raises(InsufficientBalanceError):
            started.claim("0xcarol")
        assert started.contract_balance() == 1500
        assert started.vesting_info("0xcarol").claimed_amount == 0

    def test_post_lock_whitelist_can_be_frozen(self, clock):
        ctl = new_controller(
            ADMIN,
            settings=VestingSettings(allow_post_lock_whitelist=False),
            time_provider=clock.now,
        )
        ctl.treasury.mint(ADMIN, ASSET, 100)
        _configure(ctl)
        ctl.batch_whitelist(ADMIN, ["0xalice"], [100])
        ctl.deposit(ADMIN, 100)
        ctl.start_vesting(ADMIN)
        with pytest.raises(AlreadyLockedError):
            ctl.batch_whitelist(ADMIN, ["0xalice"], [200])

    def test_reset_policy_forgets_claims(self, started, clock):
        clock.set(START + 3 * EPOCH)
        started.claim("0xalice")
        started.batch_whitelist(ADMIN, ["0xalice"], [1000])
        info = started.vesting_info("0xalice")
        assert info.claimed_amount == 0
        assert info.last_claim_time == 0

    def test_preserve_policy_keeps_claims(self, clock):
        ctl = new_controller(
            ADMIN,
            settings=VestingSettings(rewhitelist_policy=RewhitelistPolicy.PRESERVE),
            time_provider=clock.now,
        )
        ctl.treasury.mint(ADMIN, ASSET, 10_000)
        _configure(ctl)
        ctl.batch_whitelist(ADMIN, ["0xalice"], [1000])
        ctl.deposit(ADMIN, 2000)
        ctl.start_vesting(ADMIN)
        clock.set(START + 3 * EPOCH)
        assert ctl.claim("0xalice") == 100

        ctl.batch_whitelist(ADMIN, ["0xalice"], [2000])
        info = ctl.vesting_info("0xalice")
        assert info.claimed_amount == 100
        assert info.total_amount == 2000
        assert ctl.claim("0xalice") == 100

        with pytest.raises(AllocationBelowClaimedError):
            ctl.batch_whitelist(ADMIN, ["0xalice"], [50])

    def test_preserve_policy_shrink_fails_closed(self, clock):
        ctl = new_controller(
            ADMIN,
            settings=VestingSettings(rewhitelist_policy="preserve"),
            time_provider=clock.now,
        )
        ctl.treasury.mint(ADMIN, ASSET, 10_000)
        _configure(ctl, initial_unlock_bps=5000)
        ctl.batch_whitelist(ADMIN, ["0xalice"], [1000])
        ctl.deposit(ADMIN, 1000)
        ctl.start_vesting(ADMIN)
        clock.set(START + 3 * EPOCH)
        assert ctl.claim("0xalice") == 500

        # 800 total -> 400 vested so far, below the 500 already claimed
        ctl.batch_whitelist(ADMIN, ["0xalice"], [800])
        assert ctl.vesting_info("0xalice").claimable == 0
        with pytest.raises(ConsistencyError):
            ctl.claim("0xalice")
        assert ctl.vesting_info("0xalice").claimed_amount == 500


class TestEvents:
    def test_lifecycle_events(self, started, clock):
        clock.set(START + 3 * EPOCH)
        started.claim("0xalice")
        started.set_pause(ADMIN, "0xbob", True)
        started.set_pause(ADMIN, "0xbob", False)
        kinds = [e.event_type for e in started.events.events]
        assert kinds == [
            VestingEventType.CONFIGURED,
            VestingEventType.WHITELISTED,
            VestingEventType.DEPOSITED,
            VestingEventType.STARTED,
            VestingEventType.CLAIMED,
            VestingEventType.PAUSED,
            VestingEventType.UNPAUSED,
        ]
        claim_event = started.events.of_type(VestingEventType.CLAIMED)[0]
        assert claim_event.data == {"recipient": "0xalice", "amount": 100}
        assert claim_event.timestamp == START + 3 * EPOCH

    def test_failed_operation_emits_nothing(self, configured):
        count = len(configured.events.events)
        with pytest.raises(ZeroAmountError):
            configured.deposit(ADMIN, 0)
        assert len(configured.events.events) == count
