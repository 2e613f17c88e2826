import pytest

from tevi_vesting.core.config import RewhitelistPolicy
from tevi_vesting.core.exceptions import (
    AllocationBelowClaimedError,
    ConsistencyError,
    LengthMismatchError,
    UnknownRecipientError,
    ValidationError,
)
from tevi_vesting.core.whitelist import Allocation, WhitelistLedger


def _ledger(policy=RewhitelistPolicy.RESET, **entries):
    ledger = WhitelistLedger(policy)
    if entries:
        ledger.apply_batch(ledger.prepare_batch(list(entries), list(entries.values())))
    return ledger


def test_prepare_batch_stages_without_writing():
    ledger = WhitelistLedger()
    staged = ledger.prepare_batch(["0xA", "0xb"], [10, 20])
    assert set(staged) == {"0xa", "0xb"}
    assert len(ledger) == 0
    ledger.apply_batch(staged)
    assert len(ledger) == 2
    assert "0XA" in ledger


def test_duplicate_recipient_last_amount_wins():
    ledger = WhitelistLedger()
    staged = ledger.prepare_batch(["0xa", "0xA"], [10, 30])
    assert len(staged) == 1
    assert staged["0xa"].total_amount == 30


def test_zero_allocation_allowed():
    ledger = _ledger(**{"0xa": 0})
    assert ledger.require("0xa").total_amount == 0


@pytest.mark.parametrize(
    "recipients,amounts,error",
    [
        (["0xa"], [1, 2], LengthMismatchError),
        (["0xa", "0xb"], [1], LengthMismatchError),
        (["  "], [1], ValidationError),
        (["0xa"], [-1], ValidationError),
        (["0xa"], [1.5], ValidationError),
        (["0xa"], [True], ValidationError),
    ],
)
def test_prepare_batch_rejects(recipients, amounts, error):
    ledger = WhitelistLedger()
    with pytest.raises(error):
        ledger.prepare_batch(recipients, amounts)


def test_reset_policy_clears_history():
    ledger = _ledger(**{"0xa": 100})
    ledger.record_claim("0xa", 40, now=5)
    ledger.set_paused("0xa", True)
    ledger.apply_batch(ledger.prepare_batch(["0xa"], [100]))
    assert ledger.require("0xa") == Allocation(total_amount=100)


def test_preserve_policy_keeps_history():
    ledger = _ledger(RewhitelistPolicy.PRESERVE, **{"0xa": 100})
    ledger.record_claim("0xa", 40, now=5)
    ledger.set_paused("0xa", True)
    ledger.apply_batch(ledger.prepare_batch(["0xa"], [150]))
    assert ledger.require("0xa") == Allocation(total_amount=150, claimed_amount=40, last_claim_time=5, paused=True)


def test_preserve_policy_rejects_total_below_claimed():
    ledger = _ledger(RewhitelistPolicy.PRESERVE, **{"0xa": 100})
    ledger.record_claim("0xa", 40, now=5)
    with pytest.raises(AllocationBelowClaimedError):
        ledger.prepare_batch(["0xa"], [39])
    assert ledger.require("0xa").total_amount == 100


def test_totals():
    ledger = _ledger(**{"0xa": 100, "0xb": 50})
    ledger.record_claim("0xa", 30, now=1)
    assert ledger.total_allocated() == 150
    assert ledger.total_outstanding() == 120
    assert ledger.recipients() == [("0xa", 100), ("0xb", 50)]


def test_require_unknown():
    with pytest.raises(UnknownRecipientError):
        WhitelistLedger().require("0xnobody")
    with pytest.raises(UnknownRecipientError):
        WhitelistLedger().set_paused("0xnobody", True)


def test_record_claim_cannot_exceed_total():
    ledger = _ledger(**{"0xa": 100})
    ledger.record_claim("0xa", 100, now=1)
    with pytest.raises(ConsistencyError):
        ledger.record_claim("0xa", 1, now=2)
    assert ledger.require("0xa").claimed_amount == 100


def test_serialization_keeps_policy_and_allocations():
    ledger = _ledger(RewhitelistPolicy.PRESERVE, **{"0xa": 100})
    ledger.record_claim("0xa", 10, now=7)
    restored = WhitelistLedger.from_dict(ledger.to_dict())
    assert restored.policy == RewhitelistPolicy.PRESERVE
    assert restored.require("0xa") == ledger.require("0xa")
