"""
Reward pipeline tests

record_volume -> process_reward -> maybe_rebate through the DIRECT path,
epoch rollover, auto-compounding and gas metering.
"""

import pytest
from orderflow.protocol.config.economic_model import SCALE
from orderflow.protocol.config.params import GAS_PER_OP
from orderflow.protocol.types.claim import DirectClaim
from orderflow.protocol.types.common import (
    AlreadyClaimed, InvalidAmount, LedgerOp, NoReward, OutOfGas, Tier, Unauthorized, VolumeTooLow,
)
from orderflow.ledger.core.services import VAULT_ADDRESS
from conftest import ALICE, BOB, DIRECT_CLAIM_GAS, EPOCH, GOVERNOR, VAULT_SUPPLY, fund


@pytest.fixture
def silver_alice(ledger, token):
    fund(token, ALICE, 2_000 * SCALE)
    ledger.stake(ALICE, 2_000 * SCALE)
    return ledger


# ═══════════════════════════════════════════════════════════════════
# REWARD COMPUTATION
# ═══════════════════════════════════════════════════════════════════

def test_claim_example_scenario(silver_alice, token):
    ledger = silver_alice
    assert ledger.get_account(ALICE).tier == Tier.SILVER

    result = ledger.claim(DirectClaim(account=ALICE, volume=200 * SCALE))

    assert result.reward == 250_000_000
    assert result.immediate == 62_500_000
    assert result.vesting == 187_500_000
    assert result.compounded == 0
    assert result.epoch == 1

    vest = ledger.get_vesting(ALICE)
    assert vest.total == 187_500_000
    assert vest.start_epoch == 1
    assert vest.vesting_epochs == 4

    assert result.rebate == DIRECT_CLAIM_GAS
    assert token.balance_of(ALICE) == 62_500_000 + DIRECT_CLAIM_GAS
    assert ledger.lifetime_distributed == 250_000_000 + DIRECT_CLAIM_GAS


def test_claim_tracks_volume_and_last_claim(silver_alice):
    silver_alice.claim(DirectClaim(account=ALICE, volume=200 * SCALE))
    acc = silver_alice.get_account(ALICE)
    assert acc.cumulative_volume == 200 * SCALE
    assert acc.epoch_volume == 200 * SCALE
    assert acc.last_claimed_epoch == 1


def test_second_claim_same_epoch_rejected(silver_alice, clock):
    ledger = silver_alice
    ledger.claim(DirectClaim(account=ALICE, volume=200 * SCALE))

    with pytest.raises(AlreadyClaimed):
        ledger.claim(DirectClaim(account=ALICE, volume=200 * SCALE))

    # The rejected claim left no trace
    assert ledger.get_account(ALICE).cumulative_volume == 200 * SCALE

    clock.advance(EPOCH)
    result = ledger.claim(DirectClaim(account=ALICE, volume=200 * SCALE))
    assert result.epoch == 2
    assert ledger.current_epoch == 2


def test_volume_below_threshold(ledger):
    with pytest.raises(VolumeTooLow):
        ledger.claim(DirectClaim(account=BOB, volume=100 * SCALE - 1))
    assert ledger.get_account(BOB).cumulative_volume == 0


def test_threshold_is_inclusive(ledger):
    result = ledger.claim(DirectClaim(account=BOB, volume=100 * SCALE))
    assert result.reward == 100 * SCALE


def test_zero_reward_rejected(ledger):
    ledger.set_reward_rate(GOVERNOR, 0)
    with pytest.raises(NoReward):
        ledger.claim(DirectClaim(account=BOB, volume=500 * SCALE))
    assert ledger.get_account(BOB).last_claimed_epoch == 0


def test_threshold_checked_before_reward(ledger):
    ledger.set_reward_rate(GOVERNOR, 0)
    with pytest.raises(VolumeTooLow):
        ledger.claim(DirectClaim(account=BOB, volume=1))


def test_negative_volume_rejected(ledger):
    with pytest.raises(InvalidAmount):
        ledger.claim(DirectClaim(account=BOB, volume=-1))


def test_dict_request_accepted(ledger):
    result = ledger.claim({"method": "DIRECT", "account": BOB, "volume": 100 * SCALE})
    assert result.method == "DIRECT"
    assert result.reward == 100 * SCALE


def test_governor_setters_require_governor(ledger):
    with pytest.raises(Unauthorized):
        ledger.set_reward_rate(ALICE, 5)
    with pytest.raises(Unauthorized):
        ledger.set_min_volume_threshold(ALICE, 5)

    ledger.set_min_volume_threshold(GOVERNOR, 10 * SCALE)
    result = ledger.claim(DirectClaim(account=BOB, volume=10 * SCALE))
    assert result.reward == 10 * SCALE


# ═══════════════════════════════════════════════════════════════════
# EPOCHS
# ═══════════════════════════════════════════════════════════════════

def test_epoch_advances_once_per_call(ledger, clock):
    clock.advance(EPOCH * 5)
    ledger.claim(DirectClaim(account=BOB, volume=100 * SCALE))
    assert ledger.current_epoch == 2
    assert ledger.state.clock.last_reset == clock.now


def test_epoch_not_advanced_before_duration(ledger, clock):
    clock.advance(EPOCH - 1)
    ledger.claim(DirectClaim(account=BOB, volume=100 * SCALE))
    assert ledger.current_epoch == 1


def test_epoch_volume_resets_for_every_account(ledger, clock):
    ledger.claim(DirectClaim(account=ALICE, volume=300 * SCALE))
    clock.advance(EPOCH)
    # BOB triggers the rollover; ALICE's counter still resets on her next claim
    ledger.claim(DirectClaim(account=BOB, volume=100 * SCALE))
    result = ledger.claim(DirectClaim(account=ALICE, volume=100 * SCALE))

    acc = ledger.get_account(ALICE)
    assert acc.epoch_volume == 100 * SCALE
    assert acc.cumulative_volume == 400 * SCALE
    assert result.reward == 100 * SCALE


def test_epoch_rollover_reverted_with_failed_claim(ledger, clock):
    clock.advance(EPOCH)
    with pytest.raises(VolumeTooLow):
        ledger.claim(DirectClaim(account=BOB, volume=1))
    assert ledger.current_epoch == 1


# ═══════════════════════════════════════════════════════════════════
# AUTO-COMPOUND
# ═══════════════════════════════════════════════════════════════════

def test_auto_compound_restakes_immediate_part(silver_alice, token):
    ledger = silver_alice
    ledger.set_auto_compound(ALICE, True)

    result = ledger.claim(DirectClaim(account=ALICE, volume=200 * SCALE))

    assert result.compounded == 62_500_000
    acc = ledger.get_account(ALICE)
    assert acc.staked == 2_000 * SCALE + 62_500_000
    assert ledger.get_vesting(ALICE).total == 187_500_000
    # No immediate transfer: only the rebate reached the wallet
    assert token.balance_of(ALICE) == result.rebate
    assert result.rebate == DIRECT_CLAIM_GAS - GAS_PER_OP[LedgerOp.TRANSFER]


def test_auto_compound_can_raise_tier(ledger, token):
    fund(token, ALICE, 1_000 * SCALE - 1)
    ledger.stake(ALICE, 1_000 * SCALE - 1)
    ledger.set_auto_compound(ALICE, True)
    assert ledger.get_account(ALICE).tier == Tier.BRONZE

    ledger.claim(DirectClaim(account=ALICE, volume=100 * SCALE))
    assert ledger.get_account(ALICE).tier == Tier.SILVER


# ═══════════════════════════════════════════════════════════════════
# GAS AND REBATES
# ═══════════════════════════════════════════════════════════════════

def test_rebate_disabled_when_rate_zero(make_ledger):
    ledger = make_ledger(rebate_rate=0)
    result = ledger.claim(DirectClaim(account=BOB, volume=100 * SCALE))
    assert result.rebate == 0
    assert ledger.lifetime_distributed == 100 * SCALE


def test_no_rebate_above_cap(make_ledger):
    ledger = make_ledger(max_rebate_gas=DIRECT_CLAIM_GAS - 1)
    result = ledger.claim(DirectClaim(account=BOB, volume=100 * SCALE))
    assert result.rebate == 0


def test_rebate_at_cap(make_ledger):
    ledger = make_ledger(max_rebate_gas=DIRECT_CLAIM_GAS)
    result = ledger.claim(DirectClaim(account=BOB, volume=100 * SCALE))
    assert result.rebate == DIRECT_CLAIM_GAS


def test_out_of_gas_reverts_everything(make_ledger, token):
    ledger = make_ledger(call_gas_limit=DIRECT_CLAIM_GAS - 1)
    with pytest.raises(OutOfGas):
        ledger.claim(DirectClaim(account=BOB, volume=100 * SCALE))

    assert ledger.get_account(BOB).last_claimed_epoch == 0
    assert ledger.get_vesting(BOB).total == 0
    assert ledger.lifetime_distributed == 0
    assert token.balance_of(BOB) == 0
    assert token.balance_of(VAULT_ADDRESS) == VAULT_SUPPLY
