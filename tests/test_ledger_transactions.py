"""
Transaction scope tests

Multicall atomicity, event publication on commit, the cross-chain mirror
and persistence across restarts.
"""

import pytest
from orderflow.protocol.config.economic_model import SCALE
from orderflow.protocol.types.claim import DirectClaim
from orderflow.protocol.types.common import (
    InsufficientStaked, InvalidAmount, StaleMirrorUpdate, Unauthorized, UnknownOperation,
)
from orderflow.protocol.types.ledger import MirrorPayload
from orderflow.ledger.core.events import ALL_EVENTS, EventBus
from orderflow.protocol.crypto.keys import generate_private_key
from conftest import ALICE, BOB, COOLDOWN, EPOCH, GOVERNOR, MIRROR_SENDER, fund, key_address, signed_operation


# ═══════════════════════════════════════════════════════════════════
# MULTICALL
# ═══════════════════════════════════════════════════════════════════

def test_multicall_commits_all(ledger, token):
    fund(token, ALICE, 2_000 * SCALE)
    results = ledger.multicall(ALICE, [
        ("stake", {"amount": 2_000 * SCALE}),
        ("set_auto_compound", {"enabled": True}),
        ("claim", {"method": "DIRECT", "volume": 200 * SCALE}),
    ])

    # The claim already sees the Silver stake from the same batch
    assert results[2].reward == 250 * SCALE
    assert results[2].compounded == 62_500_000
    assert ledger.get_account(ALICE).staked == 2_000 * SCALE + 62_500_000


def test_multicall_is_all_or_nothing(ledger, token):
    fund(token, ALICE, 2_000 * SCALE)
    with pytest.raises(InsufficientStaked):
        ledger.multicall(ALICE, [
            ("stake", {"amount": 1_000 * SCALE}),
            ("claim", {"method": "DIRECT", "volume": 200 * SCALE}),
            ("request_unstake", {"amount": 5_000 * SCALE}),
        ])

    acc = ledger.get_account(ALICE)
    assert acc.staked == 0
    assert acc.last_claimed_epoch == 0
    assert ledger.get_vesting(ALICE).total == 0
    assert ledger.lifetime_distributed == 0
    # Token side rolled back too
    assert token.balance_of(ALICE) == 2_000 * SCALE
    assert token.allowances[ALICE] == 2_000 * SCALE


def test_multicall_rejects_unknown_and_empty(ledger):
    with pytest.raises(UnknownOperation):
        ledger.multicall(ALICE, [("set_reward_rate", {"rate": 0})])
    with pytest.raises(InvalidAmount):
        ledger.multicall(ALICE, [])


def test_multicall_claims_only_for_caller(ledger):
    with pytest.raises(Unauthorized):
        ledger.multicall(ALICE, [("claim", {"method": "DIRECT", "account": BOB, "volume": 200 * SCALE})])
    assert ledger.get_account(BOB).last_claimed_epoch == 0


def test_multicall_bond_and_vested(ledger, token, clock):
    fund(token, ALICE, 10 * SCALE)
    ledger.multicall(ALICE, [
        ("bond", {"amount": 10 * SCALE, "lock_duration": 0}),
        ("bind_account", {"bound": "idxf1nftwallet"}),
    ])
    assert ledger.get_bond(ALICE).amount == 10 * SCALE
    assert ledger.get_account(ALICE).bound_account == "idxf1nftwallet"

    results = ledger.multicall(ALICE, [("withdraw_bond", {})])
    assert results == [10 * SCALE]


def test_query_results_are_copies(ledger, token):
    fund(token, ALICE, 10 * SCALE)
    ledger.stake(ALICE, 10 * SCALE)
    acc = ledger.get_account(ALICE)
    acc.staked = 10**12
    assert ledger.get_account(ALICE).staked == 10 * SCALE


# ═══════════════════════════════════════════════════════════════════
# SIGNED OPERATIONS
# ═══════════════════════════════════════════════════════════════════

def execute(ledger, priv, operation, args, **kwargs):
    auth = signed_operation(ledger, priv, operation, args, **kwargs)
    return ledger.execute_signed(auth["address"], operation, args, auth["signature"], auth["pub_key"])


def test_signed_stake_by_owner(ledger, token):
    priv = generate_private_key()
    owner = key_address(priv)
    fund(token, owner, 100 * SCALE)

    acc = execute(ledger, priv, "stake", {"amount": 100 * SCALE})
    assert acc.staked == 100 * SCALE
    assert ledger.get_account(owner).nonce == 1


def test_signed_operation_from_other_key_rejected(ledger, token):
    owner_priv = generate_private_key()
    owner = key_address(owner_priv)
    fund(token, owner, 100 * SCALE)
    execute(ledger, owner_priv, "stake", {"amount": 100 * SCALE})

    with pytest.raises(Unauthorized):
        execute(ledger, generate_private_key(), "request_unstake", {"amount": 100 * SCALE}, address=owner)
    assert ledger.get_account(owner).staked == 100 * SCALE
    assert ledger.get_unstake(owner) is None
    # A failed signature check does not burn the owner's nonce
    assert ledger.get_account(owner).nonce == 1


def test_signed_operation_cannot_be_replayed(ledger, token):
    priv = generate_private_key()
    owner = key_address(priv)
    fund(token, owner, 100 * SCALE)
    args = {"amount": 50 * SCALE}
    auth = signed_operation(ledger, priv, "stake", args)
    ledger.execute_signed(owner, "stake", args, auth["signature"], auth["pub_key"])

    with pytest.raises(Unauthorized):
        ledger.execute_signed(owner, "stake", args, auth["signature"], auth["pub_key"])
    assert ledger.get_account(owner).staked == 50 * SCALE


def test_signature_binds_arguments(ledger, token):
    priv = generate_private_key()
    owner = key_address(priv)
    fund(token, owner, 100 * SCALE)
    auth = signed_operation(ledger, priv, "stake", {"amount": SCALE})

    with pytest.raises(Unauthorized):
        ledger.execute_signed(owner, "stake", {"amount": 100 * SCALE}, auth["signature"], auth["pub_key"])
    with pytest.raises(Unauthorized):
        ledger.execute_signed(owner, "bond", {"amount": SCALE, "lock_duration": 0},
                              auth["signature"], auth["pub_key"])
    assert ledger.get_account(owner).staked == 0


def test_failed_signed_operation_consumes_nonce(ledger):
    priv = generate_private_key()
    owner = key_address(priv)
    auth = signed_operation(ledger, priv, "request_unstake", {"amount": SCALE})

    with pytest.raises(InsufficientStaked):
        ledger.execute_signed(owner, "request_unstake", {"amount": SCALE}, auth["signature"], auth["pub_key"])
    assert ledger.get_account(owner).nonce == 1
    assert ledger.get_unstake(owner) is None


def test_signed_operation_malformed_key(ledger):
    with pytest.raises(Unauthorized):
        ledger.execute_signed(ALICE, "withdraw_unstaked", {}, "zz", "00")


def test_signed_operations_exclude_claims(ledger):
    priv = generate_private_key()
    with pytest.raises(UnknownOperation):
        execute(ledger, priv, "claim", {"method": "DIRECT", "volume": 100 * SCALE})
    with pytest.raises(UnknownOperation):
        execute(ledger, priv, "set_reward_rate", {"rate": 0})
    assert ledger.get_account(key_address(priv)).nonce == 0


# ═══════════════════════════════════════════════════════════════════
# EVENTS
# ═══════════════════════════════════════════════════════════════════

def test_eventbus_subscribe_and_emit():
    bus = EventBus()
    received = []
    bus.subscribe("staked", lambda **data: received.append(data))
    bus.emit("staked", account=ALICE, amount=5)
    assert received == [{"account": ALICE, "amount": 5}]


def test_eventbus_wildcard_gets_event_type():
    bus = EventBus()
    received = []
    bus.subscribe(ALL_EVENTS, lambda **data: received.append(data))
    bus.emit("slashed", amount=1)
    assert received == [{"amount": 1, "event_type": "slashed"}]


def test_eventbus_failing_callback_does_not_block_others():
    bus = EventBus()
    received = []

    def broken(**data):
        raise RuntimeError("boom")

    bus.subscribe("bonded", broken)
    bus.subscribe("bonded", lambda **data: received.append(data))
    bus.emit("bonded", amount=3)
    assert received == [{"amount": 3}]


def test_eventbus_unsubscribe_and_clear():
    bus = EventBus()
    received = []
    callback = lambda **data: received.append(data)
    bus.subscribe("staked", callback)
    bus.unsubscribe("staked", callback)
    bus.unsubscribe("staked", callback)
    bus.emit("staked", amount=1)
    assert received == []

    bus.subscribe("staked", callback)
    bus.clear()
    bus.emit("staked", amount=1)
    assert received == []


def test_events_published_after_commit(ledger, token):
    events = []
    ledger.events.subscribe(ALL_EVENTS, lambda **data: events.append(data))
    fund(token, ALICE, 2_000 * SCALE)

    ledger.stake(ALICE, 2_000 * SCALE)
    ledger.claim(DirectClaim(account=ALICE, volume=200 * SCALE))

    names = [e["event_type"] for e in events]
    assert names == ["staked", "rebate_paid", "reward_claimed"]
    claimed = events[-1]
    assert claimed["method"] == "DIRECT"
    assert claimed["reward"] == 250 * SCALE


def test_failed_operation_publishes_only_failure(ledger, token):
    events = []
    ledger.events.subscribe(ALL_EVENTS, lambda **data: events.append(data))
    fund(token, ALICE, 2_000 * SCALE)

    with pytest.raises(InsufficientStaked):
        ledger.multicall(ALICE, [
            ("stake", {"amount": 1_000 * SCALE}),
            ("request_unstake", {"amount": 5_000 * SCALE}),
        ])

    assert [e["event_type"] for e in events] == ["operation_failed"]
    assert events[0]["error"] == "InsufficientStaked"


def test_epoch_advanced_event(ledger, clock):
    events = []
    ledger.events.subscribe("epoch_advanced", lambda **data: events.append(data))
    clock.advance(EPOCH)
    ledger.claim(DirectClaim(account=BOB, volume=100 * SCALE))
    assert events == [{"epoch": 2, "previous": 1, "timestamp": clock.now}]


# ═══════════════════════════════════════════════════════════════════
# CROSS-CHAIN MIRROR
# ═══════════════════════════════════════════════════════════════════

def test_sync_mirror_sends_after_commit(ledger, services):
    ledger.claim(DirectClaim(account=BOB, volume=100 * SCALE))
    payload = ledger.sync_mirror(GOVERNOR)

    assert payload.sequence == 1
    assert payload.epoch == 1
    assert payload.lifetime_distributed == ledger.lifetime_distributed
    assert payload.source_chain == "idxf-test-1"
    assert services.mirror_channel.outbox == [payload]

    assert ledger.sync_mirror(GOVERNOR).sequence == 2


def test_sync_mirror_governor_only(ledger, services):
    with pytest.raises(Unauthorized):
        ledger.sync_mirror(ALICE)
    assert services.mirror_channel.outbox == []


def test_receive_mirror_overwrites_counters(ledger):
    ledger.receive_mirror(MIRROR_SENDER, MirrorPayload(epoch=7, lifetime_distributed=123, sequence=1))
    assert ledger.current_epoch == 7
    assert ledger.lifetime_distributed == 123


def test_receive_mirror_untrusted_sender(ledger):
    with pytest.raises(Unauthorized):
        ledger.receive_mirror(ALICE, MirrorPayload(epoch=7, lifetime_distributed=123, sequence=1))
    assert ledger.current_epoch == 1


def test_strict_mirror_rejects_stale_sequence(ledger):
    ledger.receive_mirror(MIRROR_SENDER, MirrorPayload(epoch=5, lifetime_distributed=50, sequence=3))
    for sequence in (3, 2):
        with pytest.raises(StaleMirrorUpdate):
            ledger.receive_mirror(MIRROR_SENDER, MirrorPayload(epoch=4, lifetime_distributed=40, sequence=sequence))
    assert ledger.current_epoch == 5
    assert ledger.lifetime_distributed == 50


def test_compat_mirror_applies_out_of_order(make_ledger):
    ledger = make_ledger(mirror_strict_ordering=False)
    ledger.receive_mirror(MIRROR_SENDER, MirrorPayload(epoch=5, lifetime_distributed=50, sequence=3))
    ledger.receive_mirror(MIRROR_SENDER, MirrorPayload(epoch=4, lifetime_distributed=40, sequence=1))

    # Last write wins, including an epoch rewind
    assert ledger.current_epoch == 4
    assert ledger.lifetime_distributed == 40
    assert ledger.state.globals.mirror_inbound_sequence == 3


# ═══════════════════════════════════════════════════════════════════
# PERSISTENCE
# ═══════════════════════════════════════════════════════════════════

def test_state_survives_restart(make_ledger, token, clock, tmp_path):
    db_path = str(tmp_path / "ledger.db")
    ledger = make_ledger(db_path)
    fund(token, ALICE, 2_000 * SCALE)
    fund(token, BOB, 30 * SCALE)

    ledger.stake(ALICE, 2_000 * SCALE)
    ledger.claim(DirectClaim(account=ALICE, volume=200 * SCALE))
    ledger.request_unstake(ALICE, 500 * SCALE)
    ledger.bond(BOB, 30 * SCALE, 100)
    clock.advance(EPOCH)
    ledger.claim(DirectClaim(account=BOB, volume=100 * SCALE))
    lifetime = ledger.lifetime_distributed
    ledger.close()

    reopened = make_ledger(db_path)
    assert reopened.current_epoch == 2
    assert reopened.lifetime_distributed == lifetime

    acc = reopened.get_account(ALICE)
    assert acc.staked == 1_500 * SCALE
    assert acc.last_claimed_epoch == 1
    assert reopened.get_vesting(ALICE).total == 187_500_000
    assert reopened.get_unstake(ALICE).amount == 500 * SCALE
    assert reopened.get_bond(BOB).amount == 30 * SCALE


def test_cleared_records_stay_cleared_after_restart(make_ledger, token, clock, tmp_path):
    db_path = str(tmp_path / "ledger.db")
    ledger = make_ledger(db_path)
    fund(token, ALICE, 100 * SCALE)
    ledger.stake(ALICE, 100 * SCALE)
    ledger.request_unstake(ALICE, 100 * SCALE)
    clock.advance(COOLDOWN)
    ledger.withdraw_unstaked(ALICE)
    ledger.close()

    reopened = make_ledger(db_path)
    assert reopened.get_unstake(ALICE) is None
