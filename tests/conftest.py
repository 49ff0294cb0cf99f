import pytest
from orderflow.protocol.config.economic_model import SCALE
from orderflow.protocol.config.params import GAS_PER_OP, NetworkConfig
from orderflow.protocol.crypto.addresses import address_from_pubkey
from orderflow.protocol.crypto.keys import generate_private_key, public_key_from_private, sign
from orderflow.protocol.types.claim import DirectClaim, operation_message_hash
from orderflow.protocol.types.common import LedgerOp
from orderflow.ledger.core.ledger import RewardLedger
from orderflow.ledger.core.services import (
    ExternalServices, InMemoryToken, InMemoryIdentityRegistry, InMemoryMirrorChannel, VAULT_ADDRESS,
)
from orderflow.ledger.core.verification import AttestorProofVerifier

GENESIS_TIME = 1_700_000_000
EPOCH = 100
COOLDOWN = 1_000

GOVERNOR = "idxf1governor"
MIRROR_SENDER = "idxf1mirror"
KEEPER = "idxf1keeper"
ALICE = "idxf1alice"
BOB = "idxf1bob"
CAROL = "idxf1carol"

VAULT_SUPPLY = 10**9 * SCALE

# Metered cost of a plain DIRECT claim that pays its immediate part
DIRECT_CLAIM_GAS = (
    GAS_PER_OP[LedgerOp.RECORD_VOLUME]
    + GAS_PER_OP[LedgerOp.PROCESS_REWARD]
    + GAS_PER_OP[LedgerOp.TRANSFER]
    + GAS_PER_OP[LedgerOp.ADD_TO_STREAM]
)


def make_network(**overrides) -> NetworkConfig:
    params = dict(
        network_id="test",
        chain_id="idxf-test-1",
        epoch_duration_sec=EPOCH,
        vesting_epochs=4,
        unstake_cooldown_sec=COOLDOWN,
    )
    params.update(overrides)
    return NetworkConfig(**params)


class FakeClock:
    def __init__(self, now: int = GENESIS_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int):
        self.now += seconds


def fund(token: InMemoryToken, address: str, amount: int):
    """Mint to an account and approve the ledger vault for all of it."""
    token.mint(address, amount)
    token.approve(address, token.allowances.get(address, 0) + amount)


def roll_epoch(ledger: RewardLedger, clock: FakeClock):
    """Advance time one epoch and let a keeper claim so the rollover is recorded."""
    clock.advance(EPOCH)
    ledger.claim(DirectClaim(account=KEEPER, volume=100 * SCALE))


def key_address(priv: bytes) -> str:
    return address_from_pubkey(public_key_from_private(priv))


def signed_operation(ledger: RewardLedger, priv: bytes, operation: str, args: dict,
                     address: str = None, nonce: int = None) -> dict:
    """Authorization fields for one signed operation, as posted to the RPC."""
    address = address or key_address(priv)
    if nonce is None:
        nonce = ledger.get_account(address).nonce
    digest = operation_message_hash(operation, args, nonce, address)
    return {
        "address": address,
        "signature": sign(digest, priv).hex(),
        "pub_key": public_key_from_private(priv).hex(),
    }


# ═══════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def token():
    t = InMemoryToken()
    t.mint(VAULT_ADDRESS, VAULT_SUPPLY)
    return t


@pytest.fixture
def attestor_key():
    return generate_private_key()


@pytest.fixture
def services(token, attestor_key):
    return ExternalServices(
        token=token,
        proof_verifier=AttestorProofVerifier(public_key_from_private(attestor_key)),
        identity_registry=InMemoryIdentityRegistry(),
        mirror_channel=InMemoryMirrorChannel(),
        trusted_mirror_sender=MIRROR_SENDER,
    )


@pytest.fixture
def make_ledger(services, clock):
    """Factory for ledgers sharing the fixture services and clock."""
    ledgers = []

    def _make(db_path: str = ":memory:", **network_overrides) -> RewardLedger:
        ledger = RewardLedger(
            db_path,
            services,
            governor=GOVERNOR,
            config=make_network(**network_overrides),
            clock=clock,
            genesis_time=GENESIS_TIME,
        )
        ledgers.append(ledger)
        return ledger

    yield _make
    for ledger in ledgers:
        ledger.close()


@pytest.fixture
def ledger(make_ledger):
    return make_ledger()
