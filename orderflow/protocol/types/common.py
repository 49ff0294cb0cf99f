from enum import Enum, IntEnum


class Tier(IntEnum):
    """Fee tiers, ordered by staked balance."""
    BRONZE = 0
    SILVER = 1
    GOLD = 2
    PLATINUM = 3
    DIAMOND = 4


class AuthMethod(str, Enum):
    DIRECT = "DIRECT"                   # No extra check (private path)
    SIGNED = "SIGNED"                   # Signed meta-transaction bound to a nonce
    PROOF_GATED = "PROOF_GATED"         # External proof-of-volume
    IDENTITY_GATED = "IDENTITY_GATED"   # External identity registry
    MERKLE_BATCH = "MERKLE_BATCH"       # Precomputed one-shot distribution


class LedgerOp(str, Enum):
    """Metered steps. Costs live in params.GAS_PER_OP."""
    STAKE = "STAKE"
    REQUEST_UNSTAKE = "REQUEST_UNSTAKE"
    WITHDRAW_UNSTAKED = "WITHDRAW_UNSTAKED"
    RECORD_VOLUME = "RECORD_VOLUME"
    PROCESS_REWARD = "PROCESS_REWARD"
    ADD_TO_STREAM = "ADD_TO_STREAM"
    CLAIM_VESTED = "CLAIM_VESTED"
    VERIFY_SIGNATURE = "VERIFY_SIGNATURE"
    VERIFY_PROOF = "VERIFY_PROOF"
    CHECK_IDENTITY = "CHECK_IDENTITY"
    VERIFY_MERKLE = "VERIFY_MERKLE"
    BOND = "BOND"
    SLASH = "SLASH"
    WITHDRAW_BOND = "WITHDRAW_BOND"
    TRANSFER = "TRANSFER"
    ACCOUNT_UPDATE = "ACCOUNT_UPDATE"


class ProtocolError(Exception):
    pass


# ═══════════════════════════════════════════════════════
# LEDGER ERRORS
# ═══════════════════════════════════════════════════════
# Every ledger failure aborts the whole operation. `code` is the stable
# identifier exposed over RPC and in metrics.

class LedgerError(ProtocolError):
    code = "LedgerError"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class AlreadyClaimed(LedgerError):
    code = "AlreadyClaimed"


class VolumeTooLow(LedgerError):
    code = "VolumeTooLow"


class NoReward(LedgerError):
    code = "NoReward"


class InsufficientStaked(LedgerError):
    code = "InsufficientStaked"


class NoPendingUnstake(LedgerError):
    code = "NoPendingUnstake"


class CooldownActive(LedgerError):
    code = "CooldownActive"


class NothingVested(LedgerError):
    code = "NothingVested"


class InvalidSignature(LedgerError):
    code = "InvalidSignature"


class InvalidProof(LedgerError):
    code = "InvalidProof"


class NotVerified(LedgerError):
    code = "NotVerified"


class AlreadyClaimedMerkle(LedgerError):
    code = "AlreadyClaimedMerkle"


class NoBond(LedgerError):
    code = "NoBond"


class BondLocked(LedgerError):
    code = "BondLocked"


class InvalidBoundAccount(LedgerError):
    code = "InvalidBoundAccount"


class InvalidAmount(LedgerError):
    code = "InvalidAmount"


class Unauthorized(LedgerError):
    code = "Unauthorized"


class StaleMirrorUpdate(LedgerError):
    code = "StaleMirrorUpdate"


class OutOfGas(LedgerError):
    code = "OutOfGas"


class UnknownOperation(LedgerError):
    code = "UnknownOperation"


# Token boundary failures

class InsufficientBalance(LedgerError):
    code = "InsufficientBalance"


class InsufficientAllowance(LedgerError):
    code = "InsufficientAllowance"
