import bech32 # type: ignore
from .hash import sha256
from typing import Optional
from ..config.params import CURRENT_NETWORK

def address_from_pubkey(pub_bytes: bytes, prefix: Optional[str] = None) -> str:
    """Creates Bech32 account address from a public key (first 20 bytes of sha256)."""
    h20 = sha256(pub_bytes)[:20]

    five_bit_r = bech32.convertbits(h20, 8, 5)
    if five_bit_r is None:
        raise ValueError("Error converting to bech32 words")

    return bech32.bech32_encode(prefix or CURRENT_NETWORK.bech32_prefix_acc, five_bit_r)
