import os
from ecdsa import SigningKey, VerifyingKey, SECP256k1, BadSignatureError, MalformedPointError  # type: ignore
from ecdsa.util import sigencode_string, sigdecode_string  # type: ignore

def generate_private_key() -> bytes:
    """Generates a random 32-byte private key."""
    return os.urandom(32)

def public_key_from_private(priv_bytes: bytes) -> bytes:
    """Returns compressed 33-byte public key from private key."""
    sk = SigningKey.from_string(priv_bytes, curve=SECP256k1)
    return sk.get_verifying_key().to_string("compressed")

def sign(message_hash: bytes, priv_bytes: bytes) -> bytes:
    """Signs a 32-byte digest. Returns 64-byte (r || s) signature."""
    sk = SigningKey.from_string(priv_bytes, curve=SECP256k1)
    return sk.sign_digest_deterministic(message_hash, sigencode=sigencode_string)

def verify(message_hash: bytes, signature: bytes, pub_bytes: bytes) -> bool:
    """Verifies a 64-byte (r || s) signature over a digest."""
    try:
        vk = VerifyingKey.from_string(pub_bytes, curve=SECP256k1)
        return vk.verify_digest(signature, message_hash, sigdecode=sigdecode_string)
    except (BadSignatureError, MalformedPointError, ValueError):
        return False
