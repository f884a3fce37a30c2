"""
zkgov Crypto Signing Module

Signing and signer recovery for governance approval digests (secp256k1).
"""

from eth_keys.constants import SECPK1_N

from ..exceptions import InvalidSignatureError
from .keys import PrivateKey, PublicKey, Signature

# Upper bound of a canonical (low-s) signature
SECPK1_HALF_N = SECPK1_N // 2


def sign_message_hash(private_key: PrivateKey, msg_hash: bytes) -> Signature:
    """
    Sign a 32-byte message hash.

    Args:
        private_key: PrivateKey to sign with
        msg_hash: 32-byte hash to sign

    Returns:
        Signature
    """
    return private_key.sign_msg_hash(msg_hash)


def is_low_s(signature: Signature) -> bool:
    """
    Check the signature is in canonical low-s form.

    (r, s) and (r, N - s) both verify for the same key; only the low-s
    form is accepted so a signature cannot be mutated into a second valid one.
    """
    return 0 < signature.s <= SECPK1_HALF_N


def recover_public_key(msg_hash: bytes, signature: Signature) -> PublicKey:
    """
    Recover public key from signature.

    Raises:
        InvalidSignatureError: If recovery fails
    """
    return PublicKey.recover_from_msg_hash(msg_hash, signature)


def recover_signer(msg_hash: bytes, signature: Signature) -> str:
    """
    Recover the checksum address that signed *msg_hash*.

    This mirrors the Solidity ecrecover() function, but rejects
    high-s signatures.

    Raises:
        InvalidSignatureError: If the signature is malleable or unrecoverable
    """
    if not is_low_s(signature):
        raise InvalidSignatureError("Signature s value is not in canonical low-s form")
    return recover_public_key(msg_hash, signature).to_address()


def verify_signature(address: str, msg_hash: bytes, signature: Signature) -> bool:
    """
    Verify *signature* over *msg_hash* was produced by *address*.

    Args:
        address: Checksum address of the claimed signer
        msg_hash: 32-byte message hash
        signature: Signature to verify

    Returns:
        True if valid, False otherwise
    """
    try:
        return recover_signer(msg_hash, signature) == address
    except InvalidSignatureError:
        return False
