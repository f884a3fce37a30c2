"""
zkgov Crypto Module

Cryptographic primitives for the governance model:
- secp256k1 keys and signatures for multisig members
- keccak256 for proposal ids and approval digests
- EIP-55 address normalisation
"""

from .keys import PrivateKey, PublicKey, Signature, generate_keypair
from .signing import (
    is_low_s,
    recover_public_key,
    recover_signer,
    sign_message_hash,
    verify_signature,
)
from .hashing import keccak256, keccak256_hex
from .address import (
    is_system_address,
    is_valid_address,
    normalize_address,
    system_address,
)

__all__ = [
    # Keys
    "PrivateKey",
    "PublicKey",
    "Signature",
    "generate_keypair",
    # Signing
    "is_low_s",
    "recover_public_key",
    "recover_signer",
    "sign_message_hash",
    "verify_signature",
    # Hashing
    "keccak256",
    "keccak256_hex",
    # Address
    "is_system_address",
    "is_valid_address",
    "normalize_address",
    "system_address",
]
