"""
Threshold Multisig: shared authorization primitive

Every multisig-governed actor (Security Council, Guardians, foundation)
authorises its actions with ``verify``: a set of signatures is accepted
iff at least ``threshold`` *distinct* members produced a valid signature
over the action digest.

Domain Separation:
  Digests are bound to the verifying contract and the chain, so a
  signature set collected for one actor can never be replayed against
  another: digest = keccak256(rlp([domain_separator, action, *fields]))

Replay of the same action on the same actor is handled one layer up: the
engines put their current nonce into ``fields``.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Iterator, Mapping, Optional, Tuple, Union

import rlp

from ..crypto.address import normalize_address
from ..crypto.hashing import keccak256
from ..crypto.keys import PrivateKey, Signature
from ..crypto.signing import sign_message_hash, verify_signature
from ..exceptions import InvalidAddressError, InvalidSignatureError

SignatureSet = Union[Mapping[str, Signature], Iterable[Tuple[str, Signature]]]

MIN_THRESHOLD = 1


# ═══════════════════════════════════════════════════════════════════════
# MULTISIG
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ThresholdMultisig:
    """
    An immutable member set bound to a threshold.

    Attributes:
        members: Checksum addresses of the signers
        threshold: Minimum number of distinct valid signers
    """
    members: FrozenSet[str]
    threshold: int

    def __post_init__(self):
        members = frozenset(normalize_address(m) for m in self.members)
        object.__setattr__(self, "members", members)
        if not isinstance(self.threshold, int) or isinstance(self.threshold, bool):
            raise TypeError("threshold must be an integer")
        if self.threshold < MIN_THRESHOLD:
            raise ValueError(f"Threshold must be >= {MIN_THRESHOLD}, got {self.threshold}")
        if self.threshold > len(members):
            raise ValueError(
                f"Threshold ({self.threshold}) cannot exceed member count ({len(members)})"
            )

    @classmethod
    def create(cls, members: Iterable[str], threshold: int) -> "ThresholdMultisig":
        """Build a multisig, rejecting duplicate members."""
        member_list = [normalize_address(m) for m in members]
        if len(set(member_list)) != len(member_list):
            raise ValueError("Duplicate multisig members")
        return cls(members=frozenset(member_list), threshold=threshold)

    @property
    def size(self) -> int:
        return len(self.members)

    def is_member(self, address: str) -> bool:
        try:
            return normalize_address(address) in self.members
        except InvalidAddressError:
            return False

    def with_threshold(self, threshold: int) -> "ThresholdMultisig":
        """Copy with a different threshold. Engines only."""
        return ThresholdMultisig(members=self.members, threshold=threshold)

    def to_dict(self) -> Dict:
        return {
            "members": sorted(self.members),
            "threshold": self.threshold,
        }

    def __repr__(self) -> str:
        return f"ThresholdMultisig({self.threshold}-of-{len(self.members)})"


# ═══════════════════════════════════════════════════════════════════════
# DIGESTS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SigningDomain:
    """Where a signature is valid: name, version, chain and contract."""
    name: str
    version: str
    chain_id: int
    verifying_contract: str

    @property
    def separator(self) -> bytes:
        return keccak256(rlp.encode([
            self.name.encode("utf-8"),
            self.version.encode("utf-8"),
            self.chain_id,
            bytes.fromhex(normalize_address(self.verifying_contract)[2:]),
        ]))


def _encode_field(value) -> Union[int, bytes]:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        if value < 0:
            raise ValueError("Digest fields must be non-negative integers")
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    raise TypeError(f"Cannot encode digest field of type {type(value).__name__}")


def action_digest(domain: SigningDomain, action: str, *fields) -> bytes:
    """
    32-byte digest the members of a multisig sign for *action*.

    Args:
        domain: Signing domain of the verifying contract
        action: Action name (e.g. "softFreeze")
        *fields: Nonce and action parameters (int, bytes or str)
    """
    payload = [domain.separator, action.encode("utf-8")]
    payload.extend(_encode_field(f) for f in fields)
    return keccak256(rlp.encode(payload))


# ═══════════════════════════════════════════════════════════════════════
# VERIFICATION
# ═══════════════════════════════════════════════════════════════════════

def _iter_pairs(signatures: SignatureSet) -> Iterator[Tuple[str, Signature]]:
    """Well-formed (address, signature) pairs; anything else is dropped."""
    if isinstance(signatures, Mapping):
        yield from signatures.items()
        return
    if signatures is None or isinstance(signatures, (str, bytes, bytearray)):
        return
    try:
        entries = iter(signatures)
    except TypeError:
        return
    for entry in entries:
        if isinstance(entry, (tuple, list)) and len(entry) == 2:
            yield entry[0], entry[1]


def _coerce_signature(signature) -> Optional[Signature]:
    if isinstance(signature, Signature):
        return signature
    try:
        if isinstance(signature, (bytes, bytearray)):
            return Signature.from_bytes(bytes(signature))
        if isinstance(signature, str):
            return Signature.from_hex(signature)
    except (InvalidSignatureError, ValueError):
        return None
    return None


def valid_signers(
    multisig: ThresholdMultisig,
    message: bytes,
    signatures: SignatureSet,
) -> FrozenSet[str]:
    """
    Distinct members that produced a valid signature over *message*.

    Non-members, malformed entries and invalid signatures are skipped;
    the same member appearing twice counts once.
    """
    signers = set()
    for address, raw_signature in _iter_pairs(signatures):
        try:
            signer = normalize_address(address)
        except InvalidAddressError:
            continue
        if signer not in multisig.members or signer in signers:
            continue
        signature = _coerce_signature(raw_signature)
        if signature is None:
            continue
        if verify_signature(signer, message, signature):
            signers.add(signer)
    return frozenset(signers)


def verify_with_threshold(
    multisig: ThresholdMultisig,
    message: bytes,
    signatures: SignatureSet,
    threshold: int,
) -> bool:
    """``verify`` against an explicit threshold (e.g. the soft freeze one)."""
    if threshold < MIN_THRESHOLD:
        return False
    return len(valid_signers(multisig, message, signatures)) >= threshold


def verify(
    multisig: ThresholdMultisig,
    message: bytes,
    signatures: SignatureSet,
) -> bool:
    """
    True iff at least ``multisig.threshold`` distinct members signed *message*.

    Pure predicate; order of *signatures* is irrelevant and it never raises
    on bad input.
    """
    return verify_with_threshold(multisig, message, signatures, multisig.threshold)


# ═══════════════════════════════════════════════════════════════════════
# SIGNING HELPERS
# ═══════════════════════════════════════════════════════════════════════

def sign_action(private_keys: Iterable[PrivateKey], digest: bytes) -> Dict[str, Signature]:
    """
    Collect one signature per key over *digest*, keyed by signer address.
    """
    return {key.address: sign_message_hash(key, digest) for key in private_keys}
