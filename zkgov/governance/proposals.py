"""
Upgrade Proposals: calldata codec

An upgrade proposal is the list of calls the upgrade handler makes once
the upgrade executes, an optional executor allowed to trigger execution,
and a salt that makes otherwise identical proposals distinct.

The bridge delivers proposals as opaque calldata (RLP of the proposal);
the upgrade id is keccak256 of that calldata.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import rlp
from rlp.exceptions import RLPException

from ..crypto.address import normalize_address
from ..crypto.hashing import keccak256_hex
from ..exceptions import EncodingError, InvalidAddressError

SALT_SIZE = 32
ADDRESS_SIZE = 20


def _address_bytes(address: str) -> bytes:
    return bytes.fromhex(normalize_address(address)[2:])


def _address_from_bytes(raw: bytes) -> str:
    if len(raw) != ADDRESS_SIZE:
        raise EncodingError(f"Address must be {ADDRESS_SIZE} bytes, got {len(raw)}")
    return normalize_address("0x" + raw.hex())


def upgrade_id(calldata: bytes) -> str:
    """Deterministic upgrade identifier: keccak256 of the calldata."""
    return keccak256_hex(bytes(calldata))


@dataclass(frozen=True)
class Call:
    """One call made by the upgrade handler on execution."""
    target: str
    value: int = 0
    data: bytes = b""

    def __post_init__(self):
        object.__setattr__(self, "target", normalize_address(self.target))
        if self.value < 0:
            raise ValueError(f"Call value cannot be negative: {self.value}")

    def to_dict(self) -> Dict[str, Any]:
        return {"target": self.target, "value": self.value, "data": "0x" + self.data.hex()}


@dataclass(frozen=True)
class UpgradeProposal:
    """
    Attributes:
        calls: Calls executed in order
        executor: Only this address may execute; None = anyone
        salt: 32-byte salt
    """
    calls: Tuple[Call, ...] = field(default_factory=tuple)
    executor: Optional[str] = None
    salt: bytes = b"\x00" * SALT_SIZE

    def __post_init__(self):
        object.__setattr__(self, "calls", tuple(self.calls))
        if self.executor is not None:
            object.__setattr__(self, "executor", normalize_address(self.executor))
        if len(self.salt) != SALT_SIZE:
            raise ValueError(f"Salt must be {SALT_SIZE} bytes, got {len(self.salt)}")

    def encode(self) -> bytes:
        """RLP calldata for this proposal."""
        return rlp.encode([
            [[_address_bytes(c.target), c.value, c.data] for c in self.calls],
            _address_bytes(self.executor) if self.executor is not None else b"",
            self.salt,
        ])

    @property
    def id(self) -> str:
        return upgrade_id(self.encode())

    @classmethod
    def decode(cls, calldata: bytes) -> "UpgradeProposal":
        """
        Parse calldata produced by ``encode``.

        Raises:
            EncodingError: If *calldata* is not a well-formed proposal
        """
        try:
            raw = rlp.decode(bytes(calldata))
        except RLPException as e:
            raise EncodingError(f"Calldata is not valid RLP: {e}")

        if not isinstance(raw, list) or len(raw) != 3 or not isinstance(raw[0], list):
            raise EncodingError("Calldata must encode [calls, executor, salt]")
        raw_calls, raw_executor, salt = raw
        if not isinstance(raw_executor, bytes) or not isinstance(salt, bytes):
            raise EncodingError("Executor and salt must be byte strings")

        calls: List[Call] = []
        for item in raw_calls:
            if not isinstance(item, list) or len(item) != 3:
                raise EncodingError("Each call must encode [target, value, data]")
            target, value, data = item
            if not all(isinstance(part, bytes) for part in item):
                raise EncodingError("Call fields must be byte strings")
            calls.append(Call(
                target=_address_from_bytes(target),
                value=int.from_bytes(value, "big"),
                data=data,
            ))

        executor = _address_from_bytes(raw_executor) if raw_executor else None
        try:
            return cls(calls=tuple(calls), executor=executor, salt=salt)
        except (ValueError, InvalidAddressError) as e:
            raise EncodingError(str(e))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "calls": [c.to_dict() for c in self.calls],
            "executor": self.executor,
            "salt": "0x" + self.salt.hex(),
        }
