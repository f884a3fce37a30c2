"""
Governance contract addresses.

The upgrade handler only honours freeze, approval and emergency calls
whose immediate sender (per the call-history ledger) is the matching
governance contract.
"""

from dataclasses import dataclass
from typing import Dict

from ..crypto.address import normalize_address, system_address


@dataclass(frozen=True)
class GovernanceAddresses:
    upgrade_handler: str = system_address(1)
    security_council: str = system_address(2)
    guardians: str = system_address(3)
    emergency_upgrade_board: str = system_address(4)
    foundation: str = system_address(5)

    def __post_init__(self):
        seen = set()
        for name in self.__dataclass_fields__:
            address = normalize_address(getattr(self, name))
            if address in seen:
                raise ValueError(f"Duplicate governance address for {name}: {address}")
            seen.add(address)
            object.__setattr__(self, name, address)

    def to_dict(self) -> Dict[str, str]:
        return {name: getattr(self, name) for name in self.__dataclass_fields__}
