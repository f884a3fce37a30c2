"""
zkgov Crypto Address Module

Ethereum-style addresses with EIP-55 checksum. Every address entering the
governance model is normalised to checksum form so that case variants of
the same account compare equal as map/set keys.
"""

from eth_utils import is_address, to_checksum_address

from ..exceptions import InvalidAddressError

# Reserved range for the governance contracts themselves
SYSTEM_ADDRESS_MIN = 0x0000000000000000000000000000000000000001
SYSTEM_ADDRESS_MAX = 0x00000000000000000000000000000000000000FF


def is_valid_address(address: str) -> bool:
    """
    Check if address is a valid 20-byte hex address.

    Args:
        address: Address to validate

    Returns:
        True if valid, False otherwise
    """
    return isinstance(address, str) and address.startswith("0x") and is_address(address)


def normalize_address(address: str) -> str:
    """
    Normalise an address to EIP-55 checksum form.

    Args:
        address: Address in any casing, 0x prefixed

    Returns:
        Checksum address

    Raises:
        InvalidAddressError: If the address is malformed
    """
    if not isinstance(address, str):
        raise InvalidAddressError(f"Address must be a string, got {type(address).__name__}")
    if not address.startswith("0x") or not is_address(address):
        raise InvalidAddressError(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def system_address(index: int) -> str:
    """
    Generate a governance contract address from an index.

    Args:
        index: Index in range [1, 255]

    Returns:
        Checksum address (e.g. "0x0000000000000000000000000000000000000001")
    """
    if not (SYSTEM_ADDRESS_MIN <= index <= SYSTEM_ADDRESS_MAX):
        raise ValueError(f"System address index must be 1-255, got {index}")
    return to_checksum_address(f"0x{index:040x}")


def is_system_address(address: str) -> bool:
    """Check if an address is in the reserved governance contract range."""
    if not is_valid_address(address):
        return False
    return SYSTEM_ADDRESS_MIN <= int(address, 16) <= SYSTEM_ADDRESS_MAX
