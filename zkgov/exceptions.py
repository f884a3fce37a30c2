"""
zkgov Exceptions

Custom exception classes for the zkgov governance model.
"""


class ZKGovException(Exception):
    """Base exception for zkgov."""
    pass


class InvalidKeyError(ZKGovException):
    """Invalid cryptographic key."""
    pass


class InvalidAddressError(ZKGovException):
    """Invalid address format."""
    pass


class InvalidSignatureError(ZKGovException):
    """Invalid cryptographic signature."""
    pass


class EncodingError(ZKGovException):
    """Calldata could not be encoded or decoded."""
    pass


class ConfigurationError(ZKGovException):
    """Configuration error."""
    pass
