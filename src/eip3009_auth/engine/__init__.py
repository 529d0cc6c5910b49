from .exceptions import (
    EIP3009Error,
    InvalidDomainError,
    InvalidAddressError,
    InvalidAmountError,
    InvalidWindowError,
    SigningError,
    MalformedSignatureError,
    MalformedPayloadError,
    ConfigurationError,
    BlockchainInteractionError,
)

__all__ = [
    "EIP3009Error",
    "InvalidDomainError",
    "InvalidAddressError",
    "InvalidAmountError",
    "InvalidWindowError",
    "SigningError",
    "MalformedSignatureError",
    "MalformedPayloadError",
    "ConfigurationError",
    "BlockchainInteractionError",
]
