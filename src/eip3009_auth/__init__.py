"""
eip3009_auth

Build, sign, transport and validate EIP-3009 ``transferWithAuthorization`` /
``receiveWithAuthorization`` payloads for FiatToken (USDC) contracts.
"""

from .adapters.evm import *  # noqa: F401,F403
from .adapters.evm import __all__ as _evm_all
from .adapters.bases import AuthorizationAdapterFactory
from .engine.exceptions import (
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
from .schemas.bases import ValidationClassification
from .utils import logger, setup_logger

__version__ = "0.1.0"

__all__ = list(_evm_all) + [
    "AuthorizationAdapterFactory",
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
    "ValidationClassification",
    "logger",
    "setup_logger",
]
