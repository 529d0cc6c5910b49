"""
Exception and Error Definitions Module

Defines the exception hierarchy for authorization construction, signing,
transport decoding and chain reads. All exceptions inherit from
EIP3009Error for unified exception handling.

Construction-time errors additionally inherit from ``ValueError`` so that
callers treating bad input generically keep working.

Exception Hierarchy:
    EIP3009Error (root)
    ├── InvalidDomainError
    ├── InvalidAddressError
    ├── InvalidAmountError
    ├── InvalidWindowError
    ├── SigningError
    ├── MalformedSignatureError
    ├── MalformedPayloadError
    ├── ConfigurationError
    └── BlockchainInteractionError

Validation outcomes (EXECUTABLE, PENDING, EXPIRED, CONSUMED,
UNAUTHORIZED_SUBMITTER) are not errors; see
``schemas.bases.ValidationClassification``.
"""

from typing import Optional


class EIP3009Error(Exception):
    """
    Root exception class for all project-specific exceptions.

    All custom exceptions inherit from this class to enable unified
    exception handling and centralized error processing.
    """
    pass


class InvalidDomainError(EIP3009Error, ValueError):
    """
    Raised when an EIP-712 domain field fails shape validation.

    This includes scenarios such as:
    - Empty token name or version
    - Non-positive or non-integer chain id
    - Malformed verifying contract address
    """
    pass


class InvalidAddressError(EIP3009Error, ValueError):
    """
    Raised when an account address is not a valid 20-byte EVM address.

    Mixed-case addresses must carry a valid EIP-55 checksum.
    """
    pass


class InvalidAmountError(EIP3009Error, ValueError):
    """
    Raised when a transfer amount is unusable.

    This includes scenarios such as:
    - Zero or negative amounts
    - Binary floats (use ``str`` or ``Decimal``)
    - Amounts that would create fractional smallest units
    - Values above the uint256 range
    """
    pass


class InvalidWindowError(EIP3009Error, ValueError):
    """
    Raised when ``validBefore`` does not strictly exceed ``validAfter`` or a
    timestamp falls outside the uint256 range.
    """
    pass


class SigningError(EIP3009Error):
    """
    Raised when the signing capability fails, is unavailable or refuses.

    The original exception is chained as ``__cause__``.

    Attributes:
        digest: The 32-byte digest that was being signed, when known.
        kind: The authorization kind being signed, when known.
    """

    def __init__(self, message: str, *, digest: Optional[bytes] = None, kind: Optional[str] = None):
        self.digest = digest
        self.kind = kind
        context = []
        if kind is not None:
            context.append(f"kind={kind}")
        if digest is not None:
            context.append(f"digest=0x{digest.hex()}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)


class MalformedSignatureError(EIP3009Error, ValueError):
    """
    Raised when a raw signature cannot be normalized.

    This includes scenarios such as:
    - Byte length other than 65
    - Recovery id outside {0, 1, 27, 28}
    - Non-hexadecimal signature text
    """
    pass


class MalformedPayloadError(EIP3009Error, ValueError):
    """
    Raised when an authorization payload is structurally unusable.

    This includes scenarios such as:
    - A required field is missing from a transport payload
    - An address, nonce or signature has the wrong byte length
    - Integers not encoded as decimal strings
    - Validation requested for an incomplete authorization
    """
    pass


class ConfigurationError(EIP3009Error):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Unknown network name
    - Invalid settings values in the environment
    """
    pass


class BlockchainInteractionError(EIP3009Error):
    """
    Raised when a read-only chain call fails.

    Attributes:
        rpc_method: Contract function or RPC method that was called
    """

    def __init__(self, message: str, *, rpc_method: Optional[str] = None):
        self.rpc_method = rpc_method
        super().__init__(message)
