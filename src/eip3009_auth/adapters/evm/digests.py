"""
EIP-712 hashing for EIP-3009 authorizations.

All functions are pure and byte-for-byte deterministic:

    domainSeparator = keccak256(abi.encode(DOMAIN_TYPEHASH, keccak(name),
                                           keccak(version), chainId, verifyingContract))
    structHash      = keccak256(abi.encode(TYPEHASH, from, to, value,
                                           validAfter, validBefore, nonce))
    digest          = keccak256(0x1901 || domainSeparator || structHash)
"""

from typing import Union

from eth_abi import encode
from eth_utils import keccak

from ...engine.exceptions import MalformedPayloadError
from .schemas import Authorization
from .standards import (
    AuthorizationKind,
    AuthorizationMessage,
    EIP712Domain,
    EIP712_DOMAIN_TYPE_STRING,
)

EIP712_DOMAIN_TYPEHASH = keccak(text=EIP712_DOMAIN_TYPE_STRING)

_STRUCT_ABI_TYPES = ["bytes32", "address", "address", "uint256", "uint256", "uint256", "bytes32"]


def type_hash(kind: AuthorizationKind) -> bytes:
    """keccak256 of the kind's EIP-712 type string."""
    return keccak(text=AuthorizationKind(kind).type_string)


def domain_separator(domain: EIP712Domain) -> bytes:
    return keccak(
        encode(
            ["bytes32", "bytes32", "bytes32", "uint256", "address"],
            [
                EIP712_DOMAIN_TYPEHASH,
                keccak(text=domain.name),
                keccak(text=domain.version),
                domain.chainId,
                domain.verifyingContract,
            ],
        )
    )


def struct_hash(kind: AuthorizationKind, message: AuthorizationMessage) -> bytes:
    """
    Hash the authorization message with each field at its 32-byte ABI width.

    Raises:
        MalformedPayloadError: If the nonce is not 32 bytes of hex.
    """
    nonce_hex = message.nonce[2:] if message.nonce[:2] in ("0x", "0X") else message.nonce
    try:
        nonce = bytes.fromhex(nonce_hex)
    except ValueError as e:
        raise MalformedPayloadError(f"nonce is not valid hexadecimal: {message.nonce!r}") from e
    if len(nonce) != 32:
        raise MalformedPayloadError(f"nonce must be 32 bytes, got {len(nonce)}")

    return keccak(
        encode(
            _STRUCT_ABI_TYPES,
            [
                type_hash(kind),
                message.authorizer,
                message.recipient,
                message.value,
                message.validAfter,
                message.validBefore,
                nonce,
            ],
        )
    )


def compute_digest(
    domain: EIP712Domain,
    kind: AuthorizationKind,
    message: Union[AuthorizationMessage, Authorization],
) -> bytes:
    """
    Compute the 32-byte EIP-712 digest the token contract recovers against.

    Args:
        domain:  Token domain.
        kind:    Selects the type hash; the same message under the other kind
                 yields a different digest.
        message: ``AuthorizationMessage`` or an ``Authorization`` (its
                 signature, if any, is ignored).

    Returns:
        bytes: 32-byte digest.
    """
    if isinstance(message, Authorization):
        message = message.to_message()
    return keccak(b"\x19\x01" + domain_separator(domain) + struct_hash(kind, message))


def authorization_digest(authorization: Authorization, domain: EIP712Domain) -> bytes:
    """Digest of ``authorization`` under its own kind."""
    return compute_digest(domain, authorization.kind, authorization)
