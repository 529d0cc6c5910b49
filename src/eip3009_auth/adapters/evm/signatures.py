"""
EVM Off-Chain Signing Utilities

EIP-712 signing and recovery for EIP-3009 authorizations. Signing goes
through an opaque ``SigningCapability`` so keys can live in-process
(``LocalAccountSigner``), in a hardware wallet or behind a remote signer.
Only raw EIP-712 digests are ever signed; no personal-message prefix is
applied.

Exported helpers
----------------
sign_authorization / async_sign_authorization
    Compute the digest, sign it through the capability, normalize the result
    and return a new signed ``Authorization``.

normalize_signature / split_signature
    Convert between raw signer output, packed ``r || s || v`` bytes and
    the ``(v, r, s)`` triple.

recover_signer / recover_authorization_signer
    ECDSA recovery of the address that produced a signature.

build_typed_data
    The standard ``{types, primaryType, domain, message}`` dict for signers
    that only accept structured data (``eth_signTypedData_v4``).
"""

import inspect
from typing import Any, Awaitable, Dict, Optional, Protocol, Tuple, Union, runtime_checkable

from eth_account import Account
from eth_account.messages import SignableMessage
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError as EthKeysValidationError

from ...engine.exceptions import MalformedSignatureError, SigningError
from ...utils import logger, short_hex
from .digests import authorization_digest, domain_separator, struct_hash
from .schemas import Authorization, EVMECDSASignature
from .standards import AuthorizationKind, AuthorizationTypedData, EIP712Domain

RawSignature = Union[bytes, bytearray, str, Tuple[int, Any, Any]]

_SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


@runtime_checkable
class SigningCapability(Protocol):
    """
    Anything that can sign a 32-byte digest.

    ``sign`` returns 65 raw bytes (hex accepted) or a ``(v, r, s)`` tuple, or
    an awaitable of either for remote signers.
    """

    def sign(self, digest: bytes) -> Union[RawSignature, Awaitable[RawSignature]]:
        ...


class LocalAccountSigner:
    """
    ``SigningCapability`` backed by an in-process eth-account key.

    The key never leaves the wrapped ``LocalAccount`` and is never logged.

    Example::

        signer = LocalAccountSigner("0xac09...ff80")
        signer.address   # '0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266'
    """

    def __init__(self, private_key: str):
        try:
            self._account = Account.from_key(private_key)
        except (ValueError, TypeError, EthKeysValidationError) as e:
            raise SigningError("invalid private key") from e

    @property
    def address(self) -> str:
        return self._account.address

    def sign(self, digest: bytes) -> Tuple[int, int, int]:
        signed = self._account.unsafe_sign_hash(digest)
        return signed.v, signed.r, signed.s

    def __repr__(self) -> str:
        return f"LocalAccountSigner(address={self.address})"


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

def _component_to_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise MalformedSignatureError(f"{name} must be int, bytes or hex, got bool")
    if isinstance(value, int):
        result = value
    elif isinstance(value, (bytes, bytearray)):
        if len(value) > 32:
            raise MalformedSignatureError(f"{name} longer than 32 bytes")
        result = int.from_bytes(value, "big")
    elif isinstance(value, str):
        try:
            result = int(value, 16)
        except ValueError as e:
            raise MalformedSignatureError(f"{name} is not valid hexadecimal") from e
    else:
        raise MalformedSignatureError(f"{name} must be int, bytes or hex, got {type(value).__name__}")
    if not 0 <= result < 2**256:
        raise MalformedSignatureError(f"{name} out of range")
    return result


def _normalize_v(v: Any) -> int:
    if isinstance(v, bool) or not isinstance(v, int):
        raise MalformedSignatureError(f"recovery id must be int, got {type(v).__name__}")
    if v in (0, 1):
        return v + 27
    if v in (27, 28):
        return v
    raise MalformedSignatureError(f"Invalid recovery ID: {v}. Must be 0, 1, 27 or 28")


def normalize_signature(raw: RawSignature) -> bytes:
    """
    Normalize signer output to packed 65-byte ``r || s || v`` with v in {27, 28}.

    Args:
        raw: 65 bytes, 0x-hex of 65 bytes, a ``(v, r, s)`` tuple, or an object
             exposing ``v``, ``r`` and ``s`` (eth-account ``SignedMessage``).

    Raises:
        MalformedSignatureError: Wrong length, bad recovery id or bad hex.

    Example:
        normalize_signature((0, r, s))[-1]   # 27
    """
    if isinstance(raw, str):
        text = raw[2:] if raw[:2] in ("0x", "0X") else raw
        try:
            raw = bytes.fromhex(text)
        except ValueError as e:
            raise MalformedSignatureError("signature is not valid hexadecimal") from e

    if isinstance(raw, (bytes, bytearray)):
        if len(raw) != 65:
            raise MalformedSignatureError(f"signature must be 65 bytes, got {len(raw)}")
        return bytes(raw[:64]) + bytes([_normalize_v(raw[64])])

    # SignedMessage is a namedtuple, so attribute access comes first.
    if all(hasattr(raw, attr) for attr in ("v", "r", "s")):
        v, r, s = raw.v, raw.r, raw.s
    elif isinstance(raw, tuple):
        if len(raw) != 3:
            raise MalformedSignatureError(f"(v, r, s) tuple expected, got {len(raw)} items")
        v, r, s = raw
    else:
        raise MalformedSignatureError(f"unsupported signature type: {type(raw).__name__}")

    v = _normalize_v(v)
    r_int = _component_to_int(r, "r")
    s_int = _component_to_int(s, "s")
    return r_int.to_bytes(32, "big") + s_int.to_bytes(32, "big") + bytes([v])


def split_signature(signature: Union[RawSignature, EVMECDSASignature]) -> Tuple[int, bytes, bytes]:
    """
    Split a signature into ``(v, r, s)`` for the contract's v/r/s overloads.

    Returns:
        Tuple[int, bytes, bytes]: v in {27, 28}, r and s as 32-byte values.
    """
    if isinstance(signature, EVMECDSASignature):
        packed = signature.to_bytes()
    else:
        packed = normalize_signature(signature)
    return packed[64], packed[:32], packed[32:64]


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------

def _invoke_signer(signer: Any, digest: bytes) -> Any:
    if isinstance(signer, SigningCapability):
        return signer.sign(digest)
    if callable(signer):
        return signer(digest)
    raise SigningError(f"{type(signer).__name__} is not a signing capability")


def _check_digest(digest: bytes, kind: Optional[str]) -> None:
    if not isinstance(digest, (bytes, bytearray)) or len(digest) != 32:
        raise SigningError("digest must be exactly 32 bytes", kind=kind)


def _finish(raw: Any, digest: bytes, kind: Optional[str]) -> bytes:
    try:
        return normalize_signature(raw)
    except MalformedSignatureError as e:
        raise SigningError("signer returned a malformed signature", digest=digest, kind=kind) from e


def sign_digest(digest: bytes, signer: SigningCapability, *, kind: Optional[str] = None) -> bytes:
    """
    Sign a raw 32-byte digest with a synchronous capability.

    Returns:
        bytes: Normalized 65-byte signature.

    Raises:
        SigningError: The capability raised, is asynchronous, or returned
            something that cannot be normalized. The cause is chained.
    """
    _check_digest(digest, kind)
    try:
        raw = _invoke_signer(signer, bytes(digest))
    except SigningError:
        raise
    except Exception as e:
        raise SigningError(f"signing capability failed: {e}", digest=digest, kind=kind) from e

    if inspect.isawaitable(raw):
        if inspect.iscoroutine(raw):
            raw.close()
        raise SigningError(
            "signing capability is asynchronous; use async_sign_digest", digest=digest, kind=kind
        )
    return _finish(raw, digest, kind)


async def async_sign_digest(digest: bytes, signer: SigningCapability, *, kind: Optional[str] = None) -> bytes:
    """Like ``sign_digest`` but awaits capabilities that return awaitables."""
    _check_digest(digest, kind)
    try:
        raw = _invoke_signer(signer, bytes(digest))
        if inspect.isawaitable(raw):
            raw = await raw
    except SigningError:
        raise
    except Exception as e:
        raise SigningError(f"signing capability failed: {e}", digest=digest, kind=kind) from e
    return _finish(raw, digest, kind)


def _attach(authorization: Authorization, domain: EIP712Domain, digest: bytes, packed: bytes) -> Authorization:
    recovered = recover_signer(digest, packed)
    if recovered != authorization.authorizer:
        raise SigningError(
            f"signature recovers to {recovered}, expected from={authorization.authorizer}",
            digest=digest,
            kind=authorization.kind.value,
        )
    logger.debug(
        "Signed %s authorization nonce=%s on chain %d",
        authorization.kind.value, short_hex(authorization.nonce), domain.chainId,
    )
    return authorization.model_copy(update={"signature": EVMECDSASignature.from_bytes(packed)})


def sign_authorization(
    authorization: Authorization,
    domain: EIP712Domain,
    signer: SigningCapability,
) -> Authorization:
    """
    Sign ``authorization`` for ``domain`` and return a signed copy.

    The signature is recovered before returning; a capability holding a key
    other than ``from`` fails here instead of at the contract.

    Args:
        authorization: Unsigned (or re-signed) authorization.
        domain:        Token domain; must match the contract exactly.
        signer:        ``SigningCapability`` or a plain ``digest -> signature`` callable.

    Returns:
        Authorization: New instance with ``signature`` set.

    Raises:
        MalformedPayloadError: The authorization is structurally invalid.
        SigningError: The capability failed or signed with the wrong key.
    """
    authorization.validate_structure()
    digest = authorization_digest(authorization, domain)
    packed = sign_digest(digest, signer, kind=authorization.kind.value)
    return _attach(authorization, domain, digest, packed)


async def async_sign_authorization(
    authorization: Authorization,
    domain: EIP712Domain,
    signer: SigningCapability,
) -> Authorization:
    """Async variant of ``sign_authorization`` for remote capabilities."""
    authorization.validate_structure()
    digest = authorization_digest(authorization, domain)
    packed = await async_sign_digest(digest, signer, kind=authorization.kind.value)
    return _attach(authorization, domain, digest, packed)


# ---------------------------------------------------------------------------
# Recovery
# ---------------------------------------------------------------------------

def recover_signer(digest: bytes, signature: Union[RawSignature, EVMECDSASignature]) -> str:
    """
    Recover the checksummed address that signed ``digest``.

    Raises:
        MalformedSignatureError: Malformed signature or no recoverable key.
    """
    v, r, s = split_signature(signature)
    r_int = int.from_bytes(r, "big")
    s_int = int.from_bytes(s, "big")
    if not (0 < r_int < _SECP256K1_N and 0 < s_int < _SECP256K1_N):
        raise MalformedSignatureError("r or s outside the secp256k1 group order")
    try:
        public_key = keys.Signature(vrs=(v - 27, r_int, s_int)).recover_public_key_from_msg_hash(bytes(digest))
    except (BadSignature, EthKeysValidationError) as e:
        raise MalformedSignatureError(f"signature is not recoverable: {e}") from e
    return public_key.to_checksum_address()


def recover_authorization_signer(authorization: Authorization, domain: EIP712Domain) -> str:
    """
    Recover the signer of a signed authorization under ``domain``.

    Raises:
        MalformedSignatureError: The authorization is unsigned or its
            signature cannot be recovered.
    """
    if authorization.signature is None:
        raise MalformedSignatureError("authorization is not signed")
    signable = SignableMessage(
        version=b"\x01",
        header=domain_separator(domain),
        body=struct_hash(authorization.kind, authorization.to_message()),
    )
    v, r, s = split_signature(authorization.signature)
    try:
        return Account.recover_message(
            signable, vrs=(v, int.from_bytes(r, "big"), int.from_bytes(s, "big"))
        )
    except (BadSignature, EthKeysValidationError, ValueError) as e:
        raise MalformedSignatureError(f"signature is not recoverable: {e}") from e


# ---------------------------------------------------------------------------
# Typed data for external signers
# ---------------------------------------------------------------------------

def build_typed_data(domain: EIP712Domain, authorization: Authorization) -> Dict[str, Any]:
    """
    Standard EIP-712 typed-data dict for ``authorization``.

    Use this when signing is handled externally (hardware wallet, browser
    wallet, MPC service). Feed the returned signature to
    ``normalize_signature`` and attach it with ``model_copy``.

    Example::

        payload = build_typed_data(domain, authorization)
        # eth_account: Account.sign_typed_data(key, full_message=payload)
    """
    typed = AuthorizationTypedData(
        kind=AuthorizationKind(authorization.kind),
        domain=domain,
        message=authorization.to_message(),
    )
    return typed.to_dict()
