"""
EVM Authorization Schema Models

Pydantic models for EIP-3009 authorizations and the values that flow around
them. All classes inherit from the base schema hierarchy in
``schemas.bases``.

Signature classes:
    - EVMECDSASignature: v/r/s signature with packed ``r || s || v`` helpers.

Authorization classes:
    - Authorization: Frozen EIP-3009 payload, unsigned or signed.
    - AuthorizationEnvelope: Authorization plus optional routing data
      (contract, chain id, network) as carried on the wire.

Result / state classes:
    - ValidationResult: Outcome of ``verifies.validate``.
    - PreflightReport: ``ValidationResult`` plus signer, balance, domain and
      type-hash cross-checks.
    - ChainSnapshot: Plain chain facts supplied to the validator.
"""

from typing import Optional, Literal

from pydantic import Field

from ...engine.exceptions import MalformedPayloadError, MalformedSignatureError
from ...schemas.bases import (
    BaseSignature,
    BaseAuthorization,
    BaseValidationResult,
    CanonicalModel,
)
from .standards import AuthorizationKind, AuthorizationMessage, UINT256_MAX, normalize_address


def _strip_hex(value: str) -> str:
    return value[2:] if value[:2] in ("0x", "0X") else value


class EVMECDSASignature(BaseSignature):
    """
    EVM ECDSA signature (v, r, s) over an EIP-3009 digest.

    Attributes:
        signature_type: Always ``"EIP3009"``.
        v: ECDSA recovery ID (27 or 28).
        r: r component, 32 bytes as a 64-char hex string (0x prefix optional).
        s: s component, 32 bytes as a 64-char hex string (0x prefix optional).

    Example::

        sig = EVMECDSASignature(v=27, r="0x" + "a" * 64, s="0x" + "b" * 64)
        sig.to_packed_hex()   # '0xaaaa...bbbb1b'
    """

    signature_type: Literal["EIP3009"] = Field(default="EIP3009", description="Signing standard")
    v: int = Field(..., ge=27, le=28, description="ECDSA recovery ID (27 or 28)")
    r: str = Field(..., description="Signature r component (32 bytes, 64-char hex, 0x prefix optional)")
    s: str = Field(..., description="Signature s component (32 bytes, 64-char hex, 0x prefix optional)")

    def validate_format(self) -> bool:
        """
        Validate v/r/s components.

        Returns:
            True when all components pass.

        Raises:
            MalformedSignatureError: Descriptive message on the first failed check.
        """
        if self.v not in (27, 28):
            raise MalformedSignatureError(f"Invalid recovery ID: {self.v}. Must be 27 or 28")

        for name, val in [("r", self.r), ("s", self.s)]:
            hex_str = _strip_hex(val)
            if len(hex_str) != 64:
                raise MalformedSignatureError(f"Invalid {name}: expected 64 hex chars, got {len(hex_str)}")
            try:
                int(hex_str, 16)
            except ValueError:
                raise MalformedSignatureError(f"Invalid {name}: not valid hexadecimal")

        return True

    def to_bytes(self) -> bytes:
        """Packed 65-byte ``r || s || v``."""
        self.validate_format()
        return bytes.fromhex(_strip_hex(self.r)) + bytes.fromhex(_strip_hex(self.s)) + bytes([self.v])

    def to_packed_hex(self) -> str:
        """
        Encode v/r/s into a packed 65-byte hex string (``r || s || v``).

        This is the format FiatToken v2.2 accepts for its ``bytes signature``
        overloads.

        Returns:
            0x-prefixed 132-character hex string.
        """
        return "0x" + self.to_bytes().hex()

    @classmethod
    def from_bytes(cls, signature: bytes) -> "EVMECDSASignature":
        """Build from an already normalized 65-byte ``r || s || v`` value."""
        if len(signature) != 65:
            raise MalformedSignatureError(f"signature must be 65 bytes, got {len(signature)}")
        return cls(v=signature[64], r="0x" + signature[:32].hex(), s="0x" + signature[32:64].hex())


class Authorization(BaseAuthorization):
    """
    EIP-3009 authorization payload.

    ``authorizer`` and ``recipient`` map to ``from`` and ``to`` in the EIP-712
    type definition. Instances are immutable: ``signatures.sign_authorization``
    returns a copy with ``signature`` set.

    Attributes:
        kind: RECEIVE (only ``to`` may submit) or TRANSFER (anyone may submit).
        authorizer: Payer address (``from``).
        recipient: Payee address (``to``).
        value: Amount in the token's smallest unit.
        validAfter: Unix time after which the authorization may execute.
        validBefore: Unix time before which the authorization must execute.
        nonce: 0x-prefixed 32-byte hex nonce.
        signature: ``EVMECDSASignature`` or ``None`` before signing.

    Example::

        auth = build_authorization(
            kind=AuthorizationKind.TRANSFER,
            authorizer="0xf39F...2266",
            recipient="0x7099...79C8",
            value=to_base_units("1.5"),
        )
    """

    kind: AuthorizationKind = Field(..., description="Authorization type")
    authorizer: str = Field(..., description="Authorizer address (maps to `from` in EIP-3009)")
    recipient: str = Field(..., description="Recipient address (maps to `to` in EIP-3009)")
    value: int = Field(..., ge=0, le=UINT256_MAX, description="Amount authorized in smallest token units")
    validAfter: int = Field(..., ge=0, le=UINT256_MAX, description="Start timestamp for validity (unix)")
    validBefore: int = Field(..., ge=0, le=UINT256_MAX, description="Expiry timestamp for validity (unix)")
    nonce: str = Field(..., description="Unique nonce (bytes32 hex string)")
    signature: Optional[EVMECDSASignature] = Field(None, description="ECDSA signature over the EIP-712 digest")

    def validate_structure(self) -> bool:
        """
        Validate authorization fields and, when present, the signature.

        Returns:
            True when all checks pass.

        Raises:
            MalformedPayloadError: With a descriptive message on the first failed check.
        """
        for field_name, value in [("from", self.authorizer), ("to", self.recipient)]:
            normalize_address(value, field_name=field_name, error_cls=MalformedPayloadError)

        nonce_hex = _strip_hex(self.nonce)
        if len(nonce_hex) != 64:
            raise MalformedPayloadError(f"nonce must be 32 bytes, got {len(nonce_hex) // 2}")
        try:
            bytes.fromhex(nonce_hex)
        except ValueError:
            raise MalformedPayloadError("nonce is not valid hexadecimal")

        if self.value <= 0:
            raise MalformedPayloadError("value must be positive")
        if self.validBefore <= self.validAfter:
            raise MalformedPayloadError("validBefore must be greater than validAfter")

        if self.signature is not None:
            try:
                self.signature.validate_format()
            except MalformedSignatureError as e:
                raise MalformedPayloadError(f"Signature validation failed: {e}") from e

        return True

    @property
    def nonce_bytes(self) -> bytes:
        return bytes.fromhex(_strip_hex(self.nonce))

    def to_message(self) -> AuthorizationMessage:
        """EIP-712 message view of this authorization."""
        return AuthorizationMessage(
            authorizer=self.authorizer,
            recipient=self.recipient,
            value=self.value,
            validAfter=self.validAfter,
            validBefore=self.validBefore,
            nonce=self.nonce,
        )


class AuthorizationEnvelope(CanonicalModel):
    """
    Authorization as carried between the signer and the submitter.

    Routing fields are optional; the submitter needs them to pick the chain and
    contract but they are not part of the signed payload.
    """

    authorization: Authorization
    contract_address: Optional[str] = Field(None, description="Token contract address")
    chain_id: Optional[int] = Field(None, ge=1, description="EIP-155 chain id")
    network: Optional[str] = Field(None, description="Registry network name")


class ChainSnapshot(CanonicalModel):
    """
    Chain facts consumed by the validator.

    Only ``current_time`` and ``nonce_used`` are required; every optional fact
    enables one extra pre-flight check. Hashes are 0x-prefixed hex.
    """

    current_time: int = Field(..., ge=0, description="Latest block timestamp (or local time)")
    nonce_used: bool = Field(..., description="authorizationState(from, nonce)")
    balance: Optional[int] = Field(None, ge=0, description="balanceOf(from)")
    domain_separator: Optional[str] = Field(None, description="DOMAIN_SEPARATOR()")
    token_name: Optional[str] = Field(None, description="name()")
    token_version: Optional[str] = Field(None, description="version(), when the contract exposes it")
    chain_id: Optional[int] = Field(None, ge=1, description="eth_chainId")
    transfer_typehash: Optional[str] = Field(None, description="TRANSFER_WITH_AUTHORIZATION_TYPEHASH()")
    receive_typehash: Optional[str] = Field(None, description="RECEIVE_WITH_AUTHORIZATION_TYPEHASH()")


class ValidationResult(BaseValidationResult):
    """
    Authorization validation outcome.

    Attributes:
        kind: Authorization kind that was validated.
        nonce: Nonce of the validated authorization.
        checked_at: The clock value the classification was computed against.
        within_tolerance: EXECUTABLE only because of the clock-skew
            tolerance (``checked_at <= validAfter``). The contract requires
            ``block.timestamp > validAfter``, so a submission mined at
            ``checked_at`` would revert.
    """

    kind: Optional[AuthorizationKind] = Field(None, description="Authorization kind")
    nonce: Optional[str] = Field(None, description="Authorization nonce")
    checked_at: Optional[int] = Field(None, ge=0, description="Clock value used for classification")
    within_tolerance: bool = Field(False, description="Executable only within the clock-skew tolerance")


class PreflightReport(ValidationResult):
    """
    Full pre-submission report.

    Each check is ``None`` when the snapshot did not carry the fact it needs.
    The report is executable only when the state classification is
    ``EXECUTABLE`` and no known check failed.
    """

    signer_matches: Optional[bool] = Field(None, description="Recovered signer equals `from`")
    recovered_signer: Optional[str] = Field(None, description="Address recovered from the signature")
    balance_sufficient: Optional[bool] = Field(None, description="balanceOf(from) >= value")
    domain_separator_matches: Optional[bool] = Field(None, description="Local domain separator equals on-chain")
    typehash_matches: Optional[bool] = Field(None, description="Local type hash equals on-chain")
    chain_id_matches: Optional[bool] = Field(None, description="eth_chainId equals domain chainId")
    name_matches: Optional[bool] = Field(None, description="name() equals domain name")
    version_matches: Optional[bool] = Field(None, description="version() equals domain version")

    def failed_checks(self) -> list:
        return [
            name
            for name in (
                "signer_matches",
                "balance_sufficient",
                "domain_separator_matches",
                "typehash_matches",
                "chain_id_matches",
                "name_matches",
                "version_matches",
            )
            if getattr(self, name) is False
        ]
