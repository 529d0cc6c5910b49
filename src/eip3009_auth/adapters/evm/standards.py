from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Type

from eth_utils import is_address, to_checksum_address

from ...engine.exceptions import InvalidAddressError, InvalidDomainError


# -----------------------------
# Authorization kinds and EIP-712 type strings
# -----------------------------

class AuthorizationKind(str, Enum):
    """
    The two EIP-3009 operations.

    The values are the token contract's function names and double as the
    ``type`` field of the transport payload.

    Attributes:
        RECEIVE: Only ``to`` may submit (pull payment).
        TRANSFER: Anyone holding the signature may submit (gas station pattern).
    """
    RECEIVE = "receiveWithAuthorization"
    TRANSFER = "transferWithAuthorization"

    @property
    def primary_type(self) -> str:
        """EIP-712 primary type name, e.g. ``"TransferWithAuthorization"``."""
        return self.value[0].upper() + self.value[1:]

    @property
    def type_string(self) -> str:
        """Exact EIP-712 type signature hashed into the type hash."""
        return f"{self.primary_type}({AUTHORIZATION_FIELDS_SIGNATURE})"

    @property
    def restricts_submitter(self) -> bool:
        return self is AuthorizationKind.RECEIVE


#: Field list shared by both authorization types. Order and spelling are
#: part of the type hash; do not reformat.
AUTHORIZATION_FIELDS_SIGNATURE = (
    "address from,address to,uint256 value,"
    "uint256 validAfter,uint256 validBefore,bytes32 nonce"
)

EIP712_DOMAIN_TYPE_STRING = (
    "EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)

EIP712_DOMAIN_FIELDS: List[Dict[str, str]] = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

AUTHORIZATION_FIELDS: List[Dict[str, str]] = [
    {"name": "from", "type": "address"},
    {"name": "to", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "validAfter", "type": "uint256"},
    {"name": "validBefore", "type": "uint256"},
    {"name": "nonce", "type": "bytes32"},
]

#: Published type hashes of the FiatToken v2 contracts.
TRANSFER_WITH_AUTHORIZATION_TYPEHASH = bytes.fromhex(
    "7c7c6cdb67a18743f49ec6fa9b35f50d52ed05cbed4cc592e13b44501c1a2267"
)
RECEIVE_WITH_AUTHORIZATION_TYPEHASH = bytes.fromhex(
    "d099cc98ef71107a616c4f0f941f04c322d8e254fe26b3c6668db87aae413de8"
)

#: Domain version used by FiatToken v2 deployments.
DEFAULT_DOMAIN_VERSION = "2"

#: Seconds of early submission tolerated at the validAfter edge.
DEFAULT_CLOCK_SKEW_TOLERANCE = 60
#: Seconds subtracted from "now" when validAfter is defaulted.
DEFAULT_BACKWARD_BUFFER = 60
DEFAULT_VALIDITY_SECONDS = 86400

UINT256_MAX = 2**256 - 1


def normalize_address(
    address: Any,
    *,
    field_name: str = "address",
    error_cls: Type[Exception] = InvalidAddressError,
) -> str:
    """
    Validate an EVM address and return its EIP-55 checksum form.

    Accepts all-lowercase, all-uppercase or correctly checksummed 0x-prefixed
    hex. A mixed-case string with a wrong checksum is rejected.

    Raises:
        error_cls: ``InvalidAddressError`` unless overridden.
    """
    if not isinstance(address, str) or not address.startswith(("0x", "0X")) or not is_address(address):
        raise error_cls(f"{field_name} is not a valid EVM address: {address!r}")
    return to_checksum_address(address)


# -----------------------------
# EIP-712 Domain
# -----------------------------

@dataclass(frozen=True)
class EIP712Domain:
    """
    EIP-712 domain separator inputs.

    Must match the values the token contract uses for its own
    ``DOMAIN_SEPARATOR``; any mismatch makes every signature unverifiable.
    """
    name: str
    version: str
    chainId: int
    verifyingContract: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chainId,
            "verifyingContract": self.verifyingContract,
        }


def build_domain(
    name: str,
    version: str,
    chain_id: int,
    verifying_contract: str,
) -> EIP712Domain:
    """
    Assemble an ``EIP712Domain`` after shape checks.

    Args:
        name:               Token ``name()`` exactly as the contract returns it
                            (e.g. ``"USD Coin"``).
        version:            Domain version string (``"2"`` for FiatToken v2).
        chain_id:           EVM network ID; must be a positive integer.
        verifying_contract: Token contract address.

    Returns:
        ``EIP712Domain`` with the contract address in checksum form.

    Raises:
        InvalidDomainError: If any field fails validation.
    """
    if not isinstance(name, str) or not name.strip():
        raise InvalidDomainError("domain name must be a non-empty string")
    if not isinstance(version, str) or not version.strip():
        raise InvalidDomainError("domain version must be a non-empty string")
    if isinstance(chain_id, bool) or not isinstance(chain_id, int) or not 0 < chain_id <= UINT256_MAX:
        raise InvalidDomainError(f"chain_id must be a positive integer, got {chain_id!r}")

    contract = normalize_address(
        verifying_contract,
        field_name="verifyingContract",
        error_cls=InvalidDomainError,
    )
    return EIP712Domain(
        name=name,
        version=version,
        chainId=chain_id,
        verifyingContract=contract,
    )


# -----------------------------
# EIP-3009: typed data envelope
# -----------------------------

@dataclass
class AuthorizationMessage:
    """
    Message payload shared by ``TransferWithAuthorization`` and
    ``ReceiveWithAuthorization``.

    The EIP names the first field ``from``, a Python reserved word; this class
    uses ``authorizer`` and maps it to ``from`` in ``to_dict()``.

    Attributes:
        authorizer: Address of the account authorizing the transfer (maps to `from`).
        recipient: Address receiving the tokens (maps to `to`).
        value: Amount of tokens to transfer (uint256).
        validAfter: Unix timestamp after which the authorization becomes valid.
        validBefore: Unix timestamp before which the authorization expires.
        nonce: A unique nonce (bytes32 hex string) preventing replay.
    """
    authorizer: str
    recipient: str
    value: int
    validAfter: int
    validBefore: int
    nonce: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.authorizer,
            "to": self.recipient,
            "value": self.value,
            "validAfter": self.validAfter,
            "validBefore": self.validBefore,
            "nonce": self.nonce,
        }


@dataclass
class AuthorizationTypedData:
    """
    Container for EIP-3009 typed data usable with EIP-712 signing routines.

    ``to_dict()`` produces ``{types, primaryType, domain, message}``, the
    layout consumed by ``eth_account`` and ``eth_signTypedData_v4``. Hand
    this to external signers (hardware wallets, browser wallets) that only
    accept structured data.

    Attributes:
        kind: Which authorization type the message is for.
        domain: EIP712Domain instance describing the signing domain.
        message: AuthorizationMessage instance carrying the payload.
    """
    kind: AuthorizationKind
    domain: EIP712Domain
    message: AuthorizationMessage

    types: Dict[str, List[Dict[str, str]]] = field(default_factory=dict)

    def __post_init__(self):
        if not self.types:
            self.types = {
                "EIP712Domain": list(EIP712_DOMAIN_FIELDS),
                self.kind.primary_type: list(AUTHORIZATION_FIELDS),
            }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": self.types,
            "primaryType": self.kind.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }
