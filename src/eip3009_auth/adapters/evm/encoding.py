"""
Authorization Transport Codec

Moves signed authorizations between the signer and the submitter as JSON,
URL query strings, claim links or base64 QR payloads. All integers travel as
decimal strings so JavaScript consumers do not lose precision.

Wire keys: ``type, from, to, value, validAfter, validBefore, nonce,
signature`` plus optional routing keys ``contractAddress, chainId, network``.
"""

import base64
import binascii
import json
from typing import Any, Dict, Mapping, Optional
from urllib.parse import parse_qs, urlencode, urlsplit

from pydantic import ValidationError

from ...engine.exceptions import MalformedPayloadError, MalformedSignatureError
from ...utils import canonical_json
from .builders import normalize_nonce
from .schemas import Authorization, AuthorizationEnvelope, EVMECDSASignature
from .signatures import normalize_signature
from .standards import AuthorizationKind, normalize_address

REQUIRED_KEYS = ("type", "from", "to", "value", "validAfter", "validBefore", "nonce", "signature")


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def to_json_dict(
    authorization: Authorization,
    *,
    contract_address: Optional[str] = None,
    chain_id: Optional[int] = None,
    network: Optional[str] = None,
) -> Dict[str, str]:
    """
    Wire dict for a signed authorization.

    Raises:
        MalformedPayloadError: The authorization is unsigned or invalid.

    Example::

        to_json_dict(signed, contract_address=usdc, chain_id=84532)
        # {"type": "transferWithAuthorization", "from": "0x...", "value": "1000000", ...}
    """
    if authorization.signature is None:
        raise MalformedPayloadError("only signed authorizations can be transported")
    authorization.validate_structure()

    data = {
        "type": authorization.kind.value,
        "from": authorization.authorizer,
        "to": authorization.recipient,
        "value": str(authorization.value),
        "validAfter": str(authorization.validAfter),
        "validBefore": str(authorization.validBefore),
        "nonce": authorization.nonce,
        "signature": authorization.signature.to_packed_hex(),
    }
    if contract_address is not None:
        data["contractAddress"] = normalize_address(
            contract_address, field_name="contractAddress", error_cls=MalformedPayloadError
        )
    if chain_id is not None:
        if isinstance(chain_id, bool) or not isinstance(chain_id, int) or chain_id <= 0:
            raise MalformedPayloadError(f"chain_id must be a positive int, got {chain_id!r}")
        data["chainId"] = str(chain_id)
    if network is not None:
        data["network"] = network
    return data


def to_json(authorization: Authorization, **routing: Any) -> str:
    """Canonical JSON text (sorted keys, no whitespace)."""
    return canonical_json(to_json_dict(authorization, **routing))


def to_query_string(authorization: Authorization, **routing: Any) -> str:
    return urlencode(to_json_dict(authorization, **routing))


def to_claim_url(base_url: str, authorization: Authorization, **routing: Any) -> str:
    """
    Shareable link carrying the authorization in its query string.

    Example::

        to_claim_url("https://pay.example/claim", signed, network="base-sepolia")
        # 'https://pay.example/claim?type=transferWithAuthorization&from=0x...'
    """
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{to_query_string(authorization, **routing)}"


def to_qr_payload(authorization: Authorization, **routing: Any) -> str:
    """Base64 of the JSON form, compact enough for a QR code."""
    return base64.b64encode(to_json(authorization, **routing).encode("utf-8")).decode("ascii")


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def _decimal(data: Mapping[str, Any], key: str) -> int:
    value = data[key]
    if not isinstance(value, str) or not value.isascii() or not value.isdigit():
        raise MalformedPayloadError(f"{key} must be a decimal string, got {value!r}")
    return int(value)


def from_json_dict(data: Mapping[str, Any]) -> AuthorizationEnvelope:
    """
    Decode a wire dict into an ``AuthorizationEnvelope``.

    Unknown keys are ignored.

    Raises:
        MalformedPayloadError: Missing required key, unknown ``type``, wrong
            address/nonce/signature length, or non-decimal integer strings.
    """
    if not isinstance(data, Mapping):
        raise MalformedPayloadError(f"payload must be an object, got {type(data).__name__}")
    missing = [key for key in REQUIRED_KEYS if data.get(key) in (None, "")]
    if missing:
        raise MalformedPayloadError(f"payload is missing required fields: {', '.join(missing)}")

    try:
        kind = AuthorizationKind(data["type"])
    except ValueError as e:
        raise MalformedPayloadError(f"unknown authorization type: {data['type']!r}") from e

    try:
        packed = normalize_signature(data["signature"])
    except MalformedSignatureError as e:
        raise MalformedPayloadError(f"invalid signature: {e}") from e

    try:
        authorization = Authorization(
            kind=kind,
            authorizer=normalize_address(data["from"], field_name="from", error_cls=MalformedPayloadError),
            recipient=normalize_address(data["to"], field_name="to", error_cls=MalformedPayloadError),
            value=_decimal(data, "value"),
            validAfter=_decimal(data, "validAfter"),
            validBefore=_decimal(data, "validBefore"),
            nonce=normalize_nonce(data["nonce"]),
            signature=EVMECDSASignature.from_bytes(packed),
        )
    except ValidationError as e:
        raise MalformedPayloadError(f"invalid authorization payload: {e}") from e
    authorization.validate_structure()

    contract_address = data.get("contractAddress")
    if contract_address not in (None, ""):
        contract_address = normalize_address(
            contract_address, field_name="contractAddress", error_cls=MalformedPayloadError
        )
    else:
        contract_address = None

    chain_id = _decimal(data, "chainId") if data.get("chainId") not in (None, "") else None
    if chain_id == 0:
        raise MalformedPayloadError("chainId must be positive")

    return AuthorizationEnvelope(
        authorization=authorization,
        contract_address=contract_address,
        chain_id=chain_id,
        network=data.get("network") or None,
    )


def from_json(text: str) -> AuthorizationEnvelope:
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise MalformedPayloadError(f"payload is not valid JSON: {e}") from e
    return from_json_dict(data)


def from_query_string(query: str) -> AuthorizationEnvelope:
    """
    Decode a query string, or a full claim URL carrying one.

    Raises:
        MalformedPayloadError: A key is repeated, or any ``from_json_dict`` failure.
    """
    if "://" in query:
        query = urlsplit(query).query
    query = query.lstrip("?")
    try:
        parsed = parse_qs(query, keep_blank_values=True, strict_parsing=bool(query))
    except ValueError as e:
        raise MalformedPayloadError(f"malformed query string: {e}") from e

    repeated = [key for key, values in parsed.items() if len(values) != 1]
    if repeated:
        raise MalformedPayloadError(f"query keys repeated: {', '.join(repeated)}")
    return from_json_dict({key: values[0] for key, values in parsed.items()})


def from_qr_payload(payload: str) -> AuthorizationEnvelope:
    try:
        text = base64.b64decode(payload.strip(), validate=True).decode("utf-8")
    except (binascii.Error, ValueError, AttributeError) as e:
        raise MalformedPayloadError(f"QR payload is not valid base64 JSON: {e}") from e
    return from_json(text)
