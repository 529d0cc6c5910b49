"""
Transport Codec Tests

Covers the JSON, query-string, claim-URL and QR forms of a signed
authorization and the rejection of malformed payloads.
"""

import base64
import json

import pytest

from test_mocks import (
    MOCK_CHAIN_ID_SEPOLIA,
    MOCK_USDC_SEPOLIA,
    create_signed_authorization,
    create_unsigned_authorization,
)

from eip3009_auth.adapters.evm.encoding import (
    from_json,
    from_json_dict,
    from_qr_payload,
    from_query_string,
    to_claim_url,
    to_json,
    to_json_dict,
    to_qr_payload,
    to_query_string,
)
from eip3009_auth.adapters.evm.standards import AuthorizationKind
from eip3009_auth.engine.exceptions import MalformedPayloadError


ROUTING = {"contract_address": MOCK_USDC_SEPOLIA, "chain_id": MOCK_CHAIN_ID_SEPOLIA, "network": "sepolia"}


@pytest.fixture
def signed():
    return create_signed_authorization(kind=AuthorizationKind.RECEIVE)


@pytest.fixture
def wire(signed):
    return to_json_dict(signed)


class TestEncode:
    def test_integers_are_decimal_strings(self, signed, wire):
        assert wire["type"] == "receiveWithAuthorization"
        assert wire["value"] == str(signed.value)
        assert wire["validAfter"] == "1000"
        assert wire["validBefore"] == "2000"
        assert all(isinstance(value, str) for value in wire.values())

    def test_signature_is_packed_hex(self, signed, wire):
        assert wire["signature"] == "0x" + signed.signature.to_bytes().hex()
        assert len(wire["signature"]) == 2 + 130

    def test_routing_keys(self, signed):
        data = to_json_dict(signed, **ROUTING)
        assert data["contractAddress"] == MOCK_USDC_SEPOLIA
        assert data["chainId"] == str(MOCK_CHAIN_ID_SEPOLIA)
        assert data["network"] == "sepolia"

    def test_routing_keys_absent_by_default(self, wire):
        assert not {"contractAddress", "chainId", "network"} & set(wire)

    def test_json_is_canonical(self, signed):
        text = to_json(signed)
        assert " " not in text
        assert list(json.loads(text)) == sorted(json.loads(text))

    def test_unsigned_cannot_be_encoded(self):
        with pytest.raises(MalformedPayloadError):
            to_json_dict(create_unsigned_authorization())

    @pytest.mark.parametrize("chain_id", [0, -1, "1", True])
    def test_bad_chain_id(self, signed, chain_id):
        with pytest.raises(MalformedPayloadError):
            to_json_dict(signed, chain_id=chain_id)


class TestRoundTrip:
    def test_json(self, signed):
        envelope = from_json(to_json(signed, **ROUTING))
        assert envelope.authorization == signed
        assert envelope.contract_address == MOCK_USDC_SEPOLIA
        assert envelope.chain_id == MOCK_CHAIN_ID_SEPOLIA
        assert envelope.network == "sepolia"

    def test_query_string(self, signed):
        envelope = from_query_string(to_query_string(signed))
        assert envelope.authorization == signed
        assert envelope.chain_id is None

    def test_claim_url(self, signed):
        url = to_claim_url("https://pay.example/claim", signed, **ROUTING)
        assert url.startswith("https://pay.example/claim?type=receiveWithAuthorization")
        assert from_query_string(url).authorization == signed

    def test_claim_url_with_existing_query(self, signed):
        url = to_claim_url("https://pay.example/claim?ref=abc", signed)
        assert "?ref=abc&type=" in url
        assert from_query_string(url).authorization == signed

    def test_qr_payload(self, signed):
        payload = to_qr_payload(signed, **ROUTING)
        assert json.loads(base64.b64decode(payload))["nonce"] == signed.nonce
        assert from_qr_payload(payload).authorization == signed

    def test_unknown_keys_ignored(self, wire, signed):
        assert from_json_dict({**wire, "memo": "coffee"}).authorization == signed

    def test_lowercase_addresses_are_checksummed(self, wire, signed):
        data = {**wire, "from": wire["from"].lower(), "to": wire["to"].lower()}
        assert from_json_dict(data).authorization == signed


class TestDecodeRejects:
    @pytest.mark.parametrize("key", ["type", "from", "to", "value", "validAfter", "validBefore", "nonce", "signature"])
    def test_missing_key(self, wire, key):
        data = dict(wire)
        del data[key]
        with pytest.raises(MalformedPayloadError, match=key):
            from_json_dict(data)

    def test_unknown_type(self, wire):
        with pytest.raises(MalformedPayloadError, match="unknown authorization type"):
            from_json_dict({**wire, "type": "approveWithAuthorization"})

    @pytest.mark.parametrize("value", [1000000, "1e6", "-1", "0x10", "1.5", " 1"])
    def test_non_decimal_value(self, wire, value):
        with pytest.raises(MalformedPayloadError):
            from_json_dict({**wire, "value": value})

    def test_zero_value(self, wire):
        with pytest.raises(MalformedPayloadError):
            from_json_dict({**wire, "value": "0"})

    def test_value_over_uint256(self, wire):
        with pytest.raises(MalformedPayloadError):
            from_json_dict({**wire, "value": str(2**256)})

    def test_inverted_window(self, wire):
        with pytest.raises(MalformedPayloadError):
            from_json_dict({**wire, "validAfter": "3000"})

    @pytest.mark.parametrize("field, value", [("from", "0x1234"), ("to", "bob"), ("nonce", "0x" + "11" * 31)])
    def test_bad_field_lengths(self, wire, field, value):
        with pytest.raises(MalformedPayloadError):
            from_json_dict({**wire, field: value})

    @pytest.mark.parametrize("signature", ["0x" + "11" * 64, "0x" + "11" * 64 + "05", "not-hex"])
    def test_bad_signature(self, wire, signature):
        with pytest.raises(MalformedPayloadError, match="signature"):
            from_json_dict({**wire, "signature": signature})

    def test_bad_routing(self, wire):
        with pytest.raises(MalformedPayloadError):
            from_json_dict({**wire, "contractAddress": "0x1234"})
        with pytest.raises(MalformedPayloadError):
            from_json_dict({**wire, "chainId": "0"})

    def test_not_an_object(self):
        with pytest.raises(MalformedPayloadError):
            from_json("[1, 2, 3]")

    def test_invalid_json(self):
        with pytest.raises(MalformedPayloadError):
            from_json("{not json")

    def test_repeated_query_key(self, signed):
        query = to_query_string(signed) + "&value=1"
        with pytest.raises(MalformedPayloadError, match="repeated"):
            from_query_string(query)

    def test_invalid_base64(self):
        with pytest.raises(MalformedPayloadError):
            from_qr_payload("###")

    def test_errors_are_value_errors(self, wire):
        with pytest.raises(ValueError):
            from_json_dict({**wire, "type": "nope"})
