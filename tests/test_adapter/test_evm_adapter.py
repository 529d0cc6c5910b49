"""
EVM Authorization Adapter Tests

End-to-end flows through ``EVMAuthorizationAdapter`` with ``MockAsyncWeb3``
standing in for the RPC node and the chain clock as the time source.
"""

import time

import pytest
from eth_account import Account

from test_mocks import (
    MOCK_AUTHORIZER_ADDRESS,
    MOCK_AUTHORIZER_PRIVATE_KEY,
    MOCK_CHAIN_ID_SEPOLIA,
    MOCK_NONCE,
    MOCK_RECIPIENT_ADDRESS,
    MOCK_RELAYER_ADDRESS,
    MOCK_USDC_SEPOLIA,
    MockAsyncWeb3,
    create_domain,
    create_signed_authorization,
    create_unsigned_authorization,
)

from eip3009_auth.adapters.evm.FIAT_TOKEN_ABI import get_fiat_token_abi
from eip3009_auth.adapters.evm.adapter import EVMAuthorizationAdapter
from eip3009_auth.adapters.evm.builders import ClockSource
from eip3009_auth.adapters.evm.constants import AuthorizationSettings
from eip3009_auth.adapters.evm.encoding import from_json_dict, from_qr_payload, from_query_string
from eip3009_auth.adapters.evm.signatures import recover_authorization_signer
from eip3009_auth.adapters.evm.standards import AuthorizationKind
from eip3009_auth.engine.exceptions import (
    ConfigurationError,
    InvalidAddressError,
    InvalidAmountError,
    MalformedPayloadError,
    SigningError,
)
from eip3009_auth.schemas.bases import ValidationClassification


BLOCK_TIME = 1_700_000_000


def make_adapter(**kwargs) -> EVMAuthorizationAdapter:
    kwargs.setdefault("settings", AuthorizationSettings(clock_source=ClockSource.CHAIN))
    kwargs.setdefault("w3", MockAsyncWeb3(block_timestamp=BLOCK_TIME))
    kwargs.setdefault("private_key", MOCK_AUTHORIZER_PRIVATE_KEY)
    return EVMAuthorizationAdapter(**kwargs)


class TestConstruction:
    def test_defaults_to_registry_domain(self):
        adapter = make_adapter()
        assert adapter.domain == create_domain()
        assert adapter.decimals == 6
        assert adapter.get_signer_address() == MOCK_AUTHORIZER_ADDRESS

    def test_private_key_from_settings(self):
        settings = AuthorizationSettings(private_key=MOCK_AUTHORIZER_PRIVATE_KEY)
        adapter = EVMAuthorizationAdapter(settings=settings, w3=MockAsyncWeb3())
        assert adapter.get_signer_address() == MOCK_AUTHORIZER_ADDRESS

    def test_verify_only_without_key(self):
        adapter = EVMAuthorizationAdapter(w3=MockAsyncWeb3())
        assert adapter.get_signer_address() is None

    def test_unknown_network(self):
        with pytest.raises(ConfigurationError):
            EVMAuthorizationAdapter(settings=AuthorizationSettings(network="solana"))

    def test_invalid_key(self):
        with pytest.raises(SigningError):
            make_adapter(private_key="0xnotakey")


class TestCreate:
    @pytest.mark.asyncio
    async def test_transfer_authorization(self):
        adapter = make_adapter()
        auth = await adapter.create_transfer_authorization(MOCK_RECIPIENT_ADDRESS, "1.50")

        assert auth.kind is AuthorizationKind.TRANSFER
        assert auth.authorizer == MOCK_AUTHORIZER_ADDRESS
        assert auth.value == 1_500_000
        assert auth.validAfter == BLOCK_TIME - 60
        assert auth.validBefore == auth.validAfter + 86400
        assert recover_authorization_signer(auth, adapter.domain) == MOCK_AUTHORIZER_ADDRESS

    @pytest.mark.asyncio
    async def test_receive_authorization(self):
        adapter = make_adapter()
        auth = await adapter.create_receive_authorization(MOCK_RECIPIENT_ADDRESS.lower(), 2, valid_for=600)
        assert auth.kind is AuthorizationKind.RECEIVE
        assert auth.recipient == MOCK_RECIPIENT_ADDRESS
        assert auth.value == 2_000_000
        assert auth.validBefore - auth.validAfter == 600

    @pytest.mark.asyncio
    async def test_scheduled_transfer(self):
        adapter = make_adapter()
        auth = await adapter.create_scheduled_transfer(MOCK_RECIPIENT_ADDRESS, "5", start_delay=3600, valid_for=600)
        assert auth.validAfter == BLOCK_TIME - 60 + 3600
        assert auth.validBefore == auth.validAfter + 600

    @pytest.mark.asyncio
    async def test_explicit_nonce(self):
        auth = await make_adapter().create_transfer_authorization(MOCK_RECIPIENT_ADDRESS, "1", nonce=MOCK_NONCE)
        assert auth.nonce == MOCK_NONCE

    @pytest.mark.asyncio
    async def test_settings_control_window(self):
        settings = AuthorizationSettings(clock_source=ClockSource.CHAIN, backward_buffer=0, validity_seconds=120)
        auth = await make_adapter(settings=settings).create_transfer_authorization(MOCK_RECIPIENT_ADDRESS, "1")
        assert (auth.validAfter, auth.validBefore) == (BLOCK_TIME, BLOCK_TIME + 120)

    @pytest.mark.asyncio
    async def test_requires_signer(self):
        adapter = EVMAuthorizationAdapter(w3=MockAsyncWeb3())
        with pytest.raises(SigningError, match="no signer"):
            await adapter.create_transfer_authorization(MOCK_RECIPIENT_ADDRESS, "1")

    @pytest.mark.asyncio
    async def test_invalid_inputs(self):
        adapter = make_adapter()
        with pytest.raises(InvalidAmountError):
            await adapter.create_transfer_authorization(MOCK_RECIPIENT_ADDRESS, "0.0000001")
        with pytest.raises(InvalidAddressError):
            await adapter.create_transfer_authorization("0x1234", "1")

    @pytest.mark.asyncio
    async def test_external_signer_with_explicit_authorizer(self):
        account = Account.from_key(MOCK_AUTHORIZER_PRIVATE_KEY)
        adapter = make_adapter(
            private_key=None,
            signer=lambda digest: bytes(account.unsafe_sign_hash(digest).signature),
            authorizer=MOCK_AUTHORIZER_ADDRESS,
        )
        auth = await adapter.create_transfer_authorization(MOCK_RECIPIENT_ADDRESS, "1")
        assert auth.is_signed()


class TestChecks:
    @pytest.mark.asyncio
    async def test_created_authorization_passes_preflight(self):
        adapter = make_adapter()
        auth = await adapter.create_transfer_authorization(MOCK_RECIPIENT_ADDRESS, "1")
        report = await adapter.preflight(auth, submitter=MOCK_RELAYER_ADDRESS)
        assert report.is_success()

    @pytest.mark.asyncio
    async def test_receive_preflight_checks_submitter(self):
        adapter = make_adapter()
        auth = await adapter.create_receive_authorization(MOCK_RECIPIENT_ADDRESS, "1")
        assert (await adapter.preflight(auth, submitter=MOCK_RECIPIENT_ADDRESS)).is_success()
        report = await adapter.preflight(auth, submitter=MOCK_RELAYER_ADDRESS)
        assert report.status is ValidationClassification.UNAUTHORIZED_SUBMITTER

    @pytest.mark.asyncio
    async def test_scheduled_transfer_is_pending(self):
        adapter = make_adapter()
        auth = await adapter.create_scheduled_transfer(MOCK_RECIPIENT_ADDRESS, "1", start_delay=3600)
        report = await adapter.preflight(auth)
        assert report.status is ValidationClassification.PENDING

    @pytest.mark.asyncio
    async def test_preflight_flags_balance(self):
        adapter = make_adapter(w3=MockAsyncWeb3(block_timestamp=BLOCK_TIME, balance=0))
        auth = await adapter.create_transfer_authorization(MOCK_RECIPIENT_ADDRESS, "1")
        report = await adapter.preflight(auth)
        assert report.failed_checks() == ["balance_sufficient"]

    @pytest.mark.asyncio
    async def test_preflight_detects_wrong_domain_name(self):
        adapter = make_adapter(w3=MockAsyncWeb3(domain=create_domain(name="USD Coin"), block_timestamp=BLOCK_TIME))
        auth = await adapter.create_transfer_authorization(MOCK_RECIPIENT_ADDRESS, "1")
        report = await adapter.preflight(auth)
        assert report.domain_separator_matches is False
        assert not report.is_success()

    @pytest.mark.asyncio
    async def test_refresh_domain_fixes_name(self):
        adapter = make_adapter(w3=MockAsyncWeb3(domain=create_domain(name="USD Coin"), block_timestamp=BLOCK_TIME))
        domain = await adapter.refresh_domain()
        assert domain.name == "USD Coin"
        assert domain.verifyingContract == MOCK_USDC_SEPOLIA
        auth = await adapter.create_transfer_authorization(MOCK_RECIPIENT_ADDRESS, "1")
        assert (await adapter.preflight(auth)).is_success()

    def test_validate_uses_settings_tolerance(self):
        adapter = make_adapter(settings=AuthorizationSettings(clock_skew_tolerance=0))
        auth = create_signed_authorization()
        assert adapter.validate(auth, 990, False).status is ValidationClassification.PENDING
        assert make_adapter().validate(auth, 990, False).status is ValidationClassification.EXECUTABLE

    @pytest.mark.asyncio
    async def test_preflight_uses_block_time_without_tolerance(self):
        adapter = make_adapter()
        auth = create_signed_authorization(valid_after=BLOCK_TIME + 30, valid_before=BLOCK_TIME + 3600)
        assert adapter.validate(auth, BLOCK_TIME, False).within_tolerance
        report = await adapter.preflight(auth)
        assert report.status is ValidationClassification.PENDING
        assert report.details["seconds_until_valid"] == 30

    @pytest.mark.asyncio
    async def test_preflight_flags_wrong_chain(self):
        adapter = make_adapter(w3=MockAsyncWeb3(domain=create_domain(chain_id=1), block_timestamp=BLOCK_TIME))
        auth = await adapter.create_transfer_authorization(MOCK_RECIPIENT_ADDRESS, "1")
        report = await adapter.preflight(auth)
        assert report.chain_id_matches is False
        assert "chain_id_matches" in report.failed_checks()
        assert not report.is_success()

    @pytest.mark.asyncio
    async def test_local_clock_ignores_block_time(self):
        adapter = make_adapter(settings=AuthorizationSettings())
        before = int(time.time())
        assert before <= await adapter.current_time() <= int(time.time())


class TestTransport:
    def test_json_carries_routing(self):
        adapter = make_adapter()
        data = adapter.to_json_dict(create_signed_authorization())
        assert data["contractAddress"] == MOCK_USDC_SEPOLIA
        assert data["chainId"] == str(MOCK_CHAIN_ID_SEPOLIA)
        assert data["network"] == "sepolia"
        assert from_json_dict(data).chain_id == MOCK_CHAIN_ID_SEPOLIA

    def test_qr_and_claim_url(self):
        adapter = make_adapter()
        auth = create_signed_authorization()
        assert from_qr_payload(adapter.to_qr_payload(auth)).authorization == auth
        envelope = from_query_string(adapter.to_claim_url("https://pay.example/claim", auth))
        assert envelope.network == "sepolia"
        assert envelope.authorization == auth

    def test_submission_args(self):
        adapter = make_adapter()
        auth = create_signed_authorization()

        fn_name, args = adapter.submission_args(auth)
        assert fn_name == "transferWithAuthorization"
        assert args[:5] == [auth.authorizer, auth.recipient, auth.value, auth.validAfter, auth.validBefore]
        assert args[5] == bytes.fromhex(auth.nonce[2:])
        assert args[6] == auth.signature.to_bytes()

        fn_name, vrs_args = adapter.submission_args(auth, packed=False)
        assert vrs_args[:6] == args[:6]
        assert vrs_args[6] == auth.signature.v
        assert vrs_args[7] + vrs_args[8] == args[6][:64]

    def test_unsigned_cannot_be_submitted(self):
        with pytest.raises(MalformedPayloadError):
            make_adapter().submission_args(create_unsigned_authorization())


class TestFiatTokenAbi:
    def test_both_overloads_per_kind(self):
        abi = get_fiat_token_abi()
        for kind in AuthorizationKind:
            overloads = [e for e in abi if e["name"] == kind.value]
            assert sorted(len(e["inputs"]) for e in overloads) == [7, 9]

    def test_view_functions_present(self):
        names = {e["name"] for e in get_fiat_token_abi() if e.get("stateMutability") == "view"}
        assert {"balanceOf", "authorizationState"} <= names
