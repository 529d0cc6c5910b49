"""
Chain Reader Tests

Runs the AsyncWeb3 readers against ``MockAsyncWeb3``; no RPC endpoint is
contacted.
"""

import pytest

from test_mocks import (
    MOCK_AMOUNT_50_USDC,
    MOCK_AUTHORIZER_ADDRESS,
    MOCK_NONCE,
    MOCK_OTHER_NONCE,
    MOCK_USDC_SEPOLIA,
    MockAsyncWeb3,
    create_domain,
    create_signed_authorization,
)

from eip3009_auth.adapters.evm.chains import (
    create_async_web3,
    fetch_block_timestamp,
    fetch_domain,
    read_chain_snapshot,
)
from eip3009_auth.adapters.evm.digests import domain_separator
from eip3009_auth.adapters.evm.standards import TRANSFER_WITH_AUTHORIZATION_TYPEHASH
from eip3009_auth.adapters.evm.verifies import preflight
from eip3009_auth.engine.exceptions import BlockchainInteractionError, MalformedPayloadError
from eip3009_auth.schemas.bases import ValidationClassification


class TestCreateAsyncWeb3:
    def test_http_provider(self):
        w3 = create_async_web3("http://localhost:8545", request_timeout=5)
        assert w3.provider.endpoint_uri == "http://localhost:8545"


class TestFetchDomain:
    @pytest.mark.asyncio
    async def test_domain_from_contract(self):
        w3 = MockAsyncWeb3(domain=create_domain(name="USD Coin"))
        domain = await fetch_domain(w3, MOCK_USDC_SEPOLIA.lower())
        assert domain == create_domain(name="USD Coin")
        assert w3.token.address == MOCK_USDC_SEPOLIA

    @pytest.mark.asyncio
    async def test_version_falls_back_to_default(self):
        w3 = MockAsyncWeb3(with_version=False)
        domain = await fetch_domain(w3, MOCK_USDC_SEPOLIA)
        assert domain.version == "2"

    @pytest.mark.asyncio
    async def test_name_failure_raises(self):
        w3 = MockAsyncWeb3(errors={"name": ConnectionError("connection refused")})
        with pytest.raises(BlockchainInteractionError) as exc_info:
            await fetch_domain(w3, MOCK_USDC_SEPOLIA)
        assert exc_info.value.rpc_method == "name"
        assert isinstance(exc_info.value.__cause__, ConnectionError)


class TestFetchBlockTimestamp:
    @pytest.mark.asyncio
    async def test_latest_block_time(self):
        assert await fetch_block_timestamp(MockAsyncWeb3(block_timestamp=1_700_000_000)) == 1_700_000_000

    @pytest.mark.asyncio
    async def test_failure_raises(self):
        w3 = MockAsyncWeb3(block_error=TimeoutError("timed out"))
        with pytest.raises(BlockchainInteractionError) as exc_info:
            await fetch_block_timestamp(w3)
        assert exc_info.value.rpc_method == "eth_getBlockByNumber"


class TestReadChainSnapshot:
    @pytest.mark.asyncio
    async def test_full_snapshot(self):
        domain = create_domain()
        w3 = MockAsyncWeb3(domain=domain, block_timestamp=1500)
        snapshot = await read_chain_snapshot(w3, MOCK_USDC_SEPOLIA, MOCK_AUTHORIZER_ADDRESS, MOCK_NONCE)

        assert snapshot.current_time == 1500
        assert snapshot.nonce_used is False
        assert snapshot.balance == MOCK_AMOUNT_50_USDC
        assert snapshot.chain_id == domain.chainId
        assert snapshot.domain_separator == "0x" + domain_separator(domain).hex()
        assert snapshot.token_name == domain.name
        assert snapshot.token_version == "2"
        assert snapshot.transfer_typehash == "0x" + TRANSFER_WITH_AUTHORIZATION_TYPEHASH.hex()

    @pytest.mark.asyncio
    async def test_nonce_state_passed_as_bytes32(self):
        w3 = MockAsyncWeb3(used_nonces={MOCK_NONCE})
        assert (await read_chain_snapshot(w3, MOCK_USDC_SEPOLIA, MOCK_AUTHORIZER_ADDRESS, MOCK_NONCE)).nonce_used
        assert not (await read_chain_snapshot(w3, MOCK_USDC_SEPOLIA, MOCK_AUTHORIZER_ADDRESS, MOCK_OTHER_NONCE)).nonce_used
        name, args = next(call for call in w3.token.calls if call[0] == "authorizationState")
        assert args == (MOCK_AUTHORIZER_ADDRESS, bytes.fromhex(MOCK_NONCE[2:]))

    @pytest.mark.asyncio
    async def test_without_domain_facts(self):
        w3 = MockAsyncWeb3()
        snapshot = await read_chain_snapshot(
            w3, MOCK_USDC_SEPOLIA, MOCK_AUTHORIZER_ADDRESS, MOCK_NONCE, include_domain=False
        )
        assert snapshot.domain_separator is None
        assert snapshot.token_name is None
        assert "DOMAIN_SEPARATOR" not in {name for name, _ in w3.token.calls}

    @pytest.mark.asyncio
    async def test_optional_getters_may_be_missing(self):
        w3 = MockAsyncWeb3(with_version=False, errors={
            "TRANSFER_WITH_AUTHORIZATION_TYPEHASH": ValueError("no such function"),
        })
        snapshot = await read_chain_snapshot(w3, MOCK_USDC_SEPOLIA, MOCK_AUTHORIZER_ADDRESS, MOCK_NONCE)
        assert snapshot.token_version is None
        assert snapshot.transfer_typehash is None
        assert snapshot.receive_typehash is not None

    @pytest.mark.parametrize("method", ["authorizationState", "balanceOf", "DOMAIN_SEPARATOR"])
    @pytest.mark.asyncio
    async def test_required_read_failure(self, method):
        w3 = MockAsyncWeb3(errors={method: ConnectionError("node unavailable")})
        with pytest.raises(BlockchainInteractionError) as exc_info:
            await read_chain_snapshot(w3, MOCK_USDC_SEPOLIA, MOCK_AUTHORIZER_ADDRESS, MOCK_NONCE)
        assert exc_info.value.rpc_method == method

    @pytest.mark.asyncio
    async def test_malformed_nonce(self):
        with pytest.raises(MalformedPayloadError):
            await read_chain_snapshot(MockAsyncWeb3(), MOCK_USDC_SEPOLIA, MOCK_AUTHORIZER_ADDRESS, "0x1234")

    @pytest.mark.asyncio
    async def test_snapshot_feeds_preflight(self):
        domain = create_domain()
        auth = create_signed_authorization(domain=domain)
        w3 = MockAsyncWeb3(domain=domain, block_timestamp=1500)
        snapshot = await read_chain_snapshot(w3, MOCK_USDC_SEPOLIA, auth.authorizer, auth.nonce)

        report = preflight(auth, domain, snapshot)
        assert report.status is ValidationClassification.EXECUTABLE
        assert report.is_success()
