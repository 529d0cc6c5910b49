"""
Read-only chain access for EIP-3009 tokens.

Implements the chain data source the validator needs with ``AsyncWeb3``
view calls: block time, nonce state, balance and the contract's EIP-712
domain. Nothing here signs or sends transactions.

Core functions:
    - create_async_web3: AsyncWeb3 over HTTP for an RPC URL
    - fetch_block_timestamp: Latest block time (the chain clock)
    - fetch_domain: Build the ``EIP712Domain`` from the contract itself
    - read_chain_snapshot: Collect a ``ChainSnapshot`` for one authorization
"""

from typing import Any, Awaitable, Callable, Optional, Union

from web3 import AsyncWeb3

from ...engine.exceptions import BlockchainInteractionError
from ...utils import logger, short_hex
from .builders import normalize_nonce
from .FIAT_TOKEN_ABI import get_fiat_token_abi
from .schemas import ChainSnapshot
from .standards import DEFAULT_DOMAIN_VERSION, EIP712Domain, build_domain, normalize_address


def create_async_web3(rpc_url: str, request_timeout: int = 60) -> AsyncWeb3:
    """
    Create an AsyncWeb3 instance for ``rpc_url``.

    Example:
        w3 = create_async_web3(settings.resolve_rpc_url())
    """
    return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
        rpc_url,
        request_kwargs={"timeout": request_timeout}
    ))


def _token_contract(w3: AsyncWeb3, token: str):
    address = normalize_address(token, field_name="token")
    return w3.eth.contract(address=address, abi=get_fiat_token_abi())


async def _call(method: str, make_call: Callable[[], Awaitable[Any]]) -> Any:
    try:
        return await make_call()
    except Exception as e:
        raise BlockchainInteractionError(f"{method} failed: {e}", rpc_method=method) from e


async def _call_optional(method: str, make_call: Callable[[], Awaitable[Any]]) -> Optional[Any]:
    """Like ``_call`` but returns ``None`` for getters some deployments lack."""
    try:
        return await make_call()
    except Exception as e:
        logger.debug("Optional call %s unavailable: %s", method, e)
        return None


def _hex32(value: Optional[Union[bytes, str]]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value if value.startswith("0x") else "0x" + value
    return "0x" + bytes(value).hex()


async def fetch_block_timestamp(w3: AsyncWeb3) -> int:
    """Timestamp of the latest block, the clock the contract checks against."""
    block = await _call("eth_getBlockByNumber", lambda: w3.eth.get_block("latest"))
    return int(block["timestamp"])


async def fetch_domain(w3: AsyncWeb3, token: str) -> EIP712Domain:
    """
    Build the token's EIP-712 domain from on-chain values.

    Reads ``name()``, ``version()`` (falling back to ``"2"`` when the
    contract does not expose it) and the chain id.

    Raises:
        BlockchainInteractionError: ``name()`` or ``eth_chainId`` failed.
    """
    contract = _token_contract(w3, token)
    name = await _call("name", lambda: contract.functions.name().call())
    version = await _call_optional("version", lambda: contract.functions.version().call())
    chain_id = await _call("eth_chainId", lambda: w3.eth.chain_id)

    if not isinstance(version, str) or not version.strip():
        version = DEFAULT_DOMAIN_VERSION

    return build_domain(name=name, version=version, chain_id=int(chain_id), verifying_contract=token)


async def read_chain_snapshot(
    w3: AsyncWeb3,
    token: str,
    authorizer: str,
    nonce: Union[str, bytes],
    *,
    include_domain: bool = True,
) -> ChainSnapshot:
    """
    Collect the chain facts ``verifies.preflight`` consumes.

    Args:
        w3:             AsyncWeb3 connected to the token's chain.
        token:          Token contract address.
        authorizer:     ``from`` of the authorization.
        nonce:          Authorization nonce.
        include_domain: Also read ``DOMAIN_SEPARATOR()``, ``name()``,
                        ``version()`` and the type hash getters.

    Returns:
        ChainSnapshot: Block time and nonce state always; balance and domain
        facts when available.

    Raises:
        BlockchainInteractionError: A required read (block, nonce state,
            balance, chain id) failed.
    """
    contract = _token_contract(w3, token)
    authorizer = normalize_address(authorizer, field_name="authorizer")
    nonce_bytes = bytes.fromhex(normalize_nonce(nonce)[2:])

    current_time = await fetch_block_timestamp(w3)
    nonce_used = await _call(
        "authorizationState", lambda: contract.functions.authorizationState(authorizer, nonce_bytes).call()
    )
    balance = await _call("balanceOf", lambda: contract.functions.balanceOf(authorizer).call())
    chain_id = await _call("eth_chainId", lambda: w3.eth.chain_id)

    facts = {}
    if include_domain:
        facts = {
            "domain_separator": _hex32(
                await _call("DOMAIN_SEPARATOR", lambda: contract.functions.DOMAIN_SEPARATOR().call())
            ),
            "token_name": await _call_optional("name", lambda: contract.functions.name().call()),
            "token_version": await _call_optional("version", lambda: contract.functions.version().call()),
            "transfer_typehash": _hex32(await _call_optional(
                "TRANSFER_WITH_AUTHORIZATION_TYPEHASH",
                lambda: contract.functions.TRANSFER_WITH_AUTHORIZATION_TYPEHASH().call(),
            )),
            "receive_typehash": _hex32(await _call_optional(
                "RECEIVE_WITH_AUTHORIZATION_TYPEHASH",
                lambda: contract.functions.RECEIVE_WITH_AUTHORIZATION_TYPEHASH().call(),
            )),
        }

    snapshot = ChainSnapshot(
        current_time=current_time,
        nonce_used=bool(nonce_used),
        balance=int(balance),
        chain_id=int(chain_id),
        **facts,
    )
    logger.debug(
        "Chain snapshot for %s nonce=%s: time=%d used=%s balance=%d",
        authorizer, short_hex(nonce_bytes), snapshot.current_time, snapshot.nonce_used, snapshot.balance,
    )
    return snapshot
