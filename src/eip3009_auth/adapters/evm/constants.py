"""
EVM Network Registry and Settings

Provides the built-in table of FiatToken (USDC) deployments that support
EIP-3009, lookups by network name or CAIP-2 identifier, and the
``AuthorizationSettings`` value loaded from ``EIP3009_*`` environment
variables.

Nothing is read at import time: call ``load_settings()`` explicitly and pass
the result where it is needed.
"""

import os
from typing import Dict, Optional, Mapping, Any, Union

from dotenv import dotenv_values
from pydantic import BaseModel, Field, SecretStr, ValidationError

from ...engine.exceptions import ConfigurationError
from ...utils import logger
from .standards import (
    DEFAULT_DOMAIN_VERSION,
    DEFAULT_CLOCK_SKEW_TOLERANCE,
    DEFAULT_BACKWARD_BUFFER,
    DEFAULT_VALIDITY_SECONDS,
    EIP712Domain,
    build_domain,
)
from .builders import ClockSource


class EvmTokenConfig(BaseModel):
    """Token deployment configuration."""
    symbol: str = Field(default="USDC", description="Ticker symbol")
    address: str = Field(..., description="Token contract address")
    name: str = Field(..., description="EIP-712 domain name hint; confirm against name() on-chain")
    decimals: int = Field(default=6, description="Token decimals")
    version: str = Field(default=DEFAULT_DOMAIN_VERSION, description="EIP-712 domain version")


class EvmNetworkConfig(BaseModel):
    """EVM network configuration."""
    network: str = Field(..., description="Short network name, e.g. 'base-sepolia'")
    display_name: str = Field(..., description="Human-readable network name")
    chain_id: int = Field(..., ge=1, description="EIP-155 chain id")
    public_rpc_url: str = Field(..., description="Public RPC endpoint (no key required)")
    explorer_url: str = Field(..., description="Block explorer URL")
    is_testnet: bool = Field(default=False)
    token: EvmTokenConfig

    @property
    def caip2(self) -> str:
        return f"eip155:{self.chain_id}"


# Name hints: mainnet FiatToken proxies report "USD Coin", Circle's testnet
# deployments report "USDC".
_EVM_NETWORKS_DATA: Dict[str, Dict[str, Any]] = {
    "mainnet": {
        "display_name": "Ethereum Mainnet",
        "chain_id": 1,
        "public_rpc_url": "https://ethereum-rpc.publicnode.com",
        "explorer_url": "https://etherscan.io",
        "token": {
            "address": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
            "name": "USD Coin",
        },
    },
    "sepolia": {
        "display_name": "Sepolia Testnet",
        "chain_id": 11155111,
        "public_rpc_url": "https://ethereum-sepolia-rpc.publicnode.com",
        "explorer_url": "https://sepolia.etherscan.io",
        "is_testnet": True,
        "token": {
            "address": "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
            "name": "USDC",
        },
    },
    "polygon": {
        "display_name": "Polygon Mainnet",
        "chain_id": 137,
        "public_rpc_url": "https://polygon-rpc.com",
        "explorer_url": "https://polygonscan.com",
        "token": {
            "address": "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
            "name": "USD Coin",
        },
    },
    "base": {
        "display_name": "Base Mainnet",
        "chain_id": 8453,
        "public_rpc_url": "https://mainnet.base.org",
        "explorer_url": "https://basescan.org",
        "token": {
            "address": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
            "name": "USD Coin",
        },
    },
    "base-sepolia": {
        "display_name": "Base Sepolia Testnet",
        "chain_id": 84532,
        "public_rpc_url": "https://sepolia.base.org",
        "explorer_url": "https://sepolia.basescan.org",
        "is_testnet": True,
        "token": {
            "address": "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
            "name": "USDC",
        },
    },
    "arbitrum": {
        "display_name": "Arbitrum One",
        "chain_id": 42161,
        "public_rpc_url": "https://arb1.arbitrum.io/rpc",
        "explorer_url": "https://arbiscan.io",
        "token": {
            "address": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
            "name": "USD Coin",
        },
    },
}

EVM_NETWORKS: Dict[str, EvmNetworkConfig] = {
    name: EvmNetworkConfig(network=name, **data)
    for name, data in _EVM_NETWORKS_DATA.items()
}


def _parse_caip2_eip155_chain_id(caip2: str) -> Optional[int]:
    """Return the chain id of an ``eip155:<id>`` string, or ``None`` if it is not one."""
    parts = caip2.strip().split(":")
    if len(parts) != 2 or parts[0] != "eip155" or not parts[1].isdigit():
        return None
    return int(parts[1])


def get_network_config(network: Union[str, int]) -> EvmNetworkConfig:
    """
    Look up a network by short name, CAIP-2 id (``"eip155:8453"``) or chain id.

    Args:
        network: Network name (case-insensitive), CAIP-2 identifier or integer chain id.

    Returns:
        EvmNetworkConfig: The registry entry.

    Raises:
        ConfigurationError: If the network is not in the registry.
    """
    if isinstance(network, int) and not isinstance(network, bool):
        chain_id: Optional[int] = network
    elif isinstance(network, str):
        key = network.strip().lower()
        if key in EVM_NETWORKS:
            return EVM_NETWORKS[key]
        chain_id = _parse_caip2_eip155_chain_id(key)
    else:
        chain_id = None

    if chain_id is not None:
        for config in EVM_NETWORKS.values():
            if config.chain_id == chain_id:
                return config

    raise ConfigurationError(
        f"Unknown network {network!r}. Supported: {', '.join(sorted(EVM_NETWORKS))}"
    )


def build_domain_for_network(network: Union[str, int], name: Optional[str] = None) -> EIP712Domain:
    """
    Build the EIP-712 domain for a registry network's USDC deployment.

    Args:
        network: Anything ``get_network_config`` accepts.
        name:    Override for the domain name, normally the value read from the
                 contract's ``name()``. Defaults to the registry hint.

    Returns:
        EIP712Domain: Domain with the registry's chain id, address and version.
    """
    config = get_network_config(network)
    return build_domain(
        name=name or config.token.name,
        version=config.token.version,
        chain_id=config.chain_id,
        verifying_contract=config.token.address,
    )


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

#: Prefix shared by every environment variable ``load_settings`` reads.
ENV_PREFIX = "EIP3009_"


class AuthorizationSettings(BaseModel):
    """
    Runtime settings for building and validating authorizations.

    Attributes:
        network: Registry network name used when no explicit domain is given.
        rpc_url: Optional JSON-RPC endpoint for the chain reader.
        private_key: Optional signing key; hidden from repr and logs.
        clock_skew_tolerance: Seconds of early submission tolerated at ``validAfter``.
        backward_buffer: Seconds subtracted from "now" when ``validAfter`` is defaulted.
        validity_seconds: Default window length.
        clock_source: Where "now" comes from when building windows.
    """
    network: str = Field(default="sepolia", description="Registry network name")
    rpc_url: Optional[str] = Field(default=None, description="JSON-RPC endpoint URL")
    private_key: Optional[SecretStr] = Field(default=None, description="Hex private key of the authorizer")
    clock_skew_tolerance: int = Field(default=DEFAULT_CLOCK_SKEW_TOLERANCE, ge=0)
    backward_buffer: int = Field(default=DEFAULT_BACKWARD_BUFFER, ge=0)
    validity_seconds: int = Field(default=DEFAULT_VALIDITY_SECONDS, gt=0)
    clock_source: ClockSource = Field(default=ClockSource.LOCAL)

    @property
    def network_config(self) -> EvmNetworkConfig:
        return get_network_config(self.network)

    def resolve_rpc_url(self) -> str:
        """Configured RPC URL, falling back to the network's public endpoint."""
        return self.rpc_url or self.network_config.public_rpc_url


def load_settings(
    env_file: Optional[Union[str, os.PathLike]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AuthorizationSettings:
    """
    Load ``AuthorizationSettings`` from ``EIP3009_*`` variables.

    Values from ``env_file`` (parsed with ``dotenv_values``, so the process
    environment is never modified) are overlaid by ``environ``, which defaults
    to ``os.environ``.

    Recognised variables: ``EIP3009_NETWORK``, ``EIP3009_RPC_URL``,
    ``EIP3009_PRIVATE_KEY``,
    ``EIP3009_CLOCK_SKEW_TOLERANCE``, ``EIP3009_BACKWARD_BUFFER``,
    ``EIP3009_VALIDITY_SECONDS``, ``EIP3009_CLOCK_SOURCE``.

    Raises:
        ConfigurationError: If a value fails validation or the network is unknown.

    Example:
        settings = load_settings(".env")
        domain = build_domain_for_network(settings.network)
    """
    merged: Dict[str, Optional[str]] = {}
    if env_file is not None:
        if not os.path.isfile(env_file):
            raise ConfigurationError(f"env file not found: {env_file}")
        merged.update(dotenv_values(env_file))
    merged.update(os.environ if environ is None else environ)

    values = {
        key[len(ENV_PREFIX):].lower(): value
        for key, value in merged.items()
        if key.startswith(ENV_PREFIX) and value not in (None, "")
    }
    try:
        settings = AuthorizationSettings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {ENV_PREFIX}* settings: {e}") from e

    get_network_config(settings.network)
    logger.debug("Loaded settings for network=%s clock_source=%s", settings.network, settings.clock_source.value)
    return settings
