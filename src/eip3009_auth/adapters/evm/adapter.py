"""
EVM Authorization Adapter

Facade over the EIP-3009 building blocks for one token deployment: builds
and signs receive, transfer and scheduled-transfer authorizations, encodes
them for transport, and runs pre-submission checks against the chain.

Key Features:
    - Human-readable amounts converted exactly with the token's decimals
    - Validity windows from the local clock or the latest block timestamp
    - Domain refresh from the contract's own ``name()`` / ``version()``
    - Pre-flight: nonce state, window, submitter, signer, balance, domain

Dependencies:
    - web3.py: For read-only blockchain RPC interaction
    - eth_account: For local signing and signature recovery
"""

from decimal import Decimal
from typing import Optional, Union, Tuple, List, Any

from web3 import AsyncWeb3

from ..bases import AuthorizationAdapterFactory
from ...engine.exceptions import SigningError
from ...utils import logger, short_hex
from .builders import ClockSource, build_authorization, build_validity_window, resolve_now, to_base_units
from .chains import create_async_web3, fetch_block_timestamp, fetch_domain, read_chain_snapshot
from .constants import AuthorizationSettings, EvmNetworkConfig, build_domain_for_network, get_network_config
from .encoding import to_claim_url, to_json_dict, to_qr_payload
from .FIAT_TOKEN_ABI import build_submission_args, build_vrs_submission_args
from .schemas import Authorization, PreflightReport, ValidationResult
from .signatures import LocalAccountSigner, SigningCapability, async_sign_authorization
from .standards import AuthorizationKind, EIP712Domain
from .verifies import preflight, validate


class EVMAuthorizationAdapter(AuthorizationAdapterFactory):
    """
    EIP-3009 adapter for a single token on a single EVM chain.

    The signer is optional: without one the adapter can still validate,
    decode and pre-flight authorizations signed elsewhere.

    Attributes:
        settings: ``AuthorizationSettings`` in effect.
        network: Registry entry for ``settings.network``.
        domain: EIP-712 domain authorizations are signed for.
        decimals: Token decimals used for amount conversion.

    Example:
        settings = load_settings(".env")
        adapter = EVMAuthorizationAdapter(settings=settings)
        await adapter.refresh_domain()     # trust the contract's name()
        auth = await adapter.create_transfer_authorization(
            recipient="0x7099...79C8", amount="1.50",
        )
        report = await adapter.preflight(auth)
        if report.is_success():
            fn_name, args = adapter.submission_args(auth)
    """

    def __init__(
        self,
        *,
        settings: Optional[AuthorizationSettings] = None,
        signer: Optional[SigningCapability] = None,
        private_key: Optional[str] = None,
        authorizer: Optional[str] = None,
        domain: Optional[EIP712Domain] = None,
        w3: Optional[AsyncWeb3] = None,
        decimals: Optional[int] = None,
        request_timeout: int = 60,
    ):
        """
        Initialize the adapter.

        Signer resolution: ``signer`` wins, then ``private_key``, then
        ``settings.private_key``; with none of them the adapter is verify-only.

        Args:
            settings:        Settings; defaults to ``AuthorizationSettings()``.
            signer:          Any ``SigningCapability``.
            private_key:     Hex key wrapped in a ``LocalAccountSigner``.
            authorizer:      ``from`` address, required when ``signer`` does
                             not expose an ``address`` attribute.
            domain:          Explicit domain; defaults to the registry domain
                             for ``settings.network``.
            w3:              AsyncWeb3 for chain reads; created lazily from
                             ``settings.resolve_rpc_url()`` when omitted.
            decimals:        Token decimals override.
            request_timeout: HTTP timeout for the lazily created provider.

        Raises:
            ConfigurationError: Unknown network.
            SigningError: Invalid private key.
        """
        self.settings = settings or AuthorizationSettings()
        self.network: EvmNetworkConfig = get_network_config(self.settings.network)
        self.domain = domain or build_domain_for_network(self.network.network)
        self.decimals = decimals if decimals is not None else self.network.token.decimals
        self._request_timeout = request_timeout
        self._w3 = w3

        if signer is None:
            key = private_key
            if key is None and self.settings.private_key is not None:
                key = self.settings.private_key.get_secret_value()
            signer = LocalAccountSigner(key) if key else None
        self._signer = signer
        self._authorizer = authorizer or getattr(signer, "address", None)

    # -----------------------------------------------------------------
    # Chain access
    # -----------------------------------------------------------------

    @property
    def w3(self) -> AsyncWeb3:
        if self._w3 is None:
            self._w3 = create_async_web3(self.settings.resolve_rpc_url(), self._request_timeout)
        return self._w3

    async def refresh_domain(self) -> EIP712Domain:
        """
        Replace the registry domain with the one read from the contract.

        The registry only carries a name hint; this makes signatures match
        deployments whose ``name()`` differs.
        """
        self.domain = await fetch_domain(self.w3, self.domain.verifyingContract)
        logger.debug("Refreshed domain: name=%r version=%r chainId=%d",
                     self.domain.name, self.domain.version, self.domain.chainId)
        return self.domain

    async def current_time(self) -> int:
        """Now, according to ``settings.clock_source``."""
        if self.settings.clock_source is ClockSource.CHAIN:
            return resolve_now(ClockSource.CHAIN, await fetch_block_timestamp(self.w3))
        return resolve_now(ClockSource.LOCAL)

    def get_signer_address(self) -> Optional[str]:
        return self._authorizer

    # -----------------------------------------------------------------
    # Creation
    # -----------------------------------------------------------------

    async def create_authorization(
        self,
        kind: Union[AuthorizationKind, str],
        recipient: str,
        amount: Union[str, int, Decimal],
        *,
        valid_for: Optional[int] = None,
        start_delay: int = 0,
        nonce: Optional[str] = None,
    ) -> Authorization:
        """
        Build and sign an authorization from the configured signer.

        Args:
            kind:        RECEIVE or TRANSFER.
            recipient:   ``to`` address.
            amount:      Human-readable amount, converted with ``self.decimals``.
            valid_for:   Window length; ``settings.validity_seconds`` by default.
            start_delay: Seconds until the window opens (scheduled transfers).
            nonce:       Explicit nonce; random when omitted.

        Returns:
            Authorization: Signed.

        Raises:
            SigningError: No signer configured, or signing failed.
            InvalidAmountError / InvalidAddressError / InvalidWindowError.
        """
        if self._signer is None or self._authorizer is None:
            raise SigningError("adapter has no signer configured", kind=getattr(kind, "value", kind))

        value = to_base_units(amount, self.decimals)
        now = await self.current_time()
        valid_after, valid_before = build_validity_window(
            now,
            valid_for=valid_for if valid_for is not None else self.settings.validity_seconds,
            start_delay=start_delay,
            backward_buffer=self.settings.backward_buffer,
        )
        unsigned = build_authorization(
            kind,
            self._authorizer,
            recipient,
            value,
            valid_after=valid_after,
            valid_before=valid_before,
            nonce=nonce,
        )
        signed = await async_sign_authorization(unsigned, self.domain, self._signer)
        logger.info(
            "Created %s authorization %s -> %s value=%d nonce=%s",
            signed.kind.value, signed.authorizer, signed.recipient, signed.value, short_hex(signed.nonce),
        )
        return signed

    async def create_receive_authorization(self, recipient: str, amount: Union[str, int, Decimal], **kwargs) -> Authorization:
        """Pull payment: only ``recipient`` can submit it."""
        return await self.create_authorization(AuthorizationKind.RECEIVE, recipient, amount, **kwargs)

    async def create_transfer_authorization(self, recipient: str, amount: Union[str, int, Decimal], **kwargs) -> Authorization:
        """Gas station pattern: anyone holding it can submit it."""
        return await self.create_authorization(AuthorizationKind.TRANSFER, recipient, amount, **kwargs)

    async def create_scheduled_transfer(
        self,
        recipient: str,
        amount: Union[str, int, Decimal],
        start_delay: int,
        valid_for: Optional[int] = None,
    ) -> Authorization:
        """Transfer authorization whose window opens ``start_delay`` seconds from now."""
        return await self.create_authorization(
            AuthorizationKind.TRANSFER, recipient, amount, valid_for=valid_for, start_delay=start_delay
        )

    # -----------------------------------------------------------------
    # Checks
    # -----------------------------------------------------------------

    def validate(
        self,
        authorization: Authorization,
        current_time: int,
        is_nonce_used: bool,
        submitter: Optional[str] = None,
    ) -> ValidationResult:
        return validate(
            authorization,
            current_time=current_time,
            is_nonce_used=is_nonce_used,
            submitter=submitter,
            clock_skew_tolerance=self.settings.clock_skew_tolerance,
        )

    async def preflight(self, authorization: Authorization, submitter: Optional[str] = None) -> PreflightReport:
        """
        Read a chain snapshot and run ``verifies.preflight``.

        The snapshot time is the block timestamp, so no clock-skew tolerance
        applies here.

        Raises:
            BlockchainInteractionError: Required chain reads failed.
        """
        snapshot = await read_chain_snapshot(
            self.w3, self.domain.verifyingContract, authorization.authorizer, authorization.nonce
        )
        return preflight(
            authorization,
            self.domain,
            snapshot,
            submitter=submitter,
            clock_skew_tolerance=0,
        )

    # -----------------------------------------------------------------
    # Transport and submission
    # -----------------------------------------------------------------

    def _routing(self) -> dict:
        return {
            "contract_address": self.domain.verifyingContract,
            "chain_id": self.domain.chainId,
            "network": self.network.network,
        }

    def to_json_dict(self, authorization: Authorization) -> dict:
        return to_json_dict(authorization, **self._routing())

    def to_qr_payload(self, authorization: Authorization) -> str:
        return to_qr_payload(authorization, **self._routing())

    def to_claim_url(self, base_url: str, authorization: Authorization) -> str:
        return to_claim_url(base_url, authorization, **self._routing())

    def submission_args(self, authorization: Authorization, packed: bool = True) -> Tuple[str, List[Any]]:
        """Contract call arguments; ``packed=False`` selects the ``v, r, s`` overload."""
        if packed:
            return build_submission_args(authorization)
        return build_vrs_submission_args(authorization)
