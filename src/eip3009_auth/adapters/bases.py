"""
Abstract Base Classes for Authorization Adapters

Defines the interface that chain-specific authorization adapters implement.
An adapter bundles a signing capability, a token domain and an optional chain
reader, and exposes the full create → sign → check flow.

Core Classes:
    - AuthorizationAdapterFactory: create signed authorizations and run
      pre-submission checks for one token deployment.

Only the EVM adapter exists today; the interface keeps chain-specific details
(addresses, digests, RPC calls) out of calling code.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional, Union

from ..schemas.bases import BaseAuthorization, BaseValidationResult


class AuthorizationAdapterFactory(ABC):
    """
    Abstract base class for authorization adapters.

    Key Responsibilities:
    1. create_authorization: Build and sign an authorization for the token
    2. validate: Classify an authorization against supplied chain state
    3. preflight: Read chain state and run every pre-submission check
    4. get_signer_address: Address whose key signs authorizations

    Example Implementation:
        class EVMAuthorizationAdapter(AuthorizationAdapterFactory):
            # EIP-3009 on EVM chains
            pass
    """

    @abstractmethod
    async def create_authorization(
        self,
        kind: str,
        recipient: str,
        amount: Union[str, int, Decimal],
        *,
        valid_for: Optional[int] = None,
        start_delay: int = 0,
    ) -> BaseAuthorization:
        """
        Build and sign an authorization.

        Args:
            kind: Chain-specific authorization type.
            recipient: Address receiving the tokens.
            amount: Human-readable amount (e.g. ``"1.5"``).
            valid_for: Window length in seconds; the adapter default when omitted.
            start_delay: Seconds until the window opens.

        Returns:
            BaseAuthorization: The signed authorization.

        Raises:
            EIP3009Error subclasses for invalid input or signing failure.
        """
        pass

    @abstractmethod
    def validate(
        self,
        authorization: BaseAuthorization,
        current_time: int,
        is_nonce_used: bool,
        submitter: Optional[str] = None,
    ) -> BaseValidationResult:
        """
        Classify ``authorization`` against supplied chain state.

        Should not raise for not-yet-executable outcomes; return them instead.
        """
        pass

    @abstractmethod
    async def preflight(
        self,
        authorization: BaseAuthorization,
        submitter: Optional[str] = None,
    ) -> BaseValidationResult:
        """
        Read chain state and run every check a submitter should perform.

        Raises:
            BlockchainInteractionError: Required chain reads failed.
        """
        pass

    @abstractmethod
    def get_signer_address(self) -> Optional[str]:
        """Address of the configured signer, ``None`` for verify-only adapters."""
        pass
