"""
Base Schema Models

This module defines the base classes that the authorization schema models
inherit from. It provides type safety, validation, and consistent
serialization across the package.

Core Classes:
    - CanonicalModel: RFC8785-compliant Pydantic base model for hashing and transport
    - BaseSignature: Abstract signature component model
    - BaseAuthorization: Abstract signed-authorization model
    - ValidationClassification: Typed outcome of authorization validation
    - BaseValidationResult: Abstract validation result model

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
from abc import ABC
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any

from pydantic import BaseModel, ConfigDict, Field

from ..utils import canonical_json


class CanonicalModel(BaseModel):
    """
    RFC8785-compliant Pydantic base model with canonical JSON serialization.

    This model ensures consistent, deterministic JSON representation suitable
    for hashing, logging and transport.

    Features:
        - Automatic conversion of Pydantic objects and enums to standard types
        - Deterministic key sorting in JSON output
        - No extra whitespace

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        canonical_json = model.to_canonical_json()  # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to RFC8785-compliant canonical JSON string.

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        return canonical_json(self.model_dump(mode="json"))

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to dictionary representation.

        Returns:
            Dict[str, Any]: Dictionary with all model fields.
        """
        return self.model_dump()


class BaseSignature(CanonicalModel, ABC):
    """
    Abstract base class for signature components.

    Attributes:
        signature_type: The type of signature (e.g., "EIP3009")

    Methods:
        validate_format: Check if signature format is valid
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    signature_type: str = Field(..., description="Type of signature (e.g., EIP3009)")

    def validate_format(self) -> bool:
        """
        Validate the signature format.

        Returns:
            bool: True if signature format is valid.

        Raises:
            ValueError: If signature format is invalid with descriptive message.
        """
        pass


class BaseAuthorization(CanonicalModel, ABC):
    """
    Abstract base class for off-chain signed authorizations.

    An authorization is a signed message that lets a third party execute a
    token operation on behalf of the signer. Instances are frozen: signing
    produces a new instance, and any field change invalidates the signature.

    Attributes:
        signature: Signature components, ``None`` before signing

    Methods:
        validate_structure: Validate authorization structure
        is_signed: Whether a signature is attached
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    signature: Optional[BaseSignature] = Field(None, description="Signature components")

    def validate_structure(self) -> bool:
        """
        Validate the authorization structure and required fields.

        Returns:
            bool: True if the structure is valid.

        Raises:
            ValueError: If the structure is invalid with descriptive message.
        """
        pass

    def is_signed(self) -> bool:
        return self.signature is not None


class ValidationClassification(str, Enum):
    """
    Enumeration of authorization validation outcomes.

    Exactly one applies to any (authorization, time, nonce state, submitter)
    tuple.

    Attributes:
        EXECUTABLE: Inside the validity window, nonce unused, submitter allowed
        PENDING: ``validAfter`` has not been reached yet
        EXPIRED: ``validBefore`` has passed
        CONSUMED: The nonce is already marked used on-chain
        UNAUTHORIZED_SUBMITTER: A receive authorization submitted by someone other than ``to``
    """
    EXECUTABLE = "executable"
    PENDING = "pending"
    EXPIRED = "expired"
    CONSUMED = "consumed"
    UNAUTHORIZED_SUBMITTER = "unauthorized_submitter"


class BaseValidationResult(CanonicalModel, ABC):
    """
    Abstract base class for authorization validation results.

    Attributes:
        status: Validation classification
        is_executable: Whether the authorization may be submitted now
        message: Human-readable status message
        details: Diagnostic information for not-executable outcomes
        validated_at: Timestamp when validation was performed

    Methods:
        is_success: Check if validation passed
        get_error_message: Get formatted error message
    """

    status: ValidationClassification = Field(..., description="Validation classification")
    is_executable: bool = Field(..., description="Whether the authorization may be submitted now")
    message: str = Field(..., description="Human-readable status message")
    details: Optional[Dict[str, Any]] = Field(None, description="Diagnostic information")
    validated_at: datetime = Field(default_factory=datetime.now, description="Validation timestamp")

    def is_success(self) -> bool:
        """
        Check if validation was successful.

        Returns:
            bool: True if the authorization is executable, False otherwise.
        """
        return self.is_executable and self.status == ValidationClassification.EXECUTABLE

    def get_error_message(self) -> Optional[str]:
        """
        Get formatted error message from validation result.

        Returns:
            Optional[str]: Error message if not executable, None if executable.

        Example:
            if not result.is_success():
                print(result.get_error_message())
        """
        if self.is_success():
            return None

        error_msg = f"Authorization not executable: {self.message}"
        if self.details:
            details_str = json.dumps(self.details, indent=2, default=str)
            error_msg += f"\nDetails: {details_str}"
        return error_msg
