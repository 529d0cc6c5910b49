from .bases import (
    CanonicalModel,
    BaseSignature,
    BaseAuthorization,
    ValidationClassification,
    BaseValidationResult,
)

__all__ = [
    "CanonicalModel",
    "BaseSignature",
    "BaseAuthorization",
    "ValidationClassification",
    "BaseValidationResult",
]
