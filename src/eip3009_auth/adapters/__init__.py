from .bases import AuthorizationAdapterFactory
from .evm import EVMAuthorizationAdapter

__all__ = [
    "AuthorizationAdapterFactory",
    "EVMAuthorizationAdapter",
]
