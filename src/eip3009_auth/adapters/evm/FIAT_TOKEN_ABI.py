"""
FiatToken (USDC) EIP-3009 Smart Contract ABI Module

Minimal ABI fragments for the FiatToken v2 functions this package reads or
prepares calls for, plus helpers that turn a signed ``Authorization`` into
contract call arguments.

Usage:
    from FIAT_TOKEN_ABI import get_fiat_token_abi, build_submission_args

    contract = w3.eth.contract(address=token_address, abi=get_fiat_token_abi())
    fn_name, args = build_submission_args(signed)
    tx = getattr(contract.functions, fn_name)(*args).build_transaction({...})
"""

from typing import Dict, Any, List, Tuple

from ...engine.exceptions import MalformedPayloadError
from .schemas import Authorization
from .signatures import split_signature

_AUTHORIZATION_INPUTS: List[Dict[str, str]] = [
    {"name": "from",        "type": "address"},
    {"name": "to",          "type": "address"},
    {"name": "value",       "type": "uint256"},
    {"name": "validAfter",  "type": "uint256"},
    {"name": "validBefore", "type": "uint256"},
    {"name": "nonce",       "type": "bytes32"},
]


def _view(name: str, inputs: List[Dict[str, str]], output_type: str) -> Dict[str, Any]:
    return {
        "name": name,
        "type": "function",
        "stateMutability": "view",
        "inputs": inputs,
        "outputs": [{"name": "", "type": output_type}],
    }


def get_balance_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for querying token balance.

    Example:
        contract = web3.eth.contract(address=token_address, abi=get_balance_abi())
        balance = await contract.functions.balanceOf(address).call()
    """
    return [_view("balanceOf", [{"name": "account", "type": "address"}], "uint256")]


def get_authorization_state_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ``authorizationState(authorizer, nonce)``.

    Returns ``True`` once the nonce has been used (or canceled) for ``authorizer``.
    """
    return [
        _view(
            "authorizationState",
            [
                {"name": "authorizer", "type": "address"},
                {"name": "nonce", "type": "bytes32"},
            ],
            "bool",
        )
    ]


def get_domain_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the EIP-712 domain getters.

    ``version()`` is missing on some deployments; callers fall back to ``"2"``.
    """
    return [
        _view("name", [], "string"),
        _view("version", [], "string"),
        _view("DOMAIN_SEPARATOR", [], "bytes32"),
        _view("TRANSFER_WITH_AUTHORIZATION_TYPEHASH", [], "bytes32"),
        _view("RECEIVE_WITH_AUTHORIZATION_TYPEHASH", [], "bytes32"),
    ]


def get_eip3009_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ``transferWithAuthorization`` and ``receiveWithAuthorization``.

    Both functions are overloaded: FiatToken v2.2 accepts a packed ``bytes
    signature``; older versions only take ``v, r, s``.

    Example::

        abi = get_eip3009_abi()
        contract = web3.eth.contract(address=token_address, abi=abi)
        tx = contract.get_function_by_signature(
            "transferWithAuthorization(address,address,uint256,uint256,uint256,bytes32,uint8,bytes32,bytes32)"
        )(*build_vrs_submission_args(signed)[1]).build_transaction({...})
    """
    entries = []
    for name in ("transferWithAuthorization", "receiveWithAuthorization"):
        entries.append(
            {
                "name": name,
                "type": "function",
                "stateMutability": "nonpayable",
                "inputs": _AUTHORIZATION_INPUTS + [{"name": "signature", "type": "bytes"}],
                "outputs": [],
            }
        )
        entries.append(
            {
                "name": name,
                "type": "function",
                "stateMutability": "nonpayable",
                "inputs": _AUTHORIZATION_INPUTS + [
                    {"name": "v", "type": "uint8"},
                    {"name": "r", "type": "bytes32"},
                    {"name": "s", "type": "bytes32"},
                ],
                "outputs": [],
            }
        )
    return entries


def get_fiat_token_abi() -> List[Dict[str, Any]]:
    """All fragments above, in one list."""
    return get_balance_abi() + get_authorization_state_abi() + get_domain_abi() + get_eip3009_abi()


def _authorization_args(authorization: Authorization) -> List[Any]:
    if authorization.signature is None:
        raise MalformedPayloadError("authorization is not signed")
    authorization.validate_structure()
    return [
        authorization.authorizer,
        authorization.recipient,
        authorization.value,
        authorization.validAfter,
        authorization.validBefore,
        authorization.nonce_bytes,
    ]


def build_submission_args(authorization: Authorization) -> Tuple[str, List[Any]]:
    """
    Arguments for the packed-signature overload.

    Returns:
        ``(function_name, args)`` with the signature as 65 ``bytes``.
    """
    args = _authorization_args(authorization)
    return authorization.kind.value, args + [authorization.signature.to_bytes()]


def build_vrs_submission_args(authorization: Authorization) -> Tuple[str, List[Any]]:
    """
    Arguments for the ``v, r, s`` overload.

    Returns:
        ``(function_name, args)`` ending in ``v`` (int), ``r`` and ``s`` (32 bytes each).
    """
    args = _authorization_args(authorization)
    v, r, s = split_signature(authorization.signature)
    return authorization.kind.value, args + [v, r, s]
