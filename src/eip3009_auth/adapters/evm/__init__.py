from .adapter import EVMAuthorizationAdapter
from .standards import (
    AuthorizationKind,
    EIP712Domain,
    build_domain,
    TRANSFER_WITH_AUTHORIZATION_TYPEHASH,
    RECEIVE_WITH_AUTHORIZATION_TYPEHASH,
)
from .schemas import (
    EVMECDSASignature,
    Authorization,
    AuthorizationEnvelope,
    ChainSnapshot,
    ValidationResult,
    PreflightReport,
)
from .builders import (
    ClockSource,
    build_authorization,
    build_validity_window,
    generate_nonce,
    resolve_now,
    to_base_units,
    from_base_units,
)
from .digests import compute_digest, domain_separator, struct_hash, type_hash
from .signatures import (
    SigningCapability,
    LocalAccountSigner,
    sign_digest,
    async_sign_digest,
    sign_authorization,
    async_sign_authorization,
    normalize_signature,
    split_signature,
    recover_signer,
    recover_authorization_signer,
    build_typed_data,
)
from .verifies import validate, preflight, verify_domain_separator
from .encoding import (
    to_json_dict,
    to_json,
    to_query_string,
    to_claim_url,
    to_qr_payload,
    from_json_dict,
    from_json,
    from_query_string,
    from_qr_payload,
)
from .constants import (
    AuthorizationSettings,
    EvmNetworkConfig,
    EVM_NETWORKS,
    load_settings,
    get_network_config,
    build_domain_for_network,
)
from .chains import create_async_web3, fetch_block_timestamp, fetch_domain, read_chain_snapshot
from .FIAT_TOKEN_ABI import get_fiat_token_abi, build_submission_args, build_vrs_submission_args

__all__ = [
    "EVMAuthorizationAdapter",
    "AuthorizationKind",
    "EIP712Domain",
    "build_domain",
    "TRANSFER_WITH_AUTHORIZATION_TYPEHASH",
    "RECEIVE_WITH_AUTHORIZATION_TYPEHASH",
    "EVMECDSASignature",
    "Authorization",
    "AuthorizationEnvelope",
    "ChainSnapshot",
    "ValidationResult",
    "PreflightReport",
    "ClockSource",
    "build_authorization",
    "build_validity_window",
    "generate_nonce",
    "resolve_now",
    "to_base_units",
    "from_base_units",
    "compute_digest",
    "domain_separator",
    "struct_hash",
    "type_hash",
    "SigningCapability",
    "LocalAccountSigner",
    "sign_digest",
    "async_sign_digest",
    "sign_authorization",
    "async_sign_authorization",
    "normalize_signature",
    "split_signature",
    "recover_signer",
    "recover_authorization_signer",
    "build_typed_data",
    "validate",
    "preflight",
    "verify_domain_separator",
    "to_json_dict",
    "to_json",
    "to_query_string",
    "to_claim_url",
    "to_qr_payload",
    "from_json_dict",
    "from_json",
    "from_query_string",
    "from_qr_payload",
    "AuthorizationSettings",
    "EvmNetworkConfig",
    "EVM_NETWORKS",
    "load_settings",
    "get_network_config",
    "build_domain_for_network",
    "create_async_web3",
    "fetch_block_timestamp",
    "fetch_domain",
    "read_chain_snapshot",
    "get_fiat_token_abi",
    "build_submission_args",
    "build_vrs_submission_args",
]
