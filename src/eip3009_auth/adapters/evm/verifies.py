"""
EIP-3009 Authorization Validation

Decides whether a signed authorization may be submitted now. Each function
takes chain facts as plain values (block time, nonce state, balance, on-chain
hashes) so callers can feed them from any source: the bundled chain reader,
a cached snapshot, or a test fixture.

Current coverage
----------------
validate
    State classification: CONSUMED, EXPIRED, UNAUTHORIZED_SUBMITTER, PENDING,
    EXECUTABLE (first match wins, in that order). Never raises for a
    not-executable outcome.

preflight
    ``validate`` plus signer recovery, balance sufficiency, and cross-checks
    of the domain fields, domain separator and type hash against the
    contract's own values.

verify_domain_separator
    Compare the locally computed separator with ``DOMAIN_SEPARATOR()``.
"""

from typing import Any, Dict, Optional, Union

from ...engine.exceptions import MalformedPayloadError, MalformedSignatureError
from ...schemas.bases import ValidationClassification
from ...utils import logger, short_hex
from .digests import domain_separator, type_hash
from .schemas import Authorization, ChainSnapshot, PreflightReport, ValidationResult
from .signatures import recover_authorization_signer
from .standards import (
    AuthorizationKind,
    DEFAULT_CLOCK_SKEW_TOLERANCE,
    EIP712Domain,
    normalize_address,
)

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _as_hash_bytes(value: Union[bytes, str], name: str) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        text = value[2:] if value[:2] in ("0x", "0X") else value
        try:
            raw = bytes.fromhex(text)
        except ValueError as e:
            raise MalformedPayloadError(f"{name} is not valid hexadecimal") from e
    else:
        raise MalformedPayloadError(f"{name} must be bytes or hex string")
    if len(raw) != 32:
        raise MalformedPayloadError(f"{name} must be 32 bytes, got {len(raw)}")
    return raw


def _submitter_address(submitter: Union[str, bytes]) -> str:
    if isinstance(submitter, (bytes, bytearray)):
        if len(submitter) != 20:
            raise MalformedPayloadError(f"submitter must be 20 bytes, got {len(submitter)}")
        return "0x" + bytes(submitter).hex()
    return normalize_address(submitter, field_name="submitter", error_cls=MalformedPayloadError)


def _check_inputs(
    authorization: Any,
    current_time: Any,
    is_nonce_used: Any,
    clock_skew_tolerance: Any,
    require_signature: bool,
) -> None:
    if not isinstance(authorization, Authorization):
        raise MalformedPayloadError(
            f"authorization must be an Authorization, got {type(authorization).__name__}"
        )
    if isinstance(current_time, bool) or not isinstance(current_time, int) or current_time < 0:
        raise MalformedPayloadError(f"current_time must be a non-negative int, got {current_time!r}")
    if not isinstance(is_nonce_used, bool):
        raise MalformedPayloadError(f"is_nonce_used must be a bool, got {is_nonce_used!r}")
    if isinstance(clock_skew_tolerance, bool) or not isinstance(clock_skew_tolerance, int) or clock_skew_tolerance < 0:
        raise MalformedPayloadError(
            f"clock_skew_tolerance must be a non-negative int, got {clock_skew_tolerance!r}"
        )
    if require_signature and authorization.signature is None:
        raise MalformedPayloadError("authorization is not signed")
    authorization.validate_structure()


# ---------------------------------------------------------------------------
# State classification
# ---------------------------------------------------------------------------

def validate(
    authorization: Authorization,
    current_time: int,
    is_nonce_used: bool,
    submitter: Optional[Union[str, bytes]] = None,
    clock_skew_tolerance: int = DEFAULT_CLOCK_SKEW_TOLERANCE,
    *,
    require_signature: bool = True,
) -> ValidationResult:
    """
    Classify an authorization against the current chain state.

    Checks run in a fixed order and the first match wins:

    1. **CONSUMED** -- ``is_nonce_used`` is true.
    2. **EXPIRED** -- ``current_time > validBefore``.
    3. **UNAUTHORIZED_SUBMITTER** -- RECEIVE kind, ``submitter`` given and
       different from ``to``.
    4. **PENDING** -- ``current_time + clock_skew_tolerance < validAfter``.
    5. **EXECUTABLE** -- otherwise.

    The tolerance only widens the ``validAfter`` edge; the contract itself
    enforces ``validAfter < block.timestamp < validBefore`` and has the last
    word. An EXECUTABLE result with ``checked_at <= validAfter`` sets
    ``within_tolerance``. Pass ``clock_skew_tolerance=0`` when
    ``current_time`` is already the block timestamp. The nonce check is
    advisory: it can race another submitter.

    Args:
        authorization:        Authorization to classify.
        current_time:         Block timestamp (or local time) as an int.
        is_nonce_used:        ``authorizationState(from, nonce)``.
        submitter:            Address that will send the transaction. When
                              omitted, the submitter check is skipped.
        clock_skew_tolerance: Seconds of early submission to tolerate.
        require_signature:    Reject unsigned authorizations (default).

    Returns:
        ``ValidationResult``; ``is_executable`` is true only for EXECUTABLE.

    Raises:
        MalformedPayloadError: Structurally invalid input (including a
            non-bool ``is_nonce_used``), never a not-yet-executable outcome.

    Example::

        result = validate(signed, current_time=block.timestamp, is_nonce_used=False)
        if not result.is_success():
            print(result.get_error_message())
    """
    _check_inputs(authorization, current_time, is_nonce_used, clock_skew_tolerance, require_signature)

    window = {
        "current_time": current_time,
        "validAfter": authorization.validAfter,
        "validBefore": authorization.validBefore,
    }

    def _result(
        status: ValidationClassification,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        within_tolerance: bool = False,
    ) -> ValidationResult:
        logger.debug(
            "Validated %s nonce=%s -> %s", authorization.kind.value, short_hex(authorization.nonce), status.value
        )
        return ValidationResult(
            status=status,
            is_executable=status is ValidationClassification.EXECUTABLE,
            message=message,
            details=details,
            kind=authorization.kind,
            nonce=authorization.nonce,
            checked_at=current_time,
            within_tolerance=within_tolerance,
        )

    if is_nonce_used:
        return _result(
            ValidationClassification.CONSUMED,
            "Authorization nonce has already been used",
            {"authorizer": authorization.authorizer, "nonce": authorization.nonce},
        )

    if current_time > authorization.validBefore:
        return _result(
            ValidationClassification.EXPIRED,
            f"Authorization expired at {authorization.validBefore}",
            {**window, "expired_for": current_time - authorization.validBefore},
        )

    if submitter is not None and AuthorizationKind(authorization.kind).restricts_submitter:
        submitter_address = _submitter_address(submitter)
        if submitter_address.lower() != authorization.recipient.lower():
            return _result(
                ValidationClassification.UNAUTHORIZED_SUBMITTER,
                "Receive authorizations can only be submitted by the recipient",
                {"submitter": submitter_address, "recipient": authorization.recipient},
            )

    if current_time + clock_skew_tolerance < authorization.validAfter:
        return _result(
            ValidationClassification.PENDING,
            f"Authorization becomes valid at {authorization.validAfter}",
            {**window, "seconds_until_valid": authorization.validAfter - current_time},
        )

    if current_time <= authorization.validAfter:
        return _result(
            ValidationClassification.EXECUTABLE,
            "Authorization is executable within the clock-skew tolerance; "
            "the contract accepts it once block.timestamp > validAfter",
            {**window, "seconds_until_valid": authorization.validAfter - current_time},
            within_tolerance=True,
        )

    return _result(ValidationClassification.EXECUTABLE, "Authorization is executable")


# ---------------------------------------------------------------------------
# On-chain cross-checks
# ---------------------------------------------------------------------------

def verify_domain_separator(domain: EIP712Domain, on_chain: Union[bytes, str]) -> bool:
    """
    Compare the locally computed domain separator with the contract's.

    A mismatch means the name, version, chain id or address is wrong, and any
    signature produced for ``domain`` will be rejected by the contract.
    """
    return domain_separator(domain) == _as_hash_bytes(on_chain, "on-chain domain separator")


def preflight(
    authorization: Authorization,
    domain: EIP712Domain,
    snapshot: ChainSnapshot,
    submitter: Optional[Union[str, bytes]] = None,
    clock_skew_tolerance: int = DEFAULT_CLOCK_SKEW_TOLERANCE,
) -> PreflightReport:
    """
    Run every check a submitter should perform before calling the contract.

    Performs, in addition to ``validate``:

    1. **Signer** -- the address recovered from the signature must equal ``from``.
    2. **Balance** -- when ``snapshot.balance`` is known, it must be ``>= value``.
    3. **Domain separator** -- when ``snapshot.domain_separator`` is known, it
       must equal the locally computed one.
    4. **Type hash** -- when the snapshot carries the contract's type hash for
       this kind, it must equal the local constant.
    5. **Domain fields** -- when known, ``eth_chainId``, ``name()`` and
       ``version()`` must equal the domain. A stale chain id is caught here
       even when ``DOMAIN_SEPARATOR()`` could not be read.

    Args:
        authorization:        Signed authorization.
        domain:               Domain the authorization was signed for.
        snapshot:             Chain facts; see ``chains.read_chain_snapshot``.
        submitter:            Transaction sender, for RECEIVE authorizations.
        clock_skew_tolerance: Passed to ``validate``.

    Returns:
        ``PreflightReport``. ``is_executable`` is true only when the state is
        EXECUTABLE and no known check failed; unknown checks stay ``None``.

    Raises:
        MalformedPayloadError: Unsigned or structurally invalid authorization.
    """
    state = validate(
        authorization,
        current_time=snapshot.current_time,
        is_nonce_used=snapshot.nonce_used,
        submitter=submitter,
        clock_skew_tolerance=clock_skew_tolerance,
    )

    checks: Dict[str, Any] = {}

    try:
        recovered: Optional[str] = recover_authorization_signer(authorization, domain)
    except MalformedSignatureError as e:
        logger.debug("Signature recovery failed: %s", e)
        recovered = None
    checks["recovered_signer"] = recovered
    checks["signer_matches"] = recovered is not None and recovered.lower() == authorization.authorizer.lower()

    if snapshot.balance is not None:
        checks["balance_sufficient"] = snapshot.balance >= authorization.value

    if snapshot.domain_separator is not None:
        checks["domain_separator_matches"] = verify_domain_separator(domain, snapshot.domain_separator)

    on_chain_typehash = (
        snapshot.receive_typehash
        if authorization.kind is AuthorizationKind.RECEIVE
        else snapshot.transfer_typehash
    )
    if on_chain_typehash is not None:
        checks["typehash_matches"] = (
            type_hash(authorization.kind) == _as_hash_bytes(on_chain_typehash, "on-chain type hash")
        )

    if snapshot.chain_id is not None:
        checks["chain_id_matches"] = snapshot.chain_id == domain.chainId
    if snapshot.token_name is not None:
        checks["name_matches"] = snapshot.token_name == domain.name
    if snapshot.token_version is not None:
        checks["version_matches"] = snapshot.token_version == domain.version

    report = PreflightReport(**state.model_dump(exclude={"validated_at"}), **checks)
    failed = report.failed_checks()
    if failed and report.is_executable:
        details = {
            "failed_checks": failed,
            "recovered_signer": recovered,
            "authorizer": authorization.authorizer,
        }
        if snapshot.balance is not None:
            details["balance"] = snapshot.balance
            details["value"] = authorization.value
        if snapshot.chain_id is not None:
            details["chain_id"] = snapshot.chain_id
        report = report.model_copy(
            update={
                "is_executable": False,
                "message": f"Pre-flight checks failed: {', '.join(failed)}",
                "details": details,
            }
        )
    logger.debug("Pre-flight for nonce=%s: status=%s failed=%s", short_hex(authorization.nonce), report.status.value, failed)
    return report
