"""
Authorization Message Builders

Construction of unsigned EIP-3009 authorizations: nonce generation, exact
decimal amount conversion and validity-window computation. Every input error
is raised synchronously, before anything is signed.
"""

import secrets
import time
from decimal import Decimal, DecimalException, Inexact, InvalidOperation, Rounded, localcontext
from enum import Enum
from typing import Optional, Tuple, Union

from ...engine.exceptions import InvalidAmountError, InvalidWindowError, MalformedPayloadError
from ...utils import logger, short_hex
from .schemas import Authorization
from .standards import (
    AuthorizationKind,
    DEFAULT_BACKWARD_BUFFER,
    DEFAULT_VALIDITY_SECONDS,
    UINT256_MAX,
    normalize_address,
)

#: USDC and EURC use 6 decimals on every network.
DEFAULT_DECIMALS = 6

#: Significant digits kept while scaling; uint256 needs 78.
_SCALE_PRECISION = 100


def _scale_exact(value: Decimal, exponent: int) -> Decimal:
    """
    ``value * 10**exponent`` without rounding.

    Raises:
        decimal.Inexact: The result would need more than ``_SCALE_PRECISION``
            significant digits.
    """
    with localcontext() as ctx:
        ctx.prec = max(_SCALE_PRECISION, len(value.as_tuple().digits))
        ctx.traps[Inexact] = True
        ctx.traps[Rounded] = True
        return value.scaleb(exponent)


class ClockSource(str, Enum):
    """
    Where "now" comes from when computing validity windows.

    Attributes:
        LOCAL: This machine's wall clock.
        CHAIN: The latest block timestamp; the caller must supply it.
    """
    LOCAL = "local"
    CHAIN = "chain"


def resolve_now(source: Union[ClockSource, str] = ClockSource.LOCAL, chain_timestamp: Optional[int] = None) -> int:
    """
    Return the current unix time according to ``source``.

    Raises:
        InvalidWindowError: If ``source`` is CHAIN and no block timestamp was given.
    """
    source = ClockSource(source)
    if source is ClockSource.CHAIN:
        if chain_timestamp is None:
            raise InvalidWindowError("chain clock selected but no block timestamp was supplied")
        return _check_timestamp(chain_timestamp, "chain_timestamp")
    return int(time.time())


def generate_nonce() -> str:
    """
    Return a fresh random 32-byte nonce as 0x-prefixed hex.

    Uses the OS CSPRNG through ``secrets``; safe to call from any thread or task.
    """
    return "0x" + secrets.token_bytes(32).hex()


def normalize_nonce(nonce: Union[str, bytes]) -> str:
    """
    Canonicalize a nonce to lowercase 0x-prefixed 64-char hex.

    Raises:
        MalformedPayloadError: If the nonce is not exactly 32 bytes.
    """
    if isinstance(nonce, (bytes, bytearray)):
        raw = bytes(nonce)
    elif isinstance(nonce, str):
        text = nonce[2:] if nonce[:2] in ("0x", "0X") else nonce
        try:
            raw = bytes.fromhex(text)
        except ValueError as e:
            raise MalformedPayloadError(f"nonce is not valid hexadecimal: {nonce!r}") from e
    else:
        raise MalformedPayloadError(f"nonce must be bytes or hex string, got {type(nonce).__name__}")

    if len(raw) != 32:
        raise MalformedPayloadError(f"nonce must be 32 bytes, got {len(raw)}")
    return "0x" + raw.hex()


def to_base_units(amount: Union[int, str, Decimal], decimals: int = DEFAULT_DECIMALS) -> int:
    """
    Convert a human-readable token ``amount`` into its smallest-unit integer.

    Args:
        amount:   Decimal string, ``int`` or ``Decimal`` (e.g. ``"1.23"``).
                  Binary floats are rejected; pass ``str(x)`` if you must.
        decimals: Token decimals (6 for USDC).

    Returns:
        int: Smallest-unit value, always positive.

    Raises:
        InvalidAmountError: Zero, negative, float, non-numeric, fractional
            smallest units, or above uint256.

    Example:
        to_base_units("50")        # 50000000
        to_base_units("0.000001")  # 1
    """
    if isinstance(decimals, bool) or not isinstance(decimals, int) or decimals < 0:
        raise InvalidAmountError("decimals must be a non-negative int")
    if isinstance(amount, (float, bool)):
        raise InvalidAmountError(
            f"amount must be str, int or Decimal, not {type(amount).__name__}: {amount!r}"
        )

    try:
        dec_amount = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except (InvalidOperation, ValueError, TypeError) as e:
        raise InvalidAmountError(f"Invalid amount: {amount!r}") from e

    if not dec_amount.is_finite():
        raise InvalidAmountError(f"Invalid amount: {amount!r}")
    if dec_amount <= 0:
        raise InvalidAmountError(f"amount must be positive, got {amount!r}")

    if dec_amount.adjusted() + decimals > len(str(UINT256_MAX)):
        raise InvalidAmountError(f"amount {amount!r} exceeds uint256")

    try:
        scaled = _scale_exact(dec_amount, decimals)
    except DecimalException as e:
        raise InvalidAmountError(
            f"amount {amount!r} is not representable with decimals={decimals}"
        ) from e

    if scaled != scaled.to_integral_value():
        raise InvalidAmountError(
            f"amount {amount!r} is not representable with decimals={decimals} "
            f"(would create fractional smallest units)"
        )

    value = int(scaled)
    if value > UINT256_MAX:
        raise InvalidAmountError(f"amount {amount!r} exceeds uint256")
    return value


def from_base_units(value: Union[int, str], decimals: int = DEFAULT_DECIMALS) -> Decimal:
    """
    Convert a smallest-unit value back into an exact ``Decimal`` for display.

    Raises:
        InvalidAmountError: If ``value`` is negative or not an integer.
    """
    if isinstance(decimals, bool) or not isinstance(decimals, int) or decimals < 0:
        raise InvalidAmountError("decimals must be a non-negative int")
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise InvalidAmountError(f"value must be an int, got {type(value).__name__}")
    try:
        dec_value = Decimal(value) if isinstance(value, int) else Decimal(value.strip())
    except InvalidOperation as e:
        raise InvalidAmountError(f"Invalid value: {value!r}") from e
    if dec_value < 0 or dec_value != dec_value.to_integral_value():
        raise InvalidAmountError(f"value must be a non-negative integer, got {value!r}")
    return _scale_exact(dec_value, -decimals)


def _check_timestamp(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidWindowError(f"{name} must be an int unix timestamp, got {type(value).__name__}")
    if not 0 <= value <= UINT256_MAX:
        raise InvalidWindowError(f"{name} out of uint256 range: {value}")
    return value


def build_validity_window(
    now: int,
    valid_for: int = DEFAULT_VALIDITY_SECONDS,
    start_delay: int = 0,
    backward_buffer: int = DEFAULT_BACKWARD_BUFFER,
) -> Tuple[int, int]:
    """
    Compute ``(valid_after, valid_before)`` around ``now``.

    ``valid_after`` is pulled back by ``backward_buffer`` so an authorization
    built from a clock slightly ahead of the chain is still executable
    immediately. ``start_delay`` schedules the window in the future.

    Args:
        now:             Local time or latest block timestamp.
        valid_for:       Window length in seconds; must be positive.
        start_delay:     Seconds until the window opens.
        backward_buffer: Seconds subtracted from ``now``.

    Returns:
        Tuple[int, int]: ``(valid_after, valid_before)``.

    Example:
        build_validity_window(1_700_000_000, valid_for=3600)
        # (1699999940, 1700003540)
    """
    now = _check_timestamp(now, "now")
    for name, val in [("valid_for", valid_for), ("start_delay", start_delay), ("backward_buffer", backward_buffer)]:
        if isinstance(val, bool) or not isinstance(val, int) or val < 0:
            raise InvalidWindowError(f"{name} must be a non-negative int, got {val!r}")
    if valid_for == 0:
        raise InvalidWindowError("valid_for must be positive")

    valid_after = max(0, now - backward_buffer + start_delay)
    valid_before = _check_timestamp(valid_after + valid_for, "valid_before")
    return valid_after, valid_before


def build_authorization(
    kind: Union[AuthorizationKind, str],
    authorizer: str,
    recipient: str,
    value: int,
    valid_after: Optional[int] = None,
    valid_before: Optional[int] = None,
    nonce: Optional[Union[str, bytes]] = None,
    *,
    now: Optional[int] = None,
    valid_for: int = DEFAULT_VALIDITY_SECONDS,
    backward_buffer: int = DEFAULT_BACKWARD_BUFFER,
) -> Authorization:
    """
    Build an unsigned ``Authorization``.

    Args:
        kind:            RECEIVE or TRANSFER (enum or its string value).
        authorizer:      Payer address (``from``).
        recipient:       Payee address (``to``).
        value:           Amount in smallest units; see ``to_base_units``.
        valid_after:     Window start. Defaults to ``now - backward_buffer``.
        valid_before:    Window end. Defaults to ``valid_after + valid_for``
                         (measured from the defaulted start).
        nonce:           32-byte nonce; a fresh random one when omitted.
        now:             Clock used for defaults, local time when omitted.
                         Pass a block timestamp to build against the chain clock.
        valid_for:       Window length used when ``valid_before`` is omitted.
        backward_buffer: Seconds subtracted from ``now`` for the default start.

    Returns:
        Authorization: Unsigned, with checksummed addresses and a normalized nonce.

    Raises:
        InvalidAddressError: Malformed ``authorizer`` or ``recipient``.
        InvalidAmountError: Non-positive, non-integer or oversized ``value``.
        InvalidWindowError: ``valid_before <= valid_after`` or bad timestamps.
        MalformedPayloadError: Malformed ``nonce``.
    """
    try:
        kind = AuthorizationKind(kind)
    except ValueError as e:
        raise MalformedPayloadError(f"unknown authorization kind: {kind!r}") from e

    authorizer = normalize_address(authorizer, field_name="from")
    recipient = normalize_address(recipient, field_name="to")

    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmountError(
            f"value must be an int in smallest units, got {type(value).__name__}; use to_base_units()"
        )
    if value <= 0:
        raise InvalidAmountError(f"value must be positive, got {value}")
    if value > UINT256_MAX:
        raise InvalidAmountError("value exceeds uint256")

    if valid_after is None:
        current = resolve_now() if now is None else _check_timestamp(now, "now")
        default_after, default_before = build_validity_window(
            current, valid_for=valid_for, backward_buffer=backward_buffer
        )
        valid_after = default_after
        if valid_before is None:
            valid_before = default_before
    else:
        valid_after = _check_timestamp(valid_after, "valid_after")
        if valid_before is None:
            valid_before = valid_after + valid_for

    valid_before = _check_timestamp(valid_before, "valid_before")
    if valid_before <= valid_after:
        raise InvalidWindowError(
            f"validBefore ({valid_before}) must be greater than validAfter ({valid_after})"
        )

    nonce = generate_nonce() if nonce is None else normalize_nonce(nonce)

    authorization = Authorization(
        kind=kind,
        authorizer=authorizer,
        recipient=recipient,
        value=value,
        validAfter=valid_after,
        validBefore=valid_before,
        nonce=nonce,
    )
    logger.debug(
        "Built %s authorization from=%s to=%s value=%d window=[%d, %d] nonce=%s",
        kind.value, authorizer, recipient, value, valid_after, valid_before, short_hex(nonce),
    )
    return authorization
