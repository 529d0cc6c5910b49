import json
import logging
import sys
from typing import Any, Dict, Union


logger = logging.getLogger("eip3009_auth")


def setup_logger(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """
    Attach a single stdout handler to the package logger.

    Calling this repeatedly replaces the previous handler instead of stacking
    duplicates.
    """
    formatter = logging.Formatter(
        fmt="%(asctime)s - %(levelname)-8s %(name)s %(filename)s:%(lineno)d %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def canonical_json(data: Dict[str, Any]) -> str:
    """
    RFC8785-ish: sort_keys + no whitespace
    """
    return json.dumps(data, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


def short_hex(value: Union[bytes, str], keep: int = 6) -> str:
    """Abbreviate a hex value for log lines (``0x1234ab…cdef01``)."""
    text = "0x" + value.hex() if isinstance(value, (bytes, bytearray)) else str(value)
    if len(text) <= 2 + keep * 2:
        return text
    return f"{text[:2 + keep]}…{text[-keep:]}"
