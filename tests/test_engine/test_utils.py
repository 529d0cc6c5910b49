"""
Test suite for logging helpers and canonical serialization.
"""
import json
import logging

from eip3009_auth.adapters.evm.schemas import ChainSnapshot
from eip3009_auth.utils import canonical_json, logger, setup_logger, short_hex


def test_setup_logger_does_not_stack_handlers():
    setup_logger(logging.DEBUG)
    setup_logger("WARNING")
    assert len(logger.handlers) == 1
    assert logger.level == logging.WARNING
    assert logger.name == "eip3009_auth"


def test_canonical_json_is_sorted_and_compact():
    assert canonical_json({"b": 1, "a": "x"}) == '{"a":"x","b":1}'


def test_model_canonical_json():
    snapshot = ChainSnapshot(current_time=1500, nonce_used=False, balance=7)
    data = json.loads(snapshot.to_canonical_json())
    assert data["current_time"] == 1500
    assert data["balance"] == 7
    assert snapshot.to_canonical_json() == canonical_json(snapshot.model_dump(mode="json"))


def test_short_hex():
    assert short_hex("0x" + "ab" * 32) == "0xababab…ababab"
    assert short_hex(b"\x01\x02") == "0x0102"
