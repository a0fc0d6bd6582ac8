"""Tests for logging.py."""

import json

import structlog

from chesster.logging import setup_logging


def test_setup_logging_filters_below_level(caplog):
    setup_logging("WARNING")
    try:
        log = structlog.get_logger("chesster.test")
        log.info("hidden")
        log.warning("shown", key="value")
    finally:
        structlog.reset_defaults()
    assert "hidden" not in caplog.text
    record = json.loads(caplog.records[-1].getMessage())
    assert record["message"] == "shown"
    assert record["level"] == "warning"
    assert record["key"] == "value"


def test_setup_logging_unknown_level_falls_back():
    setup_logging("nonsense")
    try:
        assert structlog.is_configured()
    finally:
        structlog.reset_defaults()
