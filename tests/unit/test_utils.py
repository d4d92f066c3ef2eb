"""
Unit tests for the logging and text validation helpers.
"""

import logging

import pytest

from utils.exceptions import ValidationError
from utils.logging_config import setup_logging
from utils.validation import clean_text, optional_text, required_text


def test_loggers_naming_one_file_share_its_handler(tmp_path):
    first = setup_logging("tests.shared_file.first", log_file="shared.log", log_dir=str(tmp_path))
    second = setup_logging("tests.shared_file.second", log_file="shared.log", log_dir=str(tmp_path))

    assert first.handlers[-1] is second.handlers[-1]
    assert (tmp_path / "shared.log").exists()


def test_setup_logging_is_idempotent(tmp_path):
    logger = setup_logging("tests.idempotent", log_file="once.log", log_dir=str(tmp_path))
    handlers = list(logger.handlers)

    assert setup_logging("tests.idempotent", log_file="once.log", log_dir=str(tmp_path)) is logger
    assert logger.handlers == handlers


def test_unknown_level_falls_back_to_info():
    logger = setup_logging("tests.unknown_level", log_level="chatty")

    assert logger.level == logging.INFO
    assert logging.getLogger("httpx").level == logging.WARNING


def test_clean_text_strips_control_characters():
    assert clean_text("  Hi\x00 there\r\nsee you\x1b  ") == "Hi there\nsee you"
    assert clean_text(None) == ""


def test_required_text():
    assert required_text("  Coffee ", "Activity", 10) == "Coffee"

    with pytest.raises(ValidationError):
        required_text("\x07  ", "Activity", 10)
    with pytest.raises(ValidationError):
        required_text("x" * 11, "Activity", 10)


def test_optional_text():
    assert optional_text("   ", "Notes", 5) is None
    assert optional_text(None, "Notes") is None
    assert optional_text(" near the gate ", "Location") == "near the gate"

    with pytest.raises(ValidationError):
        optional_text("x" * 6, "Notes", 5)
