"""
Tests for structured logging and card number masking.
"""
from __future__ import annotations

import json
import logging

import pytest

from storefront_checkout.logging_config import (
    SensitiveDataFilter,
    StructuredFormatter,
    mask_card_numbers,
    setup_logging,
)


def _record(msg, args=None, **extra):
    record = logging.LogRecord(
        name="storefront_checkout.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=args,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestMaskCardNumbers:
    """Tests for card number masking in free text."""

    def test_plain_number(self):
        assert mask_card_numbers("card 4111111111111111 declined") == "card ************1111 declined"

    def test_grouped_number(self):
        assert mask_card_numbers("4111 1111 1111 1111") == "************1111"
        assert mask_card_numbers("4111-1111-1111-1111") == "************1111"

    def test_short_numbers_untouched(self):
        assert mask_card_numbers("order 12345 for 999") == "order 12345 for 999"


class TestSensitiveDataFilter:
    """Tests for the logging filter."""

    def test_masks_formatted_message(self):
        record = _record("Paying with %s", ("4111111111111111",))

        assert SensitiveDataFilter().filter(record) is True
        assert record.getMessage() == "Paying with ************1111"

    def test_masks_extra_fields(self):
        record = _record("Instrument rejected", card="5555 5555 5555 4444", amount=100)

        SensitiveDataFilter().filter(record)

        assert record.card == "************4444"
        assert record.amount == 100


class TestStructuredFormatter:
    """Tests for JSON log lines."""

    def test_json_output(self):
        record = _record("Coupon applied", coupon_code="SAVE10", amount=100)

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["message"] == "Coupon applied"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "storefront_checkout.test"
        assert payload["coupon_code"] == "SAVE10"
        assert payload["amount"] == 100
        assert "msg" not in payload


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_json_handler(self, restore_root_logger):
        setup_logging(level="DEBUG", json_format=True)

        root = restore_root_logger
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        handler = root.handlers[0]
        assert isinstance(handler.formatter, StructuredFormatter)
        assert any(isinstance(f, SensitiveDataFilter) for f in handler.filters)

    def test_plain_text_with_file(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "checkout.log"

        setup_logging(level="WARNING", json_format=False, log_file=str(log_file))
        logging.getLogger("storefront_checkout").warning("Declined card 4111111111111111")
        for handler in restore_root_logger.handlers:
            handler.flush()

        assert restore_root_logger.level == logging.WARNING
        assert len(restore_root_logger.handlers) == 2
        contents = log_file.read_text()
        assert "************1111" in contents
        assert "4111111111111111" not in contents
        restore_root_logger.handlers[1].close()
