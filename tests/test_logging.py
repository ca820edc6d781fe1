import logging

import pytest

from reportmaker.core.logging import configure_logging
from reportmaker.core.logging_redactor import RedactionFilter


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    filters, handlers, level = list(root.filters), list(root.handlers), root.level
    yield root
    root.filters[:] = filters
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(msg, *args):
    return logging.LogRecord("t", logging.INFO, __file__, 1, msg, args, None)


def test_reconfiguring_keeps_a_single_redaction_filter(root_logger):
    configure_logging()
    configure_logging()
    assert sum(isinstance(f, RedactionFilter) for f in root_logger.filters) == 1
    assert sum(getattr(h, "_reportmaker_handler", False) for h in root_logger.handlers) == 1


def test_secrets_and_emails_are_redacted():
    record = _record("user=%s key=%s", "inspector@example.com", "sk_test_abcdefgh1234")
    assert RedactionFilter().filter(record) is True
    assert record.getMessage() == "user=*** key=***"


def test_plain_messages_are_untouched():
    record = _record("event=report.created id=%s", 7)
    RedactionFilter().filter(record)
    assert record.args == (7,)
    assert record.getMessage() == "event=report.created id=7"
