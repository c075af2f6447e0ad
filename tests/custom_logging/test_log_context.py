import logging

import pytest

from correction_pipeline.custom_logging.log_context import ContextFilter, logging_user, setup_logging, user_id_context


def create_log_record(msg):
    return logging.LogRecord(
        name="test", level=logging.INFO, pathname=__file__, lineno=0, msg=msg, args=(), exc_info=None
    )


def test_context_filter_injects_user_id():
    with logging_user("user-123"):
        record = create_log_record("Test message")
        result = ContextFilter().filter(record)
    assert result is True
    assert record.msg == "[user=user-123] Test message"


def test_logging_user_restores_outer_caller():
    with logging_user("user-1"):
        with logging_user("user-2"):
            assert user_id_context.get() == "user-2"
        assert user_id_context.get() == "user-1"
    assert user_id_context.get() is None


def test_logging_user_resets_on_error():
    with pytest.raises(RuntimeError):
        with logging_user("user-1"):
            raise RuntimeError("boom")
    assert user_id_context.get() is None


def test_context_filter_no_user_id():
    record = create_log_record("Test message")
    result = ContextFilter().filter(record)
    assert result is True
    assert record.msg == "Test message"


def test_setup_logging_sets_root_logger(monkeypatch):
    class DummyHandler(logging.StreamHandler):
        def __init__(self):
            super().__init__()
            self.filters = []
            self.formatter = None

        def setFormatter(self, fmt):
            self.formatter = fmt

        def addFilter(self, filter):
            self.filters.append(filter)

    dummy_logger = logging.getLogger("test_logger")
    monkeypatch.setattr(logging, "getLogger", lambda: dummy_logger)
    dummy_logger.handlers.clear()
    monkeypatch.setattr(logging, "StreamHandler", DummyHandler)

    setup_logging()

    assert len(dummy_logger.handlers) == 1
    handler = dummy_logger.handlers[0]
    assert any(isinstance(f, ContextFilter) for f in handler.filters)
    assert handler.formatter is not None


def test_setup_logging_does_not_duplicate_handlers(monkeypatch):
    dummy_logger = logging.getLogger("test_logger_repeat")
    monkeypatch.setattr(logging, "getLogger", lambda: dummy_logger)
    dummy_logger.handlers.clear()

    setup_logging()
    setup_logging()

    assert len(dummy_logger.handlers) == 1
