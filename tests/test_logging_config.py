import io
import json
import logging

import pytest

from switchboard.logging_config import JSONFormatter, conversation_logger, get_logger, setup_logging


@pytest.fixture
def captured():
    stream = io.StringIO()
    setup_logging("DEBUG", stream=stream)
    yield stream
    logging.getLogger().handlers.clear()


def last_entry(stream):
    return json.loads(stream.getvalue().strip().splitlines()[-1])


class TestJSONFormatter:
    def test_promotes_conversation_fields(self):
        record = logging.LogRecord("switchboard.test", logging.INFO, __file__, 1, "Routed", None, None)
        record.context = {"conversation_id": "conv-1", "department": "technical", "score": 0.9}

        entry = json.loads(JSONFormatter().format(record))

        assert entry["message"] == "Routed"
        assert entry["level"] == "INFO"
        assert entry["conversation_id"] == "conv-1"
        assert entry["department"] == "technical"
        assert entry["context"]["score"] == 0.9

    def test_plain_record(self):
        record = logging.LogRecord("switchboard.test", logging.WARNING, __file__, 1, "Plain", None, None)

        entry = json.loads(JSONFormatter().format(record))

        assert "context" not in entry
        assert "conversation_id" not in entry


class TestSetupLogging:
    def test_writes_json_lines(self, captured):
        get_logger("router").info("Decision made", extra={"context": {"conversation_id": "conv-2"}})

        entry = last_entry(captured)
        assert entry["logger"] == "switchboard.router"
        assert entry["conversation_id"] == "conv-2"

    def test_unknown_level_falls_back_to_info(self, captured):
        setup_logging("chatty", stream=captured)
        assert logging.getLogger().level == logging.INFO

    def test_quiets_http_client_loggers(self, captured):
        assert logging.getLogger("httpx").level == logging.WARNING


class TestConversationLogger:
    def test_binds_conversation_id(self, captured):
        log = conversation_logger(get_logger("router"), "conv-3", department="sales")

        log.info("Transfer", extra={"context": {"reason": "keywords"}})

        entry = last_entry(captured)
        assert entry["conversation_id"] == "conv-3"
        assert entry["department"] == "sales"
        assert entry["context"]["reason"] == "keywords"
