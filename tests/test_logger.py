from __future__ import annotations

import json
import logging

from ai_copilot.utils.logger import (
    CorrelationIdFilter,
    StructuredFormatter,
    configure_logging,
    get_correlation_id,
    log_llm_response,
    set_correlation_id,
)


class ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.lines: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.lines.append(self.format(record))


def test_structured_records_carry_correlation_id_and_fields():
    handler = ListHandler()
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(StructuredFormatter())
    logger = logging.getLogger("ai_copilot.llm")
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    set_correlation_id("abc123")
    try:
        log_llm_response("ollama", "llama3.2", 0, RuntimeError("boom"))
    finally:
        logger.removeHandler(handler)
        set_correlation_id(None)

    payload = json.loads(handler.lines[0])
    assert payload["correlation_id"] == "abc123"
    assert payload["level"] == "WARNING"
    assert payload["provider"] == "ollama"
    assert payload["error"] == "boom"
    assert get_correlation_id() == "-"


def test_configure_logging_writes_to_file(tmp_path):
    log_file = tmp_path / "logs" / "copilot.log"
    configure_logging("info", log_file=log_file)
    try:
        logging.getLogger("ai_copilot.test").info("hello file")
    finally:
        for handler in logging.getLogger().handlers:
            handler.close()
        logging.getLogger().handlers.clear()

    assert "hello file" in log_file.read_text(encoding="utf-8")
