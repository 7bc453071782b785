"""Logger configuration utilities with correlation ID support."""
from __future__ import annotations

import contextvars
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

_CORRELATION_ID = contextvars.ContextVar("correlation_id", default="-")


class CorrelationIdFilter(logging.Filter):
    """Inject the active correlation ID into each log record."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - delegation
        record.correlation_id = _CORRELATION_ID.get()
        return True


class StructuredFormatter(logging.Formatter):
    """Emit structured JSON log records."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", "-"),
        }
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            payload.update(extra_fields)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def configure_logging(
    level: str = "INFO",
    *,
    structured: bool = False,
    log_file: Optional[Path] = None,
) -> None:
    """Configure root logging for the copilot CLI.

    Records go to stderr, or to ``log_file`` when given so interactive sessions
    keep the terminal clean.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.addFilter(CorrelationIdFilter())
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(name)s | %(levelname)s | cid=%(correlation_id)s | %(message)s"
        )
        handler.setFormatter(formatter)
    root.addHandler(handler)


def set_correlation_id(value: Optional[str]) -> None:
    """Set the active correlation ID for subsequent log records."""
    _CORRELATION_ID.set(value or "-")


def get_correlation_id() -> str:
    """Return the active correlation ID for the current context."""
    return _CORRELATION_ID.get()


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Retrieve a module-level logger."""
    return logging.getLogger(name if name else "ai_copilot")


_LLM_LOGGER = get_logger("ai_copilot.llm")


def log_llm_request(provider: str, model: str, message_count: int, *, stream: bool) -> None:
    """Record an outgoing completion request."""
    _LLM_LOGGER.info(
        "LLM request provider=%s model=%s messages=%d stream=%s",
        provider,
        model,
        message_count,
        stream,
        extra={
            "extra_fields": {
                "provider": provider,
                "model": model,
                "messages": message_count,
                "stream": stream,
            }
        },
    )


def log_llm_response(
    provider: str,
    model: str,
    response_chars: int,
    error: Optional[BaseException] = None,
) -> None:
    """Record the outcome of a completion request."""
    fields = {"provider": provider, "model": model, "response_chars": response_chars}
    if error is not None:
        fields["error"] = str(error)
        _LLM_LOGGER.warning(
            "LLM response provider=%s model=%s failed: %s",
            provider,
            model,
            error,
            extra={"extra_fields": fields},
        )
        return
    _LLM_LOGGER.info(
        "LLM response provider=%s model=%s chars=%d",
        provider,
        model,
        response_chars,
        extra={"extra_fields": fields},
    )


__all__ = [
    "configure_logging",
    "get_logger",
    "get_correlation_id",
    "set_correlation_id",
    "log_llm_request",
    "log_llm_response",
]
