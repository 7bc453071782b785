"""Ordered result stream fed by a single background worker."""
from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from typing import Callable, Iterator, List, Literal, Optional

from ai_copilot.utils.logger import get_correlation_id, get_logger, set_correlation_id

LOGGER = get_logger(__name__)

EventKind = Literal["text", "tool_result", "error", "cancelled"]


@dataclass(frozen=True)
class StreamEvent:
    kind: EventKind
    text: str = ""
    error: Optional[BaseException] = None


class StreamCancelled(Exception):
    """Raised inside the worker when the consumer cancelled the stream."""


_CLOSED = object()


class ResultStream:
    """Events published by one worker thread, delivered once and in order.

    ``cancel()`` stops delivery at the next publish point; the stream then
    ends with a single ``cancelled`` event instead of going quiet.
    """

    def __init__(self) -> None:
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._cancel = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._done = threading.Event()
        self._drained = False

    # Worker side --------------------------------------------------------

    def start(self, work: Callable[["ResultStream"], None], *, name: str = "copilot-worker") -> "ResultStream":
        if self._thread is not None:
            raise RuntimeError("stream already started")
        correlation_id = get_correlation_id()
        self._thread = threading.Thread(target=self._run, args=(work, correlation_id), name=name, daemon=True)
        self._thread.start()
        return self

    def publish(self, text: str, kind: EventKind = "text") -> None:
        if self._cancel.is_set():
            raise StreamCancelled()
        if text:
            self._queue.put(StreamEvent(kind=kind, text=text))

    def _run(self, work: Callable[["ResultStream"], None], correlation_id: str) -> None:
        set_correlation_id(correlation_id)
        try:
            work(self)
        except StreamCancelled:
            LOGGER.info("Prompt cancelled; dropping remaining output")
        except Exception as exc:
            LOGGER.exception("Prompt failed")
            if not self._cancel.is_set():
                self._queue.put(StreamEvent(kind="error", text=str(exc), error=exc))
        finally:
            if self._cancel.is_set():
                self._queue.put(StreamEvent(kind="cancelled", text="Cancelled"))
            self._done.set()
            self._queue.put(_CLOSED)

    # Consumer side ------------------------------------------------------

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def __iter__(self) -> Iterator[StreamEvent]:
        while not self._drained:
            item = self._queue.get()
            if item is _CLOSED:
                self._drained = True
                return
            yield item  # type: ignore[misc]

    def collect(self) -> List[StreamEvent]:
        return list(self)

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)


__all__ = ["EventKind", "ResultStream", "StreamCancelled", "StreamEvent"]
