"""
Logging for the swap engine.

Every component logs one JSON object per line (``{"event": ..., ...}``).
The console gets those lines through rich, with noisy upstream warnings
rate-limited per event and symbol/order. The optional file sink re-wraps
each line with timestamp and level and is written from a listener thread.
"""

from __future__ import annotations

import atexit
import json
import logging
import queue
import sys
import time
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Dict, Iterable, Optional

from rich.logging import RichHandler

# Events that repeat every refresh/tick while an upstream is down.
THROTTLED_EVENTS = frozenset({
    "price_refresh_failed",
    "price_feed_rate_limited",
    "unknown_ticker",
    "observer_tick_skipped",
    "partner_quote_fallback",
})


def _event_payload(record: logging.LogRecord) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(record.getMessage())
    except (ValueError, TypeError):
        return None
    return data if isinstance(data, dict) else None


class JsonFormatter(logging.Formatter):
    """File format: one JSON line with ts (ms), level, logger name and message."""

    def format(self, record: logging.LogRecord) -> str:
        out: Dict[str, Any] = {
            "ts": int(record.created * 1000),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        data = _event_payload(record)
        if data is not None and "event" in data:
            out["event"] = data["event"]
        if record.exc_info:
            out["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(out, separators=(",", ":"), default=str)


class ThrottledFilter(logging.Filter):
    """
    Drop repeats of a throttled event for cooldown_sec.

    Repeats are matched on the event name plus the symbol or order id in the
    payload, so an outage for one ticker does not hide another.
    """

    def __init__(self, cooldown_sec: float = 30.0, throttled_events: Optional[Iterable[str]] = None,
                 clock=time.monotonic):
        super().__init__()
        self.cooldown_sec = cooldown_sec
        self.events = frozenset(throttled_events) if throttled_events is not None else THROTTLED_EVENTS
        self._clock = clock
        self._next_allowed: Dict[str, float] = {}

    def filter(self, record: logging.LogRecord) -> bool:
        data = _event_payload(record)
        if data is None or data.get("event") not in self.events:
            return True
        key = "{}:{}".format(data["event"], data.get("symbol") or data.get("order_id") or "")
        now = self._clock()
        if now < self._next_allowed.get(key, float("-inf")):
            return False
        self._next_allowed[key] = now + self.cooldown_sec
        return True


class _DroppingQueueHandler(QueueHandler):
    """QueueHandler that never blocks the caller; overflow is counted."""

    def __init__(self, q: queue.Queue):
        super().__init__(q)
        self.dropped = 0

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            self.dropped += 1


def _level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _console_handler(throttle: bool) -> logging.Handler:
    handler = RichHandler(show_path=False, markup=False, rich_tracebacks=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    if throttle:
        handler.addFilter(ThrottledFilter())
    return handler


def _file_handler(path: str, queued: bool) -> logging.Handler:
    sink = logging.FileHandler(path)
    sink.setFormatter(JsonFormatter())
    if not queued:
        return sink
    handler = _DroppingQueueHandler(queue.Queue(maxsize=10000))
    listener = QueueListener(handler.queue, sink)
    listener.start()

    def _drain() -> None:
        listener.stop()
        sink.close()
        if handler.dropped:
            sys.stderr.write(f"[logging] dropped {handler.dropped} records on a full queue\n")

    atexit.register(_drain)
    return handler


def build_logger(
    name: str = "swapengine",
    level: int | str = logging.INFO,
    file_path: Optional[str] = "swapengine.log",
    async_file: bool = True,
    throttle_warnings: bool = True,
) -> logging.Logger:
    """
    Configure and return the named logger.

    Calling it again for a configured logger only changes the level.
    ``file_path=None`` keeps output on the console.
    """
    lvl = _level(level)
    logger = logging.getLogger(name)
    logger.setLevel(lvl)
    if not logger.handlers:
        logger.addHandler(_console_handler(throttle_warnings))
        if file_path:
            logger.addHandler(_file_handler(file_path, async_file))
        logger.propagate = False
    for handler in logger.handlers:
        handler.setLevel(lvl)
    return logger


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **data) -> None:
    """log_event(log, "order_created", order_id="AB12CD34") logs {"event": "order_created", ...}."""
    logger.log(level, json.dumps({"event": event, **data}, default=str))
