"""Logging handler that forwards stdlib log records to a SlackSink."""

import logging
import threading
from typing import Optional

from slack_log_sink.client import WebhookClient
from slack_log_sink.config import SinkOptions
from slack_log_sink.formatter import EventTextFormatter
from slack_log_sink.models import event_from_record
from slack_log_sink.sink import SlackSink

# Records from these loggers would feed back into the sink.
IGNORED_LOGGERS = ("slack_log_sink", "httpx", "httpcore")


def _is_ignored(name: str) -> bool:
    return any(name == prefix or name.startswith(prefix + ".") for prefix in IGNORED_LOGGERS)


class InternalRecordFilter(logging.Filter):
    """Rejects records the sink produces while delivering.

    Filters run in ``Handler.handle`` before the handler lock is taken.
    ``logging.shutdown`` holds that lock while it waits in ``close`` for
    the final flush, so the sink thread's own records must never reach it.
    """

    def __init__(self, sink: SlackSink):
        super().__init__()
        self._sink = sink

    def filter(self, record: logging.LogRecord) -> bool:
        if _is_ignored(record.name):
            return False
        return not self._sink.owns_thread(record.thread)


class SlackHandler(logging.Handler):
    """Bridges the ``logging`` module to a SlackSink.

    ``emit`` only converts the record and queues it; delivery happens on
    the sink's background thread. ``close`` flushes and shuts the sink down.
    """

    def __init__(
        self,
        options: SinkOptions,
        level: int = logging.NOTSET,
        text_formatter: Optional[EventTextFormatter] = None,
        client: Optional[WebhookClient] = None,
    ):
        super().__init__(level)
        self._sink = SlackSink(options, text_formatter=text_formatter, client=client)
        self._local = threading.local()
        self.addFilter(InternalRecordFilter(self._sink))

    @property
    def sink(self) -> SlackSink:
        return self._sink

    def emit(self, record: logging.LogRecord):
        if getattr(self._local, "emitting", False):
            return
        self._local.emitting = True
        try:
            self._sink.accept(event_from_record(record))
        except Exception:
            self.handleError(record)
        finally:
            self._local.emitting = False

    def flush(self):
        """Nothing to do here: batches are flushed by the sink's scheduler."""

    def close(self):
        try:
            self._sink.close()
        finally:
            super().close()


def add_slack_handler(
    options: SinkOptions,
    logger: Optional[logging.Logger] = None,
    level: int = logging.NOTSET,
    text_formatter: Optional[EventTextFormatter] = None,
) -> SlackHandler:
    """Attach a SlackHandler to *logger* (the root logger by default)."""
    handler = SlackHandler(options, level=level, text_formatter=text_formatter)
    (logger or logging.getLogger()).addHandler(handler)
    return handler
