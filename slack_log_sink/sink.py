"""Slack sink: wires together the buffer, scheduler, formatter and client."""

import logging
import threading
import time
from typing import Optional

from slack_log_sink.buffer import EventBuffer
from slack_log_sink.client import WebhookClient
from slack_log_sink.config import SinkOptions
from slack_log_sink.diagnostics import selflog
from slack_log_sink.errors import ConfigurationError
from slack_log_sink.formatter import EventTextFormatter, MessageFormatter
from slack_log_sink.metrics import MetricsCollector
from slack_log_sink.models import LogEvent
from slack_log_sink.scheduler import BatchScheduler

logger = logging.getLogger(__name__)


class SlackSink:
    """Accepts log events from any thread and posts them to a Slack webhook
    in batches from a single background thread.

    ``accept`` never blocks on the network and never raises. ``close``
    performs the final flush and then releases the HTTP client; the client
    is closed by the scheduler thread itself, after its last request.
    """

    def __init__(
        self,
        options: SinkOptions,
        text_formatter: Optional[EventTextFormatter] = None,
        client: Optional[WebhookClient] = None,
    ):
        if options is None:
            raise ConfigurationError("options are required")

        self._options = options
        self._formatter = MessageFormatter(options, text_formatter)
        self._client = client or WebhookClient(timeout=options.request_timeout)
        self._metrics = MetricsCollector()
        self._closed = False
        self._close_lock = threading.Lock()

        self._buffer = EventBuffer(
            batch_size=options.batch_size_limit,
            queue_limit=options.queue_limit,
            on_threshold=self._notify_full,
        )
        self._scheduler = BatchScheduler(
            buffer=self._buffer,
            period=options.period,
            on_batch=self._emit_batch,
            shutdown_timeout=options.shutdown_timeout,
            on_stopped=self._client.close,
            on_discard=self._metrics.record_discarded,
        )
        self._scheduler.start()

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def accept(self, event: LogEvent) -> None:
        """Queue an event for delivery. Never raises into the caller."""
        try:
            if self._closed:
                selflog.warning("Slack sink is closed, dropping log event")
                return
            if event.level < self._options.minimum_level:
                self._metrics.record_filtered()
                return
            if self._buffer.add(event):
                self._metrics.record_accepted()
            elif self._buffer.closed:
                selflog.warning("Slack sink is closed, dropping log event")
            else:
                self._metrics.record_dropped()
                selflog.warning(
                    "Slack sink queue is full (%d events), dropping log event",
                    self._options.queue_limit,
                )
        except Exception:
            selflog.exception("Slack sink failed to accept a log event")

    def _notify_full(self):
        self._scheduler.notify_full()

    # ------------------------------------------------------------------
    # Scheduler callback
    # ------------------------------------------------------------------

    def _emit_batch(self, batch: list[LogEvent], trigger: str, deadline: Optional[float]):
        """Format and post each event in order, one request per event."""
        self._metrics.record_batch(trigger)
        delivered = 0

        for index, event in enumerate(batch):
            if deadline is not None and time.monotonic() >= deadline:
                remaining = len(batch) - index
                self._metrics.record_discarded(remaining)
                selflog.warning(
                    "Shutdown timeout reached, discarding %d undelivered log events",
                    remaining,
                )
                return

            try:
                message = self._formatter.format(event)
            except Exception:
                selflog.exception("Failed to format log event for Slack")
                continue

            start = time.monotonic()
            success = self._client.deliver(self._options.webhook_url, message)
            self._metrics.record_delivery(success, (time.monotonic() - start) * 1000)
            if success:
                delivered += 1

        logger.debug("Delivered %d of %d events (%s)", delivered, len(batch), trigger)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self, timeout: Optional[float] = None) -> bool:
        """Flush what is buffered and shut down. Safe to call more than once.

        Returns False if the final flush was still running when *timeout*
        expired; the HTTP client is then closed by the background thread
        once it finishes.
        """
        with self._close_lock:
            if self._closed:
                return True
            self._closed = True
        return self._scheduler.stop(timeout)

    def owns_thread(self, ident: Optional[int]) -> bool:
        """True if *ident* is the thread that formats and delivers events."""
        return self._scheduler.owns_thread(ident)

    @property
    def options(self) -> SinkOptions:
        return self._options

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def pending_count(self) -> int:
        return self._buffer.pending_count

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
