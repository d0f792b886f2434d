"""Batch scheduler: background thread that drains the buffer into batches."""

import logging
import threading
import time
from typing import Callable, Optional

from slack_log_sink.buffer import EventBuffer
from slack_log_sink.diagnostics import selflog
from slack_log_sink.models import LogEvent

logger = logging.getLogger(__name__)

TRIGGER_SIZE = "size"
TRIGGER_TIMER = "timer"
TRIGGER_SHUTDOWN = "shutdown"

# on_batch(batch, trigger, deadline) -> None
BatchCallback = Callable[[list[LogEvent], str, Optional[float]], None]


class BatchScheduler:
    """Flushes the buffer on a timer, or as soon as a full batch is waiting.

    It is the buffer's only consumer and the only caller of ``on_batch``, so
    batches never overlap. ``on_batch`` runs on the scheduler thread; a
    failing callback is logged and the loop carries on with the next batch.

    ``stop`` wakes the thread for one final drain bounded by
    ``shutdown_timeout``. Whatever is still buffered after that deadline is
    discarded. ``on_stopped`` runs on the scheduler thread once the final
    drain is over, which is where the transport gets closed.
    """

    def __init__(
        self,
        buffer: EventBuffer,
        period: float,
        on_batch: BatchCallback,
        shutdown_timeout: float = 10.0,
        on_stopped: Optional[Callable[[], None]] = None,
        on_discard: Optional[Callable[[int], None]] = None,
    ):
        self._buffer = buffer
        self._period = period
        self._on_batch = on_batch
        self._shutdown_timeout = shutdown_timeout
        self._on_stopped = on_stopped
        self._on_discard = on_discard

        self._wake = threading.Event()
        self._stopping = threading.Event()
        self._size_triggered = False
        self._thread = threading.Thread(
            target=self._run, name="slack-sink-scheduler", daemon=True
        )

    # Public API

    def start(self):
        self._thread.start()

    def notify_full(self):
        """Called by the buffer when a full batch is waiting."""
        self._size_triggered = True
        self._wake.set()

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Request the final drain and wait for the thread to finish.

        Returns True if the thread finished within *timeout*. The default
        timeout allows for the shutdown deadline plus a grace period for a
        request that is already in flight.
        """
        self._stopping.set()
        self._wake.set()
        if not self._thread.is_alive():
            return True
        if timeout is None:
            timeout = self._shutdown_timeout + 5.0
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            selflog.warning(
                "Slack sink did not finish its final flush within %.1fs", timeout
            )
            return False
        return True

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive()

    def owns_thread(self, ident: Optional[int]) -> bool:
        """True if *ident* is the scheduler thread."""
        return ident is not None and ident == self._thread.ident

    # Internal helpers

    def _run(self):
        try:
            while not self._stopping.is_set():
                self._wake.wait(timeout=self._period)
                self._wake.clear()
                if self._stopping.is_set():
                    break
                trigger = TRIGGER_SIZE if self._size_triggered else TRIGGER_TIMER
                self._size_triggered = False
                self._drain(trigger, deadline=None)

            deadline = time.monotonic() + self._shutdown_timeout
            self._drain(TRIGGER_SHUTDOWN, deadline=deadline, until_empty=True)
            self._discard_remaining()
        finally:
            if self._on_stopped is not None:
                try:
                    self._on_stopped()
                except Exception:
                    logger.exception("Slack sink shutdown callback failed")

    def _drain(self, trigger: str, deadline: Optional[float], until_empty: bool = False):
        """Emit batches until the buffer no longer holds a full one
        (or is empty, when *until_empty*)."""
        batch_size = self._buffer.batch_size
        while True:
            if deadline is None and self._stopping.is_set():
                return
            if deadline is not None and time.monotonic() >= deadline:
                return
            batch = self._buffer.drain(batch_size)
            if not batch:
                return
            self._safe_emit(batch, trigger, deadline)
            if len(batch) < batch_size and not until_empty:
                return

    def _safe_emit(self, batch: list[LogEvent], trigger: str, deadline: Optional[float]):
        """Invoke on_batch so that a failing callback never kills the loop."""
        try:
            self._on_batch(batch, trigger, deadline)
            logger.debug("Flushed batch of %d events (%s)", len(batch), trigger)
        except Exception:
            selflog.exception(
                "Failed to emit a batch of %d events to Slack", len(batch)
            )

    def _discard_remaining(self):
        dropped = self._buffer.close()
        if dropped:
            selflog.warning(
                "Discarded %d log events still queued when the Slack sink shut down",
                dropped,
            )
            if self._on_discard is not None:
                self._on_discard(dropped)
