"""Metrics collector: thread-safe counters for the Slack sink."""

import threading
import time
from collections import deque

# Latency stats cover the most recent requests only.
SEND_TIME_WINDOW = 1000


class MetricsCollector:
    """Collects and reports metrics about event buffering and delivery."""

    def __init__(self, window: int = SEND_TIME_WINDOW) -> None:
        self._lock = threading.Lock()
        self._accepted: int = 0
        self._dropped: int = 0
        self._filtered: int = 0
        self._delivered: int = 0
        self._failed: int = 0
        self._discarded: int = 0
        self._batches: int = 0
        self._send_times: deque[float] = deque(maxlen=window)
        self._flush_triggers: dict = {"size": 0, "timer": 0, "shutdown": 0}
        self._start_time = time.monotonic()

    def record_accepted(self) -> None:
        with self._lock:
            self._accepted += 1

    def record_dropped(self) -> None:
        with self._lock:
            self._dropped += 1

    def record_filtered(self) -> None:
        with self._lock:
            self._filtered += 1

    def record_discarded(self, count: int) -> None:
        with self._lock:
            self._discarded += count

    def record_batch(self, trigger: str = "timer") -> None:
        with self._lock:
            self._batches += 1
            self._flush_triggers[trigger] = self._flush_triggers.get(trigger, 0) + 1

    def record_delivery(self, success: bool, send_time_ms: float) -> None:
        """Record the outcome of a single webhook request.

        Args:
            success: Whether the endpoint accepted the message.
            send_time_ms: Time taken by the request, in milliseconds.
        """
        with self._lock:
            if success:
                self._delivered += 1
            else:
                self._failed += 1
            self._send_times.append(send_time_ms)

    def snapshot(self) -> dict:
        """Return a point-in-time snapshot of all collected metrics."""
        with self._lock:
            send_times = list(self._send_times)
            counters = {
                "accepted": self._accepted,
                "dropped": self._dropped,
                "filtered": self._filtered,
                "delivered": self._delivered,
                "failed": self._failed,
                "discarded": self._discarded,
                "batches_flushed": self._batches,
                "flush_triggers": dict(self._flush_triggers),
            }

        avg_send = sum(send_times) / len(send_times) if send_times else 0.0
        return {
            **counters,
            "avg_send_time_ms": avg_send,
            "p95_send_time_ms": self._percentile(send_times, 95),
            "uptime_seconds": time.monotonic() - self._start_time,
        }

    @staticmethod
    def _percentile(data: list, pct: float) -> float:
        """Linearly interpolated percentile (0-100) of *data*; 0.0 when empty."""
        if not data:
            return 0.0

        ordered = sorted(data)
        position = (len(ordered) - 1) * pct / 100
        lower = int(position)
        if lower + 1 >= len(ordered):
            return float(ordered[-1])
        weight = position - lower
        return float(ordered[lower] * (1 - weight) + ordered[lower + 1] * weight)
