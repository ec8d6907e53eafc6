"""
Block-height monitor with a fast and a slow cadence.

A daemon thread ticks every FAST_INTERVAL. Each tick either catches up with
a slow-mode poll (nothing polled for SLOW_INTERVAL) or walks the pending
action queue: every fresh action forces a poll, every expired action is
dropped. A poll that sees a new height resolves one pending action and
hands the raw /chain stats to the user callback.

The queue is a liveness heuristic, not a confirmation mechanism: an
invoke can expire before its block is seen, and one height change
resolves exactly one action however many blocks it covers.
"""
import logging
import threading
import time
from typing import Any, Callable

from ledgerlink.config import FAST_INTERVAL, FRESHNESS_WINDOW, SLOW_INTERVAL
from ledgerlink.errors import LedgerError

log = logging.getLogger("ledgerlink.monitor")

StatsCallback = Callable[[dict], Any]


class ActionQueue:
    """LIFO stack of dispatch timestamps, one per unsettled invoke."""

    def __init__(self):
        self._items: list[float] = []
        self._lock = threading.Lock()

    def push(self, ts: float):
        with self._lock:
            self._items.append(ts)

    def pop(self) -> float | None:
        with self._lock:
            return self._items.pop() if self._items else None

    def snapshot(self) -> list[float]:
        with self._lock:
            return list(self._items)

    def discard(self, ts: float) -> bool:
        with self._lock:
            try:
                self._items.remove(ts)
            except ValueError:
                return False
            return True

    def __len__(self):
        with self._lock:
            return len(self._items)


class MonitorHandle:
    """Returned by start(); cancel() stops the background thread."""

    def __init__(self, monitor: "BlockHeightMonitor"):
        self._monitor = monitor

    def cancel(self, timeout: float = 1.0):
        self._monitor.stop(timeout)

    @property
    def cancelled(self) -> bool:
        return self._monitor.stopped

    @property
    def last_height(self) -> int:
        return self._monitor.last_height


class BlockHeightMonitor:
    """
    poll() must return the /chain stats dict or raise LedgerError.
    The clock is injectable so ticks can be driven deterministically.
    """

    def __init__(self, poll: Callable[[], dict], callback: StatsCallback | None,
                 actions: ActionQueue, *, clock=time.time,
                 fast_interval: float = FAST_INTERVAL,
                 slow_interval: float = SLOW_INTERVAL,
                 freshness_window: float = FRESHNESS_WINDOW):
        self._poll = poll
        self.callback = callback
        self.actions = actions
        self._clock = clock
        self.fast_interval = fast_interval
        self.slow_interval = slow_interval
        self.freshness_window = freshness_window
        self.last_polled_at = 0.0
        self.last_height = 0
        self._height_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    # ── lifecycle ─────────────────────────────────────────────

    def start(self) -> MonitorHandle:
        if self._thread is None:
            self._thread = threading.Thread(target=self._run, daemon=True,
                                            name="ledgerlink-monitor")
            self._thread.start()
            log.info("Block height monitor started (fast=%ss slow=%ss)",
                     self.fast_interval, self.slow_interval)
        return MonitorHandle(self)

    def stop(self, timeout: float = 1.0):
        self._stop.set()
        t = self._thread
        if t is not None and t is not threading.current_thread():
            t.join(timeout=timeout)
        log.info("Block height monitor stopped")

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def _run(self):
        while not self._stop.wait(self.fast_interval):
            try:
                self.tick()
            except Exception:
                log.exception("Monitor tick failed")

    # ── one tick ──────────────────────────────────────────────

    def tick(self) -> int:
        """Run one heartbeat. Returns how many polls it made."""
        now = self._clock()
        if self.last_polled_at + self.slow_interval < now:
            log.debug("Slow mode poll")
            self._poll_once(now)
            return 1

        polls = 0
        for ts in self.actions.snapshot():
            if self._stop.is_set():
                break
            if now - ts < self.freshness_window:
                log.debug("Unresolved action, must poll")
                self._poll_once(now)
                polls += 1
            else:
                self.actions.discard(ts)
        return polls

    def _poll_once(self, now: float):
        self.last_polled_at = now
        try:
            stats = self._poll()
        except LedgerError as exc:
            log.warning("Chain stats poll failed, will retry: %s", exc)
            return
        self.observe(stats)

    def observe(self, stats) -> bool:
        """Feed one /chain stats payload. True when it carried a new height."""
        if not isinstance(stats, dict) or not stats.get("height"):
            return False
        height = stats["height"]
        with self._height_lock:
            if height == self.last_height:
                return False
            self.last_height = height
        log.info("New block height %s", height)
        self.actions.pop()
        if self.callback is not None:
            self.callback(stats)
        return True
