import logging
import threading
import time
from typing import Callable, Optional, Set

logger = logging.getLogger(__name__)


class TimerHandle:
    """Cancellable reference to a pending one-shot or repeating callback."""

    def __init__(self, on_cancel: Optional[Callable[["TimerHandle"], None]] = None):
        self._cancelled = threading.Event()
        self._finished = False
        self._on_cancel = on_cancel

    @property
    def active(self) -> bool:
        return not self._cancelled.is_set() and not self._finished

    def cancel(self) -> None:
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        if self._on_cancel:
            self._on_cancel(self)

    def _mark_finished(self) -> None:
        self._finished = True


class ThreadScheduler:
    """Monotonic clock plus timers backed by daemon threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: Set[TimerHandle] = set()
        self._timers = {}

    def now_ms(self) -> float:
        return time.monotonic() * 1000.0

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(on_cancel=self._discard)

        def fire():
            with self._lock:
                if not handle.active:
                    return
                handle._mark_finished()
                self._pending.discard(handle)
                self._timers.pop(handle, None)
            _invoke(callback, "call_later")

        timer = threading.Timer(max(0.0, delay_ms) / 1000.0, fire)
        timer.daemon = True
        with self._lock:
            self._pending.add(handle)
            self._timers[handle] = timer
        timer.start()
        return handle

    def call_every(self, interval_ms: float, callback: Callable[[], None]) -> TimerHandle:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")

        handle = TimerHandle(on_cancel=self._discard)
        interval = interval_ms / 1000.0

        def run():
            while not handle._cancelled.wait(interval):
                _invoke(callback, "call_every")

        with self._lock:
            self._pending.add(handle)
        threading.Thread(target=run, name="ThreadScheduler.every", daemon=True).start()
        return handle

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def cancel_all(self) -> None:
        with self._lock:
            handles = list(self._pending)
        for handle in handles:
            handle.cancel()

    def _discard(self, handle: TimerHandle) -> None:
        with self._lock:
            self._pending.discard(handle)
            timer = self._timers.pop(handle, None)
        if timer is not None:
            timer.cancel()


def run_in_background(target: Callable[[], None], name: str = "background") -> None:
    threading.Thread(target=lambda: _invoke(target, name), name=name, daemon=True).start()


def _invoke(callback: Callable[[], None], label: str) -> None:
    try:
        callback()
    except Exception:  # noqa: BLE001
        logger.exception("Callback '%s' raised", label)
