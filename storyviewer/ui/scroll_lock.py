import threading


class ScrollLock:
    """Counts holders that want the background page frozen."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._holders = 0

    @property
    def held(self) -> bool:
        with self._lock:
            return self._holders > 0

    def acquire(self) -> None:
        with self._lock:
            self._holders += 1

    def release(self) -> None:
        with self._lock:
            if self._holders > 0:
                self._holders -= 1

