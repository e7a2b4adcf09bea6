import logging
import threading
from collections import defaultdict
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


STORIES_REFRESH = "stories-refresh"


class RefreshBus:
    """Named topics the host page listens on to reload its data."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: Dict[str, List[Callable[[], None]]] = defaultdict(list)

    def subscribe(self, topic: str, callback: Callable[[], None]) -> Callable[[], None]:
        with self._lock:
            self._subscribers[topic].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(topic, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def publish(self, topic: str) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(topic, []))
        for callback in callbacks:
            try:
                callback()
            except Exception:  # noqa: BLE001
                logger.exception("Subscriber of '%s' raised", topic)


class StoriesPoller:
    """Publish a stories refresh at a fixed interval while the viewer is closed."""

    def __init__(
        self,
        bus: RefreshBus,
        interval: float = 60.0,
        is_paused: Optional[Callable[[], bool]] = None,
        topic: str = STORIES_REFRESH,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")

        self._bus = bus
        self._interval = interval
        self._is_paused = is_paused or (lambda: False)
        self._topic = topic
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="StoriesPoller", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if not self._thread:
            return
        self._stop_event.set()
        self._thread.join(timeout=self._interval)
        self._thread = None

    def poll_once(self) -> bool:
        """Publish unless paused; returns whether a refresh went out."""
        try:
            if self._is_paused():
                return False
        except Exception:  # noqa: BLE001
            logger.exception("Pause predicate raised, skipping refresh")
            return False
        self._bus.publish(self._topic)
        return True

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            self.poll_once()
