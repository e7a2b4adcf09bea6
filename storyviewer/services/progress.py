import threading
from typing import List, Optional

from storyviewer.domain.story_session import TimingSnapshot

from .scheduler import TimerHandle


DEFAULT_SAMPLE_INTERVAL_MS = 100


class ProgressIndicator:
    """Fill percentage of the active item, sampled at a fixed cadence."""

    def __init__(self, scheduler, sample_interval_ms: float = DEFAULT_SAMPLE_INTERVAL_MS):
        if sample_interval_ms <= 0:
            raise ValueError("sample_interval_ms must be positive")
        self._scheduler = scheduler
        self._sample_interval_ms = sample_interval_ms
        self._lock = threading.Lock()
        self._handle: Optional[TimerHandle] = None
        self._generation = 0
        self._percent = 0.0
        self._duration_ms = 0.0
        self._timing = TimingSnapshot()

    @property
    def percent(self) -> float:
        with self._lock:
            return self._percent

    @property
    def sampling(self) -> bool:
        with self._lock:
            handle = self._handle
        return handle is not None and handle.active

    def start(self, duration_ms: float, timing: TimingSnapshot) -> None:
        self.stop()
        with self._lock:
            self._duration_ms = max(float(duration_ms), 1.0)
            self._timing = timing
            generation = self._generation
        if timing.is_paused:
            return
        self._sample(generation)
        if self.percent >= 100.0:
            return

        handle = self._scheduler.call_every(self._sample_interval_ms, lambda: self._sample(generation))
        with self._lock:
            # Stopped or already full while the sampler was being scheduled.
            stale = generation != self._generation or self._percent >= 100.0
            if not stale:
                self._handle = handle
        if stale:
            handle.cancel()

    def tick(self) -> float:
        with self._lock:
            generation = self._generation
        self._sample(generation)
        return self.percent

    def stop(self) -> None:
        """Stop sampling and keep the last value."""
        with self._lock:
            self._generation += 1
            handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()

    def reset(self) -> None:
        self.stop()
        with self._lock:
            self._percent = 0.0
            self._timing = TimingSnapshot()

    def fills(self, item_count: int, active_index: int) -> List[float]:
        current = self.percent
        fills = []
        for index in range(item_count):
            if index < active_index:
                fills.append(100.0)
            elif index == active_index:
                fills.append(current)
            else:
                fills.append(0.0)
        return fills

    def _sample(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._timing.item_started_at is None:
                return
            elapsed = self._timing.elapsed(self._scheduler.now_ms())
            value = min(elapsed / self._duration_ms, 1.0) * 100.0
            self._percent = max(self._percent, max(0.0, value))
            handle = None
            if self._percent >= 100.0:
                handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()
