import logging
from typing import Callable, Optional

from storyviewer.domain.story_session import TimingSnapshot

from .scheduler import TimerHandle

logger = logging.getLogger(__name__)


class ItemTimer:
    """One-shot advance timer for the active story item."""

    def __init__(self, scheduler, on_elapsed: Callable[[int], None]):
        self._scheduler = scheduler
        self._on_elapsed = on_elapsed
        self._handle: Optional[TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None and self._handle.active

    def arm(self, duration_ms: float, timing: TimingSnapshot, token: int) -> None:
        """Arm for whatever is left of the item's duration; paused snapshots stay unarmed."""
        self.cancel()
        if timing.is_paused:
            return

        remaining = timing.remaining(duration_ms, self._scheduler.now_ms())
        logger.debug("Arming item timer for %.0f ms (token=%s)", remaining, token)
        self._handle = self._scheduler.call_later(remaining, lambda: self._on_elapsed(token))

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
