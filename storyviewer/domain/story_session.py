from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .states import PlaybackState
from .story import Story, StoryItem


@dataclass(frozen=True)
class TimingSnapshot:
    """
    When the active item started showing and when it was paused (monotonic ms).

    Both slots travel together: every transition builds a new snapshot instead
    of editing one field.
    """

    item_started_at: Optional[float] = None
    paused_at: Optional[float] = None

    @classmethod
    def started(cls, now: float, paused: bool = False) -> "TimingSnapshot":
        return cls(item_started_at=now, paused_at=now if paused else None)

    @property
    def is_paused(self) -> bool:
        return self.paused_at is not None

    def elapsed(self, now: float) -> float:
        if self.item_started_at is None:
            return 0.0
        reference = self.paused_at if self.paused_at is not None else now
        return max(0.0, reference - self.item_started_at)

    def remaining(self, duration_ms: float, now: float) -> float:
        return max(duration_ms - self.elapsed(now), 0.0)

    def paused_now(self, now: float) -> "TimingSnapshot":
        if self.is_paused:
            return self
        return TimingSnapshot(item_started_at=self.item_started_at, paused_at=now)

    def resumed(self, now: float) -> "TimingSnapshot":
        if not self.is_paused:
            return self
        # Shift the start so that now - start keeps counting from the paused position.
        elapsed = self.elapsed(now)
        return TimingSnapshot(item_started_at=now - elapsed, paused_at=None)


@dataclass
class PlaybackSession:
    state: PlaybackState = PlaybackState.CLOSED
    story: Optional[Story] = None
    items: List[StoryItem] = field(default_factory=list)
    index: int = 0
    timing: TimingSnapshot = field(default_factory=TimingSnapshot)
    token: int = 0

    @property
    def active_item(self) -> Optional[StoryItem]:
        if 0 <= self.index < len(self.items):
            return self.items[self.index]
        return None

    @property
    def is_paused(self) -> bool:
        return self.state == PlaybackState.PAUSED


@dataclass(frozen=True)
class PlaybackView:
    state: PlaybackState
    story: Optional[Story]
    items: Tuple[StoryItem, ...]
    index: int
    fills: Tuple[float, ...]

    @property
    def is_open(self) -> bool:
        return self.state != PlaybackState.CLOSED

    @property
    def is_paused(self) -> bool:
        return self.state == PlaybackState.PAUSED

    @property
    def active_item(self) -> Optional[StoryItem]:
        if 0 <= self.index < len(self.items):
            return self.items[self.index]
        return None
