from dataclasses import dataclass
from typing import List, Tuple

import pygame


ASPECT_RATIO = 9 / 16
MARGIN = 24
BAR_PADDING = 10
BAR_GAP = 4
BAR_HEIGHT = 4
BUTTON_SIZE = 36


@dataclass(frozen=True)
class ViewerLayout:
    """Geometry of the story viewer for one window size."""

    screen_size: Tuple[int, int]

    @property
    def overlay(self) -> pygame.Rect:
        return pygame.Rect(0, 0, *self.screen_size)

    @property
    def content(self) -> pygame.Rect:
        width, height = self.screen_size
        box_height = max(1, height - 2 * MARGIN)
        box_width = int(box_height * ASPECT_RATIO)
        if box_width > width - 2 * MARGIN:
            box_width = max(1, width - 2 * MARGIN)
            box_height = int(box_width / ASPECT_RATIO)
        rect = pygame.Rect(0, 0, box_width, box_height)
        rect.center = self.overlay.center
        return rect

    def bars(self, count: int) -> List[pygame.Rect]:
        if count <= 0:
            return []
        content = self.content
        usable = content.width - 2 * BAR_PADDING - BAR_GAP * (count - 1)
        bar_width = max(1, usable // count)
        top = content.top + BAR_PADDING
        return [
            pygame.Rect(content.left + BAR_PADDING + index * (bar_width + BAR_GAP), top, bar_width, BAR_HEIGHT)
            for index in range(count)
        ]

    @property
    def close_button(self) -> pygame.Rect:
        content = self.content
        return pygame.Rect(
            content.right - BAR_PADDING - BUTTON_SIZE,
            content.top + 2 * BAR_PADDING + BAR_HEIGHT,
            BUTTON_SIZE,
            BUTTON_SIZE,
        )

    @property
    def pause_button(self) -> pygame.Rect:
        close = self.close_button
        return pygame.Rect(close.left - BAR_GAP * 2 - BUTTON_SIZE, close.top, BUTTON_SIZE, BUTTON_SIZE)


def bar_fill_rect(bar: pygame.Rect, percent: float) -> pygame.Rect:
    clamped = max(0.0, min(100.0, percent))
    return pygame.Rect(bar.left, bar.top, int(round(bar.width * clamped / 100.0)), bar.height)
