import io
import logging
import threading
from typing import Dict, List, Optional, Tuple

import pygame

from storyviewer.controls.zones import command_for_key, map_tap
from storyviewer.domain.states import PlaybackCommand, PlaybackState
from storyviewer.domain.story import MediaKind, Story, StoryItem
from storyviewer.domain.story_session import PlaybackView

from .layout import ViewerLayout, bar_fill_rect
from .scroll_lock import ScrollLock

logger = logging.getLogger(__name__)


KEY_NAMES = {
    pygame.K_ESCAPE: "escape",
    pygame.K_LEFT: "left",
    pygame.K_RIGHT: "right",
    pygame.K_SPACE: "space",
}

BACKDROP_COLOR = (0, 0, 0, 220)
CARD_TOP = (30, 41, 59)
CARD_BOTTOM = (15, 23, 42)
TEXT_COLOR = (255, 255, 255)
BAR_TRACK = (255, 255, 255, 90)
BAR_FILL = (255, 255, 255)
BUTTON_BG = (0, 0, 0, 120)


class ViewerShell:
    """Full-screen modal that presents the playback controller."""

    def __init__(self, controller, image_cache, scroll_lock: ScrollLock, screen_size: Tuple[int, int]):
        self.controller = controller
        self.image_cache = image_cache
        self.scroll_lock = scroll_lock
        self.layout = ViewerLayout(screen_size)
        # Guards _holds_scroll and _surfaces; close notifications arrive on timer threads.
        self._lock = threading.RLock()
        self._holds_scroll = False
        self._surfaces: Dict[str, pygame.Surface] = {}
        self._fonts: Dict[int, pygame.font.Font] = {}
        controller.on_closed = self._on_controller_closed

    @property
    def is_open(self) -> bool:
        return self.controller.state != PlaybackState.CLOSED

    def resize(self, screen_size: Tuple[int, int]) -> None:
        with self._lock:
            self.layout = ViewerLayout(screen_size)
            self._surfaces.clear()

    # ---------- lifecycle ----------

    def open(self, story: Story) -> None:
        with self._lock:
            if not self._holds_scroll:
                self.scroll_lock.acquire()
                self._holds_scroll = True
            self.controller.open_story(story)

    def close(self) -> None:
        self.controller.close()
        self._release_if_closed()

    def shutdown(self) -> None:
        self.close()

    def _on_controller_closed(self) -> None:
        logger.debug("Viewer closed")
        self._release_if_closed()

    def _release_if_closed(self) -> None:
        with self._lock:
            # A late notification from a session that was already replaced.
            if self.is_open:
                return
            self._surfaces.clear()
            if self._holds_scroll:
                self._holds_scroll = False
                self.scroll_lock.release()

    # ---------- input ----------

    def handle_event(self, event) -> bool:
        """Route one pygame event; returns True when the viewer consumed it."""
        if not self.is_open:
            return False

        if event.type == pygame.KEYDOWN:
            key_name = KEY_NAMES.get(event.key)
            command = command_for_key(key_name) if key_name else None
            if command is not None:
                self._dispatch(command)
            return True

        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            self.handle_click(event.pos)
            return True

        return event.type in (pygame.MOUSEBUTTONDOWN, pygame.MOUSEBUTTONUP, pygame.MOUSEWHEEL)

    def handle_click(self, pos: Tuple[int, int]) -> None:
        layout = self.layout
        # Buttons sit on top of the content box and never count as zone taps.
        if layout.close_button.collidepoint(pos):
            self.close()
        elif layout.pause_button.collidepoint(pos):
            self.controller.toggle_pause()
        elif layout.content.collidepoint(pos):
            content = layout.content
            self._dispatch(map_tap(pos[0], content.left, content.width))
        elif layout.overlay.collidepoint(pos):
            self.close()

    def _dispatch(self, command: PlaybackCommand) -> None:
        if command == PlaybackCommand.CLOSE:
            self.close()
        else:
            self.controller.handle_command(command)

    # ---------- drawing ----------

    def draw(self, surface: pygame.Surface) -> None:
        view = self.controller.view()
        if not view.is_open:
            return

        layout = self.layout
        backdrop = pygame.Surface(layout.overlay.size, pygame.SRCALPHA)
        backdrop.fill(BACKDROP_COLOR)
        surface.blit(backdrop, layout.overlay.topleft)

        content = layout.content
        previous_clip = surface.get_clip()
        surface.set_clip(content)
        surface.fill((0, 0, 0), content)

        item = view.active_item
        if item is None:
            self._draw_text_card(surface, content, _title_of(view))
        elif item.kind == MediaKind.IMAGE and self._draw_image(surface, content, item):
            if item.caption:
                self._draw_caption(surface, content, item.caption)
        else:
            self._draw_text_card(surface, content, item.caption or _title_of(view))

        self._draw_bars(surface, view)
        self._draw_buttons(surface, view)
        surface.set_clip(previous_clip)

    def _draw_bars(self, surface: pygame.Surface, view: PlaybackView) -> None:
        bars = self.layout.bars(len(view.items))
        track = pygame.Surface((1, 1), pygame.SRCALPHA)
        track.fill(BAR_TRACK)
        for bar, fill in zip(bars, view.fills):
            surface.blit(pygame.transform.scale(track, bar.size), bar.topleft)
            filled = bar_fill_rect(bar, fill)
            if filled.width > 0:
                surface.fill(BAR_FILL, filled)

    def _draw_buttons(self, surface: pygame.Surface, view: PlaybackView) -> None:
        close = self.layout.close_button
        pause = self.layout.pause_button
        for rect in (close, pause):
            button = pygame.Surface(rect.size, pygame.SRCALPHA)
            pygame.draw.circle(button, BUTTON_BG, (rect.width // 2, rect.height // 2), rect.width // 2)
            surface.blit(button, rect.topleft)

        inset = close.inflate(-20, -20)
        pygame.draw.line(surface, TEXT_COLOR, inset.topleft, inset.bottomright, 3)
        pygame.draw.line(surface, TEXT_COLOR, inset.topright, inset.bottomleft, 3)

        inset = pause.inflate(-20, -18)
        if view.is_paused:
            pygame.draw.polygon(surface, TEXT_COLOR, [inset.topleft, inset.bottomleft, (inset.right, inset.centery)])
        else:
            bar_width = max(2, inset.width // 3)
            surface.fill(TEXT_COLOR, pygame.Rect(inset.left, inset.top, bar_width, inset.height))
            surface.fill(TEXT_COLOR, pygame.Rect(inset.right - bar_width, inset.top, bar_width, inset.height))

    def _draw_image(self, surface: pygame.Surface, content: pygame.Rect, item: StoryItem) -> bool:
        image = self._image_surface(item.url, content.size)
        if image is None:
            return False
        surface.blit(image, image.get_rect(center=content.center))
        return True

    def _image_surface(self, url: str, size: Tuple[int, int]) -> Optional[pygame.Surface]:
        with self._lock:
            cached = self._surfaces.get(url)
        if cached is not None:
            return cached
        if self.image_cache.failed(url):
            return None
        data = self.image_cache.get(url)
        if data is None:
            return None

        try:
            image = pygame.image.load(io.BytesIO(data))
        except pygame.error as exc:
            logger.warning("Could not decode image %s: %s", url, exc)
            self.image_cache.mark_failed(url)
            return None

        if pygame.display.get_surface() is not None:
            image = image.convert_alpha()
        target = _cover_size(image.get_size(), size)
        try:
            scaled = pygame.transform.smoothscale(image, target)
        except ValueError:
            # smoothscale only takes 24/32-bit surfaces
            scaled = pygame.transform.scale(image, target)
        with self._lock:
            self._surfaces[url] = scaled
        return scaled

    def _draw_caption(self, surface: pygame.Surface, content: pygame.Rect, caption: str) -> None:
        font = self._font(22)
        lines = _wrap(font, caption, content.width - 32)
        height = len(lines) * font.get_linesize() + 32
        shade = pygame.Surface((content.width, height), pygame.SRCALPHA)
        shade.fill((0, 0, 0, 150))
        surface.blit(shade, (content.left, content.bottom - height))
        y = content.bottom - height + 16
        for line in lines:
            surface.blit(font.render(line, True, TEXT_COLOR), (content.left + 16, y))
            y += font.get_linesize()

    def _draw_text_card(self, surface: pygame.Surface, content: pygame.Rect, text: str) -> None:
        for row in range(content.height):
            t = row / max(1, content.height - 1)
            color = tuple(int(a + (b - a) * t) for a, b in zip(CARD_TOP, CARD_BOTTOM))
            pygame.draw.line(surface, color, (content.left, content.top + row), (content.right - 1, content.top + row))

        font = self._font(28)
        lines = _wrap(font, text, content.width - 48)
        total = len(lines) * font.get_linesize()
        y = content.centery - total // 2
        for line in lines:
            rendered = font.render(line, True, TEXT_COLOR)
            surface.blit(rendered, rendered.get_rect(midtop=(content.centerx, y)))
            y += font.get_linesize()

    def _font(self, size: int) -> pygame.font.Font:
        if not pygame.font.get_init():
            pygame.font.init()
        font = self._fonts.get(size)
        if font is None:
            font = pygame.font.Font(None, size)
            self._fonts[size] = font
        return font


def _title_of(view: PlaybackView) -> str:
    return view.story.display_title if view.story else "Story"


def _cover_size(image_size: Tuple[int, int], box_size: Tuple[int, int]) -> Tuple[int, int]:
    image_w, image_h = image_size
    box_w, box_h = box_size
    scale = max(box_w / max(1, image_w), box_h / max(1, image_h))
    return max(1, int(image_w * scale)), max(1, int(image_h * scale))


def _wrap(font: pygame.font.Font, text: str, width: int) -> List[str]:
    lines: List[str] = []
    for paragraph in text.splitlines() or [""]:
        current = ""
        for word in paragraph.split(" "):
            candidate = f"{current} {word}".strip()
            if current and font.size(candidate)[0] > width:
                lines.append(current)
                current = word
            else:
                current = candidate
        lines.append(current)
    return lines
