import io
import logging
import threading
from typing import Callable, Dict, List, Optional, Tuple

import pygame

from storyviewer.domain.story import Story, StoryItem, StoryScope
from storyviewer.services.refresh import STORIES_REFRESH
from storyviewer.services.scheduler import run_in_background

logger = logging.getLogger(__name__)


THUMB_SIZE = 64
THUMB_GAP = 12
RAIL_LEFT = 24
RAIL_TOP = 24
SCROLL_STEP = 40
RING_COLOR = (148, 163, 184)
LABEL_COLOR = (71, 85, 105)
PLACEHOLDER_COLOR = (226, 232, 240)


class StoryRail:
    """Host page: a horizontally scrollable row of story thumbnails."""

    def __init__(
        self,
        api_client,
        scope: StoryScope,
        shell,
        scroll_lock,
        image_cache=None,
        cache=None,
        user_id: Optional[str] = None,
        bus=None,
        runner: Callable[[Callable[[], None], str], None] = run_in_background,
    ):
        self.api_client = api_client
        self.scope = scope
        self.shell = shell
        self.scroll_lock = scroll_lock
        self.image_cache = image_cache
        self.cache = cache
        self.user_id = user_id
        self._runner = runner
        self._lock = threading.Lock()
        self._stories: List[Story] = []
        self._loading = False
        self.scroll_offset = 0
        self._thumbnails: Dict[str, pygame.Surface] = {}
        self._font: Optional[pygame.font.Font] = None
        self._unsubscribe = bus.subscribe(STORIES_REFRESH, self.refresh) if bus else None

    @property
    def stories(self) -> List[Story]:
        with self._lock:
            return list(self._stories)

    def hydrate(self) -> bool:
        """Show the cached list right away; returns whether anything was cached."""
        if not self.cache or not self.user_id:
            return False
        cached = self.cache.load(self.user_id)
        if cached:
            self._apply(cached, persist=False)
        return bool(cached)

    def refresh(self) -> None:
        with self._lock:
            if self._loading:
                return
            self._loading = True
        self._runner(self._load, "StoryRail.refresh")

    def close(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def _load(self) -> None:
        try:
            stories = self.api_client.list_stories(self.scope)
            if stories is None:
                logger.warning("Keeping current stories, list fetch failed")
                return
            self.api_client.attach_previews(stories, self.scope.org_id)
            self._apply(stories, persist=True)
        finally:
            with self._lock:
                self._loading = False

    def _apply(self, stories: List[Story], persist: bool) -> None:
        with self._lock:
            self._stories = list(stories)
        self.shell.controller.set_stories(stories)
        preview_urls = {story.preview_url for story in stories if story.preview_url}
        self._thumbnails = {url: thumb for url, thumb in self._thumbnails.items() if url in preview_urls}
        if self.image_cache is not None:
            # Images of the story on screen stay cached even if it left the list.
            showing = {item.url for item in self.shell.controller.view().items if item.url}
            self.image_cache.retain(preview_urls | showing)
            self.image_cache.warm(
                StoryItem(id=f"preview-{story.id}", url=story.preview_url, mime_type="image/*")
                for story in stories
                if story.preview_url
            )
        if persist and self.cache and self.user_id:
            self.cache.save(self.user_id, stories)
        logger.info("Story rail shows %d stories", len(stories))

    # ---------- input ----------

    def thumbnail_rects(self) -> List[Tuple[Story, pygame.Rect]]:
        step = THUMB_SIZE + THUMB_GAP
        return [
            (story, pygame.Rect(RAIL_LEFT + index * step - self.scroll_offset, RAIL_TOP, THUMB_SIZE, THUMB_SIZE))
            for index, story in enumerate(self.stories)
        ]

    def max_scroll(self, view_width: int) -> int:
        content_width = len(self.stories) * (THUMB_SIZE + THUMB_GAP) - THUMB_GAP + 2 * RAIL_LEFT
        return max(0, content_width - view_width)

    def handle_event(self, event, view_width: int) -> bool:
        if event.type == pygame.MOUSEWHEEL:
            if self.scroll_lock.held:
                return False
            delta = -(event.x or event.y) * SCROLL_STEP
            self.scroll_offset = max(0, min(self.max_scroll(view_width), self.scroll_offset + delta))
            return True

        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            for story, rect in self.thumbnail_rects():
                if rect.collidepoint(event.pos):
                    self.shell.open(story)
                    return True
        return False

    # ---------- drawing ----------

    def draw(self, surface: pygame.Surface) -> None:
        if self._font is None:
            if not pygame.font.get_init():
                pygame.font.init()
            self._font = pygame.font.Font(None, 18)

        for story, rect in self.thumbnail_rects():
            if rect.right < 0 or rect.left > surface.get_width():
                continue
            thumbnail = self._thumbnail(story)
            if thumbnail is not None:
                surface.blit(thumbnail, rect.topleft)
            else:
                pygame.draw.circle(surface, PLACEHOLDER_COLOR, rect.center, THUMB_SIZE // 2)
            pygame.draw.circle(surface, RING_COLOR, rect.center, THUMB_SIZE // 2, 2)

            label = story.display_title
            while label and self._font.size(label)[0] > THUMB_SIZE:
                label = label[:-1]
            rendered = self._font.render(label, True, LABEL_COLOR)
            surface.blit(rendered, rendered.get_rect(midtop=(rect.centerx, rect.bottom + 6)))

    def _thumbnail(self, story: Story) -> Optional[pygame.Surface]:
        url = story.preview_url
        if not url or self.image_cache is None:
            return None
        cached = self._thumbnails.get(url)
        if cached is not None:
            return cached
        data = self.image_cache.get(url)
        if data is None:
            return None
        try:
            image = pygame.image.load(io.BytesIO(data))
        except pygame.error as exc:
            logger.warning("Could not decode thumbnail %s: %s", url, exc)
            self.image_cache.mark_failed(url)
            return None

        thumbnail = pygame.Surface((THUMB_SIZE, THUMB_SIZE), pygame.SRCALPHA)
        mask = pygame.Surface((THUMB_SIZE, THUMB_SIZE), pygame.SRCALPHA)
        pygame.draw.circle(mask, (255, 255, 255, 255), (THUMB_SIZE // 2, THUMB_SIZE // 2), THUMB_SIZE // 2)
        thumbnail.blit(pygame.transform.scale(image, (THUMB_SIZE, THUMB_SIZE)), (0, 0))
        thumbnail.blit(mask, (0, 0), special_flags=pygame.BLEND_RGBA_MIN)
        self._thumbnails[url] = thumbnail
        return thumbnail
