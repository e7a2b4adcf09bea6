import logging
import threading
from typing import Callable, List, Optional, Sequence

from storyviewer.domain.states import PlaybackCommand, PlaybackState
from storyviewer.domain.story import Story, StoryItem
from storyviewer.domain.story_session import PlaybackSession, PlaybackView, TimingSnapshot

from .item_timer import ItemTimer
from .progress import DEFAULT_SAMPLE_INTERVAL_MS, ProgressIndicator
from .scheduler import run_in_background

logger = logging.getLogger(__name__)


class PlaybackController:
    """
    Owns the playback session of the story viewer: which story and item are
    showing, whether playback is paused, and every transition between them.

    Fetch results carry the session token they were issued for and timer
    fires carry the serial of the arm that scheduled them; anything that no
    longer matches is dropped.
    """

    def __init__(
        self,
        api_client,
        scheduler,
        org_id: Optional[str] = None,
        image_cache=None,
        on_closed: Optional[Callable[[], None]] = None,
        sample_interval_ms: float = DEFAULT_SAMPLE_INTERVAL_MS,
        runner: Callable[[Callable[[], None], str], None] = run_in_background,
    ):
        self.api_client = api_client
        self.scheduler = scheduler
        self.org_id = org_id
        self.image_cache = image_cache
        self.on_closed = on_closed
        self._runner = runner

        self._lock = threading.RLock()
        self._stories: List[Story] = []
        self._session = PlaybackSession()
        self._next_token = 0
        self._close_pending = False
        self._pending_fetches: List[Callable[[], None]] = []
        self._arm_serial = 0

        self._timer = ItemTimer(scheduler, on_elapsed=self._on_item_elapsed)
        self._progress = ProgressIndicator(scheduler, sample_interval_ms=sample_interval_ms)

    # ---------- queries ----------

    @property
    def state(self) -> PlaybackState:
        with self._lock:
            return self._session.state

    @property
    def stories(self) -> List[Story]:
        with self._lock:
            return list(self._stories)

    def view(self) -> PlaybackView:
        with self._lock:
            session = self._session
            return PlaybackView(
                state=session.state,
                story=session.story,
                items=tuple(session.items),
                index=session.index,
                fills=tuple(self._progress.fills(len(session.items), session.index)),
            )

    def timers_pending(self) -> bool:
        return self._timer.pending or self._progress.sampling

    # ---------- commands ----------

    def set_stories(self, stories: Sequence[Story]) -> None:
        with self._lock:
            self._stories = list(stories)

    def open_story(self, story: Story) -> None:
        with self._lock:
            self._open_locked(story)
        self._after_unlock()

    def next_item(self) -> None:
        with self._lock:
            self._next_locked()
        self._after_unlock()

    def previous_item(self) -> None:
        with self._lock:
            session = self._session
            if session.state == PlaybackState.CLOSED:
                return
            if session.index > 0:
                self._show_item_locked(session.index - 1)
                return

            previous_story = self._neighbour_locked(-1)
            if previous_story is not None:
                self._open_locked(previous_story)
            else:
                logger.debug("Already at the first item of the first story")
        self._after_unlock()

    def toggle_pause(self) -> None:
        with self._lock:
            if self._session.state == PlaybackState.PLAYING:
                self._pause_locked()
            elif self._session.state == PlaybackState.PAUSED:
                self._resume_locked()

    def pause(self) -> None:
        with self._lock:
            if self._session.state == PlaybackState.PLAYING:
                self._pause_locked()

    def resume(self) -> None:
        with self._lock:
            if self._session.state == PlaybackState.PAUSED:
                self._resume_locked()

    def close(self) -> None:
        with self._lock:
            self._close_locked()
        self._after_unlock()

    def handle_command(self, command: PlaybackCommand) -> None:
        if command == PlaybackCommand.PREVIOUS_ITEM:
            self.previous_item()
        elif command == PlaybackCommand.NEXT_ITEM:
            self.next_item()
        elif command == PlaybackCommand.TOGGLE_PAUSE:
            self.toggle_pause()
        elif command == PlaybackCommand.CLOSE:
            self.close()

    # ---------- transitions ----------

    def _set_state(self, new_state: PlaybackState) -> None:
        if new_state == self._session.state:
            return
        logger.info("State %s -> %s", self._session.state.name, new_state.name)
        self._session.state = new_state

    def _cancel_timers_locked(self) -> None:
        self._arm_serial += 1
        self._timer.cancel()
        self._progress.reset()

    def _open_locked(self, story: Story) -> None:
        self._cancel_timers_locked()
        self._next_token += 1
        token = self._next_token
        previous_state = self._session.state
        self._session = PlaybackSession(state=previous_state, story=story, token=token)
        self._set_state(PlaybackState.LOADING)
        logger.info("Opening story %s (%s)", story.id, story.display_title)

        org_id = self.org_id or story.org_id
        self._pending_fetches.append(lambda: self._fetch_items(token, story, org_id))

    def _fetch_items(self, token: int, story: Story, org_id: Optional[str]) -> None:
        try:
            items = self.api_client.get_story_items(story.id, org_id)
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected error while loading items of story %s", story.id)
            items = None
        self._on_items_loaded(token, story, items)

    def _on_items_loaded(self, token: int, story: Story, items: Optional[List[StoryItem]]) -> None:
        with self._lock:
            session = self._session
            if token != session.token or session.state != PlaybackState.LOADING:
                logger.debug("Discarding items of story %s, no longer active", story.id)
                return

            if items is None:
                logger.warning("Could not load items of story %s, closing viewer", story.id)
                self._close_locked()
            else:
                session.items = list(items)
                session.index = 0
                self._set_state(PlaybackState.PLAYING)
                if self.image_cache is not None:
                    self.image_cache.warm(session.items)
                if session.items:
                    self._show_item_locked(0)
                else:
                    logger.info("Story %s has no items, showing title only", story.id)
        self._after_unlock()

    def _show_item_locked(self, index: int) -> None:
        session = self._session
        self._cancel_timers_locked()
        session.index = index
        session.timing = TimingSnapshot.started(self.scheduler.now_ms(), paused=session.is_paused)
        self._arm_locked()

    def _arm_locked(self) -> None:
        session = self._session
        item = session.active_item
        if item is None:
            return
        duration = item.effective_duration_ms
        self._arm_serial += 1
        self._timer.arm(duration, session.timing, self._arm_serial)
        self._progress.start(duration, session.timing)

    def _next_locked(self) -> None:
        session = self._session
        if session.state == PlaybackState.CLOSED:
            return
        if session.index + 1 < len(session.items):
            self._show_item_locked(session.index + 1)
        else:
            self._continue_locked()

    def _continue_locked(self) -> None:
        next_story = self._neighbour_locked(1)
        if next_story is not None:
            self._open_locked(next_story)
        else:
            self._close_locked()

    def _neighbour_locked(self, step: int) -> Optional[Story]:
        story = self._session.story
        if story is None:
            return None
        ids = [candidate.id for candidate in self._stories]
        if story.id not in ids:
            return None
        position = ids.index(story.id) + step
        if 0 <= position < len(self._stories):
            return self._stories[position]
        return None

    def _pause_locked(self) -> None:
        session = self._session
        self._arm_serial += 1
        self._timer.cancel()
        self._progress.stop()
        session.timing = session.timing.paused_now(self.scheduler.now_ms())
        self._set_state(PlaybackState.PAUSED)

    def _resume_locked(self) -> None:
        session = self._session
        session.timing = session.timing.resumed(self.scheduler.now_ms())
        self._set_state(PlaybackState.PLAYING)
        self._arm_locked()

    def _on_item_elapsed(self, serial: int) -> None:
        with self._lock:
            if serial != self._arm_serial or self._session.state != PlaybackState.PLAYING:
                logger.debug("Ignoring stale item timer (serial=%s)", serial)
                return
            self._next_locked()
        self._after_unlock()

    def _close_locked(self) -> None:
        if self._session.state == PlaybackState.CLOSED:
            return
        self._cancel_timers_locked()
        self._next_token += 1
        self._set_state(PlaybackState.CLOSED)
        self._session = PlaybackSession(token=self._next_token)
        self._close_pending = True

    def _after_unlock(self) -> None:
        """Run work that must not hold the session lock: item fetches and the close callback."""
        with self._lock:
            fetches = self._pending_fetches
            self._pending_fetches = []
            notify = self._close_pending
            self._close_pending = False
        for fetch in fetches:
            self._runner(fetch, "PlaybackController.fetch")
        if notify and self.on_closed:
            try:
                self.on_closed()
            except Exception:  # noqa: BLE001
                logger.exception("on_closed callback raised")
