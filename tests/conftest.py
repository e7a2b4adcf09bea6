"""Shared test fixtures for story viewer tests."""

import heapq
import itertools
import os

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import pytest  # noqa: E402

from storyviewer.domain.story import Story, StoryItem  # noqa: E402
from storyviewer.services.playback_controller import PlaybackController  # noqa: E402


class FakeHandle:
    def __init__(self, scheduler, due, callback, interval=None):
        self._scheduler = scheduler
        self.due = due
        self.callback = callback
        self.interval = interval
        self.cancelled = False

    @property
    def active(self):
        return not self.cancelled and self in self._scheduler.pending

    def cancel(self):
        self.cancelled = True
        self._scheduler.pending.discard(self)


class FakeScheduler:
    """Manual clock: nothing fires until advance() moves time forward."""

    def __init__(self, start_ms=0.0):
        self.now = start_ms
        self.pending = set()
        self._queue = []
        self._order = itertools.count()

    def now_ms(self):
        return self.now

    def call_later(self, delay_ms, callback):
        handle = FakeHandle(self, self.now + max(0.0, delay_ms), callback)
        self._push(handle)
        return handle

    def call_every(self, interval_ms, callback):
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        handle = FakeHandle(self, self.now + interval_ms, callback, interval=interval_ms)
        self._push(handle)
        return handle

    def pending_count(self):
        return len(self.pending)

    def one_shots_pending(self):
        return sum(1 for handle in self.pending if handle.interval is None)

    def advance(self, ms):
        target = self.now + ms
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            if handle.cancelled or handle not in self.pending:
                continue
            self.now = due
            if handle.interval is None:
                self.pending.discard(handle)
            else:
                handle.due = due + handle.interval
                heapq.heappush(self._queue, (handle.due, next(self._order), handle))
            handle.callback()
        self.now = target

    def _push(self, handle):
        self.pending.add(handle)
        heapq.heappush(self._queue, (handle.due, next(self._order), handle))


class DeferredRunner:
    """Background runner that holds jobs until the test releases them."""

    def __init__(self):
        self.jobs = []

    def __call__(self, target, name="background"):
        self.jobs.append((name, target))

    def run_all(self):
        while self.jobs:
            _, target = self.jobs.pop(0)
            target()

    def run_at(self, index):
        _, target = self.jobs.pop(index)
        target()


def immediate_runner(target, name="background"):
    target()


class FakeApiClient:
    def __init__(self, items_by_story=None):
        self.items_by_story = items_by_story or {}
        self.calls = []

    def get_story_items(self, story_id, org_id=None):
        self.calls.append((story_id, org_id))
        items = self.items_by_story.get(story_id)
        if isinstance(items, Exception):
            raise items
        return items


class RecordingImageCache:
    def __init__(self):
        self.warmed = []
        self.failures = set()
        self.data = {}
        self.retained = []

    def warm(self, items):
        self.warmed.extend(items)

    def get(self, url):
        return self.data.get(url)

    def failed(self, url):
        return url in self.failures

    def mark_failed(self, url):
        self.failures.add(url)

    def retain(self, urls):
        keep = set(urls)
        self.retained.append(keep)
        self.data = {url: data for url, data in self.data.items() if url in keep}


def make_item(story_id, index, duration_ms=None, url=None, mime_type=None, caption=None):
    return StoryItem(
        id=f"{story_id}-{index}",
        story_id=story_id,
        order_index=index,
        url=url,
        duration_ms=duration_ms,
        caption=caption,
        mime_type=mime_type,
    )


@pytest.fixture()
def scheduler():
    return FakeScheduler()


@pytest.fixture()
def story_a():
    return Story(id="A", org_id="org-1", title="Story A")


@pytest.fixture()
def story_b():
    return Story(id="B", org_id="org-1", title="Story B")


@pytest.fixture()
def api(story_a, story_b):
    return FakeApiClient({
        "A": [make_item("A", 0, 5000), make_item("A", 1, 10000)],
        "B": [make_item("B", 0)],
    })


@pytest.fixture()
def closed_calls():
    return []


@pytest.fixture()
def controller(api, scheduler, story_a, story_b, closed_calls):
    controller = PlaybackController(
        api_client=api,
        scheduler=scheduler,
        org_id="org-1",
        image_cache=RecordingImageCache(),
        on_closed=lambda: closed_calls.append(scheduler.now),
        runner=immediate_runner,
    )
    controller.set_stories([story_a, story_b])
    return controller
