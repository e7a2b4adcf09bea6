"""Tests for the playback controller state machine."""

import pytest

from conftest import DeferredRunner, FakeApiClient, RecordingImageCache, immediate_runner, make_item
from storyviewer.domain.states import PlaybackCommand, PlaybackState
from storyviewer.domain.story import Story
from storyviewer.services.playback_controller import PlaybackController


def test_open_starts_at_first_item(controller, story_a, api):
    controller.open_story(story_a)

    view = controller.view()
    assert view.state == PlaybackState.PLAYING
    assert view.story.id == "A"
    assert view.index == 0
    assert view.fills == (0.0, 0.0)
    assert api.calls == [("A", "org-1")]


def test_auto_advance_through_stories_then_close(controller, scheduler, story_a, closed_calls):
    controller.open_story(story_a)

    scheduler.advance(4999)
    assert controller.view().index == 0
    scheduler.advance(1)
    assert controller.view().index == 1

    scheduler.advance(10000)
    view = controller.view()
    assert view.story.id == "B"
    assert view.index == 0

    scheduler.advance(29999)
    assert controller.state == PlaybackState.PLAYING
    scheduler.advance(1)

    assert controller.state == PlaybackState.CLOSED
    assert closed_calls == [45000]
    assert scheduler.pending_count() == 0


def test_pause_resume_keeps_elapsed_time(controller, scheduler, story_a):
    controller.open_story(story_a)
    scheduler.advance(2000)

    controller.handle_command(PlaybackCommand.TOGGLE_PAUSE)
    assert controller.state == PlaybackState.PAUSED
    assert scheduler.pending_count() == 0
    paused_fill = controller.view().fills[0]

    scheduler.advance(3000)
    assert controller.view().fills[0] == paused_fill
    assert controller.view().index == 0

    controller.handle_command(PlaybackCommand.TOGGLE_PAUSE)
    assert controller.state == PlaybackState.PLAYING
    scheduler.advance(2999)
    assert controller.view().index == 0
    scheduler.advance(1)
    assert controller.view().index == 1


def test_repeated_pauses_fire_at_the_same_display_time(controller, scheduler, story_a):
    controller.open_story(story_a)

    for _ in range(4):
        scheduler.advance(1000)
        controller.pause()
        scheduler.advance(7000)
        controller.resume()

    # 4000 ms of display so far; 1000 ms remain for the first item.
    scheduler.advance(999)
    assert controller.view().index == 0
    scheduler.advance(1)
    assert controller.view().index == 1


def test_next_item_cancels_pending_timer(controller, scheduler, story_a):
    controller.open_story(story_a)
    scheduler.advance(4000)

    controller.next_item()
    assert controller.view().index == 1
    assert controller.view().fills == (100.0, 0.0)
    assert scheduler.one_shots_pending() == 1

    # The first item's original deadline passes without effect.
    scheduler.advance(1500)
    assert controller.view().index == 1
    scheduler.advance(8500)
    assert controller.view().story.id == "B"


def test_previous_item_steps_back(controller, scheduler, story_a):
    controller.open_story(story_a)
    controller.next_item()

    controller.previous_item()
    view = controller.view()
    assert view.index == 0
    assert view.fills == (0.0, 0.0)


def test_previous_at_first_story_is_noop(controller, story_a, api):
    controller.open_story(story_a)
    controller.previous_item()

    view = controller.view()
    assert view.story.id == "A"
    assert view.index == 0
    assert len(api.calls) == 1


def test_previous_at_first_item_opens_previous_story(controller, story_b):
    controller.open_story(story_b)
    controller.previous_item()

    view = controller.view()
    assert view.story.id == "A"
    assert view.index == 0


def test_next_at_last_item_of_non_last_story_opens_next(controller, story_a):
    controller.open_story(story_a)
    controller.next_item()
    controller.next_item()

    view = controller.view()
    assert view.story.id == "B"
    assert view.index == 0


def test_next_at_last_item_of_last_story_closes(controller, scheduler, story_b, closed_calls):
    controller.open_story(story_b)
    controller.next_item()

    assert controller.state == PlaybackState.CLOSED
    assert len(closed_calls) == 1
    assert scheduler.pending_count() == 0


def test_close_cancels_everything(controller, scheduler, story_a, closed_calls):
    controller.open_story(story_a)
    scheduler.advance(1200)

    controller.handle_command(PlaybackCommand.CLOSE)

    view = controller.view()
    assert view.state == PlaybackState.CLOSED
    assert view.story is None
    assert view.items == ()
    assert scheduler.pending_count() == 0
    assert not controller.timers_pending()
    assert closed_calls == [1200]

    controller.close()
    assert closed_calls == [1200]


def test_reopen_restarts_at_first_item(controller, scheduler, story_a):
    controller.open_story(story_a)
    controller.next_item()
    controller.close()

    controller.open_story(story_a)
    assert controller.view().index == 0


def test_navigation_while_paused_stays_paused(controller, scheduler, story_a):
    controller.open_story(story_a)
    scheduler.advance(1000)
    controller.pause()

    controller.next_item()
    view = controller.view()
    assert view.state == PlaybackState.PAUSED
    assert view.index == 1
    assert view.fills == (100.0, 0.0)
    assert scheduler.pending_count() == 0

    controller.resume()
    scheduler.advance(9999)
    assert controller.view().index == 1
    scheduler.advance(1)
    assert controller.view().story.id == "B"


def test_progress_stays_within_bounds(controller, scheduler, story_a):
    controller.open_story(story_a)
    seen = []
    for _ in range(60):
        scheduler.advance(100)
        seen.extend(controller.view().fills)

    assert all(0.0 <= fill <= 100.0 for fill in seen)


def test_progress_is_monotonic_within_item(controller, scheduler, story_a):
    controller.open_story(story_a)
    previous = 0.0
    for _ in range(49):
        scheduler.advance(100)
        current = controller.view().fills[0]
        assert current >= previous
        previous = current
    assert previous == pytest.approx(98.0)


def test_empty_story_shows_placeholder_without_timer(scheduler, closed_calls):
    story = Story(id="E", title="Empty")
    controller = PlaybackController(
        api_client=FakeApiClient({"E": []}),
        scheduler=scheduler,
        runner=immediate_runner,
        on_closed=lambda: closed_calls.append(scheduler.now),
    )
    controller.set_stories([story])
    controller.open_story(story)

    view = controller.view()
    assert view.state == PlaybackState.PLAYING
    assert view.active_item is None
    assert scheduler.pending_count() == 0

    scheduler.advance(60000)
    assert controller.state == PlaybackState.PLAYING

    controller.next_item()
    assert controller.state == PlaybackState.CLOSED
    assert closed_calls == [60000]


def test_failed_fetch_closes_viewer(scheduler, closed_calls):
    story = Story(id="F")
    api = FakeApiClient({"F": None})
    controller = PlaybackController(
        api_client=api, scheduler=scheduler, runner=immediate_runner,
        on_closed=lambda: closed_calls.append("closed"),
    )
    controller.open_story(story)

    assert controller.state == PlaybackState.CLOSED
    assert closed_calls == ["closed"]

    api.items_by_story["F"] = [make_item("F", 0)]
    controller.open_story(story)
    assert controller.state == PlaybackState.PLAYING


def test_fetch_exception_closes_viewer(scheduler):
    story = Story(id="X")
    controller = PlaybackController(
        api_client=FakeApiClient({"X": RuntimeError("boom")}),
        scheduler=scheduler,
        runner=immediate_runner,
    )
    controller.open_story(story)

    assert controller.state == PlaybackState.CLOSED


def test_stale_fetch_is_discarded(api, scheduler, story_a, story_b):
    runner = DeferredRunner()
    controller = PlaybackController(api_client=api, scheduler=scheduler, runner=runner)
    controller.set_stories([story_a, story_b])

    controller.open_story(story_a)
    controller.open_story(story_b)
    assert controller.state == PlaybackState.LOADING

    runner.run_at(1)
    runner.run_all()

    view = controller.view()
    assert view.story.id == "B"
    assert [item.story_id for item in view.items] == ["B"]
    assert scheduler.one_shots_pending() == 1


def test_fetch_after_close_is_discarded(api, scheduler, story_a):
    runner = DeferredRunner()
    controller = PlaybackController(api_client=api, scheduler=scheduler, runner=runner)
    controller.open_story(story_a)
    controller.close()

    runner.run_all()

    assert controller.state == PlaybackState.CLOSED
    assert scheduler.pending_count() == 0


def test_loading_shows_title_placeholder(api, scheduler, story_a):
    controller = PlaybackController(api_client=api, scheduler=scheduler, runner=DeferredRunner())
    controller.open_story(story_a)

    view = controller.view()
    assert view.state == PlaybackState.LOADING
    assert view.story.display_title == "Story A"
    assert view.active_item is None


def test_toggle_pause_ignored_while_loading(api, scheduler, story_a):
    controller = PlaybackController(api_client=api, scheduler=scheduler, runner=DeferredRunner())
    controller.open_story(story_a)

    controller.toggle_pause()
    assert controller.state == PlaybackState.LOADING


def test_image_items_are_warmed(scheduler, story_a):
    image = make_item("A", 0, url="https://cdn.example/a.jpg", mime_type="image/jpeg")
    text = make_item("A", 1, caption="hello")
    cache = RecordingImageCache()
    controller = PlaybackController(
        api_client=FakeApiClient({"A": [image, text]}),
        scheduler=scheduler,
        image_cache=cache,
        runner=immediate_runner,
    )
    controller.open_story(story_a)

    assert cache.warmed == [image, text]


def test_commands_on_closed_viewer_do_nothing(controller, scheduler, closed_calls):
    controller.next_item()
    controller.previous_item()
    controller.toggle_pause()

    assert controller.state == PlaybackState.CLOSED
    assert closed_calls == []
    assert scheduler.pending_count() == 0
