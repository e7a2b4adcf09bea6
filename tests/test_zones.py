"""Tests for tap-zone and key mapping."""

import pytest

from storyviewer.controls.zones import TapZone, classify_tap, command_for_key, map_tap
from storyviewer.domain.states import PlaybackCommand


@pytest.mark.parametrize(
    "client_x, zone",
    [
        (100, TapZone.LEFT),
        (199, TapZone.LEFT),
        (200, TapZone.CENTER),
        (300, TapZone.CENTER),
        (250, TapZone.CENTER),
        (301, TapZone.RIGHT),
        (399, TapZone.RIGHT),
    ],
)
def test_thirds_are_relative_to_container(client_x, zone):
    # Container spans x=100..400 on screen.
    assert classify_tap(client_x, container_left=100, container_width=300) == zone


def test_zone_commands():
    assert map_tap(10, 0, 300) == PlaybackCommand.PREVIOUS_ITEM
    assert map_tap(150, 0, 300) == PlaybackCommand.TOGGLE_PAUSE
    assert map_tap(290, 0, 300) == PlaybackCommand.NEXT_ITEM


def test_key_commands():
    assert command_for_key("Escape") == PlaybackCommand.CLOSE
    assert command_for_key("left") == PlaybackCommand.PREVIOUS_ITEM
    assert command_for_key("right") == PlaybackCommand.NEXT_ITEM
    assert command_for_key("space") == PlaybackCommand.TOGGLE_PAUSE
    assert command_for_key("q") is None
