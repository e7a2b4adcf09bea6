from enum import Enum
from typing import Optional

from storyviewer.domain.states import PlaybackCommand


class TapZone(Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


ZONE_COMMANDS = {
    TapZone.LEFT: PlaybackCommand.PREVIOUS_ITEM,
    TapZone.CENTER: PlaybackCommand.TOGGLE_PAUSE,
    TapZone.RIGHT: PlaybackCommand.NEXT_ITEM,
}

KEY_COMMANDS = {
    "escape": PlaybackCommand.CLOSE,
    "left": PlaybackCommand.PREVIOUS_ITEM,
    "right": PlaybackCommand.NEXT_ITEM,
    "space": PlaybackCommand.TOGGLE_PAUSE,
}


def classify_tap(client_x: float, container_left: float, container_width: float) -> TapZone:
    """Split the container (not the window) into equal thirds."""
    click_x = client_x - container_left
    if click_x < container_width / 3:
        return TapZone.LEFT
    if click_x > container_width * 2 / 3:
        return TapZone.RIGHT
    return TapZone.CENTER


def command_for_zone(zone: TapZone) -> PlaybackCommand:
    return ZONE_COMMANDS[zone]


def map_tap(client_x: float, container_left: float, container_width: float) -> PlaybackCommand:
    return command_for_zone(classify_tap(client_x, container_left, container_width))


def command_for_key(key_name: str) -> Optional[PlaybackCommand]:
    return KEY_COMMANDS.get(key_name.lower())
