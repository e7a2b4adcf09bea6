from enum import Enum, auto


class PlaybackState(Enum):
    CLOSED = auto()
    LOADING = auto()
    PLAYING = auto()
    PAUSED = auto()


class PlaybackCommand(Enum):
    PREVIOUS_ITEM = auto()
    NEXT_ITEM = auto()
    TOGGLE_PAUSE = auto()
    CLOSE = auto()


class Audience(Enum):
    PRINCIPAL = "principal"
    TEACHER = "teacher"
    PARENT = "parent"
