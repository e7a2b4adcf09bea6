from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .states import Audience


DEFAULT_DURATION_MS = 30000
MIN_DURATION_MS = 1000


class MediaKind(Enum):
    IMAGE = "image"
    TEXT = "text"


@dataclass
class Story:
    id: str
    org_id: Optional[str] = None
    class_id: Optional[str] = None
    author_id: Optional[str] = None
    title: Optional[str] = None
    caption: Optional[str] = None
    is_public: bool = False
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    preview_url: Optional[str] = None

    @property
    def display_title(self) -> str:
        return self.title or "Story"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "class_id": self.class_id,
            "author_id": self.author_id,
            "title": self.title,
            "caption": self.caption,
            "is_public": self.is_public,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "previewUrl": self.preview_url,
        }


@dataclass(frozen=True)
class StoryItem:
    id: str
    story_id: Optional[str] = None
    order_index: int = 0
    url: Optional[str] = None
    duration_ms: Optional[int] = None
    caption: Optional[str] = None
    mime_type: Optional[str] = None

    @property
    def kind(self) -> MediaKind:
        if self.url and (self.mime_type or "").startswith("image/"):
            return MediaKind.IMAGE
        return MediaKind.TEXT

    @property
    def effective_duration_ms(self) -> int:
        return effective_duration_ms(self.duration_ms)


def effective_duration_ms(duration_ms: Optional[int]) -> int:
    """Display time actually used for an item: default when absent, never under the floor."""
    if duration_ms is None:
        return DEFAULT_DURATION_MS
    return max(duration_ms, MIN_DURATION_MS)


@dataclass
class StoryScope:
    """Audience filter sent to the stories-list endpoint."""

    org_id: str
    audience: Audience = Audience.PARENT
    class_ids: List[str] = field(default_factory=list)
    author_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.audience == Audience.TEACHER and not self.class_ids and not self.author_id:
            raise ValueError("teacher scope needs class_ids or author_id")

    def to_query_params(self) -> Dict[str, str]:
        params = {"audience": self.audience.value}
        joined = ",".join(class_id for class_id in self.class_ids if class_id)
        if self.audience == Audience.TEACHER:
            if joined:
                params["teacherClassIds"] = joined
            if self.author_id:
                params["teacherAuthorId"] = self.author_id
        elif self.audience == Audience.PARENT:
            if joined:
                params["parentClassIds"] = joined
        elif self.audience == Audience.PRINCIPAL:
            if self.author_id:
                params["principalAuthorId"] = self.author_id
        return params


def parse_story(payload: Any) -> Optional[Story]:
    if not isinstance(payload, dict):
        return None
    story_id = payload.get("id")
    if not story_id:
        return None

    return Story(
        id=str(story_id),
        org_id=_optional_str(payload.get("org_id")),
        class_id=_optional_str(payload.get("class_id")),
        author_id=_optional_str(payload.get("author_id")),
        title=_optional_str(payload.get("title")),
        caption=_optional_str(payload.get("caption")),
        is_public=bool(payload.get("is_public", False)),
        expires_at=_parse_datetime(payload.get("expires_at")),
        created_at=_parse_datetime(payload.get("created_at")),
        preview_url=_optional_str(payload.get("previewUrl")),
    )


def parse_stories(entries: Any) -> List[Story]:
    if not isinstance(entries, list):
        return []
    stories = []
    for entry in entries:
        story = parse_story(entry)
        if story is not None:
            stories.append(story)
    return stories


def parse_story_item(payload: Any) -> Optional[StoryItem]:
    if not isinstance(payload, dict):
        return None
    item_id = payload.get("id")
    if not item_id:
        return None

    return StoryItem(
        id=str(item_id),
        story_id=_optional_str(payload.get("story_id")),
        order_index=_safe_int(payload.get("order_index"), default=0),
        url=_optional_str(payload.get("url")),
        duration_ms=_optional_int(payload.get("duration_ms")),
        caption=_optional_str(payload.get("caption")),
        mime_type=_optional_str(payload.get("mime_type")),
    )


def parse_story_items(entries: Any) -> List[StoryItem]:
    if not isinstance(entries, list):
        return []
    items = []
    for entry in entries:
        item = parse_story_item(entry)
        if item is not None:
            items.append(item)
    items.sort(key=lambda item: item.order_index)
    return items


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any, default: int) -> int:
    parsed = _optional_int(value)
    return default if parsed is None else parsed


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
