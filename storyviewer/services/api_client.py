import logging
from dataclasses import replace
from typing import Any, List, Optional
from urllib.parse import urljoin

import requests

from storyviewer.domain.story import (
    MediaKind,
    Story,
    StoryItem,
    StoryScope,
    parse_stories,
    parse_story_items,
)

logger = logging.getLogger(__name__)


NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
}


class StoryApiClient:
    """Thin wrapper around the Samvera stories endpoints."""

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def list_stories(self, scope: StoryScope) -> Optional[List[Story]]:
        params = scope.to_query_params()
        params["orgId"] = scope.org_id
        data = self._get_json("/api/stories", params=params, label="stories list")
        if data is None:
            return None

        entries = data.get("stories")
        if not isinstance(entries, list):
            logger.warning("Stories payload has no 'stories' array: %s", _truncate(data))
            return []
        return parse_stories(entries)

    def get_story_items(self, story_id: str, org_id: Optional[str] = None) -> Optional[List[StoryItem]]:
        params = {"storyId": story_id}
        if org_id:
            params["orgId"] = org_id
        data = self._get_json(
            "/api/story-items",
            params=params,
            label=f"items of story {story_id}",
            headers=NO_CACHE_HEADERS,
        )
        if data is None:
            return None

        entries = data.get("items")
        if not isinstance(entries, list):
            logger.warning("Items payload for story %s has no 'items' array", story_id)
            return []
        return [self._resolve_url(item) for item in parse_story_items(entries)]

    def attach_previews(self, stories: List[Story], org_id: Optional[str] = None) -> List[Story]:
        """Set each story's thumbnail to its first image item, when it has one."""
        for story in stories:
            items = self.get_story_items(story.id, org_id or story.org_id)
            story.preview_url = None
            for item in items or []:
                if item.kind == MediaKind.IMAGE:
                    story.preview_url = item.url
                    break
        return stories

    def _resolve_url(self, item: StoryItem) -> StoryItem:
        if item.url and item.url.startswith("/"):
            return replace(item, url=urljoin(self.base_url + "/", item.url.lstrip("/")))
        return item

    def _get_json(self, path: str, params, label: str, headers=None) -> Optional[dict]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Request for %s failed: %s", label, exc)
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("Invalid JSON when decoding %s (status %s)", label, response.status_code)
            return None

        if not isinstance(data, dict):
            logger.warning("Unexpected payload for %s: %s", label, _truncate(data))
            return None
        return data


def _truncate(data: Any, limit: int = 200) -> str:
    text = repr(data)
    return text if len(text) <= limit else text[:limit] + "..."
