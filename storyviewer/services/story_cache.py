import json
import logging
import re
from pathlib import Path
from typing import List

from storyviewer.domain.story import Story, parse_stories

logger = logging.getLogger(__name__)


class StoryListCache:
    """Last fetched stories list per user, so the rail can show something before the API answers."""

    def __init__(self, directory: Path):
        self.directory = Path(directory).expanduser()

    def path_for(self, user_id: str) -> Path:
        safe_id = re.sub(r"[^A-Za-z0-9_.-]", "_", user_id)
        return self.directory / f"stories_column_cache_{safe_id}.json"

    def load(self, user_id: str) -> List[Story]:
        path = self.path_for(user_id)
        if not path.is_file():
            return []
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable stories cache %s: %s", path, exc)
            return []
        return parse_stories(raw)

    def save(self, user_id: str, stories: List[Story]) -> None:
        path = self.path_for(user_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps([story.to_payload() for story in stories]), encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to write stories cache %s: %s", path, exc)
