"""Tests for the per-user stories list cache."""

from datetime import datetime, timezone

from storyviewer.domain.story import Story
from storyviewer.services.story_cache import StoryListCache


def test_save_then_load(tmp_path):
    cache = StoryListCache(tmp_path / "nested")
    stories = [
        Story(id="a", title="A", expires_at=datetime(2026, 10, 18, tzinfo=timezone.utc), preview_url="p.jpg"),
        Story(id="b"),
    ]

    cache.save("user-1", stories)

    assert cache.load("user-1") == stories
    assert cache.load("someone-else") == []


def test_user_id_is_sanitised_in_file_name(tmp_path):
    cache = StoryListCache(tmp_path)

    path = cache.path_for("../evil user")

    assert path.parent == tmp_path
    assert path.name == "stories_column_cache_.._evil_user.json"


def test_corrupt_cache_is_ignored(tmp_path):
    cache = StoryListCache(tmp_path)
    cache.path_for("u").write_text("{not json", encoding="utf-8")

    assert cache.load("u") == []
