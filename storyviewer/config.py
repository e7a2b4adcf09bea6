"""Configuration loading for the story viewer."""

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field

from storyviewer.domain.states import Audience
from storyviewer.domain.story import StoryScope


class ApiConfig(BaseModel):
    base_url: str = "http://127.0.0.1:8000"
    timeout: float = 15.0


class ScopeConfig(BaseModel):
    org_id: str = "demo-org"
    user_id: Optional[str] = None
    audience: Audience = Audience.PARENT
    class_ids: list[str] = Field(default_factory=list)
    author_id: Optional[str] = None

    def to_scope(self) -> StoryScope:
        return StoryScope(
            org_id=self.org_id,
            audience=self.audience,
            class_ids=list(self.class_ids),
            author_id=self.author_id,
        )


class PlaybackConfig(BaseModel):
    sample_interval_ms: float = Field(default=100.0, gt=0)


class WindowConfig(BaseModel):
    width: int = 1024
    height: int = 768
    fullscreen: bool = False
    fps: int = 60


class CacheConfig(BaseModel):
    directory: str = "~/.cache/storyviewer"
    poll_interval: float = Field(default=60.0, gt=0)

    @property
    def resolved_directory(self) -> Path:
        return Path(self.directory).expanduser()


class Config(BaseModel):
    log_level: str = "INFO"
    api: ApiConfig = Field(default_factory=ApiConfig)
    scope: ScopeConfig = Field(default_factory=ScopeConfig)
    playback: PlaybackConfig = Field(default_factory=PlaybackConfig)
    window: WindowConfig = Field(default_factory=WindowConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)


def _project_root() -> Path:
    return Path(__file__).parent.parent


def load_config(config_path: Path | None = None) -> Config:
    """Load config from YAML file. Falls back to defaults if file missing."""
    if config_path is None:
        config_path = _project_root() / "config.yaml"

    if config_path.exists():
        raw: dict[str, Any] = yaml.safe_load(config_path.read_text()) or {}
        return Config(**raw)

    return Config()
