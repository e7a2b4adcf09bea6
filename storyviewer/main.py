#!/usr/bin/env python3
import argparse
import logging
import os
import signal
import threading
from pathlib import Path

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import pygame  # noqa: E402

from storyviewer.config import Config, load_config  # noqa: E402
from storyviewer.services.api_client import StoryApiClient  # noqa: E402
from storyviewer.services.image_cache import ImageCache  # noqa: E402
from storyviewer.services.playback_controller import PlaybackController  # noqa: E402
from storyviewer.services.refresh import STORIES_REFRESH, RefreshBus, StoriesPoller  # noqa: E402
from storyviewer.services.scheduler import ThreadScheduler  # noqa: E402
from storyviewer.services.story_cache import StoryListCache  # noqa: E402
from storyviewer.ui.scroll_lock import ScrollLock  # noqa: E402
from storyviewer.ui.story_rail import StoryRail  # noqa: E402
from storyviewer.ui.viewer_shell import ViewerShell  # noqa: E402

logger = logging.getLogger("storyviewer")

PAGE_COLOR = (248, 250, 252)


def run(config: Config, shutdown_event: threading.Event) -> None:
    scope = config.scope.to_scope()
    api_client = StoryApiClient(base_url=config.api.base_url, timeout=config.api.timeout)
    image_cache = ImageCache(session=api_client.session, timeout=config.api.timeout)
    scheduler = ThreadScheduler()
    scroll_lock = ScrollLock()
    bus = RefreshBus()

    pygame.init()
    flags = pygame.FULLSCREEN if config.window.fullscreen else pygame.RESIZABLE
    screen = pygame.display.set_mode((config.window.width, config.window.height), flags)
    pygame.display.set_caption("Samvera stories")
    clock = pygame.time.Clock()

    controller = PlaybackController(
        api_client=api_client,
        scheduler=scheduler,
        org_id=scope.org_id,
        image_cache=image_cache,
        sample_interval_ms=config.playback.sample_interval_ms,
    )
    shell = ViewerShell(controller, image_cache, scroll_lock, screen.get_size())
    rail = StoryRail(
        api_client=api_client,
        scope=scope,
        shell=shell,
        scroll_lock=scroll_lock,
        image_cache=image_cache,
        cache=StoryListCache(config.cache.resolved_directory),
        user_id=config.scope.user_id,
        bus=bus,
    )
    poller = StoriesPoller(bus, interval=config.cache.poll_interval, is_paused=lambda: shell.is_open)

    try:
        rail.hydrate()
        rail.refresh()
        poller.start()
        logger.info("Story viewer running for org %s as %s", scope.org_id, scope.audience.value)

        while not shutdown_event.is_set():
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    shutdown_event.set()
                elif event.type == pygame.VIDEORESIZE:
                    shell.resize(event.size)
                elif event.type == pygame.WINDOWFOCUSGAINED and not shell.is_open:
                    bus.publish(STORIES_REFRESH)
                elif not shell.handle_event(event):
                    rail.handle_event(event, screen.get_width())

            screen.fill(PAGE_COLOR)
            rail.draw(screen)
            shell.draw(screen)
            pygame.display.flip()
            clock.tick(config.window.fps)
    finally:
        poller.stop()
        rail.close()
        shell.shutdown()
        scheduler.cancel_all()
        pygame.quit()
        logger.info("Story viewer stopped")


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Play Samvera stories full screen.")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    parser.add_argument("--fullscreen", action="store_true", help="Open the window full screen")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    if args.fullscreen:
        config.window.fullscreen = True

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    shutdown_event = threading.Event()

    def handle_shutdown(signum=None, _frame=None):
        """Signal handler to request an orderly shutdown."""
        reason = f"Signal {signum} received" if signum is not None else "Shutdown requested"
        if not shutdown_event.is_set():
            logger.info("%s, shutting down...", reason)
        shutdown_event.set()

    signal.signal(signal.SIGTERM, handle_shutdown)
    signal.signal(signal.SIGINT, handle_shutdown)

    try:
        run(config, shutdown_event)
    except KeyboardInterrupt:
        handle_shutdown()


if __name__ == "__main__":
    main()
