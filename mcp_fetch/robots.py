"""robots.txt policy checks built on the safe redirect fetcher."""

from __future__ import annotations

import logging
from urllib.parse import urlsplit
from urllib.robotparser import RobotFileParser

from .config import MAX_ROBOTS_BYTES, FetchConfig
from .errors import FetchError, RobotsDisallowed
from .reader import read_bounded_text
from .redirects import RedirectFetcher

logger = logging.getLogger("mcp_fetch")


def robots_url_for(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}/robots.txt"


def check_robots(
    url: str,
    user_agent: str,
    config: FetchConfig,
    fetcher: RedirectFetcher,
) -> None:
    """Raise ``RobotsDisallowed`` when the site forbids autonomous fetching of ``url``.

    A robots.txt that cannot be retrieved does not block the fetch.
    """
    robots_url = robots_url_for(url)
    try:
        outcome = fetcher.fetch(
            robots_url,
            headers={"User-Agent": user_agent},
            timeout_ms=config.robots_timeout_ms,
        )
        status = outcome.response.status_code
        if status in (401, 403):
            outcome.response.close()
            raise RobotsDisallowed(
                "Autonomous fetching not allowed based on robots.txt response", url
            )
        if not outcome.response.ok:
            outcome.response.close()
            logger.debug("No robots.txt at %s (status %d)", robots_url, status)
            return
        text, _ = read_bounded_text(
            outcome.response, MAX_ROBOTS_BYTES, config.robots_timeout_ms
        )
    except RobotsDisallowed:
        raise
    except FetchError as exc:
        logger.warning("Could not retrieve %s [%s]: %s", robots_url, exc.reason, exc)
        return

    parser = RobotFileParser(robots_url)
    parser.parse(text.splitlines())
    if not parser.can_fetch(user_agent, url):
        raise RobotsDisallowed(
            "The site's robots.txt specifies that autonomous fetching is not allowed. "
            "Try manually fetching the page using the fetch prompt.",
            url,
        )
