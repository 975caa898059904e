"""Configuration objects and constants for the fetch server."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger("mcp_fetch")

DEFAULT_USER_AGENT = (
    "ModelContextProtocol/1.0 (Autonomous; +https://github.com/modelcontextprotocol/servers)"
)

DEFAULT_TIMEOUT_MS = 12_000
DEFAULT_MAX_REDIRECTS = 3
DEFAULT_MAX_HTML_BYTES = 2_000_000
DEFAULT_MAX_IMAGE_BYTES = 10_000_000

ROBOTS_TIMEOUT_MS = 8_000
MAX_ROBOTS_BYTES = 100_000


def _default_output_root() -> Path:
    return Path.home() / "Downloads" / "mcp-fetch"


@dataclass(frozen=True)
class FetchConfig:
    """Process-wide limits, timeouts and safety switches."""

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    max_html_bytes: int = DEFAULT_MAX_HTML_BYTES
    max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES
    disable_ssrf_guard: bool = False
    output_root: Path = field(default_factory=_default_output_root)
    user_agent: str = DEFAULT_USER_AGENT

    @property
    def robots_timeout_ms(self) -> int:
        return min(self.timeout_ms, ROBOTS_TIMEOUT_MS)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "FetchConfig":
        """Build a config from ``MCP_FETCH_*`` environment variables."""
        env = os.environ if environ is None else environ
        output_dir = env.get("MCP_FETCH_OUTPUT_DIR")
        return cls(
            timeout_ms=_read_int(env, "MCP_FETCH_TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
            max_redirects=_read_int(env, "MCP_FETCH_MAX_REDIRECTS", DEFAULT_MAX_REDIRECTS),
            max_html_bytes=_read_int(env, "MCP_FETCH_MAX_HTML_BYTES", DEFAULT_MAX_HTML_BYTES),
            max_image_bytes=_read_int(
                env, "MCP_FETCH_MAX_IMAGE_BYTES", DEFAULT_MAX_IMAGE_BYTES
            ),
            disable_ssrf_guard=env.get("MCP_FETCH_DISABLE_SSRF_GUARD") == "1",
            output_root=(
                Path(output_dir).expanduser() if output_dir else _default_output_root()
            ),
        )


def _read_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("%s=%r is not an integer; using default %d", name, raw, default)
        return default
    if value < 0:
        logger.warning("%s=%d is negative; using default %d", name, value, default)
        return default
    return value


@lru_cache(maxsize=1)
def load_config() -> FetchConfig:
    """Return the configuration snapshot, reading the environment only once."""
    config = FetchConfig.from_env()
    if config.disable_ssrf_guard:
        logger.warning("SSRF guard is disabled via MCP_FETCH_DISABLE_SSRF_GUARD=1")
    return config
