"""High-level orchestration: fetch a page, simplify it, and process its images."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import requests

from .compositor import composite_vertically, fit_for_display, to_individual_jpeg
from .config import FetchConfig
from .content import extract_content, looks_like_html
from .errors import FetchError, HTTPStatusError, PersistenceFailed
from .images import acquire_images
from .models import (
    FetchResult,
    ImageReference,
    OriginPolicy,
    PaginationWindow,
    ProcessedImage,
)
from .reader import read_bounded_text
from .redirects import RedirectFetcher
from .resources import ResourceStore
from .robots import check_robots
from .validation import Resolver

logger = logging.getLogger("mcp_fetch")

SIMPLIFY_FAILED = "<e>Page failed to be simplified from HTML</e>"


@dataclass
class FetchOptions:
    """Per-request settings, already validated to their closed ranges."""

    max_length: int = 20_000
    start_index: int = 0
    image_start_index: int = 0
    raw: bool = False
    image_max_count: int = 3
    image_max_height: int = 4000
    image_max_width: int = 1000
    image_quality: int = 80
    enable_fetch_images: bool = False
    allow_cross_origin_images: bool = True
    save_images: bool = True
    return_base64: bool = False
    ignore_robots_txt: bool = False

    @property
    def image_window(self) -> PaginationWindow:
        return PaginationWindow(self.image_start_index, self.image_max_count)


def _process_images(
    references: Sequence[ImageReference],
    final_url: str,
    options: FetchOptions,
    fetcher: RedirectFetcher,
    config: FetchConfig,
    store: Optional[ResourceStore],
    result: FetchResult,
) -> None:
    window = options.image_window
    acquired = acquire_images(
        references,
        window,
        final_url,
        OriginPolicy.from_flag(options.allow_cross_origin_images),
        fetcher,
        config,
    )
    if not acquired.buffers:
        logger.info("No images accepted from %s", final_url)
        return

    persist = options.save_images and store is not None
    if persist:
        for offset, buffer in enumerate(acquired.buffers):
            try:
                path = store.save_individual(
                    to_individual_jpeg(buffer.data),
                    final_url,
                    window.start_index + offset,
                    buffer.reference.alt_text,
                    buffer.reference.suggested_filename,
                )
            except (FetchError, OSError) as exc:
                logger.warning("Failed to save individual image %d: %s", offset, exc)
                continue
            result.individual_paths.append(path)

    merged = composite_vertically(
        acquired.buffers,
        options.image_max_width,
        options.image_max_height,
        options.image_quality,
    )
    artifact = fit_for_display(
        merged, options.image_max_width, options.image_max_height, options.image_quality
    )

    file_path = None
    if persist:
        try:
            file_path = store.save_composite(artifact.data, final_url, window.start_index)
        except PersistenceFailed as exc:
            logger.warning("Failed to save image to file: %s", exc)

    result.images.append(
        ProcessedImage(
            data=base64.b64encode(artifact.data).decode("ascii") if options.return_base64 else "",
            mime_type=artifact.mime_type,
            file_path=file_path,
        )
    )


def fetch_url(
    url: str,
    options: Optional[FetchOptions] = None,
    config: Optional[FetchConfig] = None,
    *,
    session: Optional[requests.Session] = None,
    store: Optional[ResourceStore] = None,
    resolver: Optional[Resolver] = None,
    respect_robots: bool = True,
) -> FetchResult:
    """Fetch ``url`` and return its simplified content and merged images.

    Failures fetching the page itself propagate as ``FetchError``. Failures in the
    image step are logged and leave the text result intact.
    """
    options = options or FetchOptions()
    config = config or FetchConfig()
    fetcher = RedirectFetcher(config, session=session, resolver=resolver)

    if respect_robots and not options.ignore_robots_txt:
        check_robots(url, config.user_agent, config, fetcher)

    outcome = fetcher.fetch(url, headers={"User-Agent": config.user_agent})
    if not outcome.response.ok:
        status = outcome.response.status_code
        outcome.response.close()
        raise HTTPStatusError(
            f"Failed to fetch {url} - status code {status}", outcome.final_url, status
        )

    text, content_type = read_bounded_text(
        outcome.response, config.max_html_bytes, config.timeout_ms
    )
    final_url = outcome.final_url
    logger.info("Fetched %s (%d chars, %s)", final_url, len(text), content_type or "unknown")

    if options.raw or not looks_like_html(text, content_type):
        return FetchResult(
            url=url,
            final_url=final_url,
            content=(
                f"Content type {content_type} cannot be simplified to markdown, "
                f"but here is the raw content:\n{text}"
            ),
        )

    extracted = extract_content(text, final_url)
    if extracted is None:
        return FetchResult(url=url, final_url=final_url, content=SIMPLIFY_FAILED)

    result = FetchResult(
        url=url,
        final_url=final_url,
        content=extracted.markdown,
        title=extracted.title,
    )
    result.remaining_content = len(result.content) - (options.start_index + options.max_length)
    result.remaining_images = options.image_window.remaining(len(extracted.images))

    if options.enable_fetch_images and options.image_max_count > 0 and extracted.images:
        try:
            _process_images(
                extracted.images, final_url, options, fetcher, config, store, result
            )
        except (FetchError, OSError) as exc:
            logger.error("Error processing images for %s: %s", final_url, exc)
    return result


def paginate_content(result: FetchResult, options: FetchOptions) -> str:
    """Slice the content window and append a continuation hint when more remains."""
    content = result.content[options.start_index : options.start_index + options.max_length]

    remaining: List[str] = []
    if result.remaining_content > 0:
        remaining.append(f"{result.remaining_content} characters of text remaining")
    if result.remaining_images > 0:
        shown = options.image_start_index + len(result.images)
        remaining.append(
            f"{result.remaining_images} more images available "
            f"({shown}/{shown + result.remaining_images} shown)"
        )
    if remaining:
        content += (
            f"\n\n<e>Content truncated. {', '.join(remaining)}. Call the imageFetch tool "
            f"with start_index={options.start_index + options.max_length} and/or "
            f"imageStartIndex={options.image_start_index + len(result.images)} "
            "to get more content.</e>"
        )
    return content
