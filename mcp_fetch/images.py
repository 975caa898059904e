"""Image acquisition: safe, sequential, size-capped downloads of page images."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence, Tuple
from urllib.parse import urlsplit

from filetype import guess

from .compositor import image_size
from .config import FetchConfig
from .errors import FetchError, OriginNotAllowed, UnsupportedImage
from .models import (
    AcquisitionResult,
    ImageBuffer,
    ImageReference,
    OriginPolicy,
    PaginationWindow,
)
from .reader import read_bounded
from .redirects import RedirectFetcher
from .validation import ensure_safe_url

logger = logging.getLogger("mcp_fetch")

ALLOWED_IMAGE_TYPES = {"png", "jpg", "jpeg", "gif", "webp", "bmp", "tiff"}
DEFAULT_PORTS = {"http": 80, "https": 443}


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type using filetype; returns lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext == "jpeg":
            return "jpg"
        return ext
    return None


def infer_image_extension(content_type: Optional[str], data: bytes) -> Optional[str]:
    """Guess an image file extension from the file signature or HTTP metadata."""
    detected = detect_image_format(data)
    if detected:
        return detected
    if not content_type:
        return None
    parts = content_type.split(";")[0].split("/")
    if len(parts) == 2 and parts[0].strip().lower() == "image":
        ext = parts[1].strip().lower()
        if ext == "jpeg":
            ext = "jpg"
        return ext
    return None


def origin_of(url: str) -> Tuple[str, str, int]:
    """Return the ``(scheme, host, port)`` origin of ``url`` with default ports filled."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    port = parts.port or DEFAULT_PORTS.get(scheme, 0)
    return scheme, host, port


def _check_origin(url: str, document_origin: Tuple[str, str, int], policy: OriginPolicy) -> None:
    if policy is OriginPolicy.SAME_ORIGIN and origin_of(url) != document_origin:
        raise OriginNotAllowed("Image is not same-origin with the document", url)


def fetch_image(
    reference: ImageReference,
    document_origin: Tuple[str, str, int],
    policy: OriginPolicy,
    fetcher: RedirectFetcher,
    config: FetchConfig,
) -> ImageBuffer:
    """Fetch one image, raising ``FetchError`` for any reason to skip it."""
    url = ensure_safe_url(reference.source_url, config, fetcher.resolver)
    _check_origin(url, document_origin, policy)

    outcome = fetcher.fetch(url, headers={"User-Agent": config.user_agent})
    _check_origin(outcome.final_url, document_origin, policy)
    if not outcome.response.ok:
        outcome.response.close()
        raise FetchError(
            f"Image request returned status {outcome.response.status_code}",
            outcome.final_url,
        )

    data, content_type = read_bounded(
        outcome.response, config.max_image_bytes, config.timeout_ms
    )
    extension = infer_image_extension(content_type, data)
    if not extension or extension not in ALLOWED_IMAGE_TYPES:
        raise UnsupportedImage(
            f"Unsupported image type (Content-Type={content_type or 'unknown'})",
            outcome.final_url,
        )
    image_size(data)
    return ImageBuffer(reference=reference, data=data, content_type=content_type)


def acquire_images(
    references: Sequence[ImageReference],
    window: PaginationWindow,
    document_url: str,
    policy: OriginPolicy,
    fetcher: RedirectFetcher,
    config: FetchConfig,
) -> AcquisitionResult:
    """Download the images of ``references`` that fall inside ``window``.

    Images are fetched one at a time in list order. A reference that fails any check
    is logged and skipped; the remaining ones are still attempted.
    """
    result = AcquisitionResult()
    if window.max_count == 0:
        return result

    document_origin = origin_of(document_url)
    seen: Dict[str, ImageBuffer] = {}
    for reference in references[window.start_index : window.end_index]:
        if reference.source_url in seen:
            result.buffers.append(seen[reference.source_url])
            continue
        try:
            buffer = fetch_image(reference, document_origin, policy, fetcher, config)
        except FetchError as exc:
            logger.warning(
                "Skipping image %s [%s]: %s", reference.source_url, exc.reason, exc
            )
            result.skipped.append(reference.source_url)
            continue
        seen[reference.source_url] = buffer
        result.buffers.append(buffer)

    result.buffers = result.buffers[: window.max_count]
    return result

