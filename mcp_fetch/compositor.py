"""Vertical merging of downloaded images into a single JPEG."""

from __future__ import annotations

import io
import logging
from typing import List, Sequence, Tuple

from PIL import Image

from .errors import ImageDecodeError, NoImagesToComposite
from .models import CompositeArtifact, ImageBuffer

logger = logging.getLogger("mcp_fetch")

MAX_OUTPUT_QUALITY = 85
DISPLAY_MAX_WIDTH = 1200
DISPLAY_MAX_HEIGHT = 1600
INDIVIDUAL_QUALITY = 80
BACKGROUND = (255, 255, 255)


def image_size(data: bytes) -> Tuple[int, int]:
    """Read the pixel dimensions from the image header without decoding pixels."""
    try:
        with Image.open(io.BytesIO(data)) as raw_image:
            return raw_image.size
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageDecodeError(f"Cannot decode image: {exc}") from exc


def decode_image(data: bytes) -> Image.Image:
    """Decode the first frame of an image into RGB, flattening alpha onto white."""
    try:
        with Image.open(io.BytesIO(data)) as raw_image:
            raw_image.seek(0)
            image = raw_image.convert("RGBA")
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageDecodeError(f"Cannot decode image: {exc}") from exc
    flattened = Image.new("RGB", image.size, BACKGROUND)
    flattened.paste(image, mask=image.getchannel("A"))
    return flattened


def encode_jpeg(image: Image.Image, quality: int) -> bytes:
    buffer = io.BytesIO()
    image.convert("RGB").save(
        buffer,
        format="JPEG",
        quality=quality,
        optimize=True,
        subsampling=2,  # 4:2:0
    )
    return buffer.getvalue()


def canvas_size(
    sizes: Sequence[Tuple[int, int]], max_width: int, max_height: int
) -> Tuple[int, int]:
    """Width of the widest image and the summed heights, each capped.

    Heights are summed before any image is resized, so the canvas can end up taller
    or shorter than the stacked result.
    """
    width = min(max_width, max(w for w, _ in sizes))
    height = min(max_height, sum(h for _, h in sizes))
    return max(1, width), max(1, height)


def _fit_within(image: Image.Image, max_width: int, max_height: int) -> Image.Image:
    width, height = image.size
    scale = min(max_width / float(width), max_height / float(height), 1.0)
    if scale >= 1.0:
        return image
    new_size = (max(1, int(width * scale)), max(1, int(height * scale)))
    return image.resize(new_size, Image.Resampling.LANCZOS)


def stack_images(
    images: Sequence[Image.Image], max_width: int, max_height: int
) -> Image.Image:
    """Paste ``images`` top to bottom on a white canvas."""
    width, height = canvas_size([img.size for img in images], max_width, max_height)
    canvas = Image.new("RGB", (width, height), BACKGROUND)

    offset = 0
    for image in images:
        if offset >= max_height:
            break
        if image.width > width:
            scale = width / float(image.width)
            image = image.resize(
                (width, max(1, int(image.height * scale))), Image.Resampling.LANCZOS
            )
        canvas.paste(image, (0, offset))
        offset += image.height
    return canvas


def composite_vertically(
    buffers: Sequence[ImageBuffer],
    max_width: int,
    max_height: int,
    quality: int,
) -> CompositeArtifact:
    """Merge ``buffers`` into one JPEG canvas no wider than ``max_width``."""
    if not buffers:
        raise NoImagesToComposite("No images to merge")

    decoded: List[Image.Image] = [decode_image(buffer.data) for buffer in buffers]
    canvas = stack_images(decoded, max_width, max_height)
    data = encode_jpeg(canvas, quality)
    logger.debug(
        "Merged %d image(s) into %dx%d JPEG (%d bytes)",
        len(decoded),
        canvas.width,
        canvas.height,
        len(data),
    )
    return CompositeArtifact(data=data, width=canvas.width, height=canvas.height)


def to_individual_jpeg(data: bytes) -> bytes:
    """Re-encode a single downloaded image as JPEG for storage."""
    return encode_jpeg(decode_image(data), INDIVIDUAL_QUALITY)


def fit_for_display(
    artifact: CompositeArtifact, max_width: int, max_height: int, quality: int
) -> CompositeArtifact:
    """Scale a merged image down to the display bounds and re-encode it.

    Bounds are ``min(max_width, 1200)`` by ``min(max_height, 1600)``; images are never
    enlarged. Quality is capped at ``MAX_OUTPUT_QUALITY``.
    """
    image = decode_image(artifact.data)
    image = _fit_within(
        image,
        min(max_width, DISPLAY_MAX_WIDTH),
        min(max_height, DISPLAY_MAX_HEIGHT),
    )
    data = encode_jpeg(image, min(quality, MAX_OUTPUT_QUALITY))
    return CompositeArtifact(data=data, width=image.width, height=image.height)
