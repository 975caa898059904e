"""Utility helpers for string normalization and path handling."""

from __future__ import annotations

import posixpath
import re
from urllib.parse import unquote, urlsplit

UNSAFE_NAME_PATTERN = re.compile(r"[^a-zA-Z0-9\-_]")
UNSAFE_HOST_PATTERN = re.compile(r"[^a-zA-Z0-9]")
DEFAULT_IMAGE_FILENAME = "image.jpg"


def filename_from_url(url: str) -> str:
    """Return the last path segment of ``url`` if it looks like a file name."""
    try:
        path = urlsplit(url).path
    except ValueError:
        return DEFAULT_IMAGE_FILENAME
    filename = posixpath.basename(unquote(path))
    if not filename or "." not in filename:
        return DEFAULT_IMAGE_FILENAME
    return filename


def safe_filename_stem(filename: str) -> str:
    stem, _ = posixpath.splitext(filename)
    return UNSAFE_NAME_PATTERN.sub("_", stem) or "image"


def safe_hostname(url: str) -> str:
    return UNSAFE_HOST_PATTERN.sub("_", urlsplit(url).hostname or "unknown")
