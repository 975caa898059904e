"""Data models used throughout the fetch pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

MAX_PAGE_COUNT = 10


@dataclass(frozen=True)
class Allowed:
    """Validation passed; ``url`` is the normalised URL that may be requested."""

    url: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    """Validation failed with a reason code and a human-readable detail."""

    reason: str
    detail: str = ""

    @property
    def ok(self) -> bool:
        return False


SafetyVerdict = Union[Allowed, Rejected]


@dataclass
class FetchAttempt:
    """One request issued by the redirect fetcher."""

    target_url: str
    hop_index: int
    deadline: float


@dataclass(frozen=True)
class ImageReference:
    """Image discovered in the document, resolved to an absolute URL."""

    source_url: str
    alt_text: str = ""
    suggested_filename: str = "image.jpg"


@dataclass
class ImageBuffer:
    """Raw bytes of an accepted image."""

    reference: ImageReference
    data: bytes
    content_type: str = ""


@dataclass
class CompositeArtifact:
    """Vertically merged image ready to return or persist."""

    data: bytes
    width: int
    height: int
    mime_type: str = "image/jpeg"


class OriginPolicy(str, Enum):
    SAME_ORIGIN = "same-origin"
    CROSS_ORIGIN = "cross-origin"

    @classmethod
    def from_flag(cls, allow_cross_origin: bool) -> "OriginPolicy":
        return cls.CROSS_ORIGIN if allow_cross_origin else cls.SAME_ORIGIN


@dataclass(frozen=True)
class PaginationWindow:
    """``(start_index, max_count)`` slice applied to a list of items."""

    start_index: int = 0
    max_count: int = 3

    def __post_init__(self) -> None:
        if self.start_index < 0:
            raise ValueError(f"start_index must be >= 0, got {self.start_index}")
        if not 0 <= self.max_count <= MAX_PAGE_COUNT:
            raise ValueError(
                f"max_count must be between 0 and {MAX_PAGE_COUNT}, got {self.max_count}"
            )

    @property
    def end_index(self) -> int:
        return self.start_index + self.max_count

    def remaining(self, total: int) -> int:
        """Number of items left after this window."""
        return max(0, total - self.end_index)


@dataclass
class AcquisitionResult:
    """Images accepted from one window plus the URLs that were skipped."""

    buffers: List[ImageBuffer] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


@dataclass
class ImageResource:
    """Saved image exposed to clients for later retrieval."""

    uri: str
    name: str
    description: str
    mime_type: str
    file_path: Path


@dataclass
class ProcessedImage:
    """Image section of a fetch result."""

    data: str
    mime_type: str
    file_path: Optional[Path] = None


@dataclass
class FetchResult:
    """Everything a caller needs to frame a response."""

    url: str
    final_url: str
    content: str
    images: List[ProcessedImage] = field(default_factory=list)
    individual_paths: List[Path] = field(default_factory=list)
    remaining_content: int = 0
    remaining_images: int = 0
    title: Optional[str] = None
