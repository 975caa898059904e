"""HTML extraction: article markdown, title, and image references."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional
from urllib.parse import urljoin

import html2text
from bs4 import BeautifulSoup
from readability import Document
from readability.readability import Unparseable

from .models import ImageReference
from .utils import filename_from_url

_MIN_PLAINTEXT_CHARS = 200


@dataclass
class ExtractedContent:
    markdown: str
    images: List[ImageReference] = field(default_factory=list)
    title: Optional[str] = None


def looks_like_html(text: str, content_type: str) -> bool:
    return "<html" in text[:4096].lower() or "text/html" in content_type.lower()


def _clean_content(soup: BeautifulSoup, strip_chrome: bool = False) -> BeautifulSoup:
    """Remove noisy tags while keeping relevant article markup."""
    for tag in soup(["script", "style", "noscript", "form"]):
        tag.decompose()
    if strip_chrome:
        for tag in soup(["header", "footer", "nav", "aside"]):
            tag.decompose()
    return soup


def _join_plain_text(soup: BeautifulSoup) -> str:
    return "\n".join(s for s in soup.stripped_strings)


def _iter_primary_candidates(soup_full: BeautifulSoup) -> Iterable[BeautifulSoup]:
    """Yield progressively broader content scopes to fall back on."""
    for selector in ("main", "article"):
        candidate = soup_full.select_one(selector)
        if candidate:
            yield BeautifulSoup(str(candidate), "html.parser")
    if soup_full.body:
        yield BeautifulSoup(str(soup_full.body), "html.parser")


def _to_markdown(content_html: str) -> str:
    converter = html2text.HTML2Text()
    converter.ignore_links = False
    converter.ignore_images = False
    converter.body_width = 0
    converter.unicode_snob = True
    return converter.handle(content_html).strip()


def extract_image_references(summary: BeautifulSoup, base_url: str) -> List[ImageReference]:
    references: List[ImageReference] = []
    for img in summary.find_all("img"):
        src = (img.get("src") or "").strip()
        if not src or src.startswith("data:"):
            continue
        absolute = urljoin(base_url, src)
        references.append(
            ImageReference(
                source_url=absolute,
                alt_text=(img.get("alt") or "").strip(),
                suggested_filename=filename_from_url(absolute),
            )
        )
    return references


def extract_content(html: str, final_url: str) -> Optional[ExtractedContent]:
    """Simplify a page to markdown; ``None`` when nothing readable remains."""
    document = Document(html)
    soup_full = BeautifulSoup(html, "html.parser")

    try:
        summary_html = document.summary(html_partial=True)
    except Unparseable:
        summary_html = ""
    summary = _clean_content(BeautifulSoup(summary_html, "html.parser"))
    plain_text = _join_plain_text(summary)
    full_has_images = bool(soup_full.find("img"))

    if len(plain_text) < _MIN_PLAINTEXT_CHARS or (
        full_has_images and not summary.find("img")
    ):
        for candidate in _iter_primary_candidates(soup_full):
            candidate = _clean_content(candidate, strip_chrome=True)
            candidate_plain = _join_plain_text(candidate)
            if len(candidate_plain) >= _MIN_PLAINTEXT_CHARS or (
                full_has_images and candidate.find("img")
            ):
                summary = candidate
                plain_text = candidate_plain
                break

    images = extract_image_references(summary, final_url)
    if not plain_text and not images:
        return None

    title = document.short_title()
    if title == "[no-title]":
        title = None
    if not title and soup_full.title and soup_full.title.string:
        title = soup_full.title.string.strip()

    return ExtractedContent(
        markdown=_to_markdown(summary.decode()),
        images=images,
        title=title or None,
    )
