"""Streaming body reads that never buffer more than a fixed number of bytes."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

import requests

from .deadline import call_with_deadline
from .errors import BodyTooLarge, DeclaredTooLarge, FetchTimeout, RequestFailed

logger = logging.getLogger("mcp_fetch")

CHUNK_SIZE = 64 * 1024


@dataclass
class CappedBody:
    """Accumulator whose byte count can never pass ``limit``."""

    limit: int
    content_type_hint: str = ""
    bytes_so_far: int = 0
    _chunks: List[bytes] = field(default_factory=list, repr=False)

    def feed(self, chunk: bytes) -> None:
        if self.bytes_so_far + len(chunk) > self.limit:
            raise BodyTooLarge(f"Response exceeded limit ({self.limit} bytes)")
        self._chunks.append(chunk)
        self.bytes_so_far += len(chunk)

    def getvalue(self) -> bytes:
        return b"".join(self._chunks)


def _declared_length(response: requests.Response) -> Optional[int]:
    raw = response.headers.get("Content-Length")
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def iter_body(response: requests.Response, deadline: Optional[float] = None) -> Iterator[bytes]:
    """Yield body chunks, stopping with ``FetchTimeout`` once ``deadline`` passes."""
    try:
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if deadline is not None and time.monotonic() > deadline:
                raise FetchTimeout("Timed out while reading response body", response.url)
            if chunk:
                yield chunk
    except requests.Timeout as exc:
        raise FetchTimeout(f"Timed out while reading response body: {exc}", response.url)
    except requests.RequestException as exc:
        raise RequestFailed(f"Failed while reading response body: {exc}", response.url)


def _drain(response: requests.Response, body: CappedBody, deadline: Optional[float]) -> None:
    chunks = iter_body(response, deadline)
    try:
        for chunk in chunks:
            body.feed(chunk)
    finally:
        chunks.close()


def read_bounded(
    response: requests.Response,
    limit: int,
    timeout_ms: Optional[int] = None,
) -> Tuple[bytes, str]:
    """Read the whole body of ``response`` as bytes, capped at ``limit``.

    A declared ``Content-Length`` above the limit fails before any body byte is read.
    The running total is checked on every chunk as well, because the header may be
    missing or wrong. With ``timeout_ms`` the whole read must finish within that many
    milliseconds, however slowly bytes arrive. The connection is closed whenever the
    read stops early.
    Returns the body and the declared content type ("" when absent).
    """
    body = CappedBody(limit=limit, content_type_hint=response.headers.get("Content-Type", ""))
    declared = _declared_length(response)
    if declared is not None and declared > limit:
        response.close()
        raise DeclaredTooLarge(
            f"Response too large ({declared} bytes > {limit})", response.url
        )

    try:
        if timeout_ms:
            deadline = time.monotonic() + timeout_ms / 1000
            call_with_deadline(
                lambda: _drain(response, body, deadline),
                deadline,
                response.url,
                on_timeout=response.close,
            )
        else:
            _drain(response, body, None)
    except BodyTooLarge as exc:
        exc.url = response.url
        raise
    finally:
        response.close()

    logger.debug("Read %d bytes from %s", body.bytes_so_far, response.url)
    return body.getvalue(), body.content_type_hint


def read_bounded_text(
    response: requests.Response,
    limit: int,
    timeout_ms: Optional[int] = None,
) -> Tuple[str, str]:
    """Same as :func:`read_bounded` but decodes the body as UTF-8."""
    data, content_type = read_bounded(response, limit, timeout_ms)
    return data.decode("utf-8", errors="replace"), content_type
