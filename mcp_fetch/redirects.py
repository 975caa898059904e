"""HTTP fetching with manually followed, re-validated redirects."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Mapping, Optional, Union
from urllib.parse import urljoin

import requests

from .config import FetchConfig
from .deadline import call_with_deadline
from .errors import (
    FetchError,
    FetchTimeout,
    MissingRedirectLocation,
    RequestFailed,
    TooManyRedirects,
    UnsafeURL,
)
from .models import FetchAttempt
from .validation import Resolver, ensure_safe_url

logger = logging.getLogger("mcp_fetch")

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})


def _close_late_response(response: requests.Response) -> None:
    logger.debug("Closing response that arrived after its deadline: %s", response.url)
    response.close()


@dataclass
class Attempting:
    attempt: FetchAttempt


@dataclass
class Terminal:
    response: requests.Response
    url: str
    redirects: int


@dataclass
class Failed:
    error: FetchError


FetchState = Union[Attempting, Terminal, Failed]


@dataclass
class FetchOutcome:
    """Final non-redirect response and the URL that produced it."""

    response: requests.Response
    final_url: str
    redirects: int = 0


class RedirectFetcher:
    """Issue GET requests, following at most ``max_redirects`` validated redirects.

    Transport-level redirect following is disabled; every ``Location`` is resolved
    against the URL that produced it and validated again before it is requested.
    """

    def __init__(
        self,
        config: FetchConfig,
        session: Optional[requests.Session] = None,
        resolver: Optional[Resolver] = None,
    ) -> None:
        self.config = config
        self.session = session or requests.Session()
        self.resolver = resolver

    def fetch(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        max_hops: Optional[int] = None,
        timeout_ms: Optional[int] = None,
    ) -> FetchOutcome:
        hops = self.config.max_redirects if max_hops is None else max_hops
        timeout = (self.config.timeout_ms if timeout_ms is None else timeout_ms) / 1000
        request_headers = dict(headers or {})

        state: FetchState = Attempting(
            FetchAttempt(target_url=url, hop_index=0, deadline=time.monotonic() + timeout)
        )
        while isinstance(state, Attempting):
            state = self._advance(state.attempt, request_headers, hops, timeout)

        if isinstance(state, Failed):
            raise state.error
        return FetchOutcome(
            response=state.response, final_url=state.url, redirects=state.redirects
        )

    def _advance(
        self,
        attempt: FetchAttempt,
        headers: Mapping[str, str],
        max_hops: int,
        timeout: float,
    ) -> FetchState:
        url = attempt.target_url
        if attempt.hop_index > max_hops:
            return Failed(TooManyRedirects(f"Too many redirects (limit {max_hops})", url))

        try:
            ensure_safe_url(url, self.config, self.resolver)
        except UnsafeURL as exc:
            return Failed(exc)

        remaining = attempt.deadline - time.monotonic()
        if remaining <= 0:
            return Failed(FetchTimeout(f"request timed out after {timeout:.1f}s", url))

        try:
            response = call_with_deadline(
                lambda: self.session.get(
                    url,
                    headers=dict(headers),
                    allow_redirects=False,
                    stream=True,
                    timeout=remaining,
                ),
                attempt.deadline,
                url,
                on_late_result=_close_late_response,
            )
        except (FetchTimeout, requests.Timeout):
            return Failed(FetchTimeout(f"request timed out after {timeout:.1f}s", url))
        except requests.RequestException as exc:
            return Failed(RequestFailed(f"Request failed: {exc}", url))

        if response.status_code not in REDIRECT_STATUSES:
            return Terminal(response=response, url=url, redirects=attempt.hop_index)

        location = response.headers.get("Location")
        response.close()
        if not location:
            return Failed(
                MissingRedirectLocation(
                    f"Redirect status {response.status_code} without Location header", url
                )
            )
        next_url = urljoin(url, location)
        logger.debug(
            "Redirect %d/%d: %s -> %s", attempt.hop_index + 1, max_hops, url, next_url
        )
        return Attempting(
            FetchAttempt(
                target_url=next_url,
                hop_index=attempt.hop_index + 1,
                deadline=time.monotonic() + timeout,
            )
        )
