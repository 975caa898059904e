import io
from typing import Dict, List, Optional, Tuple

import pytest
import requests
from PIL import Image
from requests.structures import CaseInsensitiveDict

from mcp_fetch.config import FetchConfig

PUBLIC_IP = "93.184.216.34"


def make_response(
    url: str,
    status: int = 200,
    body: bytes = b"",
    headers: Optional[Dict[str, str]] = None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.url = url
    response.headers = CaseInsensitiveDict(headers or {})
    response.raw = io.BytesIO(body)
    return response


def image_bytes(width: int, height: int, fmt: str = "JPEG", color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    mode = "RGBA" if fmt == "PNG" else "RGB"
    Image.new(mode, (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


class FakeSession:
    """Stands in for ``requests.Session`` with canned responses per URL."""

    def __init__(self, routes: Optional[Dict[str, Tuple]] = None) -> None:
        self.routes: Dict[str, Tuple] = dict(routes or {})
        self.calls: List[str] = []
        self.kwargs: List[dict] = []

    def add(self, url: str, status: int = 200, body: bytes = b"", headers=None) -> None:
        self.routes[url] = (status, body, headers or {})

    def get(self, url: str, **kwargs) -> requests.Response:
        self.calls.append(url)
        self.kwargs.append(kwargs)
        if url not in self.routes:
            return make_response(url, 404, b"not found")
        status, body, headers = self.routes[url]
        return make_response(url, status, body, headers)


@pytest.fixture
def config(tmp_path):
    return FetchConfig(output_root=tmp_path / "downloads")


@pytest.fixture
def public_resolver():
    return lambda hostname: [PUBLIC_IP]


@pytest.fixture
def session():
    return FakeSession()
