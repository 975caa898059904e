import base64
import io

import pytest
from PIL import Image

from conftest import image_bytes
from mcp_fetch.errors import HTTPStatusError, RobotsDisallowed
from mcp_fetch.fetcher import SIMPLIFY_FAILED, FetchOptions, fetch_url, paginate_content
from mcp_fetch.models import FetchResult, ProcessedImage
from mcp_fetch.resources import ResourceStore

PAGE = "https://example.com/page"
TEXT = "Sentences about the topic of the page that are long enough to count as content. " * 5


def _page(*image_srcs):
    images = "".join(f'<img src="{src}" alt="pic">' for src in image_srcs)
    return f"<html><head><title>Page</title></head><body><article><p>{TEXT}</p>{images}</article></body></html>".encode()


def _html(session, body, url=PAGE):
    session.add(url, 200, body, {"Content-Type": "text/html; charset=utf-8"})


def _jpeg(session, url, size=(1, 1)):
    session.add(url, 200, image_bytes(*size), {"Content-Type": "image/jpeg"})


def test_simplifies_html_page(config, session, public_resolver):
    _html(session, _page())
    result = fetch_url(PAGE, config=config, session=session, resolver=public_resolver)
    assert result.final_url == PAGE
    assert result.title == "Page"
    assert "long enough to count" in result.content
    assert result.images == []


def test_same_origin_image_produces_one_artifact(config, session, public_resolver, tmp_path):
    _html(session, _page("/one.jpg"))
    _jpeg(session, "https://example.com/one.jpg")
    store = ResourceStore(tmp_path / "out")
    options = FetchOptions(enable_fetch_images=True, allow_cross_origin_images=False)

    result = fetch_url(
        PAGE, options, config, session=session, store=store, resolver=public_resolver
    )

    assert len(result.images) == 1
    image = result.images[0]
    assert image.mime_type == "image/jpeg"
    assert image.data == ""
    assert image.file_path is not None and image.file_path.exists()
    assert len(result.individual_paths) == 1
    assert len(store) == 2


def test_cross_origin_image_is_dropped_under_same_origin(config, session, public_resolver):
    _html(session, _page("https://cdn.other.com/one.jpg"))
    _jpeg(session, "https://cdn.other.com/one.jpg")
    options = FetchOptions(enable_fetch_images=True, allow_cross_origin_images=False)

    result = fetch_url(PAGE, options, config, session=session, resolver=public_resolver)

    assert result.images == []
    assert "https://cdn.other.com/one.jpg" not in session.calls
    assert "long enough to count" in result.content


def test_base64_is_returned_on_request(config, session, public_resolver):
    _html(session, _page("/a.jpg", "/b.jpg"))
    _jpeg(session, "https://example.com/a.jpg", (30, 20))
    _jpeg(session, "https://example.com/b.jpg", (40, 10))
    options = FetchOptions(enable_fetch_images=True, return_base64=True, save_images=False)

    result = fetch_url(PAGE, options, config, session=session, resolver=public_resolver)

    [image] = result.images
    assert image.file_path is None
    with Image.open(io.BytesIO(base64.b64decode(image.data))) as merged:
        assert merged.size == (40, 30)


def test_image_window_and_remaining_count(config, session, public_resolver):
    srcs = [f"/{i}.jpg" for i in range(5)]
    _html(session, _page(*srcs))
    for src in srcs:
        _jpeg(session, f"https://example.com{src}")
    options = FetchOptions(enable_fetch_images=True, image_max_count=3, save_images=False)

    result = fetch_url(PAGE, options, config, session=session, resolver=public_resolver)

    assert result.remaining_images == 2
    assert "https://example.com/3.jpg" not in session.calls
    assert len(result.images) == 1


def test_failed_images_leave_text_intact(config, session, public_resolver):
    _html(session, _page("/broken.jpg"))
    session.add("https://example.com/broken.jpg", 200, b"nope", {"Content-Type": "image/jpeg"})
    options = FetchOptions(enable_fetch_images=True)

    result = fetch_url(PAGE, options, config, session=session, resolver=public_resolver)

    assert result.images == []
    assert "long enough to count" in result.content


def test_non_html_is_returned_raw(config, session, public_resolver):
    session.add(PAGE, 200, b'{"hello": "world"}', {"Content-Type": "application/json"})
    result = fetch_url(PAGE, config=config, session=session, resolver=public_resolver)
    assert result.content.startswith(
        "Content type application/json cannot be simplified to markdown"
    )
    assert result.content.endswith('{"hello": "world"}')


def test_raw_option_skips_simplification(config, session, public_resolver):
    body = _page()
    _html(session, body)
    result = fetch_url(
        PAGE, FetchOptions(raw=True), config, session=session, resolver=public_resolver
    )
    assert body.decode() in result.content


def test_unsimplifiable_html(config, session, public_resolver):
    _html(session, b"<html><body></body></html>")
    result = fetch_url(PAGE, config=config, session=session, resolver=public_resolver)
    assert result.content == SIMPLIFY_FAILED


def test_error_status_raises(config, session, public_resolver):
    session.add(PAGE, 500, b"oops")
    with pytest.raises(HTTPStatusError) as excinfo:
        fetch_url(PAGE, config=config, session=session, resolver=public_resolver)
    assert excinfo.value.status == 500


def test_robots_can_block_and_be_ignored(config, session, public_resolver):
    session.add("https://example.com/robots.txt", 200, b"User-agent: *\nDisallow: /\n")
    _html(session, _page())
    with pytest.raises(RobotsDisallowed):
        fetch_url(PAGE, config=config, session=session, resolver=public_resolver)

    result = fetch_url(
        PAGE,
        FetchOptions(ignore_robots_txt=True),
        config,
        session=session,
        resolver=public_resolver,
    )
    assert result.title == "Page"


def test_paginate_content_adds_continuation_hint():
    result = FetchResult(
        url=PAGE,
        final_url=PAGE,
        content="abcdefghij",
        images=[ProcessedImage(data="", mime_type="image/jpeg")],
        remaining_content=4,
        remaining_images=2,
    )
    options = FetchOptions(max_length=4, start_index=2, image_max_count=1)
    text = paginate_content(result, options)
    assert text.startswith("cdef\n\n<e>Content truncated.")
    assert "4 characters of text remaining" in text
    assert "2 more images available (1/3 shown)" in text
    assert "start_index=6" in text
    assert "imageStartIndex=1" in text


def test_paginate_content_without_remainder():
    result = FetchResult(url=PAGE, final_url=PAGE, content="short")
    assert paginate_content(result, FetchOptions()) == "short"


def test_returned_image_is_fitted_for_display(config, session, public_resolver):
    _html(session, _page("/tall1.jpg", "/tall2.jpg"))
    _jpeg(session, "https://example.com/tall1.jpg", (600, 1000))
    _jpeg(session, "https://example.com/tall2.jpg", (600, 1000))
    options = FetchOptions(enable_fetch_images=True, return_base64=True, save_images=False)

    result = fetch_url(PAGE, options, config, session=session, resolver=public_resolver)

    [image] = result.images
    with Image.open(io.BytesIO(base64.b64decode(image.data))) as shown:
        assert shown.height <= 1600
        assert shown.width == 480
