from bs4 import BeautifulSoup

from mcp_fetch.content import extract_content, extract_image_references, looks_like_html

PARAGRAPH = (
    "The quick brown fox jumps over the lazy dog while the reporters take notes. "
    "Every sentence here exists to give the readability scorer enough text to work with. "
)

ARTICLE = f"""<html><head><title>Fox News Today</title></head>
<body>
<nav><a href="/">Home</a></nav>
<article>
<h1>Fox jumps</h1>
<p>{PARAGRAPH * 3}</p>
<img src="/img/fox.jpg" alt="A fox">
<p>{PARAGRAPH * 2}</p>
<img src="https://cdn.example.org/dog.png">
<img src="data:image/png;base64,AAAA">
</article>
<script>var tracking = true;</script>
</body></html>"""


def test_extracts_markdown_title_and_images():
    extracted = extract_content(ARTICLE, "https://example.com/news/fox")
    assert extracted is not None
    assert "quick brown fox" in extracted.markdown
    assert "tracking" not in extracted.markdown
    assert extracted.title == "Fox News Today"
    fox = next(ref for ref in extracted.images if ref.source_url.endswith("fox.jpg"))
    assert fox.source_url == "https://example.com/img/fox.jpg"
    assert fox.alt_text == "A fox"
    assert fox.suggested_filename == "fox.jpg"
    assert not any(ref.source_url.startswith("data:") for ref in extracted.images)


def test_empty_page_cannot_be_simplified():
    assert extract_content("<html><body></body></html>", "https://example.com/") is None


def test_image_references_skip_data_uris_and_resolve_relative():
    soup = BeautifulSoup(
        '<div><img src="a/b.gif"><img src=""><img src="data:x"><img src="/c"></div>',
        "html.parser",
    )
    refs = extract_image_references(soup, "https://example.com/dir/page.html")
    assert [r.source_url for r in refs] == [
        "https://example.com/dir/a/b.gif",
        "https://example.com/c",
    ]
    assert refs[1].suggested_filename == "image.jpg"


def test_looks_like_html():
    assert looks_like_html("<!doctype html><HTML>", "")
    assert looks_like_html("whatever", "text/html; charset=utf-8")
    assert not looks_like_html('{"a": 1}', "application/json")
