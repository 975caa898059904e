import pytest
import requests

from mcp_fetch.errors import (
    AddressPrivate,
    FetchTimeout,
    LocalHostname,
    MissingRedirectLocation,
    RequestFailed,
    TooManyRedirects,
)
from mcp_fetch.redirects import RedirectFetcher


def _chain(session, hops, final_status=200):
    for i in range(hops):
        session.add(
            f"https://example.com/{i}", 302, headers={"Location": f"/{i + 1}"}
        )
    session.add(f"https://example.com/{hops}", final_status, b"done")


def test_plain_response_has_no_redirects(config, session, public_resolver):
    session.add("https://example.com/", 200, b"hello")
    outcome = RedirectFetcher(config, session, public_resolver).fetch("https://example.com/")
    assert outcome.final_url == "https://example.com/"
    assert outcome.redirects == 0
    assert outcome.response.status_code == 200
    assert session.kwargs[0]["allow_redirects"] is False
    assert session.kwargs[0]["stream"] is True


def test_follows_up_to_max_hops(config, session, public_resolver):
    _chain(session, 3)
    fetcher = RedirectFetcher(config, session, public_resolver)
    outcome = fetcher.fetch("https://example.com/0", max_hops=3)
    assert outcome.final_url == "https://example.com/3"
    assert outcome.redirects == 3
    assert session.calls == [f"https://example.com/{i}" for i in range(4)]


def test_one_redirect_too_many_fails(config, session, public_resolver):
    _chain(session, 4)
    fetcher = RedirectFetcher(config, session, public_resolver)
    with pytest.raises(TooManyRedirects):
        fetcher.fetch("https://example.com/0", max_hops=3)
    assert len(session.calls) == 4


def test_zero_hops_rejects_any_redirect(config, session, public_resolver):
    _chain(session, 1)
    with pytest.raises(TooManyRedirects):
        RedirectFetcher(config, session, public_resolver).fetch(
            "https://example.com/0", max_hops=0
        )


def test_redirect_without_location(config, session, public_resolver):
    session.add("https://example.com/", 301)
    with pytest.raises(MissingRedirectLocation):
        RedirectFetcher(config, session, public_resolver).fetch("https://example.com/")


def test_redirect_target_is_validated_again(config, session, public_resolver):
    session.add("https://example.com/", 302, headers={"Location": "http://127.0.0.1/admin"})
    with pytest.raises(AddressPrivate):
        RedirectFetcher(config, session, public_resolver).fetch("https://example.com/")
    assert session.calls == ["https://example.com/"]


def test_redirect_to_local_hostname(config, session, public_resolver):
    session.add("https://example.com/", 307, headers={"Location": "http://localhost:8080/"})
    with pytest.raises(LocalHostname):
        RedirectFetcher(config, session, public_resolver).fetch("https://example.com/")


def test_redirect_host_resolving_private_is_rejected(config, session):
    session.add("https://example.com/", 302, headers={"Location": "https://inner.example/"})
    resolver = lambda host: ["10.0.0.1"] if host == "inner.example" else ["93.184.216.34"]
    with pytest.raises(AddressPrivate) as excinfo:
        RedirectFetcher(config, session, resolver).fetch("https://example.com/")
    assert excinfo.value.reason == "resolves-private"


def test_relative_location_resolves_against_current_url(config, session, public_resolver):
    session.add("https://example.com/a/b", 303, headers={"Location": "../c"})
    session.add("https://example.com/c", 200, b"ok")
    outcome = RedirectFetcher(config, session, public_resolver).fetch("https://example.com/a/b")
    assert outcome.final_url == "https://example.com/c"


def test_unsafe_initial_url_never_connects(config, session, public_resolver):
    with pytest.raises(AddressPrivate):
        RedirectFetcher(config, session, public_resolver).fetch("http://10.0.0.1/")
    assert session.calls == []


class _RaisingSession:
    def __init__(self, exc):
        self.exc = exc

    def get(self, url, **kwargs):
        raise self.exc


def test_transport_timeout_maps_to_fetch_timeout(config, public_resolver):
    fetcher = RedirectFetcher(config, _RaisingSession(requests.ReadTimeout("slow")), public_resolver)
    with pytest.raises(FetchTimeout) as excinfo:
        fetcher.fetch("https://example.com/")
    assert excinfo.value.reason == "timeout"


def test_connection_error_maps_to_request_failed(config, public_resolver):
    fetcher = RedirectFetcher(
        config, _RaisingSession(requests.ConnectionError("refused")), public_resolver
    )
    with pytest.raises(RequestFailed):
        fetcher.fetch("https://example.com/")
