import json

import httpx
import pytest

from dropcheck_agent.archive import (
    ArchiveNotFoundError,
    ArchiveUnreachableError,
    WaybackClient,
    normalize_domain,
)
from dropcheck_agent.config import AgentSettings

HEADER = ["timestamp", "original", "statuscode", "mimetype"]


def _client(handler) -> WaybackClient:
    settings = AgentSettings(wayback_base_url="https://archive.test")
    return WaybackClient(settings, transport=httpx.MockTransport(handler))


def _cdx(rows):
    return httpx.Response(200, text=json.dumps(rows), headers={"content-type": "application/json"})


def test_normalize_domain() -> None:
    assert normalize_domain("Example.COM") == "example.com"
    assert normalize_domain("https://www.example.com/path?q=1") == "www.example.com"
    assert normalize_domain(" example.org. ") == "example.org"
    with pytest.raises(ValueError):
        normalize_domain("   ")


def test_fetch_snapshots_most_recent_first() -> None:
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url)
        if request.url.path == "/cdx/search/cdx":
            return _cdx([
                HEADER,
                ["20150101000000", "http://shop.example/", "200", "text/html"],
                ["20190506070809", "http://shop.example/", "200", "text/html"],
            ])
        if "20190506070809" in request.url.path:
            return httpx.Response(200, text="<html><body><p>Online casino bonus</p></body></html>")
        return httpx.Response(200, text="<html><body>Hand made shoes</body></html>")

    records = _client(handler).fetch_snapshots("shop.example", 2)

    cdx = requested[0]
    assert cdx.params["url"] == "shop.example"
    assert cdx.params["limit"] == "-2"
    assert cdx.params.get_list("filter") == ["statuscode:200", "mimetype:text/html"]

    assert [r.captured_at.year for r in records] == [2019, 2015]
    assert records[0].text_content == "Online casino bonus"
    assert records[0].archive_url.endswith("/web/20190506070809id_/http://shop.example/")
    assert records[1].text_content == "Hand made shoes"


def test_empty_index_means_no_snapshots() -> None:
    for body in ("", "[]", json.dumps([HEADER])):
        client = _client(lambda request, body=body: httpx.Response(200, text=body))
        assert client.fetch_snapshots("new.example", 5) == []


@pytest.mark.parametrize("status, error", [(503, ArchiveUnreachableError), (429, ArchiveUnreachableError), (404, ArchiveNotFoundError)])
def test_index_errors_are_classified(status, error) -> None:
    client = _client(lambda request: httpx.Response(status))
    with pytest.raises(error):
        client.fetch_snapshots("gone.example", 3)


def test_transport_errors_are_unreachable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(ArchiveUnreachableError):
        _client(handler).fetch_snapshots("slow.example", 3)


def test_failed_captures_are_skipped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/cdx/search/cdx":
            return _cdx([
                HEADER,
                ["20200101000000", "http://a.example/", "200", "text/html"],
                ["20210101000000", "http://a.example/", "200", "text/html"],
            ])
        if "2021" in request.url.path:
            return httpx.Response(502)
        return httpx.Response(200, text="still here")

    records = _client(handler).fetch_snapshots("a.example", 5)

    assert len(records) == 1
    assert records[0].text_content == "still here"


def test_all_captures_failing_is_unreachable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/cdx/search/cdx":
            return _cdx([HEADER, ["20200101000000", "http://a.example/", "200", "text/html"]])
        return httpx.Response(500)

    with pytest.raises(ArchiveUnreachableError):
        _client(handler).fetch_snapshots("a.example", 5)


def test_malformed_index_is_unreachable() -> None:
    client = _client(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
    with pytest.raises(ArchiveUnreachableError):
        client.fetch_snapshots("a.example", 5)
