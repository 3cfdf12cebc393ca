import asyncio
import json
import sys
from pathlib import Path

import aiohttp
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from crawlers.eh_client import EHClient
from crawlers.errors import FetchError, FetchTimeoutError, TemporarilyBannedError, UpstreamHTTPError
from services.torrent_page_parser import PAGE_OK


def _load_fixture(name: str) -> str:
    path = Path(__file__).resolve().parent / "fixtures" / name
    return path.read_text(encoding="utf-8")


class FakeResponse:
    def __init__(self, status, body):
        self.status = status
        self.body = body

    async def text(self, errors="strict"):  # noqa: ARG002 - matches aiohttp signature
        return self.body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _client(session, **kwargs):
    return EHClient("e-hentai.org", api_url="https://api.e-hentai.org/api.php", cookies="ipb_member_id=1", proxy="", session=session, **kwargs)


def test_gallery_listing_url_with_and_without_expunged():
    client = _client(FakeSession())

    assert client.gallery_listing_url(2800001) == (
        "https://e-hentai.org/?next=2800001&f_cats=0&advsearch=1&f_sname=on&f_stags=on"
        "&f_spf=&f_spt=&f_sfl=on&f_sfu=on&f_sft=on"
    )
    assert "&f_stags=on&f_sh=on&f_spf=" in client.gallery_listing_url(None, expunged=True)
    assert client.gallery_listing_url(None).startswith("https://e-hentai.org/?next=&f_cats=0")


def test_torrent_listing_url_options():
    client = _client(FakeSession())

    assert client.torrent_listing_url(0) == "https://e-hentai.org/torrents.php"
    assert client.torrent_listing_url(2, status="1", search="english") == (
        "https://e-hentai.org/torrents.php?search=english&s=1&page=2"
    )


def test_fetch_gallery_listing_sends_cookie_and_parses_rows():
    session = FakeSession(FakeResponse(200, _load_fixture("gallery_listing.html")))
    client = _client(session)

    items = asyncio.run(client.fetch_gallery_listing(None))

    assert [item.gid for item in items] == [2800003, 2800002, 2800001]
    method, _url, kwargs = session.requests[0]
    assert method == "GET"
    assert kwargs["headers"]["Cookie"] == "ipb_member_id=1"
    assert kwargs["headers"]["Referer"] == "https://e-hentai.org"
    assert kwargs["proxy"] is None


def test_fetch_metadata_posts_gdata_request():
    body = json.dumps({"gmetadata": [{"gid": 1, "token": "0123456789", "posted": "1"}]})
    session = FakeSession(FakeResponse(200, body))

    entries = asyncio.run(_client(session).fetch_metadata([(1, "0123456789")]))

    assert entries == [{"gid": 1, "token": "0123456789", "posted": "1"}]
    method, url, kwargs = session.requests[0]
    assert (method, url) == ("POST", "https://api.e-hentai.org/api.php")
    assert json.loads(kwargs["data"]) == {"method": "gdata", "gidlist": [[1, "0123456789"]], "namespace": 1}
    assert kwargs["headers"]["Content-Type"] == "application/json"


def test_fetch_metadata_invalid_json_includes_body_preview():
    session = FakeSession(FakeResponse(200, "<html>" + "x" * 1000))

    with pytest.raises(FetchError) as excinfo:
        asyncio.run(_client(session).fetch_metadata([(1, "0123456789")]))

    assert "response body: <html>" in str(excinfo.value)
    assert str(excinfo.value).endswith("...)")


def test_non_200_status_raises_upstream_error():
    session = FakeSession(FakeResponse(503, "Service Unavailable"))

    with pytest.raises(UpstreamHTTPError) as excinfo:
        asyncio.run(_client(session).get_text("https://e-hentai.org/"))

    assert excinfo.value.status == 503


def test_ban_page_raises_temporarily_banned_with_message():
    ban = "Your IP address has been temporarily banned for excessive pageloads. The ban expires in 2 minutes"
    session = FakeSession(FakeResponse(200, ban))

    with pytest.raises(TemporarilyBannedError) as excinfo:
        asyncio.run(_client(session).get_text("https://e-hentai.org/"))

    assert "ban expires in 2 minutes" in str(excinfo.value)


def test_timeouts_and_client_errors_are_classified():
    session = FakeSession(asyncio.TimeoutError(), aiohttp.ClientConnectionError("reset"))
    client = _client(session)

    with pytest.raises(FetchTimeoutError):
        asyncio.run(client.get_text("https://e-hentai.org/"))
    with pytest.raises(FetchError):
        asyncio.run(client.get_text("https://e-hentai.org/"))


def test_fetch_torrent_page_parses_body():
    session = FakeSession(FakeResponse(200, _load_fixture("torrent_page.html")))

    page = asyncio.run(_client(session).fetch_torrent_page(2800003, "0a1b2c3d4e"))

    assert page.status == PAGE_OK
    assert page.root_gid == 2800001
    assert session.requests[0][1] == "https://e-hentai.org/gallerytorrents.php?gid=2800003&t=0a1b2c3d4e"
