"""aiohttp transport for the gallery host and its JSON API."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlencode

import aiohttp

import config
from crawlers.errors import FetchError, FetchTimeoutError, TemporarilyBannedError, UpstreamHTTPError
from services.listing_parser import (
    GalleryListItem,
    TorrentListItem,
    parse_gallery_listing,
    parse_torrent_listing,
)
from services.torrent_page_parser import TorrentPage, parse_torrent_page

LOGGER = logging.getLogger(__name__)

BAN_MARKER = "temporarily banned"
BODY_PREVIEW_CHARS = 500

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*"
JSON_ACCEPT = "application/json;q=0.9,*/*"


def _preview(body: str) -> str:
    if len(body) > BODY_PREVIEW_CHARS:
        return body[:BODY_PREVIEW_CHARS] + "..."
    return body


class EHClient:
    """Page fetcher for listings, torrent pages and the bulk metadata API.

    Usable as an async context manager; the underlying ``ClientSession`` is
    created lazily so tests can hand in their own.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        *,
        api_url: Optional[str] = None,
        cookies: Optional[str] = None,
        proxy: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.host = host or config.EH_HOST
        self.api_url = api_url or config.EH_API_URL
        self.cookies = config.EH_COOKIES if cookies is None else cookies
        self.proxy = (config.EH_PROXY if proxy is None else proxy) or None
        self.headers = dict(headers or config.CRAWLER_HEADERS)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "EHClient":
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(
                total=config.CRAWLER_HTTP_TOTAL_TIMEOUT_SECONDS,
                connect=config.CRAWLER_HTTP_CONNECT_TIMEOUT_SECONDS,
                sock_read=config.CRAWLER_HTTP_SOCK_READ_TIMEOUT_SECONDS,
            )
            connector = aiohttp.TCPConnector(limit=config.CRAWLER_HTTP_CONCURRENCY_LIMIT, ttl_dns_cache=300)
            self._session = aiohttp.ClientSession(timeout=timeout, connector=connector)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _request_headers(self, accept: str, *, referer: bool = False) -> Dict[str, str]:
        headers = dict(self.headers)
        headers["Accept"] = accept
        if referer:
            headers["Referer"] = f"https://{self.host}"
        if self.cookies:
            headers["Cookie"] = self.cookies
        return headers

    async def _request(self, method: str, url: str, **kwargs: Any) -> str:
        session = self._ensure_session()
        try:
            async with session.request(method, url, proxy=self.proxy, **kwargs) as response:
                body = await response.text(errors="replace")
                status = response.status
        except asyncio.TimeoutError as exc:
            raise FetchTimeoutError(f"request timed out: {method} {url}") from exc
        except aiohttp.ClientError as exc:
            raise FetchError(f"do request: {method} {url}: {exc}") from exc

        if BAN_MARKER in body:
            raise TemporarilyBannedError(body.strip())
        if status != 200:
            raise UpstreamHTTPError(status, url)
        return body

    async def get_text(self, url: str) -> str:
        LOGGER.debug("GET %s", url)
        return await self._request("GET", url, headers=self._request_headers(HTML_ACCEPT, referer=True))

    async def post_json(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        LOGGER.debug("POST %s", url)
        headers = self._request_headers(JSON_ACCEPT)
        headers["Content-Type"] = "application/json"
        body = await self._request("POST", url, data=json.dumps(payload), headers=headers)
        try:
            return json.loads(body)
        except ValueError as exc:
            raise FetchError(f"unmarshal response: {exc} (response body: {_preview(body)})") from exc

    # --- Endpoints ---

    def gallery_listing_url(self, next_gid: Optional[int] = None, *, expunged: bool = False) -> str:
        url = (
            f"https://{self.host}/?next={next_gid if next_gid is not None else ''}"
            "&f_cats=0&advsearch=1&f_sname=on&f_stags=on"
        )
        if expunged:
            url += "&f_sh=on"
        return url + "&f_spf=&f_spt=&f_sfl=on&f_sfu=on&f_sft=on"

    def torrent_listing_url(self, page: int = 0, *, status: Optional[str] = None, search: Optional[str] = None) -> str:
        params: List[Tuple[str, Any]] = []
        if search:
            params.append(("search", search))
        if status:
            params.append(("s", status))
        if page and page > 0:
            params.append(("page", page))
        url = f"https://{self.host}/torrents.php"
        if params:
            url += "?" + urlencode(params)
        return url

    def torrent_page_url(self, gid: int, token: str) -> str:
        return f"https://{self.host}/gallerytorrents.php?gid={gid}&t={token}"

    async def fetch_gallery_listing(self, next_gid: Optional[int] = None, *, expunged: bool = False) -> List[GalleryListItem]:
        body = await self.get_text(self.gallery_listing_url(next_gid, expunged=expunged))
        return parse_gallery_listing(body)

    async def fetch_torrent_listing(
        self, page: int = 0, *, status: Optional[str] = None, search: Optional[str] = None
    ) -> List[TorrentListItem]:
        body = await self.get_text(self.torrent_listing_url(page, status=status, search=search))
        return parse_torrent_listing(body)

    async def fetch_metadata(self, pairs: Sequence[Tuple[int, str]]) -> List[Dict[str, Any]]:
        """POST one ``gdata`` request; the caller bounds the batch size."""
        payload = {
            "method": "gdata",
            "gidlist": [[int(gid), str(token)] for gid, token in pairs],
            "namespace": 1,
        }
        data = await self.post_json(self.api_url, payload)
        entries = data.get("gmetadata") if isinstance(data, dict) else None
        if entries is None:
            raise FetchError(f"metadata response without gmetadata: {_preview(json.dumps(data))}")
        return list(entries)

    async def fetch_torrent_page(self, gid: int, token: str) -> TorrentPage:
        body = await self.get_text(self.torrent_page_url(gid, token))
        return parse_torrent_page(body)
