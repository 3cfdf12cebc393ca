"""Classifier and field extractor for per-gallery torrent pages."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from bs4 import BeautifulSoup

LOGGER = logging.getLogger(__name__)

PAGE_OK = "ok"
PAGE_NO_TORRENTS = "no_torrents"
PAGE_NOT_FOUND = "not_found"
PAGE_UNAVAILABLE = "unavailable"

UNAVAILABLE_MARKER = "This gallery is currently unavailable"
NOT_FOUND_MARKER = "Gallery not found"

_ANNOUNCE_RE = re.compile(r"/(\d+)/announce")
_HASH_RE = re.compile(r"([0-9a-f]{40})\.torrent")
_POSTED_RE = re.compile(r"Posted:\s*(\d{4}-\d{2}-\d{2} \d{2}:\d{2})")
_SIZE_RE = re.compile(r"Size:\s*([\d.]+\s*[KMGT]?i?B)")
_UPLOADER_RE = re.compile(r"Uploader:\s*(\S+)")


@dataclass
class TorrentRow:
    id: int
    gid: int
    name: str
    hash: Optional[str]
    addedstr: Optional[str]
    fsizestr: Optional[str]
    uploader: str
    expunged: bool = False


@dataclass
class TorrentPage:
    status: str
    root_gid: Optional[int] = None
    torrents: List[TorrentRow] = field(default_factory=list)


def _clean(value: str) -> str:
    return " ".join((value or "").split())


def _parse_form(form, root_gid: int) -> Optional[TorrentRow]:
    gtid_input = form.find("input", attrs={"name": "gtid"})
    if gtid_input is None:
        return None
    try:
        gtid = int(str(gtid_input.get("value", "")).strip())
    except ValueError:
        LOGGER.warning("Torrent row with malformed gtid=%r root_gid=%s", gtid_input.get("value"), root_gid)
        return None

    text = form.get_text(" ", strip=True)
    posted = _POSTED_RE.search(text)
    size = _SIZE_RE.search(text)
    uploader = _UPLOADER_RE.search(text)

    torrent_hash = None
    name = ""
    expunged = False
    for anchor in form.find_all("a", href=True):
        hash_match = _HASH_RE.search(anchor["href"])
        if hash_match:
            torrent_hash = hash_match.group(1)
            name = _clean(anchor.get_text(" ", strip=True))
            break

    if torrent_hash is None:
        if form.find("input", attrs={"value": "Expunged"}) is None:
            LOGGER.warning("Torrent row without hash or expunged marker gtid=%s root_gid=%s", gtid, root_gid)
            return None
        expunged = True
        cells = form.find_all("td")
        if cells:
            name = _clean(cells[-1].get_text(" ", strip=True))

    if posted is None or size is None or uploader is None:
        LOGGER.warning("Torrent row missing posted/size/uploader gtid=%s root_gid=%s", gtid, root_gid)
        return None

    return TorrentRow(
        id=gtid,
        gid=root_gid,
        name=name,
        hash=torrent_hash,
        addedstr=posted.group(1),
        fsizestr=_clean(size.group(1)),
        uploader=uploader.group(1),
        expunged=expunged,
    )


def parse_torrent_page(html: str) -> TorrentPage:
    """Classify a ``gallerytorrents.php`` body and extract its torrents.

    Every extracted row is addressed by the root gid found in the announce
    URL, not by the gallery that was requested.
    """
    body = html or ""
    if UNAVAILABLE_MARKER in body:
        return TorrentPage(status=PAGE_UNAVAILABLE)
    if NOT_FOUND_MARKER in body:
        return TorrentPage(status=PAGE_NOT_FOUND)

    announce = _ANNOUNCE_RE.search(body)
    if not announce:
        return TorrentPage(status=PAGE_NO_TORRENTS)
    root_gid = int(announce.group(1))

    soup = BeautifulSoup(body, "html.parser")
    torrents: List[TorrentRow] = []
    for form in soup.find_all("form"):
        row = _parse_form(form, root_gid)
        if row is not None:
            torrents.append(row)
    return TorrentPage(status=PAGE_OK, root_gid=root_gid, torrents=torrents)
