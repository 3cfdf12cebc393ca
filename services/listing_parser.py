"""Field extractors for the gallery and torrent listing pages."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

LOGGER = logging.getLogger(__name__)

# One gallery row: the popup link carries gid/token, the posted_<gid> cell the date.
_GALLERY_ROW_RE = re.compile(
    r"gid=\d+&amp;t=[0-9a-f]{10}&.*?posted_.*?>\d{4}-\d{2}-\d{2}\s\d{2}:\d{2}<"
)
_GALLERY_FIELDS_RE = re.compile(
    r"gid=(\d+).*?t=([0-9a-f]{10}).*?>(\d{4}-\d{2}-\d{2}\s\d{2}:\d{2})<"
)
_TORRENT_LINK_RE = re.compile(
    r"gallerytorrents\.php\?gid=(\d+)&(?:amp;)?t=([0-9a-f]{10})&(?:amp;)?gtid=(\d+)\""
)
_GID_TOKEN_RE = re.compile(r"(\d+)[/,_\s]([0-9a-f]{10})")


@dataclass(frozen=True)
class GalleryListItem:
    gid: int
    token: str
    posted: str


@dataclass(frozen=True)
class TorrentListItem:
    gid: int
    token: str
    gtid: int


def parse_gallery_listing(html: str) -> List[GalleryListItem]:
    """Extract ``(gid, token, posted)`` triples in page order."""
    items: List[GalleryListItem] = []
    for row in _GALLERY_ROW_RE.finditer(html or ""):
        match = _GALLERY_FIELDS_RE.search(row.group(0))
        if not match:
            LOGGER.debug("Skipping gallery row without fields: %.120s", row.group(0))
            continue
        items.append(GalleryListItem(gid=int(match.group(1)), token=match.group(2), posted=match.group(3)))
    return items


def parse_torrent_listing(html: str) -> List[TorrentListItem]:
    """Extract ``(gid, token, gtid)`` triples from ``torrents.php``."""
    return [
        TorrentListItem(gid=int(match.group(1)), token=match.group(2), gtid=int(match.group(3)))
        for match in _TORRENT_LINK_RE.finditer(html or "")
    ]


def parse_gid_token(value: str) -> Optional[tuple]:
    """Parse ``123/abcdef0123``, ``/g/123/abcdef0123/`` or a gallery URL."""
    if not value:
        return None
    text = value.strip()
    for prefix in ("/g/", "g/"):
        if text.startswith(prefix):
            text = text[len(prefix):]
    match = _GID_TOKEN_RE.search(text)
    if not match:
        return None
    return int(match.group(1)), match.group(2)
