import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from services.torrent_page_parser import (
    PAGE_NO_TORRENTS,
    PAGE_NOT_FOUND,
    PAGE_OK,
    PAGE_UNAVAILABLE,
    parse_torrent_page,
)


def _load_fixture(name: str) -> str:
    path = Path(__file__).resolve().parent / "fixtures" / name
    return path.read_text(encoding="utf-8")


def test_parse_torrent_page_reads_root_and_rows():
    page = parse_torrent_page(_load_fixture("torrent_page.html"))

    assert page.status == PAGE_OK
    assert page.root_gid == 2800001
    assert [torrent.id for torrent in page.torrents] == [900012, 900004]

    current = page.torrents[0]
    assert current.gid == 2800001
    assert current.hash == "0123456789abcdef0123456789abcdef01234567"
    assert current.name == "[Circle] Third Title"
    assert current.addedstr == "2024-01-15 12:05"
    assert current.fsizestr == "152.3 MiB"
    assert current.uploader == "uploader_one"
    assert current.expunged is False


def test_parse_torrent_page_keeps_expunged_rows_without_hash():
    page = parse_torrent_page(_load_fixture("torrent_page.html"))
    expunged = page.torrents[1]

    assert expunged.hash is None
    assert expunged.expunged is True
    assert expunged.name == "Old Third Title"
    assert expunged.fsizestr == "120 MiB"
    assert expunged.uploader == "uploader_two"
    assert expunged.gid == 2800001


def test_parse_torrent_page_unavailable():
    page = parse_torrent_page(_load_fixture("torrent_page_unavailable.html"))

    assert page.status == PAGE_UNAVAILABLE
    assert page.root_gid is None
    assert page.torrents == []


def test_parse_torrent_page_not_found():
    assert parse_torrent_page(_load_fixture("torrent_page_not_found.html")).status == PAGE_NOT_FOUND


def test_parse_torrent_page_without_announce_url():
    page = parse_torrent_page(_load_fixture("torrent_page_empty.html"))

    assert page.status == PAGE_NO_TORRENTS
    assert page.torrents == []
