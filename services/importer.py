"""Idempotent gallery import guarded by the stored ``posted`` timestamp."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from utils.record import coerce_float, coerce_int, read_field
from utils.tags import normalize_tags
from utils.time import parse_epoch_string

LOGGER = logging.getLogger(__name__)

PROGRESS_EVERY = 1000


@dataclass
class GalleryRecord:
    gid: int
    token: str
    posted: int
    archiver_key: str = ""
    title: str = ""
    title_jpn: str = ""
    category: str = ""
    thumb: str = ""
    uploader: Optional[str] = None
    filecount: int = 0
    filesize: int = 0
    expunged: bool = False
    rating: float = 0.0
    torrentcount: int = 0
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_metadata(cls, entry: Dict[str, Any]) -> "GalleryRecord":
        """Build a record from one ``gmetadata`` entry.

        Raises ``ValueError`` when ``gid`` or ``posted`` cannot be parsed;
        other numeric fields fall back to 0 with a warning.
        """
        gid = coerce_int(read_field(entry, "gid"))
        if gid is None:
            raise ValueError(f"invalid gid: {read_field(entry, 'gid')!r}")
        posted = parse_epoch_string(read_field(entry, "posted"))
        if posted is None:
            raise ValueError(f"invalid posted: {read_field(entry, 'posted')!r}")

        numbers = {}
        for name, parser in (
            ("filecount", coerce_int),
            ("filesize", coerce_int),
            ("rating", coerce_float),
            ("torrentcount", coerce_int),
        ):
            raw = read_field(entry, name)
            value = parser(raw)
            if value is None:
                LOGGER.warning("Unparsable %s for gid=%s value=%r, using 0", name, gid, raw)
                value = 0
            numbers[name] = value

        return cls(
            gid=gid,
            token=str(read_field(entry, "token", "") or ""),
            posted=posted,
            archiver_key=str(read_field(entry, "archiver_key", "") or ""),
            title=str(read_field(entry, "title", "") or ""),
            title_jpn=str(read_field(entry, "title_jpn", "") or ""),
            category=str(read_field(entry, "category", "") or ""),
            thumb=str(read_field(entry, "thumb", "") or ""),
            uploader=read_field(entry, "uploader"),
            filecount=numbers["filecount"],
            filesize=numbers["filesize"],
            expunged=bool(read_field(entry, "expunged", False)),
            rating=float(numbers["rating"]),
            torrentcount=numbers["torrentcount"],
            tags=normalize_tags(read_field(entry, "tags") or []),
        )


@dataclass
class ImportResult:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def imported(self) -> int:
        return self.inserted + self.updated


class Importer:
    """Insert new galleries and update stored ones that are stale.

    An existing row is only overwritten when the incoming ``posted`` is
    newer, unless ``force`` is set. Per-record store failures are logged
    and skipped; failing to load the existing timestamps aborts the import.
    """

    def __init__(self, store):
        self.store = store

    def run(self, entries: Iterable[Dict[str, Any]], *, force: bool = False) -> ImportResult:
        entries = list(entries)
        LOGGER.info("Starting data import count=%s force=%s", len(entries), force)
        posted_map = self.store.load_posted_map()
        result = ImportResult()

        for index, entry in enumerate(entries, start=1):
            try:
                record = GalleryRecord.from_metadata(entry)
            except ValueError as exc:
                result.skipped += 1
                LOGGER.error("Skipping metadata gid=%s: %s", read_field(entry, "gid"), exc)
                continue

            stored_posted = posted_map.get(record.gid)
            if stored_posted is None:
                try:
                    self.store.insert_gallery(record)
                except Exception:
                    result.failed += 1
                    LOGGER.error("Failed to insert gallery gid=%s", record.gid, exc_info=True)
                    continue
                result.inserted += 1
                posted_map[record.gid] = record.posted
                LOGGER.debug("Inserted gallery gid=%s", record.gid)
            elif force or record.posted > stored_posted:
                try:
                    self.store.update_gallery(record)
                except Exception:
                    result.failed += 1
                    LOGGER.error("Failed to update gallery gid=%s", record.gid, exc_info=True)
                    continue
                result.updated += 1
                posted_map[record.gid] = record.posted
                LOGGER.debug("Updated gallery gid=%s", record.gid)
            else:
                result.skipped += 1

            if index % PROGRESS_EVERY == 0:
                LOGGER.info("Import progress processed=%s imported=%s", index, result.imported)

        LOGGER.info(
            "Import completed inserted=%s updated=%s skipped=%s failed=%s",
            result.inserted,
            result.updated,
            result.skipped,
            result.failed,
        )

        if result.imported > 0:
            try:
                self.store.refresh_stats()
            except Exception:
                LOGGER.error("Failed to refresh statistics views", exc_info=True)
        return result
