"""Time utilities for upstream timestamps.

Upstream listing pages render posted times as ``YYYY-MM-DD HH:MM`` in UTC and
the metadata API returns unix seconds as a string. Everything is compared as
integer unix seconds so the high-water marks stored in the database and the
values parsed from pages share one scale.
"""

from datetime import datetime, timezone

LISTING_TIME_FORMAT = "%Y-%m-%d %H:%M"


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def now_epoch() -> int:
    return int(now_utc().timestamp())


def parse_listing_time(value: str) -> int:
    """Parse a listing ``posted`` string into unix seconds.

    Raises ``ValueError`` for anything that is not ``YYYY-MM-DD HH:MM``.
    """
    parsed = datetime.strptime(value.strip(), LISTING_TIME_FORMAT)
    return int(parsed.replace(tzinfo=timezone.utc).timestamp())


def parse_epoch_string(value) -> int | None:
    """Parse the API ``posted`` field (unix seconds as a string).

    Returns ``None`` when the value is missing or not an integer.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def epoch_to_datetime(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)
