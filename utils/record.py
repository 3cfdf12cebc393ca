"""Helpers for reading loosely typed upstream payloads and database rows."""


def read_field(obj, key, default=None):
    """Read ``key`` from a mapping-like row, returning ``default`` when absent."""
    if obj is None:
        return default
    if hasattr(obj, "get"):
        return obj.get(key, default)
    try:
        return obj[key]
    except (KeyError, IndexError, TypeError):
        return default


def coerce_int(value, default=None):
    """Convert API numbers that may arrive as strings (``"24"``) to ``int``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        try:
            return int(float(str(value).strip()))
        except ValueError:
            return default


def coerce_float(value, default=None):
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(str(value).strip())
    except ValueError:
        return default
