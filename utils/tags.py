"""Tag normalization and category helpers for gallery metadata."""

import re

_WS_RE = re.compile(r"\s+", re.UNICODE)

# Namespace shortcuts accepted by the upstream tag search syntax.
NAMESPACE_SHORTCUTS = {
    "a": "artist",
    "c": "character",
    "char": "character",
    "cos": "cosplayer",
    "f": "female",
    "g": "group",
    "circle": "group",
    "l": "language",
    "lang": "language",
    "loc": "location",
    "m": "male",
    "x": "mixed",
    "o": "other",
    "p": "parody",
    "series": "parody",
    "r": "reclass",
}


def normalize_tag(value):
    """Lowercase, collapse whitespace and expand a shortcut namespace.

    ``"F:Big"`` becomes ``"female:big"``; a tag without a namespace is only
    cleaned up.
    """
    if value is None:
        return ""
    tag = _WS_RE.sub(" ", str(value).strip().lower())
    if ":" not in tag:
        return tag
    namespace, _, term = tag.partition(":")
    full = NAMESPACE_SHORTCUTS.get(namespace)
    if full is None:
        return tag
    return f"{full}:{term}"


def normalize_tags(values):
    if not values:
        return []
    return [normalize_tag(value) for value in values]
