"""CouchDB view key collation.

View rows are ordered by key using CouchDB's collation rules::

    null < false < true < numbers < strings < arrays < objects

Strings compare case-insensitively first, lowercase before uppercase on ties,
which approximates the ICU ordering the server uses. Arrays compare
element-wise, a shorter prefix sorting first. Objects compare by their
key/value pairs in order.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any


def collation_key(value: Any) -> tuple:
    """Return a tuple that sorts like ``value`` does in a CouchDB view."""
    if value is None:
        return (0,)
    if value is False:
        return (1,)
    if value is True:
        return (2,)
    if isinstance(value, (int, float)):
        return (3, value)
    if isinstance(value, (datetime, date, time)):
        value = value.isoformat()
    if isinstance(value, str):
        return (4, value.casefold(), value.swapcase())
    if isinstance(value, (list, tuple)):
        return (5, tuple(collation_key(item) for item in value))
    if isinstance(value, dict):
        return (6, tuple((collation_key(k), collation_key(v)) for k, v in value.items()))
    return (4, str(value).casefold(), str(value))


def collate(a: Any, b: Any) -> int:
    """Three-way comparison of two keys: -1, 0 or 1."""
    ka, kb = collation_key(a), collation_key(b)
    return (ka > kb) - (ka < kb)
