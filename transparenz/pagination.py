"""Limit/offset parsing for list endpoints and the paged response envelope."""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping

DEFAULT_LIMIT = 50
MAX_LIMIT = 100

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def _atoi(text: str | None) -> int | None:
    """Parse a base-10 signed 64-bit integer, or return None if it is not one."""
    if text is None or not _INT_RE.fullmatch(text):
        return None
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


def parse_limit_offset(query: Mapping[str, str]) -> tuple[int, int]:
    """Read limit and offset the lenient way: bad or out-of-range limits fall back to 50.

    Unparseable values count as zero; an offset below zero becomes zero.
    """
    limit = _atoi(query.get("limit", str(DEFAULT_LIMIT))) or 0
    offset = _atoi(query.get("offset", "0")) or 0
    if limit <= 0 or limit > MAX_LIMIT:
        limit = DEFAULT_LIMIT
    if offset < 0:
        offset = 0
    return limit, offset


def parse_page(query: Mapping[str, str], allow_negative_offset: bool = False) -> tuple[int, int]:
    """Read limit and offset with a limit clamped to 100.

    A positive limit above 100 becomes 100; an absent, unparseable or
    non-positive limit keeps the default of 50. The offset is taken when it
    parses and is not negative, or whenever it parses if negatives are allowed.
    """
    limit = DEFAULT_LIMIT
    offset = 0

    raw_limit = query.get("limit")
    if raw_limit:
        parsed = _atoi(raw_limit)
        if parsed is not None and parsed > 0:
            limit = min(parsed, MAX_LIMIT)

    raw_offset = query.get("offset")
    if raw_offset:
        parsed = _atoi(raw_offset)
        if parsed is not None and (allow_negative_offset or parsed >= 0):
            offset = parsed

    return limit, offset


def page_response(items: Iterable[Any], limit: int, offset: int, total: int) -> dict[str, Any]:
    """Build the standard list envelope with data, limit, offset, count and total."""
    data = list(items)
    return {
        "data": data,
        "limit": limit,
        "offset": offset,
        "count": len(data),
        "total": total,
    }