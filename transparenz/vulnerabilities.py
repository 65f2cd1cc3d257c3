"""Vulnerability listing: CVE checks, query filters and GRC mapping attachment."""

from __future__ import annotations

import math
import re
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from transparenz.errors import BadRequest
from transparenz.pagination import DEFAULT_LIMIT, MAX_LIMIT

INVALID_QUERY = "invalid query parameters"

_CVE_RE = re.compile(r"CVE-[0-9]{4}-[0-9]{4,}")
_INT_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)",
    re.IGNORECASE,
)
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


@dataclass
class GrcMapping:
    """A link between a vulnerability and a control of a compliance framework."""

    framework: str
    control_id: str
    mapping_type: str
    confidence: float = 0.0
    evidence: str = ""
    vulnerability_id: uuid.UUID | None = None
    cve: str | None = None
    org_id: uuid.UUID | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass
class VulnerabilityFilters:
    """Query filters accepted by the vulnerability list endpoint."""

    exploited: bool = False
    sovereign_source: str = ""
    severity: str = ""
    cvss_min: float = 0.0
    limit: int = DEFAULT_LIMIT
    offset: int = 0
    include_grc: bool = False


def is_valid_cve(cve: str) -> bool:
    """Return True if the text is a CVE identifier such as CVE-2024-12345."""
    return _CVE_RE.fullmatch(cve) is not None


def _parse_bool(text: str | None) -> bool:
    if text is None or text == "":
        return False
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"invalid boolean {text!r}")


def _parse_int(text: str | None, default: int) -> int:
    if text is None:
        return default
    if text == "":
        return 0
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"invalid integer {text!r}")
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"integer out of range {text!r}")
    return value


def _parse_float(text: str | None) -> float:
    if text is None or text == "":
        return 0.0
    if not _FLOAT_RE.fullmatch(text):
        raise ValueError(f"invalid number {text!r}")
    value = float(text)
    if math.isinf(value) and "inf" not in text.lower():
        raise ValueError(f"number out of range {text!r}")
    return value


def parse_vulnerability_filters(query: Mapping[str, str]) -> VulnerabilityFilters:
    """Read the list filters from query parameters; raise BadRequest on malformed values.

    A limit that is not positive or is above 100 falls back to 50.
    """
    try:
        filters = VulnerabilityFilters(
            exploited=_parse_bool(query.get("exploited")),
            sovereign_source=query.get("sovereign_source", ""),
            severity=query.get("severity", ""),
            cvss_min=_parse_float(query.get("cvss_min")),
            limit=_parse_int(query.get("limit"), DEFAULT_LIMIT),
            offset=_parse_int(query.get("offset"), 0),
            include_grc=_parse_bool(query.get("include_grc")),
        )
    except ValueError as exc:
        raise BadRequest(INVALID_QUERY) from exc

    if filters.limit <= 0 or filters.limit > MAX_LIMIT:
        filters.limit = DEFAULT_LIMIT
    return filters


def attach_grc_mappings(
    vulnerabilities: Iterable[Mapping[str, Any]], mappings: Iterable[GrcMapping]
) -> list[dict[str, Any]]:
    """Return each vulnerability with a "grc_mappings" entry for the mappings that name its id.

    A vulnerability without mappings gets None there.
    """
    by_vulnerability: defaultdict[Any, list[GrcMapping]] = defaultdict(list)
    for mapping in mappings:
        if mapping.vulnerability_id is not None:
            by_vulnerability[mapping.vulnerability_id].append(mapping)
    return [
        {**vuln, "grc_mappings": by_vulnerability.get(vuln["id"])}
        for vuln in vulnerabilities
    ]