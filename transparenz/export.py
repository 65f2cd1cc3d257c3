"""Audit export as CSV and SBOM enrichment with GRC mappings."""

from __future__ import annotations

import json
import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import IO, Any, Iterable

from transparenz.errors import BadRequest, InternalError
from transparenz.vulnerabilities import GrcMapping

CSV_HEADER = ("Timestamp", "Event Type", "Severity", "CVE", "Details")
UNSUPPORTED_FORMAT = "unsupported format: use csv (pdf requires commercial edition)"
JSON_CONTENT_TYPE = "application/json"
CYCLONEDX_CONTENT_TYPE = "application/vnd.cyclonedx+json"

_DATE_RE = re.compile(r"([0-9]{4})-([0-9]{2})-([0-9]{2})")
_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


@dataclass
class ComplianceEvent:
    """One entry of the compliance audit trail."""

    timestamp: datetime
    event_type: str
    severity: str = ""
    cve: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


def _normalize(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _normalize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_normalize(item) for item in value]
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return int(value)
    return value


def _marshal(value: Any) -> str:
    text = json.dumps(_normalize(value), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    for char, escaped in _HTML_ESCAPES.items():
        text = text.replace(char, escaped)
    return text


def _parse_day(text: str, which: str) -> datetime:
    match = _DATE_RE.fullmatch(text)
    if match:
        try:
            return datetime(*(int(part) for part in match.groups()), tzinfo=timezone.utc)
        except ValueError:
            pass
    raise BadRequest(f"invalid {which} date format")


def _one_month_earlier(moment: datetime) -> datetime:
    if moment.month > 1:
        year, month = moment.year, moment.month - 1
    else:
        year, month = moment.year - 1, 12
    # Days past the end of the shorter month roll over into the next one.
    return moment.replace(year=year, month=month, day=1) + timedelta(days=moment.day - 1)


def parse_date_range(
    start: str = "", end: str = "", now: datetime | None = None
) -> tuple[datetime, datetime]:
    """Parse YYYY-MM-DD bounds; a missing start is one month before now, a missing end is now."""
    current = now if now is not None else datetime.now(timezone.utc)
    begin = _parse_day(start, "start") if start else _one_month_earlier(current)
    finish = _parse_day(end, "end") if end else current
    return begin, finish


def check_export_format(fmt: str) -> str:
    """Return the export format if supported; raise BadRequest otherwise."""
    if fmt != "csv":
        raise BadRequest(UNSUPPORTED_FORMAT)
    return fmt


def audit_filename(day: date) -> str:
    """Return the download file name of an audit export made on the given day."""
    return f"audit-export-{day:%Y-%m-%d}.csv"


def _csv_field(value: str) -> str:
    if value == "":
        return value
    if value == "\\." or any(ch in value for ch in ',"\r\n') or value[0].isspace():
        return '"' + value.replace('"', '""') + '"'
    return value


def _csv_line(values: Iterable[str]) -> str:
    return ",".join(_csv_field(value) for value in values) + "\n"


def write_audit_csv(events: Iterable[ComplianceEvent], stream: IO[str]) -> None:
    """Write the audit trail as CSV with a header row to a text stream."""
    stream.write(_csv_line(CSV_HEADER))
    for event in events:
        stream.write(
            _csv_line(
                (
                    event.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                    event.event_type,
                    event.severity,
                    event.cve,
                    _marshal(event.metadata),
                )
            )
        )


def enrich_sbom(document: bytes, mappings: Iterable[GrcMapping]) -> tuple[bytes, str]:
    """Add GRC mappings as properties of the SBOM's vulnerabilities.

    Returns the body and its content type. A document without a list of
    vulnerabilities comes back unchanged as plain JSON.
    """
    by_cve: defaultdict[str, list[GrcMapping]] = defaultdict(list)
    for mapping in mappings:
        if mapping.cve is not None:
            by_cve[mapping.cve].append(mapping)

    try:
        sbom = json.loads(document)
    except ValueError as exc:
        raise InternalError("failed to parse SBOM document") from exc
    if sbom is None:
        sbom = {}
    if not isinstance(sbom, dict):
        raise InternalError("failed to parse SBOM document")

    vulnerabilities = sbom.get("vulnerabilities")
    if not isinstance(vulnerabilities, list):
        return document, JSON_CONTENT_TYPE

    for vuln in vulnerabilities:
        if not isinstance(vuln, dict):
            continue
        cve_id = vuln.get("id")
        found = by_cve.get(cve_id if isinstance(cve_id, str) else "")
        if not found:
            continue
        existing = vuln.get("properties")
        properties = list(existing) if isinstance(existing, list) else []
        for mapping in found:
            properties.append(
                {
                    "name": f"transparenz:grc:{mapping.framework}:{mapping.control_id}",
                    "value": {
                        "mapping_type": mapping.mapping_type,
                        "confidence": mapping.confidence,
                        "evidence": mapping.evidence,
                        "framework": mapping.framework,
                        "control_id": mapping.control_id,
                    },
                }
            )
        vuln["properties"] = properties

    return _marshal(sbom).encode("utf-8"), CYCLONEDX_CONTENT_TYPE