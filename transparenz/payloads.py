"""Request bodies for ENISA submissions, scans, VEX statements and support periods."""

from __future__ import annotations

import json
import re
import uuid
from enum import Enum
from typing import Any, Mapping

from transparenz.errors import BadRequest

INVALID_REQUEST_FORMAT = "invalid request format"
INVALID_SBOM_ID = "invalid sbom_id format"
VEX_BODY_ERROR = "invalid request body: cve and product_id are required"
PUBLISH_BODY_ERROR = (
    "invalid request body: channel is required and must be one of file, csaf, enisa"
)
SUPPORT_PERIOD_BODY_ERROR = "invalid request body: months is required"
MIN_SUPPORT_PERIOD_MONTHS = 12

_UUID_BODY = r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
_UUID_RE = re.compile(
    rf"(?:{_UUID_BODY}|\{{{_UUID_BODY}\}}|(?i:urn:uuid:){_UUID_BODY}|[0-9a-fA-F]{{32}})"
)
_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


class VexChannel(str, Enum):
    """Channels a VEX statement can be published through."""

    FILE = "file"
    CSAF = "csaf"
    ENISA = "enisa"


def _decode_object(payload: Any) -> Mapping[str, Any]:
    data = json.loads(payload) if isinstance(payload, (str, bytes, bytearray)) else payload
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError("request body is not a JSON object")
    return data


def _lookup(obj: Mapping[str, Any], name: str) -> Any:
    if name in obj:
        return obj[name]
    # Keys match case-insensitively when there is no exact match.
    for key, value in obj.items():
        if isinstance(key, str) and key.lower() == name:
            return value
    return None


def _required_text(obj: Mapping[str, Any], name: str, max_len: int | None = None) -> str:
    value = _lookup(obj, name)
    if value is None:
        value = ""
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string")
    if not value:
        raise ValueError(f"{name} is required")
    if max_len is not None and len(value) > max_len:
        raise ValueError(f"{name} is longer than {max_len} characters")
    return value


def _parse_uuid(text: str) -> uuid.UUID:
    if not _UUID_RE.fullmatch(text):
        raise ValueError(f"invalid UUID {text!r}")
    return uuid.UUID(text)


def parse_submit_request(payload: Any) -> str:
    """Return the CVE of an ENISA submission request; raise BadRequest if it is unacceptable."""
    try:
        return _required_text(_decode_object(payload), "cve", 32)
    except ValueError as exc:
        raise BadRequest(INVALID_REQUEST_FORMAT) from exc


def parse_create_scan(payload: Any) -> uuid.UUID:
    """Return the SBOM id a scan is requested for; raise BadRequest if it is unacceptable."""
    try:
        raw = _required_text(_decode_object(payload), "sbom_id")
    except ValueError as exc:
        raise BadRequest(INVALID_REQUEST_FORMAT) from exc
    try:
        return _parse_uuid(raw)
    except ValueError as exc:
        raise BadRequest(INVALID_SBOM_ID) from exc


def parse_create_vex(payload: Any) -> tuple[str, str]:
    """Return the CVE and product id of a VEX draft request; raise BadRequest if unacceptable."""
    try:
        obj = _decode_object(payload)
        return _required_text(obj, "cve", 32), _required_text(obj, "product_id", 256)
    except ValueError as exc:
        raise BadRequest(VEX_BODY_ERROR) from exc


def parse_publish_vex(payload: Any) -> VexChannel:
    """Return the channel a VEX statement is to be published on; raise BadRequest if unacceptable."""
    try:
        return VexChannel(_required_text(_decode_object(payload), "channel"))
    except ValueError as exc:
        raise BadRequest(PUBLISH_BODY_ERROR) from exc


def parse_support_period(payload: Any) -> int:
    """Return the requested support period in months; raise BadRequest if it is unacceptable."""
    try:
        value = _lookup(_decode_object(payload), "months")
        if value is None:
            value = 0
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError("months must be an integer")
    except ValueError as exc:
        raise BadRequest(SUPPORT_PERIOD_BODY_ERROR) from exc
    if value < MIN_SUPPORT_PERIOD_MONTHS:
        raise BadRequest(
            f"support period must be at least {MIN_SUPPORT_PERIOD_MONTHS} months"
        )
    return value


def _safe_char(ch: str) -> str:
    return "_" if ord(ch) < 32 or ch in '"\\' else ch


def submission_filename(submission_id: Any) -> str:
    """Return the download file name of a CSAF submission, safe for Content-Disposition."""
    return "".join(_safe_char(ch) for ch in f"csaf-submission-{submission_id}.json")


def _marshal(value: Any) -> str:
    text = json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    for char, escaped in _HTML_ESCAPES.items():
        text = text.replace(char, escaped)
    return text


def csaf_download(submission_id: Any, document: Mapping[str, Any] | None) -> tuple[bytes, dict[str, str]]:
    """Return the JSON body and response headers for downloading a submission's CSAF document."""
    body = _marshal(None if document is None else dict(document)).encode("utf-8")
    headers = {
        "Content-Disposition": f'attachment; filename="{submission_filename(submission_id)}"',
        "Content-Type": "application/json",
    }
    return body, headers