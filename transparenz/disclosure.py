"""Vulnerability disclosure requests and status transitions."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from transparenz.errors import BadRequest, InternalError, NotFound
from transparenz.vulnerabilities import is_valid_cve

CREATE_BODY_ERROR = "invalid request body: cve and title are required"
INVALID_CVE = "invalid CVE format: must match CVE-YYYY-NNNNN"
STATUS_BODY_ERROR = "invalid request body: status is required"
INVALID_STATUS = (
    "invalid status: must be one of triaging, acknowledged, fixing, fixed, disclosed, rejected, withdrawn"
)

_EMAIL_RE = re.compile(r"[^@\s]+@[^@\s.][^@\s]*")

_log = logging.getLogger(__name__)


class DisclosureStatus(str, Enum):
    """Statuses a disclosure can be moved to."""

    TRIAGING = "triaging"
    ACKNOWLEDGED = "acknowledged"
    FIXING = "fixing"
    FIXED = "fixed"
    DISCLOSED = "disclosed"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


@dataclass
class CreateDisclosureRequest:
    """Fields for reporting a new vulnerability disclosure."""

    cve: str
    title: str
    description: str = ""
    severity: str = ""
    reporter_name: str = ""
    reporter_email: str = ""
    reporter_public: bool = False


@dataclass
class UpdateStatusRequest:
    """A requested status change with the details that go with it."""

    status: DisclosureStatus
    coordinator_name: str = ""
    coordinator_email: str = ""
    fix_commit: str = ""
    fix_version: str = ""
    internal_notes: str = ""


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


def _text(obj: Mapping[str, Any], name: str, max_len: int | None = None) -> str:
    value = _lookup(obj, name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string")
    if max_len is not None and len(value) > max_len:
        raise ValueError(f"{name} is longer than {max_len} characters")
    return value


def _flag(obj: Mapping[str, Any], name: str) -> bool:
    value = _lookup(obj, name)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValueError(f"{name} must be a boolean")
    return value


def parse_create_disclosure(payload: Any) -> CreateDisclosureRequest:
    """Decode and validate a new disclosure; raise BadRequest if it is unacceptable."""
    try:
        obj = _decode_object(payload)
        request = CreateDisclosureRequest(
            cve=_text(obj, "cve"),
            title=_text(obj, "title", 512),
            description=_text(obj, "description", 8192),
            severity=_text(obj, "severity"),
            reporter_name=_text(obj, "reporter_name", 256),
            reporter_email=_text(obj, "reporter_email", 256),
            reporter_public=_flag(obj, "reporter_public"),
        )
    except ValueError as exc:
        raise BadRequest(CREATE_BODY_ERROR) from exc

    if not request.cve or not request.title:
        raise BadRequest(CREATE_BODY_ERROR)
    if request.reporter_email and not _EMAIL_RE.fullmatch(request.reporter_email):
        raise BadRequest(CREATE_BODY_ERROR)
    if not is_valid_cve(request.cve):
        raise BadRequest(INVALID_CVE)
    return request


def parse_update_status(payload: Any) -> UpdateStatusRequest:
    """Decode and validate a status change; raise BadRequest if it is unacceptable."""
    try:
        obj = _decode_object(payload)
        status = _text(obj, "status")
        details = {
            "coordinator_name": _text(obj, "coordinator_name"),
            "coordinator_email": _text(obj, "coordinator_email"),
            "fix_commit": _text(obj, "fix_commit", 512),
            "fix_version": _text(obj, "fix_version", 128),
            "internal_notes": _text(obj, "internal_notes", 8192),
        }
    except ValueError as exc:
        raise BadRequest(STATUS_BODY_ERROR) from exc
    if not status:
        raise BadRequest(STATUS_BODY_ERROR)
    try:
        target = DisclosureStatus(status)
    except ValueError as exc:
        raise BadRequest(INVALID_STATUS) from exc
    return UpdateStatusRequest(status=target, **details)


def apply_status_update(
    service: Any, disclosure_id: Any, request: UpdateStatusRequest
) -> dict[str, str]:
    """Move a disclosure to the requested status through the service.

    A LookupError from the service becomes NotFound; any other failure
    becomes InternalError.
    """
    try:
        match request.status:
            case DisclosureStatus.TRIAGING:
                service.start_triaging(disclosure_id)
            case DisclosureStatus.ACKNOWLEDGED:
                service.acknowledge_disclosure(
                    disclosure_id, request.coordinator_name, request.coordinator_email
                )
            case DisclosureStatus.FIXING:
                service.start_fixing(disclosure_id)
            case DisclosureStatus.FIXED:
                service.mark_fixed(disclosure_id, request.fix_commit, request.fix_version)
            case DisclosureStatus.DISCLOSED:
                service.disclose(disclosure_id)
            case DisclosureStatus.REJECTED:
                service.reject_disclosure(disclosure_id, request.internal_notes)
            case DisclosureStatus.WITHDRAWN:
                service.withdraw_disclosure(disclosure_id)
    except LookupError as exc:
        raise NotFound("disclosure not found") from exc
    except Exception as exc:
        _log.error("failed to update disclosure status", exc_info=exc)
        raise InternalError("failed to update disclosure status") from exc
    return {"message": "status updated", "status": request.status.value}