"""SBOM upload checks: format detection, structure validation and hashing."""

from __future__ import annotations

import hashlib
import json
import uuid
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any

from transparenz.errors import BadRequest

UNSUPPORTED_FORMAT = "unsupported file format: must be SPDX or CycloneDX (JSON or XML)"
TOO_LARGE = "file exceeds maximum allowed size"


class SbomValidationError(ValueError):
    """Raised when an SBOM document does not have the expected structure."""


@dataclass
class UploadedSbom:
    """An accepted SBOM upload ready to be stored."""

    filename: str
    format: str
    size_bytes: int
    sha256: str
    document: bytes
    id: uuid.UUID = field(default_factory=uuid.uuid4)


def extension_to_format(ext: str, content_type: str) -> str | None:
    """Map a file extension and content type to an SBOM format, or None if unsupported."""
    ct = content_type.lower()
    if ext == ".json":
        return "cyclonedx-json" if "cyclonedx" in ct else "spdx-json"
    if ext == ".xml":
        return "cyclonedx-xml" if "cyclonedx" in ct else "spdx+xml"
    if ext == ".spdx":
        return "spdx-json"
    if ext == ".cdx":
        return "cyclonedx-json"
    return None


def _extension(filename: str) -> str:
    base = filename.rsplit("/", 1)[-1]
    dot = base.rfind(".")
    return base[dot:] if dot >= 0 else ""


def detect_format(filename: str, content_type: str) -> str | None:
    """Work out the SBOM format from a file name and content type."""
    lowered = filename.lower()
    if lowered.endswith((".cdx.json", ".cdx.xml")):
        ext = ".cdx"
    else:
        ext = _extension(filename).lower()
    return extension_to_format(ext, content_type)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid literal {name}")


def _load_json(data: bytes) -> Any:
    return json.loads(data.decode("utf-8", errors="replace"), parse_constant=_reject_constant)


def _is_valid_json(data: bytes) -> bool:
    try:
        _load_json(data)
    except ValueError:
        return False
    return True


def validate_sbom_structure(data: bytes, fmt: str) -> None:
    """Raise SbomValidationError if the document is malformed for its format."""
    if fmt in ("spdx-json", "cyclonedx-json"):
        try:
            doc = _load_json(data)
        except ValueError as exc:
            raise SbomValidationError(f"invalid JSON structure: {exc}") from exc
    elif fmt in ("spdx+xml", "cyclonedx-xml"):
        try:
            ET.fromstring(data)
        except ET.ParseError as exc:
            raise SbomValidationError(f"invalid XML structure: {exc}") from exc
        return
    else:
        return

    if fmt == "spdx-json":
        kind, required = "SPDX", "spdxVersion"
    else:
        kind, required = "CycloneDX", "bomFormat"
    if doc is None:
        doc = {}
    if not isinstance(doc, dict):
        raise SbomValidationError(f"invalid {kind} document: expected a JSON object")
    if required not in doc:
        raise SbomValidationError(f"invalid {kind} document: missing {required} field")


def _base_name(name: str) -> str:
    if name == "":
        return "."
    stripped = name.rstrip("/")
    if stripped == "":
        return "/"
    return stripped.rsplit("/", 1)[-1]


def sanitize_filename(name: str) -> str:
    """Reduce a path to its last element and replace characters unsafe in Content-Disposition."""
    return "".join(
        "_" if ord(ch) < 32 or ch in '"\\' else ch for ch in _base_name(name)
    )


def download_content_type(fmt: str) -> str:
    """Return the content type used when serving a stored SBOM of the given format."""
    if fmt.endswith(("+xml", "-xml")):
        return "application/xml"
    return "application/json"


def prepare_upload(
    filename: str, content_type: str, data: bytes, max_size: int
) -> UploadedSbom:
    """Check an uploaded file and return it ready to store; raise BadRequest if unacceptable."""
    if max_size > 0 and len(data) > max_size:
        raise BadRequest(TOO_LARGE)

    fmt = detect_format(filename, content_type)
    if fmt is None:
        raise BadRequest(UNSUPPORTED_FORMAT)

    if len(data) > max_size:
        raise BadRequest(TOO_LARGE)

    if "xml" not in fmt and not _is_valid_json(data):
        raise BadRequest("file content is not valid JSON")

    try:
        validate_sbom_structure(data, fmt)
    except SbomValidationError as exc:
        raise BadRequest(str(exc)) from exc

    return UploadedSbom(
        filename=filename,
        format=fmt,
        size_bytes=len(data),
        sha256=hashlib.sha256(data).hexdigest(),
        document=bytes(data),
    )