import hashlib
import json

import pytest

from transparenz.errors import BadRequest
from transparenz.sbom import (
    SbomValidationError,
    detect_format,
    download_content_type,
    extension_to_format,
    prepare_upload,
    sanitize_filename,
    validate_sbom_structure,
)

MAX = 10 * 1024 * 1024


def valid_spdx_json() -> bytes:
    doc = {
        "spdxVersion": "SPDX-2.3",
        "dataLicense": "CC0-1.0",
        "SPDXID": "SPDXRef-DOCUMENT",
        "name": "test-package",
        "packages": [{"SPDXID": "SPDXRef-Package", "name": "test", "versionInfo": "1.0.0"}],
    }
    return json.dumps(doc).encode()


def valid_cyclonedx_json() -> bytes:
    doc = {
        "bomFormat": "CycloneDX",
        "specVersion": "1.5",
        "version": 1,
        "metadata": {"component": {"name": "test", "version": "1.0.0"}},
    }
    return json.dumps(doc).encode()


@pytest.mark.parametrize(
    "ext, ct, want",
    [
        (".json", "application/json", "spdx-json"),
        (".json", "application/vnd.cyclonedx+json", "cyclonedx-json"),
        (".xml", "application/xml", "spdx+xml"),
        (".xml", "application/vnd.cyclonedx+xml", "cyclonedx-xml"),
        (".spdx", "", "spdx-json"),
        (".cdx", "", "cyclonedx-json"),
        (".txt", "text/plain", None),
    ],
)
def test_extension_to_format(ext, ct, want):
    assert extension_to_format(ext, ct) == want


def test_detect_format_compound_extension():
    assert detect_format("bom.cdx.json", "application/json") == "cyclonedx-json"
    assert detect_format("BOM.CDX.XML", "") == "cyclonedx-json"


def test_detect_format_case_insensitive_extension():
    assert detect_format("SBOM.SPDX", "") == "spdx-json"


def test_detect_format_unsupported():
    assert detect_format("document.txt", "text/plain") is None


def test_validate_valid_spdx():
    assert validate_sbom_structure(valid_spdx_json(), "spdx-json") is None


def test_validate_missing_spdx_version():
    with pytest.raises(SbomValidationError, match="spdxVersion"):
        validate_sbom_structure(json.dumps({"name": "test"}).encode(), "spdx-json")


def test_validate_valid_cyclonedx():
    assert validate_sbom_structure(valid_cyclonedx_json(), "cyclonedx-json") is None


def test_validate_missing_bom_format():
    with pytest.raises(SbomValidationError, match="bomFormat"):
        validate_sbom_structure(json.dumps({"version": 1}).encode(), "cyclonedx-json")


def test_validate_invalid_json():
    with pytest.raises(SbomValidationError, match="invalid JSON structure"):
        validate_sbom_structure(b"not json", "spdx-json")


def test_validate_invalid_xml():
    with pytest.raises(SbomValidationError, match="invalid XML structure"):
        validate_sbom_structure(b"<unclosed>", "spdx+xml")


def test_upload_valid_spdx():
    data = valid_spdx_json()
    upload = prepare_upload("sbom.spdx", "application/json", data, MAX)
    assert upload.format == "spdx-json"
    assert upload.filename == "sbom.spdx"
    assert upload.size_bytes == len(data) > 0
    assert upload.sha256 == hashlib.sha256(data).hexdigest()
    assert upload.document == data


def test_upload_valid_cyclonedx():
    upload = prepare_upload("bom.cdx", "application/vnd.cyclonedx+json", valid_cyclonedx_json(), MAX)
    assert upload.format == "cyclonedx-json"


def test_upload_unsupported_extension():
    with pytest.raises(BadRequest, match="unsupported file format"):
        prepare_upload("document.txt", "text/plain", b"hello", MAX)


def test_upload_xml_extension():
    xml = b'<?xml version="1.0"?><spdxDocument><spdxVersion>SPDX-2.3</spdxVersion></spdxDocument>'
    upload = prepare_upload("sbom.xml", "application/xml", xml, MAX)
    assert upload.format == "spdx+xml"


def test_upload_same_content_same_hash_distinct_ids():
    data = valid_spdx_json()
    first = prepare_upload("first.spdx", "application/json", data, MAX)
    second = prepare_upload("second.spdx", "application/json", data, MAX)
    assert first.sha256 == second.sha256
    assert first.id != second.id


def test_upload_size_limit():
    small = prepare_upload("large.spdx", "application/json", valid_spdx_json(), 1024)
    assert small.format == "spdx-json"

    prefix = b'{"spdxVersion":"SPDX-2.3","dataLicense":"CC0-1.0","SPDXID":"SPDXRef-DOCUMENT","name":"'
    huge = prefix + b"x" * (2048 - len(prefix) - 2) + b'"}'
    assert len(huge) == 2048
    with pytest.raises(BadRequest, match="maximum allowed size"):
        prepare_upload("huge.spdx", "application/json", huge, 1024)


def test_upload_invalid_json():
    with pytest.raises(BadRequest, match="not valid JSON"):
        prepare_upload("bad.spdx", "application/json", b"not json at all", MAX)


def test_upload_invalid_spdx_structure():
    data = json.dumps({"dataLicense": "CC0-1.0", "name": "missing-spxVersion"}).encode()
    with pytest.raises(BadRequest, match="spdxVersion"):
        prepare_upload("invalid.spdx", "application/json", data, MAX)


def test_upload_invalid_cyclonedx_structure():
    data = json.dumps({"specVersion": "1.5", "version": 1}).encode()
    with pytest.raises(BadRequest, match="bomFormat"):
        prepare_upload("invalid.cdx", "application/json", data, MAX)


def test_bad_request_problem_status():
    with pytest.raises(BadRequest) as info:
        prepare_upload("x.txt", "", b"", MAX)
    assert info.value.to_problem()["status"] == 400


@pytest.mark.parametrize(
    "fmt, want",
    [
        ("spdx-json", "application/json"),
        ("cyclonedx-json", "application/json"),
        ("spdx+xml", "application/xml"),
        ("cyclonedx-xml", "application/xml"),
    ],
)
def test_download_content_type(fmt, want):
    assert download_content_type(fmt) == want


def test_sanitize_filename_replaces_unsafe_characters():
    assert sanitize_filename('a"b\\c\nd\re.json') == "a_b_c_d_e.json"


def test_sanitize_filename_takes_base_name():
    assert sanitize_filename("dir/sub/test.spdx") == "test.spdx"


def test_sanitize_filename_keeps_safe_name():
    assert sanitize_filename("test.spdx") == "test.spdx"