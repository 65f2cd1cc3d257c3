import uuid

import pytest

from transparenz.disclosure import (
    CreateDisclosureRequest,
    DisclosureStatus,
    UpdateStatusRequest,
    apply_status_update,
    parse_create_disclosure,
    parse_update_status,
)
from transparenz.errors import BadRequest, InternalError, NotFound


class FakeService:
    def __init__(self, ids=(), failure=None):
        self.known = set(ids)
        self.failure = failure
        self.calls = []

    def _record(self, name, disclosure_id, *args):
        if self.failure is not None:
            raise self.failure
        if disclosure_id not in self.known:
            raise LookupError(disclosure_id)
        self.calls.append((name, disclosure_id, *args))

    def start_triaging(self, disclosure_id):
        self._record("triaging", disclosure_id)

    def acknowledge_disclosure(self, disclosure_id, name, email):
        self._record("acknowledged", disclosure_id, name, email)

    def start_fixing(self, disclosure_id):
        self._record("fixing", disclosure_id)

    def mark_fixed(self, disclosure_id, commit, version):
        self._record("fixed", disclosure_id, commit, version)

    def disclose(self, disclosure_id):
        self._record("disclosed", disclosure_id)

    def reject_disclosure(self, disclosure_id, notes):
        self._record("rejected", disclosure_id, notes)

    def withdraw_disclosure(self, disclosure_id):
        self._record("withdrawn", disclosure_id)


def test_create_success():
    request = parse_create_disclosure(
        '{"cve":"CVE-2024-1001","title":"Test Vulnerability","severity":"high"}'
    )
    assert request == CreateDisclosureRequest(
        cve="CVE-2024-1001", title="Test Vulnerability", severity="high"
    )


def test_create_all_fields():
    request = parse_create_disclosure(
        {
            "cve": "CVE-2024-1001",
            "title": "t",
            "reporter_name": "Reporter",
            "reporter_email": "reporter@example.com",
            "reporter_public": True,
        }
    )
    assert request.reporter_email == "reporter@example.com"
    assert request.reporter_public is True


def test_create_keys_match_case_insensitively():
    request = parse_create_disclosure(b'{"CVE":"CVE-2024-1001","Title":"x"}')
    assert (request.cve, request.title) == ("CVE-2024-1001", "x")


@pytest.mark.parametrize(
    "body",
    [
        '{"title":"Missing CVE"}',
        '{"cve":"CVE-2024-1001"}',
        "not json",
        "[1, 2]",
        '{"cve":5,"title":"x"}',
        '{"cve":"CVE-2024-1001","title":"x","reporter_email":"not-an-email"}',
        '{"cve":"CVE-2024-1001","title":"x","reporter_public":"yes"}',
    ],
)
def test_create_bad_body(body):
    with pytest.raises(BadRequest) as info:
        parse_create_disclosure(body)
    assert info.value.detail == "invalid request body: cve and title are required"


def test_create_title_length_limit():
    assert parse_create_disclosure({"cve": "CVE-2024-1001", "title": "x" * 512}).title == "x" * 512
    with pytest.raises(BadRequest):
        parse_create_disclosure({"cve": "CVE-2024-1001", "title": "x" * 513})


def test_create_invalid_cve_format():
    with pytest.raises(BadRequest) as info:
        parse_create_disclosure({"cve": "CVE-24-1", "title": "x"})
    assert info.value.detail == "invalid CVE format: must match CVE-YYYY-NNNNN"


def test_update_parse():
    request = parse_update_status('{"status":"fixed","fix_commit":"abc","fix_version":"1.2.3"}')
    assert request == UpdateStatusRequest(
        status=DisclosureStatus.FIXED, fix_commit="abc", fix_version="1.2.3"
    )


def test_update_missing_status():
    with pytest.raises(BadRequest) as info:
        parse_update_status("{}")
    assert info.value.detail == "invalid request body: status is required"


def test_update_invalid_status():
    with pytest.raises(BadRequest) as info:
        parse_update_status('{"status":"nonexistent"}')
    assert info.value.detail.startswith("invalid status")


def test_update_fix_version_limit():
    with pytest.raises(BadRequest):
        parse_update_status({"status": "fixed", "fix_version": "v" * 129})


def test_apply_triaging():
    disclosure_id = uuid.uuid4()
    service = FakeService([disclosure_id])
    result = apply_status_update(service, disclosure_id, parse_update_status('{"status":"triaging"}'))
    assert result == {"message": "status updated", "status": "triaging"}
    assert service.calls == [("triaging", disclosure_id)]


def test_apply_acknowledge():
    disclosure_id = uuid.uuid4()
    service = FakeService([disclosure_id])
    request = parse_update_status(
        '{"status":"acknowledged","coordinator_name":"Alice","coordinator_email":"alice@example.com"}'
    )
    result = apply_status_update(service, disclosure_id, request)
    assert result["status"] == "acknowledged"
    assert service.calls == [("acknowledged", disclosure_id, "Alice", "alice@example.com")]


@pytest.mark.parametrize(
    "body, call",
    [
        ({"status": "fixing"}, ("fixing",)),
        ({"status": "fixed", "fix_commit": "abc", "fix_version": "2.0"}, ("fixed", "abc", "2.0")),
        ({"status": "disclosed"}, ("disclosed",)),
        ({"status": "rejected", "internal_notes": "dup"}, ("rejected", "dup")),
        ({"status": "withdrawn"}, ("withdrawn",)),
    ],
)
def test_apply_dispatch(body, call):
    disclosure_id = uuid.uuid4()
    service = FakeService([disclosure_id])
    apply_status_update(service, disclosure_id, parse_update_status(body))
    assert service.calls == [(call[0], disclosure_id, *call[1:])]


def test_apply_not_found():
    with pytest.raises(NotFound) as info:
        apply_status_update(FakeService(), uuid.uuid4(), parse_update_status('{"status":"triaging"}'))
    assert info.value.detail == "disclosure not found"


def test_apply_service_failure():
    service = FakeService(failure=RuntimeError("database down"))
    with pytest.raises(InternalError) as info:
        apply_status_update(service, uuid.uuid4(), parse_update_status('{"status":"disclosed"}'))
    assert info.value.detail == "failed to update disclosure status"