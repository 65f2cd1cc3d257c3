# transparenz

Building blocks for a service that takes in software bills of materials
(SBOMs), tracks the vulnerabilities found in them and produces compliance
reports. The package holds the parts of such a service that need neither a
web framework nor a database: configuration, logging, error responses,
request parsing and validation, and report output.

## Modules

- `transparenz.config`: `load_config(environ=None, env_file=".env")` starts
  from the defaults of `Config` (port `8080`, log level `info`, a 10 MB SBOM
  size limit, the `shared` multi-tenant mode, sync and retry intervals), reads
  the `.env` file if it exists, then takes non-empty values from the
  environment mapping (`os.environ` when none is given), and validates the
  result with `validate_config`. A missing `DATABASE_URL` or `JWT_SECRET`, a
  `JWT_SECRET` shorter than 32 characters, or an `ENCRYPTION_KEY` that is
  missing or not exactly 32 characters long raises `ConfigError`.
  `CORS_ALLOWED_ORIGINS` is split on commas and defaults to
  `http://localhost:8080`. `parse_duration` reads intervals such as `6h`,
  `1h30m` or `500ms` into a `timedelta`; `parse_instance_dsns` decodes the
  JSON object of per-organisation connection strings; `with_search_path`
  appends `search_path=compliance` to a database URL that has no search path.
- `transparenz.logs`: `init_logger(level, stream)` returns a logger that
  writes one JSON object per line (unknown levels raise `ValueError`);
  `log_request` records an HTTP request at info, warning (4xx) or error (5xx)
  level and returns the level used.
- `transparenz.errors`: `ApiError` and its subclasses `BadRequest`,
  `Unauthorized`, `NotFound`, `Conflict` and `InternalError` carry an HTTP
  status and produce a problem-detail dictionary with `to_problem()`.
  `recover_errors(handler, logger)` wraps a handler so that an `ApiError`
  becomes a `(status, problem)` pair and any other exception is logged with
  its stack and answered with a generic 500 problem.
- `transparenz.pagination`: `parse_limit_offset` and `parse_page` read
  `limit`/`offset` query parameters (default 50, at most 100) and
  `page_response` builds the `data`/`limit`/`offset`/`count`/`total`
  envelope.
- `transparenz.sbom`: `detect_format` and `extension_to_format` recognise
  SPDX and CycloneDX documents in JSON or XML; `validate_sbom_structure`
  raises `SbomValidationError` for malformed documents or a missing
  `spdxVersion`/`bomFormat` field; `prepare_upload` enforces the size limit,
  checks the content and returns an `UploadedSbom` with its SHA-256;
  `sanitize_filename` and `download_content_type` prepare downloads.
- `transparenz.feed_status`: `summarize_feeds` turns `FeedRecord` entries
  into a `FeedStatus` with counts of BSI CERT-Bund, ENISA EUVD and CISA KEV
  entries, severities, the latest sync time and the sources seen;
  `FeedStatus.to_dict()` gives the JSON body.
- `transparenz.vulnerabilities`: `is_valid_cve`,
  `parse_vulnerability_filters` (returns `VulnerabilityFilters`, raises
  `BadRequest` on malformed values) and `attach_grc_mappings`, which adds the
  matching `GrcMapping` objects to each vulnerability under `grc_mappings`.
- `transparenz.export`: `parse_date_range` reads `YYYY-MM-DD` bounds (a
  month back and now by default), `check_export_format` accepts only `csv`,
  `audit_filename` names the file, and `write_audit_csv` writes
  `ComplianceEvent` records with a header row. `enrich_sbom` adds GRC
  mappings as properties of a CycloneDX document's vulnerabilities.
- `transparenz.disclosure`: `parse_create_disclosure` and
  `parse_update_status` validate disclosure requests
  (`CreateDisclosureRequest`, `UpdateStatusRequest`, `DisclosureStatus`);
  `apply_status_update` calls the matching method of a disclosure service
  object and maps a `LookupError` to `NotFound`.
- `transparenz.payloads`: parsers for ENISA submissions
  (`parse_submit_request`), scans (`parse_create_scan`), VEX drafts and
  publications (`parse_create_vex`, `parse_publish_vex`, `VexChannel`) and
  support periods (`parse_support_period`, at least 12 months), plus
  `submission_filename` and `csaf_download` for CSAF document downloads.

## Examples

```python
from transparenz.config import ConfigError, load_config

try:
    config = load_config()  # os.environ and ./.env
except ConfigError as exc:
    raise SystemExit(f"configuration problem: {exc}")
```

```python
from transparenz.sbom import SbomValidationError, detect_format, validate_sbom_structure

data = b'{"bomFormat": "CycloneDX", "specVersion": "1.5", "version": 1}'
fmt = detect_format("bom.cdx.json", "application/json")  # "cyclonedx-json"
try:
    validate_sbom_structure(data, fmt)
except SbomValidationError as exc:
    print(exc)
```

```python
from transparenz.vulnerabilities import is_valid_cve

is_valid_cve("CVE-2024-1001")   # True
is_valid_cve("CVE-24-1")        # False
```

```python
import io
from transparenz.export import write_audit_csv

buffer = io.StringIO()
write_audit_csv([], buffer)
print(buffer.getvalue())  # Timestamp,Event Type,Severity,CVE,Details
```

## What the package does not do

It has no HTTP server, routes or authentication, no database access or
storage of SBOMs, scans, submissions or disclosures, no vulnerability
scanner and no command-line program. The disclosure workflow acts on a
service object supplied by the caller.

## Tests

The test suite uses pytest and is installed with the `test` extra.