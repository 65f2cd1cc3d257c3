"""Aggregate status over the shared vulnerability feeds."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable


@dataclass
class FeedRecord:
    """One vulnerability feed entry, as far as the status summary needs it."""

    last_synced_at: datetime
    cve: str = ""
    bsi_advisory_id: str = ""
    enisa_euvd_id: str = ""
    kev_exploited: bool = False
    enisa_severity: str = ""
    bsi_severity: str = ""


def _format_time(value: datetime) -> str:
    text = value.isoformat()
    if value.utcoffset() == timedelta(0):
        text = text[: -len("+00:00")] + "Z"
    return text


@dataclass
class FeedStatus:
    """Counts per source and severity across all feed entries."""

    total_feeds: int = 0
    bsi_entries: int = 0
    euvd_entries: int = 0
    kev_entries: int = 0
    entries_with_severity: dict[str, int] = field(default_factory=dict)
    last_synced_at: datetime | None = None
    sources: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON body; last_synced_at is left out when unknown."""
        body: dict[str, Any] = {
            "total_feeds": self.total_feeds,
            "bsi_entries": self.bsi_entries,
            "euvd_entries": self.euvd_entries,
            "kev_entries": self.kev_entries,
            "entries_with_severity": dict(self.entries_with_severity),
        }
        if self.last_synced_at is not None:
            body["last_synced_at"] = _format_time(self.last_synced_at)
        body["sources"] = list(self.sources)
        return body


def summarize_feeds(feeds: Iterable[FeedRecord]) -> FeedStatus:
    """Summarise feed entries into counts, the latest sync time and the sources seen."""
    records = list(feeds)
    severities: Counter[str] = Counter()
    latest: datetime | None = None
    sources: list[str] = []
    status = FeedStatus(total_feeds=len(records))

    for feed in records:
        if feed.bsi_advisory_id:
            status.bsi_entries += 1
            if "bsi-cert-bund" not in sources:
                sources.append("bsi-cert-bund")
        if feed.enisa_euvd_id:
            status.euvd_entries += 1
            if "enisa-euvd" not in sources:
                sources.append("enisa-euvd")
        if feed.kev_exploited:
            status.kev_entries += 1
            if "cisa-kev" not in sources:
                sources.append("cisa-kev")
        if feed.enisa_severity:
            severities[feed.enisa_severity] += 1
        if feed.bsi_severity:
            severities[feed.bsi_severity] += 1
        if latest is None or feed.last_synced_at > latest:
            latest = feed.last_synced_at

    status.entries_with_severity = dict(severities)
    status.last_synced_at = latest
    status.sources = sources
    return status