"""Housekeeping of analyzer data held in an InfluxDB database."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.error import HTTPError
from urllib.parse import quote_plus
from urllib.request import Request, urlopen

log = logging.getLogger(__name__)


class InfluxError(RuntimeError):
    """Raised when the database rejects a request."""


@dataclass(frozen=True)
class InfluxSettings:
    """Where the analyzer database lives."""

    url: str = "http://localhost:8086"
    username: str = ""
    password: str = ""
    database: str = "dilithium"


def _query_url(settings: InfluxSettings, query: str) -> str:
    return f"{settings.url}/query?db={settings.database}&q={quote_plus(query)}"


def parse_series(results: Mapping[str, Any]) -> list[str]:
    """Extract distinct measurement names from a SHOW SERIES response."""
    seen: dict[str, None] = {}
    for result in results["results"]:
        for series in result.get("series", ()):
            for row in series.get("values", ()):
                for key in row:
                    seen[key.split(",")[0]] = None
    return list(seen)


def show_series(settings: InfluxSettings) -> list[str]:
    """List the measurements present in the database."""
    try:
        with urlopen(_query_url(settings, "SHOW SERIES")) as response:
            data = response.read()
    except HTTPError as e:
        data = e.read()
    return parse_series(json.loads(data))


def drop_series(settings: InfluxSettings, series: str) -> None:
    """Remove every series of measurement ``series``."""
    request = Request(
        _query_url(settings, f"DROP SERIES FROM {series}"),
        data=b"",
        method="POST",
        headers={"Content-Type": "text/plain"},
    )
    try:
        with urlopen(request) as response:
            status, reason = response.status, response.reason
    except HTTPError as e:
        status, reason = e.code, e.reason
    if status != 200:
        raise InfluxError(f"status({status}, {status} {reason})")


def clean(settings: InfluxSettings) -> list[str]:
    """Drop all measurements left by earlier runs, returning their names."""
    dropped = []
    for series in show_series(settings):
        drop_series(settings, series)
        log.info("dropped series [%s]", series)
        dropped.append(series)
    return dropped