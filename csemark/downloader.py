"""Download CSV documents over HTTP."""

from __future__ import annotations

import csv
import io
import logging
from typing import Any

import requests

from .config import Config

_log = logging.getLogger(__name__)


def parse_csv(text: str) -> list[list[str]]:
    """Parse CSV text into rows.

    Blank lines are skipped. Every record must have as many fields as the
    first one; otherwise ValueError is raised, as it is for malformed quoting.
    """
    reader = csv.reader(io.StringIO(text, newline=""), strict=True)
    records: list[list[str]] = []
    width: int | None = None
    try:
        for row in reader:
            if not row:
                continue
            if width is None:
                width = len(row)
            elif len(row) != width:
                raise ValueError(
                    f"record on line {reader.line_num}: wrong number of fields"
                )
            records.append(row)
    except csv.Error as exc:
        raise ValueError(f"record on line {reader.line_num}: {exc}") from exc
    return records


class SimpleDownloader:
    """Fetches a URL with a plain GET request and parses the body as CSV."""

    def __init__(self, timeout: float = 30.0, session: Any = None) -> None:
        self.timeout = timeout
        self._session = session if session is not None else requests.Session()

    @classmethod
    def from_config(cls, config: Config) -> SimpleDownloader:
        return cls(timeout=config.downloader_timeout.total_seconds())

    def download_csv(self, url: str) -> list[list[str]]:
        """Download ``url`` and return its CSV rows."""
        _log.info("Downloading URL %s", url)
        try:
            with self._session.get(url, timeout=self.timeout) as response:
                body = response.content
        except requests.RequestException:
            _log.error("Error downloading link", exc_info=True)
            raise

        try:
            return parse_csv(body.decode("utf-8", errors="replace"))
        except ValueError:
            _log.error("Error parsing csv", exc_info=True)
            raise