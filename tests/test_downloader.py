from datetime import timedelta

import pytest
import requests

from csemark.config import load_config
from csemark.downloader import SimpleDownloader, parse_csv


class FakeResponse:
    def __init__(self, content: bytes) -> None:
        self.content = content
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False


class FakeSession:
    def __init__(self, content: bytes = b"", error: Exception | None = None) -> None:
        self.content = content
        self.error = error
        self.calls = []
        self.responses = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        if self.error is not None:
            raise self.error
        response = FakeResponse(self.content)
        self.responses.append(response)
        return response


def test_parse_simple_rows():
    assert parse_csv("a,b\n1,2\n") == [["a", "b"], ["1", "2"]]


def test_parse_quoted_fields_and_crlf():
    text = 'id,name\r\n"s1","Doe, Jane"\r\n'
    assert parse_csv(text) == [["id", "name"], ["s1", "Doe, Jane"]]


def test_parse_skips_blank_lines():
    assert parse_csv("a,b\n\n1,2\n\n") == [["a", "b"], ["1", "2"]]


def test_parse_empty_text():
    assert parse_csv("") == []


def test_parse_rejects_inconsistent_field_count():
    with pytest.raises(ValueError, match="wrong number of fields"):
        parse_csv("a,b\n1,2,3\n")


def test_download_returns_rows_and_uses_timeout():
    session = FakeSession(b"flag,,id\nh1,h2,h3\nx,y,z\n")
    downloader = SimpleDownloader(timeout=5.0, session=session)
    rows = downloader.download_csv("http://localhost/marks.csv")
    assert rows == [["flag", "", "id"], ["h1", "h2", "h3"], ["x", "y", "z"]]
    assert session.calls == [("http://localhost/marks.csv", 5.0)]
    assert session.responses[0].closed


def test_download_propagates_request_errors():
    session = FakeSession(error=requests.ConnectionError("down"))
    downloader = SimpleDownloader(session=session)
    with pytest.raises(requests.ConnectionError):
        downloader.download_csv("http://localhost/marks.csv")


def test_download_propagates_parse_errors():
    downloader = SimpleDownloader(session=FakeSession(b"a,b\n1\n"))
    with pytest.raises(ValueError):
        downloader.download_csv("http://localhost/marks.csv")


def test_from_config_uses_downloader_timeout():
    config = load_config({})
    downloader = SimpleDownloader.from_config(config)
    assert downloader.timeout == config.downloader_timeout.total_seconds()
    assert config.downloader_timeout == timedelta(seconds=30)