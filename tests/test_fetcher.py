import pytest
import requests

from cqschedule import fetcher
from cqschedule.errors import DecodeError, NetworkError
from cqschedule.fetcher import build_url, fetch_schedule


class FakeResponse:
    def __init__(self, content: bytes, status_code: int = 200) -> None:
        self.content = content
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


def test_build_url() -> None:
    assert build_url(" 2024210001 ") == (
        "https://cqupt.ishub.top/api/curriculum/2024210001/curriculum.json"
    )
    assert build_url("1", "http://x/{student_id}.json") == "http://x/1.json"


def test_fetch_schedule_success(monkeypatch, payload_bytes) -> None:
    calls = []

    def mock_get(url, **kwargs):
        calls.append((url, kwargs))
        return FakeResponse(payload_bytes)

    monkeypatch.setattr(fetcher.requests, "get", mock_get)

    data, document = fetch_schedule("2024210001", timeout=3)

    assert data == payload_bytes
    assert document.student_name == "李华"
    assert calls[0][0].endswith("/2024210001/curriculum.json")
    assert calls[0][1]["timeout"] == 3


def test_fetch_schedule_transport_error(monkeypatch) -> None:
    def mock_get(url, **kwargs):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(fetcher.requests, "get", mock_get)

    with pytest.raises(NetworkError):
        fetch_schedule("2024210001")


def test_fetch_schedule_http_error(monkeypatch) -> None:
    monkeypatch.setattr(fetcher.requests, "get", lambda url, **kw: FakeResponse(b"", 404))

    with pytest.raises(NetworkError):
        fetch_schedule("2024210001")


def test_fetch_schedule_bad_body(monkeypatch) -> None:
    monkeypatch.setattr(fetcher.requests, "get", lambda url, **kw: FakeResponse(b"<html>"))

    with pytest.raises(DecodeError):
        fetch_schedule("2024210001")
