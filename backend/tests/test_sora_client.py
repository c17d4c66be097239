from __future__ import annotations

import pytest
import requests

from ghostestudio.media_pipeline.sora_client import (
    SoraClient,
    SoraJobError,
    extract_job_id,
    normalize_aspect_ratio,
    size_for_aspect_ratio,
)


class FakeResponse:
    def __init__(self, status_code: int, payload: dict, headers: dict | None = None) -> None:
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self.text = str(payload)

    def json(self) -> dict:
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class FakeSession:
    def __init__(self, responses: list[FakeResponse]) -> None:
        self._responses = list(responses)
        self.posts: list[dict] = []
        self.gets: list[str] = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.posts.append({"url": url, "json": json, "headers": headers})
        return self._responses.pop(0)

    def get(self, url, headers=None, timeout=None, **kwargs):
        self.gets.append(url)
        return self._responses.pop(0)


def make_client(session: FakeSession) -> SoraClient:
    return SoraClient(api_key="sk-test", submit_cooldown=0.0, poll_interval=0.0, session=session)


def test_create_job_sends_seconds_as_string():
    session = FakeSession([FakeResponse(200, {"id": "video_123", "status": "queued"})])
    client = make_client(session)

    payload = client.create_job("neon city at night", 12, size="720x1280", model="sora-2-pro")

    assert payload["id"] == "video_123"
    sent = session.posts[0]
    assert sent["url"].endswith("/videos")
    assert sent["json"] == {
        "model": "sora-2-pro",
        "prompt": "neon city at night",
        "seconds": "12",
        "size": "720x1280",
    }
    assert sent["headers"]["Authorization"] == "Bearer sk-test"


def test_create_job_rejects_unsupported_length():
    client = make_client(FakeSession([]))
    with pytest.raises(SoraJobError):
        client.create_job("prompt", 10)


def test_create_job_retries_server_errors(monkeypatch):
    monkeypatch.setattr("ghostestudio.media_pipeline.sora_client.time.sleep", lambda _s: None)
    session = FakeSession(
        [
            FakeResponse(502, {"error": "bad gateway"}),
            FakeResponse(200, {"id": "video_456"}),
        ]
    )
    client = make_client(session)

    assert client.create_job("prompt", 8)["id"] == "video_456"
    assert len(session.posts) == 2


def test_create_job_does_not_retry_client_errors():
    session = FakeSession([FakeResponse(400, {"error": "invalid"})])
    client = make_client(session)
    with pytest.raises(requests.HTTPError):
        client.create_job("prompt", 4)
    assert len(session.posts) == 1


def test_wait_for_completion_raises_on_failure(monkeypatch):
    monkeypatch.setattr("ghostestudio.media_pipeline.sora_client.time.sleep", lambda _s: None)
    session = FakeSession(
        [
            FakeResponse(200, {"id": "v", "status": "in_progress"}),
            FakeResponse(200, {"id": "v", "status": "failed", "error": "moderation"}),
        ]
    )
    client = make_client(session)
    with pytest.raises(SoraJobError, match="moderation"):
        client.wait_for_completion("v")
    assert session.gets[-1].endswith("/videos/v")


def test_missing_api_key_is_reported():
    client = SoraClient(api_key=None, session=FakeSession([]))
    assert not client.configured
    with pytest.raises(RuntimeError):
        client.get_job("v")


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"id": "a"}, "a"),
        ({"job_id": "b"}, "b"),
        ({"data": {"id": "c"}}, "c"),
        ({"data": {"job_id": "d"}}, "d"),
        ({"result": {"id": "e"}}, "e"),
        ({"result": {"job_id": "f"}}, "f"),
        ({"soraJobRef": "g"}, "g"),
        ({"id": "", "status": "queued"}, None),
        ({"data": "oops"}, None),
    ],
)
def test_extract_job_id(payload, expected):
    assert extract_job_id(payload) == expected


@pytest.mark.parametrize(
    "value, ratio, size",
    [
        ("9:16", "9:16", "720x1280"),
        ("vertical", "9:16", "720x1280"),
        ("16:9", "16:9", "1280x720"),
        ("horizontal", "16:9", "1280x720"),
        ("square", "1:1", "1024x1024"),
        ("21:9", "16:9", "1280x720"),
        ("cinematic", "16:9", "1280x720"),
        (None, "9:16", "720x1280"),
        ("4:3", "9:16", "720x1280"),
    ],
)
def test_aspect_ratio_mapping(value, ratio, size):
    assert normalize_aspect_ratio(value) == ratio
    assert size_for_aspect_ratio(value) == size


def test_parse_reset_understands_durations():
    assert SoraClient._parse_reset("1m30s") == 90
    assert SoraClient._parse_reset("250ms") == pytest.approx(0.25)
    assert SoraClient._parse_reset("2") == 2
    assert SoraClient._parse_reset("soon") == 0.0
