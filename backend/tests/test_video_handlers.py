from __future__ import annotations

import json
from decimal import Decimal

import pytest

from common.http import HttpRequestParser
from common.settings import StudioSettings
from common.videos_repository import RepositoryError, from_dynamo, to_dynamo
from ghostestudio.chunker.planner import ChunkPlanner
from ghostestudio.config import FeatureFlags, StudioConfig
from ghostestudio.studio.service import SegmentedVideoService
from video_create.app import VideoCreateApplication
from video_create.repository import VideoStore
from video_plan.app import VideoPlanApplication, build_planner
from video_status.app import VideoStatusApplication


class InMemoryVideos:
    """Stands in for the DynamoDB-backed VideosRepository."""

    def __init__(self) -> None:
        self.items: dict[str, dict] = {}
        self.updates: list[str] = []

    def put_video(self, item):
        self.items[item["videoId"]] = from_dynamo(to_dynamo(item))

    def get_video(self, video_id):
        return self.items.get(video_id)

    def update_video(self, video_id, attributes):
        self.updates.append(video_id)
        self.items[video_id].update(from_dynamo(to_dynamo(attributes)))


class FailingVideos(InMemoryVideos):
    def put_video(self, item):
        raise RepositoryError("boom")


class FakeSoraClient:
    configured = True

    def __init__(self) -> None:
        self.created = []
        self.statuses = {}

    def create_job(self, prompt, seconds, size=None, model=None):
        self.created.append(seconds)
        return {"id": f"video_{len(self.created) - 1}", "status": "queued"}

    def get_job(self, job_id):
        return self.statuses.get(job_id, {"status": "queued"})


SETTINGS = StudioSettings(videos_table_name="videos", default_dry_run=False)


def make_service(client, **config) -> SegmentedVideoService:
    return SegmentedVideoService(config=StudioConfig(use_real_sora=True, **config), client=client)


def post(body) -> dict:
    return {"httpMethod": "POST", "body": json.dumps(body) if isinstance(body, dict) else body}


# Plan endpoint ---------------------------------------------------------------


def test_plan_endpoint_returns_chunks_and_timeline():
    response = VideoPlanApplication().handle_event(post({"targetSeconds": 30}))
    assert response["statusCode"] == 200
    body = json.loads(response["body"])
    assert body["chunks"] == [12, 12, 8]
    assert body["totalSeconds"] == 32
    assert body["multiSegment"] is True
    assert [segment["startSec"] for segment in body["segments"]] == [0, 12, 24]


def test_plan_endpoint_flags_non_preset_durations():
    body = json.loads(VideoPlanApplication().handle_event(post({"seconds": 45}))["body"])
    assert body["multiSegment"] is False
    assert body["totalSeconds"] == 48


@pytest.mark.parametrize(
    "event, error",
    [
        (post("{not json"), "INVALID_JSON"),
        (post({}), "MISSING_DURATION"),
        (post({"targetSeconds": "thirty"}), "INVALID_DURATION"),
        ({"httpMethod": "POST"}, "INVALID_JSON"),
    ],
)
def test_plan_endpoint_rejects_bad_requests(event, error):
    response = VideoPlanApplication().handle_event(event)
    assert response["statusCode"] == 400
    assert json.loads(response["body"])["error"] == error


def test_plan_endpoint_strict_mode():
    app = VideoPlanApplication(planner=ChunkPlanner(strict=True))
    assert app.handle_event(post({"targetSeconds": 0}))["statusCode"] == 400


@pytest.mark.parametrize("seconds", [1e300, 10**30, 601])
def test_plan_endpoint_rejects_oversized_durations(seconds):
    response = VideoPlanApplication().handle_event(post({"targetSeconds": seconds}))
    assert response["statusCode"] == 400
    assert json.loads(response["body"])["error"] == "INVALID_DURATION"


def test_plan_endpoint_skips_null_duration_fields():
    response = VideoPlanApplication().handle_event(post({"targetSeconds": None, "seconds": 45}))
    assert response["statusCode"] == 200
    assert json.loads(response["body"])["chunks"] == [12, 12, 12, 12]


def test_plan_endpoint_reads_strict_mode_from_config(tmp_path, monkeypatch):
    config_path = tmp_path / "studio.json"
    config_path.write_text(json.dumps({"strict_durations": True}), encoding="utf-8")
    monkeypatch.setenv("STUDIO_CONFIG_PATH", str(config_path))

    assert build_planner().strict
    response = VideoPlanApplication().handle_event(post({"targetSeconds": 0}))
    assert response["statusCode"] == 400
    assert json.loads(response["body"])["error"] == "INVALID_DURATION"


def test_plan_endpoint_is_permissive_without_config(monkeypatch):
    monkeypatch.delenv("STUDIO_CONFIG_PATH", raising=False)
    body = json.loads(VideoPlanApplication().handle_event(post({"targetSeconds": 0}))["body"])
    assert body["chunks"] == [4]


def test_plan_endpoint_preflight_and_method():
    app = VideoPlanApplication(request_parser=HttpRequestParser())
    assert app.handle_event({"httpMethod": "OPTIONS"})["statusCode"] == 204
    assert app.handle_event({"httpMethod": "GET"})["statusCode"] == 405


# Create endpoint -------------------------------------------------------------


def test_create_endpoint_submits_and_persists():
    client = FakeSoraClient()
    videos = InMemoryVideos()
    app = VideoCreateApplication(
        service=make_service(client),
        store=VideoStore("videos", repository=videos),
        settings=SETTINGS,
    )

    response = app.handle_event(post({"prompt": "stage lights", "targetSeconds": 15, "aspectRatio": "square"}))

    assert response["statusCode"] == 201
    body = json.loads(response["body"])
    assert client.created == [12, 4]
    assert body["jobIds"] == ["video_0", "video_1"]
    assert body["size"] == "1024x1024"
    item = videos.items[body["videoId"]]
    assert item["job_id"] == "video_0"
    assert item["status"] == "queued"
    assert item["job"]["plan"] == {"chunks": [12, 4], "total_seconds": 16}


def test_create_endpoint_respects_default_dry_run():
    client = FakeSoraClient()
    app = VideoCreateApplication(
        service=make_service(client),
        store=VideoStore("videos", repository=InMemoryVideos()),
        settings=StudioSettings(videos_table_name="videos", default_dry_run=True),
    )
    assert app.handle_event(post({"prompt": "p", "targetSeconds": 30}))["statusCode"] == 201
    assert client.created == []


def test_create_endpoint_validation_error():
    app = VideoCreateApplication(
        service=make_service(FakeSoraClient()),
        store=VideoStore("videos", repository=InMemoryVideos()),
        settings=SETTINGS,
    )
    response = app.handle_event(post({"seconds": 8}))
    assert response["statusCode"] == 400
    assert json.loads(response["body"])["error"] == "VALIDATION_FAILED"


@pytest.mark.parametrize(
    "seconds, error",
    [(1e300, "INVALID_DURATION"), (10**30, "INVALID_DURATION"), (10**400, "VALIDATION_FAILED")],
)
def test_create_endpoint_rejects_oversized_durations(seconds, error):
    client = FakeSoraClient()
    videos = InMemoryVideos()
    app = VideoCreateApplication(
        service=make_service(client),
        store=VideoStore("videos", repository=videos),
        settings=SETTINGS,
    )
    response = app.handle_event(post({"prompt": "p", "targetSeconds": seconds}))
    assert response["statusCode"] == 400
    assert json.loads(response["body"])["error"] == error
    assert client.created == []
    assert videos.items == {}


def test_create_endpoint_feature_disabled():
    app = VideoCreateApplication(
        service=make_service(FakeSoraClient(), features=FeatureFlags(sora_enabled=False)),
        store=VideoStore("videos", repository=InMemoryVideos()),
        settings=SETTINGS,
    )
    assert app.handle_event(post({"prompt": "p"}))["statusCode"] == 403


def test_create_endpoint_reports_persistence_failure():
    app = VideoCreateApplication(
        service=make_service(FakeSoraClient()),
        store=VideoStore("videos", repository=FailingVideos()),
        settings=SETTINGS,
    )
    response = app.handle_event(post({"prompt": "p", "seconds": 4}))
    assert response["statusCode"] == 500
    body = json.loads(response["body"])
    assert body["error"] == "DB_INSERT_FAILED"
    assert body["jobIds"] == ["video_0"]


# Status endpoint -------------------------------------------------------------


def _created_video(client, videos) -> str:
    app = VideoCreateApplication(
        service=make_service(client),
        store=VideoStore("videos", repository=videos),
        settings=SETTINGS,
    )
    return json.loads(app.handle_event(post({"prompt": "p", "targetSeconds": 15}))["body"])["videoId"]


def test_status_endpoint_refreshes_and_updates_record():
    client = FakeSoraClient()
    videos = InMemoryVideos()
    video_id = _created_video(client, videos)
    client.statuses = {
        "video_0": {"status": "completed", "url": "https://cdn/0.mp4"},
        "video_1": {"status": "completed", "url": "https://cdn/1.mp4"},
    }
    app = VideoStatusApplication(
        service=make_service(client),
        store=VideoStore("videos", repository=videos),
        settings=SETTINGS,
    )

    response = app.handle_event({"httpMethod": "GET", "queryStringParameters": {"id": video_id}})

    body = json.loads(response["body"])
    assert response["statusCode"] == 200
    assert body["status"] == "completed"
    assert [s["url"] for s in body["segments"]] == ["https://cdn/0.mp4", "https://cdn/1.mp4"]
    assert videos.updates == [video_id]
    assert videos.items[video_id]["status"] == "completed"

    client.statuses = {}
    app.handle_event({"httpMethod": "GET", "pathParameters": {"id": video_id}})
    assert videos.updates == [video_id]


def test_status_endpoint_skips_update_when_unchanged():
    client = FakeSoraClient()
    videos = InMemoryVideos()
    video_id = _created_video(client, videos)
    app = VideoStatusApplication(
        service=make_service(client),
        store=VideoStore("videos", repository=videos),
        settings=SETTINGS,
    )
    body = json.loads(app.handle_event({"httpMethod": "GET", "queryStringParameters": {"id": video_id}})["body"])
    assert body["status"] == "queued"
    assert videos.updates == []


def test_status_endpoint_errors():
    app = VideoStatusApplication(
        service=make_service(FakeSoraClient()),
        store=VideoStore("videos", repository=InMemoryVideos()),
        settings=SETTINGS,
    )
    assert app.handle_event({"httpMethod": "GET"})["statusCode"] == 400
    missing = app.handle_event({"httpMethod": "GET", "queryStringParameters": {"id": "nope"}})
    assert missing["statusCode"] == 404
    assert app.handle_event({"httpMethod": "POST"})["statusCode"] == 405


def test_dynamo_conversion_round_trips_numbers():
    item = to_dynamo({"requested": 12.5, "chunks": [12, 4]})
    assert item["requested"] == Decimal("12.5")
    assert from_dynamo(item) == {"requested": 12.5, "chunks": [12, 4]}
