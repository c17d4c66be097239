from __future__ import annotations

import logging
from typing import Any, Dict

from common.http import cors_preflight_response, error_response, json_response
from common.settings import StudioSettings
from ghostestudio.studio.service import SegmentedVideoService
from video_create.app import build_service
from video_create.repository import PersistenceError, VideoStore

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class VideoStatusApplication:
    """Polls Sora for outstanding segments and returns the video state."""

    def __init__(
        self,
        service: SegmentedVideoService | None = None,
        store: VideoStore | None = None,
        settings: StudioSettings | None = None,
    ) -> None:
        self._settings = settings or StudioSettings.from_env()
        self._service = service or build_service(self._settings)
        self._store = store or VideoStore(self._settings.videos_table_name)

    def handle_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        method = event.get("httpMethod")
        if method == "OPTIONS":
            return cors_preflight_response("GET,OPTIONS")
        if method != "GET":
            return error_response(405, "METHOD_NOT_ALLOWED", "Method not allowed")

        params = event.get("queryStringParameters") or {}
        path_params = event.get("pathParameters") or {}
        video_id = params.get("id") or path_params.get("id")
        if not video_id:
            return error_response(400, "MISSING_VIDEO_ID", "id is required")

        try:
            job = self._store.load(video_id)
        except PersistenceError:
            logger.exception("Failed to load video %s", video_id)
            return error_response(500, "SERVER_ERROR", "Failed to load video")
        if job is None:
            return error_response(404, "VIDEO_NOT_FOUND", f"Video {video_id} not found")

        if job.status in {"completed", "failed"}:
            return json_response(200, job.to_payload())

        previous = job.model_dump(mode="json")
        job = self._service.refresh(job)
        if job.model_dump(mode="json") != previous:
            try:
                self._store.update(job)
            except PersistenceError:
                logger.exception("Failed to update video %s", video_id)
        return json_response(200, job.to_payload())


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:  # pragma: no cover - AWS entry
    return VideoStatusApplication().handle_event(event)
