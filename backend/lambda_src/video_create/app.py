from __future__ import annotations

import logging
from typing import Any, Dict

from common.http import (
    HttpRequestParser,
    RequestError,
    cors_preflight_response,
    error_response,
    json_response,
)
from common.settings import StudioSettings
from ghostestudio.chunker.planner import InvalidDurationError
from ghostestudio.config import StudioConfig
from ghostestudio.ssm import hydrate_env
from ghostestudio.studio.model import ValidationError, VideoRequest
from ghostestudio.studio.service import FeatureDisabledError, SegmentedVideoService
from video_create.repository import PersistenceError, VideoStore

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def build_service(settings: StudioSettings) -> SegmentedVideoService:
    config = (
        StudioConfig.from_file(settings.studio_config_path)
        if settings.studio_config_path
        else StudioConfig.default()
    )
    hydrate_env(config.sora_api_key_env, settings.openai_api_key_parameter)
    return SegmentedVideoService(config=config)


class VideoCreateApplication:
    """Validates a video request, submits its segments and stores the record."""

    def __init__(
        self,
        service: SegmentedVideoService | None = None,
        store: VideoStore | None = None,
        request_parser: HttpRequestParser | None = None,
        settings: StudioSettings | None = None,
    ) -> None:
        self._settings = settings or StudioSettings.from_env()
        self._service = service or build_service(self._settings)
        self._store = store or VideoStore(self._settings.videos_table_name)
        self._parser = request_parser or HttpRequestParser()

    def handle_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        logger.info("Video create event received")
        method = event.get("httpMethod")
        if method == "OPTIONS":
            return cors_preflight_response()
        if method != "POST":
            return error_response(405, "METHOD_NOT_ALLOWED", "Method not allowed")

        try:
            payload = self._parser.parse(event)
            request = VideoRequest.from_payload(payload)
        except RequestError as exc:
            return error_response(400, "INVALID_JSON", str(exc))
        except ValidationError as exc:
            return error_response(400, "VALIDATION_FAILED", str(exc))

        dry_run = True if self._settings.default_dry_run else None
        try:
            job = self._service.create(request, dry_run=dry_run)
        except InvalidDurationError as exc:
            return error_response(400, "INVALID_DURATION", str(exc))
        except FeatureDisabledError as exc:
            return error_response(403, "FEATURE_DISABLED", str(exc))

        try:
            self._store.save(job)
        except PersistenceError:
            logger.exception("Failed to persist video %s", job.video_id)
            return json_response(
                500,
                {
                    "error": "DB_INSERT_FAILED",
                    "message": "Video jobs were submitted but the record could not be saved",
                    "jobIds": job.job_ids,
                },
            )

        logger.info("Created video %s with status %s", job.video_id, job.status)
        return json_response(201, job.to_payload())


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:  # pragma: no cover - AWS entry
    return VideoCreateApplication().handle_event(event)
