from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from common.http import (
    HttpRequestParser,
    RequestError,
    cors_preflight_response,
    error_response,
    json_response,
)
from ghostestudio.chunker.planner import ChunkPlanner, InvalidDurationError
from ghostestudio.config import StudioConfig
from ghostestudio.studio.model import pick_field

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def build_planner(config_path: Optional[Path] = None) -> ChunkPlanner:
    """Planner configured from the studio config named by STUDIO_CONFIG_PATH."""
    if config_path is None and os.environ.get("STUDIO_CONFIG_PATH"):
        config_path = Path(os.environ["STUDIO_CONFIG_PATH"])
    config = StudioConfig.from_file(config_path) if config_path else StudioConfig.default()
    return ChunkPlanner(strict=config.strict_durations)


class VideoPlanApplication:
    """Serves the segment plan for a requested duration."""

    def __init__(
        self,
        planner: ChunkPlanner | None = None,
        request_parser: HttpRequestParser | None = None,
    ) -> None:
        self._planner = planner or build_planner()
        self._parser = request_parser or HttpRequestParser()

    def handle_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        method = event.get("httpMethod")
        if method == "OPTIONS":
            return cors_preflight_response()
        if method != "POST":
            return error_response(405, "METHOD_NOT_ALLOWED", "Method not allowed")

        try:
            payload = self._parser.parse(event)
        except RequestError as exc:
            return error_response(400, "INVALID_JSON", str(exc))

        seconds = pick_field(payload, "targetSeconds", "target_seconds", "seconds")
        if seconds is None:
            return error_response(400, "MISSING_DURATION", "targetSeconds is required")

        try:
            plan = self._planner.plan(seconds)
        except InvalidDurationError as exc:
            return error_response(400, "INVALID_DURATION", str(exc))

        logger.info("Planned %ss as %s", seconds, list(plan.chunks))
        body = plan.to_payload()
        body["multiSegment"] = self._planner.is_multi_segment(seconds)
        body["segments"] = [slot.to_payload() for slot in self._planner.timeline(plan)]
        return json_response(200, body)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:  # pragma: no cover - AWS entry
    return VideoPlanApplication().handle_event(event)
