from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Optional

import requests

from ghostestudio.chunker.planner import ChunkPlanner
from ghostestudio.config import StudioConfig
from ghostestudio.media_pipeline.sora_client import (
    SoraClient,
    SoraJobError,
    extract_job_id,
    normalize_aspect_ratio,
    size_for_aspect_ratio,
)

from .model import SegmentJob, VideoJob, VideoRequest

logger = logging.getLogger(__name__)

CONTINUATION_HINT = (
    "Continue seamlessly from the previous shot: keep the same subject, palette, "
    "lighting and camera language so consecutive segments cut together."
)


class FeatureDisabledError(RuntimeError):
    """Raised when a studio feature is switched off in the feature flags."""


class SegmentedVideoService:
    """Turns a video request into one Sora job per planned segment."""

    def __init__(
        self,
        config: StudioConfig | None = None,
        client: SoraClient | None = None,
        planner: ChunkPlanner | None = None,
    ) -> None:
        self.config = config or StudioConfig.default()
        self.client = client or SoraClient(
            api_key=self.config.sora_api_key(),
            model=self.config.sora_model,
            size=self.config.sora_size,
            poll_interval=self.config.sora_poll_interval,
            request_timeout=self.config.sora_request_timeout,
            max_wait=self.config.sora_max_wait,
            submit_cooldown=self.config.sora_submit_cooldown,
        )
        self.planner = planner or ChunkPlanner(strict=self.config.strict_durations)

    def create(self, request: VideoRequest, dry_run: Optional[bool] = None) -> VideoJob:
        if not self.config.features.sora_enabled:
            raise FeatureDisabledError("Sora video generation is disabled")

        if dry_run is None:
            dry_run = not self.config.use_real_sora
        if not self.client.configured:
            dry_run = True

        requested = request.requested_seconds
        plan = self.planner.plan(requested)
        aspect_ratio = normalize_aspect_ratio(request.aspect_ratio)
        size = request.size or size_for_aspect_ratio(aspect_ratio)
        model = self.config.model_for(request.is_pro)

        job = VideoJob(
            video_id=str(uuid.uuid4()),
            user_id=request.user_id,
            title=request.title,
            prompt=request.prompt,
            final_prompt=request.prompt,
            model=model,
            aspect_ratio=aspect_ratio,
            size=size,
            requested_seconds=requested,
            plan=plan,
            multi_segment=self.planner.is_multi_segment(requested),
            segments=[SegmentJob(idx=idx, seconds=seconds) for idx, seconds in enumerate(plan.chunks)],
            audio_url=request.audio_url,
            audio_source_type=request.audio_source_type,
            lyrics_text=request.lyrics_text,
            dry_run=dry_run,
        )
        logger.info(
            "Planned video %s: %s segments %s (%ss requested, %ss total)",
            job.video_id,
            plan.segment_count,
            list(plan.chunks),
            requested,
            plan.total_seconds,
        )

        for segment in job.segments:
            prompt = self.segment_prompt(request.prompt, segment.idx, len(job.segments))
            if dry_run:
                segment.job_id = f"dryrun-{job.video_id}-{segment.idx}"
                continue
            self._submit_segment(segment, prompt, size=size, model=model)

        job.refresh_status()
        return job

    def refresh(self, job: VideoJob) -> VideoJob:
        for segment in job.segments:
            if segment.terminal or not segment.job_id or job.dry_run:
                continue
            try:
                payload = self.client.get_job(segment.job_id)
            except requests.RequestException as exc:
                logger.warning("Failed to refresh segment %s of %s: %s", segment.idx, job.video_id, exc)
                continue
            segment.status = str(payload.get("status") or segment.status)
            if segment.status == "completed":
                segment.url = payload.get("download_url") or payload.get("url") or segment.url
            if segment.status == "failed":
                error = payload.get("error")
                segment.error = error.get("message") if isinstance(error, dict) else str(error or "failed")
        job.refresh_status()
        return job

    @staticmethod
    def segment_prompt(prompt: str, idx: int, total: int) -> str:
        if total <= 1:
            return prompt
        parts = [prompt, f"Segment {idx + 1} of {total}."]
        if idx > 0:
            parts.append(CONTINUATION_HINT)
        return "\n".join(parts)

    def _submit_segment(self, segment: SegmentJob, prompt: str, size: str, model: str) -> None:
        try:
            response = self.client.create_job(prompt, segment.seconds, size=size, model=model)
        except (requests.RequestException, SoraJobError) as exc:
            logger.error("Sora create failed for segment %s: %s", segment.idx, exc)
            segment.status = "failed"
            segment.error = str(exc)
            return
        job_id = extract_job_id(response)
        if not job_id:
            logger.error("Sora response missing job id for segment %s: %s", segment.idx, response)
            segment.status = "failed"
            segment.error = "Sora response missing job id"
            return
        segment.job_id = job_id
        segment.status = "completed" if response.get("status") == "completed" else "queued"
        segment.url = response.get("url")

    def download(self, job: VideoJob, output_dir: Path) -> list[Path]:
        """Wait for every segment and save the clips in playback order."""
        if job.dry_run:
            raise SoraJobError(f"Video {job.video_id} was planned as a dry run; nothing to download")
        assets: list[Path] = []
        for segment in job.segments:
            if not segment.job_id or segment.status == "failed":
                raise SoraJobError(f"Segment {segment.idx} of {job.video_id} has no renderable job")
            self.client.wait_for_completion(segment.job_id)
            segment.status = "completed"
            target = Path(output_dir) / job.video_id / f"segment-{segment.idx:02d}.mp4"
            assets.append(self.client.download_video(segment.job_id, target))
        job.refresh_status()
        return assets
