from __future__ import annotations

from typing import Any, List, Mapping, Optional
from urllib.parse import urlparse

import pydantic
from pydantic import BaseModel, Field

from ghostestudio.chunker.model import ChunkPlan

AUDIO_SOURCE_TYPES = {"upload", "link", "none"}
TERMINAL_STATUSES = {"completed", "failed"}


class ValidationError(ValueError):
    """Raised when a video request payload cannot be processed."""


def pick_field(payload: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first non-null value among ``keys``."""
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return default


def _as_seconds(value: Any, field_name: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    try:
        seconds = float(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError(f"{field_name} must be a number") from exc
    return int(seconds) if seconds.is_integer() else seconds


class VideoRequest(BaseModel):
    prompt: str
    user_id: Optional[str] = None
    title: Optional[str] = None
    is_pro: bool = False
    seconds: float = 8
    target_seconds: Optional[float] = None
    aspect_ratio: Optional[str] = None
    size: Optional[str] = None
    audio_url: Optional[str] = None
    audio_source_type: str = "none"
    lyrics_text: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "VideoRequest":
        prompt = payload.get("prompt")
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValidationError("A prompt is required to generate video")

        seconds = _as_seconds(pick_field(payload, "seconds", default=8), "seconds")
        target_seconds = _as_seconds(pick_field(payload, "target_seconds", "targetSeconds"), "targetSeconds")

        audio_source_type = str(pick_field(payload, "audio_source_type", "audioSourceType", default="none")).lower()
        if audio_source_type not in AUDIO_SOURCE_TYPES:
            raise ValidationError("audioSourceType must be one of upload, link, none")
        audio_url = pick_field(payload, "audio_url", "audioUrl")
        validate_audio(audio_url, audio_source_type)

        try:
            return cls(
                prompt=prompt.strip(),
                user_id=pick_field(payload, "user_id", "userId"),
                title=payload.get("title"),
                is_pro=bool(pick_field(payload, "is_pro", "isPro", default=False)),
                seconds=seconds,
                target_seconds=target_seconds,
                aspect_ratio=pick_field(payload, "aspect_ratio", "aspectRatio"),
                size=payload.get("size"),
                audio_url=audio_url,
                audio_source_type=audio_source_type,
                lyrics_text=pick_field(payload, "lyrics_text", "lyricsText"),
            )
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid video request: {exc.errors()[0]['msg']}") from exc

    @property
    def requested_seconds(self) -> float:
        return self.target_seconds if self.target_seconds is not None else self.seconds


def validate_audio(audio_url: Optional[str], audio_source_type: Optional[str]) -> None:
    """Audio is optional, but a declared source needs a usable URL."""
    if not audio_source_type or audio_source_type == "none":
        return
    if not audio_url or not str(audio_url).strip():
        raise ValidationError("Audio source type specified but no audio URL provided")
    parsed = urlparse(str(audio_url))
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValidationError("Invalid audio URL format")


class SegmentJob(BaseModel):
    idx: int
    seconds: int
    status: str = "queued"
    job_id: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class VideoJob(BaseModel):
    video_id: str
    user_id: Optional[str] = None
    title: Optional[str] = None
    prompt: str
    final_prompt: str
    model: str
    aspect_ratio: str
    size: str
    requested_seconds: float
    plan: ChunkPlan
    multi_segment: bool = False
    segments: List[SegmentJob] = Field(default_factory=list)
    status: str = "queued"
    audio_url: Optional[str] = None
    audio_source_type: str = "none"
    lyrics_text: Optional[str] = None
    dry_run: bool = False

    @property
    def job_ids(self) -> list[str]:
        return [segment.job_id for segment in self.segments if segment.job_id]

    def refresh_status(self) -> str:
        self.status = aggregate_status(self.segments)
        return self.status

    def to_payload(self) -> dict:
        return {
            "videoId": self.video_id,
            "status": self.status,
            "model": self.model,
            "aspectRatio": self.aspect_ratio,
            "size": self.size,
            "requestedSeconds": self.requested_seconds,
            "totalSeconds": self.plan.total_seconds,
            "multiSegment": self.multi_segment,
            "jobIds": self.job_ids,
            "segments": [segment.model_dump(mode="json") for segment in self.segments],
        }


def aggregate_status(segments: List[SegmentJob]) -> str:
    statuses = [segment.status for segment in segments]
    if not statuses:
        return "queued"
    if "failed" in statuses:
        return "failed"
    if all(status == "completed" for status in statuses):
        return "completed"
    if any(status in {"processing", "in_progress", "completed"} for status in statuses):
        return "processing"
    return "queued"
