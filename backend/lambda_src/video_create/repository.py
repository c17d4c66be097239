from __future__ import annotations

from typing import Any, Dict, Optional

from common import RepositoryError, VideosRepository, utc_now_iso
from ghostestudio.studio.model import VideoJob


def to_item(job: VideoJob) -> Dict[str, Any]:
    now = utc_now_iso()
    return {
        "videoId": job.video_id,
        "user_id": job.user_id,
        "status": job.status,
        "provider": "sora",
        "job_id": job.job_ids[0] if job.job_ids else None,
        "job": job.model_dump(mode="json"),
        "created_at": now,
        "updated_at": now,
    }


class PersistenceError(RuntimeError):
    """Raised when a video record cannot be read or written."""


class VideoStore:
    """Maps studio video jobs onto the shared videos table."""

    def __init__(self, table_name: str, repository: VideosRepository | None = None) -> None:
        self._repository = repository or VideosRepository(table_name)

    def save(self, job: VideoJob) -> None:
        try:
            self._repository.put_video(to_item(job))
        except RepositoryError as exc:
            raise PersistenceError(str(exc)) from exc

    def load(self, video_id: str) -> Optional[VideoJob]:
        try:
            item = self._repository.get_video(video_id)
        except RepositoryError as exc:
            raise PersistenceError(str(exc)) from exc
        if not item or "job" not in item:
            return None
        return VideoJob.model_validate(item["job"])

    def update(self, job: VideoJob) -> None:
        try:
            self._repository.update_video(
                job.video_id,
                {"status": job.status, "job": job.model_dump(mode="json")},
            )
        except RepositoryError as exc:
            raise PersistenceError(str(exc)) from exc
