from __future__ import annotations

import logging
import random
import re
import time
from pathlib import Path
from typing import Any, Mapping, Optional

import requests

from ghostestudio.chunker.planner import ALLOWED_DURATIONS

logger = logging.getLogger(__name__)

DEFAULT_SIZE = "720x1280"
_ASPECT_ALIASES = {
    "9:16": "9:16",
    "vertical": "9:16",
    "16:9": "16:9",
    "horizontal": "16:9",
    "1:1": "1:1",
    "square": "1:1",
    # Sora has no ultrawide output; cinematic requests render landscape.
    "21:9": "16:9",
    "cinematic": "16:9",
}
_SIZES = {
    "9:16": "720x1280",
    "16:9": "1280x720",
    "1:1": "1024x1024",
}
_JOB_ID_PATHS = (
    ("id",),
    ("job_id",),
    ("data", "id"),
    ("data", "job_id"),
    ("result", "id"),
    ("result", "job_id"),
)


class SoraJobError(RuntimeError):
    """Raised when the Sora API reports a failure."""


def normalize_aspect_ratio(value: str | None) -> str:
    return _ASPECT_ALIASES.get((value or "").strip().lower(), "9:16")


def size_for_aspect_ratio(value: str | None) -> str:
    return _SIZES.get(normalize_aspect_ratio(value), DEFAULT_SIZE)


def extract_job_id(payload: Mapping[str, Any]) -> Optional[str]:
    """Find the job id in a create response, whichever envelope it uses."""
    for path in _JOB_ID_PATHS:
        value: Any = payload
        for key in path:
            value = value.get(key) if isinstance(value, Mapping) else None
        if isinstance(value, str) and value.strip():
            return value
    for key, value in payload.items():
        if "job" in key.lower() and isinstance(value, str) and value.strip():
            logger.warning("Sora job id found under unexpected key '%s'", key)
            return value
    return None


class SoraClient:
    """Thin wrapper around the OpenAI Video API for Sora 2 clips."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "sora-2",
        size: str = DEFAULT_SIZE,
        poll_interval: float = 10.0,
        request_timeout: float = 30.0,
        max_wait: float = 600.0,
        submit_cooldown: float = 1.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.size = size
        self.poll_interval = poll_interval
        self.request_timeout = request_timeout
        self.max_wait = max_wait
        self.base_url = "https://api.openai.com/v1"
        self.submit_cooldown = max(0.0, submit_cooldown)
        self._session = session or requests.Session()
        self._last_submit_at = 0.0

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def create_job(
        self,
        prompt: str,
        seconds: int,
        size: str | None = None,
        model: str | None = None,
        retries: int = 3,
        backoff: float = 5.0,
    ) -> dict:
        if seconds not in ALLOWED_DURATIONS:
            raise SoraJobError(f"Sora clips must be one of {ALLOWED_DURATIONS} seconds, got {seconds}")
        payload = {
            "model": model or self.model,
            "prompt": prompt,
            "seconds": str(seconds),
            "size": size or self.size,
        }
        self._respect_submit_cooldown()
        for attempt in range(1, retries + 1):
            try:
                return self._post_job(payload)
            except requests.HTTPError as exc:
                status = exc.response.status_code if exc.response is not None else None
                if status and status >= 500 and attempt < retries:
                    logger.warning(
                        "Sora job create failed with %s; retrying in %ss (attempt %s/%s)",
                        status,
                        backoff,
                        attempt,
                        retries,
                    )
                    time.sleep(backoff)
                    continue
                raise
        raise SoraJobError("Failed to create Sora job")

    def get_job(self, job_id: str) -> dict:
        response = self._session.get(
            f"{self.base_url}/videos/{job_id}",
            headers=self._headers(),
            timeout=self.request_timeout,
        )
        response.raise_for_status()
        self._respect_rate_limits(response.headers)
        return response.json()

    def wait_for_completion(self, job_id: str) -> dict:
        start = time.monotonic()
        while True:
            if time.monotonic() - start > self.max_wait:
                raise TimeoutError(f"Sora job {job_id} timed out after {self.max_wait} seconds")
            try:
                status_payload = self.get_job(job_id)
            except (requests.exceptions.ReadTimeout, requests.exceptions.ConnectionError):  # pragma: no cover - network path
                logger.warning("Sora poll failed for %s; retrying", job_id)
                time.sleep(self.poll_interval)
                continue
            status = status_payload.get("status")
            if status == "completed":
                logger.info("Sora job %s completed", job_id)
                return status_payload
            if status == "failed":
                error_message = status_payload.get("error") or status_payload
                raise SoraJobError(f"Sora job {job_id} failed: {error_message}")
            time.sleep(self.poll_interval)

    def download_video(self, job_id: str, target: Path) -> Path:
        response = self._session.get(
            f"{self.base_url}/videos/{job_id}/content",
            headers={"Authorization": f"Bearer {self.api_key}"},
            stream=True,
            timeout=self.request_timeout,
            params={"variant": "video"},
        )
        response.raise_for_status()
        self._respect_rate_limits(response.headers)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("wb") as handle:
            for chunk in response.iter_content(chunk_size=8192):
                handle.write(chunk)
        logger.info("Saved Sora video to %s", target)
        return target

    # Internal helpers -------------------------------------------------

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            raise RuntimeError("Sora API key not configured")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _post_job(self, payload: dict) -> dict:
        response = self._session.post(
            f"{self.base_url}/videos",
            headers=self._headers(),
            json=payload,
            timeout=self.request_timeout,
        )
        if response.status_code >= 400:
            logger.error("Sora create job failed (%s): %s", response.status_code, response.text)
        response.raise_for_status()
        self._respect_rate_limits(response.headers)
        return response.json()

    def _respect_submit_cooldown(self) -> None:
        if self.submit_cooldown <= 0.0:
            return
        now = time.monotonic()
        remaining = self.submit_cooldown - (now - self._last_submit_at)
        if remaining > 0:
            time.sleep(remaining + random.uniform(0, 0.5))
        self._last_submit_at = time.monotonic()

    def _respect_rate_limits(self, headers: Mapping[str, str] | None) -> None:
        if not headers:
            return
        lower = {k.lower(): v for k, v in headers.items()}
        remaining = lower.get("x-ratelimit-remaining-requests")
        reset = lower.get("x-ratelimit-reset-requests")
        try:
            if remaining is not None and float(remaining) <= 0 and reset:
                sleep_seconds = self._parse_reset(reset)
                if sleep_seconds > 0:
                    jitter = random.uniform(0, 0.5)
                    logger.debug("Rate limit hit; sleeping %.2fs", sleep_seconds + jitter)
                    time.sleep(sleep_seconds + jitter)
        except ValueError:
            return

    @staticmethod
    def _parse_reset(value: str) -> float:
        if not value:
            return 0.0
        total = 0.0
        for amount, unit in re.findall(r"(\d+(?:\.\d+)?)(ms|[hms])", value):
            val = float(amount)
            if unit == "h":
                total += val * 3600
            elif unit == "m":
                total += val * 60
            elif unit == "ms":
                total += val / 1000
            else:
                total += val
        if total == 0.0:
            try:
                total = float(value)
            except ValueError:
                return 0.0
        return total
