from __future__ import annotations

import logging
import math
from numbers import Integral, Real

from .model import ChunkPlan, SegmentSlot

logger = logging.getLogger(__name__)

ALLOWED_DURATIONS = (4, 8, 12)
MULTI_SEGMENT_PRESETS = (15, 30, 60)
# Ten minutes of footage, 50 twelve second segments.
MAX_TARGET_SECONDS = 600


class InvalidDurationError(ValueError):
    """Raised when a requested duration cannot be planned."""


def select_clip_duration(seconds: float) -> int:
    """Map a duration onto the single clip length the generator accepts."""
    for candidate in ALLOWED_DURATIONS:
        if seconds <= candidate:
            return candidate
    return ALLOWED_DURATIONS[-1]


def plan_chunks(target_seconds: float) -> ChunkPlan:
    """Split ``target_seconds`` into 4/8/12 second segments.

    Durations up to 12 seconds map to a single clip. Longer durations are
    covered with as many 12 second clips as fit, and the remainder is
    rounded up to the next supported length, so the planned total can
    exceed the request by up to 3 seconds. Requests above
    ``MAX_TARGET_SECONDS`` raise ``InvalidDurationError``.
    """

    _require_plannable(target_seconds)
    largest = ALLOWED_DURATIONS[-1]
    if target_seconds <= largest:
        return ChunkPlan.from_chunks([select_clip_duration(target_seconds)])

    full, remainder = divmod(target_seconds, largest)
    chunks = [largest] * int(full)
    if remainder > 0:
        chunks.append(select_clip_duration(remainder))
    return ChunkPlan.from_chunks(chunks)


def is_multi_segment(seconds: float) -> bool:
    """True only for the curated long-form presets (15, 30 and 60 seconds)."""
    return seconds > ALLOWED_DURATIONS[-1] and seconds in MULTI_SEGMENT_PRESETS


def _require_plannable(seconds: object) -> None:
    if isinstance(seconds, bool) or not isinstance(seconds, Real):
        raise InvalidDurationError(f"Duration must be a number of seconds, got {seconds!r}")
    # Integers are always finite and may be too large to convert to float.
    if not isinstance(seconds, Integral) and not math.isfinite(seconds):
        raise InvalidDurationError(f"Duration must be finite, got {seconds!r}")
    if seconds > MAX_TARGET_SECONDS:
        raise InvalidDurationError(f"Duration must be at most {MAX_TARGET_SECONDS} seconds, got {seconds!r}")


class ChunkPlanner:
    """Plans multi-segment Sora renders for a requested duration.

    The planner is permissive by default: zero and negative durations fall
    into the smallest bucket. ``strict=True`` rejects them instead.
    """

    def __init__(self, strict: bool = False) -> None:
        self.strict = strict

    def plan(self, target_seconds: float) -> ChunkPlan:
        if self.strict:
            self.validate(target_seconds)
        elif isinstance(target_seconds, Real) and target_seconds <= 0:
            logger.debug("Planning non-positive duration %s as a single clip", target_seconds)
        return plan_chunks(target_seconds)

    @staticmethod
    def validate(target_seconds: float) -> None:
        _require_plannable(target_seconds)
        if target_seconds <= 0:
            raise InvalidDurationError(f"Duration must be positive, got {target_seconds!r}")

    @staticmethod
    def is_multi_segment(seconds: float) -> bool:
        return is_multi_segment(seconds)

    @staticmethod
    def timeline(plan: ChunkPlan) -> list[SegmentSlot]:
        slots: list[SegmentSlot] = []
        offset = 0
        for index, seconds in enumerate(plan.chunks):
            slots.append(SegmentSlot(index=index, seconds=seconds, start_sec=offset, end_sec=offset + seconds))
            offset += seconds
        return slots
