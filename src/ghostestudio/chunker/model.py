from __future__ import annotations

from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

SUPPORTED_SEGMENT_SECONDS = frozenset({4, 8, 12})


class ChunkPlan(BaseModel):
    """Ordered segment lengths for one generated video."""

    model_config = ConfigDict(frozen=True)

    chunks: Tuple[int, ...]
    total_seconds: int

    @model_validator(mode="after")
    def _check_totals(self) -> "ChunkPlan":
        unsupported = [chunk for chunk in self.chunks if chunk not in SUPPORTED_SEGMENT_SECONDS]
        if unsupported:
            raise ValueError(f"Unsupported segment lengths: {unsupported}")
        if self.total_seconds != sum(self.chunks):
            raise ValueError("total_seconds must equal the sum of chunks")
        return self

    @classmethod
    def from_chunks(cls, chunks: list[int]) -> "ChunkPlan":
        return cls(chunks=tuple(chunks), total_seconds=sum(chunks))

    @property
    def segment_count(self) -> int:
        return len(self.chunks)

    def to_payload(self) -> dict:
        return {"chunks": list(self.chunks), "totalSeconds": self.total_seconds}


class SegmentSlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    seconds: int
    start_sec: int = Field(default=0)
    end_sec: int = Field(default=0)

    def to_payload(self) -> dict:
        return {
            "idx": self.index,
            "seconds": self.seconds,
            "startSec": self.start_sec,
            "endSec": self.end_sec,
        }
