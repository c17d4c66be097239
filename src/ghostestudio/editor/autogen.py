from __future__ import annotations

import math
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

DEFAULT_BPM = 120
DEFAULT_CAPTION_TEXT = "Music Video"
CAPTION_X = 50
CAPTION_Y = 85


# Halves round up, matching the timings the web editor produces.
def _round_ms(value: float) -> int:
    return int(math.floor(value + 0.5))


def _round_seconds(value: float) -> float:
    return float(Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class LyricCue(BaseModel):
    start_ms: int
    end_ms: int
    text: str


class Caption(LyricCue):
    id: str
    x: int = CAPTION_X
    y: int = CAPTION_Y
    style: str = "minimal"


class EditDocument(BaseModel):
    target_seconds: float
    captions: List[Caption] = Field(default_factory=list)
    cut_markers: List[float] = Field(default_factory=list)
    show_lyrics: bool = False
    audio_url: Optional[str] = None


def generate_cut_markers(target_seconds: float, bpm: float = DEFAULT_BPM) -> list[float]:
    """Cut points on every half beat, starting at zero."""
    if bpm <= 0:
        raise ValueError("bpm must be positive")
    interval = 60.0 / bpm / 2
    markers: list[float] = []
    step = 0
    while step * interval < target_seconds:
        markers.append(_round_seconds(step * interval))
        step += 1
    return markers


def split_lyrics_into_cues(lyrics: str, target_seconds: float) -> list[LyricCue]:
    lines = [line.strip() for line in lyrics.splitlines() if line.strip()]
    if not lines:
        return []
    ms_per_line = target_seconds * 1000 / len(lines)
    return [
        LyricCue(start_ms=_round_ms(i * ms_per_line), end_ms=_round_ms((i + 1) * ms_per_line), text=line)
        for i, line in enumerate(lines)
    ]


def generate_captions(lyrics: Optional[str], target_seconds: float, style: str = "minimal") -> list[Caption]:
    batch = uuid.uuid4().hex[:8]
    if not lyrics:
        return [
            Caption(
                id=f"cap_{batch}_0",
                start_ms=0,
                end_ms=_round_ms(target_seconds * 1000),
                text=DEFAULT_CAPTION_TEXT,
                style=style,
            )
        ]
    return [
        Caption(id=f"cap_{batch}_{index}", style=style, **cue.model_dump())
        for index, cue in enumerate(split_lyrics_into_cues(lyrics, target_seconds))
    ]


def build_edit_document(
    target_seconds: float,
    lyrics: Optional[str] = None,
    caption_style: str = "minimal",
    beat_sync: bool = True,
    bpm: float = DEFAULT_BPM,
    audio_url: Optional[str] = None,
) -> EditDocument:
    return EditDocument(
        target_seconds=target_seconds,
        captions=generate_captions(lyrics, target_seconds, caption_style),
        cut_markers=generate_cut_markers(target_seconds, bpm) if beat_sync else [],
        show_lyrics=bool(lyrics),
        audio_url=audio_url,
    )
