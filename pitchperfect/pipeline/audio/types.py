from typing import Tuple, Union
from dataclasses import dataclass
from enum import Enum
import re

from pydantic import BaseModel, Field

SOURCE_ID_PATTERN = r"^[A-Za-z0-9_-]{11}$"
_SOURCE_ID_RE = re.compile(SOURCE_ID_PATTERN)

MIN_PITCH_SHIFT, MAX_PITCH_SHIFT = -12, 12
MIN_SPEED, MAX_SPEED = 0.25, 2.0
#a single atempo application only accepts this range
TEMPO_STEP_MIN, TEMPO_STEP_MAX = 0.5, 2.0


def is_valid_source_id(source_id: str) -> bool:
    return isinstance(source_id, str) and _SOURCE_ID_RE.match(source_id) is not None


class TransformRequest(BaseModel):
    """A validated request to fetch one source and re-encode it."""
    source_id: str = Field(..., pattern=SOURCE_ID_PATTERN, description="11-character source id")
    pitch_shift: int = Field(0, ge=MIN_PITCH_SHIFT, le=MAX_PITCH_SHIFT, description="Semitones")
    speed: float = Field(1.0, ge=MIN_SPEED, le=MAX_SPEED, description="Playback speed ratio")


class PipelineStage(Enum):
    VALIDATING = "validating"
    FETCHING = "fetching"
    TRANSFORMING = "transforming"
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class PitchShift:
    """Resample at base_rate * ratio, then restore playback rate to base_rate."""
    ratio: float
    base_rate: int = 44100

    def render(self) -> str:
        shifted_rate = int(round(self.base_rate * self.ratio))
        return f"asetrate={shifted_rate},aresample={self.base_rate}"


@dataclass(frozen=True)
class Tempo:
    """One bounded atempo step."""
    ratio: float

    def __post_init__(self):
        if not TEMPO_STEP_MIN <= self.ratio <= TEMPO_STEP_MAX:
            raise ValueError(f"Tempo step {self.ratio} outside [{TEMPO_STEP_MIN}, {TEMPO_STEP_MAX}]")

    def render(self) -> str:
        # shortest round-tripping form, so chained steps multiply back to the requested speed
        ratio = float(self.ratio)
        return f"atempo={int(ratio)}" if ratio.is_integer() else f"atempo={ratio!r}"


FilterStep = Union[PitchShift, Tempo]


@dataclass(frozen=True)
class FilterChain:
    """Ordered filter steps; empty means a plain re-encode."""
    steps: Tuple[FilterStep, ...] = ()

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def __bool__(self) -> bool:
        return bool(self.steps)

    def render(self) -> str:
        """ffmpeg -af syntax: steps joined by commas, in order."""
        return ",".join(step.render() for step in self.steps)
