"""Data models for captiongen."""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Segment:
    """Represents a single timed caption unit."""
    start: float
    end: float
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start, "end": self.end, "text": self.text}


# An ordered, immutable sequence of segments from one transcription run.
Transcript = Tuple[Segment, ...]


class BackendVariant(str, Enum):
    """Concrete strategies for obtaining a transcript."""
    JSON_CLI = "json_cli"
    SRT_CLI = "srt_cli"
    SPECIALIZED = "specialized"


@dataclass(frozen=True)
class BackendRequest:
    """Everything a backend needs for one transcription call."""
    audio_path: str
    variant: BackendVariant
    model: str
    chunk_length: Optional[int] = None
    temperature: float = 0.0
    verbose: bool = False
    timeout_seconds: Optional[float] = None


@dataclass(frozen=True)
class CaptionResult:
    """Holds the outcome of one caption-generation request."""
    segments: Transcript
    srt: str
    backend: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "segments": [segment.to_dict() for segment in self.segments],
            "srt": self.srt,
        }


def _as_time(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def make_segment(start: Any, end: Any, text: Any) -> Optional[Segment]:
    """
    Builds a Segment from loosely typed values.

    Returns None (instead of raising) when the values cannot form a valid
    segment: empty text after trimming, a missing or negative start, or an
    end before the start.
    """
    if not isinstance(text, str):
        return None
    text = text.strip()
    if not text:
        return None

    start_time = _as_time(start)
    end_time = _as_time(end)
    if start_time is None or end_time is None:
        logger.warning(f"Skipping segment with non-numeric timing: start={start!r} end={end!r}")
        return None
    if start_time < 0 or end_time < start_time:
        logger.warning(f"Skipping segment with invalid timing: {start_time} -> {end_time}")
        return None
    return Segment(start=start_time, end=end_time, text=text)


def normalize_segments(raw_segments: Iterable[Any]) -> Transcript:
    """
    Converts backend segment payloads into a Transcript.

    Accepts mappings (keys are matched after trimming whitespace) or Segment
    instances. Invalid entries are dropped and the result is stably sorted by
    start time.
    """
    segments: List[Segment] = []
    for item in raw_segments:
        if isinstance(item, Segment):
            segment = make_segment(item.start, item.end, item.text)
        elif isinstance(item, Mapping):
            fields = {str(key).strip(): value for key, value in item.items()}
            segment = make_segment(fields.get("start"), fields.get("end"), fields.get("text"))
        else:
            logger.warning(f"Skipping segment of unexpected type: {type(item).__name__}")
            continue
        if segment is not None:
            segments.append(segment)

    segments.sort(key=lambda segment: segment.start)
    return tuple(segments)
