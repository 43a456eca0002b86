"""Maps a playback time to the caption segment that should be on screen."""

import bisect
import math
from typing import List, Optional, Sequence, Union

from .models import Segment, Transcript


def as_finite_number(t) -> Optional[float]:
    """Coerces a playback time or frame number to float; None if it is not finite."""
    if isinstance(t, bool):
        return None
    try:
        t = float(t)
    except (TypeError, ValueError, OverflowError):
        return None
    return t if math.isfinite(t) else None


class CaptionTrack:
    """
    Read-only lookup index over a transcript.

    segment_at() is O(log n): a bisect over the sorted start times bounds the
    candidates to segments already started, and a bisect over the running
    maximum of end times finds the earliest of them still showing. Safe to
    share between concurrent renders.
    """

    __slots__ = ("segments", "_starts", "_max_ends")

    def __init__(self, segments: Sequence[Segment]):
        # Stable sort keeps producer order between equal starts.
        self.segments: Transcript = tuple(sorted(segments, key=lambda segment: segment.start))
        self._starts: List[float] = [segment.start for segment in self.segments]
        self._max_ends: List[float] = []
        running_max = -math.inf
        for segment in self.segments:
            running_max = max(running_max, segment.end)
            self._max_ends.append(running_max)

    def __len__(self) -> int:
        return len(self.segments)

    def segment_at(self, t) -> Optional[Segment]:
        """Returns the earliest-starting segment with start <= t <= end, or None."""
        t = as_finite_number(t)
        if t is None or not self.segments:
            return None
        started = bisect.bisect_right(self._starts, t)
        candidate = bisect.bisect_left(self._max_ends, t)
        if candidate < started:
            return self.segments[candidate]
        return None


def active_segment(transcript: Union[CaptionTrack, Sequence[Segment]], t) -> Optional[Segment]:
    """
    Finds the caption segment active at playback time t (seconds).

    Segments are scanned in order and the first with start <= t <= end wins,
    so when segments overlap the earliest-starting one is shown. Returns
    None when nothing matches or t is not a finite number. Pass a
    CaptionTrack to get a logarithmic lookup for long transcripts.
    """
    if isinstance(transcript, CaptionTrack):
        return transcript.segment_at(t)
    t = as_finite_number(t)
    if t is None:
        return None
    for segment in transcript:
        if segment.start <= t <= segment.end:
            return segment
    return None


def duration_in_frames(transcript: Union[CaptionTrack, Sequence[Segment]], fps: int = 30) -> int:
    """Frames needed to play through the last segment's end (at least one)."""
    segments = transcript.segments if isinstance(transcript, CaptionTrack) else transcript
    if not segments:
        return 1
    last_end = max(0.0, segments[-1].end)
    return max(1, round(last_end * fps))
