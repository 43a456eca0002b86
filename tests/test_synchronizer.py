from __future__ import annotations

import pytest

from captiongen.models import Segment
from captiongen.srt_codec import decode_srt
from captiongen.synchronizer import CaptionTrack, active_segment, duration_in_frames

SAMPLE_SRT = (
    "1\n00:00:01,000 --> 00:00:03,500\nHello world\n\n"
    "2\n00:00:04,000 --> 00:00:06,000\nNamaste\n\n"
)

OVERLAPPING = (
    Segment(start=0.0, end=5.0, text="long"),
    Segment(start=1.0, end=2.0, text="short"),
    Segment(start=4.0, end=8.0, text="tail"),
    Segment(start=9.0, end=10.0, text="last"),
)


@pytest.fixture(params=["sequence", "track"])
def lookup(request):
    if request.param == "track":
        return lambda segments, t: active_segment(CaptionTrack(segments), t)
    return active_segment


def test_sample_transcript_lookup(lookup) -> None:
    transcript = decode_srt(SAMPLE_SRT)

    assert lookup(transcript, 2.0).text == "Hello world"
    assert lookup(transcript, 3.6) is None
    assert lookup(transcript, 4.0).text == "Namaste"


def test_boundaries_are_inclusive(lookup) -> None:
    transcript = decode_srt(SAMPLE_SRT)

    assert lookup(transcript, 1.0).text == "Hello world"
    assert lookup(transcript, 3.5).text == "Hello world"
    assert lookup(transcript, 6.0).text == "Namaste"


def test_none_before_first_and_after_last(lookup) -> None:
    transcript = decode_srt(SAMPLE_SRT)

    assert lookup(transcript, 0.0) is None
    assert lookup(transcript, 0.999) is None
    assert lookup(transcript, 6.001) is None
    assert lookup(transcript, 1000.0) is None


def test_overlap_prefers_earliest_start(lookup) -> None:
    assert lookup(OVERLAPPING, 1.5).text == "long"
    assert lookup(OVERLAPPING, 4.5).text == "long"
    assert lookup(OVERLAPPING, 6.0).text == "tail"
    assert lookup(OVERLAPPING, 8.5) is None
    assert lookup(OVERLAPPING, 9.5).text == "last"


def test_lookup_is_deterministic(lookup) -> None:
    results = {lookup(OVERLAPPING, 1.5) for _ in range(20)}

    assert len(results) == 1


def test_invalid_times_return_none(lookup) -> None:
    transcript = decode_srt(SAMPLE_SRT)

    assert lookup(transcript, float("nan")) is None
    assert lookup(transcript, float("inf")) is None
    assert lookup(transcript, None) is None
    assert lookup(transcript, "later") is None
    assert lookup((), 1.0) is None


def test_track_matches_linear_scan_on_dense_grid() -> None:
    segments = tuple(
        Segment(start=i * 0.7, end=i * 0.7 + (1.5 if i % 3 == 0 else 0.4), text=f"s{i}")
        for i in range(60)
    )
    track = CaptionTrack(segments)

    for step in range(0, 450):
        t = step * 0.1
        assert track.segment_at(t) == active_segment(segments, t)


def test_track_sorts_unsorted_input() -> None:
    track = CaptionTrack([Segment(5.0, 6.0, "b"), Segment(1.0, 2.0, "a")])

    assert [s.text for s in track.segments] == ["a", "b"]
    assert len(track) == 2


def test_duration_in_frames() -> None:
    transcript = decode_srt(SAMPLE_SRT)

    assert duration_in_frames(transcript, fps=30) == 180
    assert duration_in_frames(CaptionTrack(transcript), fps=25) == 150
    assert duration_in_frames((), fps=30) == 1
