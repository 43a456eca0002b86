from __future__ import annotations

from captiongen.models import CaptionResult, Segment, make_segment, normalize_segments


def test_normalize_trims_keys_and_text() -> None:
    payload = {"segments": [{"start": 0, "end": 1.2, " text ": " Hi "}]}

    segments = normalize_segments(payload["segments"])

    assert segments == (Segment(start=0.0, end=1.2, text="Hi"),)


def test_normalize_drops_invalid_entries() -> None:
    raw = [
        {"start": 0.0, "end": 1.0, "text": "   "},
        {"start": 2.0, "end": 1.0, "text": "reversed"},
        {"start": -1.0, "end": 1.0, "text": "negative"},
        {"start": "abc", "end": 1.0, "text": "bad start"},
        {"end": 1.0, "text": "no start"},
        {"start": 0.0, "end": 1.0, "text": None},
        "not a mapping",
        {"start": 1.0, "end": 1.0, "text": "zero length is fine"},
    ]

    segments = normalize_segments(raw)

    assert [s.text for s in segments] == ["zero length is fine"]


def test_normalize_sorts_stably_by_start() -> None:
    raw = [
        {"start": 3.0, "end": 4.0, "text": "c"},
        {"start": 1.0, "end": 2.0, "text": "a"},
        {"start": 1.0, "end": 5.0, "text": "b"},
    ]

    assert [s.text for s in normalize_segments(raw)] == ["a", "b", "c"]


def test_make_segment_rejects_nan() -> None:
    assert make_segment(float("nan"), 1.0, "x") is None
    assert make_segment(True, 1.0, "x") is None


def test_caption_result_to_dict() -> None:
    result = CaptionResult(segments=(Segment(0.0, 1.0, "a"),), srt="srt text", backend="srt_cli")

    assert result.to_dict() == {
        "segments": [{"start": 0.0, "end": 1.0, "text": "a"}],
        "srt": "srt text",
    }
