from __future__ import annotations

import math

import pytest

from captiongen.models import Segment
from captiongen.presenter import (
    DEFAULT_THEME,
    TOPBAR_BACKGROUND,
    CaptionPosition,
    CaptionStyle,
    CaptionTheme,
    karaoke_scale,
    present,
    render_frame,
)
from captiongen.synchronizer import CaptionTrack

HELLO = Segment(start=1.0, end=3.5, text="Hello world")


def test_bottom_style_is_default() -> None:
    directive = present(HELLO)

    assert directive.visible is True
    assert directive.text == "Hello world"
    assert directive.style is CaptionStyle.BOTTOM
    assert directive.position is CaptionPosition.BOTTOM_OVERLAY
    assert directive.scale == 1.0
    assert directive.background is None
    assert directive.theme == DEFAULT_THEME


def test_topbar_style_uses_full_width_band() -> None:
    directive = present(HELLO, "topbar")

    assert directive.position is CaptionPosition.TOP_BAND
    assert directive.background == TOPBAR_BACKGROUND
    assert directive.padding == 12


def test_karaoke_scale_oscillates_with_frame() -> None:
    scales = [present(HELLO, CaptionStyle.KARAOKE, frame=frame).scale for frame in range(0, 120)]

    assert present(HELLO, "karaoke").position is CaptionPosition.CENTER_OVERLAY
    assert scales[0] == 0.85
    assert min(scales) >= 0.7 - 1e-9
    assert max(scales) <= 1.0 + 1e-9
    assert max(scales) - min(scales) > 0.25
    assert math.isclose(karaoke_scale(6), 0.85 + 0.15 * math.sin(1.0))


def test_no_segment_clears_text() -> None:
    for style in CaptionStyle:
        directive = present(None, style, frame=10)
        assert directive.visible is False
        assert directive.text == ""


def test_unknown_style_falls_back_to_bottom() -> None:
    assert present(HELLO, "neon").style is CaptionStyle.BOTTOM
    assert present(HELLO, None).style is CaptionStyle.BOTTOM
    assert present(HELLO, " TopBar ").style is CaptionStyle.TOPBAR


def test_theme_mapping_with_camel_case_keys() -> None:
    directive = present(HELLO, "bottom", {"fontFamily": "Inter", "fontWeight": 500, "fontSize": 40, "color": "#ff0"})

    assert directive.theme == CaptionTheme(font_family="Inter", font_weight=500, font_size=40, color="#ff0")


def test_malformed_theme_fields_fall_back_to_defaults() -> None:
    theme = CaptionTheme(font_family="  ", font_weight="bold", font_size=-3, color=None)

    directive = present(HELLO, "bottom", theme)

    assert directive.theme == DEFAULT_THEME
    assert present(HELLO, "bottom", "not a theme").theme == DEFAULT_THEME


def test_render_frame_converts_frames_to_time() -> None:
    track = CaptionTrack([HELLO, Segment(start=4.0, end=6.0, text="Namaste")])

    assert render_frame(track, frame=60, fps=30).text == "Hello world"
    assert render_frame(track, frame=108, fps=30).visible is False
    assert render_frame(track, frame=120, fps=30, style="topbar").text == "Namaste"
    assert render_frame(track, frame=10, fps=0).visible is False


@pytest.mark.parametrize("frame", [None, float("nan"), float("inf"), "soon", True])
def test_karaoke_with_unusable_frame_holds_scale(frame) -> None:
    directive = present(HELLO, "karaoke", None, frame=frame)

    assert directive.visible is True
    assert directive.scale == 1.0


def test_karaoke_accepts_numeric_string_frame() -> None:
    assert math.isclose(present(HELLO, "karaoke", frame="3").scale, karaoke_scale(3))


@pytest.mark.parametrize(
    "frame, fps",
    [(None, 30), (float("nan"), 30), ("abc", 30), (60, None), (60, -30), (60, "fast")],
)
def test_render_frame_with_unusable_clock_hides_caption(frame, fps) -> None:
    track = CaptionTrack([HELLO])

    directive = render_frame(track, frame, fps=fps, style="karaoke")

    assert directive.visible is False
    assert directive.text == ""


def test_render_frame_accepts_numeric_strings() -> None:
    track = CaptionTrack([HELLO])

    assert render_frame(track, "60", fps="30").text == "Hello world"


def test_present_ignores_objects_without_text() -> None:
    assert present(object(), "topbar").visible is False
