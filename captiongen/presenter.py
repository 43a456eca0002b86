"""Turns the active caption segment into a presentation directive for the compositor."""

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Mapping, Optional, Union

from .models import Segment
from .synchronizer import CaptionTrack, as_finite_number, active_segment


class CaptionStyle(str, Enum):
    BOTTOM = "bottom"
    TOPBAR = "topbar"
    KARAOKE = "karaoke"

    @classmethod
    def parse(cls, value: Union["CaptionStyle", str, None]) -> "CaptionStyle":
        """Unknown or empty style names fall back to BOTTOM."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.BOTTOM


class CaptionPosition(str, Enum):
    BOTTOM_OVERLAY = "bottom-overlay"
    TOP_BAND = "top-band"
    CENTER_OVERLAY = "center-overlay"


DEFAULT_FONT_FAMILY = "Segoe UI, Tahoma, Geneva, Verdana, sans-serif"
DEFAULT_FONT_WEIGHT = 700
DEFAULT_FONT_SIZE = 28
DEFAULT_COLOR = "#ffffff"

TOPBAR_BACKGROUND = "rgba(15,118,110,0.9)"
TOPBAR_PADDING = 12

# Karaoke pulse: scale = base + amplitude * sin(frame / divisor)
PULSE_BASE = 0.85
PULSE_AMPLITUDE = 0.15
PULSE_FRAME_DIVISOR = 6.0


def _text_or(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _positive_or(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default
    return number if number > 0 else default


@dataclass(frozen=True)
class CaptionTheme:
    """Typography for captions. Fields may be None; resolved() fills in defaults."""
    font_family: Optional[str] = None
    font_weight: Optional[Any] = None
    font_size: Optional[Any] = None
    color: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "CaptionTheme":
        """Builds a theme from snake_case or camelCase keys (fontFamily, fontSize, ...)."""
        if not isinstance(data, Mapping):
            return cls()
        return cls(
            font_family=data.get("font_family", data.get("fontFamily")),
            font_weight=data.get("font_weight", data.get("fontWeight")),
            font_size=data.get("font_size", data.get("fontSize")),
            color=data.get("color"),
        )

    def resolved(self) -> "CaptionTheme":
        return CaptionTheme(
            font_family=_text_or(self.font_family, DEFAULT_FONT_FAMILY),
            font_weight=_positive_or(self.font_weight, DEFAULT_FONT_WEIGHT),
            font_size=_positive_or(self.font_size, DEFAULT_FONT_SIZE),
            color=_text_or(self.color, DEFAULT_COLOR),
        )


DEFAULT_THEME = CaptionTheme().resolved()


@dataclass(frozen=True)
class PresentationDirective:
    """What the compositor should draw for one frame."""
    visible: bool
    text: str
    style: CaptionStyle
    position: CaptionPosition
    theme: CaptionTheme = DEFAULT_THEME
    scale: float = 1.0
    background: Optional[str] = None
    padding: int = 0


_POSITIONS = {
    CaptionStyle.BOTTOM: CaptionPosition.BOTTOM_OVERLAY,
    CaptionStyle.TOPBAR: CaptionPosition.TOP_BAND,
    CaptionStyle.KARAOKE: CaptionPosition.CENTER_OVERLAY,
}


def karaoke_scale(frame: Any) -> float:
    """Scale factor of the karaoke pulse at a given render frame; 1.0 for a non-numeric frame."""
    frame = as_finite_number(frame)
    if frame is None:
        return 1.0
    return PULSE_BASE + PULSE_AMPLITUDE * math.sin(frame / PULSE_FRAME_DIVISOR)


def present(
    segment: Optional[Segment],
    style: Union[CaptionStyle, str, None] = CaptionStyle.BOTTOM,
    theme: Union[CaptionTheme, Mapping[str, Any], None] = None,
    frame: Any = 0,
) -> PresentationDirective:
    """
    Builds the presentation directive for the active segment.

    Never raises: a missing segment hides the caption, an unknown style is
    drawn as BOTTOM, malformed theme fields use the defaults and a
    non-numeric frame holds the karaoke scale at 1.0.

    Args:
        segment: The active segment, or None when no caption is active.
        style: Caption style or its name.
        theme: CaptionTheme or a mapping of theme fields.
        frame: Render clock in frames; drives the karaoke pulse.
    """
    style = CaptionStyle.parse(style)
    if not isinstance(theme, CaptionTheme):
        theme = CaptionTheme.from_mapping(theme)
    theme = theme.resolved()

    text = getattr(segment, "text", None)
    text = text.strip() if isinstance(text, str) else ""
    directive = PresentationDirective(
        visible=bool(text),
        text=text,
        style=style,
        position=_POSITIONS[style],
        theme=theme,
    )
    if not text:
        return directive

    if style is CaptionStyle.TOPBAR:
        return replace(directive, background=TOPBAR_BACKGROUND, padding=TOPBAR_PADDING)
    if style is CaptionStyle.KARAOKE:
        return replace(directive, scale=karaoke_scale(frame))
    return directive


def render_frame(
    track: CaptionTrack,
    frame: Any,
    fps: Any = 30,
    style: Union[CaptionStyle, str, None] = CaptionStyle.BOTTOM,
    theme: Union[CaptionTheme, Mapping[str, Any], None] = None,
) -> PresentationDirective:
    """
    Per-frame render callback for the compositor.

    Pure and non-blocking: converts the frame to playback time, looks up the
    active segment and presents it.
    """
    frame_number = as_finite_number(frame)
    rate = as_finite_number(fps)
    if frame_number is None or rate is None or rate <= 0:
        t = None
    else:
        t = frame_number / rate
    return present(active_segment(track, t), style, theme, frame)
