"""Converts transcripts to and from the SRT (SubRip Text) subtitle format."""

import logging
import re
from typing import Iterable, List

from .exceptions import FormattingError
from .models import Segment, Transcript, normalize_segments

logger = logging.getLogger(__name__)

TIMECODE_PATTERN = re.compile(
    r"(\d{2,}):(\d{2}):(\d{2}),(\d{3})\s*-->\s*(\d{2,}):(\d{2}):(\d{2}),(\d{3})"
)
_BLOCK_SEPARATOR = re.compile(r"\n[ \t]*\n")


def format_time_srt(seconds: float) -> str:
    """
    Formats seconds into SRT time format HH:MM:SS,mmm.

    Args:
        seconds: Time in seconds.

    Returns:
        Formatted time string.
    """
    if seconds < 0:
        seconds = 0.0 # Ensure non-negative time
    milliseconds = round(seconds * 1000)
    hrs = milliseconds // 3600000
    milliseconds %= 3600000
    mins = milliseconds // 60000
    milliseconds %= 60000
    secs = milliseconds // 1000
    milliseconds %= 1000
    return f"{hrs:02d}:{mins:02d}:{secs:02d},{milliseconds:03d}"


def _to_seconds(hours: str, minutes: str, seconds: str, millis: str) -> float:
    # Single division of the integer total keeps millisecond values exact.
    total_ms = int(hours) * 3600000 + int(minutes) * 60000 + int(seconds) * 1000 + int(millis)
    return total_ms / 1000


def parse_srt_time(timecode: str) -> float:
    """
    Converts an SRT timecode (HH:MM:SS,mmm) to seconds.

    Raises:
        ValueError: If the string is not a valid timecode.
    """
    match = re.fullmatch(r"\s*(\d{2,}):(\d{2}):(\d{2}),(\d{3})\s*", timecode)
    if not match:
        raise ValueError(f"Invalid SRT timecode: {timecode!r}")
    return _to_seconds(*match.groups())


def decode_srt(text: str) -> Transcript:
    """
    Parses SRT content into a Transcript.

    Each block needs an index line, a timecode line and at least one text
    line. Text lines are joined with a single space. Blocks whose timecode
    line does not match are skipped.

    Args:
        text: The SRT document.

    Returns:
        Segments ordered by start time.
    """
    content = text.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n").strip()
    if not content:
        return ()

    raw_segments: List[Segment] = []
    skipped = 0
    for block in _BLOCK_SEPARATOR.split(content):
        lines = [line.strip() for line in block.strip().split("\n")]
        if len(lines) < 3:
            skipped += 1
            continue
        match = TIMECODE_PATTERN.search(lines[1])
        if not match:
            skipped += 1
            continue
        groups = match.groups()
        raw_segments.append(
            Segment(
                start=_to_seconds(*groups[:4]),
                end=_to_seconds(*groups[4:]),
                text=" ".join(line for line in lines[2:] if line),
            )
        )

    if skipped:
        logger.debug(f"Skipped {skipped} malformed SRT block(s)")
    return normalize_segments(raw_segments)


def encode_srt(segments: Iterable[Segment]) -> str:
    """Serializes segments as SRT text, one numbered block per segment."""
    blocks = []
    for index, segment in enumerate(segments, start=1):
        # Blank lines inside a caption would end the block early.
        caption = "\n".join(line.strip() for line in segment.text.splitlines() if line.strip())
        blocks.append(
            f"{index}\n"
            f"{format_time_srt(segment.start)} --> {format_time_srt(segment.end)}\n"
            f"{caption}\n"
        )
    return "\n".join(blocks)


def read_srt(path: str) -> Transcript:
    """Reads and decodes an SRT file."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return decode_srt(f.read())
    except (IOError, UnicodeDecodeError) as e:
        logger.error(f"Failed to read SRT file {path}: {e}", exc_info=True)
        raise FormattingError(f"Could not read SRT file: {e}") from e


def write_srt(segments: Iterable[Segment], output_path: str) -> None:
    """
    Writes segments to an SRT file.

    Raises:
        FormattingError: If the file cannot be written.
    """
    logger.info(f"Writing subtitles to SRT: {output_path}")
    try:
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(encode_srt(segments))
    except IOError as e:
        logger.error(f"Failed to write SRT file to {output_path}: {e}", exc_info=True)
        raise FormattingError(f"Could not write SRT file: {e}") from e
