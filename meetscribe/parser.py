"""
Parsing of whisper-style timestamped output.

The engine prints one utterance per line:

    [00:00:01.000 --> 00:00:04.000]  Hello everyone.

Anything else (blank lines, diagnostics, malformed headers) is skipped.
"""

from typing import List

from .types import TranscriptSegment, Source


INVALID_TIMESTAMP = -1.0
RANGE_SEPARATOR = " --> "


def parse_timestamp(value: str) -> float:
    """
    Parse HH:MM:SS.mmm into seconds.

    Examples:
        "01:02:03.456" -> 3723.456
        "invalid"      -> -1.0
    """
    parts = value.strip().split(":")
    if len(parts) != 3:
        return INVALID_TIMESTAMP

    sec_parts = parts[2].split(".")
    if len(sec_parts) != 2:
        return INVALID_TIMESTAMP

    fields = [parts[0], parts[1], sec_parts[0], sec_parts[1]]
    if not all(f.isdecimal() for f in fields):
        return INVALID_TIMESTAMP

    hours, minutes, seconds, millis = (int(f) for f in fields)
    return (hours * 3600 + minutes * 60 + seconds) + millis / 1000.0


def format_timestamp(seconds: float) -> str:
    """Format seconds as HH:MM:SS.mmm, rounded to the nearest millisecond."""
    ms = int(seconds * 1000 + 0.5)
    hours, ms = divmod(ms, 3_600_000)
    minutes, ms = divmod(ms, 60_000)
    secs, ms = divmod(ms, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{ms:03d}"


def parse_segments(raw: str, source: Source) -> List[TranscriptSegment]:
    """
    Turn one engine invocation's output into segments.

    Args:
        raw: Full stdout of the engine
        source: Which channel the audio came from

    Returns:
        Segments in the order they appear; times are chunk-relative
    """
    segments: List[TranscriptSegment] = []

    for line in raw.splitlines():
        line = line.strip()
        if not line.startswith("["):
            continue

        close = line.find("]")
        if close < 0:
            continue

        text = line[close + 1:].strip()
        if not text:
            continue

        bounds = line[1:close].split(RANGE_SEPARATOR)
        if len(bounds) != 2:
            continue

        start = parse_timestamp(bounds[0])
        if start < 0:
            continue
        end = parse_timestamp(bounds[1])

        segments.append(TranscriptSegment(
            start=start,
            end=end if end >= 0 else None,
            source=source,
            text=text,
        ))

    return segments
