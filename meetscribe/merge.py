"""
Merging of the mic and system-audio segment streams.

Both streams are interleaved by start time and cross-source echoes are
removed: the same utterance picked up faintly on both channels, or a
phrase the engine repeats from the tail of the previous chunk.
"""

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .hallucination import is_hallucination
from .parser import format_timestamp, parse_segments
from .types import TranscriptSegment, Source


DEFAULT_DEDUP_WINDOW = 60.0  # seconds


@dataclass(frozen=True)
class MergedTranscript:
    """Ordered, deduplicated segments of one merge call."""
    segments: Tuple[TranscriptSegment, ...]

    def render(self) -> str:
        return render_segments(self.segments)

    def __len__(self) -> int:
        return len(self.segments)

    def __bool__(self) -> bool:
        return bool(self.segments)


def normalize_text(text: str) -> str:
    """Trim and case-fold for duplicate comparison."""
    return text.strip().casefold()


def deduplicate_segments(
    segments: Sequence[TranscriptSegment],
    window: float = DEFAULT_DEDUP_WINDOW,
) -> List[TranscriptSegment]:
    """
    Drop segments whose text already appeared within the trailing window.

    Input must be sorted by start time. The comparison ignores the source,
    so an echo on the other channel is dropped too.
    """
    kept: List[TranscriptSegment] = []

    for candidate in segments:
        norm = normalize_text(candidate.text)
        duplicate = False

        for prior in reversed(kept):
            if candidate.start - prior.start > window:
                break
            if normalize_text(prior.text) == norm:
                duplicate = True
                break

        if not duplicate:
            kept.append(candidate)

    return kept


def merge_segments(
    local: Iterable[TranscriptSegment],
    remote: Iterable[TranscriptSegment],
    dedup_window: float = DEFAULT_DEDUP_WINDOW,
) -> MergedTranscript:
    """
    Interleave both sources by start time and remove duplicates.

    sorted() is stable, so equal start times keep input order (local first).
    """
    combined = list(local) + list(remote)
    combined = sorted(combined, key=lambda s: s.start)
    return MergedTranscript(tuple(deduplicate_segments(combined, dedup_window)))


def render_segment(segment: TranscriptSegment) -> str:
    return f"[{format_timestamp(segment.start)}] [{segment.source.speaker}] {segment.text}"


def render_segments(segments: Iterable[TranscriptSegment]) -> str:
    """Render as "[HH:MM:SS.mmm] [You|Them] text" lines."""
    return "\n".join(render_segment(s) for s in segments)


def accept_segments(
    raw: str,
    source: Source,
    offset: float = 0.0,
) -> List[TranscriptSegment]:
    """Parse engine output, drop hallucinations, shift to session time."""
    return [
        seg.shifted(offset)
        for seg in parse_segments(raw, source)
        if not is_hallucination(seg.text)
    ]


def merge_transcripts(
    local_raw: str,
    remote_raw: str,
    offset: float = 0.0,
    dedup_window: float = DEFAULT_DEDUP_WINDOW,
) -> str:
    """
    Merge two raw engine outputs into rendered transcript text.

    Args:
        local_raw: Engine output for the mic file
        remote_raw: Engine output for the system-audio file
        offset: Seconds added to every timestamp (0 for full recordings)
        dedup_window: Trailing window for duplicate detection

    Returns:
        Rendered transcript, "" if neither source produced speech
    """
    merged = merge_segments(
        accept_segments(local_raw, Source.LOCAL, offset),
        accept_segments(remote_raw, Source.REMOTE, offset),
        dedup_window,
    )
    return merged.render()
