"""
Shared type definitions for MeetScribe.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Optional, List


class Source(str, Enum):
    """Which audio channel a segment came from."""
    LOCAL = "local"     # microphone, rendered as "You"
    REMOTE = "remote"   # system audio, rendered as "Them"

    @property
    def speaker(self) -> str:
        return "You" if self is Source.LOCAL else "Them"


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    FINALIZING = "finalizing"
    COMPLETE = "complete"


class SchedulerState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    STOPPED = "stopped"


@dataclass(frozen=True)
class TranscriptSegment:
    """One parsed utterance from a single audio source."""
    start: float                # seconds, session-relative once shifted
    end: Optional[float]
    source: Source
    text: str

    def shifted(self, offset: float) -> "TranscriptSegment":
        """Return a copy with both timestamps moved by offset seconds."""
        if not offset:
            return self
        end = self.end + offset if self.end is not None else None
        return replace(self, start=self.start + offset, end=end)


@dataclass(frozen=True)
class AudioChunkPair:
    """
    One rotation unit: the mic chunk file and its system-audio companion.

    The companion file may not exist; that is not an error.
    """
    seq: int
    mic_path: Path
    sys_path: Path
    offset_seconds: float = 0.0  # session-relative start of this chunk


@dataclass
class TranscriptionResult:
    """Raw output from a single provider transcribing a single audio file."""
    text: str                   # raw "[start --> end] text" lines
    provider: str
    source: Source
    latency_ms: int
    error: Optional[str] = None


@dataclass
class ConfigSnapshot:
    """
    Immutable snapshot of configuration for a session.
    Ensures config changes mid-session don't cause inconsistency.
    """
    # Scheduling
    chunk_interval: float
    finalize_wait_seconds: float

    # Merge / live buffer
    dedup_window: float
    max_live_segments: int
    max_live_chars: int

    # Engine
    engine: str
    whisper_bin: str
    live_model: str
    final_model: str
    language: str
    min_audio_seconds: float
    silence_threshold_db: float

    # API Keys
    groq_api_key: str

    # Paths
    data_dir: str = ""


@dataclass
class ChunkOutcome:
    """What one chunk contributed to the transcript."""
    seq: int
    text: str                                   # rendered merge, "" if nothing
    segments: List[TranscriptSegment] = field(default_factory=list)
    results: List[TranscriptionResult] = field(default_factory=list)


class MeetScribeError(Exception):
    """Base class for errors surfaced to callers."""


class CaptureError(MeetScribeError):
    """The capture subsystem refused to start or rotate."""


class SessionBusyError(MeetScribeError):
    """A session is already recording or finalizing."""


class NoTranscriptError(MeetScribeError):
    """Finalization found no transcript fragments."""

    def __init__(self, message: str = "no transcript produced - check whisper setup and audio"):
        super().__init__(message)


class PersistenceError(MeetScribeError):
    """The transcript could not be written to the store."""


class EngineNotFoundError(MeetScribeError):
    """The speech-to-text binary or model could not be located."""
