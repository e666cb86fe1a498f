"""
File naming conventions for live chunks and recording directories.

The capture subsystem writes chunk-N.wav (mic) next to chunk-sys-N.wav
(system audio). Pairing is derived from the name, never from a
directory listing.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from .types import AudioChunkPair


CHUNK_MARKER = "chunk-"
SYS_CHUNK_MARKER = "chunk-sys-"
CHUNK_SUFFIX = ".wav"

# Full-recording files, used for offline transcription
MIC_FILENAME = "mic.wav"
SYSTEM_FILENAME = "system.wav"

SESSION_ID_FORMAT = "%Y-%m-%d-%H-%M-%S"


def chunk_path(directory: Union[str, Path], seq: int) -> Path:
    """Path of the mic chunk with sequence number seq."""
    return Path(directory) / f"{CHUNK_MARKER}{seq}{CHUNK_SUFFIX}"


def chunk_sys_path(mic_path: Union[str, Path]) -> Path:
    """
    Derive the system-audio companion of a mic chunk.

    Only the first occurrence of the marker in the file name is replaced:
        /tmp/session/chunk-12.wav -> /tmp/session/chunk-sys-12.wav
    """
    mic_path = Path(mic_path)
    return mic_path.with_name(mic_path.name.replace(CHUNK_MARKER, SYS_CHUNK_MARKER, 1))


def make_chunk_pair(directory: Union[str, Path], seq: int, offset_seconds: float = 0.0) -> AudioChunkPair:
    mic = chunk_path(directory, seq)
    return AudioChunkPair(
        seq=seq,
        mic_path=mic,
        sys_path=chunk_sys_path(mic),
        offset_seconds=offset_seconds,
    )


def new_session_id(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime(SESSION_ID_FORMAT)


def create_recording_dir(data_dir: Union[str, Path], session_id: Optional[str] = None) -> Path:
    """
    Create a fresh <data_dir>/recordings/<timestamp>/ and return it.

    An existing directory (two starts in the same second, or one kept after
    a failed finalize) is never reused: "-2", "-3", ... is appended instead.
    """
    recordings = Path(data_dir) / "recordings"
    recordings.mkdir(parents=True, exist_ok=True)

    base = session_id or new_session_id()
    name, suffix = base, 1
    while True:
        directory = recordings / name
        try:
            directory.mkdir()
            return directory
        except FileExistsError:
            suffix += 1
            name = f"{base}-{suffix}"
