"""
Shared fakes for meetscribe tests.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import pytest
import soundfile as sf

from meetscribe.capture import CaptureBackend
from meetscribe.config import Config
from meetscribe.providers import Provider
from meetscribe.types import TranscriptionResult, Source


class FakeProvider(Provider):
    """Returns canned engine output keyed by audio file name."""

    name = "fake"

    def __init__(self, outputs: Optional[Dict[str, str]] = None, fail: Iterable[str] = ()):
        self.outputs = outputs or {}
        self.fail = set(fail)
        self.calls: List[Tuple[str, Source]] = []
        self.initialized = False

    def initialize(self) -> None:
        self.initialized = True

    def transcribe(self, audio_path: Path, source: Source) -> TranscriptionResult:
        name = Path(audio_path).name
        self.calls.append((name, source))
        if name in self.fail:
            raise RuntimeError("engine crashed")
        return TranscriptionResult(
            text=self.outputs.get(name, ""),
            provider=self.name,
            source=source,
            latency_ms=1,
        )

    def shutdown(self) -> None:
        self.initialized = False


class FakeCapture(CaptureBackend):
    """Records calls instead of touching audio hardware."""

    def __init__(self):
        self.started_in: Optional[Path] = None
        self.rotations: List[Path] = []
        self.stop_calls = 0
        self.events: List[str] = []

    def start_capture(self, directory: Path) -> None:
        self.started_in = directory

    def rotate_chunk(self, new_mic_path: Path) -> None:
        self.rotations.append(new_mic_path)

    def stop_capture(self) -> None:
        self.stop_calls += 1

    def consume_capture_event(self) -> Optional[str]:
        return self.events.pop(0) if self.events else None


def line(start: str, end: str, text: str) -> str:
    """One whisper-cli output line."""
    return f"[{start} --> {end}]  {text}"


def write_wav(path: Path, seconds: float, amplitude: float = 0.3, sample_rate: int = 16000) -> Path:
    """Write a mono sine (or silence when amplitude is 0) WAV file."""
    t = np.linspace(0, seconds, int(seconds * sample_rate), endpoint=False, dtype=np.float32)
    audio = (np.sin(2 * np.pi * 440 * t) * amplitude).astype(np.float32)
    sf.write(str(path), audio, sample_rate, subtype="PCM_16")
    return path


@pytest.fixture
def snapshot(tmp_path):
    """Config snapshot rooted in a temp data dir, with a timer that never fires."""
    snap = Config(data_dir=tmp_path / "data").snapshot()
    snap.chunk_interval = 3600.0
    snap.finalize_wait_seconds = 5.0
    return snap
