"""
whisper.cpp provider for local transcription.

Runs the whisper-cli binary as a subprocess, one invocation per file.
"""

import shutil
import subprocess
import time
from pathlib import Path
from typing import Optional, Union

import numpy as np
import soundfile as sf

from . import Provider
from ..types import TranscriptionResult, Source, EngineNotFoundError


BINARY_NAMES = ("whisper-cli", "main")
LIVE_MODEL = "ggml-small.bin"
FINAL_MODEL = "ggml-large-v3-turbo.bin"

MIN_AUDIO_SECONDS = 0.25  # whisper-cli crashes on very short input
SILENCE_THRESHOLD_DB = -60.0


def find_whisper(configured: str = "", data_dir: Union[str, Path] = "") -> Path:
    """
    Locate the whisper-cli binary.

    Order: configured path -> <data_dir>/whisper-cli -> $PATH.
    """
    if configured and Path(configured).is_file():
        return Path(configured)

    if data_dir:
        local = Path(data_dir) / "whisper-cli"
        if local.is_file():
            return local

    for name in BINARY_NAMES:
        found = shutil.which(name)
        if found:
            return Path(found)

    raise EngineNotFoundError(
        "whisper-cli not found - set MEETSCRIBE_WHISPER_BIN, place it in the "
        "data directory, or run: brew install whisper-cpp"
    )


def find_model(name: str, data_dir: Union[str, Path]) -> Path:
    """Locate a ggml model in <data_dir>/models/ (or an absolute path)."""
    candidate = Path(name)
    if candidate.is_absolute() and candidate.is_file():
        return candidate

    local = Path(data_dir) / "models" / name
    if local.is_file():
        return local

    raise EngineNotFoundError(
        f"model {name} not found - download it to {Path(data_dir) / 'models'} "
        "from huggingface.co/ggerganov/whisper.cpp"
    )


def find_final_model(final_name: str, live_name: str, data_dir: Union[str, Path]) -> Path:
    """Prefer the large model for full recordings, fall back to the live one."""
    try:
        return find_model(final_name, data_dir)
    except EngineNotFoundError:
        return find_model(live_name, data_dir)


def audio_is_usable(
    path: Path,
    min_seconds: float = MIN_AUDIO_SECONDS,
    silence_threshold_db: float = SILENCE_THRESHOLD_DB,
) -> bool:
    """
    Check that a file exists, is long enough and is not pure silence.

    Silent input is where whisper invents text, so it is skipped outright.
    """
    if not path.is_file() or path.stat().st_size == 0:
        return False

    try:
        audio, sample_rate = sf.read(str(path), dtype="float32")
    except (RuntimeError, OSError) as e:
        print(f"[whisper] Unreadable audio {path.name}: {e}")
        return False

    if audio.ndim > 1:
        audio = np.mean(audio, axis=1)

    if len(audio) < min_seconds * sample_rate:
        return False

    rms = float(np.sqrt(np.mean(audio ** 2)))
    if rms == 0:
        return False

    return 20 * np.log10(rms) >= silence_threshold_db


class WhisperCppProvider(Provider):
    """
    Local transcription using whisper.cpp.

    Paths are resolved once on initialize(). The binary prints
    "[00:00:00.000 --> 00:00:02.000]  text" lines on stdout.
    """

    name = "whisper"

    def __init__(
        self,
        model: str = LIVE_MODEL,
        data_dir: Union[str, Path] = "",
        binary: str = "",
        language: str = "auto",
        min_audio_seconds: float = MIN_AUDIO_SECONDS,
        silence_threshold_db: float = SILENCE_THRESHOLD_DB,
    ):
        self.model = model
        self.data_dir = data_dir
        self.binary = binary
        self.language = language
        self.min_audio_seconds = min_audio_seconds
        self.silence_threshold_db = silence_threshold_db

        self.binary_path: Optional[Path] = None
        self.model_path: Optional[Path] = None

    def initialize(self) -> None:
        """Resolve binary and model paths."""
        try:
            self.binary_path = find_whisper(self.binary, self.data_dir)
            self.model_path = find_model(self.model, self.data_dir)
            print(f"[{self.name}] Initialized ({self.model_path.name})")
        except EngineNotFoundError as e:
            print(f"[{self.name}] Failed to initialize: {e}")
            self.binary_path = None
            self.model_path = None

    def transcribe(self, audio_path: Path, source: Source) -> TranscriptionResult:
        audio_path = Path(audio_path)

        if self.binary_path is None or self.model_path is None:
            return self._empty(source, error="engine unavailable")

        if not audio_is_usable(audio_path, self.min_audio_seconds, self.silence_threshold_db):
            return self._empty(source)

        start = time.time()
        cmd = [
            str(self.binary_path),
            "-m", str(self.model_path),
            "-f", str(audio_path),
            "-l", self.language,
        ]

        try:
            completed = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                check=True,
            )
            text = completed.stdout.strip()
            error = None
        except (subprocess.CalledProcessError, OSError) as e:
            print(f"[{self.name}] Transcription error ({audio_path.name}): {e}")
            text = ""
            error = str(e)

        return TranscriptionResult(
            text=text,
            provider=self.name,
            source=source,
            latency_ms=int((time.time() - start) * 1000),
            error=error,
        )

    def shutdown(self) -> None:
        self.binary_path = None
        self.model_path = None
        print(f"[{self.name}] Shutdown")
