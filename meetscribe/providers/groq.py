"""
Groq Whisper API provider for cloud transcription.

The API returns segments as JSON; they are rendered into the same
"[start --> end] text" lines whisper-cli prints so parsing stays uniform.
"""

import time
from pathlib import Path
from typing import Any, Iterable

from . import Provider
from .whisper_cpp import audio_is_usable, MIN_AUDIO_SECONDS, SILENCE_THRESHOLD_DB
from ..parser import format_timestamp, RANGE_SEPARATOR
from ..types import TranscriptionResult, Source


def _field(segment: Any, key: str, default=None):
    if isinstance(segment, dict):
        return segment.get(key, default)
    return getattr(segment, key, default)


def segments_to_lines(segments: Iterable[Any]) -> str:
    """Render API segments as whisper-cli style timestamped lines."""
    lines = []
    for seg in segments:
        text = (_field(seg, "text", "") or "").strip()
        if not text:
            continue
        start = float(_field(seg, "start", 0.0) or 0.0)
        end = float(_field(seg, "end", start) or start)
        lines.append(f"[{format_timestamp(start)}{RANGE_SEPARATOR}{format_timestamp(end)}]  {text}")
    return "\n".join(lines)


class GroqProvider(Provider):
    """
    Cloud transcription using Groq's Whisper API.

    Used when no local whisper.cpp install is available.
    """

    name = "groq"

    def __init__(
        self,
        api_key: str,
        model: str = "whisper-large-v3",
        language: str = "auto",
        min_audio_seconds: float = MIN_AUDIO_SECONDS,
        silence_threshold_db: float = SILENCE_THRESHOLD_DB,
    ):
        self.api_key = api_key
        self.model = model
        self.language = language
        self.min_audio_seconds = min_audio_seconds
        self.silence_threshold_db = silence_threshold_db
        self.client = None

    def initialize(self) -> None:
        """Create Groq client."""
        if not self.api_key:
            print(f"[{self.name}] No API key configured")
            self.client = None
            return

        try:
            from groq import Groq

            self.client = Groq(api_key=self.api_key)
            print(f"[{self.name}] Initialized")

        except Exception as e:
            print(f"[{self.name}] Failed to initialize: {e}")
            self.client = None

    def transcribe(self, audio_path: Path, source: Source) -> TranscriptionResult:
        audio_path = Path(audio_path)

        if self.client is None:
            return self._empty(source, error="client unavailable")

        if not audio_is_usable(audio_path, self.min_audio_seconds, self.silence_threshold_db):
            return self._empty(source)

        start = time.time()
        options = {
            "model": self.model,
            "response_format": "verbose_json",
            "temperature": 0.0,
        }
        if self.language and self.language != "auto":
            options["language"] = self.language

        try:
            with open(audio_path, "rb") as f:
                response = self.client.audio.transcriptions.create(
                    file=(audio_path.name, f.read()),
                    **options,
                )
            text = segments_to_lines(_field(response, "segments", None) or [])
            error = None
        except Exception as e:
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
        """Close client."""
        self.client = None
        print(f"[{self.name}] Shutdown")
