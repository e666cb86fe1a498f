"""
Speech-to-text engines behind one interface.

A provider turns one audio file into raw "[start --> end]  text" lines.
Locating binaries, models or API clients happens once in initialize().
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional
import threading

from ..types import TranscriptionResult, Source


class Provider(ABC):
    """
    Base class for speech engines.

    Subclasses must implement:
    - initialize(): Resolve binary/model paths or create the API client
    - transcribe(): Run the engine on one file
    - shutdown(): Drop resolved paths and clients

    A provider that failed to initialize still answers transcribe() with an
    empty result carrying an error, so a chunk never raises.
    """

    name: str = "base"

    @abstractmethod
    def initialize(self) -> None:
        pass

    @abstractmethod
    def transcribe(self, audio_path: Path, source: Source) -> TranscriptionResult:
        """
        Transcribe one audio file.

        Args:
            audio_path: WAV file on disk (may be missing or empty)
            source: Channel the file belongs to (for result metadata)

        Returns:
            TranscriptionResult whose text holds "[start --> end] text" lines,
            or "" if the file had nothing worth transcribing
        """

    @abstractmethod
    def shutdown(self) -> None:
        pass

    def _empty(self, source: Source, error: Optional[str] = None) -> TranscriptionResult:
        return TranscriptionResult(text="", provider=self.name, source=source, latency_ms=0, error=error)


class ProviderRegistry:
    """
    Keeps initialized engines by name and shuts them down together.

    Usage:
        registry = ProviderRegistry()
        registry.register(WhisperCppProvider(model="ggml-small.bin", data_dir=data_dir))
        worker = DualTranscriptionWorker(registry.get("whisper"))
        ...
        registry.shutdown()
    """

    def __init__(self):
        self._providers: Dict[str, Provider] = {}
        self._lock = threading.Lock()

    def register(self, provider: Provider) -> None:
        """Initialize a provider and make it available under its name."""
        provider.initialize()
        with self._lock:
            previous = self._providers.get(provider.name)
            self._providers[provider.name] = provider
        if previous is not None and previous is not provider:
            previous.shutdown()

    def get(self, name: str) -> Optional[Provider]:
        with self._lock:
            return self._providers.get(name)

    def shutdown(self) -> None:
        with self._lock:
            providers = list(self._providers.values())
            self._providers.clear()

        for provider in providers:
            try:
                provider.shutdown()
            except Exception as e:
                print(f"[{provider.name}] Error during shutdown: {e}")
