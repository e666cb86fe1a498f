"""
Interface to the audio capture subsystem.

Capture itself (CoreAudio taps, loopback devices, encoders) lives outside
this package. The session only needs to start it, roll it over onto a new
chunk and stop it.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional


class CaptureBackend(ABC):
    """
    Base class for capture backends.

    Subclasses must implement:
    - start_capture(): Begin writing chunk-0.wav / chunk-sys-0.wav into dir
    - rotate_chunk(): Finalize the current pair and open the next one
    - stop_capture(): Finalize the current pair and release devices

    Failures raise CaptureError.
    """

    @abstractmethod
    def start_capture(self, directory: Path) -> None:
        pass

    @abstractmethod
    def rotate_chunk(self, new_mic_path: Path) -> None:
        """
        Close the active chunk pair and start writing new_mic_path.

        The companion system-audio file is opened by the backend using the
        same naming convention as chunks.chunk_sys_path().
        """
        pass

    @abstractmethod
    def stop_capture(self) -> None:
        pass

    def consume_capture_event(self) -> Optional[str]:
        """
        Return and clear a pending capture-health message, if any.

        e.g. "System audio stopped unexpectedly". Best effort; the default
        backend never reports anything.
        """
        return None
