"""
Periodic chunk rotation for live transcription.

Every chunk_interval seconds the capture subsystem is rolled over onto a
new chunk file and the just-closed pair is handed off for processing.
The hand-off must not block: engine calls routinely take longer than the
interval itself.
"""

import threading
from typing import Callable, Optional, TYPE_CHECKING

from .capture import CaptureBackend
from .chunks import chunk_path, make_chunk_pair
from .metrics import MetricsWriter, log_chunk_rotated, log_rotation_failed
from .types import AudioChunkPair, SchedulerState

if TYPE_CHECKING:
    from .session import RecordingSession


DEFAULT_CHUNK_INTERVAL = 30.0  # seconds


class ChunkScheduler:
    """
    Drives rotation for one recording session.

    States: IDLE -> ACTIVE -> STOPPED. The sequence counter lives on the
    session and is only advanced when the capture side accepted the
    rollover, so a failed tick keeps recording into the same chunk.

    Usage:
        scheduler = ChunkScheduler(session, capture, on_chunk_closed=submit)
        scheduler.start()
        # ...
        scheduler.stop()
        final_pair = scheduler.current_chunk()
    """

    def __init__(
        self,
        session: "RecordingSession",
        capture: CaptureBackend,
        on_chunk_closed: Callable[[AudioChunkPair], None],
        interval: float = DEFAULT_CHUNK_INTERVAL,
        on_capture_event: Optional[Callable[[str], None]] = None,
        metrics: Optional[MetricsWriter] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.session = session
        self.capture = capture
        self.on_chunk_closed = on_chunk_closed
        self.interval = interval
        self.on_capture_event = on_capture_event
        self.metrics = metrics
        self.clock = clock or session.elapsed

        self.state = SchedulerState.IDLE
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Begin ticking. Capture must already be writing chunk 0."""
        with self.session.lock:
            if self.state != SchedulerState.IDLE:
                return
            self.state = SchedulerState.ACTIVE
            self.session.chunk_seq = 0
            self.session.chunk_offset = 0.0

        self._thread = threading.Thread(target=self._run, name="chunk-scheduler", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            self.tick()

    def tick(self) -> Optional[AudioChunkPair]:
        """
        Rotate once.

        Returns:
            The closed chunk pair, or None if inactive or rotation failed
        """
        with self.session.lock:
            if self.state != SchedulerState.ACTIVE:
                return None
            seq = self.session.chunk_seq
            offset = self.session.chunk_offset

        self._poll_capture_event()

        new_mic = chunk_path(self.session.directory, seq + 1)
        try:
            self.capture.rotate_chunk(new_mic)
        except Exception as e:
            print(f"[Scheduler] Rotation to chunk {seq + 1} failed, keeping chunk {seq}: {e}")
            log_rotation_failed(self.metrics, self.session.id, seq, str(e))
            return None

        rotated_at = self.clock()
        with self.session.lock:
            self.session.chunk_seq = seq + 1
            self.session.chunk_offset = rotated_at

        closed = make_chunk_pair(self.session.directory, seq, offset)

        log_chunk_rotated(self.metrics, self.session.id, seq, offset, rotated_at - offset)

        try:
            self.on_chunk_closed(closed)
        except Exception as e:
            print(f"[Scheduler] Chunk {seq} hand-off failed: {e}")

        return closed

    def _poll_capture_event(self) -> None:
        try:
            message = self.capture.consume_capture_event()
        except Exception as e:
            print(f"[Scheduler] Capture event poll failed: {e}")
            return

        if message:
            print(f"[Capture] {message}")
            if self.on_capture_event:
                self.on_capture_event(message)

    def stop(self) -> None:
        """
        Stop ticking and wait for an in-progress rotation. Idempotent.

        The join is unbounded: a rotation that is still running decides which
        chunk is open, and current_chunk() must not be read before it commits.
        """
        with self.session.lock:
            if self.state == SchedulerState.STOPPED:
                return
            self.state = SchedulerState.STOPPED

        self._stop_event.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join()
        self._thread = None

    def current_chunk(self) -> AudioChunkPair:
        """The chunk pair capture is (or was last) writing into."""
        with self.session.lock:
            return make_chunk_pair(
                self.session.directory,
                self.session.chunk_seq,
                self.session.chunk_offset,
            )
