"""
Session management for recording lifecycle.

A RecordingSession represents one recording from start to finish: chunk
rotation, per-chunk dual transcription, the live transcript and the final
saved transcript.
"""

import shutil
import threading
import time
from concurrent.futures import Future, wait
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Optional, Callable, List

from .capture import CaptureBackend
from .chunks import create_recording_dir
from .live_buffer import LiveBuffer
from .metrics import (
    MetricsWriter, log_chunk_processed, log_finalize_failed, log_session_complete, log_session_start,
)
from .scheduler import ChunkScheduler
from .store import TranscriptStore
from .types import (
    AudioChunkPair, ChunkOutcome, ConfigSnapshot, SessionState,
    CaptureError, NoTranscriptError, PersistenceError, SessionBusyError,
)
from .worker import DualTranscriptionWorker


ASSISTANT_PROMPT = (
    "You are a helpful meeting assistant. Be concise and practical. "
    "Format responses in markdown when it aids clarity."
)


@dataclass
class RecordingSession:
    """
    One user-initiated capture.

    `lock` guards chunk_seq, chunk_offset, state and pending_futures.
    The live buffer has its own lock.
    """
    id: str
    directory: Path
    live_buffer: LiveBuffer

    state: SessionState = SessionState.IDLE
    chunk_seq: int = 0
    chunk_offset: float = 0.0  # session-relative start of the open chunk
    chunks_processed: int = 0
    capture_stopped: bool = False
    final_chunk_drained: bool = False
    final_transcript: str = ""
    started_at: float = field(default_factory=time.monotonic)
    wall_start: float = field(default_factory=time.time)
    pending_futures: List[Future] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def elapsed(self) -> float:
        """Seconds since the session started."""
        return time.monotonic() - self.started_at


class SessionController:
    """
    Owns the active session and wires scheduler, worker, buffer and store.

    Only one session records at a time. Each closed chunk is processed on
    its own thread so rotation cadence never depends on engine latency.

    Usage:
        controller = SessionController(config.snapshot(), capture, worker, store)
        session = controller.start()
        # ... meeting ...
        controller.stop()
        transcript = controller.finalize()
    """

    def __init__(
        self,
        config: ConfigSnapshot,
        capture: CaptureBackend,
        worker: DualTranscriptionWorker,
        store: TranscriptStore,
        on_live_fragment: Optional[Callable[[str], None]] = None,
        on_capture_event: Optional[Callable[[str], None]] = None,
        metrics: Optional[MetricsWriter] = None,
    ):
        self.config = config
        self.capture = capture
        self.worker = worker
        self.store = store
        self.on_live_fragment = on_live_fragment
        self.on_capture_event = on_capture_event
        self.metrics = metrics

        self.session: Optional[RecordingSession] = None
        self._scheduler: Optional[ChunkScheduler] = None
        self._lock = threading.Lock()

    def start(self) -> RecordingSession:
        """
        Create a session directory, start capture and the rotation timer.

        Raises:
            SessionBusyError: if a session is still recording or finalizing
            CaptureError: if the capture subsystem could not start
        """
        with self._lock:
            current = self.session
            if current and current.state in (SessionState.RECORDING, SessionState.FINALIZING):
                raise SessionBusyError(f"session {current.id} is {current.state.value}")

            directory = create_recording_dir(self.config.data_dir)
            session = RecordingSession(
                id=directory.name,
                directory=directory,
                live_buffer=LiveBuffer(
                    max_segments=self.config.max_live_segments,
                    max_chars=self.config.max_live_chars,
                ),
            )

            try:
                self.capture.start_capture(directory)
            except Exception as e:
                shutil.rmtree(directory, ignore_errors=True)
                if isinstance(e, CaptureError):
                    raise
                raise CaptureError(f"start capture: {e}") from e

            session.state = SessionState.RECORDING
            scheduler = ChunkScheduler(
                session,
                self.capture,
                on_chunk_closed=partial(self._submit_chunk, session),
                interval=self.config.chunk_interval,
                on_capture_event=self._emit_capture_event,
                metrics=self.metrics,
            )
            scheduler.start()

            self.session = session
            self._scheduler = scheduler

        print(f"[Session] Recording {session.id} (chunks every {self.config.chunk_interval:g}s)")
        log_session_start(self.metrics, session.id, self.config.chunk_interval)
        return session

    def stop(self) -> None:
        """Stop rotation and capture. Safe to call more than once."""
        with self._lock:
            session = self.session
            scheduler = self._scheduler
            if session is None or session.capture_stopped:
                return
            session.capture_stopped = True

        if scheduler:
            scheduler.stop()

        try:
            self.capture.stop_capture()
        except Exception as e:
            print(f"[Session] Error stopping capture: {e}")

        print(f"[Session] Stopped {session.id} after {session.elapsed():.1f}s")

    def finalize(self) -> str:
        """
        Drain outstanding chunks and produce the final transcript.

        Returns:
            The final transcript text

        Raises:
            NoTranscriptError: if no chunk produced any text
            PersistenceError: if the transcript could not be saved
            SessionBusyError: if another finalize is in progress
        """
        with self._lock:
            session = self.session
        if session is None:
            raise NoTranscriptError("no recording session")

        with session.lock:
            if session.state == SessionState.COMPLETE:
                return session.final_transcript
            if session.state == SessionState.FINALIZING:
                raise SessionBusyError(f"session {session.id} is already finalizing")
            session.state = SessionState.FINALIZING

        self.stop()

        finalize_start = time.time()
        self._wait_for_pending(session)

        # A retried finalize must not transcribe the last chunk twice
        if self._scheduler and not session.final_chunk_drained:
            session.final_chunk_drained = True
            self._process_chunk(session, self._scheduler.current_chunk())

        transcript = session.live_buffer.snapshot()
        if not transcript.strip():
            self._fail(session, "no_transcript")
            raise NoTranscriptError()

        try:
            path = self.store.save_transcript(session.id, transcript)
        except PersistenceError:
            self._fail(session, "persistence")
            raise

        with session.lock:
            session.final_transcript = transcript
            session.state = SessionState.COMPLETE

        shutil.rmtree(session.directory, ignore_errors=True)

        print(f"[Session] Saved {path} ({session.chunks_processed} chunks, "
              f"{(time.time() - finalize_start):.2f}s to finalize)")
        log_session_complete(
            self.metrics,
            session_id=session.id,
            total_duration_ms=(time.time() - session.wall_start) * 1000,
            chunks=session.chunks_processed,
            final_text=transcript,
        )
        return transcript

    def _fail(self, session: RecordingSession, reason: str) -> None:
        """Leave the session finished but not complete; the directory is kept."""
        with session.lock:
            session.state = SessionState.IDLE
        print(f"[Session] Finalize failed for {session.id}: {reason}")
        log_finalize_failed(self.metrics, session.id, reason)

    def _wait_for_pending(self, session: RecordingSession) -> None:
        """Fence against chunk tasks dispatched before stop."""
        with session.lock:
            futures = list(session.pending_futures)

        if not futures:
            return

        _, not_done = wait(futures, timeout=self.config.finalize_wait_seconds)
        if not_done:
            print(f"[Session] {len(not_done)} chunk(s) still transcribing after "
                  f"{self.config.finalize_wait_seconds:g}s, finalizing without them")

    def _submit_chunk(self, session: RecordingSession, pair: AudioChunkPair) -> None:
        """
        Called by the scheduler on each rotation. Never blocks.

        Each chunk gets its own thread rather than a pool slot, so chunks
        stuck in the engine cannot starve the ones behind them.
        """
        future: Future = Future()
        with session.lock:
            session.pending_futures.append(future)
        future.add_done_callback(partial(self._forget_future, session))

        thread = threading.Thread(
            target=self._run_chunk,
            args=(session, pair, future),
            name=f"chunk-{pair.seq}",
            daemon=True,
        )
        thread.start()

    def _run_chunk(self, session: RecordingSession, pair: AudioChunkPair, future: Future) -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(self._process_chunk(session, pair))
        except Exception as e:
            future.set_exception(e)

    @staticmethod
    def _forget_future(session: RecordingSession, future: Future) -> None:
        with session.lock:
            if future in session.pending_futures:
                session.pending_futures.remove(future)

    def _process_chunk(self, session: RecordingSession, pair: AudioChunkPair) -> ChunkOutcome:
        """Transcribe one chunk pair and publish its text as a live fragment."""
        start = time.time()
        try:
            outcome = self.worker.process(pair)
        except Exception as e:
            print(f"[Chunk {pair.seq}] Processing error: {e}")
            outcome = ChunkOutcome(seq=pair.seq, text="")

        latency_ms = (time.time() - start) * 1000
        log_chunk_processed(
            self.metrics,
            session_id=session.id,
            chunk_num=pair.seq,
            segments=len(outcome.segments),
            chars=len(outcome.text),
            latency_ms=latency_ms,
            errors=[r.error for r in outcome.results if r.error],
        )

        if not outcome.text:
            print(f"[Chunk {pair.seq}] No speech ({latency_ms / 1000:.2f}s)")
            return outcome

        with session.lock:
            if session.state == SessionState.COMPLETE:
                print(f"[Chunk {pair.seq}] Arrived after finalize, dropped")
                return outcome
            session.chunks_processed += 1

        session.live_buffer.append(outcome.text)
        print(f"[Chunk {pair.seq}] {len(outcome.segments)} segments ({latency_ms / 1000:.2f}s)")

        if self.on_live_fragment:
            try:
                self.on_live_fragment(outcome.text)
            except Exception as e:
                print(f"[Chunk {pair.seq}] Live fragment sink error: {e}")

        return outcome

    def _emit_capture_event(self, message: str) -> None:
        if self.metrics and self.session:
            self.metrics.log("capture_event", session_id=self.session.id, message=message)
        if self.on_capture_event:
            try:
                self.on_capture_event(message)
            except Exception as e:
                print(f"[Session] Capture event sink error: {e}")

    def live_transcript(self) -> str:
        """Running transcript for the preview, or the final one once saved."""
        session = self.session
        if session is None:
            return ""
        if session.state == SessionState.COMPLETE:
            return session.final_transcript
        return session.live_buffer.snapshot()

    def assistant_context(self, base_prompt: str = ASSISTANT_PROMPT) -> str:
        """System prompt for the chat panel, with whatever transcript exists."""
        session = self.session
        if session and session.state == SessionState.COMPLETE and session.final_transcript:
            return (
                f"{base_prompt}\n\nThe user has a meeting transcript from this session. "
                "Use it to answer questions about the meeting.\n\n"
                f"<transcript>\n{session.final_transcript}\n</transcript>"
            )

        live = self.live_transcript()
        if not live:
            return base_prompt
        return (
            f"{base_prompt}\n\nThe meeting is currently being recorded. Below is the "
            "live transcript so far - it may be incomplete.\n\n"
            f"<transcript>\n{live}\n</transcript>"
        )

    def is_busy(self) -> bool:
        session = self.session
        return session is not None and session.state in (
            SessionState.RECORDING, SessionState.FINALIZING
        )

    def shutdown(self) -> None:
        """Stop any recording. Chunk threads are daemons and finish on their own."""
        self.stop()
