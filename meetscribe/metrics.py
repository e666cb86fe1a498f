"""
JSONL event log for sessions and chunks.

Events are queued by the scheduler thread and the chunk tasks and appended
to {data_dir}/metrics.jsonl by a single writer thread.

Usage:
    metrics = MetricsWriter(config.metrics_file)
    log_chunk_rotated(metrics, session.id, chunk_num=3, offset_seconds=90.0, duration_seconds=30.1)
    metrics.shutdown()
"""

import json
import threading
import time
from pathlib import Path
from queue import Queue, Empty
from typing import Any, List, Optional

_STOP = object()


class MetricsWriter:
    """
    Thread-safe event writer. log() never blocks on disk.

    Each batch is one open/append/close so concurrent processes sharing the
    file interleave whole lines.
    """

    def __init__(self, metrics_file: Path):
        self.metrics_file = Path(metrics_file)
        self.written = 0
        self._queue: Queue = Queue()
        self._closed = False
        self._writer_thread = threading.Thread(target=self._writer_loop, name="metrics-writer", daemon=True)
        self._writer_thread.start()

    def log(self, event: str, **fields: Any) -> None:
        """Queue one event. Fields must be JSON-serializable."""
        if self._closed:
            return
        self._queue.put({"ts": time.time(), "event": event, **fields})

    def _writer_loop(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return

            batch = [item]
            stop = False
            while True:
                try:
                    nxt = self._queue.get_nowait()
                except Empty:
                    break
                if nxt is _STOP:
                    stop = True
                    break
                batch.append(nxt)

            self._write_entries(batch)
            if stop:
                return

    def _write_entries(self, entries: List[dict]) -> None:
        try:
            self.metrics_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.metrics_file, "a", encoding="utf-8") as f:
                for entry in entries:
                    f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
            self.written += len(entries)
        except OSError as e:
            print(f"[Metrics] Failed to write {len(entries)} event(s): {e}")

    def flush(self) -> None:
        """Write whatever is still queued from the calling thread."""
        entries = []
        while True:
            try:
                item = self._queue.get_nowait()
            except Empty:
                break
            if item is not _STOP:
                entries.append(item)

        if entries:
            self._write_entries(entries)

    def shutdown(self) -> None:
        """Stop accepting events, let the writer drain, then flush leftovers."""
        if self._closed:
            return
        self._closed = True
        self._queue.put(_STOP)
        self._writer_thread.join(timeout=2.0)
        self.flush()

    def __enter__(self) -> "MetricsWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()


# Typed helpers so every emitter uses the same field names

def log_session_start(metrics: Optional[MetricsWriter], session_id: str, chunk_interval: float) -> None:
    if metrics:
        metrics.log("session_start", session_id=session_id, chunk_interval=chunk_interval)


def log_chunk_rotated(
    metrics: Optional[MetricsWriter],
    session_id: str,
    chunk_num: int,
    offset_seconds: float,
    duration_seconds: float,
) -> None:
    if metrics:
        metrics.log(
            "chunk_rotated",
            session_id=session_id,
            chunk_num=chunk_num,
            offset_seconds=round(offset_seconds, 3),
            duration_seconds=round(duration_seconds, 3),
        )


def log_rotation_failed(metrics: Optional[MetricsWriter], session_id: str, chunk_num: int, error: str) -> None:
    if metrics:
        metrics.log("rotation_failed", session_id=session_id, chunk_num=chunk_num, error=error)


def log_chunk_processed(
    metrics: Optional[MetricsWriter],
    session_id: str,
    chunk_num: int,
    segments: int,
    chars: int,
    latency_ms: float,
    errors: list,
) -> None:
    """One chunk went through the worker; errors are per-source messages."""
    if metrics:
        metrics.log(
            "chunk_processed",
            session_id=session_id,
            chunk_num=chunk_num,
            segments=segments,
            chars=chars,
            latency_ms=round(latency_ms, 1),
            errors=errors,
        )


def log_finalize_failed(metrics: Optional[MetricsWriter], session_id: str, reason: str) -> None:
    if metrics:
        metrics.log("finalize_failed", session_id=session_id, reason=reason)


def log_session_complete(
    metrics: Optional[MetricsWriter],
    session_id: str,
    total_duration_ms: float,
    chunks: int,
    final_text: str,
) -> None:
    if metrics:
        metrics.log(
            "session_complete",
            session_id=session_id,
            total_duration_ms=round(total_duration_ms, 1),
            chunks=chunks,
            final_text=final_text[:500],  # Truncate for metrics
        )
