"""
Dual transcription of one chunk pair.

The mic file and the system-audio file are transcribed independently and
in parallel. A failure on one side only empties that side.
"""

from concurrent.futures import ThreadPoolExecutor, Future
from pathlib import Path
from typing import List, Tuple

from .merge import accept_segments, merge_segments, DEFAULT_DEDUP_WINDOW
from .providers import Provider
from .types import AudioChunkPair, ChunkOutcome, TranscriptionResult, TranscriptSegment, Source


class DualTranscriptionWorker:
    """
    Runs the speech engine on both halves of a chunk and merges the output.

    Thread-safe: process() may be called from several chunk tasks at once.
    Every call gets its own pair of engine threads, so a hung engine call
    only ever holds up the chunk it belongs to.

    Usage:
        worker = DualTranscriptionWorker(provider)
        outcome = worker.process(pair)
        if outcome.text:
            live_buffer.append(outcome.text)
    """

    def __init__(
        self,
        provider: Provider,
        dedup_window: float = DEFAULT_DEDUP_WINDOW,
    ):
        self.provider = provider
        self.dedup_window = dedup_window

    def process(self, pair: AudioChunkPair) -> ChunkOutcome:
        """
        Transcribe, merge and delete one chunk pair.

        Never raises for per-source problems; the chunk files are removed
        whatever happens.
        """
        try:
            text, segments, results = self.transcribe_files(
                pair.mic_path, pair.sys_path, pair.offset_seconds
            )
        finally:
            _remove_quietly(pair.mic_path)
            _remove_quietly(pair.sys_path)

        return ChunkOutcome(seq=pair.seq, text=text, segments=segments, results=results)

    def transcribe_files(
        self,
        mic_path: Path,
        sys_path: Path,
        offset: float = 0.0,
    ) -> Tuple[str, List[TranscriptSegment], List[TranscriptionResult]]:
        """
        Transcribe two files concurrently and merge them.

        Returns:
            (rendered text, kept segments, per-source results)
        """
        executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="transcribe")
        try:
            futures: List[Tuple[Source, Future]] = [
                (Source.LOCAL, executor.submit(self.provider.transcribe, Path(mic_path), Source.LOCAL)),
                (Source.REMOTE, executor.submit(self.provider.transcribe, Path(sys_path), Source.REMOTE)),
            ]

            results: List[TranscriptionResult] = []
            for source, future in futures:
                try:
                    results.append(future.result())
                except Exception as e:
                    print(f"[Worker] {self.provider.name}/{source.value} error: {e}")
                    results.append(TranscriptionResult(
                        text="", provider=self.provider.name, source=source,
                        latency_ms=0, error=str(e),
                    ))
        finally:
            executor.shutdown(wait=False)

        local_raw, remote_raw = results[0].text, results[1].text
        if not local_raw and not remote_raw:
            return "", [], results

        merged = merge_segments(
            accept_segments(local_raw, Source.LOCAL, offset),
            accept_segments(remote_raw, Source.REMOTE, offset),
            self.dedup_window,
        )
        return merged.render(), list(merged.segments), results


def _remove_quietly(path: Path) -> None:
    try:
        Path(path).unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        print(f"[Worker] Could not delete {path}: {e}")
