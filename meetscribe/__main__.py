"""
Command-line entry point for MeetScribe.

Run with: python -m meetscribe transcribe ~/.meetscribe/recordings/<session>

Live recording is driven by the overlay, which owns the capture backend
and embeds SessionController. The CLI covers the offline path: full
transcription of a finished recording directory (mic.wav + system.wav).
"""

import argparse
import shutil
import sys
from pathlib import Path
from typing import Optional

from .chunks import MIC_FILENAME, SYSTEM_FILENAME
from .config import Config
from .metrics import MetricsWriter
from .providers import Provider, ProviderRegistry
from .providers.groq import GroqProvider
from .providers.whisper_cpp import WhisperCppProvider, find_final_model, find_whisper
from .store import TranscriptStore
from .types import ConfigSnapshot, MeetScribeError, NoTranscriptError
from .worker import DualTranscriptionWorker


def build_provider(
    registry: ProviderRegistry,
    config: ConfigSnapshot,
    final: bool = False,
) -> Optional[Provider]:
    """
    Register the configured engine and return it.

    The final (post-recording) pass prefers the large model; live chunks
    use the small one.
    """
    if config.engine == "groq":
        registry.register(GroqProvider(
            config.groq_api_key,
            language=config.language,
            min_audio_seconds=config.min_audio_seconds,
            silence_threshold_db=config.silence_threshold_db,
        ))
        return registry.get(GroqProvider.name)

    if config.engine != "whisper":
        print(f"Unknown engine: {config.engine}")
        return None

    # Fail loudly here rather than producing empty chunks later
    find_whisper(config.whisper_bin, config.data_dir)
    if final:
        model = str(find_final_model(config.final_model, config.live_model, config.data_dir))
    else:
        model = config.live_model

    registry.register(WhisperCppProvider(
        model=model,
        data_dir=config.data_dir,
        binary=config.whisper_bin,
        language=config.language,
        min_audio_seconds=config.min_audio_seconds,
        silence_threshold_db=config.silence_threshold_db,
    ))
    return registry.get(WhisperCppProvider.name)


def transcribe_recording(
    recording_dir: Path,
    worker: DualTranscriptionWorker,
) -> str:
    """
    Transcribe a full recording at offset 0.

    Raises:
        NoTranscriptError: if neither file produced speech
    """
    text, _, _ = worker.transcribe_files(
        recording_dir / MIC_FILENAME,
        recording_dir / SYSTEM_FILENAME,
        offset=0.0,
    )
    if not text:
        raise NoTranscriptError()
    return text


def cmd_transcribe(args: argparse.Namespace, config: Config) -> int:
    recording_dir = Path(args.recording_dir).expanduser()
    if not recording_dir.is_dir():
        print(f"Not a recording directory: {recording_dir}", file=sys.stderr)
        return 2

    snapshot = config.snapshot()
    registry = ProviderRegistry()
    metrics = MetricsWriter(config.metrics_file)

    try:
        provider = build_provider(registry, snapshot, final=(args.model == "final"))
        if provider is None:
            return 2

        worker = DualTranscriptionWorker(provider, dedup_window=snapshot.dedup_window)
        transcript = transcribe_recording(recording_dir, worker)

        print(transcript)
        metrics.log("recording_transcribed", session_id=recording_dir.name, chars=len(transcript))

        if args.save or args.notes:
            store = TranscriptStore(config.data_dir)
            path = store.save_transcript(recording_dir.name, transcript)
            print(f"\nSaved {path}", file=sys.stderr)
            if args.notes:
                store.append_to_notes(recording_dir.name)
                print(f"Appended to {store.notes_file}", file=sys.stderr)
            if args.remove:
                shutil.rmtree(recording_dir, ignore_errors=True)

        return 0

    except MeetScribeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    finally:
        registry.shutdown()
        metrics.shutdown()


def cmd_notes(args: argparse.Namespace, config: Config) -> int:
    store = TranscriptStore(config.data_dir)
    try:
        store.append_to_notes(args.session_id)
    except MeetScribeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Appended {args.session_id} to {store.notes_file}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="meetscribe", description="Meeting transcription")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data directory (default: ~/.meetscribe)")
    sub = parser.add_subparsers(dest="command", required=True)

    transcribe = sub.add_parser("transcribe", help="Transcribe a recording directory")
    transcribe.add_argument("recording_dir")
    transcribe.add_argument("--model", choices=("live", "final"), default="final")
    transcribe.add_argument("--save", action="store_true", help="Save to transcripts/")
    transcribe.add_argument("--notes", action="store_true", help="Also append to notes.md")
    transcribe.add_argument("--remove", action="store_true",
                            help="Delete the recording directory after saving")
    transcribe.set_defaults(func=cmd_transcribe)

    notes = sub.add_parser("notes", help="Append a saved transcript to notes.md")
    notes.add_argument("session_id")
    notes.set_defaults(func=cmd_notes)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = Config.load(args.data_dir)
    return args.func(args, config)


if __name__ == "__main__":
    sys.exit(main())
