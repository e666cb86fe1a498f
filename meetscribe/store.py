"""
Persistence of finished transcripts.

Saves to: {data_dir}/transcripts/{session_id}.md
Notes:    {data_dir}/notes.md
"""

import os
import tempfile
from pathlib import Path

from .types import PersistenceError


class TranscriptStore:
    """
    Writes transcripts as markdown files and appends them to the notes file.

    Usage:
        store = TranscriptStore(config.data_dir)
        path = store.save_transcript("2025-01-01-10-00-00", text)
        store.append_to_notes("2025-01-01-10-00-00")
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.transcripts_dir = self.data_dir / "transcripts"
        self.notes_file = self.data_dir / "notes.md"

    def transcript_path(self, session_id: str) -> Path:
        return self.transcripts_dir / f"{session_id}.md"

    def save_transcript(self, session_id: str, transcript: str) -> Path:
        """
        Write the transcript atomically (temp file + rename).

        Raises:
            PersistenceError: if the file could not be written
        """
        content = f"# Transcript — {session_id}\n\n{transcript}\n"
        target = self.transcript_path(session_id)

        try:
            self.transcripts_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.transcripts_dir, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                os.replace(tmp_path, target)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise PersistenceError(f"save transcript: {e}") from e

        return target

    def load_transcript(self, session_id: str) -> str:
        """Return the transcript body (without the heading)."""
        try:
            data = self.transcript_path(session_id).read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"transcript not found: {e}") from e

        heading, _, body = data.partition("\n\n")
        if not heading.startswith("# Transcript"):
            return data.strip()
        return body.strip()

    def append_to_notes(self, session_id: str) -> None:
        """Append a saved transcript as a dated section of notes.md."""
        body = self.load_transcript(session_id)
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with open(self.notes_file, "a", encoding="utf-8") as f:
                f.write(f"\n\n## Transcript — {session_id}\n\n{body}\n")
        except OSError as e:
            raise PersistenceError(f"append to notes: {e}") from e
