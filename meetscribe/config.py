"""
Settings for recording sessions.

Precedence (last wins): defaults < settings.json < .env files < environment.
A session works from a ConfigSnapshot taken at start, so edits made while
recording apply to the next session only.
"""

from dataclasses import fields
from pathlib import Path
from typing import Any, Dict
import json
import os

from .types import ConfigSnapshot


DEFAULT_CONFIG: Dict[str, Any] = {
    # Scheduling
    "chunk_interval": 30.0,
    "finalize_wait_seconds": 120.0,

    # Merge / live buffer
    "dedup_window": 60.0,
    "max_live_segments": 200,
    "max_live_chars": 120_000,

    # Engine
    "engine": "whisper",  # "whisper" | "groq"
    "whisper_bin": "",
    "live_model": "ggml-small.bin",
    "final_model": "ggml-large-v3-turbo.bin",
    "language": "auto",
    "min_audio_seconds": 0.25,
    "silence_threshold_db": -60.0,
}

ENV_KEYS: Dict[str, str] = {
    "MEETSCRIBE_WHISPER_BIN": "whisper_bin",
    "MEETSCRIBE_ENGINE": "engine",
    "MEETSCRIBE_LANGUAGE": "language",
    "GROQ_API_KEY": "groq_api_key",
}

DATA_DIR_ENV = "MEETSCRIBE_DATA_DIR"


def default_data_dir() -> Path:
    return Path(os.getenv(DATA_DIR_ENV) or Path.home() / ".meetscribe")


def read_env_file(path: Path) -> Dict[str, str]:
    """Parse KEY=value lines; comments, blanks and malformed lines are skipped."""
    values: Dict[str, str] = {}
    try:
        with open(path, encoding="utf-8") as f:
            for raw in f:
                raw = raw.strip()
                if not raw or raw.startswith("#") or "=" not in raw:
                    continue
                key, value = raw.split("=", 1)
                values[key.strip()] = value.strip().strip("'\"")
    except OSError as e:
        print(f"[Config] Could not read {path}: {e}")
    return values


class Config:
    """
    Mutable settings for the app; sessions take snapshots.

    Usage:
        config = Config.load()
        controller = SessionController(config.snapshot(), capture, worker, store)
    """

    def __init__(self, data_dir: Path = None):
        for key, value in DEFAULT_CONFIG.items():
            setattr(self, key, value)
        self.groq_api_key: str = ""

        self.data_dir = Path(data_dir) if data_dir is not None else default_data_dir()

    @property
    def metrics_file(self) -> Path:
        return self.data_dir / "metrics.jsonl"

    @property
    def settings_file(self) -> Path:
        return self.data_dir / "settings.json"

    @property
    def env_file(self) -> Path:
        return self.data_dir / ".env"

    @classmethod
    def load(cls, data_dir: Path = None) -> "Config":
        config = cls(data_dir)
        config.data_dir.mkdir(parents=True, exist_ok=True)
        config._apply_settings(config.settings_file)
        config._apply_env()
        return config

    def _apply_settings(self, settings_file: Path) -> None:
        """Apply settings.json, coercing each value to its default's type."""
        if not settings_file.exists():
            return
        try:
            with open(settings_file, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            print(f"[Config] Ignoring {settings_file}: {e}")
            return

        for key, default in DEFAULT_CONFIG.items():
            if key not in data:
                continue
            try:
                setattr(self, key, type(default)(data[key]))
            except (TypeError, ValueError):
                print(f"[Config] Ignoring invalid setting {key}={data[key]!r}")

    def _apply_env(self) -> None:
        # ./.env first, then the data dir's, then the real environment
        for env_file in (Path(".env"), self.env_file):
            if env_file.exists():
                for key, value in read_env_file(env_file).items():
                    if key in ENV_KEYS:
                        setattr(self, ENV_KEYS[key], value)

        for key, attr in ENV_KEYS.items():
            value = os.getenv(key)
            if value is not None:
                setattr(self, attr, value)

    def save_settings(self) -> None:
        """Persist the non-secret settings to settings.json."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        data = {key: getattr(self, key) for key in DEFAULT_CONFIG}
        with open(self.settings_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def snapshot(self) -> ConfigSnapshot:
        """Copy of the current values for one session."""
        values = {f.name: getattr(self, f.name) for f in fields(ConfigSnapshot) if f.name != "data_dir"}
        return ConfigSnapshot(data_dir=str(self.data_dir), **values)
