"""
Tests for transcription providers and the registry.

Engines are never launched: subprocess.run and the Groq client are mocked.
"""

import subprocess
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest

from meetscribe.providers import ProviderRegistry
from meetscribe.providers.groq import GroqProvider, segments_to_lines
from meetscribe.providers.whisper_cpp import (
    WhisperCppProvider, audio_is_usable, find_whisper, find_model, find_final_model,
)
from meetscribe.types import EngineNotFoundError, Source

from conftest import FakeProvider, write_wav


def make_install(tmp_path, models=("ggml-small.bin",)):
    """Lay out a data dir with a whisper-cli binary and model files."""
    binary = tmp_path / "whisper-cli"
    binary.write_text("#!/bin/sh\n")
    (tmp_path / "models").mkdir()
    for name in models:
        (tmp_path / "models" / name).write_bytes(b"ggml")
    return binary


class TestAudioIsUsable:

    def test_missing_file(self, tmp_path):
        assert audio_is_usable(tmp_path / "nope.wav") is False

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.wav"
        path.write_bytes(b"")
        assert audio_is_usable(path) is False

    def test_too_short(self, tmp_path):
        path = write_wav(tmp_path / "short.wav", seconds=0.1)
        assert audio_is_usable(path) is False

    def test_silence(self, tmp_path):
        path = write_wav(tmp_path / "silent.wav", seconds=1.0, amplitude=0.0)
        assert audio_is_usable(path) is False

    def test_speech_level_audio(self, tmp_path):
        path = write_wav(tmp_path / "tone.wav", seconds=1.0)
        assert audio_is_usable(path) is True

    def test_unreadable(self, tmp_path):
        path = tmp_path / "garbage.wav"
        path.write_bytes(b"not audio data at all")
        assert audio_is_usable(path) is False


class TestFindWhisper:

    def test_configured_path_wins(self, tmp_path):
        binary = tmp_path / "custom-whisper"
        binary.write_text("")
        make_install(tmp_path / "data")

        assert find_whisper(str(binary), tmp_path / "data") == binary

    def test_data_dir_before_path(self, tmp_path):
        binary = make_install(tmp_path)
        with patch("meetscribe.providers.whisper_cpp.shutil.which", return_value="/usr/bin/whisper-cli"):
            assert find_whisper("", tmp_path) == binary

    def test_falls_back_to_path(self, tmp_path):
        with patch("meetscribe.providers.whisper_cpp.shutil.which",
                   side_effect=lambda name: "/opt/bin/main" if name == "main" else None):
            assert find_whisper("", tmp_path) == Path("/opt/bin/main")

    def test_not_found(self, tmp_path):
        with patch("meetscribe.providers.whisper_cpp.shutil.which", return_value=None):
            with pytest.raises(EngineNotFoundError):
                find_whisper("/does/not/exist", tmp_path)


class TestFindModel:

    def test_model_in_data_dir(self, tmp_path):
        make_install(tmp_path)
        assert find_model("ggml-small.bin", tmp_path) == tmp_path / "models" / "ggml-small.bin"

    def test_absolute_path(self, tmp_path):
        model = tmp_path / "elsewhere.bin"
        model.write_bytes(b"ggml")
        assert find_model(str(model), tmp_path / "data") == model

    def test_missing_model(self, tmp_path):
        with pytest.raises(EngineNotFoundError):
            find_model("ggml-small.bin", tmp_path)

    def test_final_falls_back_to_live(self, tmp_path):
        make_install(tmp_path, models=("ggml-small.bin",))
        found = find_final_model("ggml-large-v3-turbo.bin", "ggml-small.bin", tmp_path)
        assert found.name == "ggml-small.bin"

    def test_final_prefers_large(self, tmp_path):
        make_install(tmp_path, models=("ggml-small.bin", "ggml-large-v3-turbo.bin"))
        found = find_final_model("ggml-large-v3-turbo.bin", "ggml-small.bin", tmp_path)
        assert found.name == "ggml-large-v3-turbo.bin"


class TestWhisperCppProvider:

    def create_provider(self, tmp_path, **kwargs):
        binary = make_install(tmp_path)
        provider = WhisperCppProvider(model="ggml-small.bin", data_dir=tmp_path, **kwargs)
        provider.initialize()
        return provider, binary

    def test_invokes_binary(self, tmp_path):
        """Test the engine is run with model, file and language arguments."""
        provider, binary = self.create_provider(tmp_path)
        audio = write_wav(tmp_path / "chunk-0.wav", seconds=1.0)
        stdout = "[00:00:00.000 --> 00:00:01.000]  Hello there.\n"

        with patch("meetscribe.providers.whisper_cpp.subprocess.run") as mock_run:
            mock_run.return_value = SimpleNamespace(stdout=stdout, returncode=0)
            result = provider.transcribe(audio, Source.LOCAL)

        cmd = mock_run.call_args.args[0]
        assert cmd == [
            str(binary), "-m", str(tmp_path / "models" / "ggml-small.bin"),
            "-f", str(audio), "-l", "auto",
        ]
        assert mock_run.call_args.kwargs["stderr"] == subprocess.DEVNULL
        assert result.text == "[00:00:00.000 --> 00:00:01.000]  Hello there."
        assert result.source == Source.LOCAL
        assert result.provider == "whisper"
        assert result.error is None

    def test_language_passed_through(self, tmp_path):
        provider, _ = self.create_provider(tmp_path, language="de")
        audio = write_wav(tmp_path / "chunk-0.wav", seconds=1.0)

        with patch("meetscribe.providers.whisper_cpp.subprocess.run") as mock_run:
            mock_run.return_value = SimpleNamespace(stdout="", returncode=0)
            provider.transcribe(audio, Source.REMOTE)

        cmd = mock_run.call_args.args[0]
        assert cmd[cmd.index("-l") + 1] == "de"

    def test_engine_failure_is_empty(self, tmp_path):
        provider, _ = self.create_provider(tmp_path)
        audio = write_wav(tmp_path / "chunk-0.wav", seconds=1.0)

        with patch("meetscribe.providers.whisper_cpp.subprocess.run",
                   side_effect=subprocess.CalledProcessError(3, "whisper-cli")):
            result = provider.transcribe(audio, Source.REMOTE)

        assert result.text == ""
        assert result.error

    def test_silent_audio_skips_engine(self, tmp_path):
        provider, _ = self.create_provider(tmp_path)
        audio = write_wav(tmp_path / "chunk-0.wav", seconds=1.0, amplitude=0.0)

        with patch("meetscribe.providers.whisper_cpp.subprocess.run") as mock_run:
            result = provider.transcribe(audio, Source.LOCAL)

        mock_run.assert_not_called()
        assert result.text == ""
        assert result.error is None

    def test_missing_install(self, tmp_path):
        provider = WhisperCppProvider(model="ggml-small.bin", data_dir=tmp_path)
        with patch("meetscribe.providers.whisper_cpp.shutil.which", return_value=None):
            provider.initialize()

        result = provider.transcribe(tmp_path / "chunk-0.wav", Source.LOCAL)

        assert provider.binary_path is None
        assert result.text == ""
        assert result.error == "engine unavailable"


class TestGroqProvider:

    def test_segments_to_lines(self):
        segments = [
            {"start": 0.0, "end": 1.5, "text": " Hello."},
            SimpleNamespace(start=61.25, end=62.0, text="Second line"),
            {"start": 63.0, "end": 64.0, "text": "   "},
        ]

        assert segments_to_lines(segments) == (
            "[00:00:00.000 --> 00:00:01.500]  Hello.\n"
            "[00:01:01.250 --> 00:01:02.000]  Second line"
        )

    def test_no_api_key(self, tmp_path):
        provider = GroqProvider(api_key="")
        provider.initialize()

        result = provider.transcribe(tmp_path / "chunk-0.wav", Source.REMOTE)

        assert provider.client is None
        assert result.error == "client unavailable"

    def test_transcribe_with_client(self, tmp_path):
        provider = GroqProvider(api_key="test-key", language="en")
        provider.client = Mock()
        provider.client.audio.transcriptions.create.return_value = SimpleNamespace(
            segments=[{"start": 2.0, "end": 3.0, "text": "From the API"}],
        )
        audio = write_wav(tmp_path / "chunk-sys-0.wav", seconds=1.0)

        result = provider.transcribe(audio, Source.REMOTE)

        kwargs = provider.client.audio.transcriptions.create.call_args.kwargs
        assert kwargs["file"][0] == "chunk-sys-0.wav"
        assert kwargs["response_format"] == "verbose_json"
        assert kwargs["language"] == "en"
        assert result.text == "[00:00:02.000 --> 00:00:03.000]  From the API"
        assert result.provider == "groq"

    def test_auto_language_omitted(self, tmp_path):
        provider = GroqProvider(api_key="test-key")
        provider.client = Mock()
        provider.client.audio.transcriptions.create.return_value = SimpleNamespace(segments=[])
        audio = write_wav(tmp_path / "chunk-0.wav", seconds=1.0)

        result = provider.transcribe(audio, Source.LOCAL)

        assert "language" not in provider.client.audio.transcriptions.create.call_args.kwargs
        assert result.text == ""

    def test_api_error(self, tmp_path):
        provider = GroqProvider(api_key="test-key")
        provider.client = Mock()
        provider.client.audio.transcriptions.create.side_effect = RuntimeError("rate limited")
        audio = write_wav(tmp_path / "chunk-0.wav", seconds=1.0)

        result = provider.transcribe(audio, Source.LOCAL)

        assert result.text == ""
        assert result.error == "rate limited"


class TestProviderRegistry:

    def test_register_initializes(self):
        registry = ProviderRegistry()
        provider = FakeProvider()
        registry.register(provider)

        assert provider.initialized
        assert registry.get("fake") is provider

    def test_get_unknown(self):
        assert ProviderRegistry().get("nope") is None

    def test_shutdown(self):
        registry = ProviderRegistry()
        provider = FakeProvider()
        registry.register(provider)
        registry.shutdown()

        assert not provider.initialized
        assert registry.get("fake") is None

    def test_shutdown_error_does_not_stop_others(self):
        registry = ProviderRegistry()
        broken = FakeProvider()
        broken.name = "broken"
        broken.shutdown = Mock(side_effect=RuntimeError("boom"))
        healthy = FakeProvider()
        registry.register(broken)
        registry.register(healthy)

        registry.shutdown()

        assert not healthy.initialized
