"""
Tests for MetricsWriter.
"""

import json

from meetscribe.metrics import MetricsWriter, log_chunk_processed, log_session_complete


def read_events(path):
    return [json.loads(line) for line in path.read_text().splitlines()]


class TestMetricsWriter:

    def test_log_and_shutdown_writes_jsonl(self, tmp_path):
        metrics_file = tmp_path / "nested" / "metrics.jsonl"
        metrics = MetricsWriter(metrics_file)

        metrics.log("session_start", session_id="s1", chunk_interval=30.0)
        metrics.log("chunk_rotated", session_id="s1", chunk_num=0)
        metrics.shutdown()

        events = read_events(metrics_file)
        assert [e["event"] for e in events] == ["session_start", "chunk_rotated"]
        assert events[0]["chunk_interval"] == 30.0
        assert all("ts" in e for e in events)

    def test_helpers(self, tmp_path):
        metrics_file = tmp_path / "metrics.jsonl"
        metrics = MetricsWriter(metrics_file)

        log_chunk_processed(metrics, "s1", 2, segments=3, chars=120, latency_ms=850.0, errors=[])
        log_session_complete(metrics, "s1", total_duration_ms=60000, chunks=2, final_text="x" * 900)
        metrics.shutdown()

        processed, complete = read_events(metrics_file)
        assert processed["event"] == "chunk_processed"
        assert processed["chunk_num"] == 2
        assert complete["event"] == "session_complete"
        assert len(complete["final_text"]) == 500

    def test_log_after_shutdown_ignored(self, tmp_path):
        metrics_file = tmp_path / "metrics.jsonl"
        with MetricsWriter(metrics_file) as metrics:
            metrics.log("session_start", session_id="s1")
        metrics.log("late", session_id="s1")
        metrics.shutdown()

        assert [e["event"] for e in read_events(metrics_file)] == ["session_start"]
        assert metrics.written == 1

    def test_helpers_accept_no_writer(self):
        log_chunk_processed(None, "s1", 0, segments=0, chars=0, latency_ms=1.0, errors=[])
        log_session_complete(None, "s1", total_duration_ms=1.0, chunks=0, final_text="")
