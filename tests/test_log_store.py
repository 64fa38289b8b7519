"""
Tests for the JSONL activity log.
"""
import logging
from datetime import datetime, timezone

from runtime.agents.session_coordinator import LiveSessionCoordinator
from runtime.store.log_store import ConsoleLogStore, LogStore


class TestLogStore:

    def test_appends_one_line_per_event(self, tmp_path):
        log_store = LogStore(log_dir=str(tmp_path / "logs"))
        log_store.log_event("session_started", {"event_id": "e1"})
        log_store.log_event("session_ended", {"event_id": "e1"})

        day = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        path = tmp_path / "logs" / f"activity_{day}.jsonl"
        assert len(path.read_text(encoding="utf-8").splitlines()) == 2

        entries = log_store.read_events()
        assert [e["event_type"] for e in entries] == ["session_started", "session_ended"]
        assert entries[0]["payload"] == {"event_id": "e1"}

    def test_malformed_lines_skipped(self, tmp_path):
        log_store = LogStore(log_dir=str(tmp_path))
        (tmp_path / "activity_2026-01-01.jsonl").write_text(
            '{"event_type": "ok", "payload": {}}\nnot json\n\n', encoding="utf-8"
        )
        assert [e["event_type"] for e in log_store.read_events("2026-01-01")] == ["ok"]

    def test_missing_day(self, tmp_path):
        assert LogStore(log_dir=str(tmp_path)).read_events("1999-01-01") == []

    def test_coordinator_writes_activity(self, tmp_path, store, host_ctx):
        log_store = LogStore(log_dir=str(tmp_path))
        coordinator = LiveSessionCoordinator(store=store, log_store=log_store)
        event = coordinator.create_event(host_ctx, title="Logged")

        entries = log_store.read_events()
        assert entries[-1]["event_type"] == "event_created"
        assert entries[-1]["payload"]["event_id"] == event.id


class TestConsoleLogStore:

    def test_logs_activity(self, caplog):
        with caplog.at_level(logging.INFO, logger="runtime.store.log_store"):
            ConsoleLogStore().log_event("guest_joined", {"guest_id": "g1"})
        assert "[ACTIVITY] guest_joined" in caplog.text
