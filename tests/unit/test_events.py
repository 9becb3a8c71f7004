"""
Tests for training stream line parsing
"""

import pytest

from tuneforge.relay.events import StreamEvent, parse_event_line


class TestStructuredRecords:
    """Tests for JSON records carrying log and status"""

    def test_log_only(self):
        assert parse_event_line('{"log": "epoch 1/3"}') == StreamEvent(log="epoch 1/3")

    def test_status_only(self):
        assert parse_event_line('{"status": "running"}') == StreamEvent(status="running")

    def test_log_and_status(self):
        event = parse_event_line('{"log": "done", "status": "completed"}')

        assert event == StreamEvent(log="done", status="completed")

    def test_sse_data_prefix(self):
        assert parse_event_line('data: {"status": "pending"}') == StreamEvent(status="pending")

    def test_unknown_status_is_dropped_but_log_kept(self):
        event = parse_event_line('{"log": "warming up", "status": "provisioning"}')

        assert event == StreamEvent(log="warming up")

    def test_record_without_log_or_status(self):
        assert parse_event_line('{"progress": 0.5}') is None


class TestLegacyRecords:
    """Tests for the older type-tagged record shapes"""

    def test_log(self):
        assert parse_event_line('{"type": "log", "content": "step 10"}') == StreamEvent(log="step 10")

    def test_pending_status_adds_log(self):
        event = parse_event_line('data: {"type": "status", "status": "pending"}')

        assert event == StreamEvent(log="Job is pending...", status="pending")

    def test_error(self):
        event = parse_event_line('{"type": "error", "message": "OOM"}')

        assert event == StreamEvent(log="Error: OOM", status="failed")

    def test_connected_is_ignored(self):
        assert parse_event_line('{"type": "connected"}') is None


class TestRawLines:
    """Tests for plain text and SSE framing lines"""

    def test_plain_text_is_trimmed_log(self):
        assert parse_event_line("  loss=0.42  \n") == StreamEvent(log="loss=0.42")

    def test_non_object_json_is_raw_log(self):
        assert parse_event_line("42") == StreamEvent(log="42")

    def test_malformed_json_is_raw_log(self):
        assert parse_event_line('data: {"log": ') == StreamEvent(log='{"log":')

    @pytest.mark.parametrize("line", [
        "",
        "   ",
        ": keep-alive",
        "event: message",
        "id: 17",
        "retry: 3000",
        "data:",
    ])
    def test_lines_without_content(self, line):
        assert parse_event_line(line) is None
