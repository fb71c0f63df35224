"""Tests for the panel-bridge CLI and its mock host."""

from __future__ import annotations

import json
import sys
from typing import Any

from click.testing import CliRunner

from panel_bridge.cli import MockHost, main


class RecordingChannel:
    def __init__(self) -> None:
        self.written: list[dict[str, Any]] = []
        self.handler = None

    def raw_send(self, record: dict[str, Any]) -> None:
        self.written.append(record)

    def on_raw_receive(self, handler) -> None:
        self.handler = handler


class TestMockHost:
    def test_registers_handler(self):
        channel = RecordingChannel()
        host = MockHost(channel)

        assert channel.handler == host.handle

    def test_reflects_then_answers(self):
        channel = RecordingChannel()
        host = MockHost(channel)
        request = {"type": "loadPRDetails", "correlationId": "req_1", "payload": {"prId": 2}}

        host.handle(request)

        assert channel.written == [
            request,
            {
                "type": "loadPRDetails",
                "correlationId": "req_1",
                "payload": {"ok": True, "echo": {"prId": 2}},
            },
        ]
        assert host.handled == 1

    def test_no_reflect(self):
        channel = RecordingChannel()
        host = MockHost(channel, reflect=False)

        host.handle({"type": "loadConfig", "requestId": "req_2"})

        assert channel.written == [
            {"type": "loadConfig", "correlationId": "req_2", "payload": {"ok": True, "echo": None}}
        ]

    def test_failing_type_answers_with_error(self):
        channel = RecordingChannel()
        host = MockHost(channel, reflect=False, fail_types={"saveConfig"})

        host.handle({"type": "saveConfig", "correlationId": "req_3", "payload": {"config": {}}})

        (response,) = channel.written
        assert response["error"] == {"message": "saveConfig failed", "code": "mock_failure"}
        assert "payload" not in response

    def test_notifications_are_not_answered(self):
        channel = RecordingChannel()
        host = MockHost(channel)

        host.handle({"type": "showInfo", "payload": {"message": "hi"}})

        assert channel.written == []
        assert host.handled == 1

    def test_ignores_malformed_records(self):
        channel = RecordingChannel()
        host = MockHost(channel)

        host.handle(["not", "a", "dict"])
        host.handle({"payload": {}})

        assert channel.written == []
        assert host.handled == 0


class TestTypesCommand:
    def test_table_output(self):
        result = CliRunner().invoke(main, ["types"])

        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert any(line.startswith("startAIAnalysis") and line.endswith("60s") for line in lines)
        assert any(line.startswith("showError") and line.endswith("10s") for line in lines)

    def test_json_output(self):
        result = CliRunner().invoke(main, ["types", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["loadConfig"] == 5
        assert data["testConnection"] == 30
        assert data["showInfo"] == 10


class TestCallCommand:
    def test_unknown_message_type(self):
        result = CliRunner().invoke(main, ["call", "launchRockets", "--", "true"])

        assert result.exit_code == 2
        assert "Unknown message type" in result.output

    def test_invalid_payload_json(self):
        result = CliRunner().invoke(main, ["call", "loadConfig", "--payload", "{oops", "--", "true"])

        assert result.exit_code == 2
        assert "not valid JSON" in result.output

    def test_call_against_mock_host(self):
        result = CliRunner().invoke(
            main,
            [
                "call",
                "selectPullRequest",
                "--payload",
                '{"prId": 9}',
                "--timeout",
                "10",
                "--",
                sys.executable,
                "-m",
                "panel_bridge",
                "mock-host",
            ],
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"ok": True, "echo": {"prId": 9}}

    def test_remote_error_exits_nonzero(self):
        result = CliRunner().invoke(
            main,
            [
                "call",
                "saveConfig",
                "--payload",
                '{"config": {}}',
                "--retries",
                "0",
                "--",
                sys.executable,
                "-m",
                "panel_bridge",
                "mock-host",
                "--fail",
                "saveConfig",
            ],
        )

        assert result.exit_code == 1
        assert "saveConfig failed" in result.output
