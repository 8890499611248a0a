"""Tests for the ccmonitor command line."""

import json

from typer.testing import CliRunner

from ccmonitor import __version__
from ccmonitor.cli import app
from ccmonitor.server.client import MonitorClient

runner = CliRunner()

# Nothing listens on port 1; every request is refused immediately.
DEAD_URL = "http://127.0.0.1:1"


class TestCli:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_hook_never_fails(self):
        payload = json.dumps({"session_id": "S1", "transcript_path": "/t1.jsonl"})
        result = runner.invoke(app, ["hook", "stop", "--port", "1"], input=payload)
        assert result.exit_code == 0

    def test_hook_ignores_garbage(self):
        result = runner.invoke(app, ["hook", "stop", "--port", "1"], input="not json")
        assert result.exit_code == 0

    def test_sessions_without_listener(self):
        result = runner.invoke(app, ["sessions", "--port", "1"])
        assert result.exit_code == 1
        assert "Cannot connect" in result.output

    def test_sessions_shows_tool_status(self, monkeypatch):
        monkeypatch.setattr(
            MonitorClient,
            "list_sessions",
            lambda self: [{"pid": 41, "state": "working", "current_tool": "Bash"}],
        )
        result = runner.invoke(app, ["sessions", "--port", "1"], env={"COLUMNS": "200"})
        assert result.exit_code == 0
        assert "Running command" in result.output
        assert "41" in result.output

    def test_usage(self, write_transcript):
        path = write_transcript([
            {"type": "summary", "summary": "Tidy the release notes"},
            {
                "type": "assistant",
                "sessionId": "S1",
                "cwd": "/work/app",
                "message": {
                    "model": "claude-opus-4-20250514",
                    "usage": {"input_tokens": 1200, "output_tokens": 300},
                },
            },
        ])
        result = runner.invoke(app, ["usage", path])
        assert result.exit_code == 0
        assert "Tidy the release notes" in result.output
        assert "1,200" in result.output
        assert "claude-opus-4-20250514" in result.output


class TestMonitorClient:
    def test_unreachable_listener(self):
        client = MonitorClient(DEAD_URL)
        assert client.is_server_running() is False
        assert client.list_sessions() is None
        assert client.post_hook("stop", {"session_id": "S1"}) is False
        assert client.refresh(1) is False
        assert client.acknowledge(1) is False
