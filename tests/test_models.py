"""Tests for data models and hook payload parsing."""

import json

import pytest
from pydantic import ValidationError

from ccmonitor.errors import ProtocolError
from ccmonitor.models import (
    HookEventKind,
    MappingMethod,
    ProcessIdentity,
    SessionMapping,
    SessionRecord,
    SessionState,
    ToolDetails,
    parse_hook_event,
)

from conftest import NOW


class TestHookEventKind:
    def test_path_segments(self):
        assert HookEventKind.PRE_TOOL_USE.path_segment == "pretooluse"
        assert HookEventKind.POST_TOOL_USE.path_segment == "posttooluse"
        assert HookEventKind.STOP.path_segment == "stop"
        assert HookEventKind.NOTIFICATION.path_segment == "notification"

    def test_from_path(self):
        assert HookEventKind.from_path("stop") is HookEventKind.STOP

    def test_unknown_path(self):
        with pytest.raises(ValueError):
            HookEventKind.from_path("PreToolUse")


class TestParseHookEvent:
    def test_minimal_payload(self):
        event = parse_hook_event(
            "stop", json.dumps({"session_id": "S1", "transcript_path": "/t1.jsonl"})
        )
        assert event.kind is HookEventKind.STOP
        assert event.logical_session_id == "S1"
        assert event.transcript_path == "/t1.jsonl"
        assert event.tool_name is None
        assert event.tool_details is None

    def test_tool_details(self):
        body = json.dumps({
            "session_id": "S1",
            "transcript_path": "/t1.jsonl",
            "tool_name": "Read",
            "tool_details": {"file_path": "/src/app.py", "limit": 20, "offset": 5},
        })
        event = parse_hook_event("pretooluse", body.encode())
        assert event.tool_name == "Read"
        assert event.tool_details.file_path == "/src/app.py"
        assert event.tool_details.limit == 20
        assert event.tool_details.offset == 5

    def test_tool_input_alias(self):
        body = json.dumps({
            "session_id": "S1",
            "transcript_path": "/t1.jsonl",
            "tool_name": "Bash",
            "tool_input": {"command": "ls"},
            "hook_event_name": "PreToolUse",
        })
        event = parse_hook_event("pretooluse", body)
        assert event.tool_details.command == "ls"

    def test_invalid_json(self):
        with pytest.raises(ProtocolError):
            parse_hook_event("stop", b"{not json")

    def test_non_object_body(self):
        with pytest.raises(ProtocolError):
            parse_hook_event("stop", b"[1, 2, 3]")

    def test_missing_session_id(self):
        with pytest.raises(ProtocolError):
            parse_hook_event("stop", json.dumps({"transcript_path": "/t1.jsonl"}))

    def test_empty_session_id(self):
        with pytest.raises(ProtocolError):
            parse_hook_event("stop", json.dumps({"session_id": "", "transcript_path": "/t"}))

    def test_non_string_session_id(self):
        with pytest.raises(ProtocolError):
            parse_hook_event("stop", json.dumps({"session_id": 7, "transcript_path": "/t"}))

    def test_bad_tool_details(self):
        body = json.dumps({
            "session_id": "S1",
            "transcript_path": "/t",
            "tool_details": {"limit": "many"},
        })
        with pytest.raises(ProtocolError):
            parse_hook_event("pretooluse", body)

    def test_unknown_kind(self):
        with pytest.raises(ProtocolError):
            parse_hook_event("sessionstart", json.dumps({"session_id": "S1", "transcript_path": "/t"}))


class TestToolDetails:
    def test_summary_prefers_command(self):
        details = ToolDetails(command="pytest", file_path="/a.py", pattern="foo")
        assert details.summary() == "pytest"

    def test_summary_falls_back(self):
        assert ToolDetails(file_path="/a.py").summary() == "/a.py"
        assert ToolDetails(pattern="TODO").summary() == "TODO"
        assert ToolDetails().summary() is None


class TestProcessIdentity:
    def test_equality_by_pid(self):
        a = ProcessIdentity(pid=10, start_time=NOW, working_directory="/a")
        b = ProcessIdentity(pid=10, start_time=NOW, working_directory="/b")
        assert a == b
        assert len({a, b}) == 1

    def test_optional_attributes(self):
        p = ProcessIdentity(pid=1, start_time=NOW)
        assert p.terminal_device is None
        assert p.working_directory is None


class TestSessionMapping:
    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            SessionMapping(logical_session_id="S", pid=1, confidence=1.5, method=MappingMethod.LABEL)
        with pytest.raises(ValidationError):
            SessionMapping(logical_session_id="S", pid=1, confidence=-0.1, method=MappingMethod.LABEL)


class TestSessionRecord:
    def test_defaults(self):
        record = SessionRecord(pid=42)
        assert record.state is SessionState.IDLE
        assert record.has_pending_output is False
        assert record.total_tokens == 0
        assert record.status_text() == "Idle"

    def test_status_text(self):
        assert SessionRecord(pid=1, state=SessionState.WORKING, current_tool="Bash").status_text() == "Running command"
        assert SessionRecord(pid=1, state=SessionState.WORKING, current_tool="Custom").status_text() == "Custom"
        assert SessionRecord(pid=1, state=SessionState.WORKING).status_text() == "Working"
        assert SessionRecord(pid=1, state=SessionState.WAITING).status_text() == "Waiting"
