"""Tests for psutil-based process discovery."""

import os
from datetime import datetime, timezone

import psutil
import pytest

from ccmonitor.discovery import processes
from ccmonitor.discovery.processes import ProcessScanner


class FakeProc:
    def __init__(self, pid, name="claude", cmdline=None, create_time=1_700_000_000.0, terminal="/dev/ttys001", cwd="/work/app"):
        self.info = {
            "pid": pid,
            "name": name,
            "cmdline": cmdline if cmdline is not None else [name],
            "create_time": create_time,
            "terminal": terminal,
        }
        self._cwd = cwd

    def cwd(self):
        if isinstance(self._cwd, Exception):
            raise self._cwd
        return self._cwd


@pytest.fixture
def fake_procs(monkeypatch):
    procs = []
    monkeypatch.setattr(processes.psutil, "process_iter", lambda attrs=None: iter(procs))
    return procs


class TestIsCandidate:
    def test_matches_name(self):
        scanner = ProcessScanner()
        assert scanner.is_candidate({"pid": 1, "name": "claude", "terminal": "/dev/ttys001"})
        assert scanner.is_candidate({"pid": 1, "name": "Claude", "terminal": "/dev/ttys001"})

    def test_matches_argv0(self):
        scanner = ProcessScanner()
        info = {"pid": 1, "name": "node", "cmdline": ["/usr/local/bin/claude", "--resume"], "terminal": "/dev/ttys001"}
        assert scanner.is_candidate(info)

    def test_rejects_other_commands(self):
        scanner = ProcessScanner()
        info = {"pid": 1, "name": "node", "cmdline": ["node", "claude-helper.js"], "terminal": "/dev/ttys001"}
        assert not scanner.is_candidate(info)

    def test_requires_terminal(self):
        assert not ProcessScanner().is_candidate({"pid": 1, "name": "claude", "terminal": None})
        assert ProcessScanner(require_terminal=False).is_candidate({"pid": 1, "name": "claude", "terminal": None})

    def test_excludes_own_process(self):
        assert not ProcessScanner().is_candidate({"pid": os.getpid(), "name": "claude", "terminal": "/dev/ttys001"})

    def test_custom_process_name(self):
        scanner = ProcessScanner(process_name="aider")
        assert scanner.is_candidate({"pid": 1, "name": "aider", "terminal": "/dev/ttys001"})
        assert not scanner.is_candidate({"pid": 1, "name": "claude", "terminal": "/dev/ttys001"})


class TestListProcesses:
    def test_builds_identities(self, fake_procs):
        fake_procs.extend([
            FakeProc(10, cmdline=["claude", "--continue"]),
            FakeProc(11, name="zsh"),
        ])
        found = ProcessScanner().list_processes()

        assert [p.pid for p in found] == [10]
        identity = found[0]
        assert identity.start_time == datetime.fromtimestamp(1_700_000_000.0, tz=timezone.utc)
        assert identity.terminal_device == "/dev/ttys001"
        assert identity.working_directory == "/work/app"
        assert identity.command == "claude --continue"

    def test_missing_attributes_do_not_exclude(self, fake_procs):
        fake_procs.append(FakeProc(12, create_time=None, cwd=psutil.AccessDenied(12)))
        found = ProcessScanner().list_processes()

        assert [p.pid for p in found] == [12]
        assert found[0].working_directory is None
        assert found[0].start_time == found[0].discovered_at

    def test_vanished_process_cwd(self, fake_procs):
        fake_procs.append(FakeProc(13, cwd=psutil.NoSuchProcess(13)))
        assert ProcessScanner().list_processes()[0].working_directory is None

    def test_enumeration_failure_returns_empty(self, monkeypatch):
        def broken(attrs=None):
            raise psutil.AccessDenied()

        monkeypatch.setattr(processes.psutil, "process_iter", broken)
        assert ProcessScanner().list_processes() == []
