"""Shared fixtures for ccmonitor tests."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from ccmonitor.correlation.correlator import IdentityCorrelator
from ccmonitor.engine.state_machine import SessionStateMachine
from ccmonitor.models import ProcessIdentity
from ccmonitor.transcript.reader import TranscriptStore

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeScanner:
    """Stands in for ProcessScanner; tests edit ``processes`` directly."""

    def __init__(self, processes=None):
        self.processes = list(processes or [])
        self.calls = 0

    def list_processes(self):
        self.calls += 1
        return list(self.processes)


def make_process(pid, cwd=None, started=NOW, tty="ttys001"):
    return ProcessIdentity(
        pid=pid,
        start_time=started,
        terminal_device=tty,
        working_directory=str(cwd) if cwd is not None else None,
        command="claude",
    )


@pytest.fixture
def process():
    return make_process


@pytest.fixture
def long_ago():
    return NOW - timedelta(hours=1)


@pytest.fixture
def write_transcript(tmp_path):
    """Write JSONL records (plus optional raw lines) and return the path."""

    def _write(records, name="t1.jsonl", raw_lines=()):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(r) for r in records] + list(raw_lines)
        path.write_text("\n".join(lines) + "\n")
        return str(path)

    return _write


@pytest.fixture
def workdirs(tmp_path):
    """Two real project directories, alpha and bravo."""
    alpha = tmp_path / "alpha"
    bravo = tmp_path / "bravo"
    alpha.mkdir()
    bravo.mkdir()
    return alpha, bravo


@pytest.fixture
def transcripts():
    return TranscriptStore()


@pytest.fixture
def correlator(transcripts):
    return IdentityCorrelator(transcripts, clock=lambda: NOW)


@pytest.fixture
def machine(correlator, transcripts):
    finished = []
    sm = SessionStateMachine(correlator, transcripts, on_finished=finished.append)
    sm.finished = finished
    return sm


@pytest.fixture
def fake_scanner():
    return FakeScanner()
