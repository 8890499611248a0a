"""Session state machine — Idle/Working/Waiting per discovered process."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Optional

from ccmonitor.correlation.correlator import IdentityCorrelator
from ccmonitor.errors import CorrelationMiss
from ccmonitor.models import (
    HookEvent,
    HookEventKind,
    ProcessIdentity,
    SessionMapping,
    SessionRecord,
    SessionState,
    TokenUsage,
    utcnow,
)
from ccmonitor.transcript.reader import TranscriptStore

logger = logging.getLogger(__name__)

Snapshot = tuple[SessionRecord, ...]


class SessionStateMachine:
    """
    Owns the session-record table and display order.

    Not thread-safe: every method is called from the monitor's single worker.
    """

    def __init__(
        self,
        correlator: IdentityCorrelator,
        transcripts: TranscriptStore,
        on_finished: Optional[Callable[[SessionRecord], None]] = None,
        projects_dir: Optional[Path] = None,
    ):
        self.correlator = correlator
        self.transcripts = transcripts
        self.on_finished = on_finished
        self.projects_dir = projects_dir
        self.records: dict[int, SessionRecord] = {}
        self.order: list[int] = []

    # ── Scans ───────────────────────────────────────────────

    def apply_scan(self, processes: Iterable[ProcessIdentity]) -> None:
        """Merge a full scan: create new records, refresh fields, drop vanished pids."""
        processes = list(processes)
        released, adopted = self.correlator.observe_processes(processes)
        live = {p.pid for p in processes}

        for pid in [pid for pid in self.records if pid not in live]:
            del self.records[pid]
        self.order = [pid for pid in self.order if pid in live]

        for process in processes:
            try:
                self._merge_process(process)
            except Exception:
                logger.exception("Failed to update session for pid %d", process.pid)

        for mapping in adopted:
            self._bind_record(mapping, transcript_path=None)

        if released:
            logger.debug("Dropped %d session(s) whose process exited", len(released))

    def _merge_process(self, process: ProcessIdentity) -> None:
        record = self.records.get(process.pid)
        if record is None:
            record = SessionRecord(
                pid=process.pid,
                started_at=process.start_time,
                last_activity=process.discovered_at,
            )
            self.records[process.pid] = record
            self.order.append(process.pid)
            logger.info("Discovered session process %d", process.pid)

        record.terminal_device = process.terminal_device
        record.command = process.command
        if process.working_directory:
            record.working_directory = process.working_directory

        if record.transcript_path is None and self.projects_dir is not None and record.working_directory:
            path = self.transcripts.find_for_directory(record.working_directory, self.projects_dir)
            if path is not None:
                record.transcript_path = path
                logger.debug("Matched pid %d to transcript %s", process.pid, path)

        if record.task_description is None and record.transcript_path:
            record.task_description = self.transcripts.task_description(record.transcript_path)

    def _bind_record(self, mapping: SessionMapping, transcript_path: Optional[str]) -> Optional[SessionRecord]:
        record = self.records.get(mapping.pid)
        if record is None:
            return None
        record.logical_session_id = mapping.logical_session_id
        record.mapping_confidence = mapping.confidence
        record.mapping_method = mapping.method
        if transcript_path:
            record.transcript_path = transcript_path
        return record

    # ── Events ──────────────────────────────────────────────

    def handle_event(self, event: HookEvent) -> Optional[SessionRecord]:
        """Apply one hook event. Returns the updated record, or None when dropped."""
        try:
            mapping = self.correlator.resolve(event)
        except CorrelationMiss as miss:
            logger.info("Dropped %s event: %s", event.kind.value, miss)
            return None

        record = self._bind_record(mapping, event.transcript_path)
        if record is None:
            logger.info(
                "Dropped %s event: pid %d has no session record", event.kind.value, mapping.pid
            )
            return None

        record.last_activity = event.received_at

        if event.kind is HookEventKind.PRE_TOOL_USE:
            record.state = SessionState.WORKING
            record.has_pending_output = False
            record.current_tool = event.tool_name
            record.current_tool_detail = event.tool_details.summary() if event.tool_details else None
            self._refresh_task(record)
        elif event.kind is HookEventKind.POST_TOOL_USE:
            pass
        else:
            record.state = SessionState.WAITING
            record.has_pending_output = True
            record.current_tool = None
            record.current_tool_detail = None
            self._refresh_task(record)
            self._fire_finished(record)

        return record

    def _refresh_task(self, record: SessionRecord) -> None:
        if not record.transcript_path:
            return
        description = self.transcripts.task_description(record.transcript_path)
        if description:
            record.task_description = description

    def _fire_finished(self, record: SessionRecord) -> None:
        if self.on_finished is None:
            return
        try:
            self.on_finished(record.model_copy())
        except Exception:
            logger.exception("Finished callback failed for pid %d", record.pid)

    # ── Collaborator actions ────────────────────────────────

    def acknowledge(self, pid: int) -> bool:
        """Clear the pending-output flag; Working/Waiting is left as is."""
        record = self.records.get(pid)
        if record is None:
            return False
        record.has_pending_output = False
        return True

    def reorder(self, pid: int, new_index: int) -> bool:
        """Move a session in display order. Correlation state is untouched."""
        if pid not in self.order:
            return False
        self.order.remove(pid)
        new_index = max(0, min(new_index, len(self.order)))
        self.order.insert(new_index, pid)
        return True

    def mark_refreshing(self, pid: int, refreshing: bool = True) -> bool:
        record = self.records.get(pid)
        if record is None:
            return False
        record.refreshing = refreshing
        return True

    def apply_usage(self, pid: int, usage: TokenUsage) -> bool:
        """Store usage totals and cost computed from the session's transcript."""
        record = self.records.get(pid)
        if record is None:
            return False
        record.input_tokens = usage.input_tokens
        record.output_tokens = usage.output_tokens
        record.detected_model = usage.detected_model
        record.cost = self.transcripts.cost(
            usage.input_tokens, usage.output_tokens, usage.detected_model
        )
        record.tokens_refreshed_at = utcnow()
        record.refreshing = False
        return True

    def snapshot(self) -> Snapshot:
        """Copies of every record in display order."""
        return tuple(self.records[pid].model_copy() for pid in self.order if pid in self.records)

