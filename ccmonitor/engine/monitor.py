"""
Session monitor — the single serialization point for all session state.

Hook events, periodic rescans, usage refreshes and UI actions are queued
and applied one at a time by a single worker task. Blocking work runs in a
thread, but never two mutations at once.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from functools import partial
from typing import Any, Optional, TypeVar

from ccmonitor.config import MonitorConfig
from ccmonitor.correlation.correlator import IdentityCorrelator
from ccmonitor.discovery.processes import ProcessScanner
from ccmonitor.engine.state_machine import SessionStateMachine, Snapshot
from ccmonitor.models import HookEvent, ProcessIdentity, SessionRecord, TokenUsage
from ccmonitor.transcript.pricing import PriceTable
from ccmonitor.transcript.reader import TranscriptStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[Snapshot], None]


class SessionMonitor:
    """Owns the state machine and funnels every mutation through one queue."""

    def __init__(
        self,
        scanner: ProcessScanner,
        machine: SessionStateMachine,
        scan_interval: float = 30.0,
    ):
        self.scanner = scanner
        self.machine = machine
        self.transcripts = machine.transcripts
        self.scan_interval = scan_interval

        self._queue: Optional[asyncio.Queue] = None
        self._worker_task: Optional[asyncio.Task] = None
        self._scan_task: Optional[asyncio.Task] = None
        self._refresh_tasks: dict[int, asyncio.Task] = {}
        self._listeners: list[Listener] = []
        self._published: Snapshot = ()
        self._last_scan_at = float("-inf")

    @classmethod
    def from_config(
        cls,
        config: MonitorConfig,
        on_finished: Optional[Callable[[SessionRecord], None]] = None,
        scanner: Optional[ProcessScanner] = None,
    ) -> "SessionMonitor":
        transcripts = TranscriptStore(
            prices=PriceTable(config.pricing),
            max_task_length=config.transcripts.max_task_length,
        )
        correlator = IdentityCorrelator(transcripts, config.correlation)
        machine = SessionStateMachine(
            correlator,
            transcripts,
            on_finished=on_finished,
            projects_dir=config.transcripts.projects_dir if config.transcripts.match_on_scan else None,
        )
        scanner = scanner or ProcessScanner(
            process_name=config.discovery.process_name,
            require_terminal=config.discovery.require_terminal,
        )
        return cls(scanner, machine, scan_interval=config.discovery.scan_interval_seconds)

    # ── Published view ──────────────────────────────────────

    @property
    def sessions(self) -> Snapshot:
        """Latest published snapshot. Treat as immutable."""
        return self._published

    def add_listener(self, listener: Listener) -> None:
        """Register a callback invoked with every new snapshot."""
        self._listeners.append(listener)

    def _publish(self) -> None:
        self._published = self.machine.snapshot()
        for listener in list(self._listeners):
            try:
                listener(self._published)
            except Exception:
                logger.exception("Session listener failed")

    # ── Lifecycle ───────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    async def start(self, periodic_scan: bool = True) -> None:
        """Start the worker and, optionally, the periodic rescan loop."""
        if self.running:
            return
        self._queue = asyncio.Queue()
        self._worker_task = asyncio.create_task(self._worker(), name="ccmonitor-worker")
        if periodic_scan:
            self._scan_task = asyncio.create_task(self._scan_loop(), name="ccmonitor-scan")

    async def stop(self) -> None:
        tasks = [t for t in (self._scan_task, *self._refresh_tasks.values(), self._worker_task) if t]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._refresh_tasks.clear()
        self._scan_task = None
        self._worker_task = None
        self._queue = None

    async def _worker(self) -> None:
        assert self._queue is not None
        while True:
            op, future = await self._queue.get()
            try:
                if future.cancelled():
                    continue
                try:
                    result = await asyncio.to_thread(op)
                except Exception as exc:
                    logger.exception("Session update failed")
                    if not future.done():
                        future.set_exception(exc)
                else:
                    if not future.done():
                        future.set_result(result)
                self._publish()
            finally:
                self._queue.task_done()

    async def submit(self, op: Callable[[], T]) -> T:
        """Queue a state mutation and wait until the worker has applied it."""
        if self._queue is None:
            raise RuntimeError("monitor is not running")
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        await self._queue.put((op, future))
        return await future

    # ── Scans ───────────────────────────────────────────────

    async def _scan_loop(self) -> None:
        while True:
            try:
                await self.rescan()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Periodic rescan failed")
            await asyncio.sleep(self.scan_interval)

    async def rescan(self) -> None:
        """Scan processes off the worker, then merge the result at the serialization point."""
        taken_at = time.monotonic()
        processes = await asyncio.to_thread(self.scanner.list_processes)
        await self.submit(partial(self._apply_scan, taken_at, processes))

    def _apply_scan(self, taken_at: float, processes: list[ProcessIdentity]) -> bool:
        if taken_at < self._last_scan_at:
            logger.debug("Ignoring scan superseded by a newer one")
            return False
        self._last_scan_at = taken_at
        self.machine.apply_scan(processes)
        return True

    # ── Events ──────────────────────────────────────────────

    async def dispatch(self, event: HookEvent) -> Optional[SessionRecord]:
        """Apply a hook event in arrival order; returns the updated record copy."""
        return await self.submit(partial(self._apply_event, event))

    def _apply_event(self, event: HookEvent) -> Optional[SessionRecord]:
        if self.machine.correlator.mapping_for(event.logical_session_id) is None:
            # Unknown session: look for processes started since the last scan.
            self._apply_scan(time.monotonic(), self.scanner.list_processes())
        record = self.machine.handle_event(event)
        return record.model_copy() if record is not None else None

    # ── Collaborator actions ────────────────────────────────

    async def acknowledge(self, pid: int) -> bool:
        return await self.submit(partial(self.machine.acknowledge, pid))

    async def reorder(self, pid: int, new_index: int) -> bool:
        return await self.submit(partial(self.machine.reorder, pid, new_index))

    def refresh(self, pid: int) -> asyncio.Task:
        """
        Re-read token usage for one session in the background.

        A newer refresh for the same pid cancels the pending one.
        """
        previous = self._refresh_tasks.pop(pid, None)
        if previous is not None:
            previous.cancel()

        task = asyncio.create_task(self._run_refresh(pid), name=f"ccmonitor-refresh-{pid}")
        self._refresh_tasks[pid] = task

        def _forget(done: asyncio.Task) -> None:
            if self._refresh_tasks.get(pid) is done:
                del self._refresh_tasks[pid]

        task.add_done_callback(_forget)
        return task

    async def _run_refresh(self, pid: int) -> Optional[TokenUsage]:
        path = await self.submit(partial(self._begin_refresh, pid))
        if path is None:
            return None
        self.transcripts.clear_cache(path)
        usage = await asyncio.to_thread(self.transcripts.usage, path)
        applied = await self.submit(partial(self._finish_refresh, pid, path, usage))
        return usage if applied else None

    def _begin_refresh(self, pid: int) -> Optional[str]:
        record = self.machine.records.get(pid)
        if record is None or not record.transcript_path:
            logger.info("No transcript known for pid %d; nothing to refresh", pid)
            return None
        self.machine.mark_refreshing(pid)
        return record.transcript_path

    def _finish_refresh(self, pid: int, path: str, usage: TokenUsage) -> bool:
        record = self.machine.records.get(pid)
        if record is None:
            return False
        if record.transcript_path != path:
            # The session moved to another transcript while we were reading.
            self.machine.mark_refreshing(pid, False)
            return False
        self.machine.apply_usage(pid, usage)
        description = self.transcripts.task_description(path)
        if description:
            record.task_description = description
        return True
