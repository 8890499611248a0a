"""Identity correlator — binds logical hook session ids to discovered pids."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from typing import Optional

from ccmonitor.config import CorrelationConfig
from ccmonitor.correlation.scorers import EventSignals, Scorer, build_scorers, clamp
from ccmonitor.errors import CorrelationMiss
from ccmonitor.models import HookEvent, MappingMethod, ProcessIdentity, SessionMapping, utcnow
from ccmonitor.paths import normalize_directory
from ccmonitor.transcript.reader import TranscriptStore, project_label

logger = logging.getLogger(__name__)


class CorrelationState:
    """
    All correlation tables in one place.

    Only the monitor's worker mutates this object; everything else reads
    snapshots derived from it.
    """

    def __init__(self) -> None:
        self.mappings: dict[str, SessionMapping] = {}
        self.owners: dict[int, str] = {}
        self.first_seen: dict[str, datetime] = {}
        self.directory_index: dict[str, str] = {}
        self.processes: dict[int, ProcessIdentity] = {}

    def bind(self, mapping: SessionMapping) -> None:
        if mapping.logical_session_id in self.mappings:
            raise ValueError(f"{mapping.logical_session_id} is already mapped")
        if mapping.pid in self.owners:
            raise ValueError(f"pid {mapping.pid} is already mapped")
        self.mappings[mapping.logical_session_id] = mapping
        self.owners[mapping.pid] = mapping.logical_session_id

    def release(self, logical_session_id: str) -> Optional[SessionMapping]:
        """Forget a mapping together with its first-seen time and index entries."""
        mapping = self.mappings.pop(logical_session_id, None)
        if mapping is not None:
            self.owners.pop(mapping.pid, None)
        self.first_seen.pop(logical_session_id, None)
        for directory in [d for d, sid in self.directory_index.items() if sid == logical_session_id]:
            del self.directory_index[directory]
        return mapping

    def live_mapping(self, logical_session_id: str) -> Optional[SessionMapping]:
        mapping = self.mappings.get(logical_session_id)
        if mapping is not None and mapping.pid in self.processes:
            return mapping
        return None


class IdentityCorrelator:
    """
    Resolves hook events to pids.

    A live mapping is never replaced. New logical ids are scored against
    unmapped processes; the best single score wins, and when nothing scores
    the first unmapped process is taken at a low fallback confidence.
    """

    def __init__(
        self,
        transcripts: TranscriptStore,
        config: Optional[CorrelationConfig] = None,
        scorers: Optional[Sequence[tuple[MappingMethod, Scorer]]] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.transcripts = transcripts
        self.config = config or CorrelationConfig()
        self.scorers = list(scorers) if scorers is not None else build_scorers(self.config)
        self.clock = clock
        self.state = CorrelationState()

    # ── Scans ───────────────────────────────────────────────

    def observe_processes(
        self, processes: Iterable[ProcessIdentity]
    ) -> tuple[list[SessionMapping], list[SessionMapping]]:
        """
        Replace the live process set.

        Returns (released, adopted): mappings whose pid vanished, and
        mappings created because an unmapped process sits in a directory
        already indexed for an unmapped logical id.
        """
        self.state.processes = {p.pid: p for p in processes}

        released: list[SessionMapping] = []
        for sid, mapping in list(self.state.mappings.items()):
            if mapping.pid not in self.state.processes:
                self.state.release(sid)
                released.append(mapping)
                logger.info("Released session %s (pid %d exited)", sid, mapping.pid)

        adopted: list[SessionMapping] = []
        for process in self.state.processes.values():
            if process.pid in self.state.owners:
                continue
            directory = normalize_directory(process.working_directory)
            if directory is None:
                continue
            sid = self.state.directory_index.get(directory)
            if sid is None or sid in self.state.mappings:
                continue
            mapping = SessionMapping(
                logical_session_id=sid,
                pid=process.pid,
                confidence=clamp(self.config.working_directory_confidence),
                method=MappingMethod.DIRECTORY_INDEX,
                established_at=self.clock(),
            )
            self.state.bind(mapping)
            adopted.append(mapping)
            logger.info("Adopted pid %d for session %s via %s", process.pid, sid, directory)

        return released, adopted

    # ── Events ──────────────────────────────────────────────

    def note_event(self, event: HookEvent) -> EventSignals:
        """Record first-seen time and directory index for an event; return its signals."""
        sid = event.logical_session_id
        first_seen = self.state.first_seen.setdefault(sid, event.received_at)

        directory = self.transcripts.working_directory(event.transcript_path)
        if directory is not None:
            self.state.directory_index[directory] = sid

        return EventSignals(
            logical_session_id=sid,
            first_seen=first_seen,
            working_directory=directory,
            label=project_label(event.transcript_path),
        )

    def mapping_for(self, logical_session_id: str) -> Optional[SessionMapping]:
        return self.state.live_mapping(logical_session_id)

    def owner_of(self, pid: int) -> Optional[str]:
        return self.state.owners.get(pid)

    def candidates(self) -> list[ProcessIdentity]:
        """Live processes not bound to any logical id."""
        return [p for p in self.state.processes.values() if p.pid not in self.state.owners]

    def resolve(self, event: HookEvent) -> SessionMapping:
        """Return the mapping for the event's logical id, creating it if needed."""
        sid = event.logical_session_id
        existing = self.state.live_mapping(sid)
        if existing is not None:
            return existing

        signals = self.note_event(event)
        candidates = self.candidates()
        if not candidates:
            raise CorrelationMiss(sid, "no unmapped process is live")

        best_score = 0.0
        best_method: Optional[MappingMethod] = None
        best_process: Optional[ProcessIdentity] = None
        for process in candidates:
            for method, scorer in self.scorers:
                score = clamp(scorer(process, signals))
                if score > best_score:
                    best_score, best_method, best_process = score, method, process

        if best_process is not None and best_method is not None:
            mapping = SessionMapping(
                logical_session_id=sid,
                pid=best_process.pid,
                confidence=best_score,
                method=best_method,
                established_at=self.clock(),
            )
            logger.info(
                "Mapped session %s to pid %d via %s (confidence %.2f)",
                sid, mapping.pid, mapping.method.value, mapping.confidence,
            )
        else:
            mapping = SessionMapping(
                logical_session_id=sid,
                pid=candidates[0].pid,
                confidence=clamp(self.config.fallback_confidence),
                method=MappingMethod.FALLBACK,
                established_at=self.clock(),
            )
            logger.warning(
                "Mapped session %s to pid %d by fallback (confidence %.2f); "
                "%d unmapped candidate(s) had no matching signal",
                sid, mapping.pid, mapping.confidence, len(candidates),
            )

        self.state.bind(mapping)
        return mapping
