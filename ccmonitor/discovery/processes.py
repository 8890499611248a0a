"""Process discovery — enumerates live CLI session processes via psutil."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional

import psutil

from ccmonitor.errors import DiscoveryError
from ccmonitor.models import ProcessIdentity, utcnow

logger = logging.getLogger(__name__)

_ATTRS = ["pid", "name", "cmdline", "create_time", "terminal"]


def _process_cwd(proc: psutil.Process) -> Optional[str]:
    """Best-effort working directory; None when it cannot be read."""
    try:
        return proc.cwd() or None
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess, OSError):
        return None


def _command_line(info: dict[str, Any]) -> str:
    cmdline = info.get("cmdline") or []
    if cmdline:
        return " ".join(cmdline)
    return info.get("name") or ""


class ProcessScanner:
    """
    Lists candidate session processes.

    Missing attributes never exclude a process; a failed OS query yields an
    empty list rather than an exception.
    """

    def __init__(self, process_name: str = "claude", require_terminal: bool = True):
        self.process_name = process_name
        self.require_terminal = require_terminal
        self._own_pid = os.getpid()

    def is_candidate(self, info: dict[str, Any]) -> bool:
        """Check whether a psutil info dict looks like a monitored session."""
        if info.get("pid") == self._own_pid:
            return False
        if self.require_terminal and not info.get("terminal"):
            return False

        name = (info.get("name") or "").lower()
        if name == self.process_name:
            return True

        cmdline = info.get("cmdline") or []
        if cmdline:
            return os.path.basename(cmdline[0]).lower() == self.process_name
        return False

    def list_processes(self) -> list[ProcessIdentity]:
        """Return every live candidate process with best-effort attributes."""
        try:
            return self._scan()
        except DiscoveryError as exc:
            logger.warning("Process scan failed: %s", exc)
            return []

    def _scan(self) -> list[ProcessIdentity]:
        try:
            procs = list(psutil.process_iter(_ATTRS))
        except (psutil.Error, OSError) as exc:
            raise DiscoveryError(f"process enumeration failed: {exc}") from exc

        now = utcnow()
        found: list[ProcessIdentity] = []
        for proc in procs:
            info = proc.info
            if not self.is_candidate(info):
                continue

            created = info.get("create_time")
            start_time = (
                datetime.fromtimestamp(created, tz=timezone.utc) if created else now
            )
            found.append(
                ProcessIdentity(
                    pid=info["pid"],
                    start_time=start_time,
                    terminal_device=info.get("terminal"),
                    working_directory=_process_cwd(proc),
                    command=_command_line(info),
                    discovered_at=now,
                )
            )

        logger.debug("Discovered %d session process(es)", len(found))
        return found
