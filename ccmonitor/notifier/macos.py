"""macOS banners announcing that a Claude session is waiting for input."""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
import threading
from collections.abc import Callable

from ccmonitor.config import NotificationConfig
from ccmonitor.models import SessionRecord, SessionState
from ccmonitor.paths import shorten_path

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 5


def applescript_escape(text: str) -> str:
    """Make text safe inside a double-quoted AppleScript literal."""
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", " ⏎ ")


def osascript_command(title: str, message: str, subtitle: str | None, sound: str) -> list[str]:
    script = f'display notification "{message}" with title "{title}"'
    if subtitle:
        script += f' subtitle "{subtitle}"'
    script += f' sound name "{sound}"'
    return ["osascript", "-e", script]


def terminal_notifier_command(
    title: str,
    message: str,
    subtitle: str | None,
    sound: str,
    group: str | None,
) -> list[str]:
    # One banner per session: a newer one replaces the older in Notification Center.
    cmd = ["terminal-notifier", "-title", title, "-message", message, "-sound", sound]
    if subtitle:
        cmd += ["-subtitle", subtitle]
    if group:
        cmd += ["-group", f"ccmonitor-{group}"]
    return cmd


def _run(cmd: list[str]) -> bool:
    try:
        subprocess.run(cmd, capture_output=True, timeout=_TIMEOUT_SECONDS)
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as exc:
        logger.debug("%s failed: %s", cmd[0], exc)
        return False
    return True


def notify_macos(
    title: str,
    message: str,
    subtitle: str | None = None,
    sound: str = "Glass",
    group: str | None = None,
) -> bool:
    """
    Show a banner, preferring terminal-notifier and falling back to osascript.

    Returns False when neither could be run; banners are best-effort.
    """
    title = applescript_escape(title)
    message = applescript_escape(message)
    subtitle = applescript_escape(subtitle) if subtitle else None

    if shutil.which("terminal-notifier") is not None:
        if _run(terminal_notifier_command(title, message, subtitle, sound, group)):
            return True
    return _run(osascript_command(title, message, subtitle, sound))


def finished_message(record: SessionRecord) -> tuple[str, str, str | None]:
    """(title, message, subtitle) announcing that a session is waiting."""
    title = "Claude is waiting" if record.state is SessionState.WAITING else "Claude session update"
    message = record.task_description or "Session finished"
    subtitle = shorten_path(record.working_directory) if record.working_directory else None
    return title, message, subtitle


def make_finished_notifier(config: NotificationConfig) -> Callable[[SessionRecord], None] | None:
    """Build the ``on_finished`` callback, or None when notifications are off."""
    if not config.macos or sys.platform != "darwin":
        return None

    def notify(record: SessionRecord) -> None:
        title, message, subtitle = finished_message(record)
        # Off the monitor worker: osascript can take seconds.
        threading.Thread(
            target=notify_macos,
            kwargs={
                "title": title,
                "message": message,
                "subtitle": subtitle,
                "sound": config.sound,
                "group": str(record.pid),
            },
            daemon=True,
            name=f"ccmonitor-notify-{record.pid}",
        ).start()

    return notify
