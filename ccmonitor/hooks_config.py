"""Registers the listener's hook endpoints in the CLI's settings.json."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from ccmonitor.config import DEFAULT_PORT
from ccmonitor.models import HookEventKind

logger = logging.getLogger(__name__)


def hook_command(kind: HookEventKind, port: int = DEFAULT_PORT) -> str:
    """Shell command that pipes the hook's stdin payload through ``ccmonitor hook``."""
    return f"ccmonitor hook {kind.path_segment} --port {port} 2>/dev/null || true"


def build_hooks(port: int = DEFAULT_PORT) -> dict[str, Any]:
    return {
        kind.value: [{
            "matcher": ".*",
            "hooks": [{"type": "command", "command": hook_command(kind, port)}],
        }]
        for kind in HookEventKind
    }


def hooks_configured(settings: dict[str, Any]) -> bool:
    hooks = settings.get("hooks")
    return isinstance(hooks, dict) and all(kind.value in hooks for kind in HookEventKind)


def install_hooks(settings_path: Path, port: int = DEFAULT_PORT, force: bool = False) -> bool:
    """
    Add hook entries to settings.json, keeping every other setting.

    Returns True if the file was written, False if hooks were already present.
    Raises ValueError if the existing file is not a JSON object.
    """
    settings: dict[str, Any] = {}
    if settings_path.exists():
        text = settings_path.read_text() or "{}"
        loaded = json.loads(text)
        if not isinstance(loaded, dict):
            raise ValueError(f"{settings_path} does not contain a JSON object")
        settings = loaded

    if hooks_configured(settings) and not force:
        logger.info("Hooks already configured in %s", settings_path)
        return False

    hooks = settings.get("hooks") if isinstance(settings.get("hooks"), dict) else {}
    settings["hooks"] = {**hooks, **build_hooks(port)}

    settings_path.parent.mkdir(parents=True, exist_ok=True)
    settings_path.write_text(json.dumps(settings, indent=2) + "\n")
    logger.info("Hook configuration written to %s", settings_path)
    return True
