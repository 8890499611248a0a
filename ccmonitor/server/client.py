"""HTTP client for the ccmonitor listener."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from typing import Any, Optional

from ccmonitor.config import DEFAULT_PORT


class MonitorClient:
    """
    Lightweight HTTP client for the running listener.

    Stdlib urllib only, so the hook forwarder starts fast and needs no extras.
    """

    def __init__(self, base_url: str = f"http://localhost:{DEFAULT_PORT}"):
        self.base_url = base_url.rstrip("/")

    def _post(self, path: str, payload: Optional[dict[str, Any]] = None) -> int:
        data = json.dumps(payload or {}).encode("utf-8")
        req = urllib.request.Request(
            f"{self.base_url}{path}",
            data=data,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=3) as resp:
                return resp.status
        except urllib.error.HTTPError as exc:
            return exc.code
        except (urllib.error.URLError, OSError, TimeoutError):
            return 0

    def post_hook(self, kind: str, payload: dict[str, Any]) -> bool:
        """Forward one hook payload. Returns True when the listener accepted it."""
        return self._post(f"/hook/{kind}", payload) == 200

    def list_sessions(self) -> Optional[list[dict[str, Any]]]:
        """Current session snapshot, or None if the listener is unreachable."""
        try:
            with urllib.request.urlopen(f"{self.base_url}/api/sessions", timeout=2) as resp:
                return json.loads(resp.read()).get("sessions", [])
        except (urllib.error.URLError, OSError, TimeoutError, ValueError):
            return None

    def refresh(self, pid: int) -> bool:
        return self._post(f"/api/sessions/{pid}/refresh") == 202

    def acknowledge(self, pid: int) -> bool:
        return self._post(f"/api/sessions/{pid}/acknowledge") == 200

    def is_server_running(self) -> bool:
        """Check if the listener is reachable."""
        url = f"{self.base_url}/api/health"
        try:
            with urllib.request.urlopen(url, timeout=2) as resp:
                return resp.status == 200
        except (urllib.error.URLError, OSError, TimeoutError):
            return False
