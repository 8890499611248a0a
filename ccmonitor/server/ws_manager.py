"""Pushes session snapshots to WebSocket subscribers."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket

from ccmonitor.models import SessionRecord

logger = logging.getLogger(__name__)


def sessions_payload(records: Iterable[SessionRecord]) -> dict[str, Any]:
    """Wire message carrying the full ordered session list."""
    return {
        "type": "sessions",
        "sessions": [r.model_dump(mode="json") for r in records],
    }


class ConnectionManager:
    """Subscribers receive the whole list on every change, never deltas."""

    def __init__(self):
        self.subscribers: list[WebSocket] = []
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self.subscribers.append(websocket)
        logger.debug("Subscriber connected (%d total)", len(self.subscribers))

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            if websocket in self.subscribers:
                self.subscribers.remove(websocket)

    async def broadcast_sessions(self, records: Iterable[SessionRecord]) -> None:
        """Send one snapshot to every subscriber; drop the ones that fail."""
        if not self.subscribers:
            return

        message = json.dumps({
            **sessions_payload(records),
            "server_time": datetime.now(timezone.utc).isoformat(),
        })

        async with self._lock:
            targets = list(self.subscribers)
            results = await asyncio.gather(
                *(ws.send_text(message) for ws in targets), return_exceptions=True
            )
            for ws, result in zip(targets, results):
                if isinstance(result, Exception):
                    self.subscribers.remove(ws)
                    logger.debug("Dropped subscriber after failed send: %s", result)

    @property
    def client_count(self) -> int:
        return len(self.subscribers)
