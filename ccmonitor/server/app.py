"""FastAPI hook listener — receives hook events and serves session snapshots."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ccmonitor import __version__
from ccmonitor.engine.monitor import SessionMonitor
from ccmonitor.errors import ProtocolError
from ccmonitor.models import HookEventKind, parse_hook_event
from ccmonitor.server.ws_manager import ConnectionManager, sessions_payload

logger = logging.getLogger(__name__)

HOOK_PREFIX = "/hook/"


def _status(status_code: int, status: str = "ok", **extra) -> JSONResponse:
    return JSONResponse({"status": status, **extra}, status_code=status_code)


def create_app(monitor: SessionMonitor, periodic_scan: bool = True) -> FastAPI:
    """Build the listener app around a monitor; the monitor runs with the app lifespan."""
    manager = ConnectionManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        loop = asyncio.get_running_loop()
        # The loop keeps only weak references to tasks.
        broadcasts: set[asyncio.Task] = set()
        app.state.broadcasts = broadcasts

        def push(snapshot) -> None:
            if manager.client_count:
                task = loop.create_task(manager.broadcast_sessions(snapshot))
                broadcasts.add(task)
                task.add_done_callback(broadcasts.discard)

        monitor.add_listener(push)
        await monitor.start(periodic_scan=periodic_scan)
        yield
        await monitor.stop()

    app = FastAPI(
        title="ccmonitor",
        description="Hook listener and session monitor for Claude Code",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.monitor = monitor
    app.state.manager = manager

    @app.middleware("http")
    async def close_hook_connections(request: Request, call_next):
        # One hook call per connection; never keep it alive.
        response = await call_next(request)
        if request.url.path.startswith(HOOK_PREFIX):
            response.headers["Connection"] = "close"
        return response

    # ── Hook ingestion ──────────────────────────────────────

    @app.post("/hook/{kind}")
    async def receive_hook(kind: str, request: Request):
        """Validate a hook payload and apply it through the monitor."""
        try:
            HookEventKind.from_path(kind)
        except ValueError:
            return _status(404, "error", detail="unknown hook kind")

        body = await request.body()
        try:
            event = parse_hook_event(kind, body)
        except ProtocolError as exc:
            logger.warning("Rejected %s hook: %s", kind, exc)
            return _status(400, "error", detail="malformed hook payload")

        try:
            await monitor.dispatch(event)
        except Exception:
            logger.exception("Failed to apply %s hook for %s", kind, event.logical_session_id)
            return _status(500, "error")

        return _status(200)

    # ── REST Endpoints ──────────────────────────────────────

    @app.get("/api/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "ok",
            "version": __version__,
            "clients": manager.client_count,
            "sessions": len(monitor.sessions),
        }

    @app.get("/api/sessions")
    async def list_sessions():
        """Current session snapshot in display order."""
        return sessions_payload(monitor.sessions)

    def _known(pid: int) -> bool:
        return any(r.pid == pid for r in monitor.sessions)

    @app.post("/api/sessions/{pid}/refresh")
    async def refresh_session(pid: int):
        """Start an on-demand usage refresh for one session."""
        if not _known(pid):
            return _status(404, "error", detail="unknown session")
        monitor.refresh(pid)
        return _status(202, "accepted")

    @app.post("/api/sessions/{pid}/acknowledge")
    async def acknowledge_session(pid: int):
        """Clear the pending-output flag of one session."""
        if not await monitor.acknowledge(pid):
            return _status(404, "error", detail="unknown session")
        return _status(200)

    @app.post("/api/sessions/{pid}/reorder")
    async def reorder_session(pid: int, index: int):
        """Move one session in display order."""
        if not await monitor.reorder(pid, index):
            return _status(404, "error", detail="unknown session")
        return _status(200)

    # ── WebSocket Endpoint ──────────────────────────────────

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """Push the session list on connect and after every change."""
        await manager.connect(websocket)

        try:
            await websocket.send_json({
                **sessions_payload(monitor.sessions),
                "type": "connected",
                "server_version": __version__,
            })

            while True:
                try:
                    await asyncio.wait_for(websocket.receive_text(), timeout=30.0)
                except asyncio.TimeoutError:
                    try:
                        await websocket.send_json({"type": "heartbeat"})
                    except Exception:
                        break
        except WebSocketDisconnect:
            pass
        finally:
            await manager.disconnect(websocket)

    return app
