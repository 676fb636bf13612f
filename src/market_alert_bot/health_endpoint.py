"""Liveness endpoint for process supervisors.

A tiny HTTP server exposing:
- /             - static "Bot is running!" response
- /health/ping  - "ok" for uptime monitors
- /health       - JSON status (uptime, last cycle, totals, recent errors)

Usage:
    Run in a background thread alongside the poll loop:

    from market_alert_bot.health_endpoint import start_health_server
    server = start_health_server(port=3000)
    ...
    server.shutdown()
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Optional

from .logging_utils import get_logger

log = get_logger("health_endpoint")

_LOCK = threading.Lock()

_HEALTH_STATUS: Dict[str, Any] = {
    "status": "starting",
    "start_time": None,
    "last_cycle_time": None,
    "total_cycles": 0,
    "total_alerts": 0,
    "errors": [],
}


def update_health_status(
    status: Optional[str] = None,
    last_cycle_time: Optional[datetime] = None,
    total_cycles: Optional[int] = None,
    total_alerts: Optional[int] = None,
    error: Optional[str] = None,
) -> None:
    """Update the health status from the poll loop.

    Parameters
    ----------
    status : str
        Overall status: "healthy", "starting", "stopping"
    last_cycle_time : datetime
        Timestamp of the last completed cycle
    total_cycles : int
        Cycles completed since boot
    total_alerts : int
        Alerts delivered since boot
    error : str
        Error message to append (keeps last 10)
    """
    with _LOCK:
        if status:
            _HEALTH_STATUS["status"] = status
        if last_cycle_time:
            _HEALTH_STATUS["last_cycle_time"] = last_cycle_time.isoformat()
        if total_cycles is not None:
            _HEALTH_STATUS["total_cycles"] = total_cycles
        if total_alerts is not None:
            _HEALTH_STATUS["total_alerts"] = total_alerts
        if error:
            _HEALTH_STATUS["errors"].append(
                {"time": datetime.now(timezone.utc).isoformat(), "error": error}
            )
            _HEALTH_STATUS["errors"] = _HEALTH_STATUS["errors"][-10:]


def get_health_snapshot() -> Dict[str, Any]:
    with _LOCK:
        snap = dict(_HEALTH_STATUS)
        snap["errors"] = list(_HEALTH_STATUS["errors"])
    uptime = 0.0
    if snap["start_time"]:
        start = datetime.fromisoformat(snap["start_time"])
        uptime = (datetime.now(timezone.utc) - start).total_seconds()
    return {
        "status": snap["status"],
        "uptime_seconds": int(uptime),
        "start_time": snap["start_time"],
        "last_cycle_time": snap["last_cycle_time"],
        "total_cycles": snap["total_cycles"],
        "total_alerts": snap["total_alerts"],
        "recent_errors": snap["errors"][-5:],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class HealthCheckHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the liveness routes."""

    def log_message(self, format, *args):
        """Suppress default HTTP server logging to avoid noise."""

    def _send(self, code: int, body: bytes, content_type: str = "text/plain") -> None:
        self.send_response(code)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self):
        if self.path == "/":
            self._send(200, b"Bot is running!")
        elif self.path == "/health/ping":
            self._send(200, b"ok")
        elif self.path == "/health":
            self._send(
                200,
                json.dumps(get_health_snapshot(), indent=2).encode(),
                "application/json",
            )
        else:
            self._send(404, b"Not Found")


def start_health_server(port: int = 3000, host: str = "0.0.0.0") -> ThreadingHTTPServer:
    """Start the liveness server in a daemon thread and return the server.

    Pass ``port=0`` to bind an ephemeral port (see ``server.server_address``).
    """
    server = ThreadingHTTPServer((host, port), HealthCheckHandler)
    server.daemon_threads = True
    with _LOCK:
        _HEALTH_STATUS["start_time"] = datetime.now(timezone.utc).isoformat()
        _HEALTH_STATUS["status"] = "starting"

    thread = threading.Thread(
        target=server.serve_forever, name="health-server", daemon=True
    )
    thread.start()
    log.info("health_server_started port=%d", server.server_address[1])
    return server
