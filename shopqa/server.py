"""Local cleanup server.

Runs next to the shop so a remote test runner can trigger the database
restore over HTTP: ``GET /cleanup`` executes the restore script and answers
``success`` or the error output. Every request is answered with status
200; routes other than ``/cleanup`` get an empty body.
"""

from __future__ import annotations

import logging
import os
import subprocess
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8005
CLEANUP_ROUTE = "/cleanup"


def default_command(project_root: str | Path | None = None) -> list[str]:
    """``<PROJECT_ROOT>/psh.phar e2e:cleanup``; root from env, else cwd."""
    root = project_root or os.environ.get("PROJECT_ROOT") or "."
    return [str(Path(root).resolve() / "psh.phar"), "e2e:cleanup"]


def run_cleanup(command: list[str], timeout: float | None = None) -> str:
    """Run the restore command and return the text the server answers with."""
    try:
        result = subprocess.run(command, capture_output=True, text=True, timeout=timeout)
    except (OSError, subprocess.SubprocessError) as e:
        logger.error(f"Cleanup command failed to run: {e}")
        return f"{type(e).__name__}: {e}"

    if result.returncode == 0:
        return "success"

    logger.error(f"Cleanup command exited with code {result.returncode}")
    return "\n".join(
        [
            f"Command failed: {' '.join(command)}",
            f"exit code {result.returncode}",
            result.stdout,
            result.stderr,
        ]
    )


class CleanupRequestHandler(BaseHTTPRequestHandler):
    server: CleanupServer

    def do_GET(self) -> None:
        body = ""
        if self.path.split("?", 1)[0] == CLEANUP_ROUTE:
            body = run_cleanup(self.server.command, self.server.command_timeout)
        self._respond(body)

    def do_POST(self) -> None:
        self._respond("")

    def _respond(self, body: str) -> None:
        payload = body.encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format: str, *args: Any) -> None:
        logger.info(f"{self.address_string()} {format % args}")


class CleanupServer(ThreadingHTTPServer):
    """HTTP server answering ``GET /cleanup`` with the restore result.

    Example:
        >>> server = CleanupServer(port=8005, project_root="/var/www/shop")
        >>> server.serve_forever()
    """

    daemon_threads = True

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = DEFAULT_PORT,
        project_root: str | Path | None = None,
        command: list[str] | None = None,
        command_timeout: float | None = None,
    ) -> None:
        self.command = command or default_command(project_root)
        self.command_timeout = command_timeout
        super().__init__((host, port), CleanupRequestHandler)
        logger.info(f"Cleanup server listening on {host}:{self.server_address[1]}")
