"""Presentation adapter entry point (``confirm-bridge-ui``).

Contract with the MCP server:
    confirm-bridge-ui --mcp-request <file>
        stdout: exactly one UserResponse JSON document, exit 0
                (the cancelled sentinel when the user quits or cancels)
        stderr: a diagnostic, non-zero exit, on any internal error
    confirm-bridge-ui --version
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from confirm_bridge import __version__
from confirm_bridge.shared.models.request import PopupRequest, UserResponse

logger = logging.getLogger(__name__)

LOG_DIR = Path.home() / ".confirm-bridge" / "logs"


class StartupError(Exception):
    """The request file is unusable or there is no terminal to draw on."""


def read_request_file(path: str | Path) -> PopupRequest:
    path = Path(path)
    if not path.exists():
        raise StartupError(f"Request file does not exist: {path}")
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise StartupError(f"Failed to read request file {path}: {exc}") from exc
    if not content.strip():
        raise StartupError(f"Request file is empty: {path}")
    try:
        raw = json.loads(content)
    except json.JSONDecodeError as exc:
        raise StartupError(f"Failed to parse request JSON in {path}: {exc}") from exc
    try:
        return PopupRequest.from_dict(raw)
    except ValueError as exc:
        raise StartupError(f"Invalid request in {path}: {exc}") from exc


def _attach_terminal() -> int | None:
    """Point stdin/stderr at the controlling terminal when they are pipes.

    Textual renders on stderr and reads stdin; when launched by the MCP
    server both are pipes, while stdout must stay the response channel.
    Returns a duplicate of the original stderr for late diagnostics, or
    None when nothing was changed.
    """
    if os.name != "posix":
        return None
    if sys.stdin.isatty() and sys.stderr.isatty():
        return None
    tty_fd = os.open("/dev/tty", os.O_RDWR)
    saved_stderr = os.dup(2)
    try:
        os.dup2(tty_fd, 0)
        os.dup2(tty_fd, 2)
    finally:
        os.close(tty_fd)
    return saved_stderr


def _report_error(message: str, stderr_fd: int | None) -> None:
    logger.error(message)
    text = f"confirm-bridge-ui: {message}\n"
    if stderr_fd is not None:
        os.write(stderr_fd, text.encode("utf-8", errors="replace"))
    else:
        sys.stderr.write(text)
        sys.stderr.flush()


def _setup_logging() -> None:
    """Log to a file only; the terminal belongs to the UI."""
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            LOG_DIR / "ui.log", maxBytes=1_000_000, backupCount=2,
            encoding="utf-8",
        )
    except OSError:
        return
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s [pid=%(process)d] %(message)s"
    ))
    root = logging.getLogger()
    level_name = os.getenv("CONFIRM_BRIDGE_LOG_LEVEL", "INFO").upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    root.addHandler(handler)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="confirm-bridge-ui",
        description="Terminal UI that asks the user to confirm a request",
    )
    parser.add_argument(
        "--mcp-request", metavar="PATH",
        help="Request file written by the MCP server",
    )
    parser.add_argument(
        "--export-dir", metavar="DIR",
        help="Where F3 exports go (default: the request's working directory)",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.mcp_request:
        parser.error("--mcp-request is required")

    _setup_logging()
    saved_stderr: int | None = None
    try:
        request = read_request_file(args.mcp_request)
        logger.info(
            "Showing request %s (%d sections)", request.id, len(request.sections),
        )
        try:
            saved_stderr = _attach_terminal()
        except OSError as exc:
            raise StartupError(f"No terminal available: {exc}") from exc

        from confirm_bridge.tui.app import ConfirmApp

        app = ConfirmApp(request, export_dir=args.export_dir)
        response = app.run() or UserResponse.cancelled()
    except StartupError as exc:
        _report_error(str(exc), saved_stderr)
        return 1
    except Exception as exc:
        logger.exception("Presentation adapter crashed")
        _report_error(f"{type(exc).__name__}: {exc}", saved_stderr)
        return 1

    sys.stdout.write(response.to_json() + "\n")
    sys.stdout.flush()
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
