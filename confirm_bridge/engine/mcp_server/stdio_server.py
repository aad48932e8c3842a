"""Stdio MCP server exposing the ``confirm`` tool.

Usage:
    # Via .mcp.json (recommended, the client launches it)
    # Or manually:
    confirm-bridge-mcp
    confirm-bridge-mcp --config ~/.confirm-bridge/config.yaml
    python -m confirm_bridge.engine.mcp_server.stdio_server --timeout 1800 -v
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from confirm_bridge import __version__
from confirm_bridge.shared.services.artifacts import cleanup_stale_artifacts

from ..bridge import ProcessBridge
from ..config import BridgeConfig
from ..normalizer import RequestNormalizer
from .tools import ConfirmTools, register_tools

logger = logging.getLogger(__name__)

# Parsed CLI args, set in main() before server starts
_parsed_args: argparse.Namespace | None = None

LOG_DIR = Path.home() / ".confirm-bridge" / "logs"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI args for the MCP server process."""
    parser = argparse.ArgumentParser(
        prog="confirm-bridge-mcp",
        description="MCP server asking a human to confirm agent work",
    )
    parser.add_argument(
        "--config",
        default=None,
        help=(
            "YAML config file with a 'bridge:' section. "
            "Also reads CONFIRM_BRIDGE_CONFIG env var."
        ),
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for an answer (0 = wait forever)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> BridgeConfig:
    """Resolve config: YAML file (if any) over env vars, then CLI flags."""
    config_file = args.config or os.getenv("CONFIRM_BRIDGE_CONFIG")
    if config_file:
        from ..yaml_config import load_yaml_config

        logger.info(
            "Config source: %s (from %s)",
            config_file,
            "--config" if args.config else "CONFIRM_BRIDGE_CONFIG env",
        )
        config = load_yaml_config(config_file)
    else:
        logger.info("No config file specified; using env vars / defaults")
        config = BridgeConfig.from_env()

    if args.timeout is not None:
        config.timeout_seconds = args.timeout
    if args.verbose:
        config.log_level = "DEBUG"
    return config


@asynccontextmanager
async def confirm_lifespan(server: FastMCP):
    """Build the request pipeline for the server lifetime.

    Yields context dict accessible via ctx.request_context.lifespan_context
    in tool handlers.
    """
    global _parsed_args
    if _parsed_args is None:
        _parsed_args = _parse_args([])

    config = load_config(_parsed_args)

    # Logging must go to stderr (stdout is the stdio transport)
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    logging.getLogger().setLevel(level)

    try:
        swept = cleanup_stale_artifacts(
            config.artifact_dir,
            max_age_seconds=config.stale_artifact_max_age_seconds,
            log=logger.info,
        )
        if swept:
            logger.warning("Removed %d stale request file(s) at startup", swept)
    except OSError:
        logger.exception("Startup stale-artifact cleanup failed")

    bridge = ProcessBridge(config)
    confirm_tools = ConfirmTools(RequestNormalizer(), bridge)

    logger.info(
        "Confirm MCP server initialized (version=%s, adapter=%s, "
        "install_dir=%s, timeout=%s, artifact_dir=%s)",
        __version__,
        config.ui_command,
        bridge.locator.install_dir,
        config.timeout_seconds if config.timeout_enabled else "none",
        config.artifact_dir,
    )

    try:
        yield {
            "config": config,
            "bridge": bridge,
            "confirm_tools": confirm_tools,
        }
    finally:
        logger.info("Confirm MCP server shut down")


# Create the FastMCP instance
mcp = FastMCP(
    name="confirm-bridge",
    instructions=(
        "Interactive confirmation tool.\n\n"
        "Call `confirm` proactively after you finish a multi-step task, "
        "modify several files, complete an important configuration "
        "change, run a build or tests, fix a diagnosed problem, finish a "
        "refactor, or summarize your work.\n\n"
        "How to use it:\n"
        "1. Write a Markdown summary of what was done as `message`.\n"
        "2. Offer optional FOLLOW-UP tasks as `sections`, never work "
        "that is already finished. Each section must be a concrete task "
        "that can be started right away, not a vague idea or an open "
        "discussion question.\n"
        "3. Call `confirm` and read the user's answer.\n\n"
        "Handling the answer:\n"
        "- 'Selected section indices: [...]' lists the 0-based indices "
        "the user chose. Work ONLY on those sections; do not add items "
        "the user did not select and do not reprioritize on your own.\n"
        "- Start the selected tasks immediately. Do not ask again "
        "whether or how to do them.\n"
        "- Use any 'Additional input from the user' to refine the work.\n"
        "- 'User cancelled the operation.' means stop and wait for "
        "instructions."
    ),
    lifespan=confirm_lifespan,
)

register_tools(mcp)


def _attach_file_log() -> None:
    """Best-effort persistent log; stdio servers have no visible console."""
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        log_file = LOG_DIR / f"mcp-{os.getpid()}.log"
        file_handler = RotatingFileHandler(
            log_file, maxBytes=1_000_000, backupCount=2, encoding="utf-8",
        )
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(name)s %(levelname)s %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logging.getLogger().addHandler(file_handler)
    except OSError as exc:
        print(f"confirm-bridge: file logging disabled: {exc}", file=sys.stderr)


def main() -> None:
    """Entry point for the MCP server."""
    global _parsed_args
    _parsed_args = _parse_args()
    # Logging must go to stderr (stdout is the stdio transport)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    _attach_file_log()
    logger.info(
        "Starting stdio MCP server (pid=%s, argv=%s)", os.getpid(), sys.argv
    )

    try:
        mcp.run(transport="stdio")
    except Exception:
        logger.exception("Fatal stdio MCP server error (pid=%s)", os.getpid())
        raise


if __name__ == "__main__":
    main()
