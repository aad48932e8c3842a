"""Process bridge between the MCP server and the presentation adapter.

One ``PopupRoundTrip`` runs per tool invocation:

    CREATED -> PERSISTED -> LAUNCHED -> COMPLETED
                   |            |
                   +--> FAILED <+

The request is written to a file named after its id, the adapter is
launched with ``--mcp-request <file>``, and its stdout is parsed as a
``UserResponse``.  A zero exit with no parseable output is a cancelled
answer, not a failure; a non-zero exit is an ``AdapterError``.  The
request file is removed on every terminal transition.
"""
from __future__ import annotations

import asyncio
import logging
import os
import sys
from enum import Enum
from pathlib import Path

from confirm_bridge.shared.models.request import PopupRequest, UserResponse
from confirm_bridge.shared.services.artifacts import (
    artifact_path_for,
    atomic_write_text,
)

from .config import BridgeConfig
from .errors import (
    AdapterError,
    AdapterNotFoundError,
    AdapterTimeoutError,
    ArtifactIOError,
    BridgeError,
)

logger = logging.getLogger(__name__)

REQUEST_FLAG = "--mcp-request"
VERSION_FLAG = "--version"


class BridgeState(str, Enum):
    CREATED = "created"
    PERSISTED = "persisted"
    LAUNCHED = "launched"
    COMPLETED = "completed"
    FAILED = "failed"


def _default_install_dir() -> Path:
    """Directory the running program was installed into.

    A console script lives in the environment's ``bin/`` (``Scripts\\``
    on Windows) next to ``confirm-bridge-ui``.  Under ``python -m`` or
    ``python -c`` argv[0] is a source file or a flag, so the
    interpreter's directory is used instead.  Neither path is resolved:
    a venv's python is a symlink to the base interpreter.
    """
    argv0 = sys.argv[0] if sys.argv else ""
    if argv0 and argv0 not in ("-c", "-m") and Path(argv0).suffix not in (
        ".py", ".pyc", ".pyw",
    ):
        return Path(argv0).absolute().parent
    return Path(sys.executable).absolute().parent


class AdapterLocator:
    """Finds the presentation adapter executable.

    Search order:
      1. ``<install_dir>/<command>``: a self-contained install ships the
         adapter next to the server entry point.
      2. ``<command>`` on PATH, accepted only if ``<command> --version``
         exits 0, so a broken global install is never picked silently.
    """

    def __init__(
        self,
        command: str = BridgeConfig.ui_command,
        *,
        install_dir: str | Path | None = None,
        probe_timeout_seconds: float = BridgeConfig.probe_timeout_seconds,
    ) -> None:
        self.command = command
        self.install_dir = (
            Path(install_dir) if install_dir is not None
            else _default_install_dir()
        )
        self.probe_timeout_seconds = probe_timeout_seconds

    def colocated_path(self) -> Path:
        name = self.command
        if os.name == "nt" and not Path(name).suffix:
            name += ".exe"
        return self.install_dir / name

    async def resolve(self) -> str:
        local = self.colocated_path()
        if local.is_file():
            logger.info("Using colocated presentation adapter: %s", local)
            return str(local)

        if await self._probe_global():
            logger.info("Using presentation adapter from PATH: %s", self.command)
            return self.command

        raise AdapterNotFoundError(
            self.command,
            [str(local), f"PATH ({self.command} {VERSION_FLAG})"],
        )

    async def _probe_global(self) -> bool:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.command, VERSION_FLAG,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            logger.debug("Adapter probe could not start %s: %s", self.command, exc)
            return False

        try:
            returncode = await asyncio.wait_for(
                proc.wait(), timeout=self.probe_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Adapter probe '%s %s' timed out after %.1fs",
                self.command, VERSION_FLAG, self.probe_timeout_seconds,
            )
            return False
        finally:
            # Timed out or cancelled
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()

        if returncode != 0:
            logger.warning(
                "Adapter probe '%s %s' failed (rc=%s)",
                self.command, VERSION_FLAG, returncode,
            )
        return returncode == 0


class PopupRoundTrip:
    """A single request/response exchange with the presentation adapter."""

    def __init__(
        self,
        request: PopupRequest,
        *,
        config: BridgeConfig,
        locator: AdapterLocator,
    ) -> None:
        self.request = request
        self.state = BridgeState.CREATED
        self.failure: BridgeError | None = None
        self.artifact_path = artifact_path_for(config.artifact_dir, request.id)
        self._config = config
        self._locator = locator

    def _transition(self, state: BridgeState) -> None:
        logger.debug(
            "Round trip %s: %s -> %s",
            self.request.id, self.state.value, state.value,
        )
        self.state = state

    async def run(self) -> UserResponse:
        if self.state is not BridgeState.CREATED:
            raise RuntimeError(
                f"Round trip {self.request.id} already ran "
                f"(state={self.state.value})"
            )
        try:
            self._persist()
            command = await self._locator.resolve()
            proc = await self._launch(command)
            stdout, stderr = await self._wait(proc)
            response = self._interpret(proc.returncode, stdout, stderr)
        except BridgeError as exc:
            self.failure = exc
            self._transition(BridgeState.FAILED)
            logger.error(
                "Round trip %s failed (%s): %s",
                self.request.id, exc.kind, exc,
            )
            raise
        except asyncio.CancelledError:
            self._transition(BridgeState.FAILED)
            logger.warning("Round trip %s cancelled by caller", self.request.id)
            raise
        finally:
            self._discard_artifact()

        self._transition(BridgeState.COMPLETED)
        return response

    def _persist(self) -> None:
        try:
            atomic_write_text(self.artifact_path, self.request.to_json())
        except OSError as exc:
            raise ArtifactIOError(str(self.artifact_path), str(exc)) from exc
        self._transition(BridgeState.PERSISTED)

    async def _launch(self, command: str) -> asyncio.subprocess.Process:
        # create_subprocess_exec passes args as array, no shell
        try:
            proc = await asyncio.create_subprocess_exec(
                command, REQUEST_FLAG, str(self.artifact_path),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise AdapterNotFoundError(
                self._locator.command, [command], reason=str(exc),
            ) from exc
        self._transition(BridgeState.LAUNCHED)
        logger.info(
            "Launched presentation adapter for %s (pid=%d)",
            self.request.id, proc.pid,
        )
        return proc

    async def _wait(
        self, proc: asyncio.subprocess.Process,
    ) -> tuple[bytes, bytes]:
        timeout = (
            self._config.timeout_seconds if self._config.timeout_enabled
            else None
        )
        try:
            return await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._terminate(proc)
            raise AdapterTimeoutError(self._config.timeout_seconds) from None
        except asyncio.CancelledError:
            await self._terminate(proc)
            raise

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        logger.info(
            "Stopping presentation adapter for %s (pid=%d)",
            self.request.id, proc.pid,
        )
        try:
            proc.terminate()
            try:
                await asyncio.wait_for(
                    proc.wait(), timeout=self._config.kill_grace_seconds,
                )
            except asyncio.TimeoutError:
                proc.kill()
                await proc.wait()
        except ProcessLookupError:
            pass

    def _interpret(
        self, returncode: int | None, stdout: bytes, stderr: bytes,
    ) -> UserResponse:
        if returncode != 0:
            raise AdapterError(
                returncode if returncode is not None else -1,
                stderr.decode("utf-8", errors="replace"),
            )

        text = stdout.decode("utf-8", errors="replace").strip()
        if not text:
            logger.warning(
                "Adapter exited 0 with no output for %s; treating as cancelled",
                self.request.id,
            )
            return UserResponse.cancelled()
        try:
            return UserResponse.from_json(text)
        except ValueError as exc:
            logger.warning(
                "Adapter output for %s is not a valid response (%s); "
                "treating as cancelled. Output: %s",
                self.request.id, exc, text[:200],
            )
            return UserResponse.cancelled()

    def _discard_artifact(self) -> None:
        try:
            self.artifact_path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning(
                "Could not remove request file %s: %s", self.artifact_path, exc,
            )


class ProcessBridge:
    """Runs confirmation round trips; holds no per-request state."""

    def __init__(
        self,
        config: BridgeConfig | None = None,
        locator: AdapterLocator | None = None,
    ) -> None:
        self.config = config or BridgeConfig()
        self.locator = locator or AdapterLocator(
            self.config.ui_command,
            probe_timeout_seconds=self.config.probe_timeout_seconds,
        )

    def new_round_trip(self, request: PopupRequest) -> PopupRoundTrip:
        return PopupRoundTrip(request, config=self.config, locator=self.locator)

    async def request_confirmation(self, request: PopupRequest) -> UserResponse:
        return await self.new_round_trip(request).run()
