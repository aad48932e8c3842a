"""Round trips against small fake adapter scripts written into tmp_path."""
from __future__ import annotations

import asyncio
import json
import os
import sys
import textwrap
from pathlib import Path

import pytest

from confirm_bridge.engine.bridge import (
    AdapterLocator,
    BridgeState,
    PopupRoundTrip,
    ProcessBridge,
    _default_install_dir,
)
from confirm_bridge.engine.config import BridgeConfig
from confirm_bridge.engine.errors import (
    AdapterError,
    AdapterNotFoundError,
    AdapterTimeoutError,
    ArtifactIOError,
)
from confirm_bridge.shared.models.request import PopupRequest, Section, UserResponse

pytestmark = pytest.mark.skipif(
    os.name != "posix", reason="fake adapters are shebang scripts",
)

ADAPTER = "fake-confirm-ui"

# Answers with the request id as its reply, proving it read the file.
ECHO_BODY = """
    if sys.argv[1:] == ["--version"]:
        print("fake 1.0")
        sys.exit(0)
    assert sys.argv[1] == "--mcp-request", sys.argv
    with open(sys.argv[2], encoding="utf-8") as f:
        request = json.load(f)
    print(json.dumps({
        "confirmed": True,
        "selectedSections": [0],
        "userInput": request["id"],
        "images": [],
    }))
"""


def _write_adapter(directory: Path, body: str, name: str = ADAPTER) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(
        f"#!{sys.executable}\nimport json, shutil, sys, time\n"
        + textwrap.dedent(body),
        encoding="utf-8",
    )
    path.chmod(0o755)
    return path


def _request(request_id: str = "req-1") -> PopupRequest:
    return PopupRequest(
        id=request_id,
        message="Refactor finished.",
        sections=(Section("Fix bug", "Patch X"), Section("Add tests", "Cover Y")),
    )


def _bridge(tmp_path: Path, body: str, **config) -> ProcessBridge:
    install_dir = tmp_path / "bin"
    _write_adapter(install_dir, body)
    cfg = BridgeConfig(
        ui_command=ADAPTER,
        artifact_dir=str(tmp_path / "artifacts"),
        **config,
    )
    locator = AdapterLocator(ADAPTER, install_dir=install_dir)
    return ProcessBridge(cfg, locator)


@pytest.mark.asyncio
async def test_valid_answer_is_parsed(tmp_path) -> None:
    bridge = _bridge(tmp_path, ECHO_BODY)
    trip = bridge.new_round_trip(_request())

    response = await trip.run()

    assert response == UserResponse.confirm([0], "req-1")
    assert trip.state is BridgeState.COMPLETED
    assert trip.failure is None


@pytest.mark.asyncio
async def test_artifact_holds_request_and_is_removed(tmp_path) -> None:
    copy = tmp_path / "seen.json"
    bridge = _bridge(tmp_path, f"""
        shutil.copy(sys.argv[2], {str(copy)!r})
        print('{{"confirmed": false}}')
    """)
    request = _request()
    trip = bridge.new_round_trip(request)

    await trip.run()

    assert trip.artifact_path.name == "mcp_request_req-1.json"
    assert PopupRequest.from_json(copy.read_text(encoding="utf-8")) == request
    assert not trip.artifact_path.exists()


@pytest.mark.asyncio
async def test_empty_output_means_cancelled(tmp_path) -> None:
    bridge = _bridge(tmp_path, "sys.exit(0)\n")
    assert await bridge.request_confirmation(_request()) == UserResponse.cancelled()


@pytest.mark.asyncio
async def test_unparseable_output_means_cancelled(tmp_path, caplog) -> None:
    bridge = _bridge(tmp_path, 'print("definitely not json")\n')

    with caplog.at_level("WARNING"):
        response = await bridge.request_confirmation(_request())

    assert response.is_cancelled
    assert "treating as cancelled" in caplog.text


@pytest.mark.asyncio
async def test_nonzero_exit_carries_stderr(tmp_path) -> None:
    bridge = _bridge(tmp_path, """
        sys.stderr.write("renderer exploded")
        sys.exit(3)
    """)
    trip = bridge.new_round_trip(_request())

    with pytest.raises(AdapterError) as exc_info:
        await trip.run()

    assert exc_info.value.returncode == 3
    assert exc_info.value.stderr == "renderer exploded"
    assert "renderer exploded" in str(exc_info.value)
    assert trip.state is BridgeState.FAILED
    assert trip.failure is exc_info.value
    assert not trip.artifact_path.exists()


@pytest.mark.asyncio
async def test_timeout_terminates_adapter(tmp_path) -> None:
    bridge = _bridge(
        tmp_path, "time.sleep(30)\n", timeout_seconds=0.5, kill_grace_seconds=2,
    )
    trip = bridge.new_round_trip(_request())

    with pytest.raises(AdapterTimeoutError):
        await asyncio.wait_for(trip.run(), timeout=10)

    assert trip.state is BridgeState.FAILED
    assert not trip.artifact_path.exists()


@pytest.mark.asyncio
async def test_concurrent_requests_use_their_own_artifacts(tmp_path) -> None:
    bridge = _bridge(tmp_path, ECHO_BODY)
    trips = [bridge.new_round_trip(_request(f"req-{n}")) for n in range(4)]

    assert len({trip.artifact_path for trip in trips}) == 4

    responses = await asyncio.gather(*(trip.run() for trip in trips))
    assert [r.user_input for r in responses] == [f"req-{n}" for n in range(4)]


@pytest.mark.asyncio
async def test_round_trip_runs_only_once(tmp_path) -> None:
    bridge = _bridge(tmp_path, ECHO_BODY)
    trip = bridge.new_round_trip(_request())
    await trip.run()

    with pytest.raises(RuntimeError):
        await trip.run()


class _UnreachableLocator(AdapterLocator):
    async def resolve(self) -> str:
        raise AssertionError("adapter must not be looked up")


@pytest.mark.asyncio
async def test_unwritable_artifact_dir_fails_before_launch(tmp_path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    trip = PopupRoundTrip(
        _request(),
        config=BridgeConfig(artifact_dir=str(blocker)),
        locator=_UnreachableLocator(ADAPTER, install_dir=tmp_path),
    )

    with pytest.raises(ArtifactIOError):
        await trip.run()
    assert trip.state is BridgeState.FAILED


# ── Adapter lookup ──


@pytest.mark.asyncio
async def test_colocated_adapter_wins(tmp_path, monkeypatch) -> None:
    local = _write_adapter(tmp_path / "install", ECHO_BODY)
    _write_adapter(tmp_path / "path", ECHO_BODY)
    monkeypatch.setenv("PATH", str(tmp_path / "path"))

    locator = AdapterLocator(ADAPTER, install_dir=tmp_path / "install")

    assert await locator.resolve() == str(local)


@pytest.mark.asyncio
async def test_adapter_on_path_is_probed(tmp_path, monkeypatch) -> None:
    _write_adapter(tmp_path / "path", ECHO_BODY)
    monkeypatch.setenv("PATH", str(tmp_path / "path"))

    locator = AdapterLocator(ADAPTER, install_dir=tmp_path / "empty")

    assert await locator.resolve() == ADAPTER


@pytest.mark.asyncio
async def test_broken_adapter_on_path_is_rejected(tmp_path, monkeypatch) -> None:
    _write_adapter(tmp_path / "path", "sys.exit(1)\n")
    monkeypatch.setenv("PATH", str(tmp_path / "path"))

    locator = AdapterLocator(ADAPTER, install_dir=tmp_path / "empty")

    with pytest.raises(AdapterNotFoundError):
        await locator.resolve()


@pytest.mark.asyncio
async def test_hanging_probe_is_rejected(tmp_path, monkeypatch) -> None:
    _write_adapter(tmp_path / "path", "time.sleep(30)\n")
    monkeypatch.setenv("PATH", str(tmp_path / "path"))

    locator = AdapterLocator(
        ADAPTER, install_dir=tmp_path / "empty", probe_timeout_seconds=0.5,
    )

    with pytest.raises(AdapterNotFoundError):
        await locator.resolve()


@pytest.mark.asyncio
async def test_missing_adapter_reports_search_locations(tmp_path) -> None:
    command = "confirm-ui-that-does-not-exist-anywhere"
    bridge = ProcessBridge(
        BridgeConfig(ui_command=command, artifact_dir=str(tmp_path)),
        AdapterLocator(command, install_dir=tmp_path / "empty"),
    )
    trip = bridge.new_round_trip(_request())

    with pytest.raises(AdapterNotFoundError) as exc_info:
        await trip.run()

    message = str(exc_info.value)
    assert str(tmp_path / "empty" / command) in message
    assert "PATH" in message
    assert trip.state is BridgeState.FAILED
    assert not trip.artifact_path.exists()


# ── Install directory ──


def test_install_dir_under_python_m_is_interpreter_dir(monkeypatch) -> None:
    module_file = "/srv/app/confirm_bridge/engine/mcp_server/stdio_server.py"
    monkeypatch.setattr(sys, "argv", [module_file])
    monkeypatch.setattr(sys, "executable", "/opt/venv/bin/python")

    assert _default_install_dir() == Path("/opt/venv/bin")
    assert AdapterLocator().install_dir == Path("/opt/venv/bin")


def test_install_dir_for_console_script_is_its_dir(monkeypatch) -> None:
    monkeypatch.setattr(sys, "argv", ["/opt/venv/bin/confirm-bridge-mcp"])
    monkeypatch.setattr(sys, "executable", "/usr/bin/python3")

    assert _default_install_dir() == Path("/opt/venv/bin")


def test_install_dir_keeps_venv_symlink(tmp_path, monkeypatch) -> None:
    base = tmp_path / "base" / "bin"
    base.mkdir(parents=True)
    (base / "python3").write_text("", encoding="utf-8")
    venv_bin = tmp_path / "venv" / "bin"
    venv_bin.mkdir(parents=True)
    (venv_bin / "python").symlink_to(base / "python3")
    monkeypatch.setattr(sys, "argv", ["-c"])
    monkeypatch.setattr(sys, "executable", str(venv_bin / "python"))

    assert _default_install_dir() == venv_bin


# ── Caller cancellation ──


async def _wait_for_file(path: Path, timeout: float = 10.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not (path.exists() and path.read_text().strip()):
        if loop.time() > deadline:
            raise AssertionError(f"{path} never appeared")
        await asyncio.sleep(0.05)


def _process_exists(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True


@pytest.mark.asyncio
async def test_cancelled_call_stops_adapter(tmp_path) -> None:
    pid_file = tmp_path / "adapter.pid"
    bridge = _bridge(tmp_path, f"""
        with open({str(pid_file)!r}, "w") as f:
            f.write(str(__import__("os").getpid()))
        time.sleep(30)
    """, kill_grace_seconds=2)
    trip = bridge.new_round_trip(_request())

    task = asyncio.create_task(trip.run())
    await _wait_for_file(pid_file)
    pid = int(pid_file.read_text())
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert trip.state is BridgeState.FAILED
    assert not trip.artifact_path.exists()
    assert not _process_exists(pid)


@pytest.mark.asyncio
async def test_cancelled_probe_is_reaped(tmp_path, monkeypatch) -> None:
    pid_file = tmp_path / "probe.pid"
    _write_adapter(tmp_path / "path", f"""
        with open({str(pid_file)!r}, "w") as f:
            f.write(str(__import__("os").getpid()))
        time.sleep(30)
    """)
    monkeypatch.setenv("PATH", str(tmp_path / "path"))
    locator = AdapterLocator(
        ADAPTER, install_dir=tmp_path / "empty", probe_timeout_seconds=30,
    )

    task = asyncio.create_task(locator.resolve())
    await _wait_for_file(pid_file)
    pid = int(pid_file.read_text())
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert not _process_exists(pid)
