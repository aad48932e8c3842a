"""Request artifact files: naming, durable writes and stale cleanup.

One artifact per in-flight request, named from the request id, so
concurrent requests never touch the same path.
"""

from __future__ import annotations

import json
import os
import tempfile
import time
from collections.abc import Callable
from pathlib import Path

ARTIFACT_PREFIX = "mcp_request_"
ARTIFACT_SUFFIX = ".json"


def artifact_path_for(artifact_dir: str | Path, request_id: str) -> Path:
    """Deterministic artifact location for a request id."""
    return Path(artifact_dir) / f"{ARTIFACT_PREFIX}{request_id}{ARTIFACT_SUFFIX}"


def _fsync_dir(dir_path: Path) -> None:
    """Best-effort directory fsync to persist rename/unlink metadata."""
    try:
        flags = os.O_RDONLY
        if hasattr(os, "O_DIRECTORY"):
            flags |= os.O_DIRECTORY
        fd = os.open(str(dir_path), flags)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except OSError:
        # Some platforms/filesystems do not support directory fsync.
        pass


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write text so a reader sees either no file or the complete one.

    The adapter is launched as soon as this returns and must never
    observe a half-written request.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent),
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        _fsync_dir(path.parent)
    finally:
        if tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                pass


def _owner_pid(path: Path) -> int | None:
    """pid recorded in the artifact's ``envContext``, if readable."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    ctx = raw.get("envContext") if isinstance(raw, dict) else None
    pid = ctx.get("pid") if isinstance(ctx, dict) else None
    if isinstance(pid, bool) or not isinstance(pid, int):
        return None
    return pid


def _pid_alive(pid: int) -> bool:
    # os.kill(pid, 0) terminates the process on Windows
    if os.name != "posix" or pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return False
    return True


def cleanup_stale_artifacts(
    artifact_dir: str | Path,
    *,
    max_age_seconds: float,
    now: float | None = None,
    log: Callable[[str], None] | None = None,
) -> int:
    """Delete artifacts last modified more than *max_age_seconds* ago.

    These are left behind only when a server is killed mid-wait.  Another
    server on the same host may still be waiting on an old request, so a
    file whose ``envContext.pid`` names a live process is kept (POSIX
    only; elsewhere age alone decides).
    Returns the number of files removed.
    """
    if max_age_seconds <= 0:
        return 0
    directory = Path(artifact_dir)
    if not directory.is_dir():
        return 0

    logger = log or (lambda _: None)
    cutoff = (now if now is not None else time.time()) - max_age_seconds
    removed = 0

    for path in directory.glob(f"{ARTIFACT_PREFIX}*{ARTIFACT_SUFFIX}"):
        try:
            if path.stat().st_mtime >= cutoff:
                continue
            owner = _owner_pid(path)
            if owner is not None and _pid_alive(owner):
                logger(f"Keeping old request artifact {path}: pid {owner} is alive")
                continue
            path.unlink()
            removed += 1
            logger(f"Removed stale request artifact {path}")
        except FileNotFoundError:
            continue
        except OSError as exc:
            logger(
                f"Failed to remove stale artifact {path}: "
                f"{type(exc).__name__}: {exc}"
            )

    return removed
