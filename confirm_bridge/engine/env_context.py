"""Environment context detection and merging."""
from __future__ import annotations

import os
from pathlib import Path

from confirm_bridge.shared.models.request import EnvContext


def detect_env_context() -> EnvContext:
    """Read ambient process state into an ``EnvContext``.

    Undeterminable values are left as ``None``.
    """
    try:
        cwd: str | None = os.getcwd()
    except OSError:
        cwd = None

    # "/" has no last segment
    project_name = (Path(cwd).name or None) if cwd else None
    terminal = os.environ.get("TERM_PROGRAM") or None

    return EnvContext(
        cwd=cwd,
        project_name=project_name,
        terminal=terminal,
        pid=os.getpid(),
    )


def merge_env_context(
    detected: EnvContext,
    override: EnvContext | None = None,
) -> EnvContext:
    """Overlay *override* onto *detected*, field by field.

    A field set in *override* wins; otherwise the detected value is kept.
    """
    if override is None:
        return detected
    return EnvContext(
        cwd=override.cwd if override.cwd is not None else detected.cwd,
        project_name=(
            override.project_name
            if override.project_name is not None
            else detected.project_name
        ),
        terminal=(
            override.terminal
            if override.terminal is not None
            else detected.terminal
        ),
        pid=override.pid if override.pid is not None else detected.pid,
    )
