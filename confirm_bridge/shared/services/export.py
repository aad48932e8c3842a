"""Export a confirmation request as a Markdown document."""
from __future__ import annotations

from collections.abc import Collection
from datetime import datetime
from pathlib import Path

from confirm_bridge.shared.models.request import PopupRequest

from .artifacts import atomic_write_text


def export_filename(now: datetime | None = None, ext: str = "md") -> str:
    """``confirm-YYYY-MM-DD-HHMMSS.<ext>``"""
    now = now or datetime.now()
    return f"confirm-{now:%Y-%m-%d-%H%M%S}.{ext}"


def render_markdown(
    request: PopupRequest,
    selected: Collection[int] | None = None,
) -> str:
    """Render *request* with each section as a task-list item.

    *selected* overrides the sections' own ``selected`` flags (the
    current on-screen state).
    """
    ctx = request.env_context
    title = (ctx.project_name if ctx else None) or "Confirmation request"
    lines = [f"# {title}", ""]
    if ctx and ctx.cwd:
        lines += [f"_Working directory: `{ctx.cwd}`_", ""]

    if request.is_markdown:
        lines.append(request.message)
    else:
        lines += ["```text", request.message, "```"]

    if request.sections:
        lines += ["", "## Sections", ""]
        for idx, section in enumerate(request.sections):
            checked = idx in selected if selected is not None else section.selected
            mark = "x" if checked else " "
            lines.append(f"- [{mark}] **{section.title}**")
            for content_line in section.content.splitlines() or [""]:
                lines.append(f"  {content_line}".rstrip())
    lines.append("")
    return "\n".join(lines)


def export_request(
    request: PopupRequest,
    directory: str | Path,
    *,
    selected: Collection[int] | None = None,
    now: datetime | None = None,
) -> Path:
    """Write the Markdown rendering into *directory* and return its path."""
    path = Path(directory) / export_filename(now)
    atomic_write_text(path, render_markdown(request, selected))
    return path
