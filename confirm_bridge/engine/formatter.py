"""Formats a UserResponse into the text returned to the calling agent.

The output is read by an LLM, not a person: the header for selected
tasks is an instruction to act on them now instead of asking again.
"""
from __future__ import annotations

from confirm_bridge.shared.models.request import PopupRequest, UserResponse

CANCELLED_MARKER = "User cancelled the operation."
CONFIRMED_MARKER = "User confirmed the operation."
EXECUTE_HEADER = (
    "⚠️ The user confirmed and selected the tasks below. "
    "Execute them immediately (do not ask for confirmation again):"
)
TASKS_HEADING = "📋 Tasks to execute now:"
USER_INPUT_HEADING = "💬 Additional input from the user:"


def format_response(request: PopupRequest, response: UserResponse) -> str:
    if not response.confirmed:
        return CANCELLED_MARKER

    parts: list[str] = []
    if response.selected_sections:
        parts.append(EXECUTE_HEADER)
        parts.append(
            f"\nSelected section indices: {list(response.selected_sections)}"
        )
        parts.append(f"\n{TASKS_HEADING}")
        parts.extend(_task_blocks(request, response.selected_sections))
    else:
        parts.append(CONFIRMED_MARKER)

    if response.user_input:
        parts.append(f"\n{USER_INPUT_HEADING}\n{response.user_input}")

    if response.images:
        parts.append(f"\nAttached images: {len(response.images)}")

    return "\n".join(parts)


def _task_blocks(
    request: PopupRequest, indices: tuple[int, ...],
) -> list[str]:
    blocks: list[str] = []
    for idx in indices:
        # Out-of-range indices come from a misbehaving adapter; skip them.
        if not 0 <= idx < len(request.sections):
            continue
        section = request.sections[idx]
        number = len(blocks) + 1
        blocks.append(
            f"\n✅ Task {number} (index {idx}): {section.title}\n"
            f"   Details: {section.content}\n"
            f"   ⚡ Action: start implementing this task now"
        )
    return blocks
