"""Discard confirmation modal: asks before cancelling with a typed reply.

Shown when the user presses Escape after typing into the reply box, so
a stray key press does not throw the reply away.

Returns "discard" if confirmed, None to keep editing.
"""
from __future__ import annotations

import time

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label, Static


class DiscardReplyScreen(ModalScreen[str | None]):
    """Modal confirmation dialog before cancelling a request."""

    DEFAULT_CSS = """
    DiscardReplyScreen {
        align: center middle;
    }

    #discard-dialog {
        width: 60;
        height: auto;
        padding: 1 2;
        border: thick $warning;
        background: $surface;
    }

    #discard-dialog Button {
        width: 100%;
        margin-top: 1;
    }
    """

    BINDINGS = [
        ("escape", "keep", "Keep editing"),
        ("y", "discard", "Discard"),
    ]

    _MOUNT_GUARD_SECONDS = 0.3

    def __init__(self, reply_chars: int, **kwargs) -> None:
        super().__init__(**kwargs)
        self.reply_chars = reply_chars
        # The Escape that opened this modal may repeat; ignore input briefly.
        self._guard_until = time.monotonic() + self._MOUNT_GUARD_SECONDS

    def compose(self) -> ComposeResult:
        with Vertical(id="discard-dialog"):
            yield Label("Cancel and discard your reply?")
            yield Static(
                f"[dim]Your reply ({self.reply_chars} characters) will not "
                f"be sent. The agent will be told the operation was "
                f"cancelled.[/dim]",
                markup=True,
            )
            yield Button(
                "(y) Discard reply and cancel",
                id="btn-discard",
                variant="error",
            )
            yield Button("(Esc) Keep editing", id="btn-keep")

    def on_mount(self) -> None:
        self.query_one("#btn-keep", Button).focus()

    def _is_guarded(self) -> bool:
        return time.monotonic() < self._guard_until

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if self._is_guarded():
            return
        if event.button.id == "btn-discard":
            self.dismiss("discard")
        else:
            self.dismiss(None)

    def action_keep(self) -> None:
        if self._is_guarded():
            return
        self.dismiss(None)

    def action_discard(self) -> None:
        if self._is_guarded():
            return
        self.dismiss("discard")
