"""Terminal presentation adapter: Textual application class."""

from __future__ import annotations

from pathlib import Path

from textual.app import App

from confirm_bridge.shared.models.request import PopupRequest, UserResponse
from confirm_bridge.tui.screens.confirm import ConfirmScreen


class ConfirmApp(App[UserResponse]):
    """Shows one confirmation request and returns the user's answer.

    ``run()`` returns the ``UserResponse``, or ``None`` when the app was
    quit without a decision (callers treat that as cancelled).
    """

    TITLE = "Confirm"

    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self,
        request: PopupRequest,
        export_dir: str | Path | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.request = request
        self.export_dir = export_dir

    def on_mount(self) -> None:
        ctx = self.request.env_context
        if ctx and ctx.project_name:
            self.sub_title = ctx.project_name
        self.push_screen(ConfirmScreen(self.request, export_dir=self.export_dir))
