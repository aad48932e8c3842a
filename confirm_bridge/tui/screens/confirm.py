"""Confirmation screen: shows the request and collects the decision.

Layout (top to bottom): context line, message, selectable sections,
free-text reply, Confirm/Cancel buttons.  The screen never exits the
app on its own account except through ``submit`` and ``cancel``, both
of which hand a ``UserResponse`` to ``App.exit``.
"""
from __future__ import annotations

import logging
from pathlib import Path

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, VerticalScroll
from textual.screen import Screen
from textual.widgets import (
    Button,
    Footer,
    Header,
    Label,
    Markdown,
    Static,
    TextArea,
)

from confirm_bridge.shared.models.request import PopupRequest, UserResponse
from confirm_bridge.shared.services.export import export_request
from confirm_bridge.tui.screens.discard_reply import DiscardReplyScreen
from confirm_bridge.tui.widgets.section_item import SectionItem

logger = logging.getLogger(__name__)


class ConfirmScreen(Screen):
    """Main (and only) screen of the terminal adapter."""

    DEFAULT_CSS = """
    #confirm-body {
        padding: 1 2;
    }

    #confirm-context {
        color: $text-muted;
        margin-bottom: 1;
    }

    #confirm-message {
        margin-bottom: 1;
    }

    .confirm-heading {
        text-style: bold;
        color: $warning;
        margin: 1 0 1 0;
    }

    #confirm-reply {
        height: 6;
    }

    #confirm-buttons {
        height: auto;
        padding: 0 2;
        align-horizontal: right;
    }

    #confirm-buttons Button {
        margin-left: 2;
    }
    """

    # Priority so the reply TextArea cannot swallow them.
    BINDINGS = [
        Binding("ctrl+s", "submit", "Confirm", priority=True),
        Binding("escape", "cancel", "Cancel", priority=True),
        Binding("f2", "toggle_all", "All/None"),
        Binding("f3", "export", "Export"),
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

    def compose(self) -> ComposeResult:
        yield Header()
        with VerticalScroll(id="confirm-body"):
            context_line = self._context_line()
            if context_line:
                yield Static(context_line, id="confirm-context", markup=False)
            if self.request.is_markdown:
                yield Markdown(self.request.message, id="confirm-message")
            else:
                yield Static(
                    self.request.message, id="confirm-message", markup=False,
                )

            if self.request.sections:
                yield Label(
                    self._sections_heading(
                        sum(1 for s in self.request.sections if s.selected)
                    ),
                    id="sections-heading",
                    classes="confirm-heading",
                )
                for idx, section in enumerate(self.request.sections):
                    yield SectionItem(
                        idx,
                        section,
                        markdown=self.request.is_markdown,
                        id=f"section-{idx}",
                    )

            yield Label("Reply (optional)", classes="confirm-heading")
            yield TextArea(id="confirm-reply")
        with Horizontal(id="confirm-buttons"):
            yield Button("Cancel (Esc)", variant="error", id="btn-cancel")
            yield Button("Confirm (Ctrl+S)", variant="success", id="btn-confirm")
        yield Footer()

    def _context_line(self) -> str:
        ctx = self.request.env_context
        if ctx is None:
            return ""
        parts = []
        if ctx.cwd:
            parts.append(ctx.cwd)
        if ctx.terminal:
            parts.append(f"terminal: {ctx.terminal}")
        if ctx.pid is not None:
            parts.append(f"pid: {ctx.pid}")
        return " · ".join(parts)

    def _sections_heading(self, selected: int) -> str:
        return f"Follow-up tasks ({selected}/{len(self.request.sections)} selected)"

    # ── Decision helpers ──

    def section_items(self) -> list[SectionItem]:
        return list(self.query(SectionItem))

    def selected_indices(self) -> list[int]:
        return [item.index for item in self.section_items() if item.selected]

    def reply_text(self) -> str:
        return self.query_one("#confirm-reply", TextArea).text.strip()

    def build_response(self) -> UserResponse:
        return UserResponse.confirm(
            selected_sections=self.selected_indices(),
            user_input=self.reply_text(),
        )

    # ── Actions ──

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-confirm":
            self.action_submit()
        elif event.button.id == "btn-cancel":
            self.action_cancel()

    def on_section_item_toggled(self, event: SectionItem.Toggled) -> None:
        logger.debug(
            "Request %s: section %d %s",
            self.request.id, event.index,
            "selected" if event.selected else "cleared",
        )
        self.query_one("#sections-heading", Label).update(
            self._sections_heading(len(self.selected_indices()))
        )

    def action_submit(self) -> None:
        response = self.build_response()
        logger.info(
            "Request %s confirmed (selected=%s)",
            self.request.id, list(response.selected_sections),
        )
        self.app.exit(response)

    def action_cancel(self) -> None:
        reply = self.reply_text()
        if not reply:
            self._exit_cancelled()
            return

        def _on_result(result: str | None) -> None:
            if result == "discard":
                self._exit_cancelled()

        self.app.push_screen(DiscardReplyScreen(len(reply)), callback=_on_result)

    def _exit_cancelled(self) -> None:
        logger.info("Request %s cancelled", self.request.id)
        self.app.exit(UserResponse.cancelled())

    def action_toggle_all(self) -> None:
        items = self.section_items()
        if not items:
            return
        target = not all(item.selected for item in items)
        for item in items:
            item.set_selected(target)

    def action_export(self) -> None:
        directory = self.export_dir or (
            self.request.env_context.cwd
            if self.request.env_context and self.request.env_context.cwd
            else Path.cwd()
        )
        try:
            path = export_request(
                self.request, directory, selected=self.selected_indices(),
            )
        except OSError as exc:
            logger.warning("Export to %s failed: %s", directory, exc)
            self.notify(f"Export failed: {exc}", severity="error")
            return
        logger.info("Exported request %s to %s", self.request.id, path)
        self.notify(f"Exported to {path}")
