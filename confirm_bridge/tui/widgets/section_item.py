"""Section widget: one selectable follow-up item with its details."""

from __future__ import annotations

from textual.message import Message
from textual.widget import Widget
from textual.widgets import Checkbox, Markdown, Static

from confirm_bridge.shared.models.request import Section


class SectionItem(Widget):
    """Renders a section as a checkbox (title) above its content.

    Toggling the checkbox posts a ``Toggled`` message carrying the
    section's index in the original request.
    """

    class Toggled(Message):
        """Posted when the user changes a section's selection."""

        def __init__(self, index: int, selected: bool) -> None:
            super().__init__()
            self.index = index
            self.selected = selected

    DEFAULT_CSS = """
    SectionItem {
        layout: vertical;
        margin: 0 0 1 2;
        padding: 0 1;
        background: $surface-darken-1;
        border: round $primary-darken-2;
        height: auto;
    }

    SectionItem.selected {
        border: round $success;
    }

    SectionItem .section-toggle {
        width: 100%;
        text-style: bold;
    }

    SectionItem .section-content {
        margin: 0 0 0 4;
        height: auto;
        color: $text-muted;
    }
    """

    def __init__(
        self,
        index: int,
        section: Section,
        markdown: bool = True,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.index = index
        self._section = section
        self._markdown = markdown

    def compose(self):
        safe_title = self._section.title.replace("[", "\\[")
        yield Checkbox(
            safe_title,
            value=self._section.selected,
            classes="section-toggle",
        )
        if self._markdown:
            yield Markdown(self._section.content, classes="section-content")
        else:
            yield Static(
                self._section.content,
                classes="section-content",
                markup=False,
            )

    def on_mount(self) -> None:
        self.set_class(self._section.selected, "selected")

    @property
    def selected(self) -> bool:
        return self.query_one(Checkbox).value

    def set_selected(self, value: bool) -> None:
        self.query_one(Checkbox).value = value

    def on_checkbox_changed(self, event: Checkbox.Changed) -> None:
        event.stop()
        self.set_class(event.value, "selected")
        self.post_message(self.Toggled(self.index, event.value))
