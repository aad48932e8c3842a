"""Request/response data models that cross the process boundary.

``PopupRequest`` is what the server hands to the presentation adapter
(as a JSON file), ``UserResponse`` is what the adapter prints back on
stdout.  Documents use camelCase keys; decoding also accepts the
snake_case spellings so adapters written against either interoperate.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, fields
from typing import Any, Mapping


def _pick(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key's value (camelCase before snake_case)."""
    for key in keys:
        if key in raw:
            return raw[key]
    return default


def _expect(value: Any, kind: type | tuple[type, ...], name: str) -> Any:
    # bool is an int subclass; never accept it where a number is wanted
    if isinstance(value, bool) and kind is not bool:
        raise ValueError(f"{name} must be {_kind_name(kind)}, got bool")
    if not isinstance(value, kind):
        raise ValueError(
            f"{name} must be {_kind_name(kind)}, got {type(value).__name__}"
        )
    return value


def _kind_name(kind: type | tuple[type, ...]) -> str:
    if isinstance(kind, tuple):
        return " or ".join(k.__name__ for k in kind)
    return kind.__name__


def _optional(value: Any, kind: type, name: str) -> Any:
    if value is None:
        return None
    return _expect(value, kind, name)


def _require_mapping(raw: Any, name: str) -> Mapping[str, Any]:
    if not isinstance(raw, Mapping):
        raise ValueError(f"{name} must be an object, got {type(raw).__name__}")
    return raw


@dataclass(frozen=True)
class Section:
    """One independently selectable item offered with a request."""

    title: str
    content: str
    selected: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "content": self.content,
            "selected": self.selected,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> Section:
        raw = _require_mapping(raw, "section")
        return cls(
            title=_expect(raw.get("title"), str, "title"),
            content=_expect(raw.get("content"), str, "content"),
            selected=_expect(raw.get("selected", True), bool, "selected"),
        )


@dataclass(frozen=True)
class EnvContext:
    """Ambient metadata about where the request originated.

    Every field is optional; an undeterminable value stays ``None``.
    """

    cwd: str | None = None
    project_name: str | None = None
    terminal: str | None = None
    pid: int | None = None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def to_dict(self) -> dict[str, Any]:
        return {
            "cwd": self.cwd,
            "projectName": self.project_name,
            "terminal": self.terminal,
            "pid": self.pid,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> EnvContext:
        raw = _require_mapping(raw, "envContext")
        return cls(
            cwd=_optional(raw.get("cwd"), str, "cwd"),
            project_name=_optional(
                _pick(raw, "projectName", "project_name"), str, "projectName",
            ),
            terminal=_optional(raw.get("terminal"), str, "terminal"),
            pid=_optional(raw.get("pid"), int, "pid"),
        )


@dataclass(frozen=True)
class PopupRequest:
    """Canonical, fully-defaulted confirmation request.

    ``id`` only correlates the on-disk artifact with the in-flight call.
    """

    id: str
    message: str
    sections: tuple[Section, ...] = ()
    is_markdown: bool = True
    env_context: EnvContext | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "message": self.message,
            "sections": [s.to_dict() for s in self.sections],
            "isMarkdown": self.is_markdown,
            "envContext": (
                self.env_context.to_dict() if self.env_context else None
            ),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)

    @classmethod
    def from_dict(cls, raw: Any) -> PopupRequest:
        raw = _require_mapping(raw, "request")
        sections_raw = _expect(raw.get("sections", []), list, "sections")
        env_raw = _pick(raw, "envContext", "env_context")
        return cls(
            id=_expect(raw.get("id"), str, "id"),
            message=_expect(raw.get("message"), str, "message"),
            sections=tuple(Section.from_dict(s) for s in sections_raw),
            is_markdown=_expect(
                _pick(raw, "isMarkdown", "is_markdown", default=True),
                bool,
                "isMarkdown",
            ),
            env_context=(
                EnvContext.from_dict(env_raw) if env_raw is not None else None
            ),
        )

    @classmethod
    def from_json(cls, text: str) -> PopupRequest:
        return cls.from_dict(json.loads(text))


@dataclass(frozen=True)
class UserResponse:
    """The human's answer as reported by the presentation adapter.

    ``selected_sections`` indexes the original ``sections`` sequence.
    Duplicates and out-of-range values are kept as reported; consumers
    must skip what they cannot resolve.
    """

    confirmed: bool
    selected_sections: tuple[int, ...] = ()
    user_input: str = ""
    images: tuple[str, ...] = ()

    @classmethod
    def cancelled(cls) -> UserResponse:
        return cls(confirmed=False)

    @classmethod
    def confirm(
        cls,
        selected_sections: list[int] | tuple[int, ...] = (),
        user_input: str = "",
        images: list[str] | tuple[str, ...] = (),
    ) -> UserResponse:
        return cls(
            confirmed=True,
            selected_sections=tuple(selected_sections),
            user_input=user_input,
            images=tuple(images),
        )

    @property
    def is_cancelled(self) -> bool:
        return not self.confirmed

    def to_dict(self) -> dict[str, Any]:
        return {
            "confirmed": self.confirmed,
            "selectedSections": list(self.selected_sections),
            "userInput": self.user_input,
            "images": list(self.images),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, raw: Any) -> UserResponse:
        raw = _require_mapping(raw, "response")
        if "confirmed" not in raw:
            raise ValueError("confirmed is required")
        selected = _expect(
            _pick(raw, "selectedSections", "selected_sections", default=[]),
            list,
            "selectedSections",
        )
        images = _expect(raw.get("images", []), list, "images")
        return cls(
            confirmed=_expect(raw["confirmed"], bool, "confirmed"),
            selected_sections=tuple(
                _expect(i, int, "selectedSections[]") for i in selected
            ),
            user_input=_expect(
                _pick(raw, "userInput", "user_input", default=""),
                str,
                "userInput",
            ),
            images=tuple(_expect(i, str, "images[]") for i in images),
        )

    @classmethod
    def from_json(cls, text: str) -> UserResponse:
        return cls.from_dict(json.loads(text))
