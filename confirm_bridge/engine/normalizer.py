"""Turns raw ``confirm`` tool arguments into a canonical PopupRequest."""
from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from confirm_bridge.shared.models.request import (
    EnvContext,
    PopupRequest,
    Section,
)

from .env_context import detect_env_context, merge_env_context
from .errors import ValidationError

logger = logging.getLogger(__name__)

EnvProbe = Callable[[], EnvContext]
IdFactory = Callable[[], str]


def _new_request_id() -> str:
    return str(uuid.uuid4())


def _non_empty_str(value: Any, field: str) -> str:
    if value is None:
        raise ValidationError(field, "is required")
    if not isinstance(value, str):
        raise ValidationError(
            field, f"must be a string, got {type(value).__name__}"
        )
    if not value.strip():
        raise ValidationError(field, "must not be empty")
    return value


def _bool(value: Any, field: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValidationError(
            field, f"must be a boolean, got {type(value).__name__}"
        )
    return value


class RequestNormalizer:
    """Validates and defaults a raw request.

    The environment probe and the id factory are injected so tests can
    pin both; production uses ``detect_env_context`` and UUIDv4.
    """

    def __init__(
        self,
        env_probe: EnvProbe = detect_env_context,
        id_factory: IdFactory = _new_request_id,
    ) -> None:
        self._env_probe = env_probe
        self._id_factory = id_factory

    def normalize(self, raw: Mapping[str, Any]) -> PopupRequest:
        if not isinstance(raw, Mapping):
            raise ValidationError(
                "request", f"must be an object, got {type(raw).__name__}"
            )

        message = _non_empty_str(raw.get("message"), "message")
        sections = self._normalize_sections(raw.get("sections"))
        is_markdown = _bool(
            raw.get("isMarkdown", raw.get("is_markdown")), "isMarkdown", True,
        )
        override = self._normalize_context(raw.get("context"))

        env_context = merge_env_context(self._env_probe(), override)
        request = PopupRequest(
            id=self._id_factory(),
            message=message,
            sections=sections,
            is_markdown=is_markdown,
            env_context=env_context,
        )
        logger.debug(
            "Normalized request %s (%d sections, markdown=%s, cwd=%s)",
            request.id, len(sections), is_markdown, env_context.cwd,
        )
        return request

    @staticmethod
    def _normalize_sections(raw: Any) -> tuple[Section, ...]:
        if raw is None:
            return ()
        if not isinstance(raw, (list, tuple)):
            raise ValidationError(
                "sections", f"must be an array, got {type(raw).__name__}"
            )
        sections: list[Section] = []
        for idx, item in enumerate(raw):
            where = f"sections[{idx}]"
            if isinstance(item, Section):
                item = item.to_dict()
            if not isinstance(item, Mapping):
                raise ValidationError(
                    where, f"must be an object, got {type(item).__name__}"
                )
            sections.append(Section(
                title=_non_empty_str(item.get("title"), f"{where}.title"),
                content=_non_empty_str(item.get("content"), f"{where}.content"),
                selected=_bool(item.get("selected"), f"{where}.selected", True),
            ))
        return tuple(sections)

    @staticmethod
    def _normalize_context(raw: Any) -> EnvContext | None:
        if raw is None or isinstance(raw, EnvContext):
            return raw
        try:
            return EnvContext.from_dict(raw)
        except ValueError as exc:
            raise ValidationError("context", str(exc)) from exc
