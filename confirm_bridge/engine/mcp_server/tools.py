"""The ``confirm`` MCP tool.

``ConfirmTools`` holds the request pipeline (normalize → bridge →
format) and returns results in the content-list shape
``{"content": [{"type": "text", "text": ...}], "is_error": bool}``.
``register_tools`` binds it to a FastMCP instance, turning error
results into tool errors.
"""
from __future__ import annotations

import logging
from typing import Any

from mcp.server.fastmcp import Context, FastMCP

from ..bridge import ProcessBridge
from ..errors import BridgeError, ValidationError
from ..formatter import format_response
from ..normalizer import RequestNormalizer

logger = logging.getLogger(__name__)

CONFIRM_DESCRIPTION = (
    "Call this proactively after finishing a task, modifying files, or "
    "running a build or tests. Shows a Markdown summary of the work to "
    "the user, lets them pick optional follow-up sections, and returns "
    "their confirmation plus any extra input. Typical moments: a "
    "multi-step task is done, important changes are complete, a problem "
    "has been fixed, or a refactor is finished."
)


def _text_result(text: str, *, is_error: bool = False) -> dict[str, Any]:
    result: dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if is_error:
        result["is_error"] = True
    return result


def _extract_text(result: dict[str, Any]) -> str:
    """Convert a ConfirmTools result to the plain string FastMCP expects.

    If is_error is set, raise ValueError so FastMCP marks it as error.
    """
    text = result["content"][0]["text"]
    if result.get("is_error"):
        raise ValueError(text.removeprefix("ERROR: "))
    return text


class ConfirmTools:
    """Request pipeline behind the ``confirm`` tool."""

    def __init__(
        self,
        normalizer: RequestNormalizer,
        bridge: ProcessBridge,
    ) -> None:
        self._normalizer = normalizer
        self._bridge = bridge

    async def confirm(
        self,
        message: str,
        sections: list[dict[str, Any]] | None = None,
        is_markdown: bool | None = None,
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        raw: dict[str, Any] = {"message": message}
        if sections is not None:
            raw["sections"] = sections
        if is_markdown is not None:
            raw["isMarkdown"] = is_markdown
        if context is not None:
            raw["context"] = context
        return await self.handle(raw)

    async def handle(self, raw: dict[str, Any]) -> dict[str, Any]:
        try:
            request = self._normalizer.normalize(raw)
        except ValidationError as exc:
            logger.info("Rejected confirm request: %s", exc)
            return _text_result(f"ERROR: {exc}", is_error=True)

        try:
            response = await self._bridge.request_confirmation(request)
        except BridgeError as exc:
            return _text_result(
                f"ERROR: UI interaction failed: {exc}", is_error=True,
            )

        logger.info(
            "Request %s answered (confirmed=%s, selected=%s, input=%d chars, images=%d)",
            request.id,
            response.confirmed,
            list(response.selected_sections),
            len(response.user_input),
            len(response.images),
        )
        return _text_result(format_response(request, response))


def _get_tools(ctx: Context) -> ConfirmTools:
    """Get ConfirmTools from lifespan context."""
    return ctx.request_context.lifespan_context["confirm_tools"]


def register_tools(mcp: FastMCP) -> None:
    """Register the confirm tool with the FastMCP instance."""

    @mcp.tool(name="confirm", description=CONFIRM_DESCRIPTION)
    async def confirm(
        message: str,
        sections: list[dict[str, Any]] | None = None,
        is_markdown: bool = True,
        context: dict[str, Any] | None = None,
        ctx: Context = None,
    ) -> str:
        """Ask the user to confirm a summary and pick follow-up sections.

        Args:
            message: Text to show (Markdown supported).
            sections: Optional follow-up items, each
                ``{"title": str, "content": str, "selected": bool}``.
            is_markdown: Whether ``message`` is Markdown (default true).
            context: Optional overrides for ``cwd``, ``projectName``,
                ``terminal`` and ``pid``.
        """
        tools = _get_tools(ctx)
        result = await tools.confirm(message, sections, is_markdown, context)
        return _extract_text(result)
