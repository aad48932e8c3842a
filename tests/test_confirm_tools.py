from __future__ import annotations

import pytest

from confirm_bridge.engine.errors import AdapterError
from confirm_bridge.engine.formatter import CANCELLED_MARKER
from confirm_bridge.engine.mcp_server.tools import (
    ConfirmTools,
    _extract_text,
    register_tools,
)
from confirm_bridge.engine.normalizer import RequestNormalizer
from confirm_bridge.shared.models.request import EnvContext, UserResponse


class _FakeBridge:
    def __init__(self, response=None, error=None) -> None:
        self.response = response
        self.error = error
        self.requests = []

    async def request_confirmation(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


def _tools(bridge) -> ConfirmTools:
    normalizer = RequestNormalizer(
        env_probe=lambda: EnvContext(cwd="/w", project_name="w", pid=1),
        id_factory=lambda: "req-1",
    )
    return ConfirmTools(normalizer, bridge)


@pytest.mark.asyncio
async def test_confirm_returns_formatted_answer() -> None:
    bridge = _FakeBridge(UserResponse.confirm([1], "thanks"))
    tools = _tools(bridge)

    result = await tools.confirm(
        "Done.",
        sections=[
            {"title": "Fix bug", "content": "Patch X"},
            {"title": "Add tests", "content": "Cover Y"},
        ],
    )

    text = _extract_text(result)
    assert "Task 1 (index 1): Add tests" in text
    assert "thanks" in text
    assert not result.get("is_error")
    assert bridge.requests[0].id == "req-1"
    assert bridge.requests[0].is_markdown is True


@pytest.mark.asyncio
async def test_confirm_passes_markdown_flag_and_context() -> None:
    bridge = _FakeBridge(UserResponse.cancelled())
    tools = _tools(bridge)

    result = await tools.confirm(
        "plain", is_markdown=False, context={"projectName": "other"},
    )

    assert _extract_text(result) == CANCELLED_MARKER
    request = bridge.requests[0]
    assert request.is_markdown is False
    assert request.env_context.project_name == "other"
    assert request.env_context.cwd == "/w"


@pytest.mark.asyncio
async def test_invalid_input_never_reaches_bridge() -> None:
    bridge = _FakeBridge(UserResponse.cancelled())
    result = await _tools(bridge).handle({"message": "  "})

    assert result["is_error"] is True
    assert bridge.requests == []
    with pytest.raises(ValueError, match="Invalid message"):
        _extract_text(result)


@pytest.mark.asyncio
async def test_bridge_failure_becomes_tool_error() -> None:
    bridge = _FakeBridge(error=AdapterError(2, "no display"))
    result = await _tools(bridge).handle({"message": "Done."})

    assert result["is_error"] is True
    with pytest.raises(ValueError) as exc_info:
        _extract_text(result)
    assert "UI interaction failed" in str(exc_info.value)
    assert "no display" in str(exc_info.value)
    assert not str(exc_info.value).startswith("ERROR:")


@pytest.mark.asyncio
async def test_confirm_tool_is_registered() -> None:
    from mcp.server.fastmcp import FastMCP

    mcp = FastMCP(name="test")
    register_tools(mcp)

    tools = {tool.name: tool for tool in await mcp.list_tools()}
    assert "confirm" in tools
    schema = tools["confirm"].inputSchema
    assert schema["required"] == ["message"]
    assert {"message", "sections", "is_markdown", "context"} <= set(
        schema["properties"]
    )
    assert "ctx" not in schema["properties"]
