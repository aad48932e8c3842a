"""confirm-bridge: interactive human confirmation for MCP tool-calling agents."""

__version__ = "0.3.0"
