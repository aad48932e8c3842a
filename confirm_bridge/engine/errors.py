"""Exception hierarchy for the confirmation bridge.

Cancellation by the human is never an exception; it is a normal
``UserResponse`` with ``confirmed=False``.
"""
from __future__ import annotations


class ConfirmBridgeError(Exception):
    """Base exception for all confirmation bridge errors."""


class ValidationError(ConfirmBridgeError):
    """Caller input is malformed or missing a required field."""
    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class BridgeError(ConfirmBridgeError):
    """The bridge could not complete a round trip with the adapter."""

    kind = "bridge_error"


class ArtifactIOError(BridgeError):
    """The request artifact could not be written."""

    kind = "io_error"

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot write request file {path}: {reason}")


class AdapterNotFoundError(BridgeError):
    """No usable presentation adapter executable was found."""

    kind = "adapter_not_found"

    def __init__(
        self, command: str, searched: list[str], reason: str | None = None,
    ):
        self.command = command
        self.searched = searched
        self.reason = reason
        where = ", ".join(searched) if searched else "nowhere"
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Presentation adapter '{command}' not usable "
            f"(searched: {where}){detail}. "
            f"Install it next to this program or on PATH."
        )


class AdapterError(BridgeError):
    """The adapter process exited with a failure status."""

    kind = "adapter_error"

    def __init__(self, returncode: int, stderr: str):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"Presentation adapter failed (rc={returncode}): {stderr}"
        )


class AdapterTimeoutError(BridgeError):
    """The adapter did not exit within the configured time budget."""

    kind = "timeout"

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"No answer from the presentation adapter after {timeout_seconds}s"
        )
