"""Confirmation bridge: request normalization, adapter round trips, formatting."""
from .bridge import AdapterLocator, BridgeState, PopupRoundTrip, ProcessBridge
from .config import BridgeConfig
from .env_context import detect_env_context, merge_env_context
from .errors import (
    AdapterError,
    AdapterNotFoundError,
    AdapterTimeoutError,
    ArtifactIOError,
    BridgeError,
    ConfirmBridgeError,
    ValidationError,
)
from .formatter import format_response
from .normalizer import RequestNormalizer

__all__ = [
    "AdapterError",
    "AdapterLocator",
    "AdapterNotFoundError",
    "AdapterTimeoutError",
    "ArtifactIOError",
    "BridgeConfig",
    "BridgeError",
    "BridgeState",
    "ConfirmBridgeError",
    "PopupRoundTrip",
    "ProcessBridge",
    "RequestNormalizer",
    "ValidationError",
    "detect_env_context",
    "format_response",
    "merge_env_context",
]
