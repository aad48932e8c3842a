"""Canonical request/response documents exchanged with the adapter."""
from .request import EnvContext, PopupRequest, Section, UserResponse

__all__ = ["EnvContext", "PopupRequest", "Section", "UserResponse"]
