"""Pydantic data models for SerialTerm."""

from serialterm.models.port import PortInfo
from serialterm.models.session import BaudRate, SessionConfig, SessionState, Terminator

__all__ = [
    "BaudRate",
    "PortInfo",
    "SessionConfig",
    "SessionState",
    "Terminator",
]
