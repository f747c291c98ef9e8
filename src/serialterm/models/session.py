"""Serial session configuration and state models."""

from __future__ import annotations

from enum import IntEnum, StrEnum
from typing import Literal

from pydantic import BaseModel, Field


class BaudRate(IntEnum):
    """Baud rates offered by the terminal."""
    BAUD_1200 = 1200
    BAUD_2400 = 2400
    BAUD_4800 = 4800
    BAUD_9600 = 9600
    BAUD_19200 = 19200
    BAUD_38400 = 38400
    BAUD_57600 = 57600
    BAUD_115200 = 115200
    BAUD_230400 = 230400
    BAUD_460800 = 460800
    BAUD_921600 = 921600
    BAUD_1382400 = 1382400


class SessionState(StrEnum):
    """Lifecycle state of a serial session."""
    CLOSED = "closed"
    OPEN = "open"


class Terminator(StrEnum):
    """Line ending appended to outgoing messages."""
    NONE = ""
    LF = "\n"
    CR = "\r"
    CRLF = "\r\n"

    @property
    def label(self) -> str:
        return _TERMINATOR_LABELS[self]

    @property
    def cli_name(self) -> str:
        return self.name.lower()

    @classmethod
    def from_name(cls, name: str) -> Terminator:
        """Look up a terminator by CLI name (none, lf, cr, crlf) or label."""
        key = name.strip()
        for term in cls:
            if key.lower() == term.cli_name or key == term.label:
                return term
        raise ValueError(f"Unknown terminator: {name!r}")


_TERMINATOR_LABELS: dict[Terminator, str] = {
    Terminator.NONE: "No line ending",
    Terminator.LF: "Newline",
    Terminator.CR: "Carriage return",
    Terminator.CRLF: "Both NL & CR",
}


class SessionConfig(BaseModel):
    """Line parameters for one open attempt.

    Only the baud rate varies; framing is fixed at 8N1.
    """
    model_config = {"frozen": True}

    baud_rate: BaudRate = Field(default=BaudRate.BAUD_9600, description="Line speed in baud")
    data_bits: Literal[8] = 8
    stop_bits: Literal[1] = 1
    parity: Literal["none"] = "none"

    def describe(self) -> str:
        return f"{int(self.baud_rate)} 8N1"
