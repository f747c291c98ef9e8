"""SerialTerm - serial port terminal with capture to file."""

from serialterm.capture import CaptureBuffer, CaptureFile, CaptureSink
from serialterm.catalog import list_port_details, list_ports
from serialterm.exceptions import (
    CaptureSaveError,
    CloseError,
    InvalidParameterError,
    OpenError,
    ReadFailure,
    SerialTermError,
    WriteError,
    WriteErrorReason,
)
from serialterm.framing import frame
from serialterm.models import BaudRate, PortInfo, SessionConfig, SessionState, Terminator
from serialterm.session import SerialSession
from serialterm.settings import TerminalSettings, load_settings
from serialterm.terminal import Terminal

__version__ = "0.1.0"

__all__ = [
    "BaudRate",
    "CaptureBuffer",
    "CaptureFile",
    "CaptureSaveError",
    "CaptureSink",
    "CloseError",
    "InvalidParameterError",
    "OpenError",
    "PortInfo",
    "ReadFailure",
    "SerialSession",
    "SerialTermError",
    "SessionConfig",
    "SessionState",
    "Terminal",
    "TerminalSettings",
    "Terminator",
    "WriteError",
    "WriteErrorReason",
    "frame",
    "list_port_details",
    "list_ports",
    "load_settings",
]
