"""Outgoing message framing."""

from __future__ import annotations

from serialterm.models.session import Terminator


def frame(message: str, terminator: Terminator = Terminator.NONE, encoding: str = "utf-8") -> bytes:
    """Append the terminator to message and encode the result.

    Args:
        message: Text typed by the user.
        terminator: Line ending to append; Terminator.NONE appends nothing.
        encoding: Text encoding used on the wire.
    """
    return (message + terminator.value).encode(encoding)
