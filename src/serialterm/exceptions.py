"""Exception hierarchy for serial session, relay and capture errors."""

from __future__ import annotations

from enum import StrEnum


class SerialTermError(Exception):
    """Base exception for all SerialTerm errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class InvalidParameterError(SerialTermError):
    """An invalid configuration value was supplied."""


class OpenError(SerialTermError):
    """The serial device could not be opened.

    Covers busy devices, denied permissions and descriptors that no
    longer exist.
    """

    def __init__(self, descriptor: str, cause: BaseException | str) -> None:
        self.descriptor = descriptor
        self.cause = cause
        super().__init__(f"Could not open port {descriptor}: {cause}")


class CloseError(SerialTermError):
    """Releasing the OS handle failed. The session is closed regardless."""

    def __init__(self, descriptor: str, cause: BaseException | str) -> None:
        self.descriptor = descriptor
        self.cause = cause
        super().__init__(f"Error while closing port {descriptor}: {cause}")


class WriteErrorReason(StrEnum):
    """Why a send was rejected."""
    NOT_OPEN = "not_open"
    DEVICE_LOST = "device_lost"
    TRANSMISSION = "transmission"


class WriteError(SerialTermError):
    """Outgoing bytes could not be transmitted."""

    def __init__(
        self,
        reason: WriteErrorReason,
        cause: BaseException | str | None = None,
    ) -> None:
        self.reason = reason
        self.cause = cause
        if reason == WriteErrorReason.NOT_OPEN:
            msg = "Cannot send: no serial port is open"
        elif reason == WriteErrorReason.DEVICE_LOST:
            msg = "Cannot send: the device stopped responding, close and reopen the port"
        else:
            msg = "Transmission failed"
        if cause is not None:
            msg = f"{msg}: {cause}"
        super().__init__(msg)


class ReadFailure(SerialTermError):
    """Reading from an open device failed (device removed, I/O error)."""

    def __init__(self, descriptor: str, cause: BaseException | str) -> None:
        self.descriptor = descriptor
        self.cause = cause
        super().__init__(f"Read from port {descriptor} failed: {cause}")


class CaptureSaveError(SerialTermError):
    """The capture buffer could not be written to disk."""

    def __init__(self, path: str, cause: BaseException | str) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Error while writing the file {path}: {cause}")
