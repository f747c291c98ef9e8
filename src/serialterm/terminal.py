"""Terminal controller: the user-facing actions wired to one serial session.

Selected port, baud rate and terminator are plain fields on the controller
and are passed explicitly into each open and send. Every error from the
core is reported as a diagnostic line in the capture sink; the action
returns a falsy value instead of raising.
"""

from __future__ import annotations

from pathlib import Path

from serialterm.capture import CaptureFile, CaptureSink, append_diagnostic
from serialterm.catalog import list_ports
from serialterm.exceptions import SerialTermError
from serialterm.framing import frame
from serialterm.models.session import BaudRate, SessionConfig, SessionState, Terminator
from serialterm.session import SerialSession
from serialterm.settings import TerminalSettings
from serialterm.utils.logging import get_logger

logger = get_logger(__name__)


class Terminal:
    """Discover, select, open, close, send, clear and save.

    A port selection is just a name. Refreshing the port list drops a
    selection the OS no longer reports, but never touches an open session.
    """

    def __init__(
        self,
        session: SerialSession,
        sink: CaptureSink,
        settings: TerminalSettings | None = None,
    ) -> None:
        self._session = session
        self._sink = sink
        self._settings = settings or TerminalSettings()
        self._capture_file = CaptureFile(sink)
        self.available_ports: list[str] = []
        self.selected_port: str | None = None
        self.baud_rate: BaudRate = self._settings.baud_rate
        self.terminator: Terminator = self._settings.terminator

    @property
    def session(self) -> SerialSession:
        return self._session

    @property
    def sink(self) -> CaptureSink:
        return self._sink

    @property
    def save_path(self) -> Path | None:
        return self._capture_file.path

    def status_line(self) -> str:
        state = self._session.state
        port = self._session.descriptor if state == SessionState.OPEN else self.selected_port
        config = self._session.config
        baud = int(config.baud_rate) if config is not None else int(self.baud_rate)
        return (
            f"{state.value} port={port or '-'} baud={baud} "
            f"terminator={self.terminator.cli_name}"
        )

    def discover(self) -> list[str]:
        """Refresh the port list, keeping the selection only if still listed."""
        ports = list_ports()
        self.available_ports = ports
        if self.selected_port is not None and self.selected_port not in ports:
            logger.info("selected_port_vanished", port=self.selected_port)
            self.selected_port = None
        if self.selected_port is None and ports:
            self.selected_port = ports[0]
        return ports

    def select_port(self, name: str) -> bool:
        """Select a port, closing an open session on a different port first."""
        if self._session.is_open and self._session.descriptor != name:
            if not self.close():
                return False
        self.selected_port = name
        return True

    def select_baud(self, rate: int) -> bool:
        try:
            config = self._session.configure(rate)
        except SerialTermError as exc:
            self._report(exc)
            return False
        self.baud_rate = config.baud_rate
        return True

    def select_terminator(self, terminator: Terminator | str) -> bool:
        if isinstance(terminator, Terminator):
            self.terminator = terminator
            return True
        try:
            self.terminator = Terminator.from_name(terminator)
        except ValueError as exc:
            append_diagnostic(self._sink, str(exc))
            return False
        return True

    def open(self, port: str | None = None) -> bool:
        if port is not None:
            self.selected_port = port
        if not self.selected_port:
            append_diagnostic(self._sink, "No port selected")
            return False
        try:
            self._session.open(self.selected_port, SessionConfig(baud_rate=self.baud_rate))
        except SerialTermError as exc:
            self._report(exc)
            return False
        return True

    def close(self) -> bool:
        try:
            self._session.close()
        except SerialTermError as exc:
            self._report(exc)
            return False
        return True

    def send_message(self, message: str) -> bool:
        try:
            data = frame(message, self.terminator, self._settings.encoding)
            self._session.send(data)
        except (SerialTermError, UnicodeEncodeError) as exc:
            self._report(exc)
            return False
        return True

    def clear(self) -> None:
        self._sink.clear()

    def save(self, path: str | Path | None = None) -> Path | None:
        """Save to the remembered file, or to a newly given path."""
        try:
            return self._capture_file.save(path)
        except (SerialTermError, FileExistsError, ValueError) as exc:
            self._report(exc)
            return None

    def save_as(self, path: str | Path, overwrite: bool = False) -> Path | None:
        try:
            return self._capture_file.save_as(path, overwrite=overwrite)
        except (SerialTermError, FileExistsError) as exc:
            self._report(exc)
            return None

    def shutdown(self) -> None:
        """Release the port on application exit."""
        if self._session.is_open:
            self.close()

    def _report(self, exc: Exception) -> None:
        logger.info("terminal_action_failed", error_type=type(exc).__name__, error=str(exc))
        append_diagnostic(self._sink, f"{type(exc).__name__}: {exc}")
