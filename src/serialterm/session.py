"""Serial session: one connection's open/close lifecycle and byte I/O.

Every successful open creates a fresh link (OS handle plus relay). Close
drops the link; it is never reopened. open, close and send are mutually
exclusive.
"""

from __future__ import annotations

import contextlib
import threading
from dataclasses import dataclass
from typing import Callable

import serial
from pydantic import ValidationError

from serialterm.capture import CaptureSink, append_diagnostic
from serialterm.exceptions import (
    CloseError,
    InvalidParameterError,
    OpenError,
    ReadFailure,
    WriteError,
    WriteErrorReason,
)
from serialterm.models.session import SessionConfig, SessionState
from serialterm.relay import InboundRelay
from serialterm.settings import TerminalSettings
from serialterm.utils.logging import get_logger

logger = get_logger(__name__)

PortFactory = Callable[[], serial.Serial]


@dataclass
class _Link:
    """An open OS handle and the relay reading from it."""

    descriptor: str
    config: SessionConfig
    port: serial.Serial
    relay: InboundRelay


class SerialSession:
    """Owns at most one open serial connection.

    Usage:
        sink = CaptureBuffer()
        with SerialSession(sink) as session:
            session.open("/dev/ttyUSB0", SessionConfig(baud_rate=115200))
            session.send(b"AT\\r\\n")
    """

    def __init__(
        self,
        sink: CaptureSink,
        settings: TerminalSettings | None = None,
        port_factory: PortFactory | None = None,
    ) -> None:
        self._sink = sink
        self._settings = settings or TerminalSettings()
        self._port_factory = port_factory
        self._pending_config = self._settings.session_config()
        self._lock = threading.Lock()
        self._link: _Link | None = None

    @property
    def state(self) -> SessionState:
        return SessionState.OPEN if self._link is not None else SessionState.CLOSED

    @property
    def is_open(self) -> bool:
        return self._link is not None

    @property
    def descriptor(self) -> str | None:
        link = self._link
        return link.descriptor if link is not None else None

    @property
    def config(self) -> SessionConfig | None:
        """Config of the live connection, None while closed."""
        link = self._link
        return link.config if link is not None else None

    @property
    def pending_config(self) -> SessionConfig:
        """Config the next open uses when none is passed."""
        return self._pending_config

    @property
    def relay_error(self) -> ReadFailure | None:
        link = self._link
        return link.relay.error if link is not None else None

    @property
    def relay_running(self) -> bool:
        link = self._link
        return link is not None and link.relay.is_running

    def configure(self, baud_rate: int) -> SessionConfig:
        """Record the baud rate for the next open.

        An already-open connection keeps its current rate.

        Raises:
            InvalidParameterError: If baud_rate is not an offered rate.
        """
        try:
            config = SessionConfig(baud_rate=baud_rate)
        except ValidationError as exc:
            raise InvalidParameterError(f"Unsupported baud rate: {baud_rate}") from exc
        self._pending_config = config
        logger.debug("session_configured", baud=int(config.baud_rate))
        return config

    def open(self, descriptor: str, config: SessionConfig | None = None) -> None:
        """Open descriptor, closing any current connection first.

        A failure while closing the current connection is reported to the
        sink and does not stop the new attempt.

        Raises:
            OpenError: If the device cannot be opened. The session stays closed.
        """
        if not descriptor:
            raise OpenError("", "no port selected")
        config = config or self._pending_config

        with self._lock:
            if self._link is not None:
                try:
                    self._close_link()
                except CloseError as exc:
                    append_diagnostic(self._sink, str(exc))

            logger.info("session_opening", port=descriptor, baud=int(config.baud_rate))
            port = self._create_port(descriptor, config)
            try:
                port.open()
            except (serial.SerialException, OSError, ValueError) as exc:
                logger.warning("session_open_failed", port=descriptor, error=str(exc))
                raise OpenError(descriptor, exc) from exc

            relay = InboundRelay(
                port,
                self._sink,
                descriptor,
                encoding=self._settings.encoding,
                queue_size=self._settings.queue_size,
                poll_interval=self._settings.read_timeout,
            )
            try:
                relay.start()
            except RuntimeError as exc:
                logger.warning("session_relay_start_failed", port=descriptor, error=str(exc))
                relay.stop(self._settings.close_timeout)
                with contextlib.suppress(CloseError):
                    self._release(port, descriptor)
                raise OpenError(descriptor, exc) from exc

            append_diagnostic(self._sink, f"Port {descriptor} opened ({config.describe()})")
            self._link = _Link(descriptor=descriptor, config=config, port=port, relay=relay)
            logger.info("session_opened", port=descriptor, baud=int(config.baud_rate))

    def close(self) -> None:
        """Stop the relay and release the port. No-op when already closed.

        Raises:
            CloseError: If the OS handle could not be released cleanly.
                The session is closed either way.
        """
        with self._lock:
            if self._link is None:
                return
            self._close_link()

    def send(self, data: bytes) -> int:
        """Write data verbatim to the open device.

        Returns the number of bytes written.

        Raises:
            WriteError: NOT_OPEN while closed, DEVICE_LOST after the relay
                hit a read failure, TRANSMISSION if the write itself fails.
        """
        with self._lock:
            link = self._link
            if link is None:
                raise WriteError(WriteErrorReason.NOT_OPEN)
            failure = link.relay.error
            if failure is not None:
                raise WriteError(WriteErrorReason.DEVICE_LOST, failure.cause)
            try:
                written = link.port.write(data)
            except (serial.SerialException, OSError) as exc:
                logger.warning("session_write_failed", port=link.descriptor, error=str(exc))
                raise WriteError(WriteErrorReason.TRANSMISSION, exc) from exc

        logger.debug("session_sent", port=link.descriptor, size=len(data))
        return written if written is not None else len(data)

    def __enter__(self) -> SerialSession:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # --- internal ---

    def _create_port(self, descriptor: str, config: SessionConfig) -> serial.Serial:
        """Build an unopened port carrying the line parameters."""
        factory = self._port_factory or serial.Serial
        port = factory()
        port.baudrate = int(config.baud_rate)
        port.bytesize = serial.EIGHTBITS
        port.parity = serial.PARITY_NONE
        port.stopbits = serial.STOPBITS_ONE
        port.timeout = self._settings.read_timeout
        port.write_timeout = self._settings.write_timeout
        port.port = descriptor
        return port

    def _close_link(self) -> None:
        """Tear down the current link. Caller holds the lock."""
        link = self._link
        if link is None:
            return
        self._link = None

        logger.info("session_closing", port=link.descriptor)
        link.relay.stop(self._settings.close_timeout)
        self._release(link.port, link.descriptor)
        append_diagnostic(self._sink, f"Port {link.descriptor} closed")
        logger.info("session_closed", port=link.descriptor)

    def _release(self, port: serial.Serial, descriptor: str) -> None:
        try:
            port.close()
        except (serial.SerialException, OSError) as exc:
            logger.warning("session_close_failed", port=descriptor, error=str(exc))
            raise CloseError(descriptor, exc) from exc
