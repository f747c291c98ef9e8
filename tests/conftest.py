"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import queue
import threading
import time

import pytest
import serial

from serialterm.capture import CaptureBuffer
from serialterm.settings import TerminalSettings


class FakeSerial:
    """Stand-in for serial.Serial that records writes and serves queued reads.

    Each read returns the next queued chunk whole, or b"" once the read
    timeout passes. Queue an exception instance to make the next read fail.
    """

    def __init__(self, missing: set[str] | None = None) -> None:
        self.port: str | None = None
        self.baudrate = 9600
        self.bytesize = serial.EIGHTBITS
        self.parity = serial.PARITY_NONE
        self.stopbits = serial.STOPBITS_ONE
        self.timeout: float | None = None
        self.write_timeout: float | None = None
        self.is_open = False
        self.written = bytearray()
        self.write_error: BaseException | None = None
        self.close_error: BaseException | None = None
        self.open_count = 0
        self.close_count = 0
        self._missing = missing or set()
        self._incoming: queue.Queue[bytes | BaseException] = queue.Queue()

    def open(self) -> None:
        if self.port in self._missing:
            raise serial.SerialException(f"could not open port {self.port}: No such file or directory")
        self.is_open = True
        self.open_count += 1

    def close(self) -> None:
        self.close_count += 1
        self.is_open = False
        if self.close_error is not None:
            raise self.close_error

    def feed(self, item: bytes | BaseException) -> None:
        self._incoming.put(item)

    @property
    def in_waiting(self) -> int:
        return 0

    def read(self, size: int = 1) -> bytes:
        try:
            item = self._incoming.get(timeout=self.timeout or 0.05)
        except queue.Empty:
            return b""
        if isinstance(item, BaseException):
            raise item
        return item

    def write(self, data: bytes) -> int:
        if not self.is_open:
            raise serial.PortNotOpenError()
        if self.write_error is not None:
            raise self.write_error
        self.written.extend(data)
        return len(data)

    def cancel_read(self) -> None:
        pass


class StuckSerial(FakeSerial):
    """Port whose read blocks until close(), ignoring timeouts and cancel_read."""

    def __init__(self, missing: set[str] | None = None) -> None:
        super().__init__(missing)
        self.reading = threading.Event()
        self._released = threading.Event()

    def close(self) -> None:
        self._released.set()
        super().close()

    def read(self, size: int = 1) -> bytes:
        self.reading.set()
        self._released.wait()
        return b""


class FakePortFactory:
    """Creates FakeSerial instances and keeps them for inspection."""

    def __init__(self, missing: set[str] | None = None, port_class: type[FakeSerial] = FakeSerial) -> None:
        self.missing = missing or set()
        self.port_class = port_class
        self.created: list[FakeSerial] = []

    def __call__(self) -> FakeSerial:
        port = self.port_class(self.missing)
        self.created.append(port)
        return port

    @property
    def last(self) -> FakeSerial:
        return self.created[-1]


def _wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll predicate until it is true or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def sink() -> CaptureBuffer:
    return CaptureBuffer()


@pytest.fixture
def settings() -> TerminalSettings:
    """Short timeouts so relay threads stop quickly in tests."""
    return TerminalSettings(read_timeout=0.01, write_timeout=0.5, close_timeout=1.0)


@pytest.fixture
def port_factory() -> FakePortFactory:
    return FakePortFactory(missing={"COM99", "/dev/ttyGONE"})


@pytest.fixture
def wait_for():
    """Poll a predicate until true; relay delivery happens on another thread."""
    return _wait_until


@pytest.fixture
def stuck_port_factory() -> FakePortFactory:
    return FakePortFactory(port_class=StuckSerial)
