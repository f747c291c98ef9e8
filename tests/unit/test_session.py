"""Unit tests for the serial session state machine."""

from __future__ import annotations

import time
from unittest.mock import patch

import pytest
import serial

from serialterm.capture import DIAGNOSTIC_PREFIX
from serialterm.exceptions import (
    CloseError,
    InvalidParameterError,
    OpenError,
    WriteError,
    WriteErrorReason,
)
from serialterm.models.session import BaudRate, SessionConfig, SessionState
from serialterm.session import SerialSession
from serialterm.settings import TerminalSettings


@pytest.fixture
def session(sink, settings, port_factory):
    s = SerialSession(sink, settings, port_factory=port_factory)
    yield s
    try:
        s.close()
    except CloseError:
        pass


class TestOpenClose:
    """Test state transitions."""

    def test_initially_closed(self, session):
        assert session.state == SessionState.CLOSED
        assert session.descriptor is None
        assert session.config is None
        assert not session.relay_running

    def test_open_then_close(self, session, port_factory):
        session.open("/dev/ttyUSB0", SessionConfig(baud_rate=115200))
        assert session.state == SessionState.OPEN
        assert session.descriptor == "/dev/ttyUSB0"
        assert session.relay_running
        port = port_factory.last
        assert port.is_open
        assert port.baudrate == 115200
        assert port.bytesize == serial.EIGHTBITS
        assert port.parity == serial.PARITY_NONE
        assert port.stopbits == serial.STOPBITS_ONE

        session.close()
        assert session.state == SessionState.CLOSED
        assert not port.is_open
        assert port.close_count == 1

    def test_open_close_open_uses_fresh_handle(self, session, port_factory):
        session.open("/dev/ttyUSB0")
        first = port_factory.last
        session.close()
        session.open("/dev/ttyUSB0")
        second = port_factory.last

        assert second is not first
        assert not first.is_open
        assert second.is_open
        assert session.state == SessionState.OPEN

    def test_open_while_open_closes_current_first(self, session, port_factory):
        session.open("/dev/ttyUSB0")
        first = port_factory.last
        session.open("/dev/ttyUSB1")
        second = port_factory.last

        assert not first.is_open
        assert second.is_open
        assert session.descriptor == "/dev/ttyUSB1"
        assert sum(1 for p in port_factory.created if p.is_open) == 1

    def test_status_messages_in_capture(self, session, sink):
        session.open("COM3", SessionConfig(baud_rate=9600))
        session.close()
        text = sink.get_text()
        assert f"{DIAGNOSTIC_PREFIX} Port COM3 opened (9600 8N1)" in text
        assert f"{DIAGNOSTIC_PREFIX} Port COM3 closed" in text

    def test_close_when_closed_is_noop(self, session, sink):
        sink.append("captured")
        session.close()
        session.close()
        assert session.state == SessionState.CLOSED
        assert sink.get_text() == "captured"

    def test_open_nonexistent_descriptor(self, session):
        with pytest.raises(OpenError) as exc_info:
            session.open("COM99", SessionConfig(baud_rate=9600))
        assert exc_info.value.descriptor == "COM99"
        assert session.state == SessionState.CLOSED
        assert not session.relay_running

    def test_open_nonexistent_device_with_pyserial(self, sink, settings):
        real = SerialSession(sink, settings)
        with pytest.raises(OpenError):
            real.open("/dev/serialterm-no-such-device", SessionConfig(baud_rate=9600))
        assert real.state == SessionState.CLOSED

    def test_failed_open_after_open_leaves_closed(self, session, port_factory):
        session.open("/dev/ttyUSB0")
        first = port_factory.last
        with pytest.raises(OpenError):
            session.open("/dev/ttyGONE")
        assert session.state == SessionState.CLOSED
        assert not first.is_open

    def test_relay_start_failure_releases_port(self, session, port_factory, sink):
        with patch("serialterm.session.InboundRelay.start", side_effect=RuntimeError("can't start new thread")):
            with pytest.raises(OpenError):
                session.open("/dev/ttyUSB0")
        assert session.state == SessionState.CLOSED
        assert not port_factory.last.is_open
        assert "opened" not in sink.get_text()

    def test_open_empty_descriptor(self, session):
        with pytest.raises(OpenError, match="no port selected"):
            session.open("")

    def test_close_failure_still_closes(self, session, port_factory):
        session.open("/dev/ttyUSB0")
        port_factory.last.close_error = OSError("handle already invalid")
        with pytest.raises(CloseError):
            session.close()
        assert session.state == SessionState.CLOSED
        session.close()

    def test_close_failure_does_not_block_new_open(self, session, port_factory, sink):
        session.open("/dev/ttyUSB0")
        port_factory.last.close_error = OSError("handle already invalid")
        session.open("/dev/ttyUSB1")
        assert session.state == SessionState.OPEN
        assert session.descriptor == "/dev/ttyUSB1"
        assert "Error while closing port /dev/ttyUSB0" in sink.get_text()

    def test_context_manager_closes(self, sink, settings, port_factory):
        with SerialSession(sink, settings, port_factory=port_factory) as s:
            s.open("/dev/ttyUSB0")
            port = port_factory.last
        assert s.state == SessionState.CLOSED
        assert not port.is_open


class TestSend:
    """Test outgoing bytes."""

    def test_send_while_closed(self, session, port_factory):
        with pytest.raises(WriteError) as exc_info:
            session.send(b"hello")
        assert exc_info.value.reason == WriteErrorReason.NOT_OPEN
        assert port_factory.created == []

    def test_send_after_close(self, session, port_factory):
        session.open("/dev/ttyUSB0")
        port = port_factory.last
        session.close()
        with pytest.raises(WriteError) as exc_info:
            session.send(b"hello")
        assert exc_info.value.reason == WriteErrorReason.NOT_OPEN
        assert bytes(port.written) == b""

    def test_send_writes_verbatim(self, session, port_factory):
        session.open("/dev/ttyUSB0")
        assert session.send(b"AT\r\n") == 4
        assert session.send(b"\x00\xff") == 2
        assert bytes(port_factory.last.written) == b"AT\r\n\x00\xff"

    def test_write_failure(self, session, port_factory):
        session.open("/dev/ttyUSB0")
        port_factory.last.write_error = serial.SerialTimeoutException("Write timeout")
        with pytest.raises(WriteError) as exc_info:
            session.send(b"data")
        assert exc_info.value.reason == WriteErrorReason.TRANSMISSION

    def test_send_fails_after_read_failure(self, session, port_factory, sink, wait_for):
        session.open("/dev/ttyUSB0")
        port_factory.last.feed(serial.SerialException("device disconnected"))

        assert wait_for(lambda: session.relay_error is not None)
        assert session.state == SessionState.OPEN
        with pytest.raises(WriteError) as exc_info:
            session.send(b"ping")
        assert exc_info.value.reason == WriteErrorReason.DEVICE_LOST
        assert wait_for(lambda: "device disconnected" in sink.get_text())

        session.close()
        session.open("/dev/ttyUSB0")
        assert session.send(b"ping") == 4


class TestReceive:
    """Test inbound data reaches the sink through the session."""

    def test_received_chunks_in_order(self, session, port_factory, sink, wait_for):
        session.open("/dev/ttyUSB0")
        for chunk in (b"AB", b"CD", b"EF"):
            port_factory.last.feed(chunk)
        assert wait_for(lambda: sink.get_text().endswith("ABCDEF"))

    def test_relay_stops_on_close(self, session, port_factory):
        session.open("/dev/ttyUSB0")
        assert session.relay_running
        session.close()
        assert not session.relay_running


class TestConfigure:
    """Test baud rate configuration."""

    def test_configure_sets_pending(self, session):
        session.configure(57600)
        assert session.pending_config.baud_rate == BaudRate.BAUD_57600

    def test_configure_rejects_unsupported_rate(self, session):
        with pytest.raises(InvalidParameterError):
            session.configure(14400)
        assert session.pending_config.baud_rate == BaudRate.BAUD_9600

    def test_configure_while_open_does_not_touch_live_connection(self, session, port_factory):
        session.open("/dev/ttyUSB0", SessionConfig(baud_rate=9600))
        session.configure(115200)

        assert port_factory.last.baudrate == 9600
        assert session.config.baud_rate == BaudRate.BAUD_9600

        session.close()
        session.open("/dev/ttyUSB0")
        assert port_factory.last.baudrate == 115200
        assert session.config.baud_rate == BaudRate.BAUD_115200


class TestBoundedClose:
    """Test close when the reader is stuck in read()."""

    def test_close_returns_within_close_timeout(self, sink, stuck_port_factory):
        settings = TerminalSettings(read_timeout=0.01, close_timeout=0.3)
        session = SerialSession(sink, settings, port_factory=stuck_port_factory)
        session.open("/dev/ttyUSB0")
        port = stuck_port_factory.last
        assert port.reading.wait(1.0)

        started = time.monotonic()
        session.close()
        elapsed = time.monotonic() - started

        assert 0.25 <= elapsed < 1.5
        assert session.state == SessionState.CLOSED
        assert not port.is_open
        assert port.close_count == 1
        assert f"{DIAGNOSTIC_PREFIX} Port /dev/ttyUSB0 closed" in sink.get_text()
