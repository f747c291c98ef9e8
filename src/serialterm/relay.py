"""Inbound byte relay from an open serial port to a capture sink.

A reader thread pulls whatever bytes the port has and queues them as
chunks. A delivery thread drains the queue in order, decodes the bytes
incrementally and appends the text to the sink. The reader never blocks
the foreground thread that sends.
"""

from __future__ import annotations

import codecs
import queue
import threading
import time
from typing import Protocol

from serialterm.capture import CaptureSink, append_diagnostic
from serialterm.exceptions import ReadFailure
from serialterm.utils.logging import get_logger

logger = get_logger(__name__)


class ReadablePort(Protocol):
    """The part of serial.Serial the relay reads through."""

    @property
    def in_waiting(self) -> int: ...

    def read(self, size: int = 1) -> bytes: ...


class InboundRelay:
    """Forward bytes from one open port to a sink until stopped.

    Args:
        port: An open serial port with a read timeout set, so reads
            return periodically and the stop flag gets checked.
        sink: Receives decoded text and diagnostics.
        descriptor: Port name, used in diagnostics and logs.
        encoding: Decoding for inbound bytes; undecodable bytes are replaced.
        queue_size: Max chunks held between reader and delivery. When full
            the reader waits instead of dropping data.
        poll_interval: How often blocked waits re-check the stop flag.
    """

    def __init__(
        self,
        port: ReadablePort,
        sink: CaptureSink,
        descriptor: str,
        *,
        encoding: str = "utf-8",
        queue_size: int = 1024,
        poll_interval: float = 0.05,
    ) -> None:
        self._port = port
        self._sink = sink
        self._descriptor = descriptor
        self._encoding = encoding
        self._poll_interval = poll_interval
        self._queue: queue.Queue[bytes | ReadFailure] = queue.Queue(maxsize=queue_size)
        self._stop_event = threading.Event()
        self._reader_done = threading.Event()
        self._lock = threading.Lock()
        self._error: ReadFailure | None = None
        self._bytes_received = 0
        self._reader: threading.Thread | None = None
        self._deliverer: threading.Thread | None = None

    @property
    def descriptor(self) -> str:
        return self._descriptor

    @property
    def is_running(self) -> bool:
        return self._reader is not None and self._reader.is_alive()

    @property
    def error(self) -> ReadFailure | None:
        """The read failure that stopped the relay, if any."""
        with self._lock:
            return self._error

    @property
    def bytes_received(self) -> int:
        with self._lock:
            return self._bytes_received

    def start(self) -> None:
        """Start the reader and delivery threads.

        Raises:
            RuntimeError: If the relay was already started or a thread
                cannot be created.
        """
        if self._reader is not None:
            raise RuntimeError("Relay already started")

        self._deliverer = threading.Thread(
            target=self._deliver_loop,
            name=f"serialterm-deliver-{self._descriptor}",
            daemon=True,
        )
        self._reader = threading.Thread(
            target=self._read_loop,
            name=f"serialterm-read-{self._descriptor}",
            daemon=True,
        )
        self._deliverer.start()
        try:
            self._reader.start()
        except RuntimeError:
            self._reader_done.set()
            self._stop_event.set()
            raise
        logger.debug("relay_started", port=self._descriptor)

    def stop(self, timeout: float = 2.0) -> bool:
        """Stop reading and wait up to timeout seconds for both threads.

        Chunks already queued are still delivered. Returns False if a
        thread did not finish in time; the caller may release the port
        anyway, which unblocks a stuck read.
        """
        self._stop_event.set()
        cancel_read = getattr(self._port, "cancel_read", None)
        if cancel_read is not None:
            try:
                cancel_read()
            except Exception as exc:
                logger.debug("relay_cancel_read_failed", port=self._descriptor, error=str(exc))

        deadline = time.monotonic() + timeout
        for thread in (self._reader, self._deliverer):
            if thread is not None and thread is not threading.current_thread():
                thread.join(max(0.0, deadline - time.monotonic()))

        stuck = [t.name for t in (self._reader, self._deliverer) if t is not None and t.is_alive()]
        if stuck:
            logger.warning("relay_stop_timeout", port=self._descriptor, threads=stuck, timeout=timeout)
            return False
        logger.debug("relay_stopped", port=self._descriptor, bytes_received=self.bytes_received)
        return True

    # --- internal ---

    def _read_loop(self) -> None:
        """Reader thread: move bytes from the port onto the queue."""
        try:
            while not self._stop_event.is_set():
                try:
                    data = self._port.read(self._port.in_waiting or 1)
                except Exception as exc:
                    if self._stop_event.is_set():
                        # Port closed or read cancelled underneath us
                        break
                    failure = ReadFailure(self._descriptor, exc)
                    with self._lock:
                        self._error = failure
                    logger.warning("relay_read_failed", port=self._descriptor, error=str(exc))
                    self._enqueue(failure)
                    break
                if data:
                    with self._lock:
                        self._bytes_received += len(data)
                    if not self._enqueue(data):
                        logger.debug("relay_chunk_discarded_on_stop", port=self._descriptor, size=len(data))
                        break
        finally:
            self._reader_done.set()

    def _enqueue(self, item: bytes | ReadFailure) -> bool:
        """Put item on the queue, waiting while it is full.

        Returns False if the relay was stopped before there was room.
        """
        while True:
            try:
                self._queue.put(item, timeout=self._poll_interval)
                return True
            except queue.Full:
                if self._stop_event.is_set():
                    return False

    def _deliver_loop(self) -> None:
        """Delivery thread: decode queued chunks and append them in order."""
        decoder = codecs.getincrementaldecoder(self._encoding)("replace")
        try:
            while True:
                try:
                    item = self._queue.get(timeout=self._poll_interval)
                except queue.Empty:
                    if self._reader_done.is_set() and self._queue.empty():
                        break
                    continue

                if isinstance(item, ReadFailure):
                    self._sink.append(decoder.decode(b"", True))
                    append_diagnostic(self._sink, str(item))
                    continue

                text = decoder.decode(item)
                if text:
                    self._sink.append(text)

            self._sink.append(decoder.decode(b"", True))
        except Exception:
            logger.exception("relay_delivery_failed", port=self._descriptor)
            self._stop_event.set()
