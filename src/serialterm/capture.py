"""Capture sink and capture persistence.

The capture sink is the text surface that shows device output. It doubles
as the error log: diagnostics are appended on their own prefixed lines.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Protocol, runtime_checkable

from serialterm.exceptions import CaptureSaveError
from serialterm.utils.logging import get_logger

logger = get_logger(__name__)

DIAGNOSTIC_PREFIX = "[serialterm]"


@runtime_checkable
class CaptureSink(Protocol):
    """What the session core needs from an output surface."""

    def append(self, text: str) -> None: ...

    def clear(self) -> None: ...

    def get_text(self) -> str: ...


class CaptureBuffer:
    """In-memory capture sink, safe to append to from the relay thread.

    Args:
        on_append: Called with each appended chunk after it is stored,
            e.g. to echo it to a console. Runs on the appending thread.
    """

    def __init__(self, on_append: Callable[[str], None] | None = None) -> None:
        self._lock = threading.Lock()
        self._parts: list[str] = []
        self._on_append = on_append

    def append(self, text: str) -> None:
        if not text:
            return
        with self._lock:
            self._parts.append(text)
        if self._on_append is not None:
            self._on_append(text)

    def append_line(self, text: str) -> None:
        """Append text on a line of its own, breaking any partial line first."""
        with self._lock:
            last = self._parts[-1] if self._parts else ""
            if last and not last.endswith("\n"):
                text = "\n" + text
            self._parts.append(text)
        if self._on_append is not None:
            self._on_append(text)

    def clear(self) -> None:
        with self._lock:
            self._parts.clear()

    def get_text(self) -> str:
        with self._lock:
            text = "".join(self._parts)
            # Collapse so repeated reads stay cheap
            self._parts = [text] if text else []
            return text


def append_diagnostic(sink: CaptureSink, message: str) -> None:
    """Append a status or error line that stands apart from device data."""
    line = f"{DIAGNOSTIC_PREFIX} {message}\n"
    append_line = getattr(sink, "append_line", None)
    if append_line is not None:
        append_line(line)
        return
    text = sink.get_text()
    lead = "" if not text or text.endswith("\n") else "\n"
    sink.append(lead + line)


def write_capture(path: str | Path, text: str) -> None:
    """Write capture text to path as UTF-8 with no added framing.

    Raises:
        CaptureSaveError: If the file cannot be written.
    """
    target = Path(path)
    try:
        target.write_bytes(text.encode("utf-8"))
    except OSError as exc:
        raise CaptureSaveError(str(target), exc) from exc
    logger.info("capture_saved", path=str(target), size=len(text))


class CaptureFile:
    """Save / Save As for a capture sink.

    Remembers the last path written so later saves go to the same file.
    """

    def __init__(self, sink: CaptureSink) -> None:
        self._sink = sink
        self._path: Path | None = None

    @property
    def path(self) -> Path | None:
        return self._path

    def save(self, path: str | Path | None = None) -> Path:
        """Write to the remembered path, or switch to path when one is given.

        An existing file at the remembered path is overwritten. Saving to
        any other path behaves like save_as without overwrite.

        Raises:
            ValueError: If no path is remembered and none is given.
            FileExistsError: If a new path would overwrite a file.
            CaptureSaveError: If the file cannot be written.
        """
        if path is not None and Path(path) != self._path:
            return self.save_as(path)
        if self._path is None:
            raise ValueError("No file chosen yet; use save as with a path")
        write_capture(self._path, self._sink.get_text())
        return self._path

    def save_as(self, path: str | Path, overwrite: bool = False) -> Path:
        """Write to a new path and remember it.

        Raises:
            FileExistsError: If path exists and overwrite is False.
            CaptureSaveError: If the file cannot be written.
        """
        target = Path(path)
        if target.exists() and not overwrite:
            raise FileExistsError(f"Chosen file name ({target}) already exists")
        write_capture(target, self._sink.get_text())
        self._path = target
        return target
