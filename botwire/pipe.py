"""Bounded in-memory byte pipe connecting a writer thread to a reader.

The multipart encoder writes into one end while ``requests`` reads the
request body from the other.  At most ``capacity`` bytes are buffered:
``write`` blocks while the buffer is full and ``read`` blocks while it is
empty.  Either side can terminate the exchange with an error that the
other side observes on its next call.
"""

from __future__ import annotations

import threading
from typing import Iterator, Optional

DEFAULT_CAPACITY = 64 * 1024


class PipeClosedError(OSError):
    """Raised by a pipe operation after the other end failed or went away."""


class Pipe:
    """Thread-safe bounded byte pipe.

    Writer side: :meth:`write`, :meth:`close`, :meth:`close_with_error`.
    Reader side: :meth:`read`, iteration, :meth:`abort`.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("pipe capacity must be positive")
        self.capacity = capacity
        self.high_water = 0
        self._buffer = bytearray()
        self._cond = threading.Condition()
        self._write_closed = False
        self._write_error: Optional[BaseException] = None
        self._read_error: Optional[BaseException] = None

    # ------------------------------------------------------------------
    #  Writer side
    # ------------------------------------------------------------------

    def write(self, data: bytes) -> int:
        """Append *data*, blocking until the reader has made room for it all."""
        view = memoryview(data)
        total = len(view)
        while view:
            with self._cond:
                while len(self._buffer) >= self.capacity and self._read_error is None:
                    self._cond.wait()
                if self._read_error is not None:
                    raise PipeClosedError("read end of pipe closed") from self._read_error
                if self._write_closed:
                    raise PipeClosedError("write on closed pipe")
                room = self.capacity - len(self._buffer)
                self._buffer += view[:room]
                view = view[room:]
                self.high_water = max(self.high_water, len(self._buffer))
                self._cond.notify_all()
        return total

    def close(self) -> None:
        """Signal end of data; the reader drains the buffer then sees EOF."""
        self.close_with_error(None)

    def close_with_error(self, error: Optional[BaseException]) -> None:
        """Close the write end.  A non-``None`` *error* makes reads fail."""
        with self._cond:
            if self._write_closed:
                return
            self._write_closed = True
            self._write_error = error
            self._cond.notify_all()

    # ------------------------------------------------------------------
    #  Reader side
    # ------------------------------------------------------------------

    def read(self, size: int = -1) -> bytes:
        """Return up to *size* buffered bytes, ``b""`` at a clean end of data.

        Raises:
            PipeClosedError: The writer closed the pipe with an error, or
                the read end was aborted.
        """
        with self._cond:
            while not self._buffer and not self._write_closed and self._read_error is None:
                self._cond.wait()
            if self._read_error is not None:
                raise PipeClosedError("read on aborted pipe") from self._read_error
            if self._write_error is not None:
                # Buffered bytes are discarded: a failed body must not look complete.
                raise PipeClosedError(f"pipe writer failed: {self._write_error}") from self._write_error
            if not self._buffer:
                return b""
            if size is None or size < 0 or size >= len(self._buffer):
                chunk = bytes(self._buffer)
                self._buffer.clear()
            else:
                chunk = bytes(self._buffer[:size])
                del self._buffer[:size]
            self._cond.notify_all()
            return chunk

    def __iter__(self) -> Iterator[bytes]:
        while True:
            chunk = self.read(self.capacity)
            if not chunk:
                return
            yield chunk

    def abort(self, error: Optional[BaseException] = None) -> None:
        """Close the read end; pending and future writes raise."""
        with self._cond:
            if self._read_error is not None:
                return
            self._read_error = error or PipeClosedError("reader closed")
            self._buffer.clear()
            self._cond.notify_all()
