"""Streaming ``multipart/form-data`` encoder.

The request body is produced on a background thread and handed to the HTTP
layer through a bounded :class:`~botwire.pipe.Pipe`, so uploading a file
never requires holding more than one chunk plus the pipe buffer in memory.

Part headers are rendered with :class:`urllib3.fields.RequestField`, the
same helper ``requests`` uses for its in-memory multipart bodies.
"""

from __future__ import annotations

import threading
from typing import BinaryIO, Dict, Optional

from urllib3.fields import RequestField, guess_content_type
from urllib3.filepost import choose_boundary

from botwire.files import Upload
from botwire.pipe import DEFAULT_CAPACITY, Pipe
from core.logger import BotLogger

logger = BotLogger.get_logger()

DEFAULT_CHUNK_SIZE = 64 * 1024


class MultipartEncoder:
    """Write file parts and form fields into a pipe on a worker thread.

    Files are written first (in mapping order), then plain fields, then the
    closing boundary.  Local paths are opened by the encoder and closed when
    their part is done; caller-supplied streams are left open.

    Usage::

        encoder = MultipartEncoder({"photo": upload}, {"chat_id": "42"})
        body = encoder.stream()
        requests.post(url, data=body, headers={"Content-Type": encoder.content_type})
        encoder.wait()
    """

    def __init__(
        self,
        uploads: Dict[str, Upload],
        params: Dict[str, str],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        pipe_capacity: int = DEFAULT_CAPACITY,
        boundary: Optional[str] = None,
    ) -> None:
        self.uploads = dict(uploads)
        self.params = dict(params)
        self.chunk_size = chunk_size
        self.boundary = boundary or choose_boundary()
        self.pipe = Pipe(pipe_capacity)
        self.error: Optional[BaseException] = None
        self.chunks_read = 0
        self._thread: Optional[threading.Thread] = None

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    def stream(self) -> Pipe:
        """Start the writer thread and return the read end of the body."""
        if self._thread is not None:
            raise RuntimeError("multipart body already streaming")
        self._thread = threading.Thread(target=self._run, name="multipart-writer", daemon=True)
        self._thread.start()
        return self.pipe

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the writer thread has finished, at most *timeout* seconds.

        Returns ``False`` if the writer is still running.
        """
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    # ------------------------------------------------------------------
    #  Writer thread
    # ------------------------------------------------------------------

    def _run(self) -> None:
        try:
            self._write_all()
        except Exception as exc:
            self.error = exc
            logger.warning("Multipart body aborted", extra={"fields": sorted(self.uploads), "error": str(exc)})
            self.pipe.close_with_error(exc)
        else:
            self.pipe.close()

    def _write_all(self) -> None:
        for field, upload in self.uploads.items():
            if upload.on_disk:
                with open(upload.source, "rb") as fh:
                    self._write_file(field, upload.filename, fh)
            else:
                self._write_file(field, upload.filename, upload.source)

        for name, value in self.params.items():
            part = RequestField(name=name, data=value)
            part.make_multipart()
            self._write_part_header(part)
            self.pipe.write(value.encode("utf-8"))
            self.pipe.write(b"\r\n")

        self.pipe.write(f"--{self.boundary}--\r\n".encode("latin-1"))

    def _write_file(self, field: str, filename: str, reader: BinaryIO) -> None:
        part = RequestField(name=field, data=b"", filename=filename)
        part.make_multipart(content_type=guess_content_type(filename))
        self._write_part_header(part)
        while True:
            chunk = reader.read(self.chunk_size)
            self.chunks_read += 1
            if not chunk:
                break
            self.pipe.write(chunk)
        self.pipe.write(b"\r\n")

    def _write_part_header(self, part: RequestField) -> None:
        self.pipe.write(f"--{self.boundary}\r\n".encode("latin-1"))
        self.pipe.write(part.render_headers().encode("utf-8"))
