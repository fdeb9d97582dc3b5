"""Tests for the streaming multipart encoder."""

import io
import sys
import os
from email import policy
from email.parser import BytesParser

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from botwire.files import Upload
from botwire.multipart import MultipartEncoder
from botwire.pipe import PipeClosedError


def parse_multipart(content_type: str, body: bytes) -> dict:
    """Decode a multipart body with the stdlib MIME parser.

    Returns ``{name: (filename, content_type, payload_bytes)}``.
    """
    message = BytesParser(policy=policy.HTTP).parsebytes(
        b"Content-Type: " + content_type.encode("latin-1") + b"\r\n\r\n" + body
    )
    assert message.is_multipart()
    parts = {}
    for part in message.iter_parts():
        name = part.get_param("name", header="content-disposition")
        parts[name] = (part.get_filename(), part.get_content_type(), part.get_payload(decode=True))
    return parts


class _CountingReader(io.BytesIO):
    """BytesIO that records the size of every read request."""

    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.requested: list = []

    def read(self, size: int = -1) -> bytes:  # type: ignore[override]
        self.requested.append(size)
        return super().read(size)


class _FailingReader(io.RawIOBase):
    """Yields one chunk, then fails as if the disk went away."""

    def __init__(self) -> None:
        self.calls = 0

    def read(self, size: int = -1) -> bytes:  # type: ignore[override]
        self.calls += 1
        if self.calls == 1:
            return b"first-chunk"
        raise OSError("device not readable")


# ── Body layout ──────────────────────────────────────────────────────────────


class TestMultipartBody:
    """The encoded body decodes back to the original fields."""

    def test_round_trip(self) -> None:
        file_bytes = b"\x89PNG-sticker-\x00\x01\x02\xff"
        encoder = MultipartEncoder(
            {"png_sticker": Upload("png_sticker", "sticker.png", io.BytesIO(file_bytes))},
            {"user_id": "42", "emojis": "\U0001F600", "name": "set_by_bot"},
        )
        body = b"".join(encoder.stream())
        encoder.wait()
        assert encoder.error is None

        parts = parse_multipart(encoder.content_type, body)
        assert set(parts) == {"png_sticker", "user_id", "emojis", "name"}
        filename, content_type, payload = parts["png_sticker"]
        assert filename == "sticker.png"
        assert content_type == "image/png"
        assert payload == file_bytes
        assert parts["user_id"][2] == b"42"
        assert parts["emojis"][2].decode("utf-8") == "\U0001F600"
        assert parts["name"][0] is None

    def test_content_type_carries_boundary(self) -> None:
        encoder = MultipartEncoder({}, {}, boundary="xyz")
        assert encoder.content_type == "multipart/form-data; boundary=xyz"

    def test_body_ends_with_closing_boundary(self) -> None:
        encoder = MultipartEncoder({}, {"a": "b"}, boundary="xyz")
        body = b"".join(encoder.stream())
        assert body.startswith(b"--xyz\r\n")
        assert body.endswith(b"--xyz--\r\n")

    def test_local_file_is_read_and_closed(self, tmp_path) -> None:
        path = tmp_path / "doc.txt"
        path.write_bytes(b"hello from disk")
        encoder = MultipartEncoder({"document": Upload("document", "doc.txt", str(path))}, {"chat_id": "1"})
        body = b"".join(encoder.stream())
        encoder.wait()
        parts = parse_multipart(encoder.content_type, body)
        assert parts["document"][2] == b"hello from disk"
        # The handle is released: the file can be removed right away.
        path.unlink()

    def test_caller_stream_left_open(self) -> None:
        stream = io.BytesIO(b"data")
        encoder = MultipartEncoder({"document": Upload("document", "d.bin", stream)}, {})
        b"".join(encoder.stream())
        encoder.wait()
        assert not stream.closed

    def test_stream_twice_rejected(self) -> None:
        encoder = MultipartEncoder({}, {})
        b"".join(encoder.stream())
        with pytest.raises(RuntimeError):
            encoder.stream()


# ── Streaming behaviour ──────────────────────────────────────────────────────


class TestStreaming:
    """Memory stays bounded and failures terminate the body."""

    def test_large_file_is_chunked(self) -> None:
        size = 1024 * 1024
        chunk_size = 4096
        capacity = 8192
        reader = _CountingReader(os.urandom(size))
        encoder = MultipartEncoder(
            {"video": Upload("video", "big.mp4", reader)},
            {"chat_id": "1"},
            chunk_size=chunk_size,
            pipe_capacity=capacity,
        )
        pipe = encoder.stream()
        received = 0
        while True:
            chunk = pipe.read(1000)
            if not chunk:
                break
            assert len(chunk) <= 1000
            received += len(chunk)
        encoder.wait()

        assert encoder.error is None
        assert received > size
        assert pipe.high_water <= capacity
        assert max(reader.requested) == chunk_size
        # One read per full chunk plus the final empty read.
        assert encoder.chunks_read == size // chunk_size + 1

    def test_failure_mid_encode_terminates_body(self) -> None:
        encoder = MultipartEncoder(
            {"document": Upload("document", "doc.bin", _FailingReader())},
            {"chat_id": "1"},
        )
        with pytest.raises(PipeClosedError) as exc_info:
            b"".join(encoder.stream())
        encoder.wait()
        assert isinstance(encoder.error, OSError)
        assert str(encoder.error) == "device not readable"
        assert exc_info.value.__cause__ is encoder.error

    def test_missing_local_file_terminates_body(self, tmp_path) -> None:
        missing = str(tmp_path / "nope.png")
        encoder = MultipartEncoder({"photo": Upload("photo", "nope.png", missing)}, {})
        with pytest.raises(PipeClosedError):
            b"".join(encoder.stream())
        encoder.wait()
        assert isinstance(encoder.error, FileNotFoundError)

    def test_wait_reports_stuck_writer(self) -> None:
        encoder = MultipartEncoder({"video": Upload("video", "v.mp4", io.BytesIO(b"v" * 4096))}, {}, pipe_capacity=16)
        assert encoder.wait(0) is True  # not started
        pipe = encoder.stream()
        # Nobody reads, so the writer blocks on the full pipe.
        assert encoder.wait(0.05) is False
        pipe.abort()
        assert encoder.wait(5) is True
        assert isinstance(encoder.error, PipeClosedError)
