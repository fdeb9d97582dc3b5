"""File references and their classification.

A file argument of a Bot API call is one of four things, modelled as a
tagged union so exactly one representation is ever present:

- :class:`RemoteFile` — a ``file_id`` of a file already on the server.
- :class:`RemoteURL` — an HTTP URL the server downloads by itself.
- :class:`LocalFile` — a path on disk, opened and streamed at send time.
- :class:`FileContent` — an open binary stream owned by the caller.

:func:`classify` turns a reference into either a plain string parameter or
an :class:`Upload` for the multipart encoder.
"""

from __future__ import annotations

import dataclasses
import json
import os
from typing import Any, BinaryIO, Optional, Union

from pydantic import BaseModel

from botwire.exceptions import ConfigurationError


@dataclasses.dataclass(frozen=True)
class RemoteFile:
    file_id: str


@dataclasses.dataclass(frozen=True)
class RemoteURL:
    url: str


@dataclasses.dataclass(frozen=True)
class LocalFile:
    path: str
    filename: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class FileContent:
    """Caller-supplied stream.  It is read but never closed by the client."""

    reader: BinaryIO
    filename: Optional[str] = None


InputFile = Union[RemoteFile, RemoteURL, LocalFile, FileContent]


@dataclasses.dataclass(frozen=True)
class Upload:
    """A file part to be written by the multipart encoder.

    ``source`` is a filesystem path (``str``) or a readable binary stream.
    """

    field: str
    filename: str
    source: Union[str, BinaryIO]

    @property
    def on_disk(self) -> bool:
        return isinstance(self.source, str)


def input_file(
    *,
    file_id: Optional[str] = None,
    url: Optional[str] = None,
    path: Optional[str] = None,
    reader: Optional[BinaryIO] = None,
    filename: Optional[str] = None,
) -> Optional[InputFile]:
    """Build a reference from loosely populated fields.

    When several fields are set the first one in the order *file_id*,
    *url*, *path*, *reader* wins.  Returns ``None`` if none is set.
    """
    if file_id:
        return RemoteFile(file_id)
    if url:
        return RemoteURL(url)
    if path:
        return LocalFile(path, filename)
    if reader is not None:
        return FileContent(reader, filename)
    return None


def classify(field: str, ref: Optional[InputFile]) -> Union[str, Upload]:
    """Route *ref* to a string parameter or to an :class:`Upload`.

    Raises:
        ConfigurationError: *ref* is ``None`` or not a file reference.
    """
    if isinstance(ref, RemoteFile):
        return ref.file_id
    if isinstance(ref, RemoteURL):
        return ref.url
    if isinstance(ref, LocalFile):
        return Upload(field, ref.filename or os.path.basename(ref.path) or field, ref.path)
    if isinstance(ref, FileContent):
        return Upload(field, ref.filename or field, ref.reader)
    if ref is None:
        raise ConfigurationError(field)
    raise ConfigurationError(field, f"file for field {field!r} should be a stream or a path, got {type(ref).__name__}")


def stringify(value: Any) -> str:
    """Flatten a parameter value to the string form the API accepts.

    Booleans become ``true``/``false``; lists, dicts and pydantic models
    become compact JSON; everything else goes through :func:`str`.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, BaseModel):
        return value.model_dump_json(exclude_none=True, by_alias=True)
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(to_jsonable(value), separators=(",", ":"), ensure_ascii=False)
    return str(value)


def to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_none=True, by_alias=True)
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value
