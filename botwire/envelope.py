"""Response envelope decoding.

Every Bot API reply is wrapped in the same JSON object::

    {"ok": true, "result": ...}
    {"ok": false, "error_code": 429, "description": "...", "parameters": {...}}

:func:`extract_ok` turns raw bytes into an :class:`Envelope` or raises the
matching error.  It knows nothing about result shapes; callers use
:func:`decode_result` to validate ``result`` into their own model.
"""

from __future__ import annotations

from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from botwire.exceptions import DecodeError, api_error

T = TypeVar("T")


class ResponseParameters(BaseModel):
    """Contains information about why a request was unsuccessful."""

    migrate_to_chat_id: Optional[int] = None
    retry_after: Optional[int] = None

    model_config = {"populate_by_name": True}


class Envelope(BaseModel):
    """The outer object of every Bot API response.

    ``ok`` defaults to ``True`` so an envelope without the flag counts as
    a success unless it carries an ``error_code``.
    """

    ok: bool = True
    error_code: Optional[int] = None
    description: Optional[str] = None
    parameters: Optional[ResponseParameters] = None
    result: Any = None

    model_config = {"populate_by_name": True}

    @property
    def failed(self) -> bool:
        return not self.ok or self.error_code is not None


def extract_ok(data: bytes) -> Envelope:
    """Decode *data* and raise if the envelope reports a failure.

    Raises:
        DecodeError: *data* is not a JSON object.
        APIException: The envelope carries ``ok: false`` or an error code.
    """
    try:
        envelope = Envelope.model_validate_json(data)
    except ValidationError as exc:
        raise DecodeError(data, _first_error(exc)) from exc

    if envelope.failed:
        parameters = envelope.parameters.model_dump(exclude_none=True) if envelope.parameters else None
        raise api_error(
            envelope.error_code if envelope.error_code is not None else 0,
            envelope.description or "",
            parameters,
        )
    return envelope


def extract_result(data: bytes) -> Any:
    """Return the ``result`` member of a successful envelope."""
    return extract_ok(data).result


def decode_result(data: bytes, shape: Type[T]) -> T:
    """Validate the ``result`` of *data* into *shape* (a model or type hint)."""
    result = extract_result(data)
    try:
        return TypeAdapter(shape).validate_python(result)
    except ValidationError as exc:
        raise DecodeError(data, _first_error(exc)) from exc


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first['msg']}" if location else first["msg"]
