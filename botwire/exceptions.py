"""Exception hierarchy for the botwire Bot API client.

Every failure a dispatch call can produce derives from :class:`BotAPIError`:

- :class:`TransportError` — the request never produced a response
  (connection failure, timeout, aborted upload stream).
- :class:`DecodeError` — the response body is not a JSON envelope.
- :class:`ConfigurationError` — the caller passed an unusable file argument.
- :class:`APIException` — the envelope reported ``ok: false``.  Its subclass
  is chosen from :data:`ERROR_KINDS` by matching the description text.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional, Tuple, Type


class BotAPIError(Exception):
    """Base class for every error raised by the client."""


class TransportError(BotAPIError):
    """The HTTP exchange for *method* failed before a response was read.

    Attributes:
        method: Bot API method that was being called.
        cause: The underlying ``requests`` or I/O exception.
    """

    def __init__(self, method: str, cause: BaseException) -> None:
        self.method = method
        self.cause = cause
        super().__init__(f"{method}: transport error: {cause}")


class DecodeError(BotAPIError):
    """The response body could not be decoded as a Bot API envelope."""

    def __init__(self, data: bytes, reason: str) -> None:
        self.data = data
        self.reason = reason
        super().__init__(f"invalid response envelope: {reason}")


class ConfigurationError(BotAPIError, ValueError):
    """A file argument carries nothing that can be sent."""

    def __init__(self, field: str, message: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message or f"file for field {field!r} doesn't exist")


class APIException(BotAPIError):
    """The Bot API answered with ``ok: false``.

    Attributes:
        code: ``error_code`` from the envelope, kept exactly as received.
        description: Human-readable ``description`` from the envelope.
        parameters: Optional ``parameters`` object (``retry_after`` etc.).
    """

    def __init__(self, code: int, description: str, parameters: Optional[Dict[str, Any]] = None) -> None:
        self.code = code
        self.description = description
        self.parameters = parameters or {}
        super().__init__(f"API error {code}: {description}")


class FloodError(APIException):
    """Rate limited; :attr:`retry_after` holds the advised wait in seconds."""

    _RETRY_RX = re.compile(r"retry after (\d+)")

    def __init__(self, code: int, description: str, parameters: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(code, description, parameters)
        retry_after = self.parameters.get("retry_after")
        if retry_after is None:
            match = self._RETRY_RX.search(description)
            retry_after = int(match.group(1)) if match else None
        self.retry_after: Optional[int] = retry_after


class UnauthorizedError(APIException):
    """The bot token was rejected."""


class ForbiddenError(APIException):
    """The bot is not allowed to perform the action."""


class BlockedByUserError(ForbiddenError):
    pass


class KickedFromGroupError(ForbiddenError):
    pass


class NotFoundError(APIException):
    """Unknown method or object."""


class ChatNotFoundError(NotFoundError):
    pass


class MessageNotModifiedError(APIException):
    """An edit request carried exactly the current message content."""


class EntityTooLargeError(APIException):
    """The uploaded file exceeds the server's size limit."""


class InternalServerError(APIException):
    """The server failed with HTTP 500."""

    def __init__(self, code: int = 500, description: str = "Internal Server Error", parameters: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(code, description, parameters)


# ── Description → error kind lookup ─────────────────────────────────────────
# Ordered: the first substring found in the description wins, so the more
# specific wording must come before the generic one.

ERROR_KINDS: Tuple[Tuple[str, Type[APIException]], ...] = (
    ("Too Many Requests", FloodError),
    ("bot was blocked by the user", BlockedByUserError),
    ("bot was kicked from the", KickedFromGroupError),
    ("Forbidden", ForbiddenError),
    ("Unauthorized", UnauthorizedError),
    ("chat not found", ChatNotFoundError),
    ("message is not modified", MessageNotModifiedError),
    ("Request Entity Too Large", EntityTooLargeError),
    ("Not Found", NotFoundError),
    ("Internal Server Error", InternalServerError),
)


def error_kind(description: str) -> Optional[Type[APIException]]:
    """Return the error class registered for *description*, if any."""
    for fragment, kind in ERROR_KINDS:
        if fragment in description:
            return kind
    return None


def api_error(code: int, description: str, parameters: Optional[Dict[str, Any]] = None) -> APIException:
    """Build the most specific :class:`APIException` for an error envelope.

    Unmatched descriptions with code 429 are still flood errors; anything
    else falls back to a plain :class:`APIException` carrying the raw code
    and description.
    """
    kind = error_kind(description)
    if kind is None:
        kind = FloodError if code == 429 else APIException
    return kind(code, description, parameters)
