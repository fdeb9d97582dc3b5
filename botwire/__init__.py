"""botwire — Bot API client: JSON dispatch, streamed file uploads, typed errors.

:class:`BotClient` posts JSON payloads with :meth:`~BotClient.raw` and
file-bearing calls with :meth:`~BotClient.send_files`, which only builds a
multipart body when something actually needs uploading.

Usage::

    from botwire import BotClient, LocalFile, RemoteFile

    client = BotClient("123:ABC")
    client.send_message(42, "hello")
    client.send_media("photo", 42, LocalFile("cat.png"), caption="cat")
    client.send_media("photo", 42, RemoteFile("AgACAgIAAx..."))
"""

from botwire.client import BotClient, get_default_client
from botwire.envelope import Envelope, decode_result, extract_ok, extract_result
from botwire.exceptions import (
    APIException,
    BlockedByUserError,
    BotAPIError,
    ChatNotFoundError,
    ConfigurationError,
    DecodeError,
    EntityTooLargeError,
    FloodError,
    ForbiddenError,
    InternalServerError,
    KickedFromGroupError,
    MessageNotModifiedError,
    NotFoundError,
    TransportError,
    UnauthorizedError,
)
from botwire.files import FileContent, InputFile, LocalFile, RemoteFile, RemoteURL, input_file

__all__ = [
    # Client
    "BotClient",
    "get_default_client",
    # Envelope
    "Envelope",
    "extract_ok",
    "extract_result",
    "decode_result",
    # File references
    "InputFile",
    "RemoteFile",
    "RemoteURL",
    "LocalFile",
    "FileContent",
    "input_file",
    # Errors
    "BotAPIError",
    "TransportError",
    "DecodeError",
    "ConfigurationError",
    "APIException",
    "FloodError",
    "UnauthorizedError",
    "ForbiddenError",
    "BlockedByUserError",
    "KickedFromGroupError",
    "NotFoundError",
    "ChatNotFoundError",
    "MessageNotModifiedError",
    "EntityTooLargeError",
    "InternalServerError",
]
