"""BotClient -- request dispatch and file upload for the Bot API.

Two dispatch paths cover every endpoint:

- :meth:`BotClient.raw` posts a JSON payload.
- :meth:`BotClient.send_files` classifies file arguments first and only
  builds a streamed ``multipart/form-data`` body when at least one of them
  has to be uploaded; otherwise it degrades to :meth:`BotClient.raw`.

Both return the raw response bytes after the envelope has been checked, so
wrapper methods decode ``result`` into their own model with
:func:`~botwire.envelope.decode_result`.  HTTP calls use the module-level
``requests.post`` with ``Connection: close``: no connection is reused across
calls, and one client can be shared freely between threads.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Mapping, Optional, Union

import requests

from botwire.envelope import decode_result, extract_ok
from botwire.exceptions import APIException, InternalServerError, TransportError
from botwire.files import InputFile, Upload, classify, stringify, to_jsonable
from botwire.models import File, MaskPosition, Message, StickerSet, Update, User
from botwire.multipart import DEFAULT_CHUNK_SIZE, MultipartEncoder
from botwire.pipe import DEFAULT_CAPACITY, PipeClosedError
from core.logger import BotLogger

logger = BotLogger.get_logger()

DEFAULT_API_URL = "https://api.telegram.org"

# Seconds added on top of a long-poll timeout for the HTTP read.
_POLL_MARGIN = 5


class BotClient:
    """Synchronous Bot API client bound to one bot token.

    Args:
        token: Bot token, inserted into every URL as ``/bot<token>/``.
        api_url: Server base URL.
        timeout: ``requests`` timeout in seconds for every call.
        verbose: Log each JSON request and its response.
        chunk_size: Size of each read from an uploaded file.
        pipe_capacity: Bytes buffered between the multipart writer and
            the HTTP layer.
    """

    _DEFAULT_TIMEOUT: int = 30

    def __init__(
        self,
        token: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = _DEFAULT_TIMEOUT,
        verbose: bool = False,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        pipe_capacity: int = DEFAULT_CAPACITY,
    ) -> None:
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._chunk_size = chunk_size
        self._pipe_capacity = pipe_capacity
        self.verbose = verbose

    # ------------------------------------------------------------------
    #  Dispatch
    # ------------------------------------------------------------------

    def _url(self, method: str) -> str:
        return f"{self._api_url}/bot{self._token}/{method}"

    def raw(self, method: str, payload: Any = None, timeout: Optional[float] = None) -> bytes:
        """POST *payload* as JSON to *method* and return the response bytes.

        *timeout* overrides the client's request timeout for this call.

        Raises:
            TransportError: The request could not be completed.
            DecodeError: The response is not a JSON envelope.
            APIException: The envelope reports a failure.
        """
        body = json.dumps(to_jsonable(payload if payload is not None else {}), ensure_ascii=False)
        try:
            response = requests.post(
                self._url(method),
                data=body.encode("utf-8"),
                headers={"Content-Type": "application/json", "Connection": "close"},
                timeout=timeout if timeout is not None else self._timeout,
            )
        except requests.RequestException as exc:
            logger.error("Bot API request failed", extra={"api_method": method, "error": str(exc)})
            raise TransportError(method, exc) from exc

        try:
            data = response.content
        finally:
            response.close()

        if self.verbose:
            self._log_exchange(method, payload, data)
        return self._check(method, data)

    def send_files(
        self,
        method: str,
        files: Mapping[str, Optional[InputFile]],
        params: Optional[Mapping[str, str]] = None,
    ) -> bytes:
        """Call *method* with file arguments, uploading them when needed.

        Files that resolve to a ``file_id`` or URL become plain parameters;
        if nothing is left to upload the call goes through :meth:`raw`.

        Raises:
            ConfigurationError: A file reference is empty or malformed.
            InternalServerError: The server answered a multipart call with
                HTTP 500 (the body is not decoded).
            TransportError, DecodeError, APIException: As for :meth:`raw`.
        """
        fields: Dict[str, str] = dict(params or {})
        uploads: Dict[str, Upload] = {}
        for name, ref in files.items():
            routed = classify(name, ref)
            if isinstance(routed, Upload):
                uploads[name] = routed
            else:
                fields[name] = routed

        if not uploads:
            return self.raw(method, fields)

        encoder = MultipartEncoder(uploads, fields, self._chunk_size, self._pipe_capacity)
        logger.debug("Uploading files", extra={"api_method": method, "fields": sorted(uploads)})
        body = encoder.stream()
        try:
            response = requests.post(
                self._url(method),
                data=body,
                headers={"Content-Type": encoder.content_type, "Connection": "close"},
                timeout=self._timeout,
            )
        except (requests.RequestException, OSError) as exc:
            body.abort(exc)
            self._join_writer(method, encoder)
            cause = encoder.error if _encoder_failed(encoder.error) else exc
            logger.error("Bot API upload failed", extra={"api_method": method, "error": str(cause)})
            raise TransportError(method, cause) from cause
        else:
            # Unblocks the writer if the server answered before reading it all.
            body.abort()
            self._join_writer(method, encoder)
        finally:
            body.abort()

        try:
            if response.status_code == requests.codes.internal_server_error:
                logger.error("Bot API returned HTTP 500", extra={"api_method": method})
                raise InternalServerError()
            data = response.content
        finally:
            response.close()

        return self._check(method, data)

    async def araw(self, method: str, payload: Any = None, timeout: Optional[float] = None) -> bytes:
        """Run :meth:`raw` in a worker thread to keep the event loop free."""
        return await asyncio.to_thread(self.raw, method, payload, timeout)

    async def asend_files(
        self,
        method: str,
        files: Mapping[str, Optional[InputFile]],
        params: Optional[Mapping[str, str]] = None,
    ) -> bytes:
        """Run :meth:`send_files` in a worker thread to keep the event loop free."""
        return await asyncio.to_thread(self.send_files, method, files, params)

    def _join_writer(self, method: str, encoder: MultipartEncoder) -> None:
        # A caller stream blocked in read() cannot be interrupted; leave it behind.
        if not encoder.wait(self._timeout):
            logger.warning(
                "Multipart writer still running after abort",
                extra={"api_method": method, "fields": sorted(encoder.uploads)},
            )

    def _check(self, method: str, data: bytes) -> bytes:
        try:
            extract_ok(data)
        except APIException as exc:
            logger.warning(
                "Bot API call rejected",
                extra={"api_method": method, "error_code": exc.code, "description": exc.description},
            )
            raise
        return data

    def _log_exchange(self, method: str, payload: Any, data: bytes) -> None:
        logger.info(
            "[verbose] sent request",
            extra={"api_method": method, "params": _pretty(payload), "response": _pretty_bytes(data)},
        )

    # ------------------------------------------------------------------
    #  Endpoint wrappers
    # ------------------------------------------------------------------

    def get_me(self) -> User:
        """A simple method for testing the bot token.  Returns the bot as a :class:`User`."""
        return decode_result(self.raw("getMe"), User)

    def get_updates(
        self,
        offset: int = 0,
        limit: int = 0,
        timeout: int = 0,
        allowed_updates: Optional[List[str]] = None,
    ) -> List[Update]:
        """Receive incoming updates using long polling.

        *timeout* is the long-poll duration in seconds; the HTTP request is
        given at least that long plus a margin.  A zero *limit* leaves the
        server default in place.
        """
        params = {"offset": str(offset), "timeout": str(timeout)}
        if limit:
            params["limit"] = str(limit)
        if allowed_updates:
            params["allowed_updates"] = stringify(allowed_updates)
        request_timeout = max(self._timeout, timeout + _POLL_MARGIN)
        return decode_result(self.raw("getUpdates", params, timeout=request_timeout), List[Update])

    def send_message(self, chat_id: Union[int, str], text: str, **options: Any) -> Message:
        """Send a text message.  Extra keyword arguments are sent as-is
        (``parse_mode``, ``reply_markup``, ``disable_notification``, ...)."""
        params = {"chat_id": str(chat_id), "text": text}
        _embed_options(params, options)
        return decode_result(self.raw("sendMessage", params), Message)

    def send_media(
        self,
        kind: str,
        chat_id: Union[int, str],
        media: InputFile,
        files: Optional[Mapping[str, Optional[InputFile]]] = None,
        **options: Any,
    ) -> Message:
        """Send a media message such as ``photo``, ``document`` or ``videoNote``.

        The method name is ``send`` + the capitalised *kind*; the file field
        uses the snake_case spelling (``video_note``).  Additional files,
        e.g. a ``thumb``, go in *files*.
        """
        method = "send" + kind[:1].upper() + kind[1:]
        field = "video_note" if kind == "videoNote" else kind

        send: Dict[str, Optional[InputFile]] = {field: media}
        send.update(files or {})

        params = {"chat_id": str(chat_id)}
        _embed_options(params, options)
        return decode_result(self.send_files(method, send, params), Message)

    # ── Stickers ─────────────────────────────────────────────────────────

    def upload_sticker_file(self, user_id: int, png_sticker: InputFile) -> File:
        """Upload a PNG sticker for later use in sticker set methods."""
        data = self.send_files("uploadStickerFile", {"png_sticker": png_sticker}, {"user_id": str(user_id)})
        return decode_result(data, File)

    def get_sticker_set(self, name: str) -> StickerSet:
        return decode_result(self.raw("getStickerSet", {"name": name}), StickerSet)

    def create_new_sticker_set(
        self,
        user_id: int,
        name: str,
        title: str,
        emojis: str,
        png_sticker: Optional[InputFile] = None,
        tgs_sticker: Optional[InputFile] = None,
        contains_masks: bool = False,
        mask_position: Optional[MaskPosition] = None,
    ) -> bool:
        """Create a sticker set owned by *user_id* with a first PNG and/or TGS sticker."""
        files: Dict[str, Optional[InputFile]] = {}
        if png_sticker is not None:
            files["png_sticker"] = png_sticker
        if tgs_sticker is not None:
            files["tgs_sticker"] = tgs_sticker

        params = {
            "user_id": str(user_id),
            "name": name,
            "title": title,
            "emojis": emojis,
            "contains_masks": stringify(contains_masks),
        }
        if mask_position is not None:
            params["mask_position"] = stringify(mask_position)

        return decode_result(self.send_files("createNewStickerSet", files, params), bool)

    def add_sticker_to_set(
        self,
        user_id: int,
        name: str,
        emojis: str,
        png_sticker: Optional[InputFile] = None,
        tgs_sticker: Optional[InputFile] = None,
        mask_position: Optional[MaskPosition] = None,
    ) -> bool:
        """Add a sticker to a set created by the bot.  A PNG sticker wins over a TGS one."""
        files: Dict[str, Optional[InputFile]] = {}
        if png_sticker is not None:
            files["png_sticker"] = png_sticker
        elif tgs_sticker is not None:
            files["tgs_sticker"] = tgs_sticker

        params = {"user_id": str(user_id), "name": name, "emojis": emojis}
        if mask_position is not None:
            params["mask_position"] = stringify(mask_position)

        return decode_result(self.send_files("addStickerToSet", files, params), bool)

    def set_sticker_position_in_set(self, sticker: str, position: int) -> bool:
        params = {"sticker": sticker, "position": str(position)}
        return decode_result(self.raw("setStickerPositionInSet", params), bool)

    def delete_sticker_from_set(self, sticker: str) -> bool:
        return decode_result(self.raw("deleteStickerFromSet", {"sticker": sticker}), bool)

    def set_sticker_set_thumb(self, user_id: int, name: str, thumb: Optional[InputFile] = None) -> bool:
        """Set the thumbnail of a sticker set.

        The thumbnail is a 100x100 PNG up to 128 KB or a TGS animation up to
        32 KB; animated thumbnails cannot be passed as an HTTP URL.
        """
        files: Dict[str, Optional[InputFile]] = {}
        if thumb is not None:
            files["thumb"] = thumb
        params = {"name": name, "user_id": str(user_id)}
        return decode_result(self.send_files("setStickerSetThumb", files, params), bool)


# ─────────────────────────────────────────────────────────────────────────────
# Helpers and the lazily created default client
# ─────────────────────────────────────────────────────────────────────────────

_default_client: BotClient | None = None


def get_default_client() -> BotClient:
    """Return (and lazily create) a client configured from :mod:`config`.

    Raises:
        EnvironmentError: If ``BOT_TOKEN`` is not set.
    """
    global _default_client
    if _default_client is None:
        import config  # deferred so importing the SDK never reads the environment

        if not config.BOT_TOKEN:
            raise EnvironmentError("BOT_TOKEN environment variable is not set or is empty.")
        _default_client = BotClient(
            config.BOT_TOKEN,
            api_url=config.API_URL,
            timeout=config.REQUEST_TIMEOUT,
            verbose=config.VERBOSE,
            chunk_size=config.UPLOAD_CHUNK_SIZE,
            pipe_capacity=config.PIPE_CAPACITY,
        )
    return _default_client


def _encoder_failed(error: Optional[BaseException]) -> bool:
    """True when the writer failed on its own rather than from the pipe being aborted."""
    return error is not None and not isinstance(error, PipeClosedError)


def _embed_options(params: Dict[str, str], options: Mapping[str, Any]) -> None:
    for key, value in options.items():
        if value is not None:
            params[key] = stringify(value)


def _unfold(value: Any) -> Any:
    """Expand string values that hold JSON objects so they print nested."""
    if isinstance(value, dict):
        return {key: _unfold(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_unfold(item) for item in value]
    if isinstance(value, str) and value[:1] in ("{", "["):
        try:
            return _unfold(json.loads(value))
        except ValueError:
            return value
    return value


def _pretty(payload: Any) -> str:
    return json.dumps(_unfold(to_jsonable(payload)), indent="\t", ensure_ascii=False)


def _pretty_bytes(data: bytes) -> str:
    try:
        return _pretty(json.loads(data))
    except ValueError:
        return data.decode("utf-8", errors="replace")
