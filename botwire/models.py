"""Pydantic models for the Bot API entities the client decodes.

Only the objects returned by the wrapper methods in :mod:`botwire.client`
are modelled.  Unknown fields sent by the server are ignored, so newer API
versions keep validating.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class User(BaseModel):
    """This object represents a Telegram user or bot."""

    id: int
    is_bot: bool
    first_name: str
    last_name: Optional[str] = None
    username: Optional[str] = None
    language_code: Optional[str] = None
    can_join_groups: Optional[bool] = None
    can_read_all_group_messages: Optional[bool] = None
    supports_inline_queries: Optional[bool] = None

    model_config = {"populate_by_name": True}


class Chat(BaseModel):
    """This object represents a chat."""

    id: int
    type: str
    title: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    model_config = {"populate_by_name": True}


class PhotoSize(BaseModel):
    """One size of a photo or a file / sticker thumbnail."""

    file_id: str
    file_unique_id: str
    width: int
    height: int
    file_size: Optional[int] = None

    model_config = {"populate_by_name": True}


class File(BaseModel):
    """A file stored on the server.

    The content can be downloaded from
    ``<api_url>/file/bot<token>/<file_path>`` while the path is valid.
    """

    file_id: str
    file_unique_id: str
    file_size: Optional[int] = None
    file_path: Optional[str] = None

    model_config = {"populate_by_name": True}


class Document(BaseModel):
    """A general file (as opposed to photos, voice messages and audio files)."""

    file_id: str
    file_unique_id: str
    thumb: Optional["PhotoSize"] = None
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None

    model_config = {"populate_by_name": True}


class MaskPosition(BaseModel):
    """The position on faces where a mask should be placed by default."""

    point: str
    x_shift: float
    y_shift: float
    scale: float

    model_config = {"populate_by_name": True}


class Sticker(BaseModel):
    """This object represents a sticker."""

    file_id: str
    file_unique_id: str
    width: int
    height: int
    is_animated: bool
    thumb: Optional["PhotoSize"] = None
    emoji: Optional[str] = None
    set_name: Optional[str] = None
    mask_position: Optional["MaskPosition"] = None
    file_size: Optional[int] = None

    model_config = {"populate_by_name": True}


class StickerSet(BaseModel):
    """This object represents a sticker set."""

    name: str
    title: str
    is_animated: bool
    contains_masks: bool
    stickers: List["Sticker"]
    thumb: Optional["PhotoSize"] = None

    model_config = {"populate_by_name": True}


class Message(BaseModel):
    """This object represents a message."""

    message_id: int
    date: int
    chat: "Chat"
    from_field: Optional["User"] = Field(None, alias="from")
    sender_chat: Optional["Chat"] = None
    reply_to_message: Optional["Message"] = None
    edit_date: Optional[int] = None
    media_group_id: Optional[str] = None
    text: Optional[str] = None
    caption: Optional[str] = None
    document: Optional["Document"] = None
    photo: Optional[List["PhotoSize"]] = None
    sticker: Optional["Sticker"] = None

    model_config = {"populate_by_name": True}


class Update(BaseModel):
    """An incoming update.  At most one of the optional fields is present."""

    update_id: int
    message: Optional["Message"] = None
    edited_message: Optional["Message"] = None
    channel_post: Optional["Message"] = None
    edited_channel_post: Optional["Message"] = None

    model_config = {"populate_by_name": True}
