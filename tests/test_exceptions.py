"""Tests for the error hierarchy and the description → error kind table."""

import sys
import os

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from botwire.exceptions import (
    ERROR_KINDS,
    APIException,
    BlockedByUserError,
    BotAPIError,
    ChatNotFoundError,
    ConfigurationError,
    DecodeError,
    FloodError,
    ForbiddenError,
    InternalServerError,
    KickedFromGroupError,
    MessageNotModifiedError,
    NotFoundError,
    TransportError,
    UnauthorizedError,
    api_error,
    error_kind,
)


# ── APIException ─────────────────────────────────────────────────────────────


class TestAPIException:
    """Validate the base API exception."""

    def test_attributes(self) -> None:
        exc = APIException(403, "Forbidden", {"retry_after": 1})
        assert exc.code == 403
        assert exc.description == "Forbidden"
        assert exc.parameters == {"retry_after": 1}
        assert "403" in str(exc)
        assert "Forbidden" in str(exc)

    def test_default_parameters(self) -> None:
        assert APIException(400, "Bad Request").parameters == {}

    def test_hierarchy(self) -> None:
        for cls in (APIException, TransportError, DecodeError, ConfigurationError):
            assert issubclass(cls, BotAPIError)
        assert issubclass(ConfigurationError, ValueError)
        assert issubclass(BlockedByUserError, ForbiddenError)
        assert issubclass(ChatNotFoundError, NotFoundError)

    def test_internal_server_error_defaults(self) -> None:
        exc = InternalServerError()
        assert exc.code == 500
        assert exc.description == "Internal Server Error"


# ── Error kind lookup ────────────────────────────────────────────────────────


class TestErrorKinds:
    """The ordered substring table picks the most specific class."""

    @pytest.mark.parametrize(
        "description, expected",
        [
            ("Too Many Requests: retry after 5", FloodError),
            ("Forbidden: bot was blocked by the user", BlockedByUserError),
            ("Forbidden: bot was kicked from the group chat", KickedFromGroupError),
            ("Forbidden: not enough rights", ForbiddenError),
            ("Unauthorized", UnauthorizedError),
            ("Bad Request: chat not found", ChatNotFoundError),
            ("Bad Request: message is not modified: specified new message content is the same", MessageNotModifiedError),
            ("Not Found", NotFoundError),
            ("Internal Server Error", InternalServerError),
        ],
    )
    def test_known_descriptions(self, description: str, expected: type) -> None:
        assert error_kind(description) is expected

    def test_unknown_description(self) -> None:
        assert error_kind("Bad Request: wrong file identifier") is None

    def test_table_entries_are_api_exceptions(self) -> None:
        for fragment, kind in ERROR_KINDS:
            assert fragment
            assert issubclass(kind, APIException)

    def test_specific_before_generic(self) -> None:
        fragments = [fragment for fragment, _ in ERROR_KINDS]
        assert fragments.index("bot was blocked by the user") < fragments.index("Forbidden")


# ── api_error factory ────────────────────────────────────────────────────────


class TestApiError:
    """Validate construction of the concrete exception."""

    def test_flood_retry_after_from_description(self) -> None:
        exc = api_error(429, "Too Many Requests: retry after 5")
        assert isinstance(exc, FloodError)
        assert exc.code == 429
        assert exc.retry_after == 5

    def test_flood_retry_after_from_parameters(self) -> None:
        exc = api_error(429, "Too Many Requests: retry after 5", {"retry_after": 7})
        assert exc.retry_after == 7

    def test_unmatched_429_is_flood(self) -> None:
        exc = api_error(429, "Slow down")
        assert isinstance(exc, FloodError)
        assert exc.retry_after is None

    def test_generic_keeps_code_and_description(self) -> None:
        exc = api_error(400, "Bad Request: wrong file identifier")
        assert type(exc) is APIException
        assert exc.code == 400
        assert exc.description == "Bad Request: wrong file identifier"

    def test_configuration_error_names_field(self) -> None:
        exc = ConfigurationError("png_sticker")
        assert exc.field == "png_sticker"
        assert "png_sticker" in str(exc)
