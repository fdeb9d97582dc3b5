"""BotLogger — Singleton JSON logger with console and optional rotating file output.

Provides a single, project-wide logger instance that writes structured JSON to
stdout.  When ``BOTWIRE_LOG_DIR`` is set, records are also written to
``<dir>/botwire.log`` with automatic rotation; nothing touches the filesystem
otherwise.  The level can be overridden through ``BOTWIRE_LOG_LEVEL``.
"""

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional


class _JsonFormatter(logging.Formatter):
    """Format every log record as a single-line JSON object.

    Standard fields (timestamp, level, logger, message, module, func_name)
    are always present.  Any *extra* key-value pairs passed via the ``extra``
    parameter of a logging call are merged into the JSON object, so callers
    can attach request context such as ``api_method``, ``fields`` or
    ``error``.

    Example::

        logger.warning(
            "Bot API call failed",
            extra={"api_method": "sendPhoto", "error_code": 429},
        )

    Produces::

        {"timestamp": "…", "level": "WARNING", …, "api_method": "sendPhoto", "error_code": 429}
    """

    # Keys that belong to the standard LogRecord — everything else is extra.
    _BUILTIN_ATTRS: frozenset[str] = frozenset(vars(logging.LogRecord(
        name="", level=0, pathname="", lineno=0, msg="", args=(), exc_info=None,
    )))

    def format(self, record: logging.LogRecord) -> str:
        """Serialize *record* to a JSON string."""
        log_entry: dict = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "func_name": record.funcName,
        }

        for key, value in record.__dict__.items():
            if key not in self._BUILTIN_ATTRS and key not in log_entry:
                log_entry[key] = value

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class BotLogger:
    """Singleton logger with a console handler and an optional rotating file.

    Usage::

        from core.logger import BotLogger

        logger = BotLogger.get_logger()
        logger.info("Client ready")
    """

    _instance: Optional["BotLogger"] = None
    _logger: Optional[logging.Logger] = None

    # Rotation settings
    _LOG_FILE: str = "botwire.log"
    _MAX_BYTES: int = 5 * 1024 * 1024  # 5 MB
    _BACKUP_COUNT: int = 5

    def __new__(cls, level: Optional[int] = None) -> "BotLogger":
        """Ensure only one instance is ever created (Singleton)."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._init_logger(
                level if level is not None else _env_level(),
                log_dir=os.environ.get("BOTWIRE_LOG_DIR"),
            )
        return cls._instance

    # ------------------------------------------------------------------
    # Initialisation helpers
    # ------------------------------------------------------------------

    def _init_logger(self, level: int, name: str = "botwire", log_dir: Optional[str] = None) -> None:
        """Create the underlying :class:`logging.Logger` and attach handlers.

        The rotating file handler is only attached when *log_dir* is given.
        """
        self._logger = logging.getLogger(name)
        self._logger.setLevel(level)

        # Avoid duplicate handlers if the module is reloaded.
        if self._logger.handlers:
            return

        formatter = _JsonFormatter()

        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(level)
        stream_handler.setFormatter(formatter)
        self._logger.addHandler(stream_handler)

        if not log_dir:
            return

        os.makedirs(log_dir, exist_ok=True)
        log_path = os.path.join(log_dir, self._LOG_FILE)

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=self._MAX_BYTES,
            backupCount=self._BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        self._logger.addHandler(file_handler)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @staticmethod
    def get_logger(level: Optional[int] = None) -> logging.Logger:
        """Return the shared :class:`logging.Logger` instance.

        Creates the singleton on first call; subsequent calls return the
        same logger regardless of the *level* argument.
        """
        instance = BotLogger(level)
        assert instance._logger is not None  # guaranteed by __new__
        return instance._logger

    def cleanup(self) -> None:
        """Flush and close all handlers attached to the logger."""
        if self._logger is None:
            return
        for handler in list(self._logger.handlers):
            handler.flush()
            handler.close()
            self._logger.removeHandler(handler)

    def __del__(self) -> None:
        """Best-effort cleanup on garbage collection."""
        self.cleanup()


def _env_level() -> int:
    """Resolve ``BOTWIRE_LOG_LEVEL`` (a name such as ``DEBUG``) to a level."""
    name = os.environ.get("BOTWIRE_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO
