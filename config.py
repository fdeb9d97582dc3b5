"""Application configuration — environment variables and derived constants.

Loads ``BOT_TOKEN``, ``API_URL``, ``REQUEST_TIMEOUT``, ``VERBOSE``,
``UPLOAD_CHUNK_SIZE`` and ``PIPE_CAPACITY`` from the environment via
``python-dotenv``.  All values are resolved at import time so other modules
can ``from config import …`` without repeated lookups.
"""

# ── stdlib ───────────────────────────────────────────────────────────────────
import os

# ── third-party ──────────────────────────────────────────────────────────────
from dotenv import load_dotenv

# ── core ─────────────────────────────────────────────────────────────────────
from core.logger import BotLogger

# ── Environment bootstrap ────────────────────────────────────────────────────
load_dotenv()

logger = BotLogger.get_logger()

_TRUTHY: frozenset[str] = frozenset({"1", "true", "yes", "on"})


# ── Helper functions (private) ───────────────────────────────────────────────


def _parse_positive_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to *default*.

    Empty, non-numeric and non-positive values are rejected with a warning
    rather than an exception so a bad ``.env`` never prevents start-up.
    """
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning("Invalid integer in environment, using default", extra={"variable": name, "value": raw, "default": default})
        return default
    if value <= 0:
        logger.warning("Non-positive value in environment, using default", extra={"variable": name, "value": raw, "default": default})
        return default
    return value


def _parse_bool(raw: str | None) -> bool:
    return bool(raw) and raw.strip().lower() in _TRUTHY


# ── Public constants ─────────────────────────────────────────────────────────

BOT_TOKEN: str | None = os.environ.get("BOT_TOKEN")
API_URL: str = os.environ.get("API_URL", "https://api.telegram.org").rstrip("/")
REQUEST_TIMEOUT: int = _parse_positive_int("REQUEST_TIMEOUT", 30)
VERBOSE: bool = _parse_bool(os.environ.get("VERBOSE"))
UPLOAD_CHUNK_SIZE: int = _parse_positive_int("UPLOAD_CHUNK_SIZE", 64 * 1024)
PIPE_CAPACITY: int = _parse_positive_int("PIPE_CAPACITY", 64 * 1024)


# ── Startup diagnostics ─────────────────────────────────────────────────────

if BOT_TOKEN:
    logger.info("Config loaded — BOT_TOKEN is set", extra={"api_url": API_URL})
else:
    logger.warning("Config loaded — BOT_TOKEN is NOT set", extra={"api_url": API_URL})

if VERBOSE:
    logger.info("Verbose request logging enabled")
