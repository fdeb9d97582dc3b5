"""Core infrastructure shared by the SDK — structured logging.

This package is framework-agnostic. It must NEVER import from ``botwire/``.
"""

from core.logger import BotLogger

__all__ = [
    "BotLogger",
]
