"""Helpers for building JSON web services; common entry points are re-exported."""

from .config import Settings, get_settings
from .logging_config import configure_logging
from .rate_limit import RateLimiter
from .webapp import WebApp

__all__ = ["Settings", "get_settings", "configure_logging", "RateLimiter", "WebApp"]
