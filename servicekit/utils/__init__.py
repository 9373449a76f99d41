"""Utility helpers."""
from .query import read_csv, read_id_param, read_int, read_string  # noqa: F401
from .time import format_uptime, utc_now  # noqa: F401
