"""Service settings and environment loading utilities."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

ENVIRONMENTS = ("development", "staging", "production")
HTTP_METHODS = frozenset({"DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT"})
DEFAULT_CORS_METHODS = ("DELETE", "OPTIONS", "PATCH", "PUT")


def _load_dotenv() -> None:
    env_path = Path(".env")
    if not env_path.exists():
        return
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


_load_dotenv()


def _parse_bool(value: str, name: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise RuntimeError(f"Invalid boolean for {name}: {value!r}")


def _parse_number(value: str, name: str, kind: type) -> float | int:
    try:
        return kind(value)
    except ValueError as exc:
        raise RuntimeError(f"Invalid value for {name}: {value!r}") from exc


def parse_cors_methods(value: str) -> Tuple[str, ...]:
    """Validate a space separated list of HTTP methods for CORS."""

    methods = sorted(value.upper().split())
    if not methods:
        raise RuntimeError("No HTTP methods supplied for CORS_ALLOW_METHODS")
    for method in methods:
        if method not in HTTP_METHODS:
            raise RuntimeError(f"Invalid HTTP method for CORS: {method}")
    return tuple(methods)


def split_addr(addr: str) -> Tuple[str, int]:
    """Split ``[HOST]:PORT`` into a host and port; an empty host binds all interfaces."""

    host, sep, port = addr.rpartition(":")
    if not sep or not port.isdigit():
        raise RuntimeError(f"Invalid server address, expected [HOST]:PORT: {addr!r}")
    return host or "0.0.0.0", int(port)


@dataclass(frozen=True)
class ServerConfig:
    """Where the HTTP server listens and which environment it reports."""

    addr: str = ":4000"
    env: str = "development"

    def __post_init__(self) -> None:
        if self.env not in ENVIRONMENTS:
            raise RuntimeError(f"Invalid environment {self.env!r}, expected one of {ENVIRONMENTS}")
        split_addr(self.addr)

    @property
    def host(self) -> str:
        return split_addr(self.addr)[0]

    @property
    def port(self) -> int:
        return split_addr(self.addr)[1]


@dataclass(frozen=True)
class LimiterConfig:
    """Token bucket parameters shared by every client of one rate limiter."""

    rps: float = 2.0
    burst: int = 4
    active: bool = True

    def __post_init__(self) -> None:
        if self.rps <= 0:
            raise RuntimeError("LIMITER_RPS must be greater than zero")
        if self.burst < 1:
            raise RuntimeError("LIMITER_BURST must be at least 1")


@dataclass(frozen=True)
class CorsConfig:
    trusted_origins: Tuple[str, ...] = ()
    allow_methods: Tuple[str, ...] = DEFAULT_CORS_METHODS


@dataclass(frozen=True)
class Settings:
    """Runtime configuration derived from environment variables."""

    server: ServerConfig = field(default_factory=ServerConfig)
    limiter: LimiterConfig = field(default_factory=LimiterConfig)
    cors: CorsConfig = field(default_factory=CorsConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        server = ServerConfig(
            addr=os.getenv("SERVICE_ADDR", ":4000"),
            env=os.getenv("SERVICE_ENV", "development"),
        )
        limiter = LimiterConfig(
            rps=_parse_number(os.getenv("LIMITER_RPS", "2"), "LIMITER_RPS", float),
            burst=_parse_number(os.getenv("LIMITER_BURST", "4"), "LIMITER_BURST", int),
            active=_parse_bool(os.getenv("LIMITER_ACTIVE", "true"), "LIMITER_ACTIVE"),
        )

        methods: Optional[str] = os.getenv("CORS_ALLOW_METHODS")
        cors = CorsConfig(
            trusted_origins=tuple(os.getenv("CORS_TRUSTED_ORIGINS", "").split()),
            allow_methods=parse_cors_methods(methods) if methods is not None else DEFAULT_CORS_METHODS,
        )

        return cls(
            server=server,
            limiter=limiter,
            cors=cors,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache()
def get_settings() -> Settings:
    """Return cached service settings."""

    return Settings.from_env()
