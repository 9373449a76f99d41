"""Example subscriber API built on the service toolkit."""
from __future__ import annotations

import argparse
import logging
from dataclasses import asdict, dataclass, replace
from threading import Lock
from typing import Dict, List, Optional, Sequence

from fastapi import Request
from fastapi.responses import JSONResponse

from servicekit import jsend
from servicekit.config import (
    CorsConfig,
    LimiterConfig,
    ServerConfig,
    Settings,
    get_settings,
    parse_cors_methods,
)
from servicekit.errors import EditConflictError, FailedValidationError, NotFoundError
from servicekit.json_body import StrictBody, read_json
from servicekit.logging_config import configure_logging
from servicekit.utils import read_csv, read_id_param, read_int, read_string
from servicekit.validator import (
    USERNAME_RX,
    Validator,
    matches,
    unique,
    validate_email,
    validate_str_len_chars,
)
from servicekit.webapp import WebApp

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Subscriber:
    id: int
    email: str
    username: str
    tags: List[str]
    version: int = 1


class SubscriberInput(StrictBody):
    email: str
    username: str
    tags: List[str] = []


class SubscriberUpdate(StrictBody):
    email: Optional[str] = None
    tags: Optional[List[str]] = None
    version: int


class SubscriberStore:
    """Thread-safe in-memory subscriber records."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._records: Dict[int, Subscriber] = {}
        self._next_id = 1

    def add(self, email: str, username: str, tags: List[str]) -> Subscriber:
        with self._lock:
            record = Subscriber(id=self._next_id, email=email, username=username, tags=tags)
            self._records[record.id] = record
            self._next_id += 1
            return record

    def get(self, record_id: int) -> Subscriber:
        with self._lock:
            record = self._records.get(record_id)
        if record is None:
            raise NotFoundError()
        return record

    def update(self, record_id: int, version: int, **changes) -> Subscriber:
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                raise NotFoundError()
            if record.version != version:
                raise EditConflictError()
            updated = replace(record, version=record.version + 1, **changes)
            self._records[record_id] = updated
            return updated

    def search(self, tags: Sequence[str] = ()) -> List[Subscriber]:
        with self._lock:
            records = list(self._records.values())
        if tags:
            records = [r for r in records if set(tags) & set(r.tags)]
        return sorted(records, key=lambda r: r.id)


def validate_subscriber(v: Validator, email: Optional[str], username: Optional[str],
                        tags: Optional[List[str]]) -> None:
    if email is not None:
        validate_email(v, email)
    if username is not None:
        validate_str_len_chars(v, username, "username", 5, 32)
        v.check(matches(username, USERNAME_RX), "username", "must only contain letters, digits, '-' or '_'")
    if tags is not None:
        v.check(unique(tags), "tags", "must not contain duplicate values")
        v.check(len(tags) <= 10, "tags", "must not contain more than 10 values")


def create_webapp(settings: Settings) -> WebApp:
    webapp = WebApp(settings, title="Subscriber API")
    store = SubscriberStore()
    app = webapp.app

    def announce(record: Subscriber) -> None:
        LOGGER.info("subscriber %s created", record.id)

    @app.post("/v1/subscribers")
    async def create_subscriber(request: Request) -> JSONResponse:
        body = await read_json(request, SubscriberInput)

        v = Validator()
        validate_subscriber(v, body.email, body.username, body.tags)
        if not v.valid:
            raise FailedValidationError(v.errors)

        record = store.add(body.email, body.username, body.tags)
        webapp.background(announce, record)
        return jsend.success_response(
            201,
            {"subscriber": asdict(record)},
            headers={"Location": f"/v1/subscribers/{record.id}"},
        )

    @app.get("/v1/subscribers")
    async def list_subscribers(request: Request) -> JSONResponse:
        qs = request.query_params
        v = Validator()
        tags = read_csv(qs, "tags", [])
        sort = read_string(qs, "sort", "id")
        page = read_int(qs, "page", 1, v)
        page_size = read_int(qs, "page_size", 20, v)
        v.check(sort in ("id", "-id"), "sort", "invalid sort value")
        v.check(page > 0, "page", "must be greater than zero")
        v.check(0 < page_size <= 100, "page_size", "must be between 1 and 100")
        if not v.valid:
            raise FailedValidationError(v.errors)

        records = store.search(tags)
        if sort == "-id":
            records.reverse()
        start = (page - 1) * page_size
        paged = records[start:start + page_size]
        return jsend.success_response(200, {
            "subscribers": [asdict(r) for r in paged],
            "metadata": {"page": page, "page_size": page_size, "total": len(records)},
        })

    @app.get("/v1/subscribers/{subscriber_id}")
    async def show_subscriber(subscriber_id: str) -> JSONResponse:
        record = store.get(read_id_param(subscriber_id))
        return jsend.success_response(200, {"subscriber": asdict(record)})

    @app.patch("/v1/subscribers/{subscriber_id}")
    async def update_subscriber(subscriber_id: str, request: Request) -> JSONResponse:
        record_id = read_id_param(subscriber_id)
        body = await read_json(request, SubscriberUpdate)

        v = Validator()
        validate_subscriber(v, body.email, None, body.tags)
        if not v.valid:
            raise FailedValidationError(v.errors)

        changes = {k: val for k, val in (("email", body.email), ("tags", body.tags)) if val is not None}
        record = store.update(record_id, body.version, **changes)
        return jsend.success_response(200, {"subscriber": asdict(record)})

    return webapp


def parse_args(argv: Optional[Sequence[str]] = None, base: Optional[Settings] = None) -> Settings:
    """Override environment settings with command-line flags."""

    base = base or get_settings()
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--addr", default=base.server.addr, help="HTTP address in format: [HOST]:PORT")
    parser.add_argument("--env", default=base.server.env, help="Environment (development|staging|production)")
    parser.add_argument("--limiter-rps", type=float, default=base.limiter.rps,
                        help="Rate limiter max requests per second")
    parser.add_argument("--limiter-burst", type=int, default=base.limiter.burst, help="Rate limiter max burst")
    parser.add_argument("--limiter-active", default=base.limiter.active,
                        action=argparse.BooleanOptionalAction, help="Activate rate limiter")
    parser.add_argument("--cors-trusted-origins", default=" ".join(base.cors.trusted_origins),
                        help="Trusted CORS origins (space separated)")
    parser.add_argument("--cors-allow-methods", default=" ".join(base.cors.allow_methods),
                        help="HTTP methods allowed for CORS requests (space separated)")
    args = parser.parse_args(argv)

    return replace(
        base,
        server=ServerConfig(addr=args.addr, env=args.env),
        limiter=LimiterConfig(rps=args.limiter_rps, burst=args.limiter_burst, active=args.limiter_active),
        cors=CorsConfig(
            trusted_origins=tuple(args.cors_trusted_origins.split()),
            allow_methods=parse_cors_methods(args.cors_allow_methods),
        ),
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    settings = parse_args(argv)
    configure_logging(settings.log_level)
    create_webapp(settings).serve()


if __name__ == "__main__":
    main()
else:
    # Imported by an ASGI server (`uvicorn main:app`) or by tests.
    settings = get_settings()
    configure_logging(settings.log_level)
    webapp = create_webapp(settings)
    app = webapp.app
