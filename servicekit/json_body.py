"""Strict decoding of JSON request bodies with user-facing error messages."""
from __future__ import annotations

import json
import re
from datetime import date, datetime
from typing import Annotated, Any, Dict, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel, ConfigDict, PlainSerializer, PlainValidator, ValidationError
from pydantic_core import PydanticCustomError

from servicekit.errors import BadRequestError, FailedValidationError

MAX_BODY_BYTES = 1_048_576

Model = TypeVar("Model", bound=BaseModel)

_DECODER = json.JSONDecoder()

_DATE_ONLY_RX = re.compile(r"^\d{4}-\d{2}-\d{2}\Z")


def _parse_date_only(value: Any) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, str) and _DATE_ONLY_RX.match(value):
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
    raise PydanticCustomError("date_only_format", "must be a date in YYYY-MM-DD format")


# A calendar date without a time component, written as "YYYY-MM-DD" in JSON.
DateOnly = Annotated[
    date,
    PlainValidator(_parse_date_only),
    PlainSerializer(lambda value: value.isoformat(), return_type=str),
]


class StrictBody(BaseModel):
    """Base for request bodies; unknown keys are rejected and JSON types are not coerced."""

    model_config = ConfigDict(extra="forbid", strict=True)


async def _read_limited(request: Request, max_bytes: int) -> bytes:
    chunks = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > max_bytes:
            raise BadRequestError(f"body must not be larger than {max_bytes} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


def decode_json(raw: bytes) -> Any:
    """Parse exactly one JSON value from ``raw``."""

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise BadRequestError(f"body contains badly-formed JSON (at character {exc.start})") from exc

    stripped = text.lstrip()
    if not stripped:
        raise BadRequestError("body must not be empty")
    offset = len(text) - len(stripped)

    try:
        value, end = _DECODER.raw_decode(stripped)
    except json.JSONDecodeError as exc:
        raise BadRequestError(
            f"body contains badly-formed JSON (at character {exc.pos + offset})"
        ) from exc

    if stripped[end:].strip():
        raise BadRequestError("body must only contain a single JSON value")
    return value


def _is_type_error(error_type: str) -> bool:
    return error_type.endswith(("_type", "_parsing")) or "_from_" in error_type


def _translate(exc: ValidationError) -> Exception:
    field_errors: Dict[str, str] = {}
    for item in exc.errors():
        loc = item.get("loc", ())
        name = ".".join(str(part) for part in loc)
        error_type = item.get("type", "")
        if error_type == "extra_forbidden":
            return BadRequestError(f'body contains unknown key "{name}"')
        if _is_type_error(error_type):
            if not name:
                return BadRequestError("body contains incorrect JSON type (at character 0)")
            return BadRequestError(f'body contains incorrect JSON type for field "{name}"')
        field_errors.setdefault(name or "body", item.get("msg", "is invalid"))
    return FailedValidationError(field_errors)


def parse_model(value: Any, model: Type[Model]) -> Model:
    """Validate a decoded JSON value against ``model`` without type coercion.

    Validation runs in strict JSON mode, so ``"1979"``, ``true`` or ``1979.0``
    are not accepted where an integer is expected.
    """

    try:
        return model.model_validate_json(json.dumps(value), strict=True)
    except ValidationError as exc:
        raise _translate(exc) from exc


async def read_json(request: Request, model: Type[Model], max_bytes: int = MAX_BODY_BYTES) -> Model:
    """Read the request body and validate it as ``model``.

    Raises ``BadRequestError`` for bodies that are empty, too large, malformed
    or of the wrong shape, and ``FailedValidationError`` for well-formed bodies
    whose values break the model's constraints.
    """

    raw = await _read_limited(request, max_bytes)
    return parse_model(decode_json(raw), model)
