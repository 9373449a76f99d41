"""JSend response envelopes.

Every JSON body written by a service is wrapped in one of three shapes
described at https://github.com/omniti-labs/jsend:

* ``success`` carries ``data`` and is sent with a 2xx status;
* ``fail`` carries ``data`` describing what was wrong with the request and is
  sent with a 4xx status;
* ``error`` carries a human readable ``message`` plus optional ``code`` and
  ``data`` and is sent with a 5xx status.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator

STATUS_SUCCESS = "success"
STATUS_FAIL = "fail"
STATUS_ERROR = "error"
STATUSES = (STATUS_SUCCESS, STATUS_FAIL, STATUS_ERROR)

_STATUS_RANGES = {
    STATUS_SUCCESS: (200, 299),
    STATUS_FAIL: (400, 499),
    STATUS_ERROR: (500, 599),
}


class InvalidJSendStatus(ValueError):
    """Raised when a payload's ``status`` is not one of the JSend statuses."""


class JSendEnvelope(BaseModel):
    """A decoded JSend payload whose ``data`` shape is not yet known."""

    status: str
    data: Any = None
    code: Optional[int] = None
    message: Optional[str] = None

    @field_validator("status")
    @classmethod
    def _known_status(cls, value: str) -> str:
        if value not in STATUSES:
            raise InvalidJSendStatus("invalid JSend status field")
        return value


class PrettyJSONResponse(JSONResponse):
    """JSON response indented with tabs and terminated by a newline."""

    def render(self, content: Any) -> bytes:
        return (json.dumps(content, indent="\t", ensure_ascii=False, default=str) + "\n").encode("utf-8")


def success(data: Any) -> Dict[str, Any]:
    return {"status": STATUS_SUCCESS, "data": data}


def fail(data: Any) -> Dict[str, Any]:
    return {"status": STATUS_FAIL, "data": data}


def error(message: str, code: Optional[int] = None, data: Any = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"status": STATUS_ERROR, "message": message}
    if code is not None:
        payload["code"] = code
    if data is not None:
        payload["data"] = data
    return payload


def _check_status_code(status_code: int, status: str) -> None:
    low, high = _STATUS_RANGES[status]
    if not low <= status_code <= high:
        raise ValueError(
            f"http status code ({status_code}) for {status} is not in range {low} to {high}"
        )


def success_response(status_code: int, data: Any,
                     headers: Optional[Mapping[str, str]] = None) -> JSONResponse:
    _check_status_code(status_code, STATUS_SUCCESS)
    return PrettyJSONResponse(success(data), status_code=status_code, headers=headers)


def fail_response(status_code: int, data: Any,
                  headers: Optional[Mapping[str, str]] = None) -> JSONResponse:
    _check_status_code(status_code, STATUS_FAIL)
    return PrettyJSONResponse(fail(data), status_code=status_code, headers=headers)


def error_response(status_code: int, message: str, code: Optional[int] = None, data: Any = None,
                   headers: Optional[Mapping[str, str]] = None) -> JSONResponse:
    _check_status_code(status_code, STATUS_ERROR)
    return PrettyJSONResponse(error(message, code, data), status_code=status_code, headers=headers)
