"""HTTP client for services that answer with JSend payloads."""
from __future__ import annotations

import logging
from typing import Any, Optional, Tuple, Type

import requests
from pydantic import BaseModel, ValidationError
from requests import Response

from servicekit.jsend import STATUS_SUCCESS, JSendEnvelope

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class JSendClientError(RuntimeError):
    """Raised when a request fails or the reply is not a valid JSend payload."""


class JSendClient:
    """Small JSON client that decodes every reply into a :class:`JSendEnvelope`.

    Pass ``model`` to have the ``data`` of a success envelope validated into
    that pydantic model. Otherwise the caller is responsible for interpreting
    ``envelope.data`` once the status has been checked.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 session: Optional[requests.Session] = None) -> None:
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})

    def request(self, method: str, url: str, body: Any = None,
                model: Optional[Type[BaseModel]] = None) -> Tuple[Response, JSendEnvelope]:
        """Send ``body`` as JSON and return the HTTP response with its decoded envelope."""

        try:
            response = self._session.request(
                method.upper(),
                url,
                json=body,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            LOGGER.warning("jsend request failed", extra={"request_method": method, "request_url": url})
            raise JSendClientError(f"{method.upper()} {url} failed: {exc}") from exc

        envelope = self._decode(response)
        if model is not None and envelope.status == STATUS_SUCCESS:
            envelope = self._decode_data(response, envelope, model)
        return response, envelope

    def _decode(self, response: Response) -> JSendEnvelope:
        try:
            payload = response.json()
        except ValueError as exc:
            raise JSendClientError(
                f"Response from {response.url} is not JSON ({response.status_code})."
            ) from exc

        try:
            return JSendEnvelope.model_validate(payload)
        except ValidationError as exc:
            LOGGER.error(
                "invalid jsend payload",
                extra={"request_url": response.url, "status": response.status_code},
            )
            raise JSendClientError(f"Response from {response.url} is not a valid JSend payload.") from exc

    def _decode_data(self, response: Response, envelope: JSendEnvelope,
                     model: Type[BaseModel]) -> JSendEnvelope:
        try:
            data = model.model_validate(envelope.data)
        except ValidationError as exc:
            LOGGER.error(
                "unexpected jsend data",
                extra={"request_url": response.url, "model": model.__name__},
            )
            raise JSendClientError(
                f"Response from {response.url} does not match {model.__name__}: {exc.error_count()} error(s)."
            ) from exc
        return envelope.model_copy(update={"data": data})

    def get(self, url: str, model: Optional[Type[BaseModel]] = None) -> Tuple[Response, JSendEnvelope]:
        return self.request("GET", url, model=model)

    def post(self, url: str, body: Any,
             model: Optional[Type[BaseModel]] = None) -> Tuple[Response, JSendEnvelope]:
        return self.request("POST", url, body, model=model)

    def close(self) -> None:
        self._session.close()
