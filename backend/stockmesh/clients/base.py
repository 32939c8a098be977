# Overview: Shared HTTP plumbing for calls to sibling services.

"""
Every cross-service interaction is one blocking HTTP request with a bounded
timeout and no retry. Failures are sorted into three buckets so callers can
translate them:

- UpstreamNotFound: the sibling answered 404 (a confirmed absence)
- UpstreamConflict: the sibling answered 409
- ServiceUnavailable: anything else (connect error, timeout, 5xx, bad JSON)
"""
from __future__ import annotations

from typing import Any

import httpx
from flask import has_request_context, request


class UpstreamError(Exception):
    """Base class for sibling-service failures."""

    def __init__(self, message: str, *, service: str, status_code: int | None = None):
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class UpstreamNotFound(UpstreamError):
    """The sibling service confirmed the resource does not exist."""


class UpstreamConflict(UpstreamError):
    """The sibling service refused the write because of a conflicting state."""


class ServiceUnavailable(UpstreamError):
    """The sibling service could not be reached or failed unexpectedly."""


class ServiceClient:
    """
    Thin JSON-over-HTTP client for one sibling service.

    The caller's bearer token is forwarded so the sibling applies its own
    authorization to the original user.
    """

    service_name = "service"

    def __init__(self, base_url: str, *, timeout: float = 10.0, transport: httpx.BaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if has_request_context():
            auth_header = request.headers.get("Authorization")
            if auth_header:
                headers["Authorization"] = auth_header
        return headers

    def _request(self, method: str, path: str, *, json: Any = None, params: dict | None = None) -> Any:
        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self._transport) as http:
                response = http.request(method, path, json=json, params=params, headers=self._headers())
        except httpx.HTTPError as exc:
            raise ServiceUnavailable(
                f"{self.service_name} unreachable: {exc.__class__.__name__}",
                service=self.service_name,
            ) from exc

        if response.status_code == 404:
            raise UpstreamNotFound(
                f"{self.service_name} returned 404 for {path}",
                service=self.service_name,
                status_code=404,
            )
        if response.status_code == 409:
            raise UpstreamConflict(
                _error_message(response) or f"{self.service_name} reported a conflict",
                service=self.service_name,
                status_code=409,
            )
        if response.status_code >= 400:
            raise ServiceUnavailable(
                f"{self.service_name} returned {response.status_code} for {path}",
                service=self.service_name,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ServiceUnavailable(
                f"{self.service_name} returned a non-JSON body",
                service=self.service_name,
                status_code=response.status_code,
            ) from exc

    def _get(self, path: str, **kwargs) -> Any:
        return self._request("GET", path, **kwargs)

    def _post(self, path: str, **kwargs) -> Any:
        return self._request("POST", path, **kwargs)

    def _put(self, path: str, **kwargs) -> Any:
        return self._request("PUT", path, **kwargs)


def _error_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("error")
    return None


def items_of(body: Any) -> list:
    """Unwrap a list response ({"items": [...]} or a bare list)."""
    if isinstance(body, dict):
        return list(body.get("items") or [])
    if isinstance(body, list):
        return body
    return []
