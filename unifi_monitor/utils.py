"""Helper utilities.

This module centralises common helper functions such as creating a
configured HTTP session and applying retry policies to network calls.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

import requests
from requests import Response
from tenacity import (after_log, retry, retry_if_exception_type,
                      stop_after_attempt, wait_exponential)

from .config import HTTP_MAX_ATTEMPTS, REQUEST_HEADERS


logger = logging.getLogger(__name__)


def get_http_session(headers: Optional[Mapping[str, str]] = None) -> requests.Session:
    """Return a new HTTP session carrying the store header set.

    Caller is responsible for closing the session or letting it be
    garbage collected.
    """
    session = requests.Session()
    session.headers.update(dict(REQUEST_HEADERS if headers is None else headers))
    # Respect environment proxies if configured (requests does this by default)
    return session


class HTTPError(Exception):
    """Raised when an HTTP request fails after retries."""


class ServerError(HTTPError):
    """Status >= 500; the only status-based failure that is retried."""


def _raise_for_status(resp: Response) -> None:
    try:
        resp.raise_for_status()
    except requests.RequestException as e:
        raise HTTPError(str(e)) from e


def retryable_request(
    method: Optional[Callable[..., Response]] = None,
    *,
    check_status: bool = True,
    attempts: Optional[int] = None,
) -> Callable[..., Any]:
    """Decorator to apply retry logic to HTTP calls.

    The decorated function must accept a `requests.Session` as its first
    argument, followed by URL and optional kwargs, and return a
    `requests.Response`.  Network errors and server errors (status >= 500)
    are retried up to `attempts` times (HTTP_MAX_ATTEMPTS by default) with
    exponential back-off between 1 and 10 seconds.  Client errors (4xx)
    raise HTTPError immediately.  With `check_status`
    false the status code is not inspected at all and only transport
    errors raise.

    Usable bare (``@retryable_request``) or with arguments.
    """
    max_attempts = attempts if attempts is not None else HTTP_MAX_ATTEMPTS

    def decorate(fn: Callable[..., Response]) -> Callable[..., Response]:
        @retry(
            reraise=True,
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=(
                retry_if_exception_type(requests.ConnectionError)
                | retry_if_exception_type(requests.Timeout)
                | retry_if_exception_type(ServerError)
            ),
            after=after_log(logger, logging.WARNING),
        )
        def wrapper(session: requests.Session, url: str, **kwargs: Any) -> Response:
            response = fn(session, url, **kwargs)
            if not check_status:
                return response
            # If server returned >= 500, raise to trigger retry
            if response.status_code >= 500:
                raise ServerError(f"Server returned status {response.status_code}")
            _raise_for_status(response)
            return response

        return wrapper

    if method is not None:
        return decorate(method)
    return decorate


__all__ = ["get_http_session", "retryable_request", "HTTPError", "ServerError"]
