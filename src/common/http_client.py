"""HTTP access for remote Maven repositories.

``safe_get`` is the only place that talks to ``requests``. A timeout or
connection failure either ends the run with ``ExitCodes.CONNECTION_ERROR``
(``fatal=True``) or propagates to the caller, which reports it as an
artifact resolution failure.
"""
from __future__ import annotations

import logging
import sys
from typing import Any

import requests

from constants import Constants, ExitCodes
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)


def _trace(message: str, event: str, target: str, context: str, **fields: Any) -> None:
    if is_debug_enabled(logger):
        logger.debug(
            message,
            extra=extra_context(
                event=event, component="http_client", action="GET",
                target=target, context=context, **fields
            ),
        )


def _describe(exc: requests.RequestException) -> str:
    if isinstance(exc, requests.Timeout):
        return f"request timed out after {Constants.REQUEST_TIMEOUT} seconds"
    return f"connection error: {exc}"


def safe_get(url: str, *, context: str, fatal: bool = True, **kwargs: Any) -> requests.Response:
    """GET ``url`` with the shared timeout.

    Args:
        url: Absolute URL; credentials and query strings never reach the logs.
        context: Short label for log lines, e.g. ``"maven"``.
        fatal: Exit the process on network failure instead of re-raising.
    """
    target = safe_url(url)
    with Timer() as t:
        _trace("HTTP request", "http_request", target, context)
        try:
            res = requests.get(url, timeout=Constants.REQUEST_TIMEOUT, **kwargs)
        except requests.RequestException as exc:
            logger.error("%s %s (%s)", context, _describe(exc), target)
            if not fatal:
                raise
            sys.exit(ExitCodes.CONNECTION_ERROR.value)
        _trace("HTTP response", "http_response", target, context,
               status_code=res.status_code, duration_ms=t.duration_ms())
    return res
