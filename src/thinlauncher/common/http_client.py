"""Shared HTTP helpers used by the repository transport.

Encapsulates request/timeout error handling so the resolver only ever sees
three outcomes: content, "not found here", or RepositoryUnavailableError.
"""
from __future__ import annotations

import logging
from typing import Any, BinaryIO, Dict, Optional, Tuple

import requests

from thinlauncher.constants import Constants
from thinlauncher.exceptions import RepositoryUnavailableError
from thinlauncher.common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

NOT_FOUND_STATUSES = (404, 410)


def _request_kwargs(
    proxies: Optional[Dict[str, str]],
    auth: Optional[Tuple[str, str]],
    timeout: Optional[float],
) -> Dict[str, Any]:
    return {
        "timeout": timeout if timeout is not None else Constants.REQUEST_TIMEOUT,
        "proxies": proxies,
        "auth": auth,
        "headers": {"User-Agent": Constants.USER_AGENT},
    }


def _get(url: str, *, context: str, stream: bool, **kwargs: Any) -> requests.Response:
    """Perform a GET request, converting transport failures to RepositoryUnavailableError."""
    safe_target = safe_url(url)
    with Timer() as t:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP request",
                extra=extra_context(
                    event="http_request",
                    component="http_client",
                    action="GET",
                    target=safe_target,
                    context=context,
                ),
            )
        try:
            res = requests.get(url, stream=stream, **kwargs)
        except requests.Timeout as exc:
            logger.warning(
                "%s request timed out after %s seconds: %s",
                context,
                kwargs.get("timeout"),
                safe_target,
            )
            raise RepositoryUnavailableError(context, safe_target, "timeout") from exc
        except requests.RequestException as exc:  # includes ConnectionError
            logger.warning("%s connection error: %s", context, exc)
            raise RepositoryUnavailableError(context, safe_target, str(exc)) from exc

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    status_code=res.status_code,
                    duration_ms=t.duration_ms(),
                    target=safe_target,
                    context=context,
                ),
            )
    return res


def get_text(
    url: str,
    *,
    context: str,
    proxies: Optional[Dict[str, str]] = None,
    auth: Optional[Tuple[str, str]] = None,
    timeout: Optional[float] = None,
) -> Optional[str]:
    """Fetch a small text document (POM, metadata).

    Returns:
        The body, or None when the repository does not have the document.

    Raises:
        RepositoryUnavailableError: On timeouts, connection errors or
            unexpected status codes.
    """
    res = _get(url, context=context, stream=False, **_request_kwargs(proxies, auth, timeout))
    if res.status_code in NOT_FOUND_STATUSES:
        return None
    if res.status_code != 200:
        raise RepositoryUnavailableError(context, safe_url(url), f"HTTP {res.status_code}")
    return res.text


def download(
    url: str,
    target: BinaryIO,
    *,
    context: str,
    proxies: Optional[Dict[str, str]] = None,
    auth: Optional[Tuple[str, str]] = None,
    timeout: Optional[float] = None,
) -> bool:
    """Stream a binary artifact into an open file object.

    Returns:
        True when the body was written, False when the repository does not
        have the artifact.

    Raises:
        RepositoryUnavailableError: On timeouts, connection errors or
            unexpected status codes.
    """
    res = _get(url, context=context, stream=True, **_request_kwargs(proxies, auth, timeout))
    try:
        if res.status_code in NOT_FOUND_STATUSES:
            return False
        if res.status_code != 200:
            raise RepositoryUnavailableError(context, safe_url(url), f"HTTP {res.status_code}")
        try:
            for chunk in res.iter_content(chunk_size=Constants.DOWNLOAD_CHUNK_SIZE):
                if chunk:
                    target.write(chunk)
        except requests.RequestException as exc:
            raise RepositoryUnavailableError(context, safe_url(url), str(exc)) from exc
        return True
    finally:
        res.close()
