# src/screenshot_relay/core/error_handling.py

import errno
import functools
import http.client
import logging
import socket
import time
from typing import Iterator, Tuple

import requests
import urllib3.exceptions
from PIL import Image, UnidentifiedImageError

from .exceptions import FetchError, ScreenshotRelayError, TransformError

# Substrings of low-level error messages that mark a failure worth retrying.
# Checked only after the exception chain itself gave no answer.
TRANSIENT_MESSAGE_MARKERS = (
    "connection reset",
    "econnreset",
    "connection aborted",
    "econnaborted",
    "remote end closed connection",
    "remotedisconnected",
    "socket hang up",
    "temporary failure in name resolution",
    "eai_again",
)

_EAI_AGAIN = getattr(socket, "EAI_AGAIN", -3)


def _iter_exception_chain(exc: BaseException, limit: int = 16) -> Iterator[BaseException]:
    """Yield ``exc`` and everything it wraps: causes, contexts, urllib3 reasons, args."""
    pending = [exc]
    seen = set()
    while pending and len(seen) < limit:
        current = pending.pop(0)
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current

        for attr in ("__cause__", "__context__", "reason"):
            nested = getattr(current, attr, None)
            if isinstance(nested, BaseException):
                pending.append(nested)
        pending.extend(arg for arg in getattr(current, "args", ()) if isinstance(arg, BaseException))


def classify_request_exception(exc: BaseException) -> Tuple[str, bool]:
    """
    Classify a network exception raised while fetching.

    Returns:
        ``(kind, transient)`` where ``kind`` is one of the ``FetchError``
        kinds and ``transient`` tells whether the same request may succeed
        if simply tried again.
    """
    if isinstance(exc, (requests.exceptions.Timeout, socket.timeout, TimeoutError)):
        return FetchError.TIMEOUT, True
    if isinstance(exc, requests.exceptions.TooManyRedirects):
        return FetchError.BAD_STATUS, False
    if isinstance(exc, requests.exceptions.HTTPError):
        return FetchError.BAD_STATUS, False
    if isinstance(
        exc,
        (
            requests.exceptions.InvalidURL,
            requests.exceptions.MissingSchema,
            requests.exceptions.InvalidSchema,
            requests.exceptions.URLRequired,
        ),
    ):
        return FetchError.NETWORK, False

    chain = list(_iter_exception_chain(exc))
    for link in chain:
        if isinstance(link, socket.gaierror):
            return FetchError.NETWORK, link.errno == _EAI_AGAIN
        if isinstance(link, (ConnectionResetError, ConnectionAbortedError, http.client.RemoteDisconnected)):
            return FetchError.NETWORK, True
        if isinstance(link, OSError) and link.errno in (errno.ECONNRESET, errno.ECONNABORTED):
            return FetchError.NETWORK, True
        if isinstance(link, (socket.timeout, TimeoutError, urllib3.exceptions.TimeoutError)):
            return FetchError.TIMEOUT, True

    text = " ".join(str(link) for link in chain).lower()
    if any(marker in text for marker in TRANSIENT_MESSAGE_MARKERS):
        return FetchError.NETWORK, True

    return FetchError.NETWORK, False


def with_error_handling(func):
    """
    A decorator to wrap functions with standardized error handling.

    ``requests`` failures become ``FetchError`` (with the transient flag set
    by ``classify_request_exception``), Pillow identification failures
    become ``TransformError``; project errors pass through unchanged.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger(func.__module__ + '.' + func.__name__)
        try:
            return func(*args, **kwargs)
        except ScreenshotRelayError as e:
            if getattr(e, "transient", False):
                logger.warning(f"Transient error in '{func.__name__}': {e}")
            else:
                logger.error(f"Error in '{func.__name__}': {e}", exc_info=True)
            raise
        except requests.exceptions.RequestException as e:
            kind, transient = classify_request_exception(e)
            request = getattr(e, "request", None)
            url = getattr(request, "url", None)
            if transient:
                logger.warning(f"Transient {kind} error in '{func.__name__}': {e}")
            else:
                logger.error(f"{kind} error in '{func.__name__}': {e}", exc_info=True)
            raise FetchError(
                f"Request failed in {func.__name__}: {e}",
                kind=kind,
                url=url,
                transient=transient,
            ) from e
        except (UnidentifiedImageError, Image.DecompressionBombError) as e:
            logger.error(f"Error in '{func.__name__}': {e}", exc_info=True)
            raise TransformError(
                f"Failed to identify image in {func.__name__}: {e}",
                kind=TransformError.DECODE_FAILURE,
            ) from e
        except Exception as e:
            logger.error(f"Error in '{func.__name__}': {e}", exc_info=True)
            raise
    return wrapper


def retry_transient_failures(max_attempts=3, backoff_seconds=0.3):
    """
    Decorator to retry transient ``FetchError`` failures with linear backoff.

    Attempt ``n`` that fails transiently is followed by a sleep of
    ``backoff_seconds * n`` and attempt ``n + 1``, up to ``max_attempts``.
    Non-transient errors are raised on the attempt that produced them. The
    raised ``FetchError`` records how many attempts were made.
    """
    max_attempts = max(1, int(max_attempts))

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = logging.getLogger(func.__module__ + '.' + func.__name__)
            attempt = 1
            while True:
                try:
                    return func(*args, **kwargs)
                except FetchError as e:
                    e.attempts = attempt
                    if not e.transient:
                        logger.error(
                            f"Fetch '{func.__name__}' failed with non-retryable {e.kind}: {e}"
                        )
                        raise
                    if attempt >= max_attempts:
                        logger.error(
                            f"Fetch '{func.__name__}' failed after {max_attempts} attempts. Error: {e}"
                        )
                        e.transient = False
                        raise

                    delay = backoff_seconds * attempt
                    logger.info(
                        f"Fetch '{func.__name__}' failed. Attempt {attempt}/{max_attempts}. "
                        f"Retrying in {delay:.2f}s. Error: {e}"
                    )
                    time.sleep(delay)
                    attempt += 1
        return wrapper
    return decorator
