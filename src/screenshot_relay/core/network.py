"""Process-wide network settings and pre-flight checks on source URLs."""

import socket
from typing import Tuple
from urllib.parse import parse_qsl, urlsplit

import urllib3.util.connection as urllib3_connection

from .exceptions import MalformedSignedUrlError
from .logging_config import get_logger

# Host suffixes of object stores that hand out signed URLs
CLOUD_STORAGE_HOST_SUFFIXES: Tuple[str, ...] = (
    "storage.googleapis.com",
    "storage.cloud.google.com",
    ".blob.core.windows.net",
)
SIGNATURE_PARAMS: Tuple[str, ...] = (
    "x-goog-signature",
    "x-amz-signature",
    "signature",
    "sig",
)

_default_gai_family = urllib3_connection.allowed_gai_family


def _ipv4_only() -> int:
    return socket.AF_INET


def prefer_ipv4(enabled: bool = True) -> None:
    """
    Make every urllib3 (and so ``requests``) connection resolve to IPv4.

    This is a process-wide switch; call it once at start-up.
    """
    logger = get_logger("network")
    if enabled:
        urllib3_connection.allowed_gai_family = _ipv4_only
        logger.debug("Outbound connections restricted to IPv4")
    else:
        urllib3_connection.allowed_gai_family = _default_gai_family


def ipv4_preferred() -> bool:
    return urllib3_connection.allowed_gai_family is _ipv4_only


def is_cloud_storage_host(host: str) -> bool:
    host = host.lower().rstrip(".")
    if any(host == suffix.lstrip(".") or host.endswith(suffix) for suffix in CLOUD_STORAGE_HOST_SUFFIXES):
        return True
    # s3.amazonaws.com, bucket.s3.eu-west-1.amazonaws.com, s3-us-west-2.amazonaws.com
    return host.endswith(".amazonaws.com") and any(
        label == "s3" or label.startswith("s3-")
        for label in host.split(".")
    )


def has_signature(query: str) -> bool:
    return any(key.lower() in SIGNATURE_PARAMS for key, _ in parse_qsl(query, keep_blank_values=True))


def validate_source_url(url: str) -> str:
    """
    Refuse cloud-storage URLs that cannot work because their signature is gone.

    Returns the URL unchanged when it passes.

    Raises:
        MalformedSignedUrlError: If the host is a cloud object store and the
            query string has no signature parameter.
    """
    parts = urlsplit(url.strip())
    host = parts.hostname or ""
    if host and is_cloud_storage_host(host) and not has_signature(parts.query):
        raise MalformedSignedUrlError(
            f"Malformed signed URL: {host} requires a signature query parameter "
            f"(one of {', '.join(SIGNATURE_PARAMS)}); the URL was probably truncated"
        )
    return url
