"""Custom exceptions for the screenshot relay.

Every error carries a stable, machine-readable ``kind`` next to its
human-readable message so the request layer can map it to a response
without string matching.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ScreenshotRelayError(Exception):
    """Base exception for all screenshot relay errors."""

    kind: str = "ScreenshotRelayError"

    def __init__(self, message: str = "", kind: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    @property
    def family(self) -> str:
        """Family name of the error, e.g. ``FetchError`` for every fetch kind."""
        return self.kind

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.family, "kind": self.kind, "message": self.message}


class MissingParamError(ScreenshotRelayError):
    """A required request parameter is absent."""

    kind = "MissingParam"


class MalformedSignedUrlError(ScreenshotRelayError):
    """A cloud-storage URL is missing its signature component."""

    kind = "MalformedSignedUrl"


class InvalidParameterError(ScreenshotRelayError):
    """A request parameter cannot be interpreted at all."""

    kind = "InvalidParameter"


class FetchError(ScreenshotRelayError):
    """Fetching the source image failed for good."""

    NETWORK = "Network"
    TIMEOUT = "Timeout"
    BAD_STATUS = "BadStatus"

    kind = NETWORK

    def __init__(
        self,
        message: str = "",
        kind: str = NETWORK,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        attempts: int = 1,
        transient: bool = False,
    ):
        super().__init__(message, kind)
        self.url = url
        self.status_code = status_code
        self.attempts = attempts
        self.transient = transient

    @property
    def family(self) -> str:
        return "FetchError"

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["attempts"] = self.attempts
        if self.status_code is not None:
            data["status_code"] = self.status_code
        return data


class TransformError(ScreenshotRelayError):
    """The source bytes could not be turned into an output image."""

    DECODE_FAILURE = "DecodeFailure"
    INVALID_GEOMETRY = "InvalidGeometry"

    kind = DECODE_FAILURE

    @property
    def family(self) -> str:
        return "TransformError"


class DeliveryError(ScreenshotRelayError):
    """The relay sink rejected the image or could not be reached."""

    kind = "DeliveryError"

    def __init__(self, message: str = "", detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.detail = detail or {}

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.detail:
            data["detail"] = self.detail
        return data


class ConfigurationError(ScreenshotRelayError):
    """The relay target is not configured."""

    kind = "ConfigMissing"
